"""
Product Repository - Data Access Layer and stock ledger
"""
from typing import List, Optional
from sqlalchemy.orm import Session

from storefront.exceptions import StockAdjustmentError
from storefront.models.product import Product


class ProductRepository:
    """Repository for Product CRUD and stock operations"""

    def __init__(self, db: Session):
        self.db = db

    def get_all(self, skip: int = 0, limit: int = 100) -> List[Product]:
        """Get all products with pagination"""
        return self.db.query(Product).order_by(Product.id).offset(skip).limit(limit).all()

    def get_by_id(self, product_id: int) -> Optional[Product]:
        """Get product by ID"""
        return self.db.query(Product).filter(Product.id == product_id).first()

    def get_stock(self, product_id: int) -> Optional[int]:
        """Read the current stock counter, None if the product does not exist"""
        row = self.db.query(Product.stock).filter(Product.id == product_id).first()
        return row[0] if row else None

    def create(self, product_data: dict) -> Product:
        """Create new product"""
        product = Product(**product_data)
        self.db.add(product)
        self.db.commit()
        self.db.refresh(product)
        return product

    def decrement_stock(self, product_id: int, quantity: int) -> bool:
        """
        Atomically decrement stock if enough is available

        Issues a single conditional UPDATE so two concurrent orders can
        never both take the last units. Does not commit: the caller owns
        the transaction.

        Returns:
            True if the row was updated, False if stock was insufficient
            or the product is gone
        """
        updated = self.db.query(Product).filter(
            Product.id == product_id,
            Product.stock >= quantity
        ).update(
            {Product.stock: Product.stock - quantity},
            synchronize_session="fetch"
        )
        return updated == 1

    def adjust_stock(self, product_id: int, quantity_change: int) -> Optional[Product]:
        """
        Add or subtract stock (admin adjustment)

        Args:
            product_id: Product ID
            quantity_change: Positive to add, negative to subtract

        Returns:
            Updated product or None if product not found

        Raises:
            StockAdjustmentError: If resulting stock would be negative
        """
        product = self.get_by_id(product_id)
        if not product:
            return None

        updated = self.db.query(Product).filter(
            Product.id == product_id,
            Product.stock + quantity_change >= 0
        ).update(
            {Product.stock: Product.stock + quantity_change},
            synchronize_session="fetch"
        )
        if updated != 1:
            self.db.rollback()
            raise StockAdjustmentError(f"Insufficient stock. Current: {product.stock}, requested change: {quantity_change}")

        self.db.commit()
        self.db.refresh(product)
        return product

    def count(self) -> int:
        """Get total count of products"""
        return self.db.query(Product).count()
