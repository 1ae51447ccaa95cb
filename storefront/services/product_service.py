"""
Product Service - catalogue reads and admin stock adjustments
"""
from typing import Optional
from sqlalchemy.orm import Session

from storefront.repositories.product_repository import ProductRepository
from storefront.schemas.product import (
    ProductCreate,
    ProductResponse,
    ProductListResponse,
)


class ProductService:
    """Service layer for product business logic"""

    def __init__(self, db: Session):
        self.repository = ProductRepository(db)

    def get_all_products(self, skip: int = 0, limit: int = 100) -> ProductListResponse:
        """Get all products with pagination"""
        products = self.repository.get_all(skip=skip, limit=limit)
        total = self.repository.count()

        return ProductListResponse(
            products=[ProductResponse.model_validate(p) for p in products],
            total=total
        )

    def get_product_by_id(self, product_id: int) -> Optional[ProductResponse]:
        """Get product by ID"""
        product = self.repository.get_by_id(product_id)
        if not product:
            return None
        return ProductResponse.model_validate(product)

    def create_product(self, product_data: ProductCreate) -> ProductResponse:
        """Create new product"""
        product = self.repository.create(product_data.model_dump())
        return ProductResponse.model_validate(product)

    def update_stock(self, product_id: int, quantity_change: int) -> Optional[ProductResponse]:
        """
        Update product stock

        Raises:
            StockAdjustmentError: If resulting stock would be negative
        """
        product = self.repository.adjust_stock(product_id, quantity_change)
        if not product:
            return None
        return ProductResponse.model_validate(product)
