"""
Order Repository - Data Access Layer
"""
from typing import Iterable, List, Optional
from sqlalchemy.orm import Session
from sqlalchemy import desc

from storefront.models.order import Order, Counter

ORDER_NUMBER_COUNTER = "order_number"


class OrderRepository:
    """Repository for Order CRUD operations"""

    def __init__(self, db: Session):
        self.db = db

    def _filtered(self, user_id: Optional[int] = None, status: Optional[str] = None):
        query = self.db.query(Order)
        if user_id is not None:
            query = query.filter(Order.user_id == user_id)
        if status:
            query = query.filter(Order.status == status)
        return query

    def get_all(
        self,
        skip: int = 0,
        limit: int = 100,
        user_id: Optional[int] = None,
        status: Optional[str] = None
    ) -> List[Order]:
        """Get orders newest first, optionally scoped to one user or status"""
        return self._filtered(user_id, status).order_by(
            desc(Order.created_at), desc(Order.id)
        ).offset(skip).limit(limit).all()

    def count(self, user_id: Optional[int] = None, status: Optional[str] = None) -> int:
        """Get total count of orders"""
        return self._filtered(user_id, status).count()

    def get_by_id(self, order_id: int) -> Optional[Order]:
        """Get order by ID"""
        return self.db.query(Order).filter(Order.id == order_id).first()

    def get_for_user(self, order_id: int, user_id: int) -> Optional[Order]:
        """Get order by ID only if it belongs to the user"""
        return self.db.query(Order).filter(
            Order.id == order_id,
            Order.user_id == user_id
        ).first()

    def add(self, order_data: dict) -> Order:
        """Stage a new order in the current transaction (no commit)"""
        order = Order(**order_data)
        self.db.add(order)
        self.db.flush()
        return order

    def next_order_number(self) -> int:
        """
        Increment and return the order-number counter

        The increment is a single UPDATE, so concurrent transactions
        serialize on the counter row. The row is seeded from the current
        order count the first time it is needed. Does not commit.
        """
        updated = self.db.query(Counter).filter(
            Counter.name == ORDER_NUMBER_COUNTER
        ).update(
            {Counter.value: Counter.value + 1},
            synchronize_session=False
        )
        if updated == 0:
            seed = self.db.query(Order).count() + 1
            self.db.add(Counter(name=ORDER_NUMBER_COUNTER, value=seed))
            self.db.flush()
            return seed

        return self.db.query(Counter.value).filter(
            Counter.name == ORDER_NUMBER_COUNTER
        ).scalar()

    def ensure_counters(self) -> None:
        """Seed counters at startup so first-order creation never races an INSERT"""
        exists = self.db.query(Counter).filter(Counter.name == ORDER_NUMBER_COUNTER).first()
        if not exists:
            self.db.add(Counter(name=ORDER_NUMBER_COUNTER, value=self.db.query(Order).count()))
            self.db.commit()

    def update_fields(self, order_id: int, values: dict) -> Optional[Order]:
        """Unconditional field update"""
        order = self.get_by_id(order_id)
        if not order:
            return None

        for field, value in values.items():
            setattr(order, field, value)

        self.db.commit()
        self.db.refresh(order)
        return order

    def compare_and_set(
        self,
        order_id: int,
        expected_statuses: Iterable[str],
        values: dict,
        conditions: Iterable = (),
    ) -> bool:
        """
        Apply `values` only if the order is still in one of `expected_statuses`

        Args:
            conditions: Extra column criteria the row must also match,
                e.g. ``Order.gateway_order_id.is_(None)``

        Returns:
            True if the row was updated; the change is committed
        """
        expected = [getattr(s, "value", s) for s in expected_statuses]
        updated = self.db.query(Order).filter(
            Order.id == order_id,
            Order.status.in_(expected),
            *conditions
        ).update(
            {getattr(Order, field): value for field, value in values.items()},
            synchronize_session="fetch"
        )
        if updated != 1:
            self.db.rollback()
            return False

        self.db.commit()
        return True

    def refresh(self, order: Order) -> Order:
        self.db.refresh(order)
        return order
