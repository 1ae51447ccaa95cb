"""
User Repository - Data Access Layer
"""
from typing import Dict, Iterable, Optional
from sqlalchemy.orm import Session

from storefront.models.user import User


class UserRepository:
    """Repository for User lookups"""

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, user_id: int) -> Optional[User]:
        """Get user by ID"""
        return self.db.query(User).filter(User.id == user_id).first()


    def get_many(self, user_ids: Iterable[int]) -> Dict[int, User]:
        """Load several users at once, keyed by id"""
        ids = set(user_ids)
        if not ids:
            return {}
        return {u.id: u for u in self.db.query(User).filter(User.id.in_(ids)).all()}
