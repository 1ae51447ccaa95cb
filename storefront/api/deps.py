"""
Shared FastAPI dependencies: identity, authorization and services
"""
from typing import Optional

from fastapi import BackgroundTasks, Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from storefront.database import get_db
from storefront.models.user import User
from storefront.repositories.user_repository import UserRepository
from storefront.services.notification_service import NotificationService
from storefront.services.order_service import OrderService
from storefront.services.payment_gateway import PaymentGateway
from storefront.services.payment_service import PaymentService
from storefront.services.product_service import ProductService
from storefront.services.refund_service import RefundService


def get_current_user(
    x_user_id: Optional[str] = Header(None, description="Authenticated user id set by the auth gateway"),
    db: Session = Depends(get_db)
) -> User:
    """Resolve the caller; 401 if there is no valid session"""
    if not x_user_id or not x_user_id.isdigit():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    user = UserRepository(db).get_by_id(int(x_user_id))
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return user


def require_admin(user: User = Depends(get_current_user)) -> User:
    """Caller must hold the admin role"""
    if not user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    return user


def get_gateway(request: Request) -> PaymentGateway:
    return request.app.state.payment_gateway


def get_notifications(request: Request, background_tasks: BackgroundTasks) -> NotificationService:
    state = request.app.state
    return NotificationService(
        sender=state.email_sender,
        publisher=state.event_publisher,
        max_retries=state.settings.NOTIFY_MAX_RETRIES,
        background_tasks=background_tasks,
    )


def get_order_service(
    db: Session = Depends(get_db),
    notifications: NotificationService = Depends(get_notifications)
) -> OrderService:
    """Dependency to get OrderService instance"""
    return OrderService(db, notifications)


def get_payment_service(
    request: Request,
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_gateway),
    notifications: NotificationService = Depends(get_notifications)
) -> PaymentService:
    """Dependency to get PaymentService instance"""
    return PaymentService(db, gateway, notifications, currency=request.app.state.settings.PAYMENT_CURRENCY)


def get_refund_service(
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_gateway),
    notifications: NotificationService = Depends(get_notifications)
) -> RefundService:
    """Dependency to get RefundService instance"""
    return RefundService(db, gateway, notifications)


def get_product_service(db: Session = Depends(get_db)) -> ProductService:
    """Dependency to get ProductService instance"""
    return ProductService(db)
