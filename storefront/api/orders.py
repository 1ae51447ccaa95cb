"""
Order API endpoints
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from storefront.api.deps import get_current_user, get_order_service
from storefront.models.user import User
from storefront.services.order_service import OrderService
from storefront.schemas.order import (
    OrderCreate,
    OrderCreatedResponse,
    OrderResponse,
    OrderListResponse
)

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("", response_model=OrderCreatedResponse, status_code=status.HTTP_201_CREATED, summary="Create order")
def create_order(
    order_data: OrderCreate,
    user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service)
):
    """
    Create a new order from the cart

    Process:
    1. Validate every product exists and has enough stock
    2. Check submitted totals against catalogue prices
    3. Save order and decrement stock in one transaction
    4. Send confirmation email and publish OrderCreated (best effort)
    """
    return service.create_order(user, order_data)


@router.get("", response_model=OrderListResponse, summary="Get orders")
def get_orders(
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(10, ge=1, le=100, description="Orders per page"),
    status_filter: Optional[str] = Query(None, alias="status", description="Filter by status, or 'all'"),
    user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service)
):
    """
    Retrieve the caller's orders, newest first (admins see every order)
    """
    return service.list_orders(user, page=page, limit=limit, status=status_filter)


@router.get("/{order_id}", response_model=OrderResponse, summary="Get order by ID")
def get_order(
    order_id: int,
    user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service)
):
    """
    Retrieve a specific order by ID

    - **order_id**: Order ID
    """
    return service.get_order(user, order_id)
