"""
Admin API endpoints (admin role required on every route)
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from storefront.api.deps import (
    get_order_service,
    get_payment_service,
    get_product_service,
    get_refund_service,
    require_admin,
)
from storefront.models.user import User
from storefront.services.order_service import OrderService
from storefront.services.payment_service import PaymentService
from storefront.services.product_service import ProductService
from storefront.services.refund_service import RefundService
from storefront.schemas.order import (
    OrderAdminUpdate,
    OrderListResponse,
    OrderResponse,
    RefundResponse,
    TrackingResponse,
    TrackingUpdate,
)
from storefront.schemas.payment import PaymentTransactionListResponse
from storefront.schemas.product import ProductCreate, ProductResponse, StockUpdate

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


@router.get("/orders", response_model=OrderListResponse, summary="List all orders")
def list_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status_filter: Optional[str] = Query(None, alias="status"),
    admin: User = Depends(require_admin),
    service: OrderService = Depends(get_order_service)
):
    return service.list_orders(admin, page=page, limit=limit, status=status_filter)


@router.patch("/orders/{order_id}", response_model=OrderResponse, summary="Update order")
def update_order(
    order_id: int,
    update: OrderAdminUpdate,
    service: OrderService = Depends(get_order_service)
):
    """
    Edit status, payment status or tracking number

    Status changes must follow the order state machine; illegal moves
    return 409.
    """
    return service.update_order(order_id, update)


@router.post("/orders/{order_id}/tracking", response_model=TrackingResponse, summary="Assign tracking number")
def assign_tracking(
    order_id: int,
    payload: TrackingUpdate,
    service: OrderService = Depends(get_order_service)
):
    """
    Attach a tracking number, mark the order SHIPPED and notify the customer
    """
    return service.assign_tracking(order_id, payload.tracking_number)


@router.post("/orders/{order_id}/refund", response_model=RefundResponse, summary="Refund order")
async def refund_order(
    order_id: int,
    service: RefundService = Depends(get_refund_service)
):
    """
    Refund the full order total

    Calls the payment gateway when the order has a captured payment,
    otherwise refunds administratively.
    """
    return await service.refund_order(order_id)


@router.get("/payments", response_model=PaymentTransactionListResponse, summary="List payment transactions")
def list_payments(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=1000),
    service: PaymentService = Depends(get_payment_service)
):
    """
    One row per order: customer, amount, gateway, payment status,
    transaction id and refund details
    """
    return service.list_transactions(page=page, limit=limit)


@router.post("/products", response_model=ProductResponse, status_code=status.HTTP_201_CREATED, summary="Create product")
def create_product(
    product_data: ProductCreate,
    service: ProductService = Depends(get_product_service)
):
    return service.create_product(product_data)


@router.patch("/products/{product_id}/stock", response_model=ProductResponse, summary="Update product stock")
def update_stock(
    product_id: int,
    stock_data: StockUpdate,
    service: ProductService = Depends(get_product_service)
):
    """
    Update product stock by adding or subtracting quantity

    Example: {"quantity": -5} will subtract 5 from current stock
    """
    product = service.update_stock(product_id, stock_data.quantity)
    if not product:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Product with id={product_id} not found"
        )
    return product
