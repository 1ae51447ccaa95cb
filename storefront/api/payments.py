"""
Payment API endpoints
"""
from fastapi import APIRouter, Depends

from storefront.api.deps import get_current_user, get_payment_service
from storefront.models.user import User
from storefront.services.payment_service import PaymentService
from storefront.schemas.payment import (
    PaymentIntentCreate,
    PaymentIntentResponse,
    PaymentVerification,
    PaymentVerificationResponse
)

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("", response_model=PaymentIntentResponse, summary="Create payment intent")
async def create_payment_intent(
    payload: PaymentIntentCreate,
    user: User = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service)
):
    """
    Create a Razorpay order for one of the caller's orders

    Returns what the client checkout widget needs: gateway order id,
    amount in minor units, currency and the public key id.
    """
    return await service.create_payment_intent(user, payload.order_id)


@router.post("/verify", response_model=PaymentVerificationResponse, summary="Verify payment")
async def verify_payment(
    payload: PaymentVerification,
    user: User = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service)
):
    """
    Verify the checkout signature and settle the order

    On success the order moves to PROCESSING and a confirmation email is sent.
    """
    return await service.verify_payment(user, payload)
