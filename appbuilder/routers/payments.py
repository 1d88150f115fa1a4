"""Payments router."""

import logging

from fastapi import APIRouter, Depends

from appbuilder.dependencies import get_base_url, get_payment_service
from appbuilder.errors import GatewayError, StorageError
from appbuilder.models.schemas import OrderResponse, PaymentVerifyRequest, PaymentVerifyResponse
from appbuilder.services.payment_service import PaymentService

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/order", response_model=OrderResponse)
async def create_order(service: PaymentService = Depends(get_payment_service)):
    """Create a payment order for the AAB build."""
    try:
        order = await service.create_order()
    except GatewayError as e:
        raise GatewayError("Payment order failed") from e
    return OrderResponse(order=order)


@router.post("/verify", response_model=PaymentVerifyResponse)
async def verify_payment(
    body: PaymentVerifyRequest,
    base_url: str = Depends(get_base_url),
    service: PaymentService = Depends(get_payment_service),
):
    """Verify a completed payment and deliver the AAB."""
    try:
        result = await service.verify_and_fulfill(
            package_name=body.package_name.strip(),
            order_id=body.razorpay_order_id,
            payment_id=body.razorpay_payment_id,
            signature=body.razorpay_signature,
            base_url=base_url,
        )
    except StorageError as e:
        raise StorageError("Verification failed") from e

    return PaymentVerifyResponse(
        message="Payment verified & AAB generated!",
        download_aab=result["download_aab"],
    )
