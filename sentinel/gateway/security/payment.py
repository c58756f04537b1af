"""
x402 Payment Dependency

Requires an X-PAYMENT header, verifies it with the facilitator and settles
it before the handler runs. Failures answer 402 with the accepted payment.
"""

import logging
import time

from fastapi import Depends, Request
from fastapi.responses import JSONResponse

from ...x402.models import AcceptSpec, PaymentReceipt, PaymentRequestData, VerifyOptions, create_accept_spec
from ...x402.payment_request import PaymentRequestError, decode_payment_header
from ..core.services import GatewayServices, get_services

logger = logging.getLogger(__name__)

X402_VERSION = 1
PAYMENT_HEADER = "X-PAYMENT"


class PaymentRequired(Exception):
    """Answered as 402 with the payment the resource accepts"""

    def __init__(self, message: str, accept: AcceptSpec):
        super().__init__(message)
        self.message = message
        self.accept = accept


async def payment_required_handler(request: Request, exc: PaymentRequired) -> JSONResponse:
    return JSONResponse(
        status_code=402,
        content={
            "x402Version": X402_VERSION,
            "error": exc.message,
            "accepts": [exc.accept.to_wire()],
        },
    )


def _check_payload(payment: PaymentRequestData, accept: AcceptSpec) -> None:
    """Local sanity checks before the facilitator round trip"""
    payload = payment.payload
    try:
        amount = int(payload.amount)
    except ValueError:
        raise PaymentRequired("Invalid payment amount", accept)
    if amount < int(accept.max_amount_required):
        raise PaymentRequired("Insufficient payment amount", accept)
    if accept.pay_to and payload.recipient != accept.pay_to:
        raise PaymentRequired("Payment recipient mismatch", accept)
    if payload.expiry and payload.expiry < int(time.time()):
        raise PaymentRequired("Payment request expired", accept)


async def require_payment(
    request: Request,
    services: GatewayServices = Depends(get_services),
) -> PaymentReceipt:
    """Verify and settle the request's payment, returning its receipt"""
    settings = services.settings
    accept = create_accept_spec(
        network=settings.payment_network,
        asset=settings.payment_asset,
        pay_to=settings.merchant_address,
        max_amount_required=str(settings.payment_amount_lamports),
        resource=str(request.url),
    )

    header = request.headers.get(PAYMENT_HEADER)
    if not header:
        raise PaymentRequired("Payment required", accept)

    try:
        payment = decode_payment_header(header)
    except PaymentRequestError as e:
        logger.info(f"Rejected X-PAYMENT header: {e}")
        raise PaymentRequired("Invalid X-PAYMENT", accept)

    _check_payload(payment, accept)

    options = VerifyOptions(
        network=accept.network,
        asset=accept.asset,
        pay_to=accept.pay_to or None,
    )
    verification = await services.facilitator.verify(payment, options)
    if not verification.is_valid:
        raise PaymentRequired(verification.error or "Payment verification failed", accept)

    settlement = await services.facilitator.settle(payment, options)
    if not settlement.is_settled:
        raise PaymentRequired(settlement.error or "Settlement failed", accept)

    receipt = PaymentReceipt(
        nonce=payment.payload.nonce,
        amount=payment.payload.amount,
        recipient=payment.payload.recipient,
        resource_id=payment.payload.resource_id,
        transaction_signature=settlement.transaction_signature,
    )
    request.state.payment = receipt
    logger.info(f"Payment accepted: amount={receipt.amount}, tx={receipt.transaction_signature}")
    return receipt
