"""Helpers for building, serializing and decoding x402 payment requests"""

import base64
import binascii
import json
import secrets
import time
from typing import Optional

from pydantic import ValidationError

from .models import PaymentRequestData, PaymentRequestPayload

DEFAULT_PAYMENT_TTL_MS = 5 * 60 * 1000


class PaymentRequestError(ValueError):
    """Payment header or body cannot be decoded"""
    pass


def random_nonce(num_bytes: int = 12) -> str:
    return secrets.token_hex(num_bytes)


def create_payment_payload(
    amount: str,
    recipient: str,
    resource_id: str,
    resource_url: str,
    ttl_ms: int = DEFAULT_PAYMENT_TTL_MS,
    now_ms: Optional[int] = None,
) -> PaymentRequestPayload:
    now = int((now_ms if now_ms is not None else time.time() * 1000) / 1000)
    return PaymentRequestPayload(
        amount=amount,
        recipient=recipient,
        resource_id=resource_id,
        resource_url=resource_url,
        nonce=random_nonce(12),
        timestamp=now,
        expiry=now + int(ttl_ms / 1000),
    )


def attach_signature(
    payload: PaymentRequestPayload,
    signature: str,
    client_public_key: str,
    signed_transaction: Optional[str] = None,
) -> PaymentRequestData:
    return PaymentRequestData(
        payload=payload,
        signature=signature,
        client_public_key=client_public_key,
        signed_transaction=signed_transaction or None,
    )


def serialize_payment_request(request: PaymentRequestData) -> str:
    return json.dumps(request.to_wire(), separators=(",", ":"))


def parse_payment_request(raw: str) -> PaymentRequestData:
    try:
        return PaymentRequestData.model_validate_json(raw)
    except ValidationError as e:
        raise PaymentRequestError(f"Invalid payment request: {e}")


def decode_payment_header(header: str) -> PaymentRequestData:
    """
    Decode an X-PAYMENT header value.

    Accepts raw JSON or base64 (standard or urlsafe, padding optional) JSON.
    """
    value = (header or "").strip()
    if not value:
        raise PaymentRequestError("Empty payment header")
    if value.startswith("{"):
        return parse_payment_request(value)

    padded = value + "=" * (-len(value) % 4)
    try:
        decoded = base64.b64decode(padded.replace("-", "+").replace("_", "/"), validate=True)
        text = decoded.decode("utf-8")
    except (binascii.Error, ValueError) as e:
        raise PaymentRequestError(f"Invalid payment header encoding: {e}")
    return parse_payment_request(text)
