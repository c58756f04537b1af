# x402 payment verification, settlement, commitments and spend policy

from .facilitator import FacilitatorClient, FacilitatorError
from .models import (
    AcceptSpec,
    HealthCheckResult,
    PaymentReceipt,
    PaymentRequestData,
    PaymentRequestPayload,
    PaymentVerification,
    SettlementResult,
    SettlementStatus,
    VerifyOptions,
    create_accept_spec,
    to_network_tag,
)
from .payment_request import (
    PaymentRequestError,
    attach_signature,
    create_payment_payload,
    decode_payment_header,
    parse_payment_request,
    serialize_payment_request,
)
from .policy import HttpPriceFeed, PolicyDecision, PolicyGate, PriceFeedError, StaticPriceFeed
from .receipt import canonical_json, compute_commitment_from_receipt, hash_receipt

__all__ = [
    "FacilitatorClient",
    "FacilitatorError",
    "AcceptSpec",
    "HealthCheckResult",
    "PaymentReceipt",
    "PaymentRequestData",
    "PaymentRequestPayload",
    "PaymentVerification",
    "SettlementResult",
    "SettlementStatus",
    "VerifyOptions",
    "create_accept_spec",
    "to_network_tag",
    "PaymentRequestError",
    "attach_signature",
    "create_payment_payload",
    "decode_payment_header",
    "parse_payment_request",
    "serialize_payment_request",
    "HttpPriceFeed",
    "PolicyDecision",
    "PolicyGate",
    "PriceFeedError",
    "StaticPriceFeed",
    "canonical_json",
    "compute_commitment_from_receipt",
    "hash_receipt",
]
