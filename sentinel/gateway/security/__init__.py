# Request guards for paid MCP calls

from .payment import PaymentRequired, payment_required_handler, require_payment
from .policy import enforce_policy
from .tap_middleware import TAPDependency, verify_tap

__all__ = [
    "PaymentRequired",
    "payment_required_handler",
    "require_payment",
    "enforce_policy",
    "TAPDependency",
    "verify_tap",
]
