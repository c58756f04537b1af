"""
TAP Signature Verification Dependency

Verifies TAP (Trusted Agent Protocol) signatures on incoming requests.
Unsigned requests pass unless TAP is required; signed requests must verify.
"""

import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request

from ...tap.models import VerificationResult
from ..core.services import GatewayServices, get_services
from ..models import error_detail

logger = logging.getLogger(__name__)


class TAPDependency:
    """
    FastAPI dependency for TAP verification.

    Stores the outcome on request.state (tap_verified, tap_keyid,
    tap_commitment) for downstream handlers.
    """

    def __init__(self, require_tap: Optional[bool] = None):
        """
        Args:
            require_tap: Reject unsigned requests; None defers to TAP_REQUIRED
        """
        self.require_tap = require_tap

    async def __call__(
        self,
        request: Request,
        services: GatewayServices = Depends(get_services),
    ) -> VerificationResult:
        result = await services.verifier.verify(
            headers=request.headers,
            url=str(request.url),
            required=self.require_tap,
        )

        if not result.is_valid:
            logger.warning(f"TAP verification failed: {result.reason}")
            raise HTTPException(
                status_code=401,
                detail=error_detail("TAP_VERIFICATION_FAILED", result.reason or "TAP verification failed"),
            )

        request.state.tap_verified = result.is_signed
        request.state.tap_keyid = result.keyid
        request.state.tap_commitment = result.commitment
        return result


# Dependency instances
verify_tap = TAPDependency()
