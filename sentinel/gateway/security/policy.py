"""Spend-cap policy dependency"""

import logging

from fastapi import Depends, HTTPException, Response

from ...x402.policy import PolicyDecision
from ..core.services import GatewayServices, get_services
from ..models import error_detail

logger = logging.getLogger(__name__)


async def enforce_policy(
    response: Response,
    services: GatewayServices = Depends(get_services),
) -> PolicyDecision:
    """Deny the call with 403 when its USD value is over the cap"""
    amount = services.settings.payment_amount_lamports
    decision = await services.policy_gate.enforce(amount)

    if not decision.allow:
        raise HTTPException(
            status_code=403,
            detail=error_detail("POLICY_DENIED", decision.reason or "Policy denied"),
            headers=decision.to_headers() or None,
        )

    for name, value in decision.to_headers().items():
        response.headers[name] = value
    return decision
