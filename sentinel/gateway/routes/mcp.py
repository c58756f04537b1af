"""MCP proxy routes: free passthrough and paid, signed execution"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, HTTPException
from fastapi.responses import JSONResponse

from ...mcp.client import MCPClientError
from ...mcp.wrappers import JOB_TOOLS, ensure_commitments, tool_name
from ...tap.models import VerificationResult
from ...x402.models import PaymentReceipt
from ...x402.policy import PolicyDecision
from ...x402.receipt import compute_commitment_from_receipt
from ..core.services import GatewayServices, get_services
from ..models import error_detail
from ..security.payment import require_payment
from ..security.policy import enforce_policy
from ..security.tap_middleware import verify_tap

logger = logging.getLogger(__name__)

router = APIRouter(tags=["MCP"])


async def _forward(services: GatewayServices, body: Any) -> tuple[int, Any]:
    try:
        return await services.mcp_client.forward(body)
    except MCPClientError as e:
        logger.error(f"MCP proxy error: {e}")
        raise HTTPException(status_code=502, detail=error_detail("MCP_PROXY_ERROR", str(e)))


@router.post("/mcp")
async def mcp_passthrough(
    body: Optional[dict[str, Any]] = Body(None),
    services: GatewayServices = Depends(get_services),
):
    """Free passthrough for discovery and development"""
    status_code, data = await _forward(services, body or {})
    return JSONResponse(status_code=status_code, content=data)


@router.post("/mcp/execute")
async def mcp_execute(
    body: Optional[dict[str, Any]] = Body(None),
    tap: VerificationResult = Depends(verify_tap),
    decision: PolicyDecision = Depends(enforce_policy),
    payment: PaymentReceipt = Depends(require_payment),
    services: GatewayServices = Depends(get_services),
):
    """
    Paid MCP call.

    Runs TAP verification, the spend policy and x402 payment in that order,
    then binds both commitments into job tool calls before forwarding.
    """
    body = body or {}
    name = tool_name(body)
    if name in JOB_TOOLS:
        body = ensure_commitments(
            body,
            payment_commitment=compute_commitment_from_receipt(payment),
            tap_commitment=tap.commitment,
        )
        logger.info(f"Injected commitments into {name}")

    status_code, data = await _forward(services, body)

    settings = services.settings
    headers = {
        **decision.to_headers(),
        "x-payment-processed": "true",
        "x-payment-method": "solana-sol",
        "x-payment-network": settings.payment_network,
        "x-payment-transaction": payment.transaction_signature or "",
    }
    return JSONResponse(status_code=status_code, content=data, headers=headers)
