"""Health and public routes"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from ..core.services import GatewayServices, get_services

router = APIRouter(tags=["Health"])


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/health")
async def health_check(services: GatewayServices = Depends(get_services)):
    """Health check endpoint, including the facilitator's health"""
    facilitator = await services.facilitator.health()
    return {
        "status": "healthy",
        "service": "sentinel-gateway",
        "timestamp": _now_iso(),
        "facilitator": facilitator.to_dict(),
    }


@router.get("/public")
async def public_endpoint():
    """Public endpoint (no payment required)"""
    return {
        "message": "This is a public endpoint - no payment required",
        "timestamp": _now_iso(),
    }
