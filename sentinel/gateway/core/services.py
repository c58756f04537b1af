"""
Gateway service wiring.

Builds the long-lived collaborators (verifier, nonce cache, facilitator,
policy gate, upstream client) once per app and hands them to routes.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from ...mcp.client import MCPClient
from ...tap.keys import ChainedKeyResolver, KeyResolver, RegistryKeyResolver, StaticKeyResolver
from ...tap.nonce import NonceCache
from ...tap.verifier import TAPVerifier
from ...x402.facilitator import FacilitatorClient
from ...x402.policy import HttpPriceFeed, PolicyGate, PriceFeed, StaticPriceFeed
from .config import Settings

logger = logging.getLogger(__name__)


@dataclass
class GatewayServices:
    settings: Settings
    local_keys: StaticKeyResolver
    nonce_cache: NonceCache
    verifier: TAPVerifier
    facilitator: FacilitatorClient
    policy_gate: PolicyGate
    mcp_client: MCPClient
    registry: Optional[RegistryKeyResolver] = None

    async def aclose(self) -> None:
        """Close every HTTP client the gateway holds"""
        for client in (self.facilitator, self.mcp_client, self.registry, self.policy_gate.price_feed):
            close = getattr(client, "close", None)
            if close is not None:
                await close()


def build_local_keys(settings: Settings) -> StaticKeyResolver:
    """TAP_KEYS_JSON entries plus the in-process agent key"""
    keys = StaticKeyResolver.from_json(settings.tap_keys_json or "")
    agent_key = settings.local_agent_key()
    if agent_key is not None:
        keys.register(agent_key)
        logger.info(f"Registered local TAP agent key: {agent_key.key_id}")
    return keys


def build_price_feed(settings: Settings) -> PriceFeed:
    if settings.price_feed_url:
        return HttpPriceFeed(settings.price_feed_url, field=settings.price_feed_field)
    return StaticPriceFeed(settings.sol_usd_price)


def build_services(
    settings: Settings,
    facilitator: Optional[FacilitatorClient] = None,
    price_feed: Optional[PriceFeed] = None,
    mcp_client: Optional[MCPClient] = None,
    key_resolver: Optional[KeyResolver] = None,
) -> GatewayServices:
    """
    Create the gateway collaborators from settings.

    Any collaborator may be supplied instead (tests inject stubs).
    """
    local_keys = build_local_keys(settings)

    registry = None
    if key_resolver is None:
        if settings.tap_registry_url:
            registry = RegistryKeyResolver(settings.tap_registry_url)
            key_resolver = ChainedKeyResolver(local_keys, registry)
        else:
            key_resolver = local_keys
    if not len(local_keys) and registry is None:
        logger.warning("No TAP keys configured - signed requests will fail key lookup")

    nonce_cache = NonceCache(ttl_ms=settings.tap_nonce_ttl_ms)
    verifier = TAPVerifier(
        resolve_key=key_resolver,
        nonce_cache=nonce_cache,
        required=settings.tap_required,
        max_clock_skew_seconds=settings.tap_max_skew_sec,
    )

    return GatewayServices(
        settings=settings,
        local_keys=local_keys,
        nonce_cache=nonce_cache,
        verifier=verifier,
        facilitator=facilitator or FacilitatorClient(
            settings.facilitator_url, timeout=settings.facilitator_timeout
        ),
        policy_gate=PolicyGate(
            price_feed if price_feed is not None else build_price_feed(settings),
            max_usd_per_call=settings.max_usd_per_call,
            required=settings.price_feed_required,
        ),
        mcp_client=mcp_client or MCPClient(settings.mcp_url),
        registry=registry,
    )


def get_services(request: Request) -> GatewayServices:
    """FastAPI dependency returning the app's services"""
    return request.app.state.services
