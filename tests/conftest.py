"""Shared fixtures for the TAP, x402 and gateway tests"""

import base64
import json
from typing import Callable

import httpx
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa

from sentinel.gateway.core.config import Settings
from sentinel.mcp.client import MCPClient
from sentinel.tap.keys import StaticKeyResolver, generate_ed25519_keypair, public_key_pem
from sentinel.tap.models import KeyInfo
from sentinel.tap.nonce import NonceCache
from sentinel.x402.facilitator import FacilitatorClient
from sentinel.x402.payment_request import attach_signature, create_payment_payload, serialize_payment_request

MERCHANT = "Merchant1111111111111111111111111111111111"
ONE_SOL = 1_000_000_000


@pytest.fixture(scope="session")
def ed25519_keys() -> tuple[str, str]:
    """(base64 seed, base64 public key)"""
    return generate_ed25519_keypair()


@pytest.fixture(scope="session")
def rsa_private_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture
def key_resolver(ed25519_keys, rsa_private_key) -> StaticKeyResolver:
    """Registry with k1 (ed25519) and r1 (rsa-pss-sha256)"""
    return StaticKeyResolver({
        "k1": KeyInfo(key_id="k1", public_key=ed25519_keys[1], algorithm="ed25519"),
        "r1": KeyInfo(
            key_id="r1",
            public_key=public_key_pem(rsa_private_key),
            algorithm="rsa-pss-sha256",
        ),
    })


@pytest.fixture
def nonce_cache() -> NonceCache:
    return NonceCache()


@pytest.fixture
def test_env(monkeypatch) -> None:
    """Keep ambient .env / environment values out of Settings"""
    for name in (
        "TAP_REQUIRED",
        "TAP_REGISTRY_URL",
        "TAP_KEYS_JSON",
        "TAP_KEY_ID",
        "TAP_ALG",
        "ED25519_PRIVATE_KEY",
        "ED25519_PUBLIC_KEY",
        "RSA_PRIVATE_KEY",
        "RSA_PUBLIC_KEY",
        "PRICE_FEED_URL",
        "SOL_USD_PRICE",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("FACILITATOR_URL", "http://facilitator.test")
    monkeypatch.setenv("MCP_URL", "http://upstream.test/mcp")


@pytest.fixture
def gateway_settings(test_env, ed25519_keys) -> Settings:
    seed_b64, public_b64 = ed25519_keys
    return Settings(
        _env_file=None,
        tap_key_id="k1",
        tap_alg="ed25519",
        ed25519_private_key=seed_b64,
        ed25519_public_key=public_b64,
        merchant_address=MERCHANT,
        payment_amount_lamports=ONE_SOL,
        payment_network="devnet",
        sol_usd_price=20.0,
        max_usd_per_call=25.0,
    )


def mock_client(handler: Callable) -> httpx.AsyncClient:
    """AsyncClient whose requests are answered by handler"""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def facilitator_handler(request: httpx.Request) -> httpx.Response:
    """Facilitator that accepts and settles every payment"""
    if request.url.path == "/verify":
        return httpx.Response(200, json={"isValid": True})
    if request.url.path == "/settle":
        return httpx.Response(200, json={"transactionSignature": "5xTestTx"})
    if request.url.path == "/health":
        return httpx.Response(
            200, json={"data": {"facilitator": "test-facilitator", "timestamp": "2026-01-01T00:00:00Z"}}
        )
    return httpx.Response(404, json={"error": "not found"})


@pytest.fixture
def facilitator() -> FacilitatorClient:
    return FacilitatorClient("http://facilitator.test", timeout=5.0, http_client=mock_client(facilitator_handler))


@pytest.fixture
def upstream_calls() -> list:
    """JSON-RPC bodies received by the stub MCP server"""
    return []


@pytest.fixture
def mcp_client(upstream_calls) -> MCPClient:
    """Stub MCP server echoing the body it received"""

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        upstream_calls.append(body)
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body.get("id"), "result": {"echo": body}})

    return MCPClient("http://upstream.test/mcp", http_client=mock_client(handler))


@pytest.fixture
def make_payment_header() -> Callable[..., str]:
    """Factory for base64 X-PAYMENT headers carrying a signed payment request"""

    def factory(amount: int = ONE_SOL, recipient: str = MERCHANT) -> str:
        payload = create_payment_payload(
            amount=str(amount),
            recipient=recipient,
            resource_id="job-1",
            resource_url="https://api.example.com/mcp/execute",
        )
        request = attach_signature(payload, signature="client-signature", client_public_key="ClientPubkey111")
        return base64.b64encode(serialize_payment_request(request).encode()).decode()

    return factory
