"""
Test the facilitator client: response normalization, error handling and
timeouts.
"""

import asyncio
import json

import httpx
import pytest

from sentinel.x402.facilitator import (
    FacilitatorClient,
    extract_transaction_signature,
    normalize_verify_response,
)
from sentinel.x402.models import SettlementStatus, VerifyOptions
from sentinel.x402.payment_request import attach_signature, create_payment_payload

OPTIONS = VerifyOptions(network="solana-devnet", asset="SOL", pay_to="Merchant111", decimals=9)


def _client(handler, timeout: float = 5.0) -> FacilitatorClient:
    return FacilitatorClient(
        "http://facilitator.test/",
        timeout=timeout,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


def _payment():
    payload = create_payment_payload("5000000", "Merchant111", "job-1", "https://api.example.com/mcp/execute")
    return attach_signature(payload, signature="sig", client_public_key="Client111")


class TestNormalization:
    @pytest.mark.parametrize("body", [{"valid": True}, {"isValid": True}, {"success": True}])
    def test_accepts_any_flag(self, body):
        assert normalize_verify_response(body).is_valid

    def test_rejection_carries_error(self):
        verdict = normalize_verify_response({"isValid": False, "error": "bad sig"})
        assert not verdict.is_valid
        assert verdict.error == "bad sig"

    @pytest.mark.parametrize(
        "body",
        [
            {"transactionSignature": "tx1"},
            {"tx": "tx1"},
            {"signature": "tx1"},
            {"result": {"tx": "tx1"}},
            {"data": {"transactionSignature": "tx1"}},
            {"data": {"tx": "tx1"}},
        ],
    )
    def test_transaction_signature_paths(self, body):
        assert extract_transaction_signature(body) == "tx1"

    def test_first_path_wins(self):
        assert extract_transaction_signature({"tx": "second", "transactionSignature": "first"}) == "first"


@pytest.mark.asyncio
class TestFacilitatorClient:
    """Test calls against a stub facilitator."""

    async def test_verify_valid(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"valid": True})

        verdict = await _client(handler).verify(_payment(), OPTIONS)

        assert verdict.is_valid is True
        assert seen["path"] == "/verify"
        body = seen["body"]
        assert body["network"] == "solana-devnet"
        assert body["asset"] == "SOL"
        assert body["payTo"] == "Merchant111"
        assert body["decimals"] == 9
        assert json.loads(body["paymentRequest"])["payload"]["resourceId"] == "job-1"

    async def test_verify_error_status(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"error": "Payment expired"})

        verdict = await _client(handler).verify(_payment(), OPTIONS)
        assert verdict.is_valid is False
        assert verdict.error == "Payment expired"

    async def test_verify_status_without_message(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, text="unavailable")

        verdict = await _client(handler).verify(_payment(), OPTIONS)
        assert verdict.error == "HTTP 503"

    async def test_verify_transport_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        verdict = await _client(handler).verify(_payment(), OPTIONS)
        assert verdict.is_valid is False
        assert "connection refused" in verdict.error

    async def test_verify_timeout(self):
        async def handler(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(1.0)
            return httpx.Response(200, json={"valid": True})

        verdict = await _client(handler, timeout=0.05).verify(_payment(), OPTIONS)
        assert verdict.is_valid is False
        assert "timed out" in verdict.error

    async def test_settle(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"data": {"tx": "5xSettled"}})

        result = await _client(handler).settle(_payment(), OPTIONS)
        assert result.is_settled
        assert result.transaction_signature == "5xSettled"

    async def test_settle_without_signature_fails(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"ok": True})

        result = await _client(handler).settle(_payment(), OPTIONS)
        assert result.status == SettlementStatus.ERROR
        assert result.error == "Settlement failed"

    async def test_raw_string_assertion_passed_through(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"isValid": True})

        await _client(handler).verify('{"already":"serialized"}', OPTIONS)
        assert seen["body"]["paymentRequest"] == '{"already":"serialized"}'

    async def test_health(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"data": {"facilitator": "local", "timestamp": "t0"}})

        health = await _client(handler).health()
        assert health.healthy
        assert health.facilitator == "local"
        assert health.timestamp == "t0"

    async def test_health_falls_back_to_supported(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/supported":
                return httpx.Response(200, json={"kinds": []})
            return httpx.Response(404, json={"error": "not found"})

        health = await _client(handler).health()
        assert health.healthy
        assert health.facilitator == "hosted-facilitator"

    async def test_health_down(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, json={"error": "boom"})

        health = await _client(handler).health()
        assert not health.healthy
        assert health.error == "boom"
