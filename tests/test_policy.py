"""
Test the USD spend-cap policy gate and price feeds.
"""

import httpx
import pytest

from sentinel.x402.policy import HttpPriceFeed, PolicyGate, PriceFeedError, StaticPriceFeed

ONE_SOL = 1_000_000_000


class FailingFeed:
    def __init__(self, error: Exception = None):
        self.error = error or PriceFeedError("oracle down")

    async def get_price(self):
        raise self.error


@pytest.mark.asyncio
class TestPolicyGate:
    async def test_under_cap_allowed(self):
        decision = await PolicyGate(StaticPriceFeed(20.0), max_usd_per_call=25.0).enforce(ONE_SOL)
        assert decision.allow
        assert decision.computed_amount == 20.0
        assert decision.price_ref == 20.0

    async def test_over_cap_denied(self):
        decision = await PolicyGate(StaticPriceFeed(30.0), max_usd_per_call=25.0).enforce(ONE_SOL)
        assert not decision.allow
        assert decision.reason == "Price cap exceeded: $30.00 > $25.00"
        assert decision.computed_amount == 30.0

    async def test_exactly_at_cap_allowed(self):
        decision = await PolicyGate(StaticPriceFeed(25.0), max_usd_per_call=25.0).enforce(ONE_SOL)
        assert decision.allow

    async def test_string_amount(self):
        decision = await PolicyGate(StaticPriceFeed(100.0)).enforce("5000000")
        assert decision.allow
        assert decision.computed_amount == pytest.approx(0.5)

    async def test_unavailable_optional_feed(self):
        decision = await PolicyGate(StaticPriceFeed(None), required=False).enforce(ONE_SOL)
        assert decision.allow
        assert decision.reason == "Price feed unavailable (optional)"
        assert decision.to_headers() == {}

    async def test_unavailable_required_feed(self):
        decision = await PolicyGate(FailingFeed(), required=True).enforce(ONE_SOL)
        assert not decision.allow
        assert decision.reason == "Price feed unavailable and is required"

    async def test_feed_timeout_treated_as_unavailable(self):
        decision = await PolicyGate(FailingFeed(TimeoutError())).enforce(ONE_SOL)
        assert decision.allow
        assert decision.reason == "Price feed unavailable (optional)"
        assert decision.price_ref is None

    async def test_unexpected_feed_error_denied_when_required(self):
        gate = PolicyGate(FailingFeed(ValueError("bad payload")), required=True)
        decision = await gate.enforce(ONE_SOL)
        assert not decision.allow
        assert decision.reason == "Price feed unavailable and is required"

    async def test_headers(self):
        decision = await PolicyGate(StaticPriceFeed(20.0)).enforce(ONE_SOL)
        assert decision.to_headers() == {"x-policy-solusd": "20.0", "x-policy-usdamount": "20.0"}


@pytest.mark.asyncio
class TestHttpPriceFeed:
    def _feed(self, handler, field: str = "price") -> HttpPriceFeed:
        return HttpPriceFeed(
            "http://prices.test/sol-usd",
            field=field,
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )

    async def test_dotted_field(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"data": {"price": "142.5"}})

        assert await self._feed(handler, field="data.price").get_price() == 142.5

    async def test_missing_field(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"other": 1})

        assert await self._feed(handler).get_price() is None

    async def test_error_status_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, json={"error": "down"})

        with pytest.raises(PriceFeedError):
            await self._feed(handler).get_price()

    async def test_gate_treats_feed_error_as_unavailable(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        decision = await PolicyGate(self._feed(handler), required=True).enforce(ONE_SOL)
        assert not decision.allow
