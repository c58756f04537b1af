"""
Price-cap policy gate.

Converts an amount in base units (lamports) to USD with a live price
reference and allows or denies it against a per-call cap.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Optional, Protocol, Union

import httpx

logger = logging.getLogger(__name__)

LAMPORTS_PER_SOL = 1_000_000_000
DEFAULT_MAX_USD_PER_CALL = 25.0


class PriceFeedError(Exception):
    """Price reference could not be fetched"""
    pass


class PriceFeed(Protocol):
    async def get_price(self) -> Optional[float]:
        """Current USD price per whole token, None when unavailable"""
        ...


@dataclass
class PolicyDecision:
    """Outcome of a policy check"""
    allow: bool
    reason: Optional[str] = None
    price_ref: Optional[float] = None
    computed_amount: Optional[float] = None

    def to_headers(self) -> dict[str, str]:
        """Observability headers for the response"""
        headers = {}
        if self.price_ref is not None:
            headers["x-policy-solusd"] = str(self.price_ref)
        if self.computed_amount is not None:
            headers["x-policy-usdamount"] = str(self.computed_amount)
        return headers


class StaticPriceFeed:
    """Fixed price reference; None simulates an unavailable feed"""

    def __init__(self, price: Optional[float]):
        self.price = price

    async def get_price(self) -> Optional[float]:
        return self.price


class HttpPriceFeed:
    """
    Reads a price from a JSON endpoint.

    Usage:
        feed = HttpPriceFeed("https://prices.example.com/sol-usd", field="data.price")
        price = await feed.get_price()
    """

    def __init__(
        self,
        url: str,
        field: str = "price",
        timeout: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.url = url
        self.field_path = [part for part in field.split(".") if part]
        self.timeout = timeout
        self._http_client = http_client or httpx.AsyncClient(timeout=timeout)

    async def close(self) -> None:
        """Close HTTP client"""
        await self._http_client.aclose()

    def _extract(self, data: Any) -> Optional[float]:
        ref = data
        for key in self.field_path:
            if not isinstance(ref, dict) or key not in ref:
                return None
            ref = ref[key]
        try:
            price = float(ref)
        except (TypeError, ValueError):
            return None
        if price != price or price in (float("inf"), float("-inf")):
            return None
        return price

    async def get_price(self) -> Optional[float]:
        """
        Raises:
            PriceFeedError: on timeout, transport error or non-2xx reply
        """
        try:
            response = await asyncio.wait_for(self._http_client.get(self.url), timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except asyncio.TimeoutError:
            raise PriceFeedError(f"Price feed timed out after {self.timeout}s")
        except (httpx.HTTPError, ValueError) as e:
            raise PriceFeedError(f"Price feed request failed: {e}")
        return self._extract(data)


class PolicyGate:
    """
    Per-call USD spend cap.

    Usage:
        gate = PolicyGate(StaticPriceFeed(20.0), max_usd_per_call=25.0)
        decision = await gate.enforce(1_000_000_000)
    """

    def __init__(
        self,
        price_feed: PriceFeed,
        max_usd_per_call: float = DEFAULT_MAX_USD_PER_CALL,
        required: bool = False,
        base_units_per_token: int = LAMPORTS_PER_SOL,
    ):
        """
        Args:
            price_feed: Source of the USD price per whole token
            max_usd_per_call: Cap on the USD value of a single call
            required: Deny when the price feed is unavailable
            base_units_per_token: Base units in one whole token
        """
        self.price_feed = price_feed
        self.max_usd_per_call = max_usd_per_call
        self.required = required
        self.base_units_per_token = base_units_per_token

    async def _fetch_price(self) -> Optional[float]:
        try:
            return await self.price_feed.get_price()
        except Exception as e:
            logger.warning(f"Price feed unavailable: {e!r}")
            return None

    async def enforce(self, amount_base_units: Union[int, str]) -> PolicyDecision:
        """Allow or deny a payment of amount_base_units"""
        price = await self._fetch_price()
        if price is None:
            if self.required:
                return PolicyDecision(allow=False, reason="Price feed unavailable and is required")
            return PolicyDecision(allow=True, reason="Price feed unavailable (optional)")

        tokens = int(amount_base_units) / self.base_units_per_token
        usd_amount = tokens * price
        if usd_amount > self.max_usd_per_call:
            logger.info(f"Policy denied: ${usd_amount:.2f} over cap ${self.max_usd_per_call:.2f}")
            return PolicyDecision(
                allow=False,
                reason=f"Price cap exceeded: ${usd_amount:.2f} > ${self.max_usd_per_call:.2f}",
                price_ref=price,
                computed_amount=usd_amount,
            )
        return PolicyDecision(allow=True, price_ref=price, computed_amount=usd_amount)
