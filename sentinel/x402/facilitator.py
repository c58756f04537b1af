"""
Facilitator Client

HTTP client for the payment facilitator: verify, settle and health.
Every outcome is returned as a value; transport errors, timeouts and
non-2xx replies never propagate to the caller.
"""

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional, Union

import httpx

from .models import (
    HealthCheckResult,
    PaymentRequestData,
    PaymentVerification,
    SettlementResult,
    SettlementStatus,
    VerifyOptions,
)
from .payment_request import serialize_payment_request

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0

PaymentAssertion = Union[PaymentRequestData, dict, str]

_TX_SIGNATURE_PATHS = (
    ("transactionSignature",),
    ("tx",),
    ("signature",),
    ("result", "tx"),
    ("data", "transactionSignature"),
    ("data", "tx"),
)


class FacilitatorError(Exception):
    """Facilitator call failed (transport, timeout or error reply)"""
    pass


def _dig(data: Any, path: tuple[str, ...]) -> Any:
    ref = data
    for key in path:
        if not isinstance(ref, dict) or key not in ref:
            return None
        ref = ref[key]
    return ref


def normalize_verify_response(data: Any) -> PaymentVerification:
    """Accept isValid, valid or success as the acceptance flag"""
    if not isinstance(data, dict):
        return PaymentVerification(is_valid=False, error="Invalid payment")
    if any(data.get(flag) is True for flag in ("isValid", "valid", "success")):
        return PaymentVerification(is_valid=True)
    return PaymentVerification(
        is_valid=False,
        error=data.get("error") or data.get("invalidReason") or "Invalid payment",
    )


def extract_transaction_signature(data: Any) -> Optional[str]:
    for path in _TX_SIGNATURE_PATHS:
        value = _dig(data, path)
        if isinstance(value, str) and value:
            return value
    return None


def normalize_settle_response(data: Any) -> SettlementResult:
    """A settlement without a transaction signature is a failure"""
    tx_signature = extract_transaction_signature(data)
    if tx_signature:
        return SettlementResult(status=SettlementStatus.SETTLED, transaction_signature=tx_signature)
    error = data.get("error") if isinstance(data, dict) else None
    return SettlementResult(status=SettlementStatus.ERROR, error=error or "Settlement failed")


def _serialize_assertion(payment: PaymentAssertion) -> str:
    if isinstance(payment, str):
        return payment
    if isinstance(payment, PaymentRequestData):
        return serialize_payment_request(payment)
    return json.dumps(payment, separators=(",", ":"))


class FacilitatorClient:
    """
    Client for an x402 payment facilitator.

    Usage:
        client = FacilitatorClient("https://facilitator.example.com", timeout=10.0)
        verdict = await client.verify(payment, VerifyOptions(network="solana-devnet", asset="SOL"))
        if verdict.is_valid:
            settlement = await client.settle(payment, options)
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Args:
            base_url: Facilitator base URL
            timeout: Deadline in seconds for each call, connection included
            http_client: Preconfigured client (tests inject a mock transport)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._http_client = http_client or httpx.AsyncClient(timeout=timeout)

    async def close(self) -> None:
        """Close HTTP client"""
        await self._http_client.aclose()

    async def _request_json(self, method: str, path: str, body: Optional[dict] = None) -> Any:
        """
        Make one bounded request.

        The deadline cancels the in-flight request, which closes its
        connection.

        Raises:
            FacilitatorError: on timeout, transport error or non-2xx reply
        """
        url = f"{self.base_url}{path}"
        try:
            response = await asyncio.wait_for(
                self._http_client.request(method, url, json=body),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            raise FacilitatorError(f"Facilitator request timed out after {self.timeout}s")
        except httpx.HTTPError as e:
            raise FacilitatorError(str(e) or type(e).__name__)

        try:
            data = response.json()
        except ValueError:
            data = {}

        if not response.is_success:
            message = None
            if isinstance(data, dict):
                message = data.get("error") or data.get("message")
            raise FacilitatorError(str(message) if message else f"HTTP {response.status_code}")
        return data

    def _build_request(self, payment: PaymentAssertion, options: VerifyOptions) -> dict:
        return {"paymentRequest": _serialize_assertion(payment), **options.to_wire()}

    async def verify(self, payment: PaymentAssertion, options: VerifyOptions) -> PaymentVerification:
        """Ask the facilitator whether a payment assertion is valid"""
        try:
            data = await self._request_json("POST", "/verify", self._build_request(payment, options))
        except FacilitatorError as e:
            logger.warning(f"Facilitator verify failed: {e}")
            return PaymentVerification(is_valid=False, error=str(e) or "Verify failed")
        return normalize_verify_response(data)

    async def settle(self, payment: PaymentAssertion, options: VerifyOptions) -> SettlementResult:
        """Ask the facilitator to settle a payment assertion"""
        try:
            data = await self._request_json("POST", "/settle", self._build_request(payment, options))
        except FacilitatorError as e:
            logger.warning(f"Facilitator settle failed: {e}")
            return SettlementResult(status=SettlementStatus.ERROR, error=str(e) or "Settlement failed")

        result = normalize_settle_response(data)
        if result.is_settled:
            logger.info(f"Payment settled: tx={result.transaction_signature}")
        return result

    async def health(self) -> HealthCheckResult:
        """Probe /health, falling back to /supported as a weaker liveness signal"""
        try:
            data = await self._request_json("GET", "/health")
            details = data.get("data") if isinstance(data, dict) else None
            details = details if isinstance(details, dict) else {}
            return HealthCheckResult(
                healthy=True,
                facilitator=details.get("facilitator"),
                timestamp=details.get("timestamp"),
            )
        except FacilitatorError as e:
            logger.debug(f"Facilitator /health unavailable ({e}), trying /supported")

        try:
            await self._request_json("GET", "/supported")
        except FacilitatorError as e:
            return HealthCheckResult(healthy=False, error=str(e) or "Health check failed")
        return HealthCheckResult(
            healthy=True,
            facilitator="hosted-facilitator",
            timestamp=datetime.now(timezone.utc).isoformat(),
        )
