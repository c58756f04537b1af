"""x402 Payment Data Models"""

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


def to_network_tag(network: Optional[str]) -> str:
    """Normalize a cluster name to a network tag; unknown names map to devnet"""
    value = (network or "").lower()
    if value in ("mainnet-beta", "mainnet", "solana"):
        return "solana"
    return "solana-devnet"


class AcceptSpec(BaseModel):
    """What a resource accepts as payment"""
    model_config = ConfigDict(populate_by_name=True)

    scheme: Literal["exact"] = "exact"
    network: str
    asset: str
    pay_to: str = Field(alias="payTo")
    max_amount_required: str = Field(alias="maxAmountRequired")
    resource: str
    token_mint: Optional[str] = Field(None, alias="tokenMint")
    decimals: Optional[int] = Field(None, ge=0)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


def create_accept_spec(
    network: str,
    asset: str,
    pay_to: str,
    max_amount_required: str,
    resource: str,
    token_mint: Optional[str] = None,
    decimals: Optional[int] = None,
) -> AcceptSpec:
    return AcceptSpec(
        network=to_network_tag(network),
        asset=asset,
        pay_to=pay_to,
        max_amount_required=max_amount_required,
        resource=resource,
        token_mint=token_mint or None,
        decimals=decimals,
    )


class PaymentRequestPayload(BaseModel):
    """The part of a payment request the client signs"""
    model_config = ConfigDict(populate_by_name=True)

    amount: str
    recipient: str
    resource_id: str = Field(alias="resourceId")
    resource_url: str = Field(alias="resourceUrl")
    nonce: str
    timestamp: int
    expiry: int


class PaymentRequestData(BaseModel):
    """Client-supplied payment assertion"""
    model_config = ConfigDict(populate_by_name=True)

    payload: PaymentRequestPayload
    signature: str
    client_public_key: str = Field(alias="clientPublicKey")
    signed_transaction: Optional[str] = Field(None, alias="signedTransaction")

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


@dataclass
class VerifyOptions:
    """Network/asset context sent alongside a payment assertion"""
    network: str
    asset: str
    pay_to: Optional[str] = None
    token_mint: Optional[str] = None
    decimals: Optional[int] = None

    def to_wire(self) -> dict[str, Any]:
        body: dict[str, Any] = {"network": self.network, "asset": self.asset}
        if self.pay_to:
            body["payTo"] = self.pay_to
        if self.token_mint:
            body["tokenMint"] = self.token_mint
        if isinstance(self.decimals, int):
            body["decimals"] = self.decimals
        return body


@dataclass
class PaymentReceipt:
    """A verified and settled payment"""
    nonce: str
    amount: str
    recipient: str
    resource_id: str
    transaction_signature: Optional[str] = None
    timestamp: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        """Wire-shaped dict (camelCase keys), unset fields omitted"""
        body = {
            "nonce": self.nonce,
            "amount": self.amount,
            "recipient": self.recipient,
            "resourceId": self.resource_id,
            "transactionSignature": self.transaction_signature,
            "timestamp": self.timestamp,
        }
        return {k: v for k, v in body.items() if v is not None}


@dataclass
class PaymentVerification:
    """Facilitator verdict on a payment assertion"""
    is_valid: bool
    error: Optional[str] = None


class SettlementStatus(str, Enum):
    SETTLED = "settled"
    ERROR = "error"


@dataclass
class SettlementResult:
    """Facilitator settlement outcome"""
    status: SettlementStatus
    transaction_signature: Optional[str] = None
    error: Optional[str] = None

    @property
    def is_settled(self) -> bool:
        return self.status == SettlementStatus.SETTLED


@dataclass
class HealthCheckResult:
    healthy: bool
    facilitator: Optional[str] = None
    timestamp: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}
