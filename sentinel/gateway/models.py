"""Request/response models for the gateway API"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ..tap.models import DEFAULT_TAG, DEFAULT_TTL_SECONDS


class ErrorDetail(BaseModel):
    """Error body carried in HTTPException.detail"""
    code: str
    message: str


def error_detail(code: str, message: str) -> dict:
    return ErrorDetail(code=code, message=message).model_dump()


class TapKeyResponse(BaseModel):
    """Key registry entry"""
    key_id: str
    is_active: str  # "true" / "false"
    public_key: str
    algorithm: str
    description: str = ""


class TapSignRequest(BaseModel):
    """Request to sign an outbound URL with the local TAP agent key"""
    model_config = ConfigDict(populate_by_name=True)

    url: Optional[str] = None
    authority: Optional[str] = None
    path: Optional[str] = None
    key_id: Optional[str] = Field(None, alias="keyId")
    alg: Optional[str] = None
    ttl_sec: int = Field(DEFAULT_TTL_SECONDS, alias="ttlSec", gt=0)
    tag: str = DEFAULT_TAG
    nonce: Optional[str] = None


class TapSignResponse(BaseModel):
    """Headers for a signed request"""
    signature_input: str
    signature: str
    authority: str
    path: str
    commitment: str
