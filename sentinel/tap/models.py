"""TAP Data Models"""

import secrets
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union


DEFAULT_TTL_SECONDS = 300
DEFAULT_TAG = "agent-auth"
SIGNATURE_LABEL = "sig2"
COVERED_COMPONENTS = ("@authority", "@path")


def random_nonce(num_bytes: int = 12) -> str:
    return secrets.token_hex(num_bytes)


class SignatureAlgorithm(str, Enum):
    """Supported signature algorithms"""
    ED25519 = "ed25519"
    RSA_PSS_SHA256 = "rsa-pss-sha256"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["SignatureAlgorithm"]:
        """Map a wire name onto a variant, None if unknown"""
        if not value:
            return None
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


class VerificationFailure(str, Enum):
    """Why a TAP verification was rejected"""
    MISSING_HEADERS = "missing_headers"
    MALFORMED_HEADER = "malformed_header"
    MALFORMED_SIGNATURE = "malformed_signature"
    INVALID_REQUEST_URL = "invalid_request_url"
    CLOCK_SKEW = "clock_skew"
    EXPIRED = "expired"
    MISSING_NONCE = "missing_nonce"
    REPLAY_DETECTED = "replay_detected"
    KEY_NOT_FOUND = "key_not_found"
    KEY_INACTIVE = "key_inactive"
    UNSUPPORTED_ALGORITHM = "unsupported_algorithm"
    SIGNATURE_INVALID = "signature_invalid"


@dataclass
class SigningParameters:
    """
    Inputs for one signature.

    created/expires/nonce are filled in when omitted: created is now,
    expires is created + ttl_seconds and nonce is 12 random bytes as hex.
    """
    authority: str
    path: str
    key_id: str
    algorithm: Union[SignatureAlgorithm, str] = SignatureAlgorithm.ED25519
    ttl_seconds: int = DEFAULT_TTL_SECONDS
    tag: str = DEFAULT_TAG
    nonce: Optional[str] = None
    created: Optional[int] = None
    expires: Optional[int] = None

    def __post_init__(self):
        if self.created is None:
            self.created = int(time.time())
        if self.expires is None:
            self.expires = self.created + int(self.ttl_seconds)
        if not self.nonce:
            self.nonce = random_nonce()

    @property
    def algorithm_name(self) -> str:
        if isinstance(self.algorithm, SignatureAlgorithm):
            return self.algorithm.value
        return str(self.algorithm).lower()


@dataclass
class ParsedSignatureInput:
    """Signature-Input header broken into its covered components and attributes"""
    label: str
    components: list[str]
    attributes: dict[str, Union[int, str]] = field(default_factory=dict)

    def _int(self, name: str) -> Optional[int]:
        value = self.attributes.get(name)
        return value if isinstance(value, int) else None

    def _str(self, name: str) -> Optional[str]:
        value = self.attributes.get(name)
        if value is None:
            return None
        return str(value)

    @property
    def created(self) -> int:
        return self._int("created") or 0

    @property
    def expires(self) -> Optional[int]:
        return self._int("expires")

    @property
    def key_id(self) -> str:
        return self._str("keyId") or ""

    @property
    def algorithm(self) -> str:
        return (self._str("alg") or "").lower()

    @property
    def nonce(self) -> str:
        return self._str("nonce") or ""

    @property
    def tag(self) -> Optional[str]:
        return self._str("tag")


@dataclass
class RequestContext:
    """Values the signature base is rebuilt from"""
    authority: Optional[str]
    path: Optional[str]
    headers: dict[str, str] = field(default_factory=dict)


@dataclass
class SignatureComponents:
    """Components of a TAP signature"""
    signature: str
    signature_input: str
    keyid: str
    created: int
    expires: int
    nonce: str
    algorithm: SignatureAlgorithm
    commitment: str
    authority: str = ""
    path: str = ""

    def to_headers(self) -> dict[str, str]:
        """Convert to HTTP headers"""
        return {
            "Signature": self.signature,
            "Signature-Input": self.signature_input,
        }


@dataclass
class KeyInfo:
    """A registered public key"""
    key_id: str
    public_key: str
    algorithm: str
    is_active: bool = True
    description: Optional[str] = None

    @classmethod
    def from_registry(cls, data: dict, key_id: Optional[str] = None) -> "KeyInfo":
        """Build from a registry JSON document (is_active arrives as "true"/"false")"""
        raw_active = data.get("is_active", True)
        if isinstance(raw_active, str):
            is_active = raw_active.strip().lower() == "true"
        else:
            is_active = bool(raw_active)
        return cls(
            key_id=data.get("key_id") or key_id or "",
            public_key=data.get("public_key", ""),
            algorithm=str(data.get("algorithm", "")).lower(),
            is_active=is_active,
            description=data.get("description"),
        )

    def to_registry(self) -> dict:
        return {
            "key_id": self.key_id,
            "is_active": "true" if self.is_active else "false",
            "public_key": self.public_key,
            "algorithm": self.algorithm,
            "description": self.description or "",
        }


@dataclass
class VerificationResult:
    """Result of TAP signature verification"""
    is_valid: bool
    reason: Optional[str] = None
    failure: Optional[VerificationFailure] = None
    commitment: Optional[str] = None
    keyid: Optional[str] = None
    algorithm: Optional[str] = None
    created: Optional[int] = None
    expires: Optional[int] = None
    tag: Optional[str] = None

    @property
    def is_signed(self) -> bool:
        """True when a signature was actually checked, not skipped"""
        return self.is_valid and self.commitment is not None

    @classmethod
    def rejected(
        cls, failure: VerificationFailure, reason: str, **kwargs
    ) -> "VerificationResult":
        return cls(is_valid=False, failure=failure, reason=reason, **kwargs)
