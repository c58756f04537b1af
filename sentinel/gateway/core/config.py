"""Gateway Configuration"""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from ...tap.models import KeyInfo, SignatureAlgorithm


def _unescape_pem(value: Optional[str]) -> Optional[str]:
    """PEMs in .env files carry literal \\n sequences"""
    if not value:
        return None
    return value.replace("\\n", "\n")


class Settings(BaseSettings):
    """Application settings loaded from environment"""

    # Application
    app_name: str = "Sentinel Gateway"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 3000

    # TAP Configuration
    tap_required: bool = False
    tap_registry_url: Optional[str] = None
    tap_max_skew_sec: int = 60
    tap_nonce_ttl_ms: int = 3_600_000
    tap_nonce_sweep_interval_sec: float = 60.0
    tap_keys_json: Optional[str] = None  # {"keyId": {"public_key": ..., "algorithm": ...}}
    tap_key_id: Optional[str] = None
    tap_alg: str = "ed25519"
    ed25519_private_key: Optional[str] = None  # base64 32-byte seed
    ed25519_public_key: Optional[str] = None
    rsa_private_key: Optional[str] = None
    rsa_public_key: Optional[str] = None

    # Facilitator Configuration
    facilitator_url: str = "http://localhost:3002"
    facilitator_timeout: float = 30.0

    # Payment Configuration
    payment_amount_lamports: int = 5_000_000
    merchant_address: str = ""
    payment_network: str = "devnet"
    payment_asset: str = "SOL"

    # Policy Configuration
    max_usd_per_call: float = 25.0
    price_feed_required: bool = False
    price_feed_url: Optional[str] = None
    price_feed_field: str = "price"
    sol_usd_price: Optional[float] = None  # fixed reference when no feed URL is set

    # Upstream MCP server
    mcp_url: str = "http://localhost:3001/mcp"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def signing_algorithm(self) -> Optional[SignatureAlgorithm]:
        return SignatureAlgorithm.parse(self.tap_alg)

    def get_rsa_private_key(self) -> Optional[str]:
        return _unescape_pem(self.rsa_private_key)

    def get_rsa_public_key(self) -> Optional[str]:
        return _unescape_pem(self.rsa_public_key)

    def get_signing_secret(self, algorithm: SignatureAlgorithm) -> Optional[str]:
        """Private key material for the local TAP agent"""
        if algorithm == SignatureAlgorithm.ED25519:
            return self.ed25519_private_key or None
        return self.get_rsa_private_key()

    def get_public_key(self, algorithm: SignatureAlgorithm) -> Optional[str]:
        """Public key material for the local TAP agent"""
        if algorithm == SignatureAlgorithm.ED25519:
            return self.ed25519_public_key or None
        return self.get_rsa_public_key()

    def local_agent_key(self) -> Optional[KeyInfo]:
        """Registry entry for the in-process TAP agent, if one is configured"""
        algorithm = self.signing_algorithm
        if not self.tap_key_id or algorithm is None:
            return None
        public_key = self.get_public_key(algorithm)
        if not public_key:
            return None
        return KeyInfo(
            key_id=self.tap_key_id,
            public_key=public_key,
            algorithm=algorithm.value,
            description="Local TAP Agent key",
        )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
