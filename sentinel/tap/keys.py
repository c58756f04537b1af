"""
TAP Key Registry Access

Public-key loading per algorithm and resolvers that map a keyId onto a KeyInfo.
"""

import base64
import binascii
import inspect
import json
import logging
from typing import Awaitable, Callable, Optional, Union
from urllib.parse import quote

import httpx
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ed25519, rsa
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPublicKey

from .errors import InvalidKeyMaterialError
from .models import KeyInfo, SignatureAlgorithm

logger = logging.getLogger(__name__)

KeyResolver = Callable[[str], Union[Optional[KeyInfo], Awaitable[Optional[KeyInfo]]]]

ED25519_PUBLIC_KEY_LENGTH = 32


def _load_ed25519_public_key(material: str) -> Ed25519PublicKey:
    """Raw 32-byte public key, base64 encoded"""
    try:
        key_bytes = base64.b64decode((material or "").strip(), validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidKeyMaterialError(f"ED25519 public key is not valid base64: {e}")
    if len(key_bytes) != ED25519_PUBLIC_KEY_LENGTH:
        raise InvalidKeyMaterialError("ED25519 public key must be 32 bytes")
    return ed25519.Ed25519PublicKey.from_public_bytes(key_bytes)


def _load_rsa_public_key(material: str) -> RSAPublicKey:
    """SPKI PEM"""
    pem = (material or "").replace("\\n", "\n").encode()
    try:
        key = serialization.load_pem_public_key(pem)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise InvalidKeyMaterialError(f"Failed to load RSA public key: {e}")
    if not isinstance(key, rsa.RSAPublicKey):
        raise InvalidKeyMaterialError("PEM does not contain an RSA public key")
    return key


_PUBLIC_KEY_LOADERS = {
    SignatureAlgorithm.ED25519: _load_ed25519_public_key,
    SignatureAlgorithm.RSA_PSS_SHA256: _load_rsa_public_key,
}


def load_public_key(
    algorithm: SignatureAlgorithm, material: str
) -> Union[Ed25519PublicKey, RSAPublicKey]:
    """
    Load a registry public key for an algorithm.

    Raises:
        InvalidKeyMaterialError: material does not decode for the algorithm
    """
    return _PUBLIC_KEY_LOADERS[algorithm](material)


def generate_ed25519_keypair() -> tuple[str, str]:
    """
    Generate an Ed25519 key pair in the registry's encoding.

    Returns:
        Tuple of (base64 32-byte seed, base64 32-byte public key)
    """
    private_key = ed25519.Ed25519PrivateKey.generate()
    seed = private_key.private_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PrivateFormat.Raw,
        encryption_algorithm=serialization.NoEncryption(),
    )
    public = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )
    return base64.b64encode(seed).decode(), base64.b64encode(public).decode()


def public_key_pem(private_key: rsa.RSAPrivateKey) -> str:
    """SPKI PEM of an RSA private key's public half"""
    return private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()


async def resolve_key(resolver: KeyResolver, key_id: str) -> Optional[KeyInfo]:
    """Call a sync or async resolver"""
    result = resolver(key_id)
    if inspect.isawaitable(result):
        result = await result
    return result


class StaticKeyResolver:
    """
    In-memory key registry.

    Usage:
        resolver = StaticKeyResolver.from_json(os.getenv("TAP_KEYS_JSON", ""))
        resolver.register(KeyInfo(key_id="k1", public_key="...", algorithm="ed25519"))
    """

    def __init__(self, keys: Optional[dict[str, KeyInfo]] = None):
        self._keys: dict[str, KeyInfo] = dict(keys or {})

    @classmethod
    def from_json(cls, raw: str) -> "StaticKeyResolver":
        """
        Build from a JSON map of keyId -> {public_key, algorithm, is_active?}.

        An empty or unparsable document yields an empty registry.
        """
        if not raw or not raw.strip():
            return cls()
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"Ignoring unparsable TAP key map: {e}")
            return cls()
        if not isinstance(data, dict):
            logger.warning("Ignoring TAP key map that is not a JSON object")
            return cls()

        keys = {}
        for key_id, entry in data.items():
            if isinstance(entry, dict):
                keys[key_id] = KeyInfo.from_registry(entry, key_id=key_id)
        return cls(keys)

    def register(self, key: KeyInfo) -> None:
        self._keys[key.key_id] = key

    def get(self, key_id: str) -> Optional[KeyInfo]:
        return self._keys.get(key_id)

    def __call__(self, key_id: str) -> Optional[KeyInfo]:
        return self.get(key_id)

    def __len__(self) -> int:
        return len(self._keys)


class RegistryKeyResolver:
    """
    Fetches keys from an HTTP key registry: GET {base_url}/keys/{keyId}.

    Unknown keys, non-2xx replies and transport errors all resolve to None.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._http_client = http_client or httpx.AsyncClient(timeout=timeout)

    async def close(self) -> None:
        """Close HTTP client"""
        await self._http_client.aclose()

    async def __call__(self, key_id: str) -> Optional[KeyInfo]:
        url = f"{self.base_url}/keys/{quote(key_id, safe='')}"
        try:
            response = await self._http_client.get(url)
        except httpx.HTTPError as e:
            logger.warning(f"Key registry lookup failed for {key_id}: {e}")
            return None

        if response.status_code != 200:
            logger.info(f"Key registry returned {response.status_code} for {key_id}")
            return None

        try:
            data = response.json()
        except ValueError:
            logger.warning(f"Key registry returned non-JSON body for {key_id}")
            return None
        if not isinstance(data, dict):
            return None
        return KeyInfo.from_registry(data, key_id=key_id)


class ChainedKeyResolver:
    """Tries each resolver in order and returns the first hit"""

    def __init__(self, *resolvers: KeyResolver):
        self.resolvers = [r for r in resolvers if r is not None]

    async def __call__(self, key_id: str) -> Optional[KeyInfo]:
        for resolver in self.resolvers:
            key = await resolve_key(resolver, key_id)
            if key is not None:
                return key
        return None
