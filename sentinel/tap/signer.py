"""
TAP Signature Generator

Implements RFC 9421 HTTP Message Signatures for the Trusted Agent Protocol.
Supports Ed25519 and RSA-PSS-SHA256 algorithms.
"""

import base64
import binascii
import hashlib
import logging
from typing import Optional, Union

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ed25519, padding, rsa
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey

from .codec import build_signature_base, build_signature_input, context_from_url, wrap_signature
from .errors import IncompleteContextError, InvalidKeyMaterialError, UnsupportedAlgorithmError
from .models import (
    COVERED_COMPONENTS,
    DEFAULT_TAG,
    DEFAULT_TTL_SECONDS,
    RequestContext,
    SignatureAlgorithm,
    SignatureComponents,
    SigningParameters,
)

logger = logging.getLogger(__name__)

SigningSecret = Union[bytes, str, Ed25519PrivateKey, RSAPrivateKey]

ED25519_SEED_LENGTH = 32


def sha256_hex(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def tap_commitment(signature_input: str, signature: str) -> str:
    """Commitment binding a Signature-Input/Signature pair"""
    return sha256_hex(f"{signature_input}|{signature}")


def resolve_algorithm(algorithm: Union[SignatureAlgorithm, str, None]) -> SignatureAlgorithm:
    if isinstance(algorithm, SignatureAlgorithm):
        return algorithm
    parsed = SignatureAlgorithm.parse(algorithm)
    if parsed is None:
        raise UnsupportedAlgorithmError(f"Unsupported algorithm: {algorithm}")
    return parsed


def _load_ed25519_private_key(secret: SigningSecret) -> Ed25519PrivateKey:
    """Accepts a 32-byte seed (raw or base64 text) or a loaded key"""
    if isinstance(secret, Ed25519PrivateKey):
        return secret
    if isinstance(secret, str):
        try:
            secret = base64.b64decode(secret.strip(), validate=True)
        except (binascii.Error, ValueError) as e:
            raise InvalidKeyMaterialError(f"ED25519 seed is not valid base64: {e}")
    if not isinstance(secret, (bytes, bytearray)) or len(secret) != ED25519_SEED_LENGTH:
        raise InvalidKeyMaterialError("ED25519 seed must be 32 bytes")
    return ed25519.Ed25519PrivateKey.from_private_bytes(bytes(secret))


def _load_rsa_private_key(secret: SigningSecret) -> RSAPrivateKey:
    """Accepts PEM text/bytes or a loaded key"""
    if isinstance(secret, RSAPrivateKey):
        return secret
    if isinstance(secret, str):
        secret = secret.replace("\\n", "\n").encode()
    if not isinstance(secret, (bytes, bytearray)) or not secret:
        raise InvalidKeyMaterialError("Missing RSA private key PEM")

    try:
        key = serialization.load_pem_private_key(bytes(secret), password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise InvalidKeyMaterialError(f"Failed to load RSA private key: {e}")
    if not isinstance(key, rsa.RSAPrivateKey):
        raise InvalidKeyMaterialError("PEM does not contain an RSA private key")
    return key


_PRIVATE_KEY_LOADERS = {
    SignatureAlgorithm.ED25519: _load_ed25519_private_key,
    SignatureAlgorithm.RSA_PSS_SHA256: _load_rsa_private_key,
}


def load_private_key(
    algorithm: Union[SignatureAlgorithm, str], secret: SigningSecret
) -> Union[Ed25519PrivateKey, RSAPrivateKey]:
    """
    Load signing key material for an algorithm.

    Raises:
        UnsupportedAlgorithmError: algorithm is not supported
        InvalidKeyMaterialError: secret does not fit the algorithm
    """
    return _PRIVATE_KEY_LOADERS[resolve_algorithm(algorithm)](secret)


def _create_signature(private_key: Union[Ed25519PrivateKey, RSAPrivateKey], base: str) -> bytes:
    """Create the cryptographic signature"""
    base_bytes = base.encode("utf-8")

    if isinstance(private_key, ed25519.Ed25519PrivateKey):
        return private_key.sign(base_bytes)
    # RSA-PSS-SHA256
    return private_key.sign(
        base_bytes,
        padding.PSS(
            mgf=padding.MGF1(hashes.SHA256()),
            salt_length=padding.PSS.MAX_LENGTH,
        ),
        hashes.SHA256(),
    )


def sign(base: str, algorithm: Union[SignatureAlgorithm, str], secret: SigningSecret) -> str:
    """
    Sign a signature base string.

    Returns:
        Signature header value, sig2=:<base64>:
    """
    private_key = load_private_key(algorithm, secret)
    return wrap_signature(_create_signature(private_key, base))


def sign_tap(params: SigningParameters, secret: SigningSecret) -> SignatureComponents:
    """Build the Signature-Input header, sign the base and compute the commitment"""
    algorithm = resolve_algorithm(params.algorithm)
    private_key = load_private_key(algorithm, secret)

    signature_input = build_signature_input(params)
    base = build_signature_base(
        list(COVERED_COMPONENTS),
        RequestContext(authority=params.authority, path=params.path),
        signature_input,
    )
    signature = wrap_signature(_create_signature(private_key, base))

    return SignatureComponents(
        signature=signature,
        signature_input=signature_input,
        keyid=params.key_id,
        created=params.created,
        expires=params.expires,
        nonce=params.nonce,
        algorithm=algorithm,
        commitment=tap_commitment(signature_input, signature),
        authority=params.authority,
        path=params.path,
    )


class TAPSigner:
    """
    Generates TAP-compliant HTTP Message Signatures per RFC 9421.

    Usage:
        signer = TAPSigner(
            secret=seed_bytes,
            keyid="k1",
            algorithm=SignatureAlgorithm.ED25519,
        )

        sig = signer.sign(url="https://api.example.com/mcp/execute")

        headers = sig.to_headers()
    """

    def __init__(
        self,
        secret: SigningSecret,
        keyid: str,
        algorithm: SignatureAlgorithm = SignatureAlgorithm.ED25519,
        signature_validity_seconds: int = DEFAULT_TTL_SECONDS,
        tag: str = DEFAULT_TAG,
    ):
        """
        Initialize the TAP signer.

        Args:
            secret: Ed25519 seed or RSA private key PEM
            keyid: Key identifier registered with the key registry
            algorithm: Signature algorithm to use
            signature_validity_seconds: How long signatures remain valid
            tag: Tag attribute placed in every Signature-Input
        """
        self.keyid = keyid
        self.algorithm = resolve_algorithm(algorithm)
        self.validity_seconds = signature_validity_seconds
        self.tag = tag
        self._private_key = load_private_key(self.algorithm, secret)

    def sign(
        self,
        url: Optional[str] = None,
        authority: Optional[str] = None,
        path: Optional[str] = None,
        nonce: Optional[str] = None,
        tag: Optional[str] = None,
    ) -> SignatureComponents:
        """
        Generate a TAP signature for a request.

        Either a full URL or an explicit authority/path pair is required.
        """
        if url and (not authority or not path):
            context = context_from_url(url)
            authority = authority or context.authority
            path = path or context.path
        if not authority or not path:
            raise IncompleteContextError("Missing authority/path or url")

        params = SigningParameters(
            authority=authority,
            path=path,
            key_id=self.keyid,
            algorithm=self.algorithm,
            ttl_seconds=self.validity_seconds,
            tag=tag or self.tag,
            nonce=nonce,
        )
        components = sign_tap(params, self._private_key)
        logger.debug(f"Generated TAP signature for {authority}{path}")
        return components
