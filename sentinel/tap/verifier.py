"""
TAP Signature Verifier

Verifies RFC 9421 HTTP Message Signatures for the Trusted Agent Protocol.
Used by resource servers to validate agent requests.
"""

import logging
import time
from collections.abc import Mapping
from typing import Callable, Optional, Union

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPublicKey

from .codec import build_signature_base, context_from_url, extract_signature, parse_signature_input
from .errors import IncompleteContextError, InvalidKeyMaterialError, MalformedHeaderError, MalformedSignatureError
from .keys import KeyResolver, load_public_key, resolve_key
from .models import (
    COVERED_COMPONENTS,
    SignatureAlgorithm,
    VerificationFailure,
    VerificationResult,
)
from .nonce import DEFAULT_NONCE_TTL_MS, NonceCache
from .signer import tap_commitment

logger = logging.getLogger(__name__)

ED25519_SIGNATURE_LENGTH = 64


def _verify_ed25519(public_key: Ed25519PublicKey, signature: bytes, message: bytes) -> bool:
    if len(signature) != ED25519_SIGNATURE_LENGTH:
        return False
    try:
        public_key.verify(signature, message)
    except InvalidSignature:
        return False
    return True


def _verify_rsa_pss(public_key: RSAPublicKey, signature: bytes, message: bytes) -> bool:
    try:
        public_key.verify(
            signature,
            message,
            padding.PSS(
                mgf=padding.MGF1(hashes.SHA256()),
                salt_length=padding.PSS.MAX_LENGTH,
            ),
            hashes.SHA256(),
        )
    except InvalidSignature:
        return False
    return True


_VERIFIERS = {
    SignatureAlgorithm.ED25519: _verify_ed25519,
    SignatureAlgorithm.RSA_PSS_SHA256: _verify_rsa_pss,
}


def _select_algorithm(
    claimed: str, declared: str
) -> Union[SignatureAlgorithm, str]:
    """
    Pick the verification algorithm from the key's declared algorithm,
    cross-checked against the one claimed in Signature-Input.

    Returns the algorithm, or an error reason string.
    """
    claimed_alg = SignatureAlgorithm.parse(claimed)
    declared_alg = SignatureAlgorithm.parse(declared)

    if claimed and claimed_alg is None:
        return f"Unsupported algorithm: {claimed}"
    if declared and declared_alg is None:
        return f"Unsupported algorithm: {declared}"
    if claimed_alg and declared_alg and claimed_alg != declared_alg:
        return f"Algorithm mismatch: signature uses {claimed_alg.value}, key is {declared_alg.value}"

    algorithm = declared_alg or claimed_alg
    if algorithm is None:
        return "Unsupported algorithm: none declared"
    return algorithm


class TAPVerifier:
    """
    Verifies TAP-compliant HTTP Message Signatures.

    Cheap structural, temporal and replay checks run before key resolution
    and public-key crypto.

    Usage:
        verifier = TAPVerifier(resolve_key=StaticKeyResolver.from_json(keys_json))

        result = await verifier.verify(
            headers=request.headers,
            url=str(request.url),
        )

        if result.is_valid:
            print(f"Valid request signed by: {result.keyid}")
    """

    def __init__(
        self,
        resolve_key: KeyResolver,
        nonce_cache: Optional[NonceCache] = None,
        required: bool = False,
        max_clock_skew_seconds: int = 60,
        nonce_ttl_ms: int = DEFAULT_NONCE_TTL_MS,
        clock: Optional[Callable[[], float]] = None,
    ):
        """
        Initialize the TAP verifier.

        Args:
            resolve_key: keyId -> KeyInfo lookup, sync or async
            nonce_cache: Replay cache, shared between verifiers of one process
            required: Reject requests that carry no signature headers
            max_clock_skew_seconds: How far in the future `created` may be
            nonce_ttl_ms: TTL for a cache created here when none is given
            clock: Returns wall-clock seconds
        """
        self.resolve_key = resolve_key
        self.nonce_cache = nonce_cache if nonce_cache is not None else NonceCache(ttl_ms=nonce_ttl_ms)
        self.required = required
        self.max_clock_skew = max_clock_skew_seconds
        self._clock = clock or time.time

    def _reject(
        self, failure: VerificationFailure, reason: str, **kwargs
    ) -> VerificationResult:
        if failure == VerificationFailure.SIGNATURE_INVALID:
            logger.warning(f"TAP signature invalid, possible forgery: keyid={kwargs.get('keyid')}")
        else:
            logger.info(f"TAP verification rejected ({failure.value}): {reason}")
        return VerificationResult.rejected(failure, reason, **kwargs)

    async def verify(
        self,
        headers: Mapping,
        url: str,
        required: Optional[bool] = None,
    ) -> VerificationResult:
        """
        Verify a TAP signature on an incoming request.

        Args:
            headers: Request headers (Signature and Signature-Input, any case)
            url: The URL the request actually arrived on
            required: Overrides the verifier-wide setting for this call

        Returns:
            VerificationResult indicating success/failure
        """
        required = self.required if required is None else required

        # Extract signature headers (case-insensitive)
        headers_lower = {str(k).lower(): v for k, v in headers.items()}
        signature_input = headers_lower.get("signature-input") or ""
        signature_header = headers_lower.get("signature") or ""

        if not signature_input and not signature_header:
            if required:
                return self._reject(
                    VerificationFailure.MISSING_HEADERS, "Missing TAP signature headers"
                )
            return VerificationResult(is_valid=True)
        if not signature_input or not signature_header:
            return self._reject(
                VerificationFailure.MISSING_HEADERS,
                "Both Signature and Signature-Input headers are required",
            )

        try:
            params = parse_signature_input(signature_input)
        except MalformedHeaderError as e:
            return self._reject(
                VerificationFailure.MALFORMED_HEADER, f"Invalid signature-input format: {e}"
            )
        missing = [c for c in COVERED_COMPONENTS if c not in params.components]
        if missing:
            return self._reject(
                VerificationFailure.MALFORMED_HEADER,
                f"Signature must cover {', '.join(missing)}",
            )

        keyid = params.key_id
        created = params.created
        expires = params.expires
        now = int(self._clock())

        if created > now + self.max_clock_skew:
            return self._reject(
                VerificationFailure.CLOCK_SKEW,
                "Signature created time is in the future",
                keyid=keyid,
                created=created,
            )
        if expires is not None and expires < now:
            return self._reject(
                VerificationFailure.EXPIRED,
                "Signature expired",
                keyid=keyid,
                created=created,
                expires=expires,
            )

        # Nonce is recorded before any signature check
        nonce = params.nonce
        if not nonce:
            return self._reject(VerificationFailure.MISSING_NONCE, "Missing nonce", keyid=keyid)
        if not self.nonce_cache.check_and_insert(nonce):
            return self._reject(
                VerificationFailure.REPLAY_DETECTED, "Replay detected", keyid=keyid
            )

        try:
            context = context_from_url(url, headers_lower)
            signature_base = build_signature_base(params.components, context, signature_input)
        except IncompleteContextError as e:
            return self._reject(
                VerificationFailure.INVALID_REQUEST_URL, f"Invalid request URL: {e}", keyid=keyid
            )

        try:
            signature_bytes = extract_signature(signature_header)
        except MalformedSignatureError as e:
            return self._reject(VerificationFailure.MALFORMED_SIGNATURE, str(e), keyid=keyid)

        key = await resolve_key(self.resolve_key, keyid)
        if key is None:
            return self._reject(VerificationFailure.KEY_NOT_FOUND, "Key not found", keyid=keyid)
        if not key.is_active:
            return self._reject(VerificationFailure.KEY_INACTIVE, "Key inactive", keyid=keyid)

        algorithm = _select_algorithm(params.algorithm, key.algorithm)
        if not isinstance(algorithm, SignatureAlgorithm):
            return self._reject(
                VerificationFailure.UNSUPPORTED_ALGORITHM, algorithm, keyid=keyid
            )

        try:
            public_key = load_public_key(algorithm, key.public_key)
        except InvalidKeyMaterialError as e:
            logger.error(f"Registered key {keyid} is unusable: {e}")
            return self._reject(
                VerificationFailure.SIGNATURE_INVALID,
                "Signature verification failed",
                keyid=keyid,
                algorithm=algorithm.value,
            )

        if not _VERIFIERS[algorithm](public_key, signature_bytes, signature_base.encode("utf-8")):
            return self._reject(
                VerificationFailure.SIGNATURE_INVALID,
                "Signature verification failed",
                keyid=keyid,
                algorithm=algorithm.value,
                created=created,
                expires=expires,
            )

        logger.info(f"TAP verified: keyid={keyid}, alg={algorithm.value}, tag={params.tag}")
        return VerificationResult(
            is_valid=True,
            commitment=tap_commitment(signature_input, signature_header),
            keyid=keyid,
            algorithm=algorithm.value,
            created=created,
            expires=expires,
            tag=params.tag,
        )
