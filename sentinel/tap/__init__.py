# TAP (Trusted Agent Protocol) Implementation
# Based on RFC 9421 HTTP Message Signatures

from .codec import build_signature_base, build_signature_input, parse_signature_input
from .errors import (
    IncompleteContextError,
    InvalidKeyMaterialError,
    MalformedHeaderError,
    MalformedSignatureError,
    TAPError,
    UnsupportedAlgorithmError,
)
from .keys import ChainedKeyResolver, RegistryKeyResolver, StaticKeyResolver
from .models import (
    KeyInfo,
    ParsedSignatureInput,
    RequestContext,
    SignatureAlgorithm,
    SignatureComponents,
    SigningParameters,
    VerificationFailure,
    VerificationResult,
)
from .nonce import NonceCache
from .signer import TAPSigner, sign, sign_tap, tap_commitment
from .verifier import TAPVerifier

__all__ = [
    "build_signature_base",
    "build_signature_input",
    "parse_signature_input",
    "IncompleteContextError",
    "InvalidKeyMaterialError",
    "MalformedHeaderError",
    "MalformedSignatureError",
    "TAPError",
    "UnsupportedAlgorithmError",
    "ChainedKeyResolver",
    "RegistryKeyResolver",
    "StaticKeyResolver",
    "KeyInfo",
    "ParsedSignatureInput",
    "RequestContext",
    "SignatureAlgorithm",
    "SignatureComponents",
    "SigningParameters",
    "VerificationFailure",
    "VerificationResult",
    "NonceCache",
    "TAPSigner",
    "sign",
    "sign_tap",
    "tap_commitment",
    "TAPVerifier",
]
