"""TAP agent routes: minimal key registry and signing endpoint"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from ...tap.codec import context_from_url
from ...tap.errors import IncompleteContextError, InvalidKeyMaterialError
from ...tap.models import SignatureAlgorithm, SigningParameters
from ...tap.signer import sign_tap
from ..core.services import GatewayServices, get_services
from ..models import TapKeyResponse, TapSignRequest, TapSignResponse, error_detail

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tap", tags=["TAP"])


@router.get("/keys/{key_id}", response_model=TapKeyResponse)
async def get_key(
    key_id: str,
    services: GatewayServices = Depends(get_services),
):
    """Look up a registered public key"""
    settings = services.settings
    if key_id == settings.tap_key_id and settings.signing_algorithm is None:
        raise HTTPException(
            status_code=400,
            detail=error_detail("TAP_UNSUPPORTED_ALG", "Unsupported algorithm"),
        )

    key = services.local_keys.get(key_id)
    if key is None:
        raise HTTPException(status_code=404, detail=error_detail("TAP_KEY_NOT_FOUND", "Key not found"))
    return TapKeyResponse(**key.to_registry())


@router.post("/sign", response_model=TapSignResponse)
async def sign_request(
    request: TapSignRequest,
    services: GatewayServices = Depends(get_services),
):
    """
    Sign an outbound request with the local agent key.

    A keyId in the body must name the configured agent key; signing is
    refused for any key whose private half this process does not hold.
    """
    settings = services.settings
    key_id = request.key_id or settings.tap_key_id
    if not key_id:
        raise HTTPException(
            status_code=400,
            detail=error_detail("TAP_SIGN_MISSING_KEYID", "Missing keyId (TAP_KEY_ID)"),
        )

    algorithm = SignatureAlgorithm.parse(request.alg or settings.tap_alg)
    if algorithm is None:
        raise HTTPException(
            status_code=400,
            detail=error_detail("TAP_SIGN_UNSUPPORTED_ALG", "Unsupported algorithm"),
        )

    key = services.local_keys.get(key_id)
    if (
        key is None
        or key_id != settings.tap_key_id
        or SignatureAlgorithm.parse(key.algorithm) != algorithm
    ):
        logger.warning(f"Refusing to sign for keyId={key_id}, alg={algorithm.value}")
        raise HTTPException(
            status_code=400,
            detail=error_detail("TAP_SIGN_UNKNOWN_KEY", f"No local signing key for keyId {key_id}"),
        )

    authority, path = request.authority, request.path
    if request.url and (not authority or not path):
        try:
            context = context_from_url(request.url)
            authority = authority or context.authority
            path = path or context.path
        except IncompleteContextError:
            pass
    if not authority or not path:
        raise HTTPException(
            status_code=400,
            detail=error_detail("TAP_SIGN_MISSING_URL", "Missing authority/path or url"),
        )

    secret = settings.get_signing_secret(algorithm)
    if not secret:
        raise HTTPException(
            status_code=400,
            detail=error_detail("TAP_SIGN_BAD_KEY", f"No private key configured for {algorithm.value}"),
        )

    params = SigningParameters(
        authority=authority,
        path=path,
        key_id=key_id,
        algorithm=algorithm,
        ttl_seconds=request.ttl_sec,
        tag=request.tag,
        nonce=request.nonce,
    )
    try:
        components = sign_tap(params, secret)
    except InvalidKeyMaterialError as e:
        logger.error(f"TAP signing key unusable: {e}")
        raise HTTPException(status_code=400, detail=error_detail("TAP_SIGN_BAD_KEY", str(e)))

    return TapSignResponse(
        signature_input=components.signature_input,
        signature=components.signature,
        authority=authority,
        path=path,
        commitment=components.commitment,
    )
