"""Voice catalog proxy endpoint."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from ..config import ConfigurationError, ProviderCredential
from ..elevenlabs import ElevenLabsClient, ElevenLabsError, SpeechErrorKind
from ..schemas.voices import VoicesResponse
from .dependencies import (
    CONFIGURATION_ERROR_MESSAGE,
    error_response,
    get_elevenlabs_client,
    get_provider_credential,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["voices"])

_LOG_PREFIX = "[/api/voices]"

# Client-safe messages; anything not listed collapses to a 500
_ERROR_RESPONSES: dict[SpeechErrorKind, tuple[int, str]] = {
    SpeechErrorKind.UPSTREAM_AUTH: (
        status.HTTP_401_UNAUTHORIZED,
        "Invalid API key configuration",
    ),
    SpeechErrorKind.UPSTREAM_RATE_LIMIT: (
        status.HTTP_429_TOO_MANY_REQUESTS,
        "Rate limit exceeded, please try again later",
    ),
}


@router.get(
    "/voices",
    response_model=VoicesResponse,
    response_model_exclude_none=True,
)
async def list_voices(
    credential: ProviderCredential = Depends(get_provider_credential),
    client: ElevenLabsClient = Depends(get_elevenlabs_client),
) -> VoicesResponse | JSONResponse:
    """Return the provider's voices without exposing the API key."""

    try:
        api_key = credential.require()
    except ConfigurationError as exc:
        logger.error("%s %s", _LOG_PREFIX, exc)
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR, CONFIGURATION_ERROR_MESSAGE
        )

    try:
        voices = await client.list_voices(api_key)
    except ElevenLabsError as exc:
        logger.error(
            "%s Error fetching voices: %r body=%s",
            _LOG_PREFIX,
            exc,
            exc.response_body,
        )
        status_code, message = _ERROR_RESPONSES.get(
            exc.kind,
            (status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to fetch voices"),
        )
        return error_response(status_code, message)
    except Exception:
        logger.exception("%s Unexpected error fetching voices", _LOG_PREFIX)
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR, "An unexpected error occurred"
        )

    logger.info("%s Returning %d voices", _LOG_PREFIX, len(voices))
    return VoicesResponse(success=True, voices=voices)


__all__ = ["router"]
