"""Speech synthesis proxy endpoint.

Returns MP3 bytes on success and the JSON error envelope on every failure.
Validation runs before the provider is contacted, in this order: JSON body,
``text`` type, blank ``text``, ``text`` length, ``voice_id``.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Request, Response, status

from ..config import ConfigurationError, ProviderCredential, Settings
from ..elevenlabs import ElevenLabsClient, ElevenLabsError, SpeechErrorKind
from .dependencies import (
    CONFIGURATION_ERROR_MESSAGE,
    error_response,
    get_app_settings,
    get_elevenlabs_client,
    get_provider_credential,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["speech"])

_LOG_PREFIX = "[/api/generate-voice]"

AUDIO_MEDIA_TYPE = "audio/mpeg"
AUDIO_CACHE_CONTROL = "private, max-age=3600"
AUDIO_DISPOSITION = 'inline; filename="generated-audio.mp3"'

_ERROR_RESPONSES: dict[SpeechErrorKind, tuple[int, str]] = {
    SpeechErrorKind.UPSTREAM_AUTH: (
        status.HTTP_401_UNAUTHORIZED,
        "Authentication failed with speech service",
    ),
    SpeechErrorKind.UPSTREAM_INVALID_INPUT: (
        422,
        "Invalid request: please check your text and try again",
    ),
    SpeechErrorKind.UPSTREAM_RATE_LIMIT: (
        status.HTTP_429_TOO_MANY_REQUESTS,
        "Speech service rate limit exceeded, please try again later",
    ),
}


class RequestValidationFailure(ValueError):
    """A generate request rejected before reaching the provider."""


def validate_generate_body(
    raw_body: bytes, *, max_text_length: int
) -> tuple[str, str]:
    """Return ``(trimmed_text, voice_id)`` or raise `RequestValidationFailure`."""

    try:
        body: Any = json.loads(raw_body)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise RequestValidationFailure("Invalid JSON in request body") from exc

    if not isinstance(body, dict):
        body = {}

    text: Optional[Any] = body.get("text")
    voice_id: Optional[Any] = body.get("voice_id")

    if not isinstance(text, str) or not text:
        raise RequestValidationFailure("Text is required and must be a string")

    trimmed_text = text.strip()
    if not trimmed_text:
        raise RequestValidationFailure("Text cannot be empty")

    if len(text) > max_text_length:
        raise RequestValidationFailure(
            f"Text exceeds maximum length of {max_text_length:,} characters"
        )

    if not isinstance(voice_id, str) or not voice_id:
        raise RequestValidationFailure("Voice ID is required and must be a string")

    return trimmed_text, voice_id


@router.post(
    "/generate-voice",
    response_class=Response,
    responses={200: {"content": {AUDIO_MEDIA_TYPE: {}}}},
)
async def generate_voice(
    request: Request,
    settings: Settings = Depends(get_app_settings),
    credential: ProviderCredential = Depends(get_provider_credential),
    client: ElevenLabsClient = Depends(get_elevenlabs_client),
) -> Response:
    """Synthesize the posted text with the chosen voice."""

    try:
        api_key = credential.require()
    except ConfigurationError as exc:
        logger.error("%s %s", _LOG_PREFIX, exc)
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR, CONFIGURATION_ERROR_MESSAGE
        )

    try:
        text, voice_id = validate_generate_body(
            await request.body(), max_text_length=settings.max_text_length
        )
        logger.info(
            "%s Generating speech: %d chars, voice: %s",
            _LOG_PREFIX,
            len(text),
            voice_id,
        )
        audio = await client.synthesize(api_key, text, voice_id)
    except ElevenLabsError as exc:
        logger.error(
            "%s Error generating speech: %r body=%s",
            _LOG_PREFIX,
            exc,
            exc.response_body,
        )
        status_code, message = _ERROR_RESPONSES.get(
            exc.kind,
            (status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to generate speech"),
        )
        return error_response(status_code, message)
    except RequestValidationFailure as exc:
        return error_response(status.HTTP_400_BAD_REQUEST, str(exc))
    except Exception:
        logger.exception("%s Unexpected error generating speech", _LOG_PREFIX)
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "An unexpected error occurred while generating speech",
        )

    return Response(
        content=audio,
        media_type=AUDIO_MEDIA_TYPE,
        headers={
            "Content-Length": str(len(audio)),
            # Same text and voice always produce the same audio
            "Cache-Control": AUDIO_CACHE_CONTROL,
            "Content-Disposition": AUDIO_DISPOSITION,
        },
    )


__all__ = [
    "AUDIO_MEDIA_TYPE",
    "RequestValidationFailure",
    "router",
    "validate_generate_body",
]
