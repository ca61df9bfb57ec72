"""Request-scoped dependencies and response helpers shared by the speech routers."""

from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse

from ..config import ProviderCredential, Settings
from ..elevenlabs import ElevenLabsClient
from ..schemas.voices import ErrorEnvelope

CONFIGURATION_ERROR_MESSAGE = "Server configuration error: API key not set"


def get_app_settings(request: Request) -> Settings:
    settings = getattr(request.app.state, "settings", None)
    if settings is None:  # pragma: no cover - defensive
        raise RuntimeError("Settings are not configured")
    return settings


def get_provider_credential(request: Request) -> ProviderCredential:
    """Return the credential resolved once by the app factory."""

    credential = getattr(request.app.state, "provider_credential", None)
    if credential is None:  # pragma: no cover - defensive
        raise RuntimeError("Provider credential is not configured")
    return credential


def get_elevenlabs_client(request: Request) -> ElevenLabsClient:
    client = getattr(request.app.state, "elevenlabs_client", None)
    if client is None:  # pragma: no cover - defensive
        raise RuntimeError("ElevenLabs client is not configured")
    return client


def error_response(status_code: int, message: str) -> JSONResponse:
    """Render the `{success: false, error}` envelope."""

    return JSONResponse(
        status_code=status_code,
        content=ErrorEnvelope(error=message).model_dump(),
    )


__all__ = [
    "CONFIGURATION_ERROR_MESSAGE",
    "error_response",
    "get_app_settings",
    "get_elevenlabs_client",
    "get_provider_credential",
]
