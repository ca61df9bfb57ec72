"""ElevenLabs text-to-speech client utilities."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Optional

import httpx
from fastapi import status

from .config import Settings
from .schemas.voices import Voice

logger = logging.getLogger(__name__)

# eleven_monolingual_v1 is tuned for English narration
DEFAULT_MODEL_ID = "eleven_monolingual_v1"
DEFAULT_VOICE_SETTINGS: dict[str, float] = {
    "stability": 0.5,
    "similarity_boost": 0.75,
}


class SpeechErrorKind(str, Enum):
    """Classification shared by the provider client and the proxy endpoints."""

    VALIDATION = "validation"
    CONFIGURATION = "configuration"
    UPSTREAM_AUTH = "upstream-auth"
    UPSTREAM_INVALID_INPUT = "upstream-invalid-input"
    UPSTREAM_RATE_LIMIT = "upstream-rate-limit"
    UPSTREAM_OTHER = "upstream-other"
    NETWORK = "network"
    UNEXPECTED = "unexpected"


_STATUS_KINDS: dict[int, SpeechErrorKind] = {
    status.HTTP_401_UNAUTHORIZED: SpeechErrorKind.UPSTREAM_AUTH,
    422: SpeechErrorKind.UPSTREAM_INVALID_INPUT,
    status.HTTP_429_TOO_MANY_REQUESTS: SpeechErrorKind.UPSTREAM_RATE_LIMIT,
}


def classify_status(status_code: int) -> SpeechErrorKind:
    """Map a non-success provider status code to an error kind."""

    return _STATUS_KINDS.get(status_code, SpeechErrorKind.UPSTREAM_OTHER)


class ElevenLabsError(Exception):
    """Wrap validation, transport or API failures when talking to ElevenLabs."""

    def __init__(
        self,
        message: str,
        *,
        kind: SpeechErrorKind,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.status_code = status_code
        self.response_body = response_body

    def __repr__(self) -> str:
        return (
            f"ElevenLabsError(kind={self.kind.value!r}, "
            f"status_code={self.status_code!r}, message={self.message!r})"
        )


_SYNTHESIS_MESSAGES: dict[SpeechErrorKind, str] = {
    SpeechErrorKind.UPSTREAM_AUTH: "Invalid API key",
    SpeechErrorKind.UPSTREAM_INVALID_INPUT: "Invalid request: check text length and voice ID",
    SpeechErrorKind.UPSTREAM_RATE_LIMIT: "Rate limit exceeded: please try again later",
}


class ElevenLabsClient:
    """Client for the ElevenLabs voice catalog and synthesis endpoints."""

    _client_lock: asyncio.Lock = asyncio.Lock()
    _client_pool: dict[tuple[str, float], httpx.AsyncClient] = {}

    def __init__(
        self,
        settings: Settings,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self._settings = settings
        self._http_client = http_client

    def _client_key(self) -> tuple[str, float]:
        return (self._base_url, float(self._settings.request_timeout))

    async def _get_http_client(self) -> httpx.AsyncClient:
        if self._http_client is not None:
            return self._http_client

        key = self._client_key()
        client = self.__class__._client_pool.get(key)
        if client is not None:
            return client

        async with self.__class__._client_lock:
            client = self.__class__._client_pool.get(key)
            if client is None:
                timeout = httpx.Timeout(self._settings.request_timeout, connect=10.0)
                limits = httpx.Limits(
                    max_connections=50,
                    max_keepalive_connections=20,
                )
                client = httpx.AsyncClient(
                    timeout=timeout,
                    limits=limits,
                    http2=True,
                )
                self.__class__._client_pool[key] = client
        return client

    @property
    def _base_url(self) -> str:
        """Return the ElevenLabs API base URL without a trailing slash."""

        return str(self._settings.elevenlabs_base_url).rstrip("/")

    @staticmethod
    def _headers(api_key: str, accept: str) -> dict[str, str]:
        return {"Accept": accept, "xi-api-key": api_key}

    async def list_voices(self, api_key: str) -> list[Voice]:
        """Return the provider's voice catalog reduced to `Voice` records."""

        if not api_key:
            raise ElevenLabsError(
                "API key is required", kind=SpeechErrorKind.CONFIGURATION
            )

        client = await self._get_http_client()
        try:
            response = await client.get(
                f"{self._base_url}/voices",
                headers=self._headers(api_key, "application/json"),
            )
        except httpx.HTTPError as exc:
            raise ElevenLabsError(
                f"Failed to reach ElevenLabs: {exc}", kind=SpeechErrorKind.NETWORK
            ) from exc

        if not response.is_success:
            raise ElevenLabsError(
                f"Failed to fetch voices: {response.reason_phrase}",
                kind=classify_status(response.status_code),
                status_code=response.status_code,
                response_body=response.text,
            )

        try:
            payload = response.json()
            return [self._to_voice(record) for record in payload.get("voices", [])]
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            raise ElevenLabsError(
                f"Unexpected voices payload: {exc}",
                kind=SpeechErrorKind.UNEXPECTED,
                status_code=response.status_code,
                response_body=response.text,
            ) from exc

    @staticmethod
    def _to_voice(record: dict[str, Any]) -> Voice:
        return Voice(
            voice_id=record["voice_id"],
            name=record["name"],
            description=record.get("description"),
            category=record.get("category"),
        )

    async def synthesize(self, api_key: str, text: str, voice_id: str) -> bytes:
        """Convert ``text`` to MP3 audio spoken by ``voice_id``.

        The payload is returned exactly as the provider sent it.
        """

        if not api_key:
            raise ElevenLabsError(
                "API key is required", kind=SpeechErrorKind.CONFIGURATION
            )
        if not text or not text.strip():
            raise ElevenLabsError(
                "Text is required and cannot be empty",
                kind=SpeechErrorKind.VALIDATION,
            )
        if not voice_id:
            raise ElevenLabsError(
                "Voice ID is required", kind=SpeechErrorKind.VALIDATION
            )

        payload = {
            "text": text,
            "model_id": DEFAULT_MODEL_ID,
            "voice_settings": dict(DEFAULT_VOICE_SETTINGS),
        }
        headers = self._headers(api_key, "audio/mpeg")
        headers["Content-Type"] = "application/json"

        client = await self._get_http_client()
        try:
            response = await client.post(
                f"{self._base_url}/text-to-speech/{voice_id}",
                headers=headers,
                json=payload,
            )
        except httpx.HTTPError as exc:
            raise ElevenLabsError(
                f"Failed to reach ElevenLabs: {exc}", kind=SpeechErrorKind.NETWORK
            ) from exc

        if not response.is_success:
            kind = classify_status(response.status_code)
            message = _SYNTHESIS_MESSAGES.get(
                kind, f"Failed to generate speech: {response.reason_phrase}"
            )
            raise ElevenLabsError(
                message,
                kind=kind,
                status_code=response.status_code,
                response_body=response.text,
            )

        logger.debug(
            "ElevenLabs returned %d audio bytes for voice %s",
            len(response.content),
            voice_id,
        )
        return response.content

    async def aclose(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
            return
        await self.__class__.aclose_shared()

    @classmethod
    async def aclose_shared(cls) -> None:
        async with cls._client_lock:
            clients = list(cls._client_pool.values())
            cls._client_pool.clear()
        for client in clients:
            try:
                await client.aclose()
            except Exception:  # pragma: no cover - best effort cleanup
                logger.debug("Failed to close pooled ElevenLabs client", exc_info=True)


__all__ = [
    "DEFAULT_MODEL_ID",
    "DEFAULT_VOICE_SETTINGS",
    "ElevenLabsClient",
    "ElevenLabsError",
    "SpeechErrorKind",
    "classify_status",
]
