"""Client-side controller for the voice generation flow.

The orchestrator owns all interaction state: the story text, the voice list,
the selected voice, the single live `AudioResource`, the loading/generating
flags and the current error. Presentation code reads `state` and calls the
action methods; it never talks to the server directly.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

import httpx
from pydantic import ValidationError

from ..config import DEFAULT_MAX_TEXT_LENGTH
from ..schemas.voices import GenerateVoicePayload, Voice, VoicesResponse
from .audio import AudioResource, AudioStore, TempFileAudioStore

logger = logging.getLogger(__name__)

VOICES_PATH = "/api/voices"
GENERATE_PATH = "/api/generate-voice"
AUDIO_MEDIA_TYPE = "audio/mpeg"

LOAD_VOICES_FAILED = "Failed to load voices"
CONNECT_FAILED = "Failed to connect to server"
NETWORK_ERROR = "Network error. Please try again."
UNEXPECTED_FORMAT = "Unexpected response format from server"
PLAYBACK_FAILED = "Failed to play audio"


@dataclass
class OrchestratorState:
    story_text: str = ""
    voices: list[Voice] = field(default_factory=list)
    selected_voice_id: Optional[str] = None
    audio: Optional[AudioResource] = None
    is_loading_voices: bool = True
    is_generating: bool = False
    error: Optional[str] = None


class StoryVoiceOrchestrator:
    """Drive voice loading and speech generation against the proxy server."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        audio_store: Optional[AudioStore] = None,
        max_text_length: int = DEFAULT_MAX_TEXT_LENGTH,
        on_change: Optional[Callable[[OrchestratorState], None]] = None,
    ) -> None:
        self._http = http_client
        self._audio_store = audio_store or TempFileAudioStore()
        self._max_text_length = max_text_length
        self._on_change = on_change
        self._state = OrchestratorState()
        self._generation = 0
        self._mounted = False
        self._torn_down = False

    @property
    def state(self) -> OrchestratorState:
        return self._state

    @property
    def max_text_length(self) -> int:
        return self._max_text_length

    @property
    def selected_voice(self) -> Optional[Voice]:
        voice_id = self._state.selected_voice_id
        return next((v for v in self._state.voices if v.voice_id == voice_id), None)

    @property
    def can_generate(self) -> bool:
        state = self._state
        return bool(
            state.story_text.strip()
            and state.selected_voice_id
            and not state.is_loading_voices
            and not state.is_generating
        )

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change(self._state)

    # -- voices ---------------------------------------------------------

    async def mount(self) -> None:
        """Load the voice list once; later calls do nothing."""

        if self._mounted:
            return
        self._mounted = True
        await self._load_voices()

    async def _load_voices(self) -> None:
        try:
            response = await self._http.get(VOICES_PATH)
            envelope = VoicesResponse.model_validate(response.json())
        except (httpx.HTTPError, ValueError, ValidationError) as exc:
            logger.warning("Voice list request failed: %s", exc)
            self._state.error = CONNECT_FAILED
        else:
            if envelope.success and envelope.voices is not None:
                self._state.voices = list(envelope.voices)
            else:
                self._state.error = envelope.error or LOAD_VOICES_FAILED
        finally:
            self._state.is_loading_voices = False
            self._changed()

    # -- inputs ---------------------------------------------------------

    def set_story_text(self, text: str) -> bool:
        """Replace the story text unless it exceeds the maximum length."""

        if len(text) > self._max_text_length:
            return False
        self._state.story_text = text
        self._changed()
        return True

    def select_voice(self, voice_id: Optional[str]) -> None:
        self._state.selected_voice_id = voice_id or None
        self._changed()

    # -- generation -----------------------------------------------------

    async def generate(self) -> None:
        """Request speech for the current text and voice.

        Does nothing while a generation is in flight or when the text is blank
        or no voice is selected.
        """

        state = self._state
        if state.is_generating or self._torn_down:
            return
        if not state.story_text.strip() or not state.selected_voice_id:
            return

        self._generation += 1
        ticket = self._generation

        self._release_audio()
        state.error = None
        state.is_generating = True
        self._changed()

        payload = GenerateVoicePayload(
            text=state.story_text, voice_id=state.selected_voice_id
        ).model_dump()
        try:
            response = await self._http.post(GENERATE_PATH, json=payload)
            if ticket != self._generation:
                logger.debug("Dropping superseded generation response %d", ticket)
                return
            self._apply_generation_response(response)
        except Exception as exc:
            if ticket != self._generation:
                return
            if isinstance(exc, httpx.HTTPError):
                logger.warning("Generation request failed: %s", exc)
            else:
                logger.exception("Unexpected failure during generation")
            state.error = NETWORK_ERROR
        finally:
            if ticket == self._generation:
                state.is_generating = False
                self._changed()

    def _apply_generation_response(self, response: httpx.Response) -> None:
        if not response.is_success:
            self._state.error = self._error_message(response) or (
                f"Generation failed ({response.status_code})"
            )
            return

        content_type = response.headers.get("content-type", "")
        if AUDIO_MEDIA_TYPE not in content_type:
            self._state.error = UNEXPECTED_FORMAT
            return

        self._state.audio = self._audio_store.create(response.content)
        logger.info("Generated %d bytes of audio", len(response.content))

    @staticmethod
    def _error_message(response: httpx.Response) -> Optional[str]:
        try:
            body: Any = response.json()
        except ValueError:
            return None
        if isinstance(body, dict) and isinstance(body.get("error"), str):
            return body["error"] or None
        return None

    def report_playback_error(self) -> None:
        self._state.error = PLAYBACK_FAILED
        self._changed()

    # -- lifecycle ------------------------------------------------------

    def _release_audio(self) -> None:
        audio = self._state.audio
        self._state.audio = None
        if audio is not None:
            audio.release()

    async def teardown(self) -> None:
        """Invalidate in-flight requests and release the live audio resource."""

        self._torn_down = True
        self._generation += 1
        self._state.is_generating = False
        self._release_audio()
        self._changed()

    async def __aenter__(self) -> "StoryVoiceOrchestrator":
        await self.mount()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.teardown()


__all__ = [
    "CONNECT_FAILED",
    "LOAD_VOICES_FAILED",
    "NETWORK_ERROR",
    "OrchestratorState",
    "PLAYBACK_FAILED",
    "StoryVoiceOrchestrator",
    "UNEXPECTED_FORMAT",
]
