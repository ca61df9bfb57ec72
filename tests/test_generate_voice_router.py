from __future__ import annotations

from typing import Optional

import httpx
import pytest
from fastapi.testclient import TestClient
from pydantic import AnyHttpUrl, SecretStr

from story_voice.app import create_app
from story_voice.config import Settings
from story_voice.elevenlabs import ElevenLabsClient, ElevenLabsError, SpeechErrorKind
from story_voice.routers.dependencies import get_elevenlabs_client
from story_voice.routers.generate_voice import (
    RequestValidationFailure,
    validate_generate_body,
)

AUDIO = b"ID3\x03\x00\x00\x00\x00\x0f\x76\xff\xfb\x90\x44\x00"


class DummyElevenLabsClient:
    def __init__(
        self, audio: bytes = AUDIO, error: Optional[Exception] = None
    ) -> None:
        self._audio = audio
        self._error = error
        self.calls: list[tuple[str, str, str]] = []

    async def synthesize(self, api_key: str, text: str, voice_id: str) -> bytes:
        self.calls.append((api_key, text, voice_id))
        if self._error is not None:
            raise self._error
        return self._audio


def make_settings(**overrides) -> Settings:
    overrides.setdefault("elevenlabs_api_key", SecretStr("sk-test"))
    return Settings(_env_file=None, **overrides)  # pyright: ignore[reportCallIssue]


def make_client(dummy, **settings_overrides) -> TestClient:
    app = create_app(make_settings(**settings_overrides))
    app.dependency_overrides[get_elevenlabs_client] = lambda: dummy
    return TestClient(app)


def test_generate_returns_audio_with_download_headers() -> None:
    dummy = DummyElevenLabsClient()
    client = make_client(dummy)

    response = client.post(
        "/api/generate-voice",
        json={"text": "  Once upon a time  ", "voice_id": "v1"},
    )

    assert response.status_code == 200
    assert response.content == AUDIO
    assert response.headers["content-type"] == "audio/mpeg"
    assert response.headers["content-length"] == str(len(AUDIO))
    assert response.headers["cache-control"] == "private, max-age=3600"
    assert (
        response.headers["content-disposition"]
        == 'inline; filename="generated-audio.mp3"'
    )
    assert dummy.calls == [("sk-test", "Once upon a time", "v1")]


def test_generate_is_repeatable_for_same_input() -> None:
    client = make_client(DummyElevenLabsClient())
    body = {"text": "The end.", "voice_id": "v1"}

    first = client.post("/api/generate-voice", json=body)
    second = client.post("/api/generate-voice", json=body)

    assert first.content == second.content == AUDIO
    assert first.headers["content-length"] == second.headers["content-length"]


@pytest.mark.parametrize("text", [" ", "   \n\t  "])
def test_generate_rejects_blank_text_without_calling_provider(text) -> None:
    dummy = DummyElevenLabsClient()
    client = make_client(dummy)

    response = client.post("/api/generate-voice", json={"text": text, "voice_id": "v1"})

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Text cannot be empty"}
    assert dummy.calls == []


def test_generate_rejects_text_over_limit() -> None:
    dummy = DummyElevenLabsClient()
    client = make_client(dummy, max_text_length=12)

    response = client.post(
        "/api/generate-voice", json={"text": "x" * 13, "voice_id": "v1"}
    )

    assert response.status_code == 400
    assert "12" in response.json()["error"]
    assert dummy.calls == []


def test_generate_accepts_text_at_limit() -> None:
    dummy = DummyElevenLabsClient()
    client = make_client(dummy, max_text_length=12)

    response = client.post(
        "/api/generate-voice", json={"text": "x" * 12, "voice_id": "v1"}
    )

    assert response.status_code == 200


def test_generate_limit_message_groups_thousands() -> None:
    dummy = DummyElevenLabsClient()
    client = make_client(dummy)

    response = client.post(
        "/api/generate-voice", json={"text": "x" * 5001, "voice_id": "v1"}
    )

    assert response.status_code == 400
    assert response.json() == {
        "success": False,
        "error": "Text exceeds maximum length of 5,000 characters",
    }
    assert dummy.calls == []


def test_generate_answers_deeply_nested_body_with_envelope() -> None:
    dummy = DummyElevenLabsClient()
    app = create_app(make_settings())
    app.dependency_overrides[get_elevenlabs_client] = lambda: dummy
    client = TestClient(app, raise_server_exceptions=False)

    # Valid JSON that exceeds the parser's recursion limit
    response = client.post(
        "/api/generate-voice",
        content=b"[" * 200000 + b"]" * 200000,
        headers={"content-type": "application/json"},
    )

    assert response.status_code == 500
    assert response.headers["content-type"] == "application/json"
    assert response.json() == {
        "success": False,
        "error": "An unexpected error occurred while generating speech",
    }
    assert dummy.calls == []


@pytest.mark.parametrize("raw", [b"{not json", b"", b'{"text": "hi",'])
def test_generate_rejects_malformed_json(raw) -> None:
    dummy = DummyElevenLabsClient()
    client = make_client(dummy)

    response = client.post(
        "/api/generate-voice",
        content=raw,
        headers={"content-type": "application/json"},
    )

    assert response.status_code == 400
    assert response.json() == {
        "success": False,
        "error": "Invalid JSON in request body",
    }
    assert dummy.calls == []


@pytest.mark.parametrize(
    ("body", "expected_error"),
    [
        ({"voice_id": "v1"}, "Text is required and must be a string"),
        ({"text": 42, "voice_id": "v1"}, "Text is required and must be a string"),
        ({"text": "", "voice_id": "v1"}, "Text is required and must be a string"),
        (["hello", "v1"], "Text is required and must be a string"),
        ({"text": "hello"}, "Voice ID is required and must be a string"),
        ({"text": "hello", "voice_id": ""}, "Voice ID is required and must be a string"),
        ({"text": "hello", "voice_id": 7}, "Voice ID is required and must be a string"),
        # text is checked before voice_id
        ({"text": "   "}, "Text cannot be empty"),
    ],
)
def test_generate_validation_order(body, expected_error) -> None:
    dummy = DummyElevenLabsClient()
    client = make_client(dummy)

    response = client.post("/api/generate-voice", json=body)

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": expected_error}
    assert dummy.calls == []


@pytest.mark.parametrize(
    ("kind", "upstream_status", "expected_status", "expected_error"),
    [
        (
            SpeechErrorKind.UPSTREAM_AUTH,
            401,
            401,
            "Authentication failed with speech service",
        ),
        (
            SpeechErrorKind.UPSTREAM_INVALID_INPUT,
            422,
            422,
            "Invalid request: please check your text and try again",
        ),
        (
            SpeechErrorKind.UPSTREAM_RATE_LIMIT,
            429,
            429,
            "Speech service rate limit exceeded, please try again later",
        ),
        (SpeechErrorKind.UPSTREAM_OTHER, 400, 500, "Failed to generate speech"),
        (SpeechErrorKind.UPSTREAM_OTHER, 502, 500, "Failed to generate speech"),
        (SpeechErrorKind.NETWORK, None, 500, "Failed to generate speech"),
    ],
)
def test_generate_maps_provider_errors(
    kind, upstream_status, expected_status, expected_error
) -> None:
    error = ElevenLabsError(
        "upstream failure",
        kind=kind,
        status_code=upstream_status,
        response_body="secret upstream detail",
    )
    client = make_client(DummyElevenLabsClient(error=error))

    response = client.post("/api/generate-voice", json={"text": "hi", "voice_id": "v1"})

    assert response.status_code == expected_status
    assert response.json() == {"success": False, "error": expected_error}
    assert "secret upstream detail" not in response.text


def test_generate_hides_unexpected_errors() -> None:
    client = make_client(
        DummyElevenLabsClient(error=RuntimeError("database password is hunter2"))
    )

    response = client.post("/api/generate-voice", json={"text": "hi", "voice_id": "v1"})

    assert response.status_code == 500
    assert response.json() == {
        "success": False,
        "error": "An unexpected error occurred while generating speech",
    }
    assert "hunter2" not in response.text


@pytest.mark.parametrize("api_key", [SecretStr("your_key_here"), None])
def test_generate_reports_missing_configuration(api_key) -> None:
    dummy = DummyElevenLabsClient()
    client = make_client(dummy, elevenlabs_api_key=api_key)

    response = client.post("/api/generate-voice", json={"text": "hi", "voice_id": "v1"})

    assert response.status_code == 500
    assert response.json() == {
        "success": False,
        "error": "Server configuration error: API key not set",
    }
    assert dummy.calls == []


def test_provider_401_becomes_authentication_failure() -> None:
    settings = make_settings(
        elevenlabs_base_url=AnyHttpUrl("https://tts.example.com/v1")
    )
    transport = httpx.MockTransport(
        lambda request: httpx.Response(401, json={"detail": "invalid_api_key"})
    )
    provider = ElevenLabsClient(
        settings, http_client=httpx.AsyncClient(transport=transport)
    )
    app = create_app(settings)
    app.dependency_overrides[get_elevenlabs_client] = lambda: provider
    client = TestClient(app)

    response = client.post("/api/generate-voice", json={"text": "hi", "voice_id": "v1"})

    assert response.status_code == 401
    assert response.json() == {
        "success": False,
        "error": "Authentication failed with speech service",
    }


def test_validate_generate_body_returns_trimmed_text() -> None:
    assert validate_generate_body(
        b'{"text": "  hello ", "voice_id": "v1"}', max_text_length=100
    ) == ("hello", "v1")

    with pytest.raises(RequestValidationFailure):
        validate_generate_body(b"null", max_text_length=100)
