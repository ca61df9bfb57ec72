"""Schemas shared by the speech endpoints and the client orchestrator."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Voice(BaseModel):
    """A selectable voice, reduced to the fields the UI needs."""

    model_config = ConfigDict(frozen=True)

    voice_id: str = Field(..., min_length=1)
    name: str
    description: Optional[str] = None
    category: Optional[str] = None


class VoicesResponse(BaseModel):
    """Envelope returned by `GET /api/voices`."""

    success: bool = True
    voices: Optional[List[Voice]] = None
    error: Optional[str] = None


class ErrorEnvelope(BaseModel):
    """Failure envelope shared by both endpoints."""

    success: bool = False
    error: str


class GenerateVoicePayload(BaseModel):
    """Request body accepted by `POST /api/generate-voice`."""

    text: str
    voice_id: str


__all__ = ["ErrorEnvelope", "GenerateVoicePayload", "Voice", "VoicesResponse"]
