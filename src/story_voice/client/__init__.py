"""Client side of the story voice generator."""

from .audio import AudioResource, TempFileAudioStore
from .orchestrator import OrchestratorState, StoryVoiceOrchestrator

__all__ = [
    "AudioResource",
    "OrchestratorState",
    "StoryVoiceOrchestrator",
    "TempFileAudioStore",
]
