"""Transient handles on generated audio.

An `AudioResource` stands in for a browser object URL: it is created from the
bytes of one generation, backed by a temporary file while it is live, and
released exactly once when it is replaced or its owner goes away.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
import time
from pathlib import Path
from typing import Callable, Optional, Protocol

logger = logging.getLogger(__name__)

AUDIO_SUFFIX = ".mp3"


def suggested_filename(now: Optional[float] = None) -> str:
    """Return a download name such as ``story-audio-1700000000000.mp3``."""

    millis = int((time.time() if now is None else now) * 1000)
    return f"story-audio-{millis}{AUDIO_SUFFIX}"


class AudioResource:
    """A revocable reference to one piece of generated audio."""

    def __init__(
        self,
        path: Path,
        size: int,
        on_release: Callable[["AudioResource"], None],
    ) -> None:
        self._path = path
        self._size = size
        self._on_release = on_release
        self._released = False

    @property
    def path(self) -> Path:
        return self._path

    @property
    def size(self) -> int:
        return self._size

    @property
    def released(self) -> bool:
        return self._released

    def read_bytes(self) -> bytes:
        self._ensure_live()
        return self._path.read_bytes()

    def save(self, destination: Path) -> Path:
        """Copy the audio to ``destination`` and return the written path.

        A directory destination receives a timestamped file name.
        """

        self._ensure_live()
        target = destination / suggested_filename() if destination.is_dir() else destination
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(self._path, target)
        return target

    def release(self) -> None:
        """Free the backing file. Releasing twice is a no-op."""

        if self._released:
            return
        self._released = True
        self._on_release(self)

    def _ensure_live(self) -> None:
        if self._released:
            raise RuntimeError("Audio resource has already been released")

    def __repr__(self) -> str:
        state = "released" if self._released else "live"
        return f"AudioResource(path={str(self._path)!r}, size={self._size}, {state})"


class AudioStore(Protocol):
    def create(self, data: bytes) -> AudioResource: ...


class TempFileAudioStore:
    """Creates `AudioResource` objects backed by temporary ``.mp3`` files."""

    def __init__(self, directory: Optional[Path] = None) -> None:
        self._directory = directory
        self.created = 0
        self.released = 0

    @property
    def live(self) -> int:
        return self.created - self.released

    def create(self, data: bytes) -> AudioResource:
        with tempfile.NamedTemporaryFile(
            prefix="story-audio-",
            suffix=AUDIO_SUFFIX,
            dir=self._directory,
            delete=False,
        ) as handle:
            handle.write(data)
            path = Path(handle.name)
        self.created += 1
        logger.debug("Created audio resource %s (%d bytes)", path, len(data))
        return AudioResource(path, len(data), self._release)

    def _release(self, resource: AudioResource) -> None:
        self.released += 1
        try:
            resource.path.unlink()
        except FileNotFoundError:
            pass
        logger.debug("Released audio resource %s", resource.path)


__all__ = ["AudioResource", "AudioStore", "TempFileAudioStore", "suggested_filename"]
