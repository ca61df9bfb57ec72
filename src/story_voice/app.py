"""Application factory for the FastAPI service."""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import ProviderCredential, Settings, get_settings
from .elevenlabs import ElevenLabsClient
from .routers.generate_voice import router as generate_voice_router
from .routers.voices import router as voices_router

logger = logging.getLogger(__name__)

_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


def _configure_logging() -> None:
    """Configure logging based on LOG_LEVEL environment variable."""
    # Load .env file first to ensure LOG_FILE is available
    load_dotenv()

    log_level_str = os.getenv("LOG_LEVEL", "INFO").upper()
    log_level = getattr(logging, log_level_str, logging.INFO)

    log_file = os.getenv("LOG_FILE")
    handlers: list[logging.Handler] = []

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(_LOG_FORMAT, datefmt=_LOG_DATEFMT))
        handlers.append(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter(_LOG_FORMAT, datefmt=_LOG_DATEFMT))
    handlers.append(console_handler)

    logging.basicConfig(
        level=log_level,
        handlers=handlers,
        force=True,  # Override any existing configuration
    )

    logging.getLogger("story_voice").setLevel(log_level)

    logging.getLogger("uvicorn").setLevel(log_level)
    logging.getLogger("uvicorn.access").setLevel(log_level)
    logging.getLogger("uvicorn.error").setLevel(log_level)

    # Request URLs carry voice ids only; headers with the key stay at DEBUG
    if log_level > logging.DEBUG:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)
    else:
        logging.getLogger("httpx").setLevel(log_level)
        logging.getLogger("httpcore").setLevel(log_level)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    _configure_logging()

    settings = settings or get_settings()

    credential = ProviderCredential.from_settings(settings)
    if credential.configured:
        logger.info("ElevenLabs credential loaded")
    else:
        logger.error(
            "%s; speech endpoints will return configuration errors",
            credential.problem,
        )

    elevenlabs_client = ElevenLabsClient(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            yield
        finally:
            try:
                await ElevenLabsClient.aclose_shared()
            except Exception as exc:
                logger.warning("Error closing ElevenLabs clients: %s", exc)

    app = FastAPI(
        title="Story Voice Generator",
        version="0.1.0",
        description="Text-to-speech proxy in front of ElevenLabs.",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.provider_credential = credential
    app.state.elevenlabs_client = elevenlabs_client

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition", "Content-Length"],
    )

    app.include_router(voices_router)
    app.include_router(generate_voice_router)

    @app.get("/health", tags=["health"])
    async def healthcheck() -> dict[str, str | bool]:
        return {
            "status": "ok",
            "provider_configured": credential.configured,
        }

    return app


__all__ = ["create_app"]
