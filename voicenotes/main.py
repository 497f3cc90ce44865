"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI

from voicenotes.api import telegram
from voicenotes.config import Settings, get_settings
from voicenotes.services.file_handler import FileHandler

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown events."""
    # Scratch files left behind by workers that crashed mid-download
    FileHandler(settings).cleanup_stale_files()
    yield


app = FastAPI(
    title="Voice Notes API",
    description="Telegram voice notes transcribed, classified and stored for triage",
    version="0.1.0",
    lifespan=lifespan,
)

# Register routers
app.include_router(telegram.router)


@app.get("/health")
async def health_check(settings: Annotated[Settings, Depends(get_settings)]):
    """Health check endpoint."""
    return {
        "status": "healthy",
        "environment": settings.environment,
        "providers": {
            "telegram": bool(settings.telegram_bot_token),
            "transcription": bool(settings.assemblyai_api_key),
            "analysis": bool(settings.openrouter_api_key),
        },
    }
