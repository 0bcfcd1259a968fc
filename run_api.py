"""Startup script for the FastAPI backend.

This script starts the FastAPI server with configuration from environment variables.
"""

import uvicorn
from loguru import logger

from dupcheck.config import load_settings

if __name__ == "__main__":
    settings = load_settings()

    logger.info(f"Starting Award Duplicate Checker API on {settings.api_host}:{settings.api_port}")
    logger.info(f"CORS origins: {', '.join(settings.cors_origins)}")
    logger.info(f"Judgment Oracle: {settings.gemini_model if settings.google_api_key else 'disabled'}")

    uvicorn.run(
        "api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
        log_level=settings.log_level.lower()
    )
