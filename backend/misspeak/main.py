"""
Copyright © 2026 Vladimir Vaulin-Belskii. All rights reserved.

FastAPI application entrypoint wiring routers and middleware.
"""
from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api import router as api_router
from .config import settings

# Configure logging handlers
handlers = [logging.StreamHandler()]
if settings.log_file:
    handlers.append(logging.FileHandler(settings.log_file))

logging.basicConfig(
    level=logging.INFO,
    handlers=handlers,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

# Set the application's specific log level from settings
logging.getLogger("misspeak").setLevel(settings.log_level.upper())
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log configuration on startup."""
    logger.info("Starting Misspeak relay")
    logger.info("Loaded Configuration:")
    for key, value in settings.model_dump().items():
        if any(secret in key.lower() for secret in ["key", "secret", "token", "password"]):
            value = "***"
        logger.info("  %s: %s", key, value)
    logger.info("Audio WebSocket ready at /audio")
    yield


app = FastAPI(title=settings.app_name, lifespan=lifespan)

origins = [origin.strip() for origin in settings.allowed_origins.split(",") if origin.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)


def run() -> None:
    """Console entrypoint: serve the app with uvicorn."""
    import uvicorn

    uvicorn.run("misspeak.main:app", host="0.0.0.0", port=settings.port)
