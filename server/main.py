"""FastAPI application entry point."""

from __future__ import annotations

import sys
from contextlib import asynccontextmanager
from pathlib import Path

# Ensure server/ is on sys.path for absolute imports
_server_dir = str(Path(__file__).resolve().parent)
if _server_dir not in sys.path:  # pragma: no cover
    sys.path.insert(0, _server_dir)

try:
    __version__ = (Path(__file__).resolve().parent.parent / "VERSION").read_text().strip()
except Exception:  # pragma: no cover
    __version__ = "0.0.0-dev"

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

import models  # noqa: F401  register all models with Base
from api import api_router
from config import settings
from database import Base, engine


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Configure unified logging before anything else
    from logging_config import setup_logging
    setup_logging("Server")

    import logging
    logger = logging.getLogger(__name__)

    # Startup: create tables if they don't exist
    Base.metadata.create_all(bind=engine)

    # Seed the model catalogue on first run
    try:
        from database import SessionLocal
        from services.catalog import seed_default_models
        with SessionLocal() as session:
            seeded = seed_default_models(session)
            if not seeded:
                logger.info("Model catalogue already populated")
    except Exception:
        logger.exception("Failed to seed chat models on startup")

    configured = [name for name, value in settings.provider_credentials().items() if value]
    logger.info("Configured provider credentials: %s", ", ".join(configured) or "none (demo mode)")

    yield


app = FastAPI(title="ModelHub API", version=__version__, lifespan=lifespan)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.CORS_ALLOW_ALL_ORIGINS else [],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# API routes
app.include_router(api_router)

# Serve frontend static files (built SPA: landing page, chat UI, admin dashboard)
frontend_dist = Path(__file__).parent / "frontend" / "dist"
if frontend_dist.exists():
    app.mount("/", StaticFiles(directory=str(frontend_dist), html=True), name="spa")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True, log_config=None)
