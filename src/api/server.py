#!/usr/bin/env python
"""FastAPI server for the reelsmith web interface."""

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path

# Add src directory to Python path for imports
src_dir = Path(__file__).parent.parent
if str(src_dir) not in sys.path:
    sys.path.insert(0, str(src_dir))

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.dependencies import get_config, init_services, shutdown_services
from api.routers import media, videos
from api.schemas import HealthResponse, RootResponse
from utils.logging import setup_logging

config = get_config()
setup_logging(config["log_level"], json_output=config["log_json"])
logger = logging.getLogger(__name__)

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_services()
    logger.info("reelsmith API started")
    try:
        yield
    finally:
        await shutdown_services()
        logger.info("reelsmith API stopped")


app = FastAPI(title="reelsmith API", version=VERSION, lifespan=lifespan)

# CORS middleware for development
app.add_middleware(
    CORSMiddleware,
    allow_origins=config["cors_origins"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(videos.router)
app.include_router(media.router)


@app.get("/", response_model=RootResponse)
async def root() -> RootResponse:
    """Root endpoint."""
    return RootResponse(message="reelsmith API", version=VERSION)


@app.get("/api/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(status="healthy")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=config["api_host"], port=config["api_port"])
