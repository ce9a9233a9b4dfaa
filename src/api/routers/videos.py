"""Video generation routes for the reelsmith API."""

import asyncio
import logging
import uuid

from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect

from api.dependencies import get_config, get_generator, get_record_store
from api.schemas import (
    GenerationCreatedResponse,
    GenerationListResponse,
    GenerationResponse,
    VideoGenerateRequest,
)
from api.websocket_manager import WebSocketManager
from pipeline.generator import GenerationError
from utils.config import validate_config
from utils.progress import ProgressChannel

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Video Generation"])

# Progress channels of running jobs
active_channels: dict[str, ProgressChannel] = {}

# WebSocket manager for generation progress
ws_manager = WebSocketManager()

# Keep references to background tasks to prevent garbage collection
_background_tasks: set = set()


async def _run_generation(job_id: str, request: VideoGenerateRequest, channel: ProgressChannel) -> None:
    """Run one generation job in the background."""
    try:
        await get_generator().generate(request.to_options(), channel=channel, job_id=job_id)
    except GenerationError as e:
        # Already published on the channel and stored on the status row
        logger.warning(f"Generation {job_id} failed: {e}")
    finally:
        active_channels.pop(job_id, None)


@router.post(
    "/api/videos/generate",
    summary="Generate video",
    status_code=202,
    response_model=GenerationCreatedResponse,
)
async def generate_video(request: VideoGenerateRequest) -> GenerationCreatedResponse:
    """Start a generation job. Returns 202 with job_id."""
    if not request.prompt.strip():
        raise HTTPException(status_code=400, detail="Prompt is required")

    errors = validate_config(
        get_config(),
        needs_script=not request.scenes,
        needs_speech=request.include_speech,
    )
    if errors:
        raise HTTPException(status_code=400, detail="; ".join(errors))

    job_id = uuid.uuid4().hex[:12]
    options = request.to_options()
    await get_record_store().create_generation(job_id, options.prompt, options.to_dict())

    channel = ProgressChannel()
    channel.subscribe(ws_manager.listener_for(job_id))
    active_channels[job_id] = channel

    logger.info(f"Generate request {job_id}: '{options.prompt[:60]}', {options.duration:.0f}s")

    task = asyncio.create_task(_run_generation(job_id, request, channel))
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)

    return GenerationCreatedResponse(job_id=job_id, status="pending")


@router.get("/api/videos", summary="List generations", response_model=GenerationListResponse)
async def list_videos(status: str | None = None, limit: int = 50) -> GenerationListResponse:
    """List generation jobs, newest first."""
    rows = await get_record_store().list_generations(status=status, limit=limit)
    return GenerationListResponse(jobs=[GenerationResponse(**row) for row in rows])


@router.get("/api/videos/{job_id}", summary="Get generation", response_model=GenerationResponse)
async def get_video(job_id: str) -> GenerationResponse:
    """Get the status row of one generation job."""
    row = await get_record_store().get_generation(job_id)
    if row is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return GenerationResponse(**row)


@router.websocket("/ws/videos/{job_id}")
async def video_progress(websocket: WebSocket, job_id: str) -> None:
    """WebSocket endpoint streaming progress events of one job."""
    await websocket.accept()

    try:
        channel = active_channels.get(job_id)
        if channel is not None:
            # Replay what happened before the client connected
            await ws_manager.attach(job_id, websocket, channel)
        else:
            row = await get_record_store().get_generation(job_id)
            if row is None:
                await websocket.send_json({"job_id": job_id, "type": "error", "error": "Job not found"})
                await websocket.close()
                return
            await websocket.send_json({"job_id": job_id, "type": "status", **row})

        while True:
            data = await websocket.receive_text()
            if data == "ping":
                await websocket.send_text("pong")

    except WebSocketDisconnect:
        pass
    finally:
        ws_manager.disconnect(job_id, websocket)
