# storybook/features/story_stream/router.py
from __future__ import annotations

import asyncio
import uuid
from typing import Any, Callable, Set

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from storybook.lib.sse import SSE_HEADERS, format_sse
from storybook.logger import get_logger

from .pipeline import StoryPipeline
from .progress import ProgressChannel

router = APIRouter(prefix="/api", tags=["story-stream"])
log = get_logger(__name__)

PipelineFactory = Callable[[Any, ProgressChannel, str], StoryPipeline]

# strong references so running pipelines are not garbage collected mid-flight
_running: Set[asyncio.Task] = set()


def get_pipeline_factory() -> PipelineFactory:
    def build(payload: Any, channel: ProgressChannel, story_id: str) -> StoryPipeline:
        return StoryPipeline(payload, channel, story_id=story_id)
    return build


@router.post("/generate-story-stream")
async def generate_story_stream(
    request: Request,
    make_pipeline: PipelineFactory = Depends(get_pipeline_factory),
) -> StreamingResponse:
    """
    Generate a story and stream progress as server-sent events. The body is
    validated inside the stream so the caller always gets `connection` first.
    """
    story_id = str(uuid.uuid4())
    try:
        payload = await request.json()
    except ValueError:
        log.warning(f"[story {story_id}] request body is not JSON")
        payload = None

    channel = ProgressChannel(story_id)
    pipeline = make_pipeline(payload, channel, story_id)
    task = asyncio.create_task(pipeline.run())
    _running.add(task)
    task.add_done_callback(_running.discard)
    log.info(f"[story {story_id}] generation started")

    async def event_stream():
        try:
            async for event in channel:
                yield format_sse(event.event, event.payload())
        finally:
            if not channel.closed:
                # the pipeline keeps going and only notices on its next write
                log.warning(f"[story {story_id}] client disconnected mid-stream")
                channel.detach_reader()

    return StreamingResponse(event_stream(), media_type="text/event-stream", headers=SSE_HEADERS)
