# storybook/features/stories/service.py
from __future__ import annotations

import random
from typing import Optional

from fastapi import HTTPException

from storybook.errors import ImageUploadError
from storybook.features.story_stream.illustration_service import OpenAIImageModel
from storybook.features.story_stream.prompt import build_regenerate_prompt
from storybook.lib.blob_storage import BlobPublisher
from storybook.lib.imaging import ensure_png
from storybook.lib.retry import RetryPolicy
from storybook.lib.story_store import StoryStore
from storybook.logger import get_logger
from storybook.schemas import StoryDocument

from .schemas import RandomStoryResponse, RegenerateImageRequest, StoryActionResponse, UpdateStoryTextRequest

log = get_logger(__name__)


async def load_story(store: StoryStore, story_id: str) -> StoryDocument:
    doc = await store.get(story_id)
    if doc is None:
        raise HTTPException(404, "Story not found")
    return doc


def _check_page_index(doc: StoryDocument, page_index: int) -> None:
    if page_index < 0 or page_index >= len(doc.pages):
        raise HTTPException(400, "Invalid page index")


async def update_story_text(store: StoryStore, req: UpdateStoryTextRequest) -> StoryActionResponse:
    doc = await load_story(store, req.story_id)
    _check_page_index(doc, req.page_index)
    doc.pages[req.page_index].text = req.new_text
    await store.set(req.story_id, doc)  # keeps the current expiry
    log.info(f"[story {req.story_id}] page {req.page_index + 1} text updated")
    return StoryActionResponse(message="Story text updated successfully")


async def regenerate_image(
    store: StoryStore,
    req: RegenerateImageRequest,
    *,
    image_model: OpenAIImageModel,
    publisher: BlobPublisher,
    policy: RetryPolicy,
) -> StoryActionResponse:
    doc = await load_story(store, req.story_id)
    _check_page_index(doc, req.page_index)
    prompt = build_regenerate_prompt(doc.pages[req.page_index].text, req.comment)
    label = f"[story {req.story_id}] regenerate page {req.page_index + 1}"

    async def attempt_regenerate(attempt: int) -> str:
        image = await policy.limit(image_model.generate(prompt))
        url = await publisher.publish_page_image(
            ensure_png(image.data),
            story_id=req.story_id,
            page_index=req.page_index,
            prefix="regen-page",
        )
        if not url:
            raise ImageUploadError(f"stories/{req.story_id}/regen-page-{req.page_index + 1}")
        return url

    outcome = await policy.run(attempt_regenerate, label=label)
    if not outcome.succeeded:
        raise HTTPException(500, "Failed to regenerate image")

    doc.pages[req.page_index].image_url = outcome.value
    await store.set(req.story_id, doc)
    log.info(f"{label}: stored {outcome.value}")
    return StoryActionResponse(message="Image regenerated successfully", image_url=outcome.value)


async def random_story(
    store: StoryStore,
    previous_id: Optional[str] = None,
    *,
    rng: Optional[random.Random] = None,
) -> RandomStoryResponse:
    """Pick any stored story, avoiding `previous_id` unless it is the only one."""
    ids = await store.story_ids()
    if not ids:
        raise HTTPException(404, "No stories found")
    candidates = [i for i in ids if i != previous_id] or ids
    story_id = (rng or random).choice(candidates)

    doc = await store.get(story_id)
    if doc is None:
        # expired between the scan and the read
        raise HTTPException(404, "Story not found")
    return RandomStoryResponse(
        id=doc.id,
        title=doc.title,
        subtitle=doc.subtitle,
        created_at=doc.created_at,
        preview_page=doc.pages[0] if doc.pages else None,
        total_pages=len(doc.pages),
    )
