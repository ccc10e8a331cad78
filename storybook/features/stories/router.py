# storybook/features/stories/router.py
from typing import AsyncIterator, Optional

from fastapi import APIRouter, Depends, HTTPException

from storybook.config import config
from storybook.errors import StoreConnectionError, StoreWriteError
from storybook.features.story_stream.illustration_service import OpenAIImageModel, illustration_policy
from storybook.lib.blob_storage import BlobPublisher
from storybook.lib.retry import RetryPolicy
from storybook.lib.story_store import StoryStore, open_story_store
from storybook.logger import get_logger

from .schemas import RandomStoryResponse, RegenerateImageRequest, StoryActionResponse, UpdateStoryTextRequest
from .service import load_story, random_story, regenerate_image, update_story_text

router = APIRouter(prefix="/api", tags=["stories"])
log = get_logger(__name__)


async def get_story_store() -> AsyncIterator[StoryStore]:
    if not config.redis_url:
        raise HTTPException(500, "Store connection failed: Missing configuration.")
    try:
        async with open_story_store(config.redis_url) as store:
            yield store
    except StoreConnectionError as e:
        log.error(str(e))
        raise HTTPException(500, "Store connection failed.")


def get_image_model() -> OpenAIImageModel:
    if not config.openai_api_key:
        raise HTTPException(500, "OpenAI API key is not configured")
    return OpenAIImageModel()


def get_publisher() -> BlobPublisher:
    if not config.gcs_bucket:
        raise HTTPException(500, "GCS_BUCKET not configured")
    return BlobPublisher()


def get_regenerate_policy() -> RetryPolicy:
    return illustration_policy()


@router.get("/get-story")
async def get_story_endpoint(storyId: Optional[str] = None, store: StoryStore = Depends(get_story_store)):
    if not storyId:
        raise HTTPException(400, "Missing story ID")
    doc = await load_story(store, storyId)
    return doc.to_wire()


@router.get("/get-random-story", response_model=RandomStoryResponse, response_model_by_alias=True)
async def get_random_story_endpoint(previousId: Optional[str] = None, store: StoryStore = Depends(get_story_store)):
    try:
        return await random_story(store, previousId)
    except StoreConnectionError as e:
        log.error(str(e))
        raise HTTPException(500, "An error occurred while fetching the story") from e


@router.post("/update-story-text", response_model=StoryActionResponse, response_model_by_alias=True, response_model_exclude_none=True)
async def update_story_text_endpoint(req: UpdateStoryTextRequest, store: StoryStore = Depends(get_story_store)):
    try:
        return await update_story_text(store, req)
    except StoreWriteError as e:
        log.exception(f"[story {req.story_id}] text update failed")
        raise HTTPException(500, "Failed to update story text") from e


@router.post("/regenerate-image", response_model=StoryActionResponse, response_model_by_alias=True, response_model_exclude_none=True)
async def regenerate_image_endpoint(
    req: RegenerateImageRequest,
    store: StoryStore = Depends(get_story_store),
    image_model: OpenAIImageModel = Depends(get_image_model),
    publisher: BlobPublisher = Depends(get_publisher),
    policy: RetryPolicy = Depends(get_regenerate_policy),
):
    try:
        return await regenerate_image(store, req, image_model=image_model, publisher=publisher, policy=policy)
    except StoreWriteError as e:
        log.exception(f"[story {req.story_id}] saving regenerated image failed")
        raise HTTPException(500, "Failed to regenerate image") from e
