# storybook/features/story_ideas/router.py
from fastapi import APIRouter, HTTPException

from storybook.errors import ConfigurationError, StoryIdeaError
from storybook.logger import get_logger

from .schemas import StoryIdeaRequest, StoryIdeaResponse
from .service import suggest_story_idea

router = APIRouter(prefix="/api", tags=["story-ideas"])
log = get_logger(__name__)


@router.post("/suggest-story-idea", response_model=StoryIdeaResponse, response_model_by_alias=True)
async def suggest_story_idea_endpoint(req: StoryIdeaRequest):
    try:
        return await suggest_story_idea(req)
    except ConfigurationError as e:
        log.error(str(e))
        raise HTTPException(500, "Server configuration error: Missing Google API key") from e
    except StoryIdeaError as e:
        raise HTTPException(500, str(e)) from e
