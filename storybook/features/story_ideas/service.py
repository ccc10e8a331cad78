# storybook/features/story_ideas/service.py
from google.genai import types

from storybook.config import config
from storybook.errors import MediaFetchError, StoryIdeaError
from storybook.lib.genai_client import get_client as get_genai_client
from storybook.lib.media import fetch_images
from storybook.logger import get_logger

from .prompt import build_story_idea_prompt
from .schemas import StoryIdeaRequest, StoryIdeaResponse

log = get_logger(__name__)


async def suggest_story_idea(req: StoryIdeaRequest) -> StoryIdeaResponse:
    client = get_genai_client()  # ConfigurationError propagates
    log.info(f"suggesting a story idea from {len(req.photo_urls)} photos")
    try:
        photos = await fetch_images(req.photo_urls)
    except MediaFetchError as e:
        raise StoryIdeaError(str(e)) from e

    parts = [types.Part.from_text(text=build_story_idea_prompt(req))]
    parts += [types.Part.from_bytes(data=p.data, mime_type=p.mime_type) for p in photos]
    try:
        resp = await client.aio.models.generate_content(
            model=config.gemini_text_model,
            contents=[types.Content(role="user", parts=parts)],
            config=types.GenerateContentConfig(temperature=0.8, max_output_tokens=250),
        )
    except Exception as e:
        log.exception("story idea request failed")
        raise StoryIdeaError(str(e)) from e

    idea = (getattr(resp, "text", None) or "").strip()
    if not idea:
        raise StoryIdeaError("the model returned no suggestion")
    return StoryIdeaResponse(suggested_idea=idea, photo_count=len(req.photo_urls))
