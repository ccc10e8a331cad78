from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from storybook.config import config
from storybook.features.character_photos.router import router as character_photos_router
from storybook.features.stories.router import router as stories_router
from storybook.features.story_ideas.router import router as story_ideas_router
from storybook.features.story_stream.router import router as story_stream_router
from storybook.logger import get_logger

log = get_logger(__name__)

app = FastAPI(title="Storybook API", debug=config.debug)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.allowed_origins,
    allow_credentials=config.allowed_origins != ["*"],  # credentials need explicit origins
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(story_stream_router)
app.include_router(stories_router)
app.include_router(story_ideas_router)
app.include_router(character_photos_router)


@app.get("/healthz")
async def healthz() -> dict:
    return {"ok": True}
