# storybook/features/story_stream/text_service.py
from __future__ import annotations

import json
import random
from typing import Any, Awaitable, Callable, List, Optional

from google.genai import types

from storybook.config import Config, config
from storybook.errors import ConfigurationError, MediaFetchError, StoryTextError
from storybook.lib import openai_client
from storybook.lib.genai_client import get_client as get_genai_client
from storybook.lib.json_tools import extract_json_block, strip_wrapping_quotes
from storybook.lib.media import FetchedMedia, fetch_images
from storybook.logger import get_logger
from storybook.schemas import StoryRequest

from .prompt import (
    build_photo_story_prompt,
    build_story_system_prompt,
    build_story_user_prompt,
    build_title_prompts,
)

log = get_logger(__name__)

TITLE_PREFIXES = (
    "The Adventure of",
    "The Magical Journey of",
    "The Incredible Tale of",
    "The Fantastic Quest of",
    "The Amazing Day with",
)


def parse_story_pages(raw: Optional[str], expected: int) -> List[str]:
    """
    Validate a model answer of the form {"storyPages": [...]} (a bare array is
    accepted too). Anything but exactly `expected` non-empty strings fails.
    """
    if not raw or not raw.strip():
        raise StoryTextError("no content returned by the model")
    try:
        data: Any = json.loads(extract_json_block(raw))
    except ValueError as e:
        raise StoryTextError(f"response was not valid JSON ({e})") from e

    pages = data.get("storyPages") if isinstance(data, dict) else data
    if not isinstance(pages, list):
        raise StoryTextError("Invalid response format: missing storyPages array")
    if len(pages) != expected:
        raise StoryTextError(f"Invalid response format: expected {expected} paragraphs but received {len(pages)}")
    if not all(isinstance(p, str) and p.strip() for p in pages):
        raise StoryTextError("Invalid response format: every page must be a non-empty string")
    return [p.strip() for p in pages]


def fallback_title(main_name: str, rng: random.Random | None = None) -> str:
    prefix = (rng or random).choice(TITLE_PREFIXES)
    return f"{prefix} {main_name}"


class StoryTextGenerator:
    """
    Text stage. `describe` and `starter` plots go to the OpenAI chat model;
    `photos` plots send the fetched photos inline to Gemini. One call, no retry.
    """

    def __init__(
        self,
        *,
        cfg: Config = config,
        openai=None,
        genai_factory: Callable[[], Any] = get_genai_client,
        fetch_photos: Callable[[List[str]], Awaitable[List[FetchedMedia]]] = fetch_images,
    ):
        self.cfg = cfg
        self._openai = openai
        self._genai_factory = genai_factory
        self._fetch_photos = fetch_photos

    @property
    def openai(self):
        return self._openai or openai_client.get_client()

    async def generate(self, req: StoryRequest) -> List[str]:
        n = req.story_length_target_pages
        if req.story_plot_option == "photos":
            raw = await self._from_photos(req)
        else:
            raw = await self._from_description(req)
        pages = parse_story_pages(raw, n)
        log.info(f"text stage produced {len(pages)} pages ({req.story_plot_option} mode)")
        return pages

    async def _from_description(self, req: StoryRequest) -> str:
        client = self.openai  # ConfigurationError propagates
        log.info(f"requesting {req.story_length_target_pages} paragraphs from {self.cfg.openai_text_model}")
        try:
            resp = await client.chat.completions.create(
                model=self.cfg.openai_text_model,
                temperature=0.7,
                response_format={"type": "json_object"},
                messages=[
                    {"role": "system", "content": build_story_system_prompt(req)},
                    {"role": "user", "content": build_story_user_prompt(req)},
                ],
            )
        except Exception as e:
            log.exception("story text request failed")
            raise StoryTextError(str(e)) from e
        return (resp.choices[0].message.content or "").strip()

    async def _from_photos(self, req: StoryRequest) -> str:
        client = self._genai_factory()  # ConfigurationError propagates
        urls = req.uploaded_story_photo_urls
        log.info(f"processing {len(urls)} photos for story generation")
        try:
            photos = await self._fetch_photos(urls)
        except MediaFetchError as e:
            raise StoryTextError(f"could not load story photos: {e}") from e

        parts = [types.Part.from_text(text=build_photo_story_prompt(req))]
        parts += [types.Part.from_bytes(data=p.data, mime_type=p.mime_type) for p in photos]
        try:
            resp = await client.aio.models.generate_content(
                model=self.cfg.gemini_text_model,
                contents=[types.Content(role="user", parts=parts)],
                config=types.GenerateContentConfig(
                    response_mime_type="application/json",
                    temperature=0.7,
                    max_output_tokens=2048,
                ),
            )
        except ConfigurationError:
            raise
        except Exception as e:
            log.exception("photo story request failed")
            raise StoryTextError(f"photo story request failed: {e}") from e
        return (getattr(resp, "text", None) or "").strip()

    async def generate_title(self, pages: List[str], req: StoryRequest) -> str:
        """A model-written title; a stock title when the model fails or says nothing."""
        main_name = req.main_character.name.strip() or "the Hero"
        system, user = build_title_prompts(pages, req.age_range, main_name)
        try:
            resp = await self.openai.chat.completions.create(
                model=self.cfg.openai_title_model,
                temperature=0.8,
                max_tokens=30,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": user},
                ],
            )
            title = strip_wrapping_quotes(resp.choices[0].message.content or "")
        except Exception as e:
            log.warning(f"title generation failed, using fallback: {e}")
            return fallback_title(main_name)
        if not title:
            return fallback_title(main_name)
        log.info(f"generated title: {title!r}")
        return title
