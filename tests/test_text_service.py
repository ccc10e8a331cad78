# tests/test_text_service.py
import dataclasses
import json
import random

import pytest

from storybook.errors import ConfigurationError, MediaFetchError, StoryTextError
from storybook.features.story_stream.text_service import (
    TITLE_PREFIXES,
    StoryTextGenerator,
    fallback_title,
    parse_story_pages,
)
from storybook.lib import openai_client
from storybook.lib.media import FetchedMedia
from storybook.schemas import StoryRequest
from tests.conftest import FakeGenai, FakeOpenAI, pages_json, story_payload


def _req(**overrides):
    return StoryRequest.model_validate(story_payload(**overrides))


# -------- parse_story_pages --------
def test_parse_accepts_object_and_strips():
    assert parse_story_pages(pages_json([" a ", "b", "c"]), 3) == ["a", "b", "c"]


def test_parse_accepts_fenced_and_bare_array():
    assert parse_story_pages('```json\n["a","b","c"]\n```', 3) == ["a", "b", "c"]


@pytest.mark.parametrize(
    "raw,needle",
    [
        ("", "no content"),
        ("not json at all", "valid JSON"),
        (json.dumps({"pages": ["a", "b", "c"]}), "missing storyPages array"),
        (pages_json(["a", "b"]), "expected 3 paragraphs but received 2"),
        (pages_json(["a", "", "c"]), "non-empty string"),
        (json.dumps({"storyPages": ["a", 2, "c"]}), "non-empty string"),
    ],
)
def test_parse_rejects_bad_answers(raw, needle):
    with pytest.raises(StoryTextError) as ei:
        parse_story_pages(raw, 3)
    assert needle in str(ei.value)
    assert str(ei.value).startswith("Failed to generate story text")


def test_fallback_title_uses_known_prefix():
    title = fallback_title("Finn", random.Random(1))
    assert title.endswith(" Finn")
    assert any(title.startswith(p) for p in TITLE_PREFIXES)


# -------- describe / starter --------
@pytest.mark.asyncio
async def test_generate_from_description(test_config):
    fake = FakeOpenAI(story_content=pages_json(["One.", "Two.", "Three."]))
    gen = StoryTextGenerator(cfg=test_config, openai=fake)
    assert await gen.generate(_req()) == ["One.", "Two.", "Three."]

    call = fake.chat.completions.calls[0]
    assert call["model"] == test_config.openai_text_model
    assert call["response_format"] == {"type": "json_object"}
    assert [m["role"] for m in call["messages"]] == ["system", "user"]


@pytest.mark.asyncio
async def test_generate_wraps_model_failure(test_config):
    fake = FakeOpenAI(story_content=RuntimeError("rate limited"))
    gen = StoryTextGenerator(cfg=test_config, openai=fake)
    with pytest.raises(StoryTextError):
        await gen.generate(_req())


@pytest.mark.asyncio
async def test_generate_rejects_wrong_page_count(test_config):
    fake = FakeOpenAI(story_content=pages_json(["One.", "Two."]))
    gen = StoryTextGenerator(cfg=test_config, openai=fake)
    with pytest.raises(StoryTextError) as ei:
        await gen.generate(_req())
    assert ei.value.reason == "Invalid response format: expected 3 paragraphs but received 2"


# -------- photos --------
@pytest.mark.asyncio
async def test_generate_from_photos_sends_images_inline(test_config):
    genai = FakeGenai(pages_json(["P1.", "P2.", "P3."]))
    fetched = []

    async def fake_fetch(urls):
        fetched.extend(urls)
        return [FetchedMedia(url=u, data=b"\xff\xd8jpeg", mime_type="image/jpeg") for u in urls]

    gen = StoryTextGenerator(cfg=test_config, openai=FakeOpenAI(), genai_factory=lambda: genai, fetch_photos=fake_fetch)
    req = _req(storyPlotOption="photos", uploadedStoryPhotoUrls=["https://cdn.example.com/1.jpg", "https://cdn.example.com/2.jpg"])

    assert await gen.generate(req) == ["P1.", "P2.", "P3."]
    assert fetched == req.uploaded_story_photo_urls
    call = genai.aio.models.calls[0]
    assert call["model"] == test_config.gemini_text_model
    parts = call["contents"][0].parts
    assert len(parts) == 3
    assert parts[1].inline_data.mime_type == "image/jpeg"


@pytest.mark.asyncio
async def test_photo_fetch_failure_is_a_text_error(test_config):
    async def failing_fetch(urls):
        raise MediaFetchError(urls[0], "404 Not Found")

    gen = StoryTextGenerator(cfg=test_config, genai_factory=lambda: FakeGenai(""), fetch_photos=failing_fetch)
    req = _req(storyPlotOption="photos", uploadedStoryPhotoUrls=["https://cdn.example.com/1.jpg"])
    with pytest.raises(StoryTextError):
        await gen.generate(req)


@pytest.mark.asyncio
async def test_photo_mode_without_google_key_is_configuration_error(test_config):
    def no_client():
        raise ConfigurationError(["GOOGLE_API_KEY"])

    gen = StoryTextGenerator(cfg=test_config, genai_factory=no_client)
    req = _req(storyPlotOption="photos", uploadedStoryPhotoUrls=["https://cdn.example.com/1.jpg"])
    with pytest.raises(ConfigurationError):
        await gen.generate(req)


# -------- title --------
@pytest.mark.asyncio
async def test_generate_title_strips_quotes(test_config):
    fake = FakeOpenAI(title='"Finn Shares the Berries"')
    gen = StoryTextGenerator(cfg=test_config, openai=fake)
    assert await gen.generate_title(["a", "b", "c"], _req()) == "Finn Shares the Berries"
    assert fake.chat.completions.calls[0]["max_tokens"] == 30


@pytest.mark.asyncio
@pytest.mark.parametrize("title", [RuntimeError("down"), "   "])
async def test_generate_title_falls_back(test_config, title):
    gen = StoryTextGenerator(cfg=test_config, openai=FakeOpenAI(title=title))
    result = await gen.generate_title(["a", "b", "c"], _req())
    assert result.endswith(" Finn")
    assert any(result.startswith(p) for p in TITLE_PREFIXES)


@pytest.mark.asyncio
async def test_missing_openai_key_is_configuration_error(test_config, monkeypatch):
    monkeypatch.setattr(openai_client, "config", dataclasses.replace(openai_client.config, openai_api_key=""))
    monkeypatch.setattr(openai_client, "_client", None)

    gen = StoryTextGenerator(cfg=test_config)
    with pytest.raises(ConfigurationError) as ei:
        await gen.generate(_req())
    assert ei.value.missing == ["OPENAI_API_KEY"]


def test_openai_client_is_created_once(monkeypatch):
    monkeypatch.setattr(openai_client, "config", dataclasses.replace(openai_client.config, openai_api_key="sk-test"))
    monkeypatch.setattr(openai_client, "_client", None)
    assert openai_client.get_client() is openai_client.get_client()
