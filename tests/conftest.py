# tests/conftest.py
import asyncio
import base64
import dataclasses
import functools
import json
from io import BytesIO

import fakeredis
import pytest
from fakeredis import aioredis as fake_aioredis
from fastapi.testclient import TestClient
from PIL import Image

from storybook.config import config
from storybook.lib.blob_storage import BlobPublisher
from storybook.lib.retry import RetryPolicy, linear_backoff
from storybook.lib.story_store import open_story_store
from storybook.features.story_stream.illustration_service import is_retryable_image_error
from storybook.main import app

# -------- Test client --------
@pytest.fixture(scope="session")
def client():
    return TestClient(app)


@pytest.fixture
def overrides():
    yield app.dependency_overrides
    app.dependency_overrides.clear()


# -------- Utilities --------
def _tiny_png_base64() -> str:
    # 1x1 transparent PNG
    return (
        "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAQAAAC1HAwCAAAAC0lEQVR4nGNg"
        "YAAAAAMAASsJTYQAAAAASUVORK5CYII="
    )

def _fake_png_bytes(w=16, h=16) -> bytes:
    im = Image.new("RGB", (w, h), (123, 45, 67))
    buf = BytesIO()
    im.save(buf, format="PNG")
    return buf.getvalue()

def _fake_jpeg_bytes(w=16, h=16) -> bytes:
    im = Image.new("RGB", (w, h), (10, 20, 30))
    buf = BytesIO()
    im.save(buf, format="JPEG")
    return buf.getvalue()


def story_payload(**overrides) -> dict:
    payload = {
        "characters": [
            {"id": "c1", "name": "Finn", "isMain": True, "gender": "male"},
            {"id": "c2", "name": "Mia", "isMain": False, "gender": "female"},
        ],
        "ageRange": "4-6",
        "storyPlotOption": "describe",
        "storyDescription": "a fox learns to share",
        "storyStyle": "watercolor",
        "storyLengthTargetPages": 3,
    }
    payload.update(overrides)
    return payload


def pages_json(texts) -> str:
    return json.dumps({"storyPages": list(texts)})


# -------- Fake OpenAI (async) --------
class _MockImageData:
    def __init__(self, b64_json):
        self.b64_json = b64_json

class _MockImagesResponse:
    def __init__(self, b64_json):
        self.data = [_MockImageData(b64_json)]

class _MockMessage:
    def __init__(self, content):
        self.content = content

class _MockChoice:
    def __init__(self, content):
        self.message = _MockMessage(content)

class _MockChatResponse:
    def __init__(self, content):
        self.choices = [_MockChoice(content)]


class FakeChatCompletions:
    """Story requests get `story_content`; title requests (max_tokens set) get `title`."""

    def __init__(self, story_content: str, title: str = "Finn and the Shared Berries"):
        self.story_content = story_content
        self.title = title
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if "max_tokens" in kwargs:
            if isinstance(self.title, Exception):
                raise self.title
            return _MockChatResponse(self.title)
        if isinstance(self.story_content, Exception):
            raise self.story_content
        return _MockChatResponse(self.story_content)


class FakeImages:
    """`behaviour(prompt)` may return b64, raise, or sleep; default is a tiny PNG."""

    def __init__(self, behaviour=None):
        self.behaviour = behaviour
        self.generate_calls = []
        self.edit_calls = []

    async def _answer(self, prompt):
        if self.behaviour is None:
            return _MockImagesResponse(base64.b64encode(_fake_png_bytes()).decode("ascii"))
        result = self.behaviour(prompt)
        if asyncio.iscoroutine(result):
            result = await result
        return _MockImagesResponse(result)

    async def generate(self, **kwargs):
        self.generate_calls.append(kwargs)
        return await self._answer(kwargs["prompt"])

    async def edit(self, **kwargs):
        self.edit_calls.append(kwargs)
        return await self._answer(kwargs["prompt"])


class FakeOpenAI:
    def __init__(self, story_content="", title="Finn and the Shared Berries", image_behaviour=None):
        class _Chat:
            pass
        self.chat = _Chat()
        self.chat.completions = FakeChatCompletions(story_content, title)
        self.images = FakeImages(image_behaviour)


# -------- Fake Gemini (async) --------
class _MockGenaiResponse:
    def __init__(self, text):
        self.text = text

class FakeGenaiModels:
    def __init__(self, text):
        self.text = text
        self.calls = []

    async def generate_content(self, **kwargs):
        self.calls.append(kwargs)
        if isinstance(self.text, Exception):
            raise self.text
        return _MockGenaiResponse(self.text)

class FakeGenai:
    def __init__(self, text):
        class _Aio:
            pass
        self.aio = _Aio()
        self.aio.models = FakeGenaiModels(text)


# -------- Fake GCS --------
class FakeBlob:
    def __init__(self, bucket, name):
        self.bucket = bucket
        self.name = name
        self.cache_control = None

    def upload_from_string(self, data, content_type=None):
        if self.bucket.client.fail_uploads:
            self.bucket.client.fail_uploads -= 1
            raise RuntimeError("simulated upload failure")
        self.bucket.client.objects[self.name] = (data, content_type)


class FakeBucket:
    def __init__(self, client, name):
        self.client = client
        self.name = name

    def blob(self, name):
        return FakeBlob(self, name)


class FakeStorageClient:
    def __init__(self, fail_uploads: int = 0):
        self.objects = {}
        self.fail_uploads = fail_uploads

    def bucket(self, name):
        return FakeBucket(self, name)


# -------- Fixtures --------
@pytest.fixture
def test_config():
    return dataclasses.replace(
        config,
        openai_api_key="sk-test",
        google_api_key="g-test",
        gcs_bucket="story-assets",
        gcs_public_base_url="https://storage.googleapis.com",
        redis_url="redis://fake:6379/0",
        story_ttl_seconds=86400,
        image_timeout_seconds=0.2,
    )


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def fast_policy(sleeps):
    async def _record_sleep(seconds):
        sleeps.append(seconds)

    return RetryPolicy(
        max_attempts=3,
        backoff=linear_backoff(2.0),
        timeout_seconds=0.5,
        retry_on=is_retryable_image_error,
        sleep=_record_sleep,
    )


@pytest.fixture
def storage_client():
    return FakeStorageClient()


@pytest.fixture
def publisher(storage_client):
    return BlobPublisher("story-assets", public_base_url="https://storage.googleapis.com",
                         client_factory=lambda: storage_client)


@pytest.fixture
def redis_server():
    return fakeredis.FakeServer()


@pytest.fixture
def sync_redis(redis_server):
    return fakeredis.FakeRedis(server=redis_server, decode_responses=True)


@pytest.fixture
def open_store(redis_server):
    def _connect(url):
        return fake_aioredis.FakeRedis(server=redis_server, decode_responses=True)
    return functools.partial(open_story_store, connect=_connect)
