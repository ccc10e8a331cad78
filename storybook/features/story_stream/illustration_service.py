# storybook/features/story_stream/illustration_service.py
from __future__ import annotations

import asyncio
import base64
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Sequence

import openai

from storybook.config import Config, config
from storybook.errors import ConfigurationError, ImageGenerationError, ImageUploadError
from storybook.lib import openai_client
from storybook.lib.blob_storage import BlobPublisher
from storybook.lib.imaging import ensure_png, sniff_mime, to_data_uri
from storybook.lib.media import FetchedMedia, fetch_image_or_none
from storybook.lib.retry import RetryPolicy, linear_backoff
from storybook.logger import get_logger
from storybook.schemas import StoryRequest

from .progress import ProgressChannel
from .prompt import build_illustration_prompt
from .schemas import ImagePreviewEvent

log = get_logger(__name__)


def is_retryable_image_error(exc: BaseException) -> bool:
    # bad credentials will not fix themselves between attempts
    return not isinstance(exc, (ConfigurationError, openai.AuthenticationError, openai.PermissionDeniedError))


def illustration_policy(cfg: Config = config, **overrides) -> RetryPolicy:
    params = dict(
        max_attempts=cfg.image_max_attempts,
        backoff=linear_backoff(cfg.image_backoff_seconds),
        timeout_seconds=cfg.image_timeout_seconds,
        retry_on=is_retryable_image_error,
    )
    params.update(overrides)
    return RetryPolicy(**params)


@dataclass(frozen=True)
class GeneratedImage:
    data: bytes
    mime_type: str = "image/png"


class OpenAIImageModel:
    """Image model adapter: plain generation, or edits when reference photos are supplied."""

    def __init__(self, *, cfg: Config = config, client=None):
        self.cfg = cfg
        self._client = client

    @property
    def client(self):
        return self._client or openai_client.get_client()

    @property
    def supports_references(self) -> bool:
        # dall-e-3 has no edit endpoint; gpt-image models accept reference images
        return not self.cfg.openai_image_model.startswith("dall-e")

    async def generate(self, prompt: str, reference_images: Sequence[FetchedMedia] = ()) -> GeneratedImage:
        model = self.cfg.openai_image_model
        if reference_images and self.supports_references:
            files = [
                (f"reference-{i + 1}.{ref.mime_type.split('/')[-1]}", ref.data, ref.mime_type)
                for i, ref in enumerate(reference_images)
            ]
            resp = await self.client.images.edit(model=model, prompt=prompt, size=self.cfg.image_size, n=1, image=files)
        else:
            kwargs = {}
            if model.startswith("dall-e"):
                kwargs = {"quality": "standard", "style": "vivid", "response_format": "b64_json"}
            resp = await self.client.images.generate(model=model, prompt=prompt, size=self.cfg.image_size, n=1, **kwargs)

        b64 = resp.data[0].b64_json if resp.data else None
        if not b64:
            raise ImageGenerationError(f"no image data received from {model}")
        data = base64.b64decode(b64)
        return GeneratedImage(data=data, mime_type=sniff_mime(data) or "image/png")


class IllustrationGenerator:
    """
    Illustrates pages one at a time, in order. A page that keeps failing ends
    up as None; it never aborts the remaining pages.
    """

    def __init__(
        self,
        *,
        cfg: Config = config,
        image_model: Optional[OpenAIImageModel] = None,
        publisher: Optional[BlobPublisher] = None,
        policy: Optional[RetryPolicy] = None,
        fetch_reference: Callable[[str], Awaitable[Optional[FetchedMedia]]] = fetch_image_or_none,
    ):
        self.image_model = image_model or OpenAIImageModel(cfg=cfg)
        self.publisher = publisher or BlobPublisher(cfg.gcs_bucket, public_base_url=cfg.gcs_public_base_url)
        self.policy = policy or illustration_policy(cfg)
        self._fetch_reference = fetch_reference

    async def load_references(self, req: StoryRequest) -> List[FetchedMedia]:
        if not self.image_model.supports_references:
            return []
        urls = [c.uploaded_photo_url for c in req.characters if c.uploaded_photo_url]
        if not urls:
            return []
        fetched = await asyncio.gather(*(self._fetch_reference(u) for u in urls))
        refs = [m for m in fetched if m is not None]
        log.info(f"loaded {len(refs)}/{len(urls)} character reference photos")
        return refs

    async def illustrate(
        self,
        *,
        story_id: str,
        pages: List[str],
        req: StoryRequest,
        channel: ProgressChannel,
    ) -> List[Optional[str]]:
        total = len(pages)
        references = await self.load_references(req)
        results: List[Optional[str]] = []
        for index, text in enumerate(pages):
            results.append(
                await self.illustrate_page(
                    story_id=story_id,
                    page_index=index,
                    page_text=text,
                    total=total,
                    req=req,
                    channel=channel,
                    references=references,
                )
            )

        failed = sum(1 for url in results if url is None)
        if failed:
            message = f"Illustrations finished; {failed} of {total} could not be generated."
        else:
            message = "All illustrations generated successfully!"
        channel.progress("illustrating", message, status="complete", current=total, total=total,
                         detail="All illustrations complete!")
        log.info(f"[story {story_id}] illustration stage done; {failed} of {total} pages without an image")
        return results

    async def illustrate_page(
        self,
        *,
        story_id: str,
        page_index: int,
        page_text: str,
        total: int,
        req: StoryRequest,
        channel: ProgressChannel,
        references: Sequence[FetchedMedia] = (),
    ) -> Optional[str]:
        page_no = page_index + 1
        prompt = build_illustration_prompt(
            page_text=page_text,
            req=req,
            page_index=page_index,
            total_pages=total,
            has_references=bool(references) and self.image_model.supports_references,
        )

        async def announce(attempt: int) -> None:
            channel.progress(
                "illustrating",
                f"Generating illustration {page_no} of {total}...",
                current=page_no,
                total=total,
                detail="Creating title page illustration" if page_index == 0 else f"Creating illustration for page {page_index}",
            )
            log.info(f"[story {story_id}] page {page_no}: generating image (attempt {attempt})")

        async def attempt_page(attempt: int) -> str:
            image = await self.policy.limit(self.image_model.generate(prompt, references))
            channel.send(ImagePreviewEvent(page_index=page_index, preview_url=to_data_uri(image.data, image.mime_type)))
            url = await self.publisher.publish_page_image(ensure_png(image.data), story_id=story_id, page_index=page_index)
            if not url:
                raise ImageUploadError(f"stories/{story_id}/page-{page_no}")
            return url

        outcome = await self.policy.run(attempt_page, label=f"[story {story_id}] page {page_no}", on_attempt=announce)
        if outcome.succeeded:
            return outcome.value

        channel.progress(
            "illustrating",
            f"Failed to generate illustration {page_no}, continuing with others...",
            current=page_no,
            total=total,
            detail="Generation failed, continuing...",
        )
        return None
