# storybook/features/story_stream/pipeline.py
from __future__ import annotations

import json
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, AsyncContextManager, Awaitable, Callable, List, Optional

from pydantic import ValidationError

from storybook.config import Config, config
from storybook.errors import (
    ConfigurationError,
    StoreConnectionError,
    StoryError,
    StoryTextError,
    UNEXPECTED_ERROR_MESSAGE,
    friendly_error_message,
)
from storybook.lib.story_store import StoryStore, open_story_store
from storybook.logger import get_logger
from storybook.schemas import StoryDocument, StoryPage, StoryRequest

from .illustration_service import IllustrationGenerator
from .progress import ProgressChannel
from .schemas import CompleteEvent, ConnectionEvent, ErrorEvent
from .text_service import StoryTextGenerator

log = get_logger(__name__)


class PipelineState(str, Enum):
    created = "created"
    connection_established = "connection-established"
    validating = "validating"
    writing = "writing"
    illustrating = "illustrating"
    saving = "saving"
    complete = "complete"
    error = "error"


_ORDER = [
    PipelineState.created,
    PipelineState.connection_established,
    PipelineState.validating,
    PipelineState.writing,
    PipelineState.illustrating,
    PipelineState.saving,
]
TERMINAL_STATES = (PipelineState.complete, PipelineState.error)


class StageStatus(str, Enum):
    ok = "ok"
    retryable = "retryable"  # the caller may resubmit the same request
    fatal = "fatal"          # resubmitting will not help without a change


@dataclass
class StageResult:
    status: StageStatus
    value: Any = None
    error: Optional[BaseException] = None
    message: Optional[str] = None
    details: Any = None

    @classmethod
    def ok(cls, value: Any = None) -> "StageResult":
        return cls(StageStatus.ok, value=value)

    @classmethod
    def retryable(cls, error: BaseException, **kw) -> "StageResult":
        return cls(StageStatus.retryable, error=error, **kw)

    @classmethod
    def fatal(cls, error: BaseException, **kw) -> "StageResult":
        return cls(StageStatus.fatal, error=error, **kw)

    @property
    def succeeded(self) -> bool:
        return self.status is StageStatus.ok


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


StoreOpener = Callable[[Optional[str]], AsyncContextManager[StoryStore]]


class StoryPipeline:
    """
    One story generation run:
    connection-established -> validating -> writing -> illustrating -> saving -> complete | error.

    Stages run strictly in that order and report a StageResult; the first
    non-ok result ends the run with a single `error` event. The output
    channel is closed exactly once, whatever happens.
    """

    def __init__(
        self,
        payload: Any,
        channel: ProgressChannel,
        *,
        story_id: Optional[str] = None,
        cfg: Config = config,
        text_generator: Optional[StoryTextGenerator] = None,
        illustrator: Optional[IllustrationGenerator] = None,
        open_store: StoreOpener = open_story_store,
    ):
        self.payload = payload
        self.channel = channel
        self.story_id = story_id or channel.story_id or str(uuid.uuid4())
        self.cfg = cfg
        self.text_generator = text_generator or StoryTextGenerator(cfg=cfg)
        self.illustrator = illustrator or IllustrationGenerator(cfg=cfg)
        self._open_store = open_store

        self.state = PipelineState.created
        self.request: Optional[StoryRequest] = None
        self.pages: List[str] = []
        self.image_urls: List[Optional[str]] = []
        self.document: Optional[StoryDocument] = None
        self._store: Optional[StoryStore] = None

    # -------------------------------------------------------------------
    # State bookkeeping
    # -------------------------------------------------------------------

    def _enter(self, state: PipelineState) -> None:
        if self.state in TERMINAL_STATES:
            raise RuntimeError(f"pipeline already finished ({self.state.value})")
        if state not in TERMINAL_STATES and _ORDER.index(state) < _ORDER.index(self.state):
            raise RuntimeError(f"illegal transition {self.state.value} -> {state.value}")
        log.debug(f"[story {self.story_id}] {self.state.value} -> {state.value}")
        self.state = state

    def _fail(self, message: str, details: Any = None) -> None:
        self._enter(PipelineState.error)
        log.info(f"[story {self.story_id}] sending error event: {message}")
        self.channel.send(ErrorEvent(message=message, details=details))

    def _finish(self, result: StageResult) -> None:
        err = result.error
        if result.status is StageStatus.fatal:
            log.error(f"[story {self.story_id}] stage {self.state.value} failed: {err}")
        else:
            log.warning(f"[story {self.story_id}] stage {self.state.value} failed (retryable): {err}")
        message = result.message or (friendly_error_message(err) if err else UNEXPECTED_ERROR_MESSAGE)
        self._fail(message, result.details)

    async def _run_stages(self, *stages: Callable[[], Awaitable[StageResult]]) -> bool:
        for stage in stages:
            result = await stage()
            if not result.succeeded:
                self._finish(result)
                return False
        return True

    # -------------------------------------------------------------------
    # Entry point
    # -------------------------------------------------------------------

    async def run(self) -> Optional[StoryDocument]:
        self._enter(PipelineState.connection_established)
        self.channel.send(ConnectionEvent())
        try:
            if not await self._run_stages(self._validate, self._check_configuration):
                return None
            async with self._open_store(self.cfg.redis_url) as store:
                self._store = store
                if not await self._run_stages(self._write, self._illustrate, self._save):
                    return None
                self._complete()
                return self.document
        except StoreConnectionError as e:
            log.error(f"[story {self.story_id}] {e}")
            self._fail(friendly_error_message(e))
        except Exception as e:
            log.exception(f"[story {self.story_id}] unexpected pipeline failure: {e}")
            if self.state not in TERMINAL_STATES:
                self._fail(friendly_error_message(e))
        finally:
            self._store = None
            self.channel.close()
        return None

    # -------------------------------------------------------------------
    # Stages
    # -------------------------------------------------------------------

    async def _validate(self) -> StageResult:
        self._enter(PipelineState.validating)
        self.channel.progress("validating", "Validating input data...")
        if isinstance(self.payload, StoryRequest):
            self.request = self.payload
        else:
            try:
                self.request = StoryRequest.model_validate(self.payload)
            except ValidationError as e:
                log.warning(f"[story {self.story_id}] invalid input: {e}")
                details = json.loads(e.json(include_url=False, include_context=False))
                return StageResult.fatal(e, message="Invalid input", details=details)
        self.channel.progress("validating", "Input validation successful", status="complete")
        return StageResult.ok(self.request)

    async def _check_configuration(self) -> StageResult:
        missing = self.cfg.missing_credentials(self.request.story_plot_option)
        if missing:
            err = ConfigurationError(missing)
            return StageResult.fatal(
                err,
                message="Story generation is not configured on the server.",
                details={"missing": missing},
            )
        return StageResult.ok()

    async def _write(self) -> StageResult:
        self._enter(PipelineState.writing)
        req = self.request
        self.channel.progress("writing", "Creating your unique story...")
        if req.story_plot_option == "photos":
            self.channel.progress("writing", "Analyzing photos and crafting your story...")
        else:
            self.channel.progress("writing", "Creating your story from description...")
        try:
            self.pages = await self.text_generator.generate(req)
        except StoryTextError as e:
            return StageResult.retryable(e, details=e.reason)
        except ConfigurationError as e:
            return StageResult.fatal(e, message="Story generation is not configured on the server.",
                                     details={"missing": e.missing})
        self.channel.progress("writing", "Story text generated successfully!", status="complete")
        return StageResult.ok(self.pages)

    async def _illustrate(self) -> StageResult:
        self._enter(PipelineState.illustrating)
        total = len(self.pages)
        self.channel.progress("illustrating", "Starting illustration process...", current=0, total=total)
        try:
            self.image_urls = await self.illustrator.illustrate(
                story_id=self.story_id,
                pages=self.pages,
                req=self.request,
                channel=self.channel,
            )
        except StoryError as e:
            return StageResult.fatal(e)
        return StageResult.ok(self.image_urls)

    async def _save(self) -> StageResult:
        self._enter(PipelineState.saving)
        req = self.request
        self.channel.progress("saving", "Assembling your storybook...")
        pages = [StoryPage(text=text, image_url=url) for text, url in zip(self.pages, self.image_urls)]

        self.channel.progress("saving", "Creating the perfect title for your story...")
        title = await self.text_generator.generate_title(self.pages, req)

        self.document = StoryDocument(
            id=self.story_id,
            title=title,
            subtitle=f"A story for {req.age_range} year olds",
            created_at=_now_iso(),
            pages=pages,
            characters=list(req.characters),
        )
        try:
            await self._store.set(self.story_id, self.document, ttl_seconds=self.cfg.story_ttl_seconds)
        except StoryError as e:
            log.exception(f"[story {self.story_id}] saving failed")
            return StageResult.fatal(e)
        log.info(f"[story {self.story_id}] saved ({len(pages)} pages, ttl {self.cfg.story_ttl_seconds}s)")

        if req.email:
            # delivery lives outside this service; record the request for it
            log.info(f"[story {self.story_id}] completion notice requested for {req.email}")

        self.channel.progress("saving", "Story saved successfully!", status="complete")
        return StageResult.ok(self.document)

    def _complete(self) -> None:
        self._enter(PipelineState.complete)
        missing = sum(1 for p in self.document.pages if p.image_url is None)
        if missing == 0:
            message = "Your story has been created successfully!"
        elif missing == len(self.document.pages):
            message = "Your story has been created, but its illustrations could not be generated."
        else:
            message = "Your story has been created successfully! Some illustrations could not be generated."
        self.channel.send(CompleteEvent(story_id=self.story_id, title=self.document.title, message=message))
