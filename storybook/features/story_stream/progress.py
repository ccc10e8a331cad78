# storybook/features/story_stream/progress.py
from __future__ import annotations

import asyncio
from typing import AsyncIterator, List, Optional

from storybook.logger import get_logger

from .schemas import IllustrationProgress, ProgressEvent, Step, StreamEvent

log = get_logger(__name__)

_CLOSED = object()


class ProgressChannel:
    """
    Single-writer / single-reader queue between the pipeline and the HTTP
    transport. Writes never raise: once the channel is closed or the reader
    has gone away, events are logged and dropped.
    """

    def __init__(self, story_id: str = ""):
        self.story_id = story_id
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False
        self._reader_gone = False
        self.sent: List[StreamEvent] = []

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, event: StreamEvent) -> bool:
        if self._closed:
            log.warning(f"[story {self.story_id}] channel closed; dropping {event.event} event")
            return False
        if self._reader_gone:
            log.warning(f"[story {self.story_id}] client disconnected; dropping {event.event} event")
            return False
        try:
            self._queue.put_nowait(event)
        except Exception as e:
            log.error(f"[story {self.story_id}] error sending {event.event} event: {e}")
            return False
        self.sent.append(event)
        return True

    def progress(
        self,
        step: Step,
        message: str,
        *,
        status: str = "in_progress",
        current: Optional[int] = None,
        total: Optional[int] = None,
        detail: Optional[str] = None,
    ) -> bool:
        illustration = None
        if current is not None and total is not None:
            illustration = IllustrationProgress(current=current, total=total, detail=detail)
        return self.send(ProgressEvent(step=step, status=status, message=message, illustration_progress=illustration))

    def close(self) -> None:
        """Idempotent; only the first call ends the stream."""
        if self._closed:
            return
        self._closed = True
        try:
            self._queue.put_nowait(_CLOSED)
        except Exception as e:
            log.error(f"[story {self.story_id}] error closing channel: {e}")

    def detach_reader(self) -> None:
        self._reader_gone = True

    async def __aiter__(self) -> AsyncIterator[StreamEvent]:
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                return
            yield item
