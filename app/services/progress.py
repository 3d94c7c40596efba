"""Ordered, single-consumer progress event channel for one pipeline run."""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator

from app.schemas.events import ProgressEvent, to_sse

logger = logging.getLogger(__name__)


class ProgressChannelClosed(RuntimeError):
    """Raised when publishing after the terminal event was sent."""


class ProgressChannel:
    """Queue events in publish order and stop after the terminal event.

    Exactly one terminal event (``result`` or ``error``) can be published; it
    closes the channel and ends iteration for the consumer.
    """

    def __init__(self, run_id: str | None = None) -> None:
        self.run_id = run_id
        self._queue: asyncio.Queue[ProgressEvent] = asyncio.Queue()
        self._history: list[ProgressEvent] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def history(self) -> list[ProgressEvent]:
        return list(self._history)

    def publish(self, event: ProgressEvent) -> None:
        if self._closed:
            raise ProgressChannelClosed(
                f"Progress channel for run {self.run_id!r} already received its terminal event"
            )
        self._history.append(event)
        self._queue.put_nowait(event)
        if event.terminal:
            self._closed = True

    async def events(self) -> AsyncIterator[ProgressEvent]:
        """Yield events in order, ending after the terminal one."""
        while True:
            event = await self._queue.get()
            yield event
            if event.terminal:
                return

    async def sse(self) -> AsyncIterator[str]:
        async for event in self.events():
            yield to_sse(event)


__all__ = ["ProgressChannel", "ProgressChannelClosed"]
