# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Progress Channel - Backup progress events and the sinks that carry them.

The orchestrator only depends on ProgressSink.publish(). The push transport
(socket server, websocket route, ...) lives outside the pipeline and
consumes a ProgressBroadcaster.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, Protocol, Set

import structlog

logger = structlog.get_logger()

PROGRESS_EVENT_NAME = "backup-progress"


class ProgressStatus(str, Enum):
    """Pipeline stage reported with each progress event."""

    PREPARING = "preparing"
    DATABASE = "database"
    BACKEND = "backend"
    FRONTEND = "frontend"
    COMPRESSING = "compressing"
    COMPLETED = "completed"
    ERROR = "error"


@dataclass(frozen=True)
class ProgressEvent:
    """A single progress update for one backup job."""

    backup_id: str
    progress: int
    status: ProgressStatus
    error: str | None = None

    def to_payload(self) -> dict:
        """Wire format; 'error' is only present for error events."""
        payload = {
            "backupId": self.backup_id,
            "progress": self.progress,
            "status": self.status.value,
        }
        if self.status == ProgressStatus.ERROR and self.error:
            payload["error"] = self.error
        return payload


class ProgressSink(Protocol):
    """Protocol for anything that accepts progress events."""

    async def publish(self, event: ProgressEvent) -> None:
        """
        Deliver an event to subscribers.

        Implementations must not raise because a subscriber went away.
        """
        ...


class LoggingSink:
    """Sink that only writes progress to the log."""

    async def publish(self, event: ProgressEvent) -> None:
        logger.info(
            "backup_progress",
            backup_id=event.backup_id,
            progress=event.progress,
            status=event.status.value,
            error=event.error,
        )


class ProgressBroadcaster:
    """
    In-memory fan-out of progress events.

    Each subscriber gets its own bounded queue. When a queue is full the
    event is dropped for that subscriber only; there is no replay.
    """

    def __init__(self, queue_size: int = 100):
        self._queue_size = queue_size
        self._subscribers: Set[asyncio.Queue] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    async def publish(self, event: ProgressEvent) -> None:
        for queue in list(self._subscribers):
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                logger.warning(
                    "progress_event_dropped",
                    backup_id=event.backup_id,
                    status=event.status.value,
                )

    def open_queue(self) -> asyncio.Queue:
        """Register a new subscriber queue."""
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._queue_size)
        self._subscribers.add(queue)
        return queue

    def close_queue(self, queue: asyncio.Queue) -> None:
        self._subscribers.discard(queue)

    async def subscribe(self) -> AsyncIterator[ProgressEvent]:
        """
        Iterate over events published after subscribing.

        The subscription ends when the consumer stops iterating.
        """
        queue = self.open_queue()
        try:
            while True:
                yield await queue.get()
        finally:
            self.close_queue(queue)


class FanOutSink:
    """Publish every event to several sinks."""

    def __init__(self, *sinks: ProgressSink):
        self._sinks = sinks

    async def publish(self, event: ProgressEvent) -> None:
        for sink in self._sinks:
            try:
                await sink.publish(event)
            except Exception as e:
                logger.warning("progress_sink_failed", sink=type(sink).__name__, error=str(e))
