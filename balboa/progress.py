"""Progress reporting for verification calls.

A verification call walks through a fixed sequence of stages:

    starting -> calling -> processing -> completed

with ``failed`` replacing the remainder of the sequence on any error.

Stages are delivered to an optional callback and to any subscribed
ProgressChannel. Delivery is best effort: a failing callback is logged
and never interrupts the verification.
"""

import asyncio
import logging
from enum import Enum
from typing import AsyncIterator, Callable, List, Optional

log = logging.getLogger(__name__)


class ProgressStage(str, Enum):
    """Observable stage of a verification call."""

    STARTING = "starting"
    CALLING = "calling"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ProgressStage.COMPLETED, ProgressStage.FAILED)


ProgressCallback = Callable[[ProgressStage], None]


class ProgressChannel:
    """Bounded queue of stages that consumers can iterate asynchronously.

    Publishing never blocks; when the queue is full the oldest stage is
    dropped to make room.

    Usage:
        channel = ProgressChannel()
        task = asyncio.create_task(client.verify(options, progress=channel))
        async for stage in channel:
            print(stage.value)
    """

    def __init__(self, maxsize: int = 16):
        if maxsize < 1:
            raise ValueError("maxsize must be at least 1")
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self.dropped = 0

    def publish(self, stage: ProgressStage) -> None:
        while True:
            try:
                self._queue.put_nowait(stage)
                return
            except asyncio.QueueFull:
                self._queue.get_nowait()
                self.dropped += 1

    async def get(self) -> ProgressStage:
        return await self._queue.get()

    def __aiter__(self) -> AsyncIterator[ProgressStage]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[ProgressStage]:
        while True:
            stage = await self._queue.get()
            yield stage
            if stage.is_terminal:
                return


class ProgressNotifier:
    """Fans stage transitions out to a callback and channels for one call."""

    def __init__(
        self,
        callback: Optional[ProgressCallback] = None,
        channels: Optional[List[ProgressChannel]] = None,
    ):
        self._callback = callback
        self._channels = list(channels or [])
        self.history: List[ProgressStage] = []

    @property
    def current(self) -> Optional[ProgressStage]:
        return self.history[-1] if self.history else None

    def subscribe(self, channel: ProgressChannel) -> None:
        self._channels.append(channel)

    def notify(self, stage: ProgressStage) -> None:
        """Record and deliver a stage. Never raises."""
        if self.current is not None and self.current.is_terminal:
            log.debug(f"Ignoring progress {stage.value} after terminal {self.current.value}")
            return
        self.history.append(stage)

        if self._callback is not None:
            try:
                self._callback(stage)
            except Exception:
                log.warning(f"Progress callback raised on stage {stage.value}", exc_info=True)

        for channel in self._channels:
            channel.publish(stage)
