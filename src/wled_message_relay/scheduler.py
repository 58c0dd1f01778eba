"""Message rotation: pending queue, current slot and the periodic tick."""

import asyncio
import itertools
import logging
import time
from collections import deque
from collections.abc import Callable

from wled_message_relay.config import RotationConfig
from wled_message_relay.device import DeviceInterface
from wled_message_relay.exceptions import InvalidInputError
from wled_message_relay.models import (
    CurrentDisplay,
    MessageView,
    QueuedMessage,
    QueueSnapshot,
    SubmitResult,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class RotationScheduler:
    """Rotates queued messages through the device one at a time.

    Each message stays current for at least the dwell time. When the queue
    runs dry the last message keeps showing; it is never blanked.

    Locks guard only in-memory state and are always taken current slot
    first, then queue. Device calls happen after the locks are released.
    """

    def __init__(
        self,
        device: DeviceInterface,
        config: RotationConfig | None = None,
        clock: Clock = time.monotonic,
    ) -> None:
        """Initialize the scheduler.

        Args:
            device: Device that current messages are applied to.
            config: Rotation timing; defaults apply if omitted.
            clock: Monotonic time source in seconds.
        """
        self._device = device
        self._config = config or RotationConfig()
        self._clock = clock
        self._queue: deque[QueuedMessage] = deque()
        self._current: CurrentDisplay | None = None
        self._queue_lock = asyncio.Lock()
        self._current_lock = asyncio.Lock()
        self._ids = itertools.count(1)

    @property
    def dwell_seconds(self) -> float:
        """Minimum time a message stays current."""
        return self._config.dwell_seconds

    @property
    def tick_interval(self) -> float:
        """Delay between ticks in run()."""
        return self._config.tick_interval_seconds

    def validate_text(self, text: str) -> str:
        """Trim and bounds-check message text.

        Raises:
            InvalidInputError: If the text is empty after trimming or too long.
        """
        trimmed = text.strip()
        if not trimmed or len(trimmed) > self._config.max_text_length:
            raise InvalidInputError("Invalid text")
        return trimmed

    def _expired(self, display: CurrentDisplay, now: float) -> bool:
        return now - display.started_at >= self._config.dwell_seconds

    async def enqueue_or_promote(self, text: str, color: str | None = None) -> SubmitResult:
        """Add a message to the rotation.

        If the current message has already used up its dwell time, the new
        message replaces it immediately instead of waiting for the next tick.

        Args:
            text: Message text; trimmed before use.
            color: Optional ``#rrggbb`` colour, passed through unchanged.

        Returns:
            SWITCHED if the message went straight to the device, else QUEUED.

        Raises:
            InvalidInputError: If the text is empty or too long.
        """
        text = self.validate_text(text)
        message_id = next(self._ids)

        promoted: CurrentDisplay | None = None
        async with self._current_lock:
            now = self._clock()
            if self._current is not None and self._expired(self._current, now):
                promoted = CurrentDisplay(id=message_id, text=text, color=color, started_at=now)
                self._current = promoted
            else:
                async with self._queue_lock:
                    self._queue.append(QueuedMessage(id=message_id, text=text, color=color, enqueued_at=now))

        if promoted is None:
            logger.info("Queued message %d", message_id)
            return SubmitResult.QUEUED

        logger.info("Switched directly to message %d", message_id)
        await self._apply(promoted)
        return SubmitResult.SWITCHED

    async def tick(self) -> None:
        """Run one scheduler step: fill an empty slot, then advance an expired one."""
        filled = await self._fill()
        if filled is not None:
            await self._apply(filled)
            # Just installed, so nothing can have expired yet
            return

        advanced = await self._advance()
        if advanced is not None:
            await self._apply(advanced)

    async def _fill(self) -> CurrentDisplay | None:
        async with self._current_lock:
            if self._current is not None:
                return None
            async with self._queue_lock:
                if not self._queue:
                    return None
                head = self._queue.popleft()
            self._current = self._promote(head)
            logger.info("Showing message %d", head.id)
            return self._current

    async def _advance(self) -> CurrentDisplay | None:
        async with self._current_lock:
            if self._current is None or not self._expired(self._current, self._clock()):
                return None
            async with self._queue_lock:
                if not self._queue:
                    # Keep showing the last message
                    return None
                head = self._queue.popleft()
            previous = self._current.id
            self._current = self._promote(head)
            logger.info("Advanced from message %d to %d", previous, head.id)
            return self._current

    def _promote(self, message: QueuedMessage) -> CurrentDisplay:
        started_at = self._clock()
        if self._current is not None:
            started_at = max(started_at, self._current.started_at)
        return CurrentDisplay(id=message.id, text=message.text, color=message.color, started_at=started_at)

    async def remove(self, message_id: int) -> None:
        """Remove a message from the queue or the current slot.

        Clearing the current slot does not blank the device; the next tick
        fills the slot from the queue. Unknown ids are ignored.
        """
        async with self._queue_lock:
            before = len(self._queue)
            self._queue = deque(m for m in self._queue if m.id != message_id)
            removed_queued = len(self._queue) != before

        async with self._current_lock:
            removed_current = self._current is not None and self._current.id == message_id
            if removed_current:
                self._current = None

        if removed_queued or removed_current:
            logger.info("Removed message %d (current=%s)", message_id, removed_current)

    async def snapshot(self) -> QueueSnapshot:
        """Report the current message, its elapsed time and the pending queue."""
        async with self._current_lock:
            current = self._current
            elapsed = int(self._clock() - current.started_at) if current is not None else 0

        async with self._queue_lock:
            items = [MessageView(id=m.id, text=m.text, color=m.color) for m in self._queue]

        return QueueSnapshot(
            current=MessageView(id=current.id, text=current.text, color=current.color) if current else None,
            elapsed_seconds=max(elapsed, 0),
            items=items,
        )

    async def _apply(self, display: CurrentDisplay) -> None:
        try:
            await self._device.apply(display.text, display.color)
        except Exception:
            logger.exception("Applying message %d to device failed", display.id)

    async def run(self) -> None:
        """Tick forever at the configured interval."""
        logger.info(
            "Rotation started: dwell=%.1fs, tick=%.2fs",
            self._config.dwell_seconds,
            self._config.tick_interval_seconds,
        )
        while True:
            try:
                await self.tick()
            except Exception:
                logger.exception("Rotation tick failed")
            await asyncio.sleep(self._config.tick_interval_seconds)
