import asyncio
import itertools
from dataclasses import dataclass, field
from typing import Dict, List, Optional
from loguru import logger

DEFAULT_QUIET_PERIOD = 6.0


@dataclass
class _SenderSlot:
    messages: List[str] = field(default_factory=list)
    # Pending release token: the latest arrival's generation and its waiter
    generation: int = 0
    waiter: Optional[asyncio.Future] = None
    timer: Optional[asyncio.TimerHandle] = None


class BurstAggregator:
    """Merges bursts of messages from one sender into a single message.

    Every arrival waits for the quiet period. A newer arrival from the same
    sender resolves the previous waiter with False right away and takes its
    place, so only the last message of a burst is told to flush.
    """

    def __init__(self, quiet_period: float = DEFAULT_QUIET_PERIOD):
        self.quiet_period = quiet_period
        self._slots: Dict[str, _SenderSlot] = {}
        self._generations = itertools.count(1)

    async def on_message_arrived(self, sender: str, text: str) -> bool:
        """
        Buffers text and waits until the sender goes quiet.
        Returns True only for the call that must drain the buffer.
        """
        loop = asyncio.get_running_loop()
        slot = self._slots.setdefault(sender, _SenderSlot())
        slot.messages.append(text)

        # No await between superseding and installing: atomic per sender
        self._supersede(slot)
        generation = next(self._generations)
        waiter = loop.create_future()
        slot.generation = generation
        slot.waiter = waiter
        slot.timer = loop.call_later(self.quiet_period, self._release, sender, generation)

        return await waiter

    def drain(self, sender: str) -> str:
        """Merged text of everything buffered since the previous drain."""
        slot = self._slots.get(sender)
        if slot is None:
            return ""
        merged = "\n".join(slot.messages)
        slot.messages = []
        if slot.waiter is None:
            del self._slots[sender]
        return merged

    async def collect(self, sender: str, text: str) -> Optional[str]:
        """Merged burst for the flushing call, None for superseded ones."""
        if not await self.on_message_arrived(sender, text):
            return None
        merged = self.drain(sender)
        logger.debug(f"Burst from {sender} released ({len(merged)} chars)")
        return merged

    def has_pending(self, sender: str) -> bool:
        slot = self._slots.get(sender)
        return slot is not None and (bool(slot.messages) or slot.waiter is not None)

    def shutdown(self) -> None:
        """Cancels all timers and tells every waiter it is not the flusher."""
        for slot in self._slots.values():
            self._supersede(slot)
        self._slots.clear()

    def _supersede(self, slot: _SenderSlot) -> None:
        if slot.timer is not None:
            slot.timer.cancel()
            slot.timer = None
        if slot.waiter is not None and not slot.waiter.done():
            slot.waiter.set_result(False)
        slot.waiter = None

    def _release(self, sender: str, generation: int) -> None:
        slot = self._slots.get(sender)
        if slot is None or slot.generation != generation:
            # Stale timer of a superseded arrival
            return
        waiter = slot.waiter
        slot.waiter = None
        slot.timer = None
        if waiter is not None and not waiter.done():
            waiter.set_result(True)
