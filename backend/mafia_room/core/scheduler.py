import asyncio
import logging
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)

class PhaseScheduler:
    """
    One cancellable timer per room, run on the asyncio event loop.

    Callbacks fire through `loop.call_later`, so they are serialized with
    message handling on the same loop. Scheduling a room always cancels
    its previous timer first.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop
        self._timers: Dict[str, asyncio.TimerHandle] = {}

    def schedule(self, room_id: str, delay: float, callback: Callable[[], None]) -> None:
        self.cancel(room_id)
        loop = self._loop or asyncio.get_running_loop()
        self._timers[room_id] = loop.call_later(delay, self._fire, room_id, callback)

    def cancel(self, room_id: str) -> bool:
        handle = self._timers.pop(room_id, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def pending(self, room_id: str) -> bool:
        return room_id in self._timers

    def cancel_all(self) -> None:
        for room_id in list(self._timers):
            self.cancel(room_id)

    def _fire(self, room_id: str, callback: Callable[[], None]) -> None:
        self._timers.pop(room_id, None)
        try:
            callback()
        except Exception:
            logger.exception(f"Phase timer for room {room_id} failed")
