import asyncio
import logging
from typing import TYPE_CHECKING, Optional

from websockets.exceptions import ConnectionClosed

if TYPE_CHECKING:
    from .session import Session

logger = logging.getLogger(__name__)


class Heartbeat:
    """Handle for one session's ping loop. cancel() may be called any number of times."""

    def __init__(self, task: "asyncio.Task"):
        self._task: Optional[asyncio.Task] = task

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def cancel(self):
        if self._task is None:
            return
        self._task.cancel()
        self._task = None


class HeartbeatMonitor:
    """
    Sends a WebSocket ping on every open session at a fixed interval.

    Liveness is passive: a missing pong never closes anything. The transport's
    own close/error is what ends a session.
    """

    def __init__(self, interval: float):
        self.interval = interval

    def start(self, session: "Session") -> Heartbeat:
        return Heartbeat(asyncio.create_task(self._run(session)))

    async def _run(self, session: "Session"):
        while True:
            await asyncio.sleep(self.interval)
            if not session.open:
                return
            try:
                await session.ws.ping()
            except ConnectionClosed:
                return
            logger.debug(f"Ping sent to {session.label}")
