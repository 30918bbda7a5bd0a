"""
Connection lifecycle: every accepted WebSocket becomes a Session.

  accept              -> UNREGISTERED, heartbeat started
  register (valid)    -> REGISTERED, bound in the registry
  any frame           -> parsed and handed to the router; bad JSON is dropped
  transport close/err -> heartbeat cancelled, unbound, CLOSED (terminal)
"""

import asyncio
import logging
from enum import Enum
from typing import Optional, Union

from pydantic import ValidationError
from websockets.exceptions import ConnectionClosed, ConnectionClosedError
from websockets.protocol import State

from .heartbeat import Heartbeat, HeartbeatMonitor
from .messages import CLOSE_REPLACED, Message
from .registry import ConnectionRegistry
from .roles import Role
from .router import MessageRouter

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    UNREGISTERED = "unregistered"
    REGISTERED = "registered"
    CLOSED = "closed"


class Session:
    def __init__(self, ws):
        self.ws = ws
        self.role: Optional[Role] = None
        self.state = SessionState.UNREGISTERED
        self.heartbeat: Optional[Heartbeat] = None
        self._closing: Optional[asyncio.Task] = None

    @property
    def label(self) -> str:
        return self.role.value if self.role else "unknown"

    @property
    def open(self) -> bool:
        return (
            self.state is not SessionState.CLOSED
            and self._closing is None
            and self.ws.state is State.OPEN
        )

    @property
    def closed(self) -> bool:
        return self.state is SessionState.CLOSED

    @property
    def closing(self) -> bool:
        return self._closing is not None

    async def send(self, data: str) -> bool:
        if not self.open:
            return False
        try:
            await self.ws.send(data)
        except ConnectionClosed:
            return False
        return True

    def evict(self, code: int, reason: str = ""):
        """Start a transport close without waiting for the peer to answer it."""
        if self.closed or self._closing is not None:
            return
        self._closing = asyncio.create_task(self.ws.close(code, reason))


class LifecycleManager:
    def __init__(self, registry: ConnectionRegistry, monitor: HeartbeatMonitor):
        self.registry = registry
        self.monitor = monitor
        self.router = MessageRouter(registry, bind=self.bind)

    async def handle(self, ws):
        """websockets connection handler."""
        session = Session(ws)
        session.heartbeat = self.monitor.start(session)
        logger.info(f"New WebSocket connection from {_remote(ws)}")

        try:
            async for frame in ws:
                await self.on_frame(session, frame)
        except ConnectionClosedError as e:
            if e.sent is not None and e.sent.code == CLOSE_REPLACED:
                logger.info(f"Replaced {session.label} connection closed")
            else:
                logger.warning(f"WebSocket error ({session.label}): {e}")
        finally:
            self.teardown(session)

    async def on_frame(self, session: Session, frame: Union[str, bytes]):
        try:
            message = Message.from_frame(frame)
        except ValidationError as e:
            logger.warning(f"Error parsing message from {session.label}: {e.errors()[0]['msg']}")
            return

        logger.debug(f"Received message: {message.type} from {session.label}")
        await self.router.route(session, message)

    async def bind(self, session: Session, role) -> bool:
        """Registration transition. Raises InvalidRoleError for unknown roles."""
        role = Role.parse(role)
        if session.role is not None and session.role is not role:
            self.registry.unbind(session)
        if not self.registry.register(role, session):
            return False
        session.state = SessionState.REGISTERED
        logger.info(f"{role} registered and connected")
        logger.debug(f"Bound roles: {self.registry.snapshot()}")
        return True

    def teardown(self, session: Session):
        if session.closed:
            return
        if session.heartbeat is not None:
            session.heartbeat.cancel()
        self.registry.unbind(session)
        session.state = SessionState.CLOSED
        logger.info(f"{session.label} disconnected")
        logger.debug(f"Bound roles: {self.registry.snapshot()}")


def _remote(ws) -> str:
    address = getattr(ws, "remote_address", None)
    if not address:
        return "unknown"
    return f"{address[0]}:{address[1]}"
