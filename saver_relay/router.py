import logging
from typing import TYPE_CHECKING, Awaitable, Callable, Dict, Tuple

from .messages import (
    CONTENT_UPDATE,
    REGISTER,
    SAVE_CONFIRMATION,
    SAVE_REQUEST,
    Message,
    Registered,
)
from .registry import ConnectionRegistry
from .roles import InvalidRoleError, Role

if TYPE_CHECKING:
    from .session import Session

logger = logging.getLogger(__name__)

# type -> (role allowed to send it, role it is delivered to)
ROUTES: Dict[str, Tuple[Role, Role]] = {
    CONTENT_UPDATE: (Role.EXTENSION, Role.CONTROLLER),
    SAVE_REQUEST: (Role.CONTROLLER, Role.EXTENSION),
    SAVE_CONFIRMATION: (Role.EXTENSION, Role.CONTROLLER),
}

Binder = Callable[["Session", object], Awaitable[bool]]


class MessageRouter:
    """
    Classifies inbound messages and forwards them to the opposite role.

    Delivery is best effort: a message whose destination is not connected is
    logged and dropped. route() never raises; a bad message from one peer must
    not take the relay down for the other.
    """

    def __init__(self, registry: ConnectionRegistry, bind: Binder):
        self.registry = registry
        self._bind = bind

    async def route(self, session: "Session", message: Message):
        try:
            await self._route(session, message)
        except Exception:
            logger.exception(f"Error routing {message.type} from {session.label}")

    async def _route(self, session: "Session", message: Message):
        kind = message.kind

        if kind == REGISTER:
            await self._register(session, message)
            return

        if session.role is None:
            logger.warning(f"Message from unregistered client dropped: {message.type}")
            return

        route = ROUTES.get(kind)
        if route is None:
            logger.info(f"Unknown message type: {message.type}")
            return

        source, destination = route
        if session.role is not source:
            logger.warning(f"{kind} is not accepted from {session.role}, dropped")
            return

        _describe(message, kind)
        await self._forward(destination, message)

    async def _register(self, session: "Session", message: Message):
        client = message.get("client")
        try:
            bound = await self._bind(session, client)
        except InvalidRoleError:
            logger.warning(f"Unknown client type: {client!r}")
            return
        if not bound:
            return

        # echo the name the peer registered with ("ipad" stays "ipad")
        ack = Registered(client=client)
        await session.send(ack.model_dump_json())

    async def _forward(self, destination: Role, message: Message):
        peer = self.registry.lookup(destination)
        if peer is None:
            logger.warning(f"{destination} not connected, dropping {message.type}")
            return
        if not await peer.send(message.frame):
            logger.warning(f"Could not deliver {message.type} to {destination}, dropped")
            return
        logger.debug(f"Sent to {destination}: {message.type}")


def _describe(message: Message, kind: str):
    if kind == CONTENT_UPDATE:
        logger.info(f"Content detected: {message.get('platform')} {message.get('url')}")
    elif kind == SAVE_REQUEST:
        logger.info(f"Save requested: {message.get('tag')} for {message.get('url')}")
    elif kind == SAVE_CONFIRMATION:
        status = "Success" if message.get("success") else "Failed"
        logger.info(f"{status}: save to {message.get('tag')}")
