"""
Client side of the relay.

A RelayPeer keeps one connection to the relay open for a given role: it
registers on every connect, hands inbound messages to a callback, and after
any disconnect waits a fixed delay and tries again until stopped.

    peer = RelayPeer("ws://localhost:8080", "extension", on_message=handle)
    asyncio.create_task(peer.run())
    await peer.report_content(url, title)
"""

import asyncio
import inspect
import json
import logging
import os
from typing import Any, Callable, Dict, Optional

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, InvalidHandshake
from websockets.protocol import State

from .messages import (
    CLOSE_REPLACED,
    CONTENT_UPDATE,
    REGISTER,
    REGISTERED,
    SAVE_CONFIRMATION,
    SAVE_REQUEST,
)
from .platforms import detect_platform
from .roles import Role

logger = logging.getLogger(__name__)

# ---- Config ----
RELAY_URL = os.environ.get("SAVER_RELAY_URL", "ws://localhost:8080")
RECONNECT_DELAY = float(os.environ.get("SAVER_RELAY_RECONNECT_DELAY", "3"))

MessageHandler = Callable[[Dict[str, Any]], Any]


class RelayPeer:
    def __init__(self, url: str = RELAY_URL, role="extension",
                 on_message: Optional[MessageHandler] = None,
                 reconnect_delay: float = RECONNECT_DELAY):
        self.url = url
        self.role = Role.parse(role)
        self.on_message = on_message
        self.reconnect_delay = reconnect_delay

        self._ws: Optional[ClientConnection] = None
        self._registered = asyncio.Event()
        self._stopped = asyncio.Event()

    @property
    def is_connected(self) -> bool:
        return self._ws is not None and self._ws.state is State.OPEN

    async def wait_registered(self, timeout: Optional[float] = None):
        await asyncio.wait_for(self._registered.wait(), timeout)

    # ------------------ connection loop ------------------

    async def run(self):
        while not self._stopped.is_set():
            try:
                await self._session()
            except (OSError, InvalidHandshake, asyncio.TimeoutError) as e:
                logger.warning(f"Could not reach relay at {self.url}: {e}")
            except ConnectionClosed as e:
                logger.info(f"Disconnected from relay: {e}")
            finally:
                self._ws = None
                self._registered.clear()

            if self._stopped.is_set():
                break
            logger.info(f"Reconnecting in {self.reconnect_delay:g}s...")
            try:
                await asyncio.wait_for(self._stopped.wait(), self.reconnect_delay)
            except asyncio.TimeoutError:
                pass

    async def _session(self):
        logger.info(f"Connecting to relay: {self.url}")
        async with connect(self.url) as ws:
            self._ws = ws
            logger.info("Connected to relay")
            await self.send({"type": REGISTER, "client": self.role.value})
            try:
                async for frame in ws:
                    await self._dispatch(frame)
            except ConnectionClosed as e:
                if e.rcvd is None or e.rcvd.code != CLOSE_REPLACED:
                    raise
                # another peer took this role; reconnecting would just evict it back
                logger.warning(f"Replaced by another {self.role} connection, not reconnecting")
                self._stopped.set()

    async def _dispatch(self, frame):
        try:
            message = json.loads(frame)
        except ValueError as e:
            logger.error(f"Error parsing relay message: {e}")
            return
        if not isinstance(message, dict):
            logger.error(f"Ignoring non-object relay message: {frame!r}")
            return

        if message.get("type") == REGISTERED:
            logger.info("Registration confirmed")
            self._registered.set()
            return

        if self.on_message is None:
            logger.info(f"Unhandled message type: {message.get('type')}")
            return
        result = self.on_message(message)
        if inspect.isawaitable(result):
            await result

    async def stop(self):
        self._stopped.set()
        if self._ws is not None:
            await self._ws.close()

    # ------------------ sending ------------------

    async def send(self, message: Dict[str, Any]) -> bool:
        ws = self._ws
        if ws is None:
            logger.error(f"Relay not connected, cannot send: {message.get('type')}")
            return False
        try:
            await ws.send(json.dumps(message))
        except ConnectionClosed:
            logger.error(f"Connection lost while sending: {message.get('type')}")
            return False
        logger.debug(f"Sent to relay: {message.get('type')}")
        return True

    async def report_content(self, url: str, title: str = "") -> bool:
        platform = detect_platform(url)
        if platform is None:
            logger.debug(f"Not a supported post: {url}")
            return False
        return await self.send({
            "type": CONTENT_UPDATE,
            "url": url,
            "platform": platform,
            "title": title or "",
        })

    async def request_save(self, tag: str, url: str) -> bool:
        return await self.send({"type": SAVE_REQUEST, "tag": tag, "url": url})

    async def confirm_save(self, tag: str, success: bool, error: Optional[str] = None) -> bool:
        return await self.send({
            "type": SAVE_CONFIRMATION,
            "tag": tag,
            "success": bool(success),
            "error": error,
        })
