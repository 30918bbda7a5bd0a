#!/usr/bin/env python3
"""
Saver relay: one "extension" <-> one "controller" over WebSockets.

  ws://<host>:<port>/        relay endpoint (any path)
  http://<host>:<port>/      control panel page

Peers register with {"type": "register", "client": "extension"|"controller"}
and from then on their messages are forwarded to the other side.
"""

import asyncio
import logging
import os
import signal
import socket
import sys
from typing import Optional

from websockets.asyncio.server import Server, serve

from .heartbeat import HeartbeatMonitor
from .registry import ConnectionRegistry
from .session import LifecycleManager
from .static import ControlPanel

logger = logging.getLogger(__name__)

# ---- Config ----
HOST = os.environ.get("SAVER_RELAY_HOST", "0.0.0.0")
PORT = int(os.environ.get("SAVER_RELAY_PORT", "8080"))
PING_INTERVAL = float(os.environ.get("SAVER_RELAY_PING_INTERVAL", "30"))
INDEX_PATH = os.environ.get("SAVER_RELAY_INDEX") or None
LOG_LEVEL = os.environ.get("SAVER_RELAY_LOG_LEVEL", "INFO").upper()


class RelayServer:
    def __init__(self, host: str = HOST, port: int = PORT,
                 ping_interval: float = PING_INTERVAL, index_path: Optional[str] = INDEX_PATH):
        self.host = host
        self._port = port

        self.registry = ConnectionRegistry()
        self.monitor = HeartbeatMonitor(ping_interval)
        self.lifecycle = LifecycleManager(self.registry, self.monitor)
        self.panel = ControlPanel(index_path)

        self._server: Optional[Server] = None

    @property
    def port(self) -> int:
        """Bound port once started (useful when constructed with port=0)."""
        if self._server is None:
            return self._port
        return self._server.sockets[0].getsockname()[1]

    async def start(self):
        # heartbeats are driven per session by HeartbeatMonitor, not by websockets' keepalive
        self._server = await serve(
            self.lifecycle.handle, self.host, self._port,
            process_request=self.panel,
            ping_interval=None,
        )
        logger.info(f"Relay listening on ws://{self.host}:{self.port}")

    async def stop(self):
        if self._server is None:
            return
        logger.info("Shutting down relay...")
        self._server.close()
        await self._server.wait_closed()
        self._server = None
        logger.info("WebSocket server closed")

    async def serve_forever(self):
        loop = asyncio.get_running_loop()
        stop = asyncio.Event()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, stop.set)
            except NotImplementedError:
                # Windows: Ctrl+C still arrives as KeyboardInterrupt
                pass

        await self.start()
        try:
            await stop.wait()
        finally:
            await self.stop()


def local_ip() -> str:
    """Best guess at this machine's LAN address, for the startup banner."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        # no packet is sent; this only picks the outbound interface
        sock.connect(("10.255.255.255", 1))
        return sock.getsockname()[0]
    except OSError:
        return "localhost"
    finally:
        sock.close()


def main():
    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    server = RelayServer()
    lan = local_ip()

    print("\n🚀 Saver relay starting\n")
    print("📱 Control panel:")
    print(f"   • Local:  http://localhost:{PORT}")
    print(f"   • LAN:    http://{lan}:{PORT}")
    print("\n🌐 WebSocket relay:")
    print(f"   • Extension:  ws://localhost:{PORT}")
    print(f"   • Controller: ws://{lan}:{PORT}\n")

    try:
        asyncio.run(server.serve_forever())
    except KeyboardInterrupt:
        print("\n🛑 Relay stopped by user")
    except OSError as e:
        print(f"❌ Error starting relay: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
