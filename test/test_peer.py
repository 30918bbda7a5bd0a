import asyncio
import json
import socket

import pytest
import pytest_asyncio
from websockets.asyncio.client import connect
from websockets.protocol import State

from saver_relay.peer import RelayPeer
from saver_relay.server import RelayServer


def free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest_asyncio.fixture
async def relay():
    server = RelayServer(host="127.0.0.1", port=0, ping_interval=30)
    await server.start()
    try:
        yield server
    finally:
        await server.stop()


async def start_peer(url, role, **kwargs):
    peer = RelayPeer(url, role, reconnect_delay=0.05, **kwargs)
    task = asyncio.create_task(peer.run())
    return peer, task


async def shutdown(peer, task):
    await peer.stop()
    await asyncio.wait_for(task, 2)


@pytest.mark.asyncio
async def test_send_while_offline_returns_false():
    peer = RelayPeer("ws://127.0.0.1:1", "extension")

    assert not peer.is_connected
    assert await peer.send({"type": "content-update"}) is False
    assert await peer.confirm_save("Favorites", True) is False


@pytest.mark.asyncio
async def test_unsupported_url_is_not_reported(relay):
    peer, task = await start_peer(f"ws://127.0.0.1:{relay.port}", "extension")
    try:
        await peer.wait_registered(2)
        assert await peer.report_content("https://example.com/about") is False
    finally:
        await shutdown(peer, task)


@pytest.mark.asyncio
async def test_extension_and_controller_exchange(relay):
    url = f"ws://127.0.0.1:{relay.port}"
    inbox = asyncio.Queue()

    extension, extension_task = await start_peer(url, "extension", on_message=inbox.put)
    try:
        await extension.wait_registered(2)
        assert extension.is_connected

        async with connect(url) as controller:
            await controller.send(json.dumps({"type": "register", "client": "controller"}))
            assert json.loads(await asyncio.wait_for(controller.recv(), 2))["type"] == "registered"

            assert await extension.report_content("https://www.instagram.com/p/ABC/", "A post")
            update = json.loads(await asyncio.wait_for(controller.recv(), 2))
            assert update == {
                "type": "content-update",
                "url": "https://www.instagram.com/p/ABC/",
                "platform": "instagram",
                "title": "A post",
            }

            await controller.send(json.dumps({"type": "save-request", "tag": "Favorites", "url": update["url"]}))
            request = await asyncio.wait_for(inbox.get(), 2)
            assert request["tag"] == "Favorites"

            assert await extension.confirm_save("Favorites", False, "Not on Instagram")
            confirmation = json.loads(await asyncio.wait_for(controller.recv(), 2))
            assert confirmation == {
                "type": "save-confirmation",
                "tag": "Favorites",
                "success": False,
                "error": "Not on Instagram",
            }
    finally:
        await shutdown(extension, extension_task)


@pytest.mark.asyncio
async def test_peer_reconnects_when_relay_comes_up():
    port = free_port()
    peer, task = await start_peer(f"ws://127.0.0.1:{port}", "controller")
    server = RelayServer(host="127.0.0.1", port=port, ping_interval=30)
    try:
        await asyncio.sleep(0.15)
        assert not peer.is_connected

        await server.start()
        await peer.wait_registered(3)
        assert peer.is_connected
        assert server.registry.lookup("controller") is not None
    finally:
        await shutdown(peer, task)
        await server.stop()


@pytest.mark.asyncio
async def test_replaced_peer_stops_reconnecting(relay):
    url = f"ws://127.0.0.1:{relay.port}"
    first, first_task = await start_peer(url, "extension")
    await first.wait_registered(2)

    second, second_task = await start_peer(url, "extension")
    try:
        await second.wait_registered(2)
        # the replaced peer gives up instead of fighting for the role
        await asyncio.wait_for(first_task, 2)
        assert not first.is_connected
        await asyncio.sleep(0.15)
        assert second.is_connected
    finally:
        await shutdown(second, second_task)


@pytest.mark.asyncio
async def test_controller_peer_requests_saves(relay):
    url = f"ws://127.0.0.1:{relay.port}"
    inbox = asyncio.Queue()
    controller, controller_task = await start_peer(url, "controller", on_message=inbox.put)
    try:
        await controller.wait_registered(2)
        async with connect(url) as extension:
            await extension.send(json.dumps({"type": "register", "client": "extension"}))
            assert json.loads(await asyncio.wait_for(extension.recv(), 2))["type"] == "registered"

            assert await controller.request_save("Later", "https://x.com/a/status/1")
            assert json.loads(await asyncio.wait_for(extension.recv(), 2)) == {
                "type": "save-request",
                "tag": "Later",
                "url": "https://x.com/a/status/1",
            }
    finally:
        await shutdown(controller, controller_task)


class ClosingConnection:
    state = State.CLOSING


@pytest.mark.asyncio
async def test_closing_connection_is_not_connected():
    peer = RelayPeer("ws://127.0.0.1:1", "extension")
    peer._ws = ClosingConnection()

    assert not peer.is_connected
