import asyncio
import socket
import threading
import time
from collections.abc import Callable, Generator
from dataclasses import dataclass, field
from typing import Any

import pytest
from websockets.asyncio.server import serve

from fieldview.wire import deserialise, serialise, unwrap_message_payload


def find_free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('', 0))
        return s.getsockname()[1]


@dataclass
class FakeModule:
    """Scripted stand-in for the AI module's websocket server."""

    host: str
    port: int
    # Maps an unwrapped inbound payload to the frames sent back
    reply: Callable[[Any], list[Any]] = lambda payload: []
    received: list[Any] = field(default_factory=list)

    def wait_for(self, count: int, timeout: float = 5.0) -> list[Any]:
        deadline = time.time() + timeout
        while len(self.received) < count and time.time() < deadline:
            time.sleep(0.01)
        return list(self.received)

    async def handler(self, websocket):
        async for message in websocket:
            payload = unwrap_message_payload(deserialise(message))
            self.received.append(payload)
            for frame in self.reply(payload):
                await websocket.send(frame if isinstance(frame, bytes | str) else serialise(frame))

    async def serve(self):
        async with serve(self.handler, self.host, self.port):
            await asyncio.get_running_loop().create_future()


def run_server_in_thread(module: FakeModule, loop: asyncio.AbstractEventLoop):
    asyncio.set_event_loop(loop)
    task = loop.create_task(module.serve())
    try:
        loop.run_forever()
    finally:
        task.cancel()
        try:
            loop.run_until_complete(task)
        except (asyncio.CancelledError, RuntimeError):
            pass
        loop.close()


@pytest.fixture
def fake_module() -> Generator[FakeModule, None, None]:
    module = FakeModule(host='localhost', port=find_free_port())

    server_loop = asyncio.new_event_loop()
    server_thread = threading.Thread(target=run_server_in_thread, args=(module, server_loop), daemon=True)
    server_thread.start()

    start_time = time.time()
    while time.time() - start_time < 5.0:
        try:
            with socket.create_connection((module.host, module.port), timeout=0.1):
                break
        except (ConnectionRefusedError, OSError):
            time.sleep(0.05)
    else:
        raise RuntimeError('Server failed to start')

    yield module

    server_loop.call_soon_threadsafe(server_loop.stop)
    server_thread.join(timeout=1.0)
