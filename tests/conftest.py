"""
Shared fixtures: sysfs-like sensor trees, fake push transports, a fake upsd, a manual clock
"""

import asyncio
import logging
import shlex

import pytest


class FakeTransport:
    """Records every POST instead of sending it"""

    def __init__(self, status=200, error=None):
        self.status = status
        self.error = error
        self.posts = []
        self.closed = False
        self.release = None

    async def post(self, url, body, bearer_token, timeout=None):
        self.posts.append({'url': url, 'body': body, 'bearer_token': bearer_token, 'timeout': timeout})
        if self.release is not None:
            await self.release.wait()
        if self.error is not None:
            raise self.error
        return self.status

    async def close(self):
        self.closed = True


class ManualClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakeUpsd:
    """Tiny upsd speaking just enough of the NUT line protocol"""

    def __init__(self, variables):
        self.variables = variables
        self.commands = []
        self.server = None

    async def handle(self, reader, writer):
        while True:
            line = await reader.readline()
            if not line:
                break
            command = line.decode().strip()
            self.commands.append(command)
            parts = shlex.split(command)

            if parts[0] in ("USERNAME", "PASSWORD"):
                reply = "OK"
            elif parts[0] == "VER":
                reply = "Network UPS Tools upsd 2.8.0 - http://www.networkupstools.org/"
            elif parts[:2] == ["GET", "VAR"] and len(parts) == 4:
                value = self.variables.get((parts[2], parts[3]))
                reply = f'VAR {parts[2]} {parts[3]} "{value}"' if value is not None else "ERR VAR-NOT-SUPPORTED"
            elif parts[0] == "LOGOUT":
                writer.write(b"OK Goodbye\n")
                await writer.drain()
                break
            else:
                reply = "ERR UNKNOWN-COMMAND"

            writer.write(f"{reply}\n".encode())
            await writer.drain()
        writer.close()

    async def start(self):
        self.server = await asyncio.start_server(self.handle, "127.0.0.1", 0)
        return self.server.sockets[0].getsockname()[1]

    async def stop(self):
        self.server.close()
        await self.server.wait_closed()


async def _wait_until(predicate, timeout=2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


@pytest.fixture
def wait_until():
    return _wait_until


@pytest.fixture
def fake_transport():
    return FakeTransport


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def sensor_tree(tmp_path):
    """Returns (base_path, add_sensor) for building a fake w1 devices directory"""
    base = tmp_path / "devices"
    base.mkdir()

    def add_sensor(device_id, temperature="21500\n", resolution="12\n"):
        device = base / device_id
        device.mkdir()
        if temperature is not None:
            (device / "temperature").write_text(temperature)
        if resolution is not None:
            (device / "resolution").write_text(resolution)
        return device

    return base, add_sensor


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)


@pytest.fixture
def fake_upsd():
    return FakeUpsd
