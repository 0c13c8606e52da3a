import threading

import pytest

from remote_mouse.config import Config
from remote_mouse.errors import CapabilityUnavailable
from remote_mouse.input_handler import CursorControl, check_button
from remote_mouse.server import RemoteMouseServer


class FakeCursor(CursorControl):
    """In-memory cursor that records every call."""
    
    name = "fake"
    
    def __init__(self, x=500, y=500, broken=False):
        self.x = x
        self.y = y
        self.broken = broken
        self.moves = []
        self.clicks = []
        self._busy = threading.Lock()
        self.overlapped = False
    
    def _enter(self):
        if self.broken:
            raise CapabilityUnavailable("no display")
        if not self._busy.acquire(blocking=False):
            self.overlapped = True
            self._busy.acquire()
    
    def get_position(self):
        self._enter()
        try:
            return self.x, self.y
        finally:
            self._busy.release()
    
    def move_to(self, x, y):
        self._enter()
        try:
            self.moves.append((x, y))
            self.x, self.y = x, y
        finally:
            self._busy.release()
    
    def click(self, button):
        self._enter()
        try:
            self.clicks.append(check_button(button))
        finally:
            self._busy.release()


class FakeClock:
    """Millisecond clock advanced by hand."""
    
    def __init__(self, now=10_000.0):
        self.now = now
    
    def __call__(self):
        return self.now
    
    def advance(self, ms):
        self.now += ms


@pytest.fixture
def cursor():
    return FakeCursor()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config(tmp_path):
    # Nonexistent explicit path: defaults only, never the user's config
    return Config(tmp_path / "missing.yaml")


@pytest.fixture
def server(config, cursor):
    return RemoteMouseServer(config, cursor)


@pytest.fixture
async def client(aiohttp_client, server):
    return await aiohttp_client(server.http_app)
