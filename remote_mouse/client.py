"""
Controller-side session: talks to a Remote Mouse host over HTTP.

A failed call ends the session. The client is marked disconnected and
further motion or click calls fail fast until ``connect()`` succeeds
again. Dropped motion events are never retried; the next touch sample
supersedes them.
"""

import asyncio
import logging
from typing import Any, Dict, Optional, Tuple

import aiohttp

from .errors import InvalidInput, TransportFailure
from .sampler import MotionDelta, MotionSampler

logger = logging.getLogger(__name__)


class RemoteMouseClient:
    """HTTP client for the host's /test, /mouse, /click and /position routes."""
    
    def __init__(self, host: str, port: int = 3000, timeout: float = 5):
        host = (host or "").strip()
        if not host:
            raise InvalidInput("Please enter a server IP address")
        
        self.base_url = f"http://{host}:{port}"
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.connected = False
        self.last_error = ""
        self._session: Optional[aiohttp.ClientSession] = None
    
    async def __aenter__(self) -> "RemoteMouseClient":
        return self
    
    async def __aexit__(self, *exc_info) -> None:
        await self.close()
    
    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
        return self._session
    
    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None
        self.connected = False
    
    async def _request(self, method: str, endpoint: str, body: Optional[dict] = None) -> Dict[str, Any]:
        """
        Perform one request.
        
        Raises:
            TransportFailure: on network errors, timeouts or non-2xx status;
                the session is marked disconnected
        """
        url = f"{self.base_url}/{endpoint}"
        try:
            async with self._get_session().request(method, url, json=body) as response:
                if response.status >= 400:
                    raise TransportFailure(f"Server error: {response.status}")
                return await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            self._disconnect(f"Request error ({endpoint}): {e}")
            raise TransportFailure(str(e) or type(e).__name__) from e
        except TransportFailure as e:
            self._disconnect(f"Request error ({endpoint}): {e}")
            raise
    
    def _disconnect(self, message: str) -> None:
        logger.error(message)
        self.connected = False
        self.last_error = message
    
    def _require_connection(self) -> None:
        if not self.connected:
            raise TransportFailure("Not connected; reconnect first")
    
    @staticmethod
    def _position(data: Dict[str, Any]) -> Tuple[int, int]:
        position = data.get("position") or {}
        return position.get("x", 0), position.get("y", 0)
    
    async def connect(self) -> Tuple[int, int]:
        """Run the /test handshake. Returns the host's cursor position."""
        data = await self._request("GET", "test")
        self.connected = True
        self.last_error = ""
        return self._position(data)
    
    async def send_motion(self, delta: MotionDelta) -> Dict[str, Any]:
        self._require_connection()
        return await self._request("POST", "mouse", delta.to_dict())
    
    async def click(self, button: str) -> Dict[str, Any]:
        self._require_connection()
        return await self._request("POST", "click", {"type": button})
    
    async def position(self) -> Tuple[int, int]:
        self._require_connection()
        return self._position(await self._request("GET", "position"))


class TouchpadSession:
    """Glues touch callbacks to the sampler and the client."""
    
    def __init__(self, sampler: MotionSampler, client: RemoteMouseClient):
        self.sampler = sampler
        self.client = client
    
    @property
    def connected(self) -> bool:
        return self.client.connected
    
    async def connect(self) -> Tuple[int, int]:
        return await self.client.connect()
    
    def touch_start(self, x: float, y: float, timestamp_ms: float) -> None:
        self.sampler.on_touch_start(x, y, timestamp_ms)
    
    async def touch_move(self, x: float, y: float, timestamp_ms: float) -> bool:
        """
        Feed a touch position. Returns True if a motion event was sent.
        
        Raises:
            TransportFailure: if the send failed; the session is now
                disconnected
        """
        if not self.sampler.is_tracking or not self.client.connected:
            return False
        
        delta = self.sampler.on_touch_move(x, y, timestamp_ms)
        if not self.sampler.should_send(delta):
            return False
        
        await self.client.send_motion(delta)
        return True
    
    def touch_end(self) -> None:
        self.sampler.on_touch_end()
    
    async def click(self, button: str) -> bool:
        """Send a click if connected. Returns True if it was sent."""
        if not self.client.connected:
            return False
        await self.client.click(button)
        return True
    
    def adjust_sensitivity(self, increase: bool) -> float:
        return self.sampler.adjust_sensitivity(increase)
