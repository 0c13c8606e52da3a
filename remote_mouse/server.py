"""
HTTP and WebSocket server for Remote Mouse.

HTTP (request/response, one event per request):
    GET  /test      connectivity handshake
    POST /mouse     {deltaX, deltaY}
    POST /click     {type: "left" | "right"}
    GET  /position  current cursor position

WebSocket on port + 1 (pipelined delivery): each text frame is a JSON
object whose "type" selects the action ("mouse", "click", "position",
"test"); every frame gets exactly one JSON reply with the HTTP body
shape plus "status".
"""

import asyncio
import json
import logging
from typing import Any, Dict, Optional, Set, Tuple

from aiohttp import web
from websockets.asyncio.server import ServerConnection, serve as ws_serve
from websockets.exceptions import ConnectionClosed

from .config import Config, get_config, get_local_ip
from .errors import CapabilityUnavailable, InvalidInput
from .input_handler import CursorControl, get_cursor_control
from .integrator import MotionIntegrator

logger = logging.getLogger(__name__)

# Error text reported when the capability fails, per action
CAPABILITY_ERRORS = {
    "test": "Failed to initialize mouse control",
    "position": "Failed to get mouse position",
}

ACTIONS = ("test", "mouse", "click", "position")


class RemoteMouseServer:
    """
    Host server that applies remote motion and click events.
    
    All cursor work runs in a worker thread via ``asyncio.to_thread`` so
    overlapping requests really do overlap; the integrator serializes
    them.
    """
    
    def __init__(
        self,
        config: Optional[Config] = None,
        cursor: Optional[CursorControl] = None
    ):
        """Initialize the server."""
        self.config = config or get_config()
        
        # Cursor capability and integrator (lazy loaded)
        self._cursor = cursor
        self._integrator: Optional[MotionIntegrator] = None
        if cursor is not None:
            self._integrator = MotionIntegrator.from_config(self.config, cursor)
        
        # Track active WebSocket connections
        self.clients: Set[ServerConnection] = set()
        
        # Server instances
        self.http_runner: Optional[web.AppRunner] = None
        self.ws_server = None
        
        # Shutdown event
        self.shutdown_event = asyncio.Event()
        
        self.http_app = web.Application(
            middlewares=[self._cors_middleware, self._error_middleware]
        )
        self._setup_http_routes()
    
    def _setup_http_routes(self) -> None:
        """Setup HTTP routes."""
        self.http_app.router.add_get("/test", self._handle_test)
        self.http_app.router.add_post("/mouse", self._handle_mouse)
        self.http_app.router.add_post("/click", self._handle_click)
        self.http_app.router.add_get("/position", self._handle_position)
    
    def _get_integrator(self) -> MotionIntegrator:
        """Get or create the motion integrator."""
        if self._integrator is None:
            if self._cursor is None:
                self._cursor = get_cursor_control(self.config.backend)
            self._integrator = MotionIntegrator.from_config(self.config, self._cursor)
        return self._integrator
    
    @property
    def integrator(self) -> MotionIntegrator:
        return self._get_integrator()
    
    @web.middleware
    async def _cors_middleware(self, request: web.Request, handler) -> web.StreamResponse:
        """Allow the controller app to call us from any origin."""
        if request.method == "OPTIONS":
            response = web.Response(status=204)
        else:
            try:
                response = await handler(request)
            except web.HTTPException as e:
                e.headers.update(self._cors_headers())
                raise

        response.headers.update(self._cors_headers())
        return response

    def _cors_headers(self) -> Dict[str, str]:
        return {
            "Access-Control-Allow-Origin": self.config.cors_origin,
            "Access-Control-Allow-Methods": "GET, POST",
            "Access-Control-Allow-Headers": "Content-Type",
        }
    
    @web.middleware
    async def _error_middleware(self, request: web.Request, handler) -> web.StreamResponse:
        """Last-resort handler: nothing escapes a request as a crash."""
        try:
            return await handler(request)
        except web.HTTPException:
            raise
        except Exception:
            logger.exception("Unhandled error on %s %s", request.method, request.path)
            return web.json_response(
                {"success": False, "error": "Internal server error"},
                status=500
            )
    
    async def dispatch(self, action: str, data: Dict[str, Any]) -> Tuple[int, Dict[str, Any]]:
        """
        Run one action against the integrator.
        
        Returns:
            (status, body) with HTTP semantics
        """
        try:
            if action not in ACTIONS:
                raise InvalidInput(f"Unknown message type: {action!r}")
            
            integrator = self._get_integrator()
            
            if action == "test":
                status = await asyncio.to_thread(integrator.query_status)
                return 200, {
                    "success": True,
                    "message": "Server is running and cursor control is operational",
                    **status,
                }
            
            if action == "mouse":
                result = await asyncio.to_thread(
                    integrator.handle_motion, data.get("deltaX"), data.get("deltaY")
                )
                return 200, {"success": True, **result.to_dict()}
            
            if action == "click":
                message = await asyncio.to_thread(integrator.handle_click, data.get("type"))
                return 200, {"success": True, "message": message}
            
            x, y = await asyncio.to_thread(integrator.query_position)
            return 200, {"success": True, "position": {"x": x, "y": y}}
        
        except InvalidInput as e:
            logger.warning("Rejected %s request: %s", action, e)
            return 400, {"success": False, "error": str(e)}
        except CapabilityUnavailable as e:
            logger.error("Cursor control error during %s: %s", action, e)
            return 500, {"success": False, "error": CAPABILITY_ERRORS.get(action, str(e))}
    
    async def _read_json(self, request: web.Request) -> Dict[str, Any]:
        """Parse a JSON object body; anything else is InvalidInput."""
        try:
            data = await request.json()
        except ValueError:
            raise InvalidInput("Request body must be valid JSON")
        if not isinstance(data, dict):
            raise InvalidInput("Request body must be a JSON object")
        return data
    
    async def _respond(self, action: str, request: Optional[web.Request] = None) -> web.Response:
        data: Dict[str, Any] = {}
        if request is not None:
            try:
                data = await self._read_json(request)
            except InvalidInput as e:
                logger.warning("Rejected %s request: %s", action, e)
                return web.json_response({"success": False, "error": str(e)}, status=400)
        
        status, body = await self.dispatch(action, data)
        return web.json_response(body, status=status)
    
    async def _handle_test(self, request: web.Request) -> web.Response:
        return await self._respond("test")
    
    async def _handle_mouse(self, request: web.Request) -> web.Response:
        return await self._respond("mouse", request)
    
    async def _handle_click(self, request: web.Request) -> web.Response:
        return await self._respond("click", request)
    
    async def _handle_position(self, request: web.Request) -> web.Response:
        return await self._respond("position")
    
    async def handle_ws_message(self, message: Any) -> Dict[str, Any]:
        """Handle one WebSocket frame and build its reply."""
        try:
            data = json.loads(message)
        except (TypeError, ValueError):
            data = None
        
        if not isinstance(data, dict):
            return {"status": 400, "success": False, "error": "Message must be a JSON object"}
        
        action = data.get("type", "")
        if action == "click":
            # "type" names the action here, so the button travels as "button"
            data = {"type": data.get("button")}
        
        try:
            status, body = await self.dispatch(action, data)
        except Exception:
            # Every frame gets a reply; the connection stays open
            logger.exception("Unhandled error on WebSocket %s message", action)
            return {"status": 500, "success": False, "error": "Internal server error"}
        return {"status": status, **body}
    
    async def _websocket_handler(self, websocket: ServerConnection) -> None:
        """Handle a WebSocket connection."""
        self.clients.add(websocket)
        logger.info("Client connected: %s", websocket.remote_address)
        
        try:
            async for message in websocket:
                reply = await self.handle_ws_message(message)
                await websocket.send(json.dumps(reply))
        except ConnectionClosed:
            pass
        finally:
            self.clients.discard(websocket)
            logger.info("Client disconnected: %s", websocket.remote_address)
    
    async def start(self) -> None:
        """Start both HTTP and WebSocket servers."""
        self.http_runner = web.AppRunner(self.http_app)
        await self.http_runner.setup()
        http_site = web.TCPSite(self.http_runner, self.config.host, self.config.port)
        await http_site.start()
        
        self.ws_server = await ws_serve(
            self._websocket_handler,
            self.config.host,
            self.config.ws_port,
            max_size=64 * 1024,
            ping_interval=20,
            ping_timeout=20,
        )
        
        # Show user-friendly URL
        display_host = self.config.host
        if display_host == "0.0.0.0":
            display_host = get_local_ip()
        
        print(f"\n🖱️  Remote Mouse started!")
        print(f"   HTTP:      http://{display_host}:{self.config.port}")
        print(f"   WebSocket: ws://{display_host}:{self.config.ws_port}")
        print(f"\n   Enter {display_host} in the controller app to connect.\n")
    
    @property
    def bound_ports(self) -> Tuple[Optional[int], Optional[int]]:
        """Actual (http, ws) ports, useful when started on port 0."""
        http_port = ws_port = None
        if self.http_runner is not None and self.http_runner.addresses:
            http_port = self.http_runner.addresses[0][1]
        if self.ws_server is not None and self.ws_server.sockets:
            ws_port = list(self.ws_server.sockets)[0].getsockname()[1]
        return http_port, ws_port
    
    async def stop(self) -> None:
        """Stop the servers."""
        for client in list(self.clients):
            await client.close()
        self.clients.clear()
        
        if self.ws_server:
            self.ws_server.close()
            await self.ws_server.wait_closed()
            self.ws_server = None
        
        if self.http_runner:
            await self.http_runner.cleanup()
            self.http_runner = None
        
        print("\n🖱️  Remote Mouse stopped.\n")
    
    async def run_forever(self) -> None:
        """Run the server until interrupted."""
        await self.start()
        
        try:
            await self.shutdown_event.wait()
        except asyncio.CancelledError:
            pass
        finally:
            await self.stop()
    
    def run(self) -> None:
        """Run the server (blocking)."""
        try:
            asyncio.run(self.run_forever())
        except KeyboardInterrupt:
            print("\nShutting down...")
