"""
Resolver Web API

REST endpoints exposing the resolver operations to a host process:
- Forward, reverse and extended resolution
- Server selection and system server enumeration
- Initialize / uninitialize and health
- Recent lookup history
"""

import asyncio
import functools
import json
from datetime import datetime, timezone
from typing import Optional

from aiohttp import web
from aiohttp.web import Request, Response

from ..core.dispatcher import Dispatcher
from ..core.errors import (
    ErrorCode,
    FDNSError,
    InvalidServerSpecError,
    MissingArgumentError,
)
from ..dns_logging.lookup_logger import LookupLogger

# HTTP status per surfaced error code
ERROR_STATUS = {
    ErrorCode.NOT_INITIALIZED: 503,
    ErrorCode.MISSING_ARGUMENT: 400,
    ErrorCode.INVALID_ADDRESS: 400,
    ErrorCode.LIBRARY_INIT_FAILURE: 502,
}


def error_response(error: FDNSError) -> Response:
    """JSON body and status for a surfaced resolver error."""
    status = ERROR_STATUS.get(error.code, 500)
    if isinstance(error, InvalidServerSpecError):
        status = 400
    return web.json_response(
        {"error": str(error), "code": int(error.code)}, status=status
    )


def setup_api_routes(
    app: web.Application,
    dispatcher: Dispatcher,
    lookup_logger: Optional[LookupLogger] = None,
) -> None:
    """Setup API routes."""
    api = APIHandler(dispatcher, lookup_logger)

    # Resolution
    app.router.add_get("/api/resolve", api.resolve)
    app.router.add_get("/api/reverse", api.reverse)
    app.router.add_get("/api/resolve-extended", api.resolve_extended)

    # Server selection
    app.router.add_get("/api/server", api.get_current_server)
    app.router.add_put("/api/server", api.set_server)
    app.router.add_get("/api/system-servers", api.get_systems_server)

    # Lifecycle and health
    app.router.add_post("/api/initialize", api.initialize)
    app.router.add_post("/api/uninitialize", api.uninitialize)
    app.router.add_get("/api/health", api.health_check)

    # Lookup history
    app.router.add_get("/api/lookups", api.get_lookups)


class APIHandler:
    """Handles all API endpoints.

    Dispatcher calls block their thread for up to the lookup timeout, so
    they run in the loop's default executor.
    """

    def __init__(
        self, dispatcher: Dispatcher, lookup_logger: Optional[LookupLogger] = None
    ):
        self.dispatcher = dispatcher
        self.lookup_logger = lookup_logger

    async def _call(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(func, *args))

    @staticmethod
    def _timeout_param(request: Request) -> Optional[int]:
        raw = request.query.get("timeout_ms")
        if raw is None or raw == "":
            return None
        try:
            return int(raw)
        except ValueError:
            raise web.HTTPBadRequest(
                text=json.dumps({"error": f"timeout_ms must be an integer: {raw}"}),
                content_type="application/json",
            )

    async def resolve(self, request: Request) -> Response:
        """Resolve a hostname to one IPv4 address."""
        hostname = request.query.get("hostname", "")
        timeout_ms = self._timeout_param(request)
        try:
            address = await self._call(self.dispatcher.resolve, hostname, timeout_ms)
        except FDNSError as e:
            return error_response(e)
        return web.json_response({"hostname": hostname, "address": address})

    async def reverse(self, request: Request) -> Response:
        """Resolve an IPv4 address to a hostname."""
        ip = request.query.get("ip", "")
        timeout_ms = self._timeout_param(request)
        try:
            hostname = await self._call(self.dispatcher.reverse, ip, timeout_ms)
        except FDNSError as e:
            return error_response(e)
        return web.json_response({"ip": ip, "hostname": hostname})

    async def resolve_extended(self, request: Request) -> Response:
        """All supported records for a hostname."""
        hostname = request.query.get("hostname", "")
        timeout_ms = self._timeout_param(request)
        try:
            document = await self._call(
                self.dispatcher.resolve_extended, hostname, timeout_ms
            )
        except FDNSError as e:
            return error_response(e)
        return web.Response(text=document, content_type="application/json")

    async def get_current_server(self, request: Request) -> Response:
        return web.json_response({"server": self.dispatcher.get_current_server()})

    async def set_server(self, request: Request) -> Response:
        """Select the server list; an empty string selects the system default."""
        try:
            body = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            body = None

        try:
            if not isinstance(body, dict) or not isinstance(body.get("server"), str):
                raise MissingArgumentError("Missing server")
            await self._call(self.dispatcher.set_server, body["server"])
        except FDNSError as e:
            return error_response(e)

        return web.json_response({"server": self.dispatcher.get_current_server()})

    async def get_systems_server(self, request: Request) -> Response:
        servers = await self._call(self.dispatcher.get_systems_server)
        return web.json_response({"servers": servers})

    async def initialize(self, request: Request) -> Response:
        try:
            await self._call(self.dispatcher.initialize)
        except FDNSError as e:
            return error_response(e)
        return web.json_response({"initialized": True})

    async def uninitialize(self, request: Request) -> Response:
        await self._call(self.dispatcher.uninitialize)
        return web.json_response({"initialized": False})

    async def health_check(self, request: Request) -> Response:
        return web.json_response(
            {
                "status": "healthy",
                "initialized": self.dispatcher.store.initialized,
                "server": self.dispatcher.get_current_server(),
                "timestamp": datetime.now(timezone.utc)
                .isoformat()
                .replace("+00:00", "Z"),
            }
        )

    async def get_lookups(self, request: Request) -> Response:
        """Recent lookups, newest first."""
        if self.lookup_logger is None:
            return web.json_response({"lookups": [], "count": 0})

        try:
            limit = max(0, min(int(request.query.get("limit", 50)), 1000))
        except ValueError:
            limit = 50

        filters = {}
        for key in ("operation", "path", "target"):
            if request.query.get(key):
                filters[key] = request.query[key]

        lookups = self.lookup_logger.get_recent(limit=limit, filters=filters)
        return web.json_response({"lookups": lookups, "count": len(lookups)})
