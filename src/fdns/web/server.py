"""
Resolver Web Interface

This module provides the aiohttp server hosting the resolver REST API.
"""

import asyncio
from typing import Optional

import aiohttp_cors
from aiohttp import web
from aiohttp.web import Application

from ..config.schema import WebConfig
from ..core.dispatcher import Dispatcher
from ..dns_logging import get_logger
from ..dns_logging.lookup_logger import LookupLogger
from .api import setup_api_routes


class WebServer:
    """Resolver HTTP host"""

    def __init__(
        self,
        config: WebConfig,
        dispatcher: Dispatcher,
        lookup_logger: Optional[LookupLogger] = None,
    ):
        """Initialize web server.

        Args:
            config: Web configuration
            dispatcher: Resolver operations to expose
            lookup_logger: Lookup history for /api/lookups
        """
        self.config = config
        self.dispatcher = dispatcher
        self.lookup_logger = lookup_logger
        self.logger = get_logger("web_server")

        self.app: Optional[Application] = None
        self.runner: Optional[web.AppRunner] = None
        self.site: Optional[web.TCPSite] = None

    def setup_application(self) -> Application:
        """Setup aiohttp application with routes and middleware."""
        app = web.Application(
            middlewares=[
                self._create_logging_middleware(),
                self._create_error_middleware(),
            ]
        )

        setup_api_routes(app, self.dispatcher, self.lookup_logger)

        if self.config.cors_enabled:
            self._setup_cors(app)

        return app

    def _setup_cors(self, app: Application) -> None:
        """Allow cross-origin calls from the configured origins."""
        cors = aiohttp_cors.setup(
            app,
            defaults={
                origin: aiohttp_cors.ResourceOptions(
                    allow_credentials=False,
                    expose_headers="*",
                    allow_headers="*",
                    allow_methods="*",
                )
                for origin in self.config.cors_origins
            },
        )
        for route in list(app.router.routes()):
            cors.add(route)

    def _create_logging_middleware(self):
        """Create logging middleware."""
        logger = self.logger

        @web.middleware
        async def logging_middleware(request, handler):
            """Log HTTP requests."""
            loop = asyncio.get_running_loop()
            start_time = loop.time()

            try:
                response = await handler(request)
            except web.HTTPException as ex:
                logger.info(
                    "HTTP request",
                    method=request.method,
                    path=request.path,
                    remote=request.remote,
                    status=ex.status,
                    response_time_ms=round((loop.time() - start_time) * 1000, 2),
                )
                raise

            logger.info(
                "HTTP request",
                method=request.method,
                path=request.path,
                remote=request.remote,
                status=response.status,
                response_time_ms=round((loop.time() - start_time) * 1000, 2),
            )
            return response

        return logging_middleware

    def _create_error_middleware(self):
        """Create error handling middleware."""
        logger = self.logger

        @web.middleware
        async def error_middleware(request, handler):
            """Handle unexpected errors as JSON responses."""
            try:
                return await handler(request)
            except web.HTTPException:
                raise
            except Exception as ex:
                logger.error(
                    "Unhandled error in web server",
                    method=request.method,
                    path=request.path,
                    error=str(ex),
                    exc_info=True,
                )
                return web.json_response(
                    {"error": "Internal server error"}, status=500
                )

        return error_middleware

    async def start(self) -> None:
        """Start the web server."""
        if self.runner:
            self.logger.warning("Web server is already running")
            return

        try:
            self.app = self.setup_application()

            self.runner = web.AppRunner(self.app)
            await self.runner.setup()

            self.site = web.TCPSite(
                self.runner, host=self.config.bind_address, port=self.config.port
            )
            await self.site.start()

            self.logger.info(
                "Web server started",
                host=self.config.bind_address,
                port=self.config.port,
            )

        except Exception as ex:
            self.logger.error("Failed to start web server", error=str(ex))
            await self.stop()
            raise

    async def stop(self) -> None:
        """Stop the web server."""
        if self.site:
            await self.site.stop()
            self.site = None

        if self.runner:
            await self.runner.cleanup()
            self.runner = None

        self.app = None
        self.logger.info("Web server stopped")
