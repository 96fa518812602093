"""
Resolver Main Entry Point

This script provides the main entry point for hosting the resolver behind
its HTTP API.
"""

import argparse
import asyncio
import signal
import sys
from typing import Optional

from .config.loader import ConfigLoader
from .config.schema import FDNSConfig
from .core import ChannelFactory, Dispatcher, LibraryInitError, ServerConfigStore
from .dns_logging import LookupLogger, get_logger, log_exception, setup_logging
from .web import WebServer


class FDNSApp:
    """Resolver host application"""

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = config_path
        self.config: Optional[FDNSConfig] = None
        self.dispatcher: Optional[Dispatcher] = None
        self.lookup_logger: Optional[LookupLogger] = None
        self.web_server: Optional[WebServer] = None
        self._shutdown_event = asyncio.Event()
        self.logger = None

    def initialize(self) -> None:
        """Load configuration, wire the resolver and initialize it."""
        try:
            self.config = ConfigLoader(self.config_path).load_config()

            setup_logging(self.config.logging)
            self.logger = get_logger("fdns_app")
            self.logger.info(
                "Structured logging configured",
                level=self.config.logging.level,
                format=self.config.logging.format,
                file=self.config.logging.file,
            )

            resolver_config = self.config.resolver
            factory = ChannelFactory(
                resolv_conf=resolver_config.resolv_conf,
                **resolver_config.channel_options(),
            )

            self.lookup_logger = LookupLogger(
                enabled=self.config.logging.log_lookups
            )
            self.dispatcher = Dispatcher(
                store=ServerConfigStore(factory),
                default_timeout_ms=resolver_config.default_timeout_ms,
                unusable_server_policy=resolver_config.unusable_server_policy,
                lookup_logger=self.lookup_logger,
            )

            self.dispatcher.initialize()
            if resolver_config.initial_server:
                self.dispatcher.set_server(resolver_config.initial_server)

            if self.config.web.enabled:
                self.web_server = WebServer(
                    self.config.web, self.dispatcher, self.lookup_logger
                )

            self.logger.info(
                "Resolver initialized",
                server=self.dispatcher.get_current_server() or None,
                system_servers=self.dispatcher.get_systems_server(),
                web_enabled=self.web_server is not None,
            )

        except LibraryInitError as e:
            if self.logger:
                log_exception(self.logger, "Failed to initialize resolver", e)
            raise
        except Exception as e:
            if self.logger:
                log_exception(self.logger, "Failed to initialize application", e)
            else:
                print(f"Failed to initialize application: {e}")
            raise

    async def start(self) -> None:
        """Serve until SIGINT or SIGTERM"""
        if not self.dispatcher:
            self.initialize()

        try:
            if self.web_server:
                await self.web_server.start()

            loop = asyncio.get_running_loop()
            for sig in [signal.SIGTERM, signal.SIGINT]:
                loop.add_signal_handler(sig, self._signal_handler)

            await self._shutdown_event.wait()

        except Exception as e:
            log_exception(self.logger, "Error running resolver host", e)
            raise
        finally:
            await self.stop()

    async def stop(self) -> None:
        """Stop serving and release the resolver"""
        self.logger.info("Shutting down resolver host")

        if self.web_server:
            await self.web_server.stop()

        if self.dispatcher:
            self.dispatcher.uninitialize()

        self.logger.info("Resolver host shutdown complete")

    def _signal_handler(self) -> None:
        """Handle shutdown signals"""
        self.logger.info("Received shutdown signal")
        self._shutdown_event.set()


async def main(argv=None) -> None:
    """Main function"""
    parser = argparse.ArgumentParser(description="fdns resolver host")
    parser.add_argument(
        "--config", "-c", default=None, help="Configuration file path"
    )
    parser.add_argument(
        "--resolve", metavar="HOSTNAME", help="Resolve one hostname and exit"
    )
    parser.add_argument(
        "--server", default=None, help="Server list to use with --resolve"
    )

    args = parser.parse_args(argv)

    app = FDNSApp(args.config)

    if args.resolve:
        app.initialize()
        try:
            if args.server is not None:
                app.dispatcher.set_server(args.server)
            print(app.dispatcher.resolve_extended(args.resolve))
        finally:
            app.dispatcher.uninitialize()
        return

    await app.start()


def run() -> None:
    """Console script entry point"""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nResolver host interrupted")
    except Exception as e:
        print(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    run()
