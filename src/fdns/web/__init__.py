"""
Resolver Web Interface Module
"""

from .api import APIHandler, setup_api_routes
from .server import WebServer

__all__ = ["WebServer", "APIHandler", "setup_api_routes"]
