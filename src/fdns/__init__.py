"""
fdns - DNS resolution with a selectable server

Forward, reverse and extended lookups through either the operating system
resolver or a built-in UDP client bound to a user-chosen server list.
"""

__version__ = "1.0.0"

from .core import Dispatcher, ServerConfigStore

__all__ = ["Dispatcher", "ServerConfigStore", "__version__"]
