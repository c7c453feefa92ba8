"""Protocol layer: JSON-RPC dispatcher, stdio loop and HTTP app."""

from .dependencies import AppDependencies, build_dependencies
from .dispatcher import McpDispatcher
from .stdio import serve_stdio

__all__ = ["AppDependencies", "McpDispatcher", "build_dependencies", "serve_stdio"]
