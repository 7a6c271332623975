"""MCP Pointer - lets AI coding tools see the DOM element you point at."""

__version__ = "0.3.0"
