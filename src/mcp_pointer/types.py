"""Common type definitions for MCP Pointer.

TypedDict definitions for the dict-shaped structures the relay sends, so
callers avoid bare Dict[str, Any].
"""

from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, List, Optional, Union

from typing_extensions import TypedDict

if TYPE_CHECKING:
    from .models.element import TargetedElement


class ServerStatusDict(TypedDict, total=False):
    """Payload of a server-status frame."""
    connected: bool
    elementsInspected: int
    uptime: float


class ServerStatusMessageDict(TypedDict, total=False):
    """server-status frame sent in reply to a connection test."""
    type: str
    data: ServerStatusDict
    timestamp: int


class HealthDict(TypedDict, total=False):
    """Body of GET /health on the leader."""
    status: str
    service: str
    role: str
    port: Optional[int]
    active_connections: int
    elements_inspected: int
    uptime: float


# Union of all possible outbound WebSocket message types
WebSocketMessage = Union[
    ServerStatusMessageDict,
    Dict[str, Any],  # Fallback for unknown message types
]

# Callback invoked with every decoded selection (empty list = cleared)
SelectionHandler = Callable[[List["TargetedElement"]], Awaitable[None]]
