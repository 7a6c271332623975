"""Data models for MCP Pointer."""

from .element import ComponentInfo, ElementPosition, Selection, TargetedElement
from .messages import (
    PointerMessage,
    PointerMessageType,
    ServerStatus,
    selection_from_payload,
    server_status_message,
)

__all__ = [
    "ComponentInfo",
    "ElementPosition",
    "Selection",
    "TargetedElement",
    "PointerMessage",
    "PointerMessageType",
    "ServerStatus",
    "selection_from_payload",
    "server_status_message",
]
