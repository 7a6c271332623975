"""WebSocket message models exchanged with the browser extension."""

import time
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, ValidationError

from ..exceptions import InvalidPayloadError
from ..types import ServerStatusMessageDict
from .element import SELECTION_ADAPTER, Selection


class PointerMessageType(str, Enum):
    """Discriminator of a pointer message."""
    ELEMENT_SELECTED = "element-selected"
    ELEMENT_CLEARED = "element-cleared"
    CONNECTION_TEST = "connection-test"
    SERVER_STATUS = "server-status"


class PointerMessage(BaseModel):
    """Envelope of every frame sent over the ingress socket."""

    type: PointerMessageType = Field(..., description="Message type")
    data: Optional[Any] = Field(None, description="Type-dependent payload")
    timestamp: Optional[int] = Field(None, description="Send time (epoch ms)")


class ServerStatus(BaseModel):
    """Status reported back to the extension on a connection test."""

    connected: bool = Field(True, description="Whether the relay is reachable")
    elementsInspected: int = Field(0, description="Selections received so far")
    uptime: float = Field(0.0, description="Seconds since the ingress started")


def selection_from_payload(data: Any) -> Selection:
    """
    Normalize an ``element-selected`` payload into a selection list.

    The extension sends either a single element or an array of them.

    Raises:
        InvalidPayloadError: If data is missing or not element-shaped
    """
    if data is None:
        raise InvalidPayloadError("element-selected message without data")

    items = data if isinstance(data, list) else [data]
    try:
        return SELECTION_ADAPTER.validate_python(items)
    except ValidationError as e:
        raise InvalidPayloadError(str(e)) from e


def server_status_message(status: ServerStatus) -> ServerStatusMessageDict:
    """Build a ``server-status`` frame."""
    return {
        "type": PointerMessageType.SERVER_STATUS.value,
        "data": status.model_dump(),
        "timestamp": int(time.time() * 1000),
    }
