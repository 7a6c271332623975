"""WebSocket connection management for the browser extension ingress."""

import json
import logging
import time
import uuid
from typing import Dict, Optional, Union

from fastapi import WebSocket, WebSocketDisconnect, status
from pydantic import ValidationError

from .exceptions import InvalidPayloadError, MCPPointerError
from .models.element import Selection
from .models.messages import (
    PointerMessage,
    PointerMessageType,
    ServerStatus,
    selection_from_payload,
    server_status_message,
)
from .types import SelectionHandler, WebSocketMessage

logger = logging.getLogger(__name__)


class ConnectionManager:
    """
    Manages extension WebSocket connections and decodes pointer messages.

    Features:
    - Connection limits
    - One sequential receive loop per connection (arrival order preserved)
    - Malformed frames are logged and dropped
    - Selection changes forwarded to a single handler (the state store)
    """

    def __init__(
        self,
        on_selection: Optional[SelectionHandler] = None,
        max_connections: int = 100,
    ):
        self.on_selection = on_selection
        self.max_connections = max_connections
        self.active_connections: Dict[str, WebSocket] = {}
        self.elements_inspected = 0
        self.started_at = time.monotonic()

    async def connect(self, websocket: WebSocket) -> Optional[str]:
        """
        Accept a WebSocket connection.

        Args:
            websocket: FastAPI WebSocket instance

        Returns:
            Connection id, or None if the connection was refused
        """
        if len(self.active_connections) >= self.max_connections:
            logger.warning("Connection limit reached")
            await websocket.close(
                code=status.WS_1008_POLICY_VIOLATION, reason="Server at capacity"
            )
            return None

        await websocket.accept()
        connection_id = str(uuid.uuid4())
        self.active_connections[connection_id] = websocket
        logger.info(
            f"Browser extension connected: {connection_id[:8]} "
            f"(total: {len(self.active_connections)})"
        )
        return connection_id

    def disconnect(self, connection_id: str) -> None:
        """Forget a connection."""
        if self.active_connections.pop(connection_id, None) is not None:
            logger.info(f"Browser extension disconnected: {connection_id[:8]}")

    def get_connection_count(self) -> int:
        """Get number of active connections."""
        return len(self.active_connections)

    def get_status(self) -> ServerStatus:
        """Current ingress status as reported to the extension."""
        return ServerStatus(
            connected=True,
            elementsInspected=self.elements_inspected,
            uptime=round(time.monotonic() - self.started_at, 3),
        )

    async def serve(self, websocket: WebSocket) -> None:
        """
        Receive loop for one extension connection.

        Frames are handled one at a time, so a selection is stored before the
        next frame of the same connection is read.
        """
        connection_id = await self.connect(websocket)
        if connection_id is None:
            return

        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break

                frame = message.get("text")
                if frame is None:
                    frame = message.get("bytes") or b""
                await self.handle_frame(connection_id, frame)

        except WebSocketDisconnect:
            pass
        except Exception as e:
            logger.error(f"WebSocket error on {connection_id[:8]}: {e}", exc_info=True)
        finally:
            self.disconnect(connection_id)

    async def handle_frame(self, connection_id: str, frame: Union[str, bytes]) -> None:
        """
        Decode one frame and apply it.

        Never raises for bad input: undecodable frames, unknown types and
        invalid payloads are dropped.
        """
        try:
            message = PointerMessage.model_validate_json(frame)
        except (ValidationError, UnicodeDecodeError) as e:
            logger.error(f"[WS IN] {connection_id[:8]} | Failed to parse message: {e}")
            return

        logger.info(f"[WS IN] {connection_id[:8]} | {message.type.value}")

        if message.type == PointerMessageType.ELEMENT_SELECTED:
            try:
                selection = selection_from_payload(message.data)
            except InvalidPayloadError as e:
                logger.error(f"Dropping element-selected message: {e.detail}")
                return
            if await self._apply_selection(selection):
                self.elements_inspected += len(selection)

        elif message.type == PointerMessageType.ELEMENT_CLEARED:
            await self._apply_selection([])

        elif message.type == PointerMessageType.CONNECTION_TEST:
            await self.send_message(connection_id, server_status_message(self.get_status()))

        else:
            logger.debug(f"Ignoring {message.type.value} message from extension")

    async def _apply_selection(self, selection: Selection) -> bool:
        """Hand a selection to the handler; True once it has been committed."""
        if self.on_selection is None:
            logger.warning("No selection handler registered, dropping selection")
            return False

        try:
            await self.on_selection(selection)
        except MCPPointerError as e:
            logger.error(f"Failed to apply selection: {e.message} {e.detail}".rstrip())
            return False
        return True

    async def send_message(self, connection_id: str, message: WebSocketMessage) -> bool:
        """
        Send JSON message to a specific connection.

        Returns:
            True if message was sent successfully, False otherwise
        """
        websocket = self.active_connections.get(connection_id)
        if not websocket:
            logger.warning(f"Attempted to send to non-existent connection: {connection_id}")
            return False

        try:
            msg_type = message.get("type", "unknown")
            logger.debug(
                f"[WS OUT] {connection_id[:8]} | {msg_type} | {json.dumps(message)[:200]}"
            )
            await websocket.send_json(message)
            return True
        except Exception as e:
            logger.error(f"Error sending message to {connection_id[:8]}: {e}")
            return False
