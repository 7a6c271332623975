"""MCP tools exposing the current selection to the AI tool."""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

from mcp.server import NotificationOptions, Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool
from pydantic import BaseModel, Field, StrictInt, ValidationError

from . import __version__
from .exceptions import InvalidArgumentsError, UnknownOperationError
from .models.element import Selection, TargetedElement
from .shared_state import SharedStateStore

logger = logging.getLogger(__name__)

SERVER_NAME = "mcp-pointer"

GET_POINTED_ELEMENT = "get-pointed-element"
GET_POINTED_ELEMENTS_BY_INDEX = "get-pointed-elements-by-index"

NO_SELECTION_MESSAGE = (
    "No element is currently pointed. "
    "The user needs to point an element in their browser using Option+Click."
)


class IndexQuery(BaseModel):
    """Arguments of get-pointed-elements-by-index."""

    indices: List[StrictInt] = Field(..., description="Zero-based selection indices")


def _dump(element: TargetedElement) -> str:
    return json.dumps(element.to_payload(), indent=2)


def format_selection(selection: Selection) -> str:
    """Render every selected element with a 1-based display index."""
    blocks = [f"Selected {len(selection)} element(s):"]
    for position, element in enumerate(selection, start=1):
        blocks.append(f"Element {position}:\n{_dump(element)}")
    return "\n\n".join(blocks)


def format_indexed_selection(selection: Selection, indices: List[int]) -> str:
    """
    Render the requested elements in request order.

    Out-of-range indices produce a per-index error line; the other indices
    are still rendered.
    """
    count = len(selection)
    blocks = [f"Requested {len(indices)} element(s) out of {count} selected:"]
    for index in indices:
        if 0 <= index < count:
            blocks.append(f"Index {index}:\n{_dump(selection[index])}")
        else:
            blocks.append(
                f"Index {index}: Error: index {index} is out of range "
                f"(valid range: 0..{count - 1})"
            )
    return "\n\n".join(blocks)


class QueryService:
    """
    MCP server answering the AI tool's questions about the selection.

    Tools:
    - get-pointed-element: every currently selected element
    - get-pointed-elements-by-index: selected elements by zero-based index

    Read-only: the store is written by the ingress side only.
    """

    def __init__(self, store: SharedStateStore, name: str = SERVER_NAME):
        self.store = store
        self.ready = asyncio.Event()
        self.server = Server(
            name=name,
            version=__version__,
            instructions="Lets you see DOM elements the user points at in their browser.",
        )
        self._setup_handlers()

    def _setup_handlers(self) -> None:
        """Register the MCP list/call handlers."""

        @self.server.list_tools()
        async def handle_list_tools() -> list[Tool]:
            return self.list_operations()

        @self.server.call_tool()
        async def handle_call_tool(
            name: str, arguments: Optional[Dict[str, Any]]
        ) -> list[TextContent]:
            return await self.invoke(name, arguments)

    def list_operations(self) -> List[Tool]:
        """Static tool metadata."""
        return [
            Tool(
                name=GET_POINTED_ELEMENT,
                description=(
                    "Get information about the currently pointed/shown DOM elements "
                    "from the browser extension. Use this tool when the user wants "
                    "you to analyze specific elements they've selected in their "
                    "browser, in order to see the element(s) the user is showing you."
                ),
                inputSchema={
                    "type": "object",
                    "properties": {},
                    "required": [],
                },
            ),
            Tool(
                name=GET_POINTED_ELEMENTS_BY_INDEX,
                description=(
                    "Get specific pointed DOM elements by their zero-based position "
                    "in the current selection. Out-of-range indices are reported "
                    "individually."
                ),
                inputSchema={
                    "type": "object",
                    "properties": {
                        "indices": {
                            "type": "array",
                            "items": {"type": "integer"},
                            "description": "Zero-based indices of the elements to fetch",
                        },
                    },
                    "required": ["indices"],
                },
            ),
        ]

    async def invoke(
        self, name: str, arguments: Optional[Dict[str, Any]] = None
    ) -> List[TextContent]:
        """
        Run a tool.

        Raises:
            UnknownOperationError: If no tool has that name
            InvalidArgumentsError: If the arguments do not fit the tool
        """
        logger.info(f"Tool call: {name}")

        if name == GET_POINTED_ELEMENT:
            return await self._get_pointed_element()

        if name == GET_POINTED_ELEMENTS_BY_INDEX:
            try:
                query = IndexQuery.model_validate(arguments or {})
            except ValidationError as e:
                raise InvalidArgumentsError(name, detail=str(e)) from e
            return await self._get_pointed_elements_by_index(query.indices)

        raise UnknownOperationError(name)

    async def _get_pointed_element(self) -> List[TextContent]:
        selection = await self.store.read()
        if not selection:
            return [TextContent(type="text", text=NO_SELECTION_MESSAGE)]
        return [TextContent(type="text", text=format_selection(selection))]

    async def _get_pointed_elements_by_index(self, indices: List[int]) -> List[TextContent]:
        selection = await self.store.read()
        if not selection:
            return [TextContent(type="text", text=NO_SELECTION_MESSAGE)]
        return [TextContent(type="text", text=format_indexed_selection(selection, indices))]

    async def run_stdio(self) -> None:
        """Serve MCP over stdin/stdout until the host closes stdin."""
        async with stdio_server() as (read_stream, write_stream):
            init_options = self.server.create_initialization_options(
                notification_options=NotificationOptions(
                    tools_changed=False, prompts_changed=False, resources_changed=False
                ),
                experimental_capabilities={},
            )
            self.ready.set()
            logger.debug("MCP stdio transport ready")
            try:
                await self.server.run(read_stream, write_stream, init_options)
            finally:
                self.ready.clear()
