"""Tests for the MCP query tools."""

import json

import pytest
from mcp.shared.memory import create_connected_server_and_client_session

from mcp_pointer.exceptions import InvalidArgumentsError, UnknownOperationError
from mcp_pointer.models import TargetedElement
from mcp_pointer.query_service import (
    GET_POINTED_ELEMENT,
    GET_POINTED_ELEMENTS_BY_INDEX,
    NO_SELECTION_MESSAGE,
    QueryService,
)

from conftest import make_element_payload


@pytest.fixture
def service(store):
    return QueryService(store)


async def _select(store, *selectors):
    await store.write([
        TargetedElement.model_validate(make_element_payload(idx=i, selector=s))
        for i, s in enumerate(selectors, start=1)
    ])


def _text(result) -> str:
    assert len(result) == 1
    assert result[0].type == "text"
    return result[0].text


def test_list_operations(service):
    """Both tools are advertised with their input schemas."""
    tools = {tool.name: tool for tool in service.list_operations()}

    assert set(tools) == {GET_POINTED_ELEMENT, GET_POINTED_ELEMENTS_BY_INDEX}
    assert tools[GET_POINTED_ELEMENT].inputSchema["properties"] == {}
    indices = tools[GET_POINTED_ELEMENTS_BY_INDEX].inputSchema["properties"]["indices"]
    assert indices["type"] == "array"
    assert tools[GET_POINTED_ELEMENTS_BY_INDEX].inputSchema["required"] == ["indices"]
    assert all(tool.description for tool in tools.values())


@pytest.mark.asyncio
async def test_no_selection_when_never_written(service):
    """A store that was never written yields the instructional message."""
    assert _text(await service.invoke(GET_POINTED_ELEMENT, {})) == NO_SELECTION_MESSAGE


@pytest.mark.asyncio
async def test_no_selection_after_clear(service, store):
    """A cleared selection yields the same message as a never-written one."""
    await _select(store, "div.a")
    await store.write(None)

    assert _text(await service.invoke(GET_POINTED_ELEMENT, {})) == NO_SELECTION_MESSAGE
    assert (
        _text(await service.invoke(GET_POINTED_ELEMENTS_BY_INDEX, {"indices": [0]}))
        == NO_SELECTION_MESSAGE
    )


@pytest.mark.asyncio
async def test_no_selection_with_corrupted_state(service, store):
    """Corrupt state renders as no selection, not an error."""
    store.path.write_text("{{{")

    assert _text(await service.invoke(GET_POINTED_ELEMENT)) == NO_SELECTION_MESSAGE


@pytest.mark.asyncio
async def test_get_pointed_element_formats_selection(service, store):
    """Every element is listed with a 1-based display index and full payload."""
    payload = make_element_payload(selector="div.a", idx=1)
    await store.write([TargetedElement.model_validate(payload)])

    text = _text(await service.invoke(GET_POINTED_ELEMENT, {}))

    assert text.startswith("Selected 1 element(s)")
    assert "Element 1:" in text
    assert json.dumps(payload["cssProperties"], indent=2).replace("\n", "\n  ") in text
    assert '"selector": "div.a"' in text


@pytest.mark.asyncio
async def test_get_pointed_element_multiple(service, store):
    """Multiple elements are enumerated in selection order."""
    await _select(store, "div.a", "div.b", "div.c")

    text = _text(await service.invoke(GET_POINTED_ELEMENT, {}))

    assert text.startswith("Selected 3 element(s)")
    assert text.index("Element 1:") < text.index("Element 2:") < text.index("Element 3:")
    assert text.index("div.a") < text.index("div.b") < text.index("div.c")


@pytest.mark.asyncio
async def test_get_by_index_returns_all_in_range(service, store):
    """Indices 0..N-1 return every element in request order."""
    await _select(store, "div.a", "div.b", "div.c")

    text = _text(await service.invoke(GET_POINTED_ELEMENTS_BY_INDEX, {"indices": [2, 0, 1]}))

    assert "Error" not in text
    assert text.index("Index 2:") < text.index("Index 0:") < text.index("Index 1:")
    assert text.index("div.c") < text.index("div.a") < text.index("div.b")


@pytest.mark.asyncio
async def test_get_by_index_partial_success(service, store):
    """Out-of-range indices get a per-index error; the rest still succeed."""
    await _select(store, "div.a", "div.b")

    text = _text(await service.invoke(GET_POINTED_ELEMENTS_BY_INDEX, {"indices": [0, 2, -1, 1]}))

    assert "Index 2: Error: index 2 is out of range (valid range: 0..1)" in text
    assert "Index -1: Error: index -1 is out of range (valid range: 0..1)" in text
    assert '"selector": "div.a"' in text
    assert '"selector": "div.b"' in text


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "arguments",
    [None, {}, {"indices": "0"}, {"indices": [0.5]}, {"indices": [True]}],
)
async def test_get_by_index_rejects_bad_arguments(service, store, arguments):
    """Arguments that do not match the schema are a caller error."""
    await _select(store, "div.a")

    with pytest.raises(InvalidArgumentsError):
        await service.invoke(GET_POINTED_ELEMENTS_BY_INDEX, arguments)


@pytest.mark.asyncio
async def test_unknown_operation(service):
    """Unregistered tool names fail loudly."""
    with pytest.raises(UnknownOperationError) as exc_info:
        await service.invoke("get-everything", {})

    assert str(exc_info.value) == "Unknown tool: get-everything"


@pytest.mark.asyncio
async def test_query_never_writes_state(service, store):
    """Invoking tools leaves the state file untouched."""
    await _select(store, "div.a")
    before = store.path.read_text()
    mtime = store.path.stat().st_mtime_ns

    await service.invoke(GET_POINTED_ELEMENT, {})
    await service.invoke(GET_POINTED_ELEMENTS_BY_INDEX, {"indices": [0, 5]})

    assert store.path.read_text() == before
    assert store.path.stat().st_mtime_ns == mtime


@pytest.mark.asyncio
async def test_mcp_session_lists_both_tools(service):
    """An MCP client sees both tools through the protocol."""
    async with create_connected_server_and_client_session(service.server) as client:
        result = await client.list_tools()

    assert {tool.name for tool in result.tools} == {
        GET_POINTED_ELEMENT,
        GET_POINTED_ELEMENTS_BY_INDEX,
    }


@pytest.mark.asyncio
async def test_mcp_session_calls_tools(service, store):
    """Tool calls over the protocol return the formatted selection."""
    await _select(store, "div.a")

    async with create_connected_server_and_client_session(service.server) as client:
        everything = await client.call_tool(GET_POINTED_ELEMENT, {})
        by_index = await client.call_tool(GET_POINTED_ELEMENTS_BY_INDEX, {"indices": [0, 3]})

    assert not everything.isError
    assert everything.content[0].text.startswith("Selected 1 element(s)")
    assert not by_index.isError
    assert '"selector": "div.a"' in by_index.content[0].text
    assert (
        "Index 3: Error: index 3 is out of range (valid range: 0..0)"
        in by_index.content[0].text
    )


@pytest.mark.asyncio
async def test_mcp_session_reports_unknown_tool(service):
    """Unknown tool names come back to the client as an error result."""
    async with create_connected_server_and_client_session(service.server) as client:
        result = await client.call_tool("nope", {})

    assert result.isError
    assert result.content[0].text == "Unknown tool: nope"
