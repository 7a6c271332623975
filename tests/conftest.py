"""Shared fixtures for MCP Pointer tests."""

import socket
import time
from typing import Any, Dict

import pytest

from mcp_pointer.shared_state import SharedStateStore


def make_element_payload(**overrides: Any) -> Dict[str, Any]:
    """Element dict as the browser extension sends it."""
    payload: Dict[str, Any] = {
        "idx": 1,
        "selector": "div.test-element",
        "tagName": "DIV",
        "id": "test-id",
        "classes": ["test-class"],
        "innerText": "Test Element",
        "outerHTML": '<div id="test-id" class="test-class">Test Element</div>',
        "attributes": {"data-test": "true"},
        "position": {"x": 100, "y": 200, "width": 300, "height": 50},
        "cssProperties": {
            "display": "block",
            "position": "relative",
            "fontSize": "16px",
            "color": "rgb(0, 0, 0)",
            "backgroundColor": "rgb(255, 255, 255)",
        },
        "timestamp": int(time.time() * 1000),
        "url": "https://example.com",
        "tabId": 123,
    }
    payload.update(overrides)
    return payload


def free_port() -> int:
    """Ask the OS for a port nobody listens on."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.fixture
def state_path(tmp_path):
    """Shared state file location inside a temp directory."""
    return tmp_path / "mcp-pointer-test-shared-state.json"


@pytest.fixture
def store(state_path):
    """Shared state store writing into a temp directory."""
    return SharedStateStore(state_path)
