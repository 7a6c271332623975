"""Custom exception classes for MCP Pointer."""


class MCPPointerError(Exception):
    """Base exception for MCP Pointer errors."""

    def __init__(self, message: str, code: str = "internal", detail: str = ""):
        self.message = message
        self.code = code
        self.detail = detail
        super().__init__(message)


class StateStoreError(MCPPointerError):
    """Errors related to the shared state file."""

    pass


class StateWriteError(StateStoreError):
    """The shared state file could not be replaced."""

    def __init__(self, path: str, detail: str = ""):
        super().__init__(
            f"Failed to write shared state: {path}",
            code="state_write_failed",
            detail=detail,
        )


class IngressError(MCPPointerError):
    """Errors related to the browser-facing WebSocket ingress."""

    pass


class LeaderElectionError(IngressError):
    """Binding the ingress port failed for a reason other than contention."""

    def __init__(self, host: str, port: int, detail: str = ""):
        super().__init__(
            f"Cannot bind ingress port {host}:{port}",
            code="bind_failed",
            detail=detail,
        )


class InvalidPayloadError(IngressError):
    """A pointer message carried data that is not a valid selection."""

    def __init__(self, detail: str = ""):
        super().__init__("Invalid selection payload", code="invalid_payload", detail=detail)


class QueryError(MCPPointerError):
    """Errors returned to the MCP client."""

    pass


class UnknownOperationError(QueryError):
    """The requested tool is not registered."""

    def __init__(self, name: str):
        super().__init__(f"Unknown tool: {name}", code="unknown_operation")


class InvalidArgumentsError(QueryError):
    """Tool arguments do not match the tool's input schema."""

    def __init__(self, name: str, detail: str = ""):
        super().__init__(
            f"Invalid arguments for {name}: {detail}" if detail else f"Invalid arguments for {name}",
            code="invalid_arguments",
            detail=detail,
        )
