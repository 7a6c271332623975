"""Browser-facing WebSocket ingress with port-bind leader election."""

import asyncio
import contextlib
import errno
import logging
import socket
import sys
from enum import Enum
from typing import Callable, Iterator, Optional

import uvicorn
from fastapi import FastAPI, WebSocket

from . import __version__
from .exceptions import LeaderElectionError
from .types import HealthDict
from .websocket import ConnectionManager

logger = logging.getLogger(__name__)

DEFAULT_RETRY_INTERVAL = 5.0


def create_app(
    connection_manager: ConnectionManager,
    port: Optional[int] = None,
    title: str = "MCP Pointer",
) -> FastAPI:
    """Build the ingress application around a connection manager."""
    app = FastAPI(title=title, version=__version__)

    @app.get("/health")
    async def health_check() -> HealthDict:
        """Health check endpoint, only reachable on the leader."""
        status = connection_manager.get_status()
        return {
            "status": "ok",
            "service": title,
            "role": "leader",
            "port": port,
            "active_connections": connection_manager.get_connection_count(),
            "elements_inspected": status.elementsInspected,
            "uptime": status.uptime,
        }

    # The extension connects to ws://localhost:<port> without a path
    @app.websocket("/")
    async def pointer_endpoint(websocket: WebSocket):
        """WebSocket endpoint for the browser extension."""
        await connection_manager.serve(websocket)

    return app


class LeaderState(str, Enum):
    """Who owns the ingress port, from this instance's point of view."""
    CANDIDATE = "candidate"
    FOLLOWER = "follower"
    LEADER = "leader"
    FATAL = "fatal"


class _EmbeddedServer(uvicorn.Server):
    """uvicorn server that leaves signal handling to the relay process."""

    @contextlib.contextmanager
    def capture_signals(self) -> Iterator[None]:
        yield


class IngressListener:
    """
    Serves the ingress app once this instance owns the port.

    Several relay processes may run on one host (one per AI tool session).
    Whoever binds the port first is the leader; the others stay followers and
    re-try the bind every retry_interval seconds until the process exits.
    """

    def __init__(
        self,
        app: FastAPI,
        host: str = "127.0.0.1",
        port: int = 7007,
        retry_interval: float = DEFAULT_RETRY_INTERVAL,
        ws_ping_interval: Optional[float] = 15.0,
        ws_ping_timeout: Optional[float] = 10.0,
        on_leader: Optional[Callable[[], None]] = None,
    ):
        self.app = app
        self.host = host
        self.port = port
        self.retry_interval = retry_interval
        self.ws_ping_interval = ws_ping_interval
        self.ws_ping_timeout = ws_ping_timeout
        self.on_leader = on_leader

        self.state = LeaderState.CANDIDATE
        self.became_leader = asyncio.Event()
        self._stop_requested = asyncio.Event()
        self._idle = asyncio.Event()
        self._idle.set()
        self._server: Optional[_EmbeddedServer] = None

    @property
    def is_leader(self) -> bool:
        return self.state == LeaderState.LEADER

    async def wait_until_leader(self) -> None:
        """Block until this instance owns the port."""
        await self.became_leader.wait()

    async def run(self) -> None:
        """
        Campaign for the port, then serve until stop() is called.

        Raises:
            LeaderElectionError: If binding fails for a reason other than
                the port being in use
        """
        self._stop_requested.clear()
        self._idle.clear()
        try:
            sock = await self._campaign()
            if sock is None:
                return
            await self._serve(sock)
        finally:
            if self.state != LeaderState.FATAL:
                self.state = LeaderState.CANDIDATE
            self.became_leader.clear()
            self._idle.set()

    async def stop(self) -> None:
        """Stop serving or retrying and release the port."""
        self._stop_requested.set()
        if self._server is not None:
            self._server.should_exit = True
        await self._idle.wait()
        logger.debug(f"Ingress listener on port {self.port} stopped")

    async def _campaign(self) -> Optional[socket.socket]:
        announced_follower = False
        while not self._stop_requested.is_set():
            self.state = LeaderState.CANDIDATE
            try:
                sock = self._bind()
            except OSError as e:
                if e.errno != errno.EADDRINUSE:
                    self.state = LeaderState.FATAL
                    logger.error(f"Failed to start WebSocket server: {e}")
                    raise LeaderElectionError(self.host, self.port, detail=str(e)) from e

                self.state = LeaderState.FOLLOWER
                msg = (
                    f"Running as FOLLOWER (port {self.port} busy, "
                    f"retrying in {self.retry_interval:g}s...)"
                )
                if announced_follower:
                    logger.debug(msg)
                else:
                    logger.info(msg)
                    announced_follower = True

                try:
                    await asyncio.wait_for(
                        self._stop_requested.wait(), timeout=self.retry_interval
                    )
                except asyncio.TimeoutError:
                    pass
                continue

            self.state = LeaderState.LEADER
            self.became_leader.set()
            logger.info(
                f"This instance is now the LEADER (WebSocket server on {self.host}:{self.port})"
            )
            if self.on_leader is not None:
                self.on_leader()
            return sock

        return None

    def _bind(self) -> socket.socket:
        """Bind and listen, so a concurrent candidate sees EADDRINUSE."""
        family = socket.AF_INET6 if ":" in self.host else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_STREAM)
        try:
            # On Windows SO_REUSEADDR would let a second process steal the port
            if sys.platform != "win32":
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((self.host, self.port))
            sock.listen(128)
        except OSError:
            sock.close()
            raise
        sock.setblocking(False)
        return sock

    async def _serve(self, sock: socket.socket) -> None:
        config = uvicorn.Config(
            self.app,
            log_config=None,
            access_log=False,
            lifespan="off",
            ws_ping_interval=self.ws_ping_interval,
            ws_ping_timeout=self.ws_ping_timeout,
            timeout_graceful_shutdown=2,
        )
        server = _EmbeddedServer(config)
        self._server = server
        if self._stop_requested.is_set():
            server.should_exit = True

        try:
            await server.serve(sockets=[sock])
        finally:
            # serve() skips shutdown when asked to exit during startup
            for listener in getattr(server, "servers", []):
                listener.close()
            sock.close()
            self._server = None
