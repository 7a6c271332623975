"""Relay process: wires the state store, the ingress and the MCP query service."""

import asyncio
import logging
import os
import signal
from typing import List, Optional

from .config import Settings
from .exceptions import LeaderElectionError
from .ingress import IngressListener, create_app
from .query_service import QueryService
from .shared_state import SharedStateStore
from .websocket import ConnectionManager

logger = logging.getLogger(__name__)

# How long a cancelled stdio transport may take to wind down on shutdown
QUERY_SHUTDOWN_GRACE = 2.0


class PointerRelay:
    """
    Owns every component of one relay process.

    Startup order: store, connection manager, ingress app and listener,
    query service. The ingress runs in the background and may stay a
    follower forever; the query service is mandatory and the process exits
    with status 1 if it cannot start or fails.
    """

    def __init__(
        self,
        settings: Settings,
        store: Optional[SharedStateStore] = None,
        connection_manager: Optional[ConnectionManager] = None,
        ingress: Optional[IngressListener] = None,
        query_service: Optional[QueryService] = None,
    ):
        self.settings = settings
        self.store = store or SharedStateStore(settings.STATE_FILE)
        self.connection_manager = connection_manager or ConnectionManager(
            on_selection=self.store.write,
            max_connections=settings.MAX_CONNECTIONS,
        )
        if ingress is None:
            app = create_app(
                self.connection_manager,
                port=settings.PORT,
                title=settings.PROJECT_NAME,
            )
            ingress = IngressListener(
                app,
                host=settings.HOST,
                port=settings.PORT,
                retry_interval=settings.RETRY_INTERVAL,
                ws_ping_interval=settings.WS_PING_INTERVAL,
                ws_ping_timeout=settings.WS_PING_TIMEOUT,
            )
        self.ingress = ingress
        self.query_service = query_service or QueryService(self.store)

        self.exit_code = 0
        self._shutdown = asyncio.Event()
        self._installed_signals: List[int] = []

    def request_shutdown(self, exit_code: int = 0) -> None:
        """Ask run() to tear everything down and return."""
        if exit_code and not self.exit_code:
            self.exit_code = exit_code
        self._shutdown.set()

    async def run(self, install_signal_handlers: bool = True) -> int:
        """
        Run until the MCP host disconnects, a signal arrives or a fatal
        error occurs.

        Returns:
            Process exit code
        """
        if install_signal_handlers:
            self._install_signal_handlers()

        logger.info(f"Starting {self.settings.PROJECT_NAME}...")
        logger.info(f"Shared state file: {self.store.path}")

        ingress_task = asyncio.create_task(self.ingress.run(), name="ingress")
        ingress_task.add_done_callback(self._on_ingress_done)
        query_task = asyncio.create_task(self.query_service.run_stdio(), name="query-service")

        try:
            if await self._wait_for_query_service(query_task):
                logger.info(
                    f"{self.settings.PROJECT_NAME} started! Ready to point at elements."
                )
                await self._wait_for_exit(query_task)
        finally:
            await self._shutdown_components(ingress_task, query_task)
            self._remove_signal_handlers()

        return self.exit_code

    async def _wait_for_query_service(self, query_task: asyncio.Task) -> bool:
        ready = asyncio.create_task(self.query_service.ready.wait())
        stop = asyncio.create_task(self._shutdown.wait())
        try:
            done, _ = await asyncio.wait(
                {ready, stop, query_task}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            ready.cancel()
            stop.cancel()

        if ready in done:
            return True
        if query_task in done:
            self._on_query_finished(query_task, started=False)
        return False

    async def _wait_for_exit(self, query_task: asyncio.Task) -> None:
        stop = asyncio.create_task(self._shutdown.wait())
        try:
            done, _ = await asyncio.wait(
                {query_task, stop}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            stop.cancel()

        if query_task in done:
            self._on_query_finished(query_task, started=True)
        else:
            logger.info("Shutting down gracefully...")

    def _on_query_finished(self, task: asyncio.Task, started: bool) -> None:
        if task.cancelled():
            return

        exc = task.exception()
        if exc is not None:
            logger.error(f"MCP query service failed: {exc}", exc_info=exc)
            self.exit_code = 1
        elif not started:
            logger.error("MCP query service stopped before it was ready")
            self.exit_code = 1
        else:
            logger.info("MCP client disconnected")

    def _on_ingress_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return

        exc = task.exception()
        if exc is None:
            return

        if isinstance(exc, LeaderElectionError):
            logger.error(f"{exc.message} ({exc.detail}), exiting")
            self.request_shutdown(exit_code=1)
        else:
            # The query service keeps working without the ingress
            logger.error(f"Ingress listener stopped unexpectedly: {exc}", exc_info=exc)

    async def _shutdown_components(
        self, ingress_task: asyncio.Task, query_task: asyncio.Task
    ) -> None:
        # Free the port first so another relay can take over
        await self.ingress.stop()
        if not ingress_task.done():
            ingress_task.cancel()
        await asyncio.gather(ingress_task, return_exceptions=True)

        if not query_task.done():
            query_task.cancel()
            done, _ = await asyncio.wait({query_task}, timeout=QUERY_SHUTDOWN_GRACE)
            if not done:
                # The stdio reader thread only returns on the next line or EOF
                logger.warning("MCP stdio transport did not close, exiting now")
                logging.shutdown()
                os._exit(self.exit_code)
        elif not query_task.cancelled():
            query_task.exception()

        logger.info("Shutdown complete")

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self._handle_signal, sig)
                self._installed_signals.append(sig)
            except NotImplementedError:
                # Windows event loops have no add_signal_handler
                signal.signal(
                    sig,
                    lambda s, _frame: loop.call_soon_threadsafe(self._handle_signal, s),
                )

    def _remove_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in self._installed_signals:
            loop.remove_signal_handler(sig)
        self._installed_signals.clear()

    def _handle_signal(self, sig: int) -> None:
        logger.info(f"Received {signal.Signals(sig).name}, shutting down")
        self.request_shutdown()


def run_relay(settings: Settings) -> int:
    """Run a relay process to completion and return its exit code."""
    relay = PointerRelay(settings)
    return asyncio.run(relay.run())
