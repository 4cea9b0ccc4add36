"""The listening socket the engine connects back to."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

#: Bind address; the engine may connect from any local interface.
_BIND_HOST = "0.0.0.0"

ConnectionHandler = Callable[[asyncio.StreamReader, asyncio.StreamWriter], Awaitable[None]]


class ServerUnavailableError(Exception):
    """No port in the allowed range could be bound."""


class EngineServer:
    """Listens for the engine and serves exactly one client.

    *on_connection* runs as the handler of the accepted connection and
    owns its reader and writer.  Connections arriving while a client is
    active are closed immediately.  *on_disconnect* is called once the
    handler returns, whether the peer closed or the read failed.
    """

    def __init__(
        self,
        on_connection: ConnectionHandler,
        on_disconnect: Callable[[], None] | None = None,
    ) -> None:
        self._on_connection = on_connection
        self._on_disconnect = on_disconnect
        self._server: asyncio.Server | None = None
        self._port: int | None = None
        self._client: asyncio.StreamWriter | None = None
        self._client_task: asyncio.Task[None] | None = None

    @property
    def port(self) -> int | None:
        return self._port

    @property
    def listening(self) -> bool:
        return self._server is not None

    @property
    def connected(self) -> bool:
        return self._client is not None

    async def start_server(self, port: int) -> bool:
        """Try to listen on *port*.  Returns False if it cannot be bound."""
        try:
            self._server = await asyncio.start_server(self._accept, _BIND_HOST, port)
        except OSError as exc:
            logger.debug("Cannot listen on port %d: %s", port, exc)
            return False
        self._port = port
        logger.info("Listening for the engine on port %d", port)
        return True

    async def negotiate_port(self, start: int, limit: int) -> int:
        """Bind the first free port in ``[start, limit]`` and return it.

        Raises:
            ServerUnavailableError: When every port in the range is taken.
        """
        port = start
        while not await self.start_server(port):
            port += 1
            if port > limit:
                msg = f"Could not bind any port between {start} and {limit}"
                raise ServerUnavailableError(msg)
        return port

    async def close(self) -> None:
        """Close the client connection and stop listening."""
        if self._client is not None:
            self._client.close()
            with contextlib.suppress(ConnectionError, OSError):
                await self._client.wait_closed()
        task = self._client_task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
            self._server = None

    async def _accept(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        if self._client is not None:
            logger.warning("Rejecting extra engine connection from %s", writer.get_extra_info("peername"))
            writer.close()
            return

        self._client = writer
        self._client_task = asyncio.current_task()
        logger.info("Engine connected from %s", writer.get_extra_info("peername"))
        try:
            await self._on_connection(reader, writer)
        finally:
            self._client = None
            writer.close()
            if self._on_disconnect is not None:
                self._on_disconnect()
