"""Relay transport: replicate snapshots through the relay's websocket rooms"""

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from contextlib import suppress
from typing import Any

import websockets

from core.config import get_settings
from services.transports.base import Transport

logger = logging.getLogger(__name__)

Connector = Callable[[str], Awaitable[Any]]


class RelayTransport(Transport):
    """
    Client end of a relay room.

    Only the latest unsent snapshot is kept: a burst of local changes while
    the socket is busy or reconnecting collapses into a single push.
    """

    name = "relay"

    def __init__(
        self,
        room_id: str,
        base_url: str | None = None,
        reconnect_attempts: int | None = None,
        reconnect_delay: float | None = None,
        connector: Connector | None = None,
    ) -> None:
        super().__init__()
        settings = get_settings()
        self.room_id = room_id
        self.base_url = (base_url or settings.relay_url).rstrip("/")
        self.reconnect_attempts = reconnect_attempts or settings.relay_reconnect_attempts
        self.reconnect_delay = (
            reconnect_delay if reconnect_delay is not None else settings.relay_reconnect_delay_seconds
        )
        self._connector = connector or websockets.connect

        self._ws: Any = None
        self._pending: dict | None = None
        self._wake = asyncio.Event()
        self._connected = asyncio.Event()
        self._closing = False
        self._run_task: asyncio.Task | None = None

    @property
    def url(self) -> str:
        return f"{self.base_url}/ws/rooms/{self.room_id}"

    @property
    def is_connected(self) -> bool:
        return self._ws is not None and self._connected.is_set()

    # Outgoing

    def publish(self, payload: dict) -> None:
        self._pending = payload
        self._wake.set()

    async def ping(self) -> bool:
        return await self._send({"type": "ping"})

    async def _send(self, message: dict) -> bool:
        if not self.is_connected:
            logger.warning(f"Relay send skipped ({message.get('type')}): not connected")
            return False
        try:
            await self._ws.send(json.dumps(message))
            return True
        except websockets.ConnectionClosed as e:
            logger.warning(f"Relay send failed: {e}")
            return False

    async def _send_loop(self) -> None:
        while True:
            await self._wake.wait()
            self._wake.clear()
            payload, self._pending = self._pending, None
            if payload is None:
                continue
            if not await self._send({"type": "state:push", "state": payload}):
                # Keep it for the next connection unless something newer arrived
                if self._pending is None:
                    self._pending = payload
                return

    # Incoming

    def handle_message(self, raw: str | bytes) -> None:
        """Decode one relay message and route it by type."""
        try:
            message = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"Dropping bad relay message: {e}")
            return

        if not isinstance(message, dict):
            logger.warning("Dropping relay message that is not an object")
            return

        kind = message.get("type")
        if kind in ("state:sync", "state:update"):
            self.deliver(message.get("state"))
        elif kind == "pong":
            logger.debug(f"Relay pong at {message.get('ts')}")
        elif kind == "error":
            logger.warning(f"Relay reported an error: {message.get('message')}")
        else:
            logger.debug(f"Ignoring relay message of type {kind!r}")

    async def _receive_loop(self) -> None:
        try:
            async for raw in self._ws:
                self.handle_message(raw)
        except websockets.ConnectionClosed as e:
            logger.info(f"Relay connection closed: {e}")

    # Connection

    async def connect(self) -> bool:
        """
        Open the room socket, retrying with a growing delay.

        Returns:
            True if connected
        """
        for attempt in range(self.reconnect_attempts):
            try:
                self._ws = await self._connector(self.url)
                self._connected.set()
                logger.info(f"Connected to relay room {self.room_id}")
                return True
            except (OSError, websockets.WebSocketException) as e:
                logger.warning(f"Relay connection failed (attempt {attempt + 1}): {e}")
                if attempt < self.reconnect_attempts - 1:
                    await asyncio.sleep(self.reconnect_delay * (attempt + 1))

        logger.error(f"Failed to reach relay after {self.reconnect_attempts} attempts")
        return False

    async def wait_connected(self, timeout: float | None = None) -> bool:
        try:
            await asyncio.wait_for(self._connected.wait(), timeout=timeout)
            return True
        except asyncio.TimeoutError:
            return False

    async def run(self) -> None:
        """Stay connected until closed or the relay stays unreachable."""
        while not self._closing:
            if not await self.connect():
                return

            if self._pending is not None:
                self._wake.set()
            sender = asyncio.create_task(self._send_loop())
            try:
                await self._receive_loop()
            finally:
                sender.cancel()
                with suppress(asyncio.CancelledError):
                    await sender
                await self._disconnect()

            if not self._closing:
                logger.info(f"Lost relay room {self.room_id}, reconnecting")

    def start(self) -> asyncio.Task:
        """Run the connection loop as a task on the running loop."""
        if self._run_task is None or self._run_task.done():
            self._closing = False
            self._run_task = asyncio.create_task(self.run())
        return self._run_task

    async def _disconnect(self) -> None:
        ws, self._ws = self._ws, None
        self._connected.clear()
        if ws is not None:
            await ws.close()

    async def close(self) -> None:
        self._closing = True
        await self._disconnect()
        if self._run_task:
            self._run_task.cancel()
            with suppress(asyncio.CancelledError):
                await self._run_task
            self._run_task = None
