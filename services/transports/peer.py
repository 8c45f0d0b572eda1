"""Peer-to-peer transport over a WebRTC data channel with manual signaling.

There is no signaling server: the host's offer and the joiner's answer are
plain JSON text blobs copied between devices by hand (chat, QR code, ...).
Because the blob is the only thing that crosses, it must contain every ICE
candidate; each side therefore waits for candidate gathering to finish,
bounded by a timeout, before handing out its description.

Link states::

    IDLE --host()--> HOSTING --accept_answer() + channel open--> CONNECTED
    IDLE --join()--> JOINING --channel open--> CONNECTED
    any  --reset() / channel closed--> IDLE
"""

import asyncio
import json
import logging
from collections.abc import Callable
from enum import Enum
from typing import Any

from aiortc import RTCConfiguration, RTCIceServer, RTCPeerConnection, RTCSessionDescription

from core.config import get_settings
from core.exceptions import HandshakeError
from services.transports.base import Transport

logger = logging.getLogger(__name__)

CHANNEL_LABEL = "talestolen"


class LinkState(str, Enum):
    IDLE = "idle"
    HOSTING = "hosting"
    JOINING = "joining"
    CONNECTED = "connected"


class GatherPhase(str, Enum):
    IDLE = "idle"
    GATHERING = "gathering"
    READY = "ready"


PeerFactory = Callable[[], Any]
CommandHandler = Callable[[dict], bool]


def default_peer_factory() -> RTCPeerConnection:
    """Peer connection using the configured STUN servers."""
    settings = get_settings()
    ice_servers = [RTCIceServer(urls=url) for url in settings.stun_servers]
    return RTCPeerConnection(configuration=RTCConfiguration(iceServers=ice_servers))


def encode_description(description: Any) -> str:
    """Session description as the text blob handed to the other side."""
    return json.dumps({"type": description.type, "sdp": description.sdp})


def decode_description(blob: str, expected_type: str) -> RTCSessionDescription:
    """
    Parse a pasted offer/answer blob.

    Raises:
        HandshakeError: If the text is not a description of the expected type
    """
    try:
        data = json.loads((blob or "").strip())
    except json.JSONDecodeError as e:
        raise HandshakeError(f"Pasted {expected_type} is not valid JSON: {e}") from e

    if not isinstance(data, dict) or not isinstance(data.get("sdp"), str):
        raise HandshakeError(f"Pasted {expected_type} has no SDP")
    if data.get("type") != expected_type:
        raise HandshakeError(f"Expected an {expected_type}, got {data.get('type')!r}")
    return RTCSessionDescription(sdp=data["sdp"], type=data["type"])


class PeerTransport(Transport):
    """
    One host or joiner end of a manual peer link.

    Snapshots are sent as ``{"type": "snapshot", "state": ...}`` and go
    through the reconciler on arrival. Commands are sent as
    ``{"type": "command", "name": ...}`` and go to ``command_handler``.
    """

    name = "peer"

    def __init__(
        self,
        command_handler: CommandHandler | None = None,
        peer_factory: PeerFactory | None = None,
        gather_timeout: float | None = None,
        on_connected: Callable[[], None] | None = None,
    ) -> None:
        super().__init__()
        self.command_handler = command_handler
        self.on_connected = on_connected
        self.gather_timeout = gather_timeout or get_settings().ice_gathering_timeout_seconds
        self._peer_factory = peer_factory or default_peer_factory

        self.state = LinkState.IDLE
        self.gather_phase = GatherPhase.IDLE
        self._pc: Any = None
        self._channel: Any = None
        self._connected = asyncio.Event()
        self._pending: set[asyncio.Future] = set()

    @property
    def channel_ready(self) -> bool:
        return self._channel is not None and self._channel.readyState == "open"

    # Handshake

    async def host(self) -> str:
        """
        Start hosting and return the offer blob to hand to the joiner.

        Raises:
            HandshakeError: If a link is already being set up or connected
        """
        self._require_idle("host")
        self._open_peer(LinkState.HOSTING)

        try:
            self._bind_channel(self._pc.createDataChannel(CHANNEL_LABEL))
            offer = await self._pc.createOffer()
            blob = await self._describe_local(offer)
        except HandshakeError:
            await self.reset()
            raise
        except Exception as e:
            await self.reset()
            raise HandshakeError(f"Creating the offer failed: {e}") from e
        logger.info(f"Offer ready ({len(blob)} chars)")
        return blob

    async def accept_answer(self, blob: str) -> None:
        """Apply the joiner's answer; the channel opens asynchronously afterwards."""
        if self.state != LinkState.HOSTING:
            raise HandshakeError(f"Cannot accept an answer while {self.state.value}")

        answer = decode_description(blob, "answer")
        try:
            await self._pc.setRemoteDescription(answer)
        except Exception as e:
            # aiortc rejects unusable SDP with ValueError and friends
            await self.reset()
            raise HandshakeError(f"Pasted answer was rejected: {e}") from e
        logger.info("Answer accepted, waiting for channel to open")

    async def join(self, offer_blob: str) -> str:
        """
        Apply the host's offer and return the answer blob to send back.

        Raises:
            HandshakeError: If the offer is malformed or a link already exists
        """
        self._require_idle("join")
        offer = decode_description(offer_blob, "offer")
        self._open_peer(LinkState.JOINING)

        try:
            await self._pc.setRemoteDescription(offer)
            answer = await self._pc.createAnswer()
            blob = await self._describe_local(answer)
        except HandshakeError:
            await self.reset()
            raise
        except Exception as e:
            await self.reset()
            raise HandshakeError(f"Pasted offer was rejected: {e}") from e
        logger.info(f"Answer ready ({len(blob)} chars)")
        return blob

    async def wait_connected(self, timeout: float | None = None) -> bool:
        """Wait for the data channel to open; False on timeout."""
        try:
            await asyncio.wait_for(self._connected.wait(), timeout=timeout)
            return True
        except asyncio.TimeoutError:
            return False

    async def reset(self) -> None:
        """Abandon any handshake or connection and return to IDLE."""
        for future in list(self._pending):
            future.cancel()
        self._pending.clear()

        channel, pc = self._channel, self._pc
        self._channel = None
        self._pc = None
        self._connected.clear()
        self.gather_phase = GatherPhase.IDLE
        self._set_state(LinkState.IDLE)

        if channel is not None:
            try:
                channel.close()
            except Exception as e:
                logger.debug(f"Channel close raised: {e}")
        if pc is not None:
            await pc.close()

    async def close(self) -> None:
        await self.reset()

    def _require_idle(self, action: str) -> None:
        if self.state != LinkState.IDLE:
            raise HandshakeError(f"Cannot {action} while {self.state.value}; reset first")

    def _open_peer(self, role: LinkState) -> None:
        self._pc = self._peer_factory()
        self._set_state(role)

        @self._pc.on("datachannel")
        def on_datachannel(channel) -> None:
            logger.info(f"Remote opened channel {channel.label}")
            self._bind_channel(channel)

        @self._pc.on("connectionstatechange")
        async def on_connectionstatechange() -> None:
            state = self._pc.connectionState if self._pc is not None else "closed"
            logger.info(f"Peer connection state: {state}")
            if state in ("failed", "closed") and self.state != LinkState.IDLE:
                await self.reset()

    async def _describe_local(self, description: Any) -> str:
        """
        Set the local description and wait (bounded) for candidate gathering.

        On timeout the description is used with whatever candidates were
        collected so far; connectivity is best effort.
        """
        pc = self._pc
        self.gather_phase = GatherPhase.GATHERING
        gathered = asyncio.Event()

        def on_gathering_change() -> None:
            if pc.iceGatheringState == "complete":
                gathered.set()

        pc.on("icegatheringstatechange", on_gathering_change)

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.gather_timeout
        apply_task = asyncio.ensure_future(pc.setLocalDescription(description))
        gathered_task = asyncio.ensure_future(gathered.wait())
        self._pending.update((apply_task, gathered_task))

        try:
            done, _ = await asyncio.wait(
                {apply_task, gathered_task},
                timeout=self.gather_timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
            if apply_task in done:
                if apply_task.exception() is not None:
                    raise HandshakeError(
                        f"Setting local description failed: {apply_task.exception()}"
                    )
                # setLocalDescription may return before the gathering event fires
                if not gathered.is_set() and pc.iceGatheringState != "complete":
                    await asyncio.wait({gathered_task}, timeout=max(0.0, deadline - loop.time()))

            if pc.iceGatheringState != "complete" and not gathered.is_set():
                logger.warning(
                    f"ICE gathering not complete after {self.gather_timeout}s; "
                    "using candidates collected so far"
                )
        finally:
            gathered_task.cancel()
            self._pending.discard(gathered_task)
            if apply_task.done():
                self._pending.discard(apply_task)

        if pc.localDescription is None:
            raise HandshakeError("No local description available after gathering")

        self.gather_phase = GatherPhase.READY
        return encode_description(pc.localDescription)

    # Channel

    def _bind_channel(self, channel: Any) -> None:
        self._channel = channel

        @channel.on("open")
        def on_open() -> None:
            self._mark_connected()

        @channel.on("close")
        def on_close() -> None:
            logger.info("Peer channel closed")
            if self._channel is channel:
                asyncio.ensure_future(self.reset())

        @channel.on("message")
        def on_message(message) -> None:
            self.handle_message(message)

        if channel.readyState == "open":
            self._mark_connected()

    def _mark_connected(self) -> None:
        if self.state == LinkState.CONNECTED:
            return
        self._set_state(LinkState.CONNECTED)
        self._connected.set()
        logger.info("Peer channel open")
        if self.on_connected is not None:
            self.on_connected()

    def _set_state(self, state: LinkState) -> None:
        if state != self.state:
            logger.debug(f"Peer link {self.state.value} -> {state.value}")
        self.state = state

    # Messages

    def send(self, message: dict) -> bool:
        """Send a JSON message; a no-op with a warning when not connected."""
        if not self.channel_ready:
            logger.warning(f"Peer send skipped ({message.get('type')}): channel not open")
            return False
        self._channel.send(json.dumps(message))
        return True

    def publish(self, payload: dict) -> None:
        self.send({"type": "snapshot", "state": payload})

    def send_command(self, command: dict) -> bool:
        """Send a command built with ``services.commands.build_command``."""
        return self.send({**command, "type": "command"})

    def handle_message(self, raw: str | bytes) -> None:
        """Decode one channel message and route it by type."""
        try:
            message = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"Dropping bad peer message: {e}")
            return

        if not isinstance(message, dict):
            logger.warning("Dropping peer message that is not an object")
            return

        kind = message.get("type")
        if kind == "snapshot":
            self.deliver(message.get("state"))
        elif kind == "command":
            if self.command_handler is None:
                logger.warning(f"No command handler for {message.get('name')}")
                return
            self.command_handler(message)
        else:
            logger.debug(f"Ignoring peer message of type {kind!r}")
