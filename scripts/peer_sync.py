#!/usr/bin/env python3
"""Terminal surface for a peer-to-peer session with copy/paste signaling.

The host owns the session and drives slot completion; the joiner mirrors the
host's snapshots and sends its controls back as commands.

Usage:
    # On the controlling device
    python scripts/peer_sync.py host

    # On the display/remote device
    python scripts/peer_sync.py join

    # Host with a delegate roster loaded up front
    python scripts/peer_sync.py host --roster delegates.csv

Commands once connected:
    add <name> [| organization]   queue a speaker by name
    queue <number> [kind]         queue a roster delegate
    next | pause | resume | reset | skip
    status | quit
"""

import argparse
import asyncio
import logging
import sys
from functools import partial
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

# Load environment variables
from dotenv import load_dotenv

load_dotenv()

from core.config import get_settings
from core.exceptions import HandshakeError
from core.logging_config import setup_logging
from core.utils import format_clock
from models.session import SessionState
from parsers.roster import parse_roster
from services.commands import apply_command, build_command
from services.session_store import SessionStore
from services.ticker import Ticker
from services.transports.peer import LinkState, PeerTransport

logger = logging.getLogger(__name__)

REMOTE_COMMANDS = {"next": "start-next", "pause": "pause", "resume": "resume", "reset": "reset", "skip": "skip"}


def describe(state: SessionState, remaining: float) -> str:
    turn = state.current_speaker
    if turn is None:
        speaker = "nobody speaking"
    else:
        speaker = f"{turn.name} ({turn.active_slot.label()}) {format_clock(remaining)}"
        if turn.paused:
            speaker += " [paused]"
    return f"v{state.version}: {speaker}; {len(state.queue)} queued"


async def read_line(prompt: str = "") -> str:
    return (await asyncio.to_thread(input, prompt)).strip()


async def read_blob(label: str) -> str:
    """Read a pasted one-line JSON blob, asking again until it looks like JSON."""
    while True:
        blob = await read_line(f"Paste the {label} and press Enter:\n> ")
        if blob.startswith("{"):
            return blob
        print(f"That does not look like an {label} blob, try again.")


async def handshake(peer: PeerTransport, role: str) -> None:
    if role == "host":
        while True:
            if peer.state == LinkState.IDLE:
                offer = await peer.host()
                print("\nSend this offer to the other device:\n")
                print(offer)
                print()
            try:
                await peer.accept_answer(await read_blob("answer"))
                return
            except HandshakeError as e:
                print(f"Answer rejected: {e}")
                if peer.state == LinkState.IDLE:
                    print("The link was reset; a new offer follows.")
    else:
        while True:
            try:
                answer = await peer.join(await read_blob("offer"))
                break
            except HandshakeError as e:
                print(f"Offer rejected: {e}")
        print("\nSend this answer back to the host:\n")
        print(answer)
        print()


def run_local(store: SessionStore, verb: str, rest: str) -> bool:
    if verb == "add":
        name, _, organization = rest.partition("|")
        return store.enqueue_direct(name, organization)
    if verb == "queue":
        number, _, kind = rest.partition(" ")
        return store.enqueue_by_number(number, kind or "OPENING")
    name = REMOTE_COMMANDS.get(verb)
    if name is None:
        print(f"Unknown command: {verb}")
        return False
    return apply_command(store, build_command(name))


async def control_loop(store: SessionStore, peer: PeerTransport, role: str) -> None:
    while True:
        line = await read_line()
        if not line:
            continue
        verb, _, rest = line.partition(" ")
        verb = verb.lower()

        if verb == "quit":
            return
        if verb == "status":
            print(describe(store.state, store.remaining_seconds()))
        elif role == "join" and verb in REMOTE_COMMANDS:
            if not peer.send_command(build_command(REMOTE_COMMANDS[verb])):
                print("Not connected")
        else:
            run_local(store, verb, rest.strip())


async def main():
    parser = argparse.ArgumentParser(description="Speaker queue over a manual peer-to-peer link")
    parser.add_argument("role", choices=["host", "join"], help="Host the session or join one")
    parser.add_argument("--roster", type=Path, default=None, help="Delegate roster file to import (host)")
    parser.add_argument(
        "--connect-timeout",
        type=float,
        default=120.0,
        help="Seconds to wait for the channel to open (default: 120)",
    )
    args = parser.parse_args()

    setup_logging()
    settings = get_settings()

    store = SessionStore()
    if args.roster:
        store.import_delegates(parse_roster(args.roster.read_text(encoding="utf-8")))

    peer = PeerTransport(command_handler=partial(apply_command, store))
    store.attach(peer)

    # The host pushes its state as soon as the joiner is reachable
    if args.role == "host":
        peer.on_connected = lambda: peer.publish(store.snapshot())

    await handshake(peer, args.role)
    if not await peer.wait_connected(timeout=args.connect_timeout):
        logger.error(f"Channel did not open within {args.connect_timeout}s")
        await peer.close()
        return
    print("Connected. Type 'status' to see the session, 'quit' to leave.")

    store.subscribe(lambda state: print(describe(state, store.remaining_seconds())))
    ticker = Ticker(store, interval_ms=settings.display_tick_ms, drive_completion=args.role == "host")
    ticker_task = asyncio.create_task(ticker.run())

    try:
        await control_loop(store, peer, args.role)
    finally:
        ticker.stop()
        await ticker_task
        await peer.close()


if __name__ == "__main__":
    asyncio.run(main())
