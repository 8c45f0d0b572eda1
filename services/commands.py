"""Remote control commands relayed over a peer channel.

A remote surface may send a command instead of a snapshot; the receiving
surface runs the matching local mutator, which bumps its own version and
publishes the resulting snapshot as usual. Commands are only ever sent as
``{"type": "command", ...}`` messages so a transition is never applied twice.
"""

import logging
from collections.abc import Callable

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from models.slot import SlotKind
from services.session_store import SessionStore

logger = logging.getLogger(__name__)


class CommandMessage(BaseModel):
    """Command envelope: ``{"type": "command", "name": "pause"}``"""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    type: str = "command"
    name: str
    id: str | None = None
    kind: SlotKind | str | None = None
    seconds: float | None = Field(default=None, allow_inf_nan=False)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", exclude_none=True)


def _set_type_duration(store: SessionStore, command: CommandMessage) -> bool:
    if command.kind is None or command.seconds is None:
        return False
    return store.set_type_duration(command.kind, command.seconds)


def _start_specific(store: SessionStore, command: CommandMessage) -> bool:
    if not command.id:
        return False
    return store.start_specific(command.id)


HANDLERS: dict[str, Callable[[SessionStore, CommandMessage], bool]] = {
    "start-next": lambda store, _: store.start_next(),
    "pause": lambda store, _: store.pause(),
    "resume": lambda store, _: store.resume(),
    "reset": lambda store, _: store.reset(),
    "skip": lambda store, _: store.skip(),
    "set-type-duration": _set_type_duration,
    "start-specific": _start_specific,
}


def build_command(name: str, **fields) -> dict:
    """Wire form of a command, e.g. ``build_command("start-specific", id="a1")``."""
    return CommandMessage(name=name, **fields).to_wire()


def apply_command(store: SessionStore, message: dict) -> bool:
    """
    Run a received command against the local store.

    Returns:
        True if the command was known and changed local state
    """
    try:
        command = CommandMessage.model_validate(message)
    except ValidationError as e:
        logger.warning(f"Dropping malformed command: {e.error_count()} error(s)")
        return False

    handler = HANDLERS.get(command.name)
    if handler is None:
        logger.warning(f"Ignoring unknown command: {command.name}")
        return False

    changed = handler(store, command)
    logger.debug(f"Command {command.name} applied (changed={changed})")
    return changed
