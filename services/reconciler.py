"""Last-writer-wins reconciliation by version number.

Clocks on different devices are not trusted, so only the version counter
decides which replica wins. Concurrent edits made from the same base version
are not merged: whichever snapshot carries the higher version is adopted
wholesale and the other is discarded.
"""

import logging
from typing import Protocol, TypeVar

from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)


class Versioned(Protocol):
    version: int


V = TypeVar("V", bound=Versioned)
M = TypeVar("M", bound=BaseModel)


def reconcile(local: V, incoming: V) -> V:
    """Return ``incoming`` if it is strictly newer than ``local``, else ``local``."""
    if incoming.version > local.version:
        return incoming
    return local


def parse_snapshot(model: type[M], payload: object) -> M | None:
    """
    Validate a received snapshot payload.

    Malformed payloads are dropped whole (never partially applied) and
    reported with a warning.
    """
    if isinstance(payload, model):
        return payload
    if not isinstance(payload, dict):
        logger.warning(f"Dropping snapshot: expected an object, got {type(payload).__name__}")
        return None

    try:
        return model.model_validate(payload)
    except ValidationError as e:
        logger.warning(f"Dropping malformed {model.__name__} snapshot: {e.error_count()} error(s)")
        logger.debug(f"Validation details: {e}")
        return None
