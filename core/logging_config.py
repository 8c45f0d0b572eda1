"""Logging configuration"""

import logging
import sys

from core.config import get_settings

# Third-party loggers that flood INFO with per-packet or per-frame detail
NOISY_LOGGERS = ("aioice", "aiortc", "websockets")

_HANDLER_NAME = "talestolen-console"


def setup_logging(level: str | None = None) -> None:
    """
    Configure application logging.

    Safe to call from both the relay app and terminal surfaces in one
    process; the console handler is installed only once.

    Args:
        level: Override for ``settings.log_level`` (e.g. "DEBUG")
    """
    settings = get_settings()
    log_level = getattr(logging, (level or settings.log_level).upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    if not any(handler.get_name() == _HANDLER_NAME for handler in root_logger.handlers):
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.set_name(_HANDLER_NAME)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    logging.getLogger("uvicorn").setLevel(log_level)
    logging.getLogger("uvicorn.access").setLevel(log_level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))
