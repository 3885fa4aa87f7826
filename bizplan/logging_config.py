"""Process-wide logging setup, called once from the FastAPI lifespan."""

from __future__ import annotations

import logging
import sys

_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"
_HANDLER_NAME = "bizplan"


def configure_logging(level: str = "INFO") -> None:
    """
    Install one stdout handler on the root logger.

    Safe to call more than once; later calls only change the level.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    root = logging.getLogger()
    root.setLevel(log_level)

    if any(h.get_name() == _HANDLER_NAME for h in root.handlers):
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    handler.set_name(_HANDLER_NAME)
    root.addHandler(handler)

    # Provider SDKs log every HTTP request at INFO
    for noisy in ("httpx", "anthropic", "openai"):
        logging.getLogger(noisy).setLevel(max(log_level, logging.WARNING))
