from __future__ import annotations

import logging

_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"


# PUBLIC_INTERFACE
def configure_logging(level: str = "INFO") -> None:
    """
    Attach a single stream handler to the package logger.

    Safe to call more than once; later calls only adjust the level.
    """
    logger = logging.getLogger("countdown_api")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    if not any(getattr(h, "_countdown_api", False) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))
        handler._countdown_api = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
