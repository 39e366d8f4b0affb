from __future__ import annotations

import logging
import sys

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(level: str | int = logging.INFO) -> None:
    """Installe un handler stdout unique sur le root logger (idempotent)."""
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    if any(getattr(h, "_gestock", False) for h in root_logger.handlers):
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._gestock = True  # type: ignore[attr-defined]
    root_logger.addHandler(handler)

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
