from __future__ import annotations

import logging

_LEVELS: dict[str, int] = {
    "CRITICAL": logging.CRITICAL,
    "ERROR": logging.ERROR,
    "WARNING": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
}


def setup_logging(service_name: str = "reading-compass", level: str = "INFO") -> None:
    """
    One log format for the API process and the maintenance scripts.
    """
    resolved = _LEVELS.get(level.upper(), logging.INFO)
    logging.basicConfig(
        level=resolved,
        format=(
            "%(asctime)s | %(levelname)s | %(name)s | "
            f"svc={service_name} | %(message)s"
        ),
    )
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.error").setLevel(resolved)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
