from __future__ import annotations

import logging
import logging.handlers
from pathlib import Path

from core.config import BACKEND_DIR


# Loggers for the scheduling core; their level can be tuned apart from the app.
SCHEDULING_LOGGERS = ("solver", "services")


def _parse_level(name: str | None) -> int | None:
    if not name:
        return None
    level = logging.getLevelName(name.strip().upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {name!r}")
    return level


def configure_scheduling_loggers(level_name: str | None) -> None:
    """Set (or reset, when None) the level of the solver and service loggers."""

    level = _parse_level(level_name)
    for name in SCHEDULING_LOGGERS:
        logging.getLogger(name).setLevel(level if level is not None else logging.NOTSET)


def setup_logging(*, environment: str, solver_level: str | None = None) -> None:
    """Configure application logging.

    - Dev: console logs, DEBUG level.
    - Prod: console logs plus a rotating scheduler.log, INFO level.
    - `solver_level` overrides the level of the scheduling loggers only, so
      search and fallback summaries can be silenced or traced on their own.

    Handlers are added once; the scheduling level is applied on every call.
    """

    configure_scheduling_loggers(solver_level)

    root = logging.getLogger()
    if root.handlers:
        return

    env = (environment or "development").lower().strip()
    level = logging.INFO if env == "production" else logging.DEBUG

    formatter = logging.Formatter(
        fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )

    handlers: list[logging.Handler] = []

    console = logging.StreamHandler()
    console.setLevel(logging.NOTSET)
    console.setFormatter(formatter)
    handlers.append(console)

    if env == "production":
        logs_dir = Path(BACKEND_DIR) / "logs"
        logs_dir.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            logs_dir / "scheduler.log",
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    logging.basicConfig(level=level, handlers=handlers)

    logging.getLogger("uvicorn.access").setLevel(level)
