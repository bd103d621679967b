"""Logging setup for autonome.

Two sinks:
- ``local-YYYY-MM-DD.log``: the regular ``autonome`` logger output
- ``core-events-YYYY-MM-DD.log``: one line per core event (dispatch,
  mastery, evolution, decision), easy to grep when replaying history
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from autonome.utils import get_autonome_home, short_id

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
_ROOT_LOGGER = "autonome"


def _log_dir() -> Path:
    path = get_autonome_home() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


def _today() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d")


def setup_autonome_logging(core_id: str = "default", level: str = "INFO") -> logging.Logger:
    """Configure the ``autonome`` logger.

    Adds a file handler (once) writing to the data directory. At DEBUG
    level a console handler is added as well. Unknown level names fall
    back to INFO.
    """
    logger = logging.getLogger(_ROOT_LOGGER)
    resolved = getattr(logging, str(level).upper(), None)
    if not isinstance(resolved, int):
        resolved = logging.INFO
    logger.setLevel(resolved)

    formatter = logging.Formatter(LOG_FORMAT)

    if not any(isinstance(h, logging.FileHandler) for h in logger.handlers):
        log_file = _log_dir() / f"local-{_today()}.log"
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    has_console = any(
        isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)
        for h in logger.handlers
    )
    if resolved <= logging.DEBUG and not has_console:
        console = logging.StreamHandler()
        console.setFormatter(formatter)
        logger.addHandler(console)

    logger.debug("Logging configured for core=%s level=%s", core_id, logging.getLevelName(resolved))
    return logger


def log_core_event(event_type: str, details: str, core_id: str = "default") -> None:
    """Append one line to the core events log."""
    timestamp = datetime.now(timezone.utc).isoformat()
    line = f"{timestamp} | {event_type} | core={core_id} | {details}\n"
    path = _log_dir() / f"core-events-{_today()}.log"
    with open(path, "a", encoding="utf-8") as fh:
        fh.write(line)


def log_dispatch(
    core_id: str,
    domain: str,
    interaction_id: str,
    autonomy_used: float,
    confidence: float,
    success: bool,
) -> None:
    log_core_event(
        "dispatch",
        f"domain={domain}, id={short_id(interaction_id)}, autonomy={autonomy_used:.2f}, "
        f"confidence={confidence:.3f}, success={success}",
        core_id=core_id,
    )


def log_mastery(core_id: str, domain: str, mastery_level: float, total_mastered: int) -> None:
    log_core_event(
        "mastery",
        f"domain={domain}, level={mastery_level:.3f}, mastered_domains={total_mastered}",
        core_id=core_id,
    )


def log_evolution(
    core_id: str,
    metric_name: str,
    previous_value: float,
    new_value: float,
    trigger: Optional[str] = None,
) -> None:
    log_core_event(
        "evolution",
        f"metric={metric_name}, {previous_value:.4f} -> {new_value:.4f}, trigger={trigger or '-'}",
        core_id=core_id,
    )


def log_decision(core_id: str, decision: str, strategy: str, confidence: float) -> None:
    log_core_event(
        "decision",
        f"decision={decision}, strategy={strategy}, confidence={confidence:.3f}",
        core_id=core_id,
    )
