"""Filesystem helpers shared across autonome."""

import os
from pathlib import Path


def get_autonome_home() -> Path:
    """Return the autonome data directory.

    ``AUTONOME_DATA_DIR`` overrides the default ``~/.autonome``.
    """
    override = os.environ.get("AUTONOME_DATA_DIR")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".autonome"


def short_id(value: str, length: int = 8) -> str:
    """Truncate an identifier for log lines."""
    if len(value) <= length:
        return value
    return f"{value[:length]}..."
