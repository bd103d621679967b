"""
autonome - hybrid learning and autonomous decision core.

Tracks, per knowledge domain, the move from cloud-assisted reasoning to
local autonomy, and runs a telemetry-driven decision loop alongside.
"""

from importlib.metadata import PackageNotFoundError, version

from autonome.config import Settings, get_settings
from autonome.core import AutonomyCore
from autonome.dispatcher import DispatchResult
from autonome.events import EventBus, Topic
from autonome.protocols import (
    AutonomeError,
    CloudReasoningProvider,
    LedgerError,
    PayloadError,
    ProviderError,
    ProviderResponse,
    SchedulerError,
)
from autonome.storage import Ledger

try:
    __version__ = version("autonome")
except PackageNotFoundError:
    __version__ = "0.0.0"

__all__ = [
    "AutonomeError",
    "AutonomyCore",
    "CloudReasoningProvider",
    "DispatchResult",
    "EventBus",
    "Ledger",
    "LedgerError",
    "PayloadError",
    "ProviderError",
    "ProviderResponse",
    "SchedulerError",
    "Settings",
    "Topic",
    "get_settings",
]
