"""Live process telemetry via psutil."""

from __future__ import annotations

import logging
import os
import time
from datetime import datetime, timezone

import psutil

from autonome.types import TelemetrySample

logger = logging.getLogger(__name__)


def sample_telemetry() -> TelemetrySample:
    """Take one snapshot of this process and the host.

    ``heap_used`` is this process's resident set size; ``heap_total`` is
    total physical memory.
    """
    proc = psutil.Process(os.getpid())
    with proc.oneshot():
        rss = proc.memory_info().rss
        user_cpu = proc.cpu_times().user
        threads = proc.num_threads()
        started = proc.create_time()

    vm = psutil.virtual_memory()
    try:
        load_1m = psutil.getloadavg()[0]
    except (AttributeError, OSError) as e:
        logger.debug(f"Load average unavailable: {e}")
        load_1m = 0.0

    return TelemetrySample(
        heap_used=int(rss),
        heap_total=int(vm.total),
        cpu_time_user_us=int(user_cpu * 1_000_000),
        load_avg_1m=float(load_1m),
        thread_count=int(threads),
        process_count=len(psutil.pids()),
        memory_percent=float(vm.percent),
        uptime_seconds=max(0.0, time.time() - started),
        sampled_at=datetime.now(timezone.utc),
    )
