from __future__ import annotations

from .relayer_task import run_relayer_task
from .retry_stuck_task import retry_stuck_task
from .status_task import RelayerStatus, relayer_status_task

__all__ = [
    "RelayerStatus",
    "relayer_status_task",
    "retry_stuck_task",
    "run_relayer_task",
]
