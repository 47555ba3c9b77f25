from __future__ import annotations

from .trendconfig import TrendConfig
from .trendwatcher import RunResult
from .trendwatcher import TrendWatcher

__all__ = [
    "RunResult",
    "TrendConfig",
    "TrendWatcher",
]
