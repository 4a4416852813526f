"""
Clocked-In Snapshot Cache: full-replace refresh, reads and statistics.
"""

from HCM.snapshot.refresh import (
    ClockedInObservation,
    RefreshResult,
    CacheStatistics,
    NOT_IMPLEMENTED_STATISTICS,
    build_snapshot_rows,
    refresh_clocked_in,
    clear_clocked_in,
    get_clocked_in,
    get_cache_statistics,
)

__all__ = [
    "ClockedInObservation",
    "RefreshResult",
    "CacheStatistics",
    "NOT_IMPLEMENTED_STATISTICS",
    "build_snapshot_rows",
    "refresh_clocked_in",
    "clear_clocked_in",
    "get_clocked_in",
    "get_cache_statistics",
]
