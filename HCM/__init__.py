# HCM/__init__.py
"""
Multi-tenant HCM workforce sync.

Mirrors time entries, employees and cost centers from the HCM vendor
into the local store and keeps a "who is clocked in now" snapshot:
- normalizer: vendor time-entry payload -> validated candidates
- reconciliation: idempotent per-tenant upserts, per-item savepoints
- resolver: two-source employee identity and cost-center names
- snapshot: full-replace clocked-in cache and its statistics

Usage:
    from db.db_utils import get_session
    from HCM.orchestrator import run_time_entry_sync

    session = get_session()
    result = run_time_entry_sync(session, "tenant-a", payload)

Submodules are imported explicitly; db.db_utils depends on HCM.config,
so this package does not import the pipeline eagerly.
"""

__version__ = "1.0.0"
