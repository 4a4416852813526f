# HCM/extract.py
"""
Interfaces of the upstream collaborators the pipeline pulls from.

The vendor API client (authentication, paging, HTTP) lives outside this
package; anything with these methods can feed the orchestrator.
"""

from datetime import date
from typing import Any, Iterable, List, Mapping, Protocol, Union, runtime_checkable

from HCM.reconciliation.schemas import EmployeeRecord
from HCM.snapshot.refresh import ClockedInObservation


@runtime_checkable
class TimeEntrySource(Protocol):
    def fetch_time_entries(self, start_date: date, end_date: date) -> Any:
        """Raw vendor payload ({"time_entry_sets": [...]}) for the date range."""
        ...


@runtime_checkable
class EmployeeSource(Protocol):
    def fetch_employees(self) -> Iterable[Union[EmployeeRecord, Mapping[str, Any]]]:
        ...


@runtime_checkable
class ClockStateSource(Protocol):
    def fetch_clocked_in(self) -> List[ClockedInObservation]:
        """Employees clocked in at the time of the call."""
        ...
