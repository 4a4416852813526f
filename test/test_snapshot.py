"""Tests for the clocked-in snapshot cache.

Tests verify:
1. A refresh replaces the whole set of its tenant and business date
2. Hours worked and name fallbacks are computed per observation
3. A failed refresh leaves the previous set in place
4. Concurrent refreshes of the same key never mix their sets
"""

import threading
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.sql.dml import Insert

from HCM.common.exceptions import SnapshotRefreshError
from HCM.reconciliation import upsert_cost_centers, upsert_employees
from HCM.snapshot import (
    NOT_IMPLEMENTED_STATISTICS,
    ClockedInObservation,
    clear_clocked_in,
    get_cache_statistics,
    get_clocked_in,
    refresh_clocked_in,
)
from HCM.snapshot.refresh import REFRESH_LOCK_STRIPES, _refresh_lock
from factories import OTHER_TENANT, TENANT, utc

BUSINESS_DATE = date(2025, 8, 10)
NOW = utc(2025, 8, 10, 17, 0)


def observe(account_id, hours_ago=1.0, **kwargs):
    return ClockedInObservation(
        employee_account_id=account_id,
        clock_in_time=NOW - timedelta(hours=hours_ago),
        **kwargs
    )


def refresh(session, observations, tenant_id=TENANT):
    return refresh_clocked_in(session, tenant_id, observations, BUSINESS_DATE, NOW)


def account_ids(session, tenant_id=TENANT):
    return sorted(r.employee_account_id for r in get_clocked_in(session, tenant_id, BUSINESS_DATE))


class TestReplaceSemantics:

    def test_refresh_replaces_previous_set(self, db_session):
        """3 employees cached, refresh with 2 others: exactly those 2 remain."""
        refresh(db_session, [observe(1), observe(2), observe(3)])
        result = refresh(db_session, [observe(4), observe(5)])

        assert result.removed == 3
        assert result.inserted == 2
        assert account_ids(db_session) == ["4", "5"]

    def test_empty_refresh_clears_the_date(self, db_session):
        refresh(db_session, [observe(1)])
        refresh(db_session, [])

        assert account_ids(db_session) == []

    def test_other_dates_and_tenants_untouched(self, db_session):
        refresh(db_session, [observe(1)], tenant_id=OTHER_TENANT)
        refresh_clocked_in(db_session, TENANT, [observe(9)], BUSINESS_DATE - timedelta(days=1), NOW)
        refresh(db_session, [observe(2)])

        assert account_ids(db_session, OTHER_TENANT) == ["1"]
        assert len(get_clocked_in(db_session, TENANT, BUSINESS_DATE - timedelta(days=1))) == 1

    def test_clear_then_refresh(self, db_session):
        refresh(db_session, [observe(1), observe(2)])

        assert clear_clocked_in(db_session, TENANT, BUSINESS_DATE) == 2
        assert account_ids(db_session) == []

        refresh(db_session, [observe(3)])
        assert account_ids(db_session) == ["3"]

    def test_clear_all_dates(self, db_session):
        refresh(db_session, [observe(1)])
        refresh_clocked_in(db_session, TENANT, [observe(2)], BUSINESS_DATE + timedelta(days=1), NOW)

        assert clear_clocked_in(db_session, TENANT) == 2

    def test_duplicate_observations_keep_latest_clock_in(self, db_session):
        refresh(db_session, [observe(1, hours_ago=5), observe("1", hours_ago=2)])

        rows = get_clocked_in(db_session, TENANT, BUSINESS_DATE)
        assert len(rows) == 1
        assert Decimal(str(rows[0].hours_worked_so_far)) == Decimal("2.00")

    def test_rows_ordered_by_latest_clock_in(self, db_session):
        refresh(db_session, [observe(1, hours_ago=3), observe(2, hours_ago=1), observe(3, hours_ago=2)])

        assert [r.employee_account_id for r in get_clocked_in(db_session, TENANT, BUSINESS_DATE)] == ["2", "3", "1"]


class TestRowContents:

    def test_hours_worked_so_far(self, db_session):
        refresh(db_session, [observe(1, hours_ago=2.5), observe(2, hours_ago=0.1)])

        rows = {r.employee_account_id: r for r in get_clocked_in(db_session, TENANT, BUSINESS_DATE)}
        assert Decimal(str(rows["1"].hours_worked_so_far)) == Decimal("2.50")
        assert Decimal(str(rows["2"].hours_worked_so_far)) == Decimal("0.10")

    def test_future_clock_in_counts_zero_hours(self, db_session):
        refresh(db_session, [observe(1, hours_ago=-1)])

        row = get_clocked_in(db_session, TENANT, BUSINESS_DATE)[0]
        assert Decimal(str(row.hours_worked_so_far)) == Decimal("0.00")

    def test_resolved_names_win(self, db_session):
        upsert_employees(db_session, TENANT, [
            {"external_employee_id": "12345", "employee_number": "1001", "full_name": "Ada Lovelace"},
        ])
        upsert_cost_centers(db_session, TENANT, [
            {"cost_center_id": 111, "name": "Downtown"},
            {"cost_center_id": 222, "name": "Kitchen"},
        ])

        refresh(db_session, [observe(
            12345,
            employee_name="hint name",
            location_cost_center_id=111,
            department_cost_center_id=222,
            location_name="hint location",
            department_name="hint department",
            time_entry_id=987,
        )])

        row = get_clocked_in(db_session, TENANT, BUSINESS_DATE)[0]
        assert row.employee_name == "Ada Lovelace"
        assert row.employee_number == "1001"
        assert row.location_name == "Downtown"
        assert row.department_name == "Kitchen"
        assert row.time_entry_id == "987"

    def test_hints_used_on_miss(self, db_session):
        refresh(db_session, [observe(
            1,
            employee_name="Hinted",
            location_cost_center_id=111,
            location_name="Hinted Location",
            department_name="Hinted Department",
        )])

        row = get_clocked_in(db_session, TENANT, BUSINESS_DATE)[0]
        assert row.employee_name == "Hinted"
        assert row.location_name == "Hinted Location"
        assert row.department_name == "Hinted Department"

    def test_placeholders_when_nothing_resolves(self, db_session):
        refresh(db_session, [
            observe(1, location_cost_center_id=111, department_cost_center_id=222),
            observe(2),
        ])

        rows = {r.employee_account_id: r for r in get_clocked_in(db_session, TENANT, BUSINESS_DATE)}
        assert rows["1"].employee_name == "Employee 1"
        assert rows["1"].location_name == "Location 111"
        assert rows["1"].department_name == "Department 222"
        assert rows["2"].location_name == "Unknown Location"
        assert rows["2"].department_name == "Unknown Department"

    def test_inactive_cost_center_falls_back(self, db_session):
        upsert_cost_centers(db_session, TENANT, [{"cost_center_id": 111, "name": "Closed", "is_active": False}])

        refresh(db_session, [observe(1, location_cost_center_id=111)])

        assert get_clocked_in(db_session, TENANT, BUSINESS_DATE)[0].location_name == "Location 111"


class TestStatistics:

    def test_counts_and_unimplemented_fields(self, db_session):
        upsert_employees(db_session, TENANT, [
            {"external_employee_id": "1"},
            {"external_employee_id": "2"},
            {"external_employee_id": "3", "is_active": False},
        ])
        refresh(db_session, [
            observe(1, location_cost_center_id=111),
            observe(2, location_cost_center_id=111),
            observe(7, location_cost_center_id=333),
        ])

        stats = get_cache_statistics(db_session, TENANT, BUSINESS_DATE)

        assert stats.total_clocked_in == 3
        assert stats.total_active_locations == 2
        assert stats.total_employees == 2
        assert stats.last_refresh_time is not None
        assert stats.avg_refresh_duration is None
        assert stats.last_refresh_duration is None
        assert stats.success_rate is None
        assert stats.not_implemented == NOT_IMPLEMENTED_STATISTICS

    def test_empty_snapshot(self, db_session):
        stats = get_cache_statistics(db_session, TENANT, BUSINESS_DATE)

        assert stats.total_clocked_in == 0
        assert stats.last_refresh_time is None

    def test_defaults_to_today_not_past_snapshots(self, db_session):
        now = datetime.now(timezone.utc)
        refresh(db_session, [observe(i) for i in range(5)])
        refresh_clocked_in(
            db_session, TENANT,
            [ClockedInObservation(employee_account_id=9, clock_in_time=now - timedelta(hours=1))],
            now.date(), now,
        )

        stats = get_cache_statistics(db_session, TENANT)

        assert stats.total_clocked_in == 1
        assert get_cache_statistics(db_session, TENANT, BUSINESS_DATE).total_clocked_in == 5


class TestFailures:

    def test_failed_refresh_keeps_previous_set(self, db_session, monkeypatch):
        refresh(db_session, [observe(1), observe(2)])
        real_execute = db_session.execute

        def failing_insert(statement, *args, **kwargs):
            if isinstance(statement, Insert):
                raise OperationalError("INSERT INTO clocked_in_snapshot", {}, Exception("disk I/O error"))
            return real_execute(statement, *args, **kwargs)

        monkeypatch.setattr(db_session, "execute", failing_insert)
        with pytest.raises(SnapshotRefreshError):
            refresh(db_session, [observe(3)])
        monkeypatch.undo()

        assert account_ids(db_session) == ["1", "2"]


class TestConcurrency:

    def test_lock_pool_is_bounded(self):
        locks = {id(_refresh_lock(f"tenant-{n}", BUSINESS_DATE)) for n in range(1000)}

        assert len(locks) <= REFRESH_LOCK_STRIPES
        assert _refresh_lock(TENANT, BUSINESS_DATE) is _refresh_lock(TENANT, BUSINESS_DATE)

    def test_concurrent_refreshes_do_not_interleave(self, file_engine):
        """Each refresh's delete+insert is serialized: the final set is one of the inputs."""
        factory = sessionmaker(bind=file_engine, autoflush=False, expire_on_commit=False)
        sets = [[observe(f"{n}-{i}") for i in range(5)] for n in range(4)]
        errors = []

        def worker(observations):
            session = factory()
            try:
                for _ in range(3):
                    refresh(session, observations)
            except Exception as e:  # surfaced through the assertion below
                errors.append(e)
            finally:
                session.close()

        threads = [threading.Thread(target=worker, args=(s,)) for s in sets]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        session = factory()
        try:
            final = account_ids(session)
        finally:
            session.close()
        assert len(final) == 5
        assert len({account.split("-")[0] for account in final}) == 1
