"""Tests for the identity and cost-center resolver."""

import pytest

from HCM.reconciliation import upsert_cost_centers, upsert_employees, upsert_unified_employees
from HCM.resolver import (
    PROVENANCE_BOTH,
    department_label,
    employee_label,
    get_cost_center_names,
    get_cost_center_path,
    location_label,
    resolve_employees,
)
from db.models import DATA_SOURCE_HCM, DATA_SOURCE_POS
from factories import OTHER_TENANT, TENANT


@pytest.fixture
def seeded(db_session):
    """Primary and secondary employee rows covering every rank."""
    upsert_employees(db_session, TENANT, [
        {
            "external_employee_id": "12345", "employee_number": "1001",
            "first_name": "Ada", "last_name": "Lovelace",
            "department_name": "Kitchen", "location_name": "Downtown",
            "cost_center_location_id": 111,
        },
        {"external_employee_id": "20000", "employee_number": "2002", "full_name": "Primary Only"},
    ])
    upsert_unified_employees(db_session, TENANT, [
        # Same person as 12345, seen by the point-of-sale system
        {"data_source": "pos", "source_employee_id": "p1", "employee_number": "1001",
         "full_name": "Ada L.", "department": "FOH", "location": "Uptown"},
        {"data_source": "hcm", "source_employee_id": "h3", "employee_number": "3003",
         "first_name": "Grace", "last_name": "Hopper", "department": "Bar", "location": "Uptown"},
        {"data_source": "pos", "source_employee_id": "p3", "employee_number": "3003",
         "full_name": "G. Hopper", "department": "Bar POS"},
        {"data_source": "pos", "source_employee_id": "p4", "payroll_id": "PAY-4",
         "full_name": "Pos Only", "location": "Airport"},
        {"data_source": "pos", "source_employee_id": "p5", "employee_number": "5005",
         "full_name": "Gone", "is_active": False},
    ])
    return db_session


class TestResolveEmployees:

    def test_primary_only(self, seeded):
        result = resolve_employees(seeded, TENANT, ["20000"])

        resolved = result["20000"]
        assert resolved.provenance == DATA_SOURCE_HCM
        assert resolved.rank == 1
        assert resolved.name == "Primary Only"
        assert resolved.employee_id == "2002"

    def test_both_sources_prefers_primary_fields(self, seeded):
        """1001 matches the primary employee number and a secondary row."""
        resolved = resolve_employees(seeded, TENANT, ["1001"])["1001"]

        assert resolved.provenance == PROVENANCE_BOTH
        assert resolved.rank == 1
        assert resolved.name == "Ada Lovelace"
        assert resolved.department == "Kitchen"
        assert resolved.location == "Downtown"
        assert resolved.cost_center == 111

    def test_secondary_primary_origin_outranks_other_origin(self, seeded):
        resolved = resolve_employees(seeded, TENANT, ["3003"])["3003"]

        assert resolved.rank == 2
        assert resolved.provenance == DATA_SOURCE_HCM
        assert resolved.name == "Grace Hopper"
        assert resolved.department == "Bar"

    def test_secondary_other_origin_via_payroll_id(self, seeded):
        resolved = resolve_employees(seeded, TENANT, ["PAY-4"])["PAY-4"]

        assert resolved.rank == 3
        assert resolved.provenance == DATA_SOURCE_POS
        assert resolved.location == "Airport"
        assert resolved.employee_id == "PAY-4"

    def test_int_identifiers_keep_their_type(self, seeded):
        result = resolve_employees(seeded, TENANT, [12345])

        assert list(result) == [12345]
        assert result[12345].name == "Ada Lovelace"
        assert result[12345].provenance == DATA_SOURCE_HCM

    def test_unmatched_and_inactive_are_absent(self, seeded):
        result = resolve_employees(seeded, TENANT, ["nobody", "5005", None, ""])

        assert result == {}

    def test_other_tenant_sees_nothing(self, seeded):
        assert resolve_employees(seeded, OTHER_TENANT, ["12345", "1001", "3003"]) == {}

    def test_empty_input_skips_queries(self, db_session):
        assert resolve_employees(db_session, TENANT, []) == {}


class TestCostCenterNames:

    @pytest.fixture
    def cost_centers(self, db_session):
        upsert_cost_centers(db_session, TENANT, [
            {"cost_center_id": 111, "name": "Downtown"},
            {"cost_center_id": 222, "name": "Kitchen", "parent_id": 111, "level": 2},
            {"cost_center_id": 333, "name": "Grill", "parent_id": 222, "level": 3},
            {"cost_center_id": 444, "name": "Closed", "is_active": False},
        ])
        return db_session

    def test_batch_lookup_filters_and_omits(self, cost_centers):
        names = get_cost_center_names(cost_centers, TENANT, [111, "222", None, 0, -5, 444, 999, "abc"])

        assert names == {111: "Downtown", 222: "Kitchen"}

    def test_nothing_valid_to_look_up(self, db_session):
        assert get_cost_center_names(db_session, TENANT, [None, 0, -1]) == {}

    def test_path_is_root_first(self, cost_centers):
        path = get_cost_center_path(cost_centers, TENANT, 333)

        assert [cc.cost_center_id for cc in path] == [111, 222, 333]

    def test_path_of_missing_cost_center_is_empty(self, cost_centers):
        assert get_cost_center_path(cost_centers, TENANT, 999) == []

    def test_path_terminates_on_cycle(self, db_session):
        upsert_cost_centers(db_session, TENANT, [
            {"cost_center_id": 1, "name": "A", "parent_id": 2},
            {"cost_center_id": 2, "name": "B", "parent_id": 1},
        ])

        path = get_cost_center_path(db_session, TENANT, 1)

        assert [cc.cost_center_id for cc in path] == [2, 1]


class TestFallbackLabels:

    def test_labels(self):
        assert location_label(111) == "Location 111"
        assert location_label(None) == "Unknown Location"
        assert department_label(222) == "Department 222"
        assert department_label(None) == "Unknown Department"
        assert employee_label(12345) == "Employee 12345"
