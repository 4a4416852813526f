"""Tests for the payload normalizer.

Tests verify:
1. Entries missing id, date, type or employee are excluded and reported
2. Durations convert exactly and out-of-range values are clamped
3. Dates keep only their calendar day
4. Cost centers follow the positional convention
5. Unknown payload shapes are rejected up front
"""

import json
from datetime import date
from decimal import Decimal

import pytest

from HCM.common.exceptions import PayloadFormatError
from HCM.normalizer import (
    candidates_to_frame,
    extract_cost_centers,
    milliseconds_to_hours,
    normalize_time_entries,
    parse_entry_date,
    parse_timestamp,
)
from factories import DROP, make_entry, make_payload, utc


class TestRequiredFields:
    """Invalid entries are excluded without affecting their siblings."""

    def test_missing_date_excludes_only_that_entry(self):
        """Two entries, one without a date: one candidate, one error."""
        payload = make_payload([make_entry(1), make_entry(2, date=DROP)])

        result = normalize_time_entries(payload)

        assert result.processed_count == 1
        assert len(result.errors) == 1
        assert result.candidates[0].external_entry_id == "1"
        assert result.errors[0].entry_ref == "2"
        assert "date" in result.errors[0].reason

    def test_missing_id_uses_positional_marker(self):
        payload = make_payload([make_entry(1), make_entry(DROP)])

        result = normalize_time_entries(payload)

        assert result.processed_count == 1
        assert result.errors[0].entry_ref == "entry[0:1]"
        assert "'id'" in result.errors[0].reason

    def test_missing_type_is_rejected(self):
        result = normalize_time_entries(make_payload([make_entry(7, type=DROP)]))

        assert result.processed_count == 0
        assert result.errors[0].entry_ref == "7"
        assert "'type'" in result.errors[0].reason

    def test_blank_strings_count_as_missing(self):
        result = normalize_time_entries(make_payload([make_entry(7, type="  "), make_entry(8, date="")]))

        assert result.processed_count == 0
        assert [e.entry_ref for e in result.errors] == ["7", "8"]

    def test_set_without_employee_rejects_all_its_entries(self):
        payload = {
            "time_entry_sets": [
                {"employee": {}, "time_entries": [make_entry(1), make_entry(2)]},
                {"employee": {"account_id": 99}, "time_entries": [make_entry(3)]},
            ]
        }

        result = normalize_time_entries(payload)

        assert [c.external_entry_id for c in result.candidates] == ["3"]
        assert [e.entry_ref for e in result.errors] == ["1", "2"]
        assert all("employee.account_id" in e.reason for e in result.errors)

    def test_unparseable_date_is_a_validation_error(self):
        result = normalize_time_entries(make_payload([make_entry(5, date="08/10/2025")]))

        assert result.processed_count == 0
        assert result.errors[0].entry_ref == "5"

    def test_entry_inherits_employee_of_its_set(self):
        result = normalize_time_entries(make_payload([make_entry(1)], account_id=12345))

        assert result.candidates[0].employee_account_id == "12345"


class TestDurationConversion:
    """Elapsed milliseconds become hours with two decimals."""

    @pytest.mark.parametrize("milliseconds, expected", [
        (15912000, Decimal("4.42")),
        (14400000, Decimal("4.00")),
        (0, Decimal("0.00")),
        (18000, Decimal("0.01")),
    ])
    def test_exact_conversion(self, milliseconds, expected):
        assert milliseconds_to_hours(milliseconds) == expected

    def test_negative_duration_clamps_to_zero(self):
        assert milliseconds_to_hours(-500) == Decimal("0.00")

    def test_duration_over_a_day_clamps_to_24(self):
        assert milliseconds_to_hours(100 * 3600 * 1000) == Decimal("24.00")

    def test_non_numeric_duration_raises(self):
        with pytest.raises(ValueError):
            milliseconds_to_hours("abc")

    def test_clamped_total_is_kept_and_reported(self):
        payload = make_payload([make_entry(1, total=-500), make_entry(2, total=100 * 3600 * 1000)])

        result = normalize_time_entries(payload)

        assert [c.total_hours for c in result.candidates] == [Decimal("0.00"), Decimal("24.00")]
        assert [w.entry_ref for w in result.warnings] == ["1", "2"]
        assert result.warnings[1].clamped_value == Decimal("24.00")
        assert result.warnings[1].original_value == 360000000

    def test_missing_total_gives_null_hours(self):
        result = normalize_time_entries(make_payload([make_entry(1, total=DROP)]))

        assert result.candidates[0].total_hours is None
        assert result.warnings == []

    def test_non_numeric_total_gives_zero_with_warning(self):
        result = normalize_time_entries(make_payload([make_entry(1, total="lots")]))

        assert result.candidates[0].total_hours == Decimal("0.00")
        assert result.warnings[0].reason == "not numeric"


class TestDateParsing:

    @pytest.mark.parametrize("raw", ["2025-08-10T23:49:48.000-06:00", "2025-08-10"])
    def test_calendar_day_is_kept(self, raw):
        assert parse_entry_date(raw) == date(2025, 8, 10)

    @pytest.mark.parametrize("raw", ["10-08-2025", "2025-13-01", "", "2025-08-10junk", None])
    def test_invalid_dates_raise(self, raw):
        with pytest.raises(ValueError):
            parse_entry_date(raw)

    def test_timestamps_are_converted_to_utc(self):
        assert parse_timestamp("2025-08-10T08:00:00.000-06:00") == utc(2025, 8, 10, 14, 0)

    def test_unparseable_timestamp_is_null_and_keeps_entry(self):
        result = normalize_time_entries(make_payload([make_entry(1, start_time="not a time")]))

        assert result.processed_count == 1
        assert result.candidates[0].start_time is None
        assert result.candidates[0].end_time == utc(2025, 8, 10, 18, 25, 12)


class TestCostCenters:
    """Index 0 is the location, index 1 the department."""

    def test_nested_value_form(self):
        refs = [{"index": 0, "value": {"id": 111}}, {"index": 1, "value": {"id": 222}}]
        assert extract_cost_centers(refs) == (111, 222)

    def test_flat_id_form(self):
        assert extract_cost_centers([{"index": 0, "id": 111}, {"index": 1, "id": 222}]) == (111, 222)

    def test_missing_location_index_yields_null(self):
        assert extract_cost_centers([{"index": 1, "id": 222}]) == (None, 222)

    def test_other_indexes_are_ignored(self):
        assert extract_cost_centers([{"index": 2, "id": 333}, {"index": 0, "id": 111}]) == (111, None)

    def test_empty_or_null_list(self):
        assert extract_cost_centers([]) == (None, None)
        result = normalize_time_entries(make_payload([make_entry(1, cost_centers=None)]))
        assert result.candidates[0].location_cost_center_id is None

    def test_candidate_carries_both_ids(self):
        candidate = normalize_time_entries(make_payload([make_entry(1)])).candidates[0]

        assert candidate.location_cost_center_id == 111
        assert candidate.department_cost_center_id == 222


class TestPayloadShape:

    def test_candidate_fields_and_raw_payload(self):
        entry = make_entry(42, vendor_extra={"note": "kept"})

        candidate = normalize_time_entries(make_payload([entry])).candidates[0]

        assert candidate.external_entry_id == "42"
        assert candidate.entry_type == "TIME"
        assert candidate.entry_date == date(2025, 8, 10)
        assert candidate.approval_status == "APPROVED"
        assert candidate.is_raw is True
        assert candidate.is_calculated is False
        assert candidate.raw_payload == entry

    def test_bare_list_with_employee_per_entry(self):
        entries = [make_entry(1, employee={"account_id": 5}), make_entry(2)]

        result = normalize_time_entries(entries)

        assert [c.employee_account_id for c in result.candidates] == ["5"]
        assert result.errors[0].entry_ref == "2"

    def test_json_string_payload(self):
        result = normalize_time_entries(json.dumps(make_payload([make_entry(1)])))

        assert result.processed_count == 1

    @pytest.mark.parametrize("payload", [{"data": []}, {"time_entry_sets": "nope"}, 42, None, "not json"])
    def test_unknown_shape_raises(self, payload):
        with pytest.raises(PayloadFormatError):
            normalize_time_entries(payload)

    def test_set_without_entry_array_is_skipped(self):
        payload = {
            "time_entry_sets": [
                {"employee": {"account_id": 1}, "time_entries": [make_entry(1)]},
                {"employee": {"account_id": 2}, "time_entries": None},
                "not a set",
            ]
        }

        result = normalize_time_entries(payload)

        assert result.processed_count == 1
        assert [e.entry_ref for e in result.errors] == ["set[1]", "set[2]"]

    def test_non_object_employee_rejects_only_its_entries(self):
        payload = {
            "time_entry_sets": [
                {"employee": {"account_id": 1}, "time_entries": [make_entry(1)]},
                {"employee": "oops", "time_entries": [make_entry(2)]},
            ]
        }

        result = normalize_time_entries(payload)

        assert [c.external_entry_id for c in result.candidates] == ["1"]
        assert [e.entry_ref for e in result.errors] == ["2"]
        assert "employee.account_id" in result.errors[0].reason

    def test_non_object_entry_is_reported(self):
        result = normalize_time_entries(make_payload([make_entry(1), "garbage"]))

        assert result.processed_count == 1
        assert result.errors[0].entry_ref == "entry[0:1]"

    def test_empty_payload(self):
        result = normalize_time_entries({"time_entry_sets": []})

        assert result.processed_count == 0
        assert result.errors == []


class TestCandidateFrame:

    def test_frame_columns_and_hours_as_float(self):
        result = normalize_time_entries(make_payload([make_entry(1), make_entry(2, total=DROP)]))

        df = candidates_to_frame(result.candidates)

        assert list(df["external_entry_id"]) == ["1", "2"]
        assert df["total_hours"].iloc[0] == pytest.approx(4.42)
        assert df["total_hours"].isna().iloc[1]

    def test_empty_frame_has_columns(self):
        df = candidates_to_frame([])

        assert df.empty
        assert "total_hours" in df.columns
