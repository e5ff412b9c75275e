"""Tests for date_utils.py: parsing, canonical form and display labels."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from date_utils import DisplayStyle, display, normalize, to_iso, today
from errors import InvalidDateFormat


class TestNormalize:
    def test_plain_date_string(self):
        assert normalize("2025-03-14") == date(2025, 3, 14)

    @pytest.mark.parametrize("value", [
        "2025-03-14T00:00:00.000Z",
        "2025-03-14T23:59:59.999Z",
        "2025-03-14T23:30:00-08:00",
        "2025-03-14T00:30:00+14:00",
        "2025-03-14 08:15:00",
        "  2025-03-14  ",
    ])
    def test_timestamp_keeps_calendar_date(self, value):
        """No timezone offset may move the date to the 13th or 15th."""
        assert normalize(value) == date(2025, 3, 14)

    @pytest.mark.parametrize("value", [
        "2024-02-29T12:00:00Z", "2025-12-31T23:59:59+05:30", "2025-01-01T00:00:00.000-11:00",
    ])
    def test_time_part_never_changes_result(self, value):
        assert normalize(value) == normalize(value.split("T")[0])

    def test_date_and_datetime_objects(self):
        assert normalize(date(2025, 3, 14)) == date(2025, 3, 14)
        late = datetime(2025, 3, 14, 23, 30, tzinfo=timezone(timedelta(hours=-8)))
        assert normalize(late) == date(2025, 3, 14)

    @pytest.mark.parametrize("value", [
        "",
        "   ",
        "not-a-date",
        "2025/03/14",
        "2025-03",
        "2025-03-14-01",
        "2025-02-30",
        "2025-13-01",
        "14-03-2025",
        "2025-0²-01",
        "２０２５-03-14",
        "2025-٣-14",
    ])
    def test_invalid_strings(self, value):
        with pytest.raises(InvalidDateFormat):
            normalize(value)

    @pytest.mark.parametrize("value", [None, 20250314, 3.5, ["2025-03-14"]])
    def test_non_string_values(self, value):
        with pytest.raises(InvalidDateFormat):
            normalize(value)

    def test_invalid_date_is_a_value_error(self):
        with pytest.raises(ValueError):
            normalize("garbage")

    def test_error_payload_names_the_date_field(self):
        with pytest.raises(InvalidDateFormat) as exc_info:
            normalize("2025-02-30")
        body = exc_info.value.to_dict()
        assert body["code"] == "INVALID_DATE_FORMAT"
        assert body["field"] == "date"


def test_to_iso():
    assert to_iso("2025-03-14T00:00:00.000Z") == "2025-03-14"
    assert to_iso(date(2025, 1, 5)) == "2025-01-05"


class TestDisplay:
    def test_short(self):
        assert display("2025-03-14") == "Mar 14"

    def test_medium(self):
        assert display("2025-03-14", "medium") == "March 14, 2025"

    def test_long(self):
        assert display("2025-03-14", DisplayStyle.LONG) == "Fri, March 14, 2025"

    def test_timestamp_label_matches_date(self):
        assert display("2025-03-14T00:00:00.000Z") == "Mar 14"

    def test_unknown_style(self):
        with pytest.raises(ValueError, match="Unknown display style"):
            display("2025-03-14", "fancy")


class TestToday:
    def test_default_is_local_date(self):
        before = date.today()
        assert today() in (before, before + timedelta(days=1))

    def test_unknown_timezone(self):
        with pytest.raises(ValueError, match="Unknown timezone"):
            today("Not/AZone")
