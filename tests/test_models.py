"""Tests for models.py: GradeRecord / SubjectEntry parsing and validation."""

from __future__ import annotations

from datetime import date

import pytest

from conftest import entry
from errors import InvalidDateFormat, ValidationError
from models import GradeRecord, GradingScale, SubjectEntry


def _record(entries, day="2025-03-14", **extra):
    return GradeRecord.from_dict({"date": day, "entries": entries, **extra})


class TestSubjectEntry:
    def test_defaults(self):
        e = SubjectEntry.from_dict({"subject": "Math", "grade": 88})
        assert e.grading_scale is GradingScale.PERCENTAGE
        assert e.attended is True
        assert e.missing_assignments == 0

    def test_string_grade_from_cms(self):
        e = SubjectEntry.from_dict({"subject": "Math", "grade": "87.5"})
        assert e.grade == 87.5

    def test_attendance_alias(self):
        e = SubjectEntry.from_dict({"subject": "Art", "grade": 70, "attendance": False})
        assert e.attended is False

    def test_integral_float_missing_count(self):
        e = SubjectEntry.from_dict(entry(missing=2.0))
        assert e.missing_assignments == 2

    def test_subject_is_trimmed(self):
        assert SubjectEntry.from_dict(entry(subject="  Biology ")).subject == "Biology"

    @pytest.mark.parametrize("grade", [0, 4, 4.0, 2.75])
    def test_four_point_bounds_accepted(self, grade):
        e = SubjectEntry.from_dict(entry(grade=grade, scale="fourPoint"))
        assert e.grading_scale is GradingScale.FOUR_POINT

    @pytest.mark.parametrize("grade,scale", [
        (100, "fourPoint"),
        (4.01, "fourPoint"),
        (-0.5, "fourPoint"),
        (100.5, "percentage"),
        (-1, "percentage"),
    ])
    def test_out_of_range_grade(self, grade, scale):
        with pytest.raises(ValidationError) as exc_info:
            SubjectEntry.from_dict(entry(grade=grade, scale=scale))
        assert exc_info.value.field == "grade"

    @pytest.mark.parametrize("grade", ["abc", None, True, float("nan"), [90]])
    def test_non_numeric_grade(self, grade):
        with pytest.raises(ValidationError):
            SubjectEntry.from_dict(entry(grade=grade))

    @pytest.mark.parametrize("subject", ["", "   ", None, 42])
    def test_subject_required(self, subject):
        with pytest.raises(ValidationError) as exc_info:
            SubjectEntry.from_dict(entry(subject=subject))
        assert exc_info.value.field == "subject"

    @pytest.mark.parametrize("missing", [-1, 1.5, "2", True])
    def test_bad_missing_count(self, missing):
        with pytest.raises(ValidationError) as exc_info:
            SubjectEntry.from_dict(entry(missing=missing))
        assert exc_info.value.field == "missingAssignments"

    def test_unknown_scale(self):
        with pytest.raises(ValidationError, match="Unknown grading scale"):
            SubjectEntry.from_dict(entry(scale="letter"))

    def test_attended_must_be_bool(self):
        with pytest.raises(ValidationError):
            SubjectEntry.from_dict(entry(attended="yes"))

    def test_to_dict_is_camel_case(self):
        e = SubjectEntry.from_dict(entry(subject="Chem", grade=3.5, scale="fourPoint", missing=1))
        assert e.to_dict() == {
            "subject": "Chem",
            "grade": 3.5,
            "attended": True,
            "missingAssignments": 1,
            "gradingScale": "fourPoint",
        }


class TestGradeRecord:
    def test_from_dict(self):
        r = _record([entry("Math", 92), entry("History", 3.0, "fourPoint")], notes="quiz day")
        assert r.date == date(2025, 3, 14)
        assert [e.subject for e in r.entries] == ["Math", "History"]
        assert r.notes == "quiz day"
        assert r.remote_id is None

    def test_timestamp_date_is_normalized(self):
        assert _record([entry()], day="2025-03-14T00:00:00.000Z").iso_date == "2025-03-14"

    def test_duplicate_subject_case_insensitive(self):
        with pytest.raises(ValidationError, match="more than once"):
            _record([entry("Math", 90), entry("math ", 80)])

    def test_requires_entries(self):
        with pytest.raises(ValidationError) as exc_info:
            _record([])
        assert exc_info.value.field == "entries"

    def test_entries_must_be_list(self):
        with pytest.raises(ValidationError):
            _record({"subject": "Math", "grade": 90})

    def test_date_required(self):
        with pytest.raises(ValidationError) as exc_info:
            GradeRecord.from_dict({"entries": [entry()]})
        assert exc_info.value.field == "date"

    def test_bad_date(self):
        with pytest.raises(InvalidDateFormat):
            _record([entry()], day="03/14/2025")

    def test_not_an_object(self):
        with pytest.raises(ValidationError):
            GradeRecord.from_dict(["2025-03-14"])

    def test_notes_must_be_text(self):
        with pytest.raises(ValidationError):
            _record([entry()], notes=["a"])

    def test_remote_id_round_trip(self):
        r = _record([entry()], id=12)
        assert r.remote_id == 12
        assert r.to_dict()["id"] == 12

    def test_to_dict_omits_unknown_id(self):
        data = _record([entry()]).to_dict()
        assert "id" not in data
        assert data["date"] == "2025-03-14"

    def test_non_integer_id_is_dropped(self):
        assert _record([entry()], id="12").remote_id is None

    def test_with_remote_id_returns_copy(self):
        r = _record([entry()])
        saved = r.with_remote_id(5)
        assert saved.remote_id == 5
        assert r.remote_id is None
