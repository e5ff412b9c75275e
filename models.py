"""
Daily grade records and their validation.

The wire/cache form is camelCase JSON (what the CMS and the browser cache
store); the in-memory form is a pair of dataclasses with a real
``datetime.date``. ``from_dict`` is the only way untrusted data becomes a
GradeRecord, and it enforces every invariant.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from datetime import date
from enum import Enum
from typing import Any, Optional

import date_utils
from errors import ValidationError


class GradingScale(str, Enum):
    PERCENTAGE = "percentage"
    FOUR_POINT = "fourPoint"

    @property
    def bounds(self) -> tuple[float, float]:
        return (0.0, 100.0) if self is GradingScale.PERCENTAGE else (0.0, 4.0)


@dataclass(frozen=True)
class SubjectEntry:
    subject: str
    grade: float
    grading_scale: GradingScale = GradingScale.PERCENTAGE
    attended: bool = True
    missing_assignments: int = 0

    def validate(self) -> None:
        if not isinstance(self.subject, str) or not self.subject.strip():
            raise ValidationError("Subject name is required.", field="subject")
        if isinstance(self.grade, bool) or not isinstance(self.grade, (int, float)):
            raise ValidationError(f"Grade for {self.subject} must be a number.", field="grade")
        if math.isnan(self.grade):
            raise ValidationError(f"Grade for {self.subject} must be a number.", field="grade")
        low, high = self.grading_scale.bounds
        if not low <= self.grade <= high:
            raise ValidationError(
                f"Grade {self.grade:g} for {self.subject} is outside the "
                f"{self.grading_scale.value} range [{low:g}, {high:g}].",
                field="grade",
            )
        if isinstance(self.missing_assignments, bool) or not isinstance(self.missing_assignments, int):
            raise ValidationError("Missing assignments must be a whole number.", field="missingAssignments")
        if self.missing_assignments < 0:
            raise ValidationError("Missing assignments cannot be negative.", field="missingAssignments")

    @property
    def subject_key(self) -> str:
        return self.subject.strip().casefold()

    def to_dict(self) -> dict[str, Any]:
        return {
            "subject": self.subject,
            "grade": self.grade,
            "attended": self.attended,
            "missingAssignments": self.missing_assignments,
            "gradingScale": self.grading_scale.value,
        }

    @staticmethod
    def from_dict(data: Any) -> SubjectEntry:
        if not isinstance(data, dict):
            raise ValidationError("Each entry must be an object.", field="entries")

        subject = data.get("subject")
        if isinstance(subject, str):
            subject = subject.strip()

        grade = data.get("grade")
        if isinstance(grade, str):
            # The CMS serializes decimals as strings.
            try:
                grade = float(grade)
            except ValueError:
                raise ValidationError(f"Grade for {subject} must be a number.", field="grade") from None
        if grade is None:
            raise ValidationError(f"Grade for {subject} is required.", field="grade")

        raw_scale = data.get("gradingScale") or GradingScale.PERCENTAGE.value
        try:
            scale = GradingScale(raw_scale)
        except ValueError:
            raise ValidationError(f"Unknown grading scale: {raw_scale!r}", field="gradingScale") from None

        attended = data.get("attended", data.get("attendance", True))
        if not isinstance(attended, bool):
            raise ValidationError("Attendance must be true or false.", field="attended")

        missing = data.get("missingAssignments", 0)
        if missing is None:
            missing = 0
        if isinstance(missing, float) and missing.is_integer():
            missing = int(missing)

        entry = SubjectEntry(
            subject=subject,
            grade=grade,
            grading_scale=scale,
            attended=attended,
            missing_assignments=missing,
        )
        entry.validate()
        return entry


@dataclass(frozen=True)
class GradeRecord:
    date: date
    entries: tuple[SubjectEntry, ...] = field(default_factory=tuple)
    notes: str = ""
    remote_id: Optional[int] = None

    def validate(self) -> None:
        if not self.entries:
            raise ValidationError("At least one subject entry is required.", field="entries")
        seen: set[str] = set()
        for entry in self.entries:
            entry.validate()
            if entry.subject_key in seen:
                raise ValidationError(
                    f"Subject {entry.subject.strip()!r} appears more than once for {self.date.isoformat()}.",
                    field="subject",
                )
            seen.add(entry.subject_key)

    @property
    def iso_date(self) -> str:
        return self.date.isoformat()

    def with_remote_id(self, remote_id: Optional[int]) -> GradeRecord:
        return replace(self, remote_id=remote_id)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "date": self.iso_date,
            "entries": [e.to_dict() for e in self.entries],
            "notes": self.notes,
        }
        if self.remote_id is not None:
            data["id"] = self.remote_id
        return data

    @staticmethod
    def from_dict(data: Any) -> GradeRecord:
        """Build and validate a record. Raises ValidationError / InvalidDateFormat."""
        if not isinstance(data, dict):
            raise ValidationError("A daily grade must be an object.")
        if not data.get("date"):
            raise ValidationError("Date is required.", field="date")
        day = date_utils.normalize(data["date"])

        raw_entries = data.get("entries")
        if not isinstance(raw_entries, list):
            raise ValidationError("Entries must be a list.", field="entries")

        notes = data.get("notes") or ""
        if not isinstance(notes, str):
            raise ValidationError("Notes must be text.", field="notes")

        remote_id = data.get("id")
        if remote_id is not None and (isinstance(remote_id, bool) or not isinstance(remote_id, int)):
            remote_id = None

        record = GradeRecord(
            date=day,
            entries=tuple(SubjectEntry.from_dict(e) for e in raw_entries),
            notes=notes,
            remote_id=remote_id,
        )
        record.validate()
        return record
