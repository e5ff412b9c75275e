"""Grade analytics: GPA, averages, attendance, missing work, streaks, trends.

Pure functions over a list of GradeRecord. Callers usually pass the
reconciled view (newest first); anything that needs "the most recent record"
picks it by date rather than trusting list order.
"""

from __future__ import annotations

import math
from collections import defaultdict
from datetime import date, timedelta
from typing import Optional, Sequence

import date_utils
from errors import ValidationError
from models import GradeRecord, GradingScale

# Fixed credit weight per subject entry.
CREDIT_VALUE = 3

# (minimum percentage, grade points), checked top-down.
_GPA_TABLE: list[tuple[float, float]] = [
    (93, 4.0), (90, 3.7), (87, 3.3), (83, 3.0),
    (80, 2.7), (77, 2.3), (73, 2.0), (70, 1.7),
    (67, 1.3), (63, 1.0), (60, 0.7),
]

TIME_RANGE_DAYS: dict[str, Optional[int]] = {
    "all": None,
    "week": 7,
    "month": 30,
    "quarter": 90,
    "year": 365,
}


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _latest(records: Sequence[GradeRecord]) -> Optional[GradeRecord]:
    if not records:
        return None
    return max(records, key=lambda r: r.date)


def normalize_grade(grade: float, scale: GradingScale | str) -> float:
    """Convert a grade to the percentage scale (4.0 = 100%)."""
    if GradingScale(scale) is GradingScale.FOUR_POINT:
        return grade / 4 * 100
    return float(grade)


def format_grade(grade: float, scale: GradingScale | str) -> str:
    if GradingScale(scale) is GradingScale.FOUR_POINT:
        return f"{grade:.1f}"
    return str(_round_half_up(grade))


def percentage_to_points(percentage: float) -> float:
    for threshold, points in _GPA_TABLE:
        if percentage >= threshold:
            return points
    return 0.0


def average_grade(records: Sequence[GradeRecord]) -> int:
    """Mean normalized percentage over attended entries; 0 when there are none."""
    values = [
        normalize_grade(e.grade, e.grading_scale)
        for r in records for e in r.entries if e.attended
    ]
    if not values:
        return 0
    return _round_half_up(sum(values) / len(values))


def gpa(records: Sequence[GradeRecord]) -> str:
    """Equal-weight 4.0-scale GPA over attended entries, e.g. ``"3.45"``."""
    total_points = 0.0
    total_credits = 0
    for record in records:
        for entry in record.entries:
            if not entry.attended:
                continue
            if entry.grading_scale is GradingScale.FOUR_POINT:
                points = min(4.0, max(0.0, entry.grade))
            else:
                points = percentage_to_points(entry.grade)
            total_points += points * CREDIT_VALUE
            total_credits += CREDIT_VALUE
    if total_credits == 0:
        return "0.00"
    return f"{total_points / total_credits:.2f}"


def attendance_rate(records: Sequence[GradeRecord]) -> int:
    """Attended share of all entries as a whole percentage; 100 with no data."""
    total = 0
    attended = 0
    for record in records:
        for entry in record.entries:
            total += 1
            if entry.attended:
                attended += 1
    if total == 0:
        return 100
    return _round_half_up(attended / total * 100)


def missing_assignments_total(records: Sequence[GradeRecord]) -> int:
    """Missing assignments on the most recent day only (not all history)."""
    latest = _latest(records)
    if latest is None:
        return 0
    return sum(e.missing_assignments for e in latest.entries)


def missing_by_subject(records: Sequence[GradeRecord]) -> list[dict]:
    latest = _latest(records)
    if latest is None:
        return []
    items = [
        {"subject": e.subject, "count": e.missing_assignments}
        for e in latest.entries if e.missing_assignments > 0
    ]
    return sorted(items, key=lambda i: i["count"], reverse=True)


def missing_severity(count: int) -> str:
    if count <= 0:
        return "none"
    if count <= 3:
        return "low"
    if count <= 7:
        return "medium"
    return "high"


def input_streak(records: Sequence[GradeRecord], today: Optional[date] = None) -> int:
    """Consecutive days with a record, counted back from the latest entry.

    Zero unless the latest entry is from today or yesterday.
    """
    if not records:
        return 0
    today = today or date.today()
    dates = {r.date for r in records}
    latest = max(dates)
    if (today - latest).days > 1 or latest > today:
        return 0
    count = 1
    day = latest - timedelta(days=1)
    while day in dates:
        count += 1
        day -= timedelta(days=1)
    return count


def filter_by_time_range(
    records: Sequence[GradeRecord],
    time_range: str = "all",
    today: Optional[date] = None,
) -> list[GradeRecord]:
    if time_range not in TIME_RANGE_DAYS:
        raise ValidationError(
            f"Unknown time range {time_range!r}; expected one of {', '.join(TIME_RANGE_DAYS)}.",
            field="range",
        )
    days = TIME_RANGE_DAYS[time_range]
    if days is None:
        return list(records)
    cutoff = (today or date.today()) - timedelta(days=days)
    return [r for r in records if r.date >= cutoff]


def subject_series(records: Sequence[GradeRecord]) -> dict:
    """Per-subject trend lines (attended entries, normalized %), oldest first."""
    ordered = sorted(records, key=lambda r: r.date)
    points: dict[str, list[dict]] = {}
    for record in ordered:
        for entry in record.entries:
            points.setdefault(entry.subject, [])
            if entry.attended:
                points[entry.subject].append({
                    "date": record.iso_date,
                    "value": round(normalize_grade(entry.grade, entry.grading_scale), 2),
                })

    labels = [date_utils.display(r.date, "short") for r in ordered]
    datasets = [
        {
            "label": subject,
            "dates": [p["date"] for p in series],
            "data": [p["value"] for p in series],
        }
        for subject, series in points.items()
    ]
    return {"labels": labels, "datasets": datasets}


def subject_stats(records: Sequence[GradeRecord]) -> dict[str, dict]:
    """Average / highest / lowest / latest normalized grade per subject."""
    by_subject: dict[str, list[tuple[date, float]]] = defaultdict(list)
    for record in records:
        for entry in record.entries:
            if entry.attended:
                by_subject[entry.subject].append(
                    (record.date, normalize_grade(entry.grade, entry.grading_scale))
                )

    stats = {}
    for subject, values in by_subject.items():
        grades = [v for _, v in values]
        stats[subject] = {
            "average": round(sum(grades) / len(grades), 2),
            "highest": round(max(grades), 2),
            "lowest": round(min(grades), 2),
            "latest": round(max(values, key=lambda v: v[0])[1], 2),
            "count": len(grades),
        }
    return stats


def recent_entries(records: Sequence[GradeRecord]) -> list[dict]:
    latest = _latest(records)
    if latest is None:
        return []
    return [
        {**e.to_dict(), "display": format_grade(e.grade, e.grading_scale)}
        for e in latest.entries
    ]


def dashboard_summary(
    records: Sequence[GradeRecord],
    time_range: str = "all",
    today: Optional[date] = None,
) -> dict:
    """Everything the dashboard shows, in one dict.

    Averages, GPA and attendance follow the selected range; missing work and
    the streak always look at the full history.
    """
    today = today or date.today()
    filtered = filter_by_time_range(records, time_range, today)
    missing_total = missing_assignments_total(records)
    latest = _latest(records)
    return {
        "time_range": time_range,
        "record_count": len(filtered),
        "average_grade": average_grade(filtered),
        "gpa": gpa(filtered),
        "attendance_rate": attendance_rate(filtered),
        "missing_assignments": {
            "total": missing_total,
            "severity": missing_severity(missing_total),
            "by_subject": missing_by_subject(records),
        },
        "input_streak": input_streak(records, today),
        "latest_date": latest.iso_date if latest else None,
        "recent_entries": recent_entries(records),
        "subject_stats": subject_stats(filtered),
        "chart": subject_series(filtered),
    }
