"""Derived statistics over a fully filtered record set.

Formulas:

* rate / percentage: ``round_half_up(numerator / denominator * 100)``, and
  ``0`` when the denominator is 0.
* attendance rate: ``present / total``, rendered as ``"<n>%"``.
* grade average: ``sum(grade) / sum(total_points) * 100`` over submissions
  whose status is ``graded``. Anything else is left out of both sums.
* grouping: keyed by the raw field value. Missing, null and empty values go
  to :data:`UNKNOWN` so group counts always add up to the record total.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, Mapping

UNKNOWN = "unknown"

ATTENDANCE_STATUSES = ("present", "absent", "late", "excused")


def round_half_up(value: Any) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def percentage(numerator: Any, denominator: Any) -> int:
    denominator_value = Decimal(str(denominator or 0))
    if denominator_value == 0:
        return 0
    return round_half_up(Decimal(str(numerator or 0)) * 100 / denominator_value)


def format_rate(numerator: Any, denominator: Any) -> str:
    return f"{percentage(numerator, denominator)}%"


def format_numeric(value: float | int | None) -> float | int | None:
    if value is None:
        return None
    number = float(value)
    if abs(number - round(number)) < 1e-9:
        return int(round(number))
    return round(number, 2)


def group_key(value: Any) -> str:
    if value is None:
        return UNKNOWN
    text = str(value).strip()
    return text if text else UNKNOWN


def group_counts(documents: Iterable[Mapping[str, Any]], field: str) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for document in documents:
        key = group_key(document.get(field))
        counts[key] = counts.get(key, 0) + 1
    return counts


def status_breakdown(
    documents: Iterable[Mapping[str, Any]], field: str = "status"
) -> Dict[str, int]:
    """Count per status present in the set. Absent statuses mean 0."""

    return group_counts(documents, field)


def _empty_attendance_bucket() -> Dict[str, Any]:
    bucket: Dict[str, Any] = {"total": 0}
    for status in ATTENDANCE_STATUSES:
        bucket[status] = 0
    return bucket


def _finish_attendance_bucket(bucket: Dict[str, Any]) -> Dict[str, Any]:
    bucket["attendanceRate"] = format_rate(bucket["present"], bucket["total"])
    return bucket


def attendance_summary(documents: Iterable[Mapping[str, Any]]) -> Dict[str, Any]:
    """Status counts and attendance rate, overall and per subject."""

    overall = _empty_attendance_bucket()
    by_subject: Dict[str, Dict[str, Any]] = {}

    for document in documents:
        status = document.get("status")
        subject = group_key(document.get("subject"))
        bucket = by_subject.setdefault(subject, _empty_attendance_bucket())

        for target in (overall, bucket):
            target["total"] += 1
            if status in ATTENDANCE_STATUSES:
                target[status] += 1

    summary = _finish_attendance_bucket(overall)
    summary["bySubject"] = {
        subject: _finish_attendance_bucket(bucket)
        for subject, bucket in sorted(by_subject.items())
    }
    return summary


def _is_graded(document: Mapping[str, Any]) -> bool:
    return document.get("status") == "graded" and document.get("grade") is not None


def grade_averages(documents: Iterable[Mapping[str, Any]]) -> Dict[str, Any]:
    """Per-subject and overall averages of graded submissions."""

    by_subject: Dict[str, Dict[str, Any]] = {}
    earned_total = Decimal(0)
    possible_total = Decimal(0)
    graded_count = 0
    highest: int | None = None
    lowest: int | None = None

    for document in documents:
        if not _is_graded(document):
            continue

        earned = Decimal(str(document.get("grade") or 0))
        possible = Decimal(str(document.get("total_points") or 0))
        subject = group_key(document.get("subject"))

        bucket = by_subject.setdefault(
            subject, {"count": 0, "earned": Decimal(0), "possible": Decimal(0)}
        )
        bucket["count"] += 1
        bucket["earned"] += earned
        bucket["possible"] += possible

        earned_total += earned
        possible_total += possible
        graded_count += 1

        if possible > 0:
            score = percentage(earned, possible)
            highest = score if highest is None else max(highest, score)
            lowest = score if lowest is None else min(lowest, score)

    subjects = {
        subject: {
            "count": bucket["count"],
            "earnedPoints": format_numeric(bucket["earned"]),
            "totalPoints": format_numeric(bucket["possible"]),
            "average": percentage(bucket["earned"], bucket["possible"]),
        }
        for subject, bucket in sorted(by_subject.items())
    }

    return {
        "bySubject": subjects,
        "overall": {
            "gradedCount": graded_count,
            "earnedPoints": format_numeric(earned_total),
            "totalPoints": format_numeric(possible_total),
            "average": percentage(earned_total, possible_total),
            "highestPercentage": highest,
            "lowestPercentage": lowest,
        },
    }


__all__ = [
    "ATTENDANCE_STATUSES",
    "UNKNOWN",
    "attendance_summary",
    "format_numeric",
    "format_rate",
    "grade_averages",
    "group_counts",
    "group_key",
    "percentage",
    "round_half_up",
    "status_breakdown",
]
