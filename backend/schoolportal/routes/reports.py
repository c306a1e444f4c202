"""Reports and analytics endpoints for the admin dashboard."""

from __future__ import annotations

import csv
import io
import logging
from datetime import timedelta
from typing import Any, Dict, List

from flask import Blueprint, Response, jsonify, request

from ..db import get_attendance_store, get_users_store
from ..listing import ASCENDING, Condition, DateRangeFilter, FilterSpec, Scope, build_filter_spec
from ..listing.aggregate import ATTENDANCE_STATUSES, format_rate, group_counts, group_key
from ..listing.filters import parse_date_param
from ..validation import VALID_DAYS, clean_string, now_utc
from .auth import require_role, user_names
from .common import store_guard

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")

logger = logging.getLogger(__name__)

REPORT_FILTERS = (DateRangeFilter("date"),)

ATTENDED = ("present", "late")
MISSED = ("absent", "excused")

SCHOOL_DAYS = VALID_DAYS[:5]


@reports_bp.get("/attendance-status")
@require_role("admin")
@store_guard("Failed to build attendance status report")
def attendance_status():
    spec = build_filter_spec(request.args, REPORT_FILTERS, Scope.everything())
    counts = group_counts(get_attendance_store().iter_documents(spec, ("status",)), "status")

    breakdown = {status: counts.pop(status, 0) for status in ATTENDANCE_STATUSES}
    # Anything left is a status outside the known set.
    breakdown.update(counts)
    total = sum(breakdown.values())

    return jsonify(
        {
            "total": total,
            "breakdown": breakdown,
            "attendanceRate": format_rate(breakdown["present"], total),
        }
    )


def _week_start(raw: str):
    if raw:
        day, _ = parse_date_param(raw, param="weekOf")
    else:
        day = now_utc().replace(hour=0, minute=0, second=0)
    day = day.replace(hour=0, minute=0, second=0, microsecond=0)
    return day - timedelta(days=day.weekday())


@reports_bp.get("/weekly-attendance")
@require_role("admin")
@store_guard("Failed to build weekly attendance report")
def weekly_attendance():
    monday = _week_start(clean_string(request.args.get("weekOf")))
    saturday = monday + timedelta(days=len(SCHOOL_DAYS))

    spec = FilterSpec(Scope.everything()).narrowed(
        Condition("date", "gte", monday),
        Condition("date", "lt", saturday),
    )

    days: List[Dict[str, Any]] = []
    for offset, name in enumerate(SCHOOL_DAYS):
        day = monday + timedelta(days=offset)
        days.append({"day": name, "date": day.date().isoformat(), "attended": 0, "missed": 0})

    for document in get_attendance_store().iter_documents(spec, ("date", "status")):
        offset = (document["date"] - monday).days
        if not 0 <= offset < len(days):
            continue
        status = document.get("status")
        if status in ATTENDED:
            days[offset]["attended"] += 1
        elif status in MISSED:
            days[offset]["missed"] += 1

    return jsonify({"weekOf": monday.date().isoformat(), "days": days})


@reports_bp.get("/students-by-class")
@require_role("admin")
@store_guard("Failed to build students by class report")
def students_by_class():
    spec = FilterSpec(Scope.owned_by("role", "student"))
    students = list(get_users_store().iter_documents(spec, ("class_grade",)))
    counts = group_counts(students, "class_grade")

    return jsonify(
        {
            "total": len(students),
            "byClass": [
                {"classGrade": grade, "count": count} for grade, count in sorted(counts.items())
            ],
        }
    )


@reports_bp.get("/attendance.csv")
@require_role("admin")
@store_guard("Failed to export attendance")
def export_attendance_csv():
    spec = build_filter_spec(request.args, REPORT_FILTERS, Scope.everything())
    rows = get_attendance_store().find(
        spec, sort=[("date", ASCENDING), ("class_grade", ASCENDING), ("_id", ASCENDING)]
    )
    names = user_names(str(row.get("student_id")) for row in rows)

    output = io.StringIO()
    fieldnames = [
        "date",
        "student_id",
        "student_name",
        "class_grade",
        "class_section",
        "subject",
        "status",
        "notes",
    ]
    writer = csv.DictWriter(output, fieldnames=fieldnames)
    writer.writeheader()

    for row in rows:
        date_value = row.get("date")
        writer.writerow({
            "date": date_value.date().isoformat() if date_value else "",
            "student_id": row.get("student_id", ""),
            "student_name": names.get(str(row.get("student_id"))) or "",
            "class_grade": group_key(row.get("class_grade")),
            "class_section": row.get("class_section") or "",
            "subject": row.get("subject", ""),
            "status": row.get("status", ""),
            "notes": row.get("notes") or "",
        })

    logger.info("Exported %s attendance rows", len(rows))

    response = Response(output.getvalue(), mimetype="text/csv")
    response.headers["Content-Disposition"] = "attachment; filename=attendance.csv"
    return response


__all__ = ["reports_bp"]
