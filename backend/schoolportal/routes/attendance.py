"""Attendance marking and attendance lists for every portal."""

from __future__ import annotations

import logging
from datetime import datetime, time
from typing import Any, Dict, List

from flask import Blueprint, g, jsonify, request
from pymongo.errors import DuplicateKeyError

from ..db import get_attendance_store
from ..listing import (
    DESCENDING,
    Condition,
    DateRangeFilter,
    FieldFilter,
    FilterSpec,
    InvalidFilterError,
    Scope,
    build_filter_spec,
    parse_page_request,
    run_list_query,
)
from ..listing.aggregate import attendance_summary
from ..records import serialize_attendance
from ..validation import (
    ATTENDANCE_STATUSES,
    VALID_GRADES,
    VALID_SECTIONS,
    VALID_SUBJECTS,
    clean_string,
    now_utc,
    validate_attendance_payload,
    validate_bulk_attendance_payload,
)
from .auth import load_user, parent_owns_child, require_role, user_names
from .common import json_error, store_guard, validation_error

attendance_bp = Blueprint("attendance", __name__, url_prefix="/api/attendance")

logger = logging.getLogger(__name__)

ATTENDANCE_SORT = [("date", DESCENDING)]

ATTENDANCE_FILTERS = (
    FieldFilter("subject", "subject", choices=VALID_SUBJECTS),
    FieldFilter("status", "status", choices=ATTENDANCE_STATUSES),
    FieldFilter("classGrade", "class_grade", choices=VALID_GRADES),
    FieldFilter("classSection", "class_section", choices=VALID_SECTIONS),
    DateRangeFilter("date"),
)

SUMMARY_FIELDS = ("status", "subject")


def _today() -> datetime:
    return datetime.combine(now_utc().date(), time.min)


def _teacher_subjects(teacher_id: str) -> List[str]:
    teacher = load_user(teacher_id)
    if not teacher or teacher.get("role") != "teacher":
        return []
    return list(teacher.get("subjects") or [])


def _upsert_attendance(teacher_id: str, student: Dict[str, Any], entry: Dict[str, Any]):
    """Create or overwrite the student's record for today in ``entry['subject']``."""

    store = get_attendance_store()
    student_id = str(student["_id"])
    today = _today()
    now = now_utc()
    status = entry["status"]

    changes: Dict[str, Any] = {
        "teacher_id": teacher_id,
        "status": status,
        "notes": entry.get("notes", ""),
        "check_in_time": now if status in ("present", "late") else None,
        "updated_at": now,
    }

    spec = FilterSpec(Scope.owned_by("student_id", student_id)).narrowed(
        Condition("subject", "eq", entry["subject"]),
        Condition("date", "eq", today),
    )
    existing = store.find_one(spec)
    if existing:
        store.update(existing["_id"], changes)
        existing.update(changes)
        return existing

    document = dict(
        changes,
        student_id=student_id,
        subject=entry["subject"],
        date=today,
        class_grade=student.get("class_grade"),
        class_section=student.get("class_section"),
        created_at=now,
    )
    store.insert(document)
    return document


def _load_student(student_id: str):
    student = load_user(student_id)
    if not student or student.get("role") != "student":
        return None
    return student


@attendance_bp.post("/mark")
@require_role("teacher")
@store_guard("Failed to mark attendance")
def mark_attendance():
    cleaned, errors = validate_attendance_payload(request.get_json(silent=True), require_all=True)
    if errors:
        return validation_error(errors)

    if cleaned["subject"] not in _teacher_subjects(g.user_id):
        return json_error("You do not teach this subject.", 403)

    student = _load_student(cleaned["student_id"])
    if not student:
        return json_error("Student not found.", 404)

    try:
        document = _upsert_attendance(g.user_id, student, cleaned)
    except DuplicateKeyError:
        return json_error("Attendance was marked concurrently. Please retry.", 409)

    return jsonify({"message": "Attendance marked successfully", "attendance": serialize_attendance(document)}), 201


@attendance_bp.post("/mark-bulk")
@require_role("teacher")
@store_guard("Failed to mark bulk attendance")
def mark_bulk_attendance():
    cleaned, errors = validate_bulk_attendance_payload(request.get_json(silent=True))
    if errors:
        return validation_error(errors)

    subject = cleaned["subject"]
    if subject not in _teacher_subjects(g.user_id):
        return json_error("You do not teach this subject.", 403)

    results: List[Dict[str, Any]] = []
    failures: List[Dict[str, str]] = []
    for entry in cleaned["records"]:
        student = _load_student(entry["student_id"])
        if not student:
            failures.append({"studentId": entry["student_id"], "error": "Student not found."})
            continue
        try:
            document = _upsert_attendance(g.user_id, student, dict(entry, subject=subject))
        except DuplicateKeyError:
            failures.append({"studentId": entry["student_id"], "error": "Marked concurrently."})
            continue
        results.append(serialize_attendance(document))

    logger.info("Teacher %s marked %s %s attendance records", g.user_id, len(results), subject)

    payload: Dict[str, Any] = {
        "message": f"Attendance marked for {len(results)} students",
        "results": results,
    }
    if failures:
        payload["errors"] = failures
    return jsonify(payload), 201


def _owned_record(attendance_id: str):
    document = get_attendance_store().get(attendance_id)
    if not document:
        return None, json_error("Attendance record not found.", 404)
    if str(document.get("teacher_id")) != g.user_id:
        return None, json_error("You can only change your own attendance records.", 403)
    return document, None


@attendance_bp.put("/<attendance_id>")
@require_role("teacher")
@store_guard("Failed to update attendance")
def update_attendance(attendance_id: str):
    payload = request.get_json(silent=True)
    if isinstance(payload, dict):
        payload = {key: payload[key] for key in ("status", "notes") if key in payload}
    cleaned, errors = validate_attendance_payload(payload, require_all=False)
    if errors:
        return validation_error(errors)
    if not cleaned:
        return json_error("No changes supplied.", 400)

    document, error = _owned_record(attendance_id)
    if error:
        return error

    changes = dict(cleaned, updated_at=now_utc())
    if "status" in cleaned:
        changes["check_in_time"] = (
            changes["updated_at"] if cleaned["status"] in ("present", "late") else None
        )

    get_attendance_store().update(document["_id"], changes)
    document.update(changes)
    return jsonify({"message": "Attendance updated successfully", "attendance": serialize_attendance(document)})


@attendance_bp.delete("/<attendance_id>")
@require_role("teacher")
@store_guard("Failed to delete attendance")
def delete_attendance(attendance_id: str):
    document, error = _owned_record(attendance_id)
    if error:
        return error
    get_attendance_store().delete(document["_id"])
    return jsonify({"ok": True})


def _attendance_list(scope: Scope, *, with_names: bool):
    spec = build_filter_spec(request.args, ATTENDANCE_FILTERS, scope)
    result = run_list_query(
        get_attendance_store(),
        spec,
        parse_page_request(request.args),
        sort=ATTENDANCE_SORT,
        statistics=attendance_summary,
        fields=SUMMARY_FIELDS,
    )

    names: Dict[str, str] = {}
    if with_names:
        names = user_names(str(item.get("student_id")) for item in result.items)

    def serialize(document):
        payload = serialize_attendance(document)
        if with_names:
            payload["studentName"] = names.get(payload["studentId"])
        return payload

    return jsonify(result.to_dict(serialize))


@attendance_bp.get("")
@require_role("admin")
@store_guard("Failed to list attendance")
def list_all_attendance():
    return _attendance_list(Scope.everything(), with_names=True)


@attendance_bp.get("/teacher")
@require_role("teacher")
@store_guard("Failed to list teacher attendance")
def list_teacher_attendance():
    return _attendance_list(Scope.owned_by("teacher_id", g.user_id), with_names=True)


@attendance_bp.get("/student")
@require_role("student")
@store_guard("Failed to list student attendance")
def list_student_attendance():
    return _attendance_list(Scope.owned_by("student_id", g.user_id), with_names=False)


@attendance_bp.get("/parent/child/<child_id>")
@require_role("parent")
@store_guard("Failed to list child attendance")
def list_child_attendance(child_id: str):
    if not parent_owns_child(g.user_id, child_id):
        return json_error("Access denied. This is not your child.", 403)
    return _attendance_list(Scope.owned_by("student_id", child_id), with_names=False)


def _month_bounds(month_raw: str, year_raw: str):
    today = now_utc()
    try:
        month = int(month_raw) if month_raw else today.month
        year = int(year_raw) if year_raw else today.year
    except ValueError:
        raise InvalidFilterError("month and year must be integers.", field="month") from None
    if not 1 <= month <= 12:
        raise InvalidFilterError("month must be between 1 and 12.", field="month")
    if not 1900 <= year <= 9999:
        raise InvalidFilterError("year is out of range.", field="year")

    start = datetime(year, month, 1)
    end = datetime(year + 1, 1, 1) if month == 12 else datetime(year, month + 1, 1)
    return start, end


@attendance_bp.get("/parent/monthly-summary")
@require_role("parent")
@store_guard("Failed to load monthly attendance summary")
def parent_monthly_summary():
    start, end = _month_bounds(
        clean_string(request.args.get("month")), clean_string(request.args.get("year"))
    )

    parent = load_user(g.user_id) or {}
    children = [str(child) for child in parent.get("children") or []]
    names = user_names(children)
    store = get_attendance_store()

    summary = []
    for child_id in children:
        spec = FilterSpec(Scope.owned_by("student_id", child_id)).narrowed(
            Condition("date", "gte", start),
            Condition("date", "lt", end),
        )
        statistics = attendance_summary(store.iter_documents(spec, SUMMARY_FIELDS))
        summary.append(
            {
                "student": {"_id": child_id, "name": names.get(child_id)},
                "statistics": statistics,
            }
        )

    return jsonify({"month": start.strftime("%B %Y"), "summary": summary})


__all__ = ["attendance_bp"]
