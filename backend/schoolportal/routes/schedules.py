"""Weekly class schedules."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable

from flask import Blueprint, g, jsonify, request

from ..db import get_schedules_store, get_users_store
from ..listing import (
    ASCENDING,
    Condition,
    FieldFilter,
    FilterSpec,
    Scope,
    build_filter_spec,
    parse_page_request,
    run_list_query,
)
from ..listing.aggregate import group_counts
from ..records import serialize_schedule
from ..validation import (
    VALID_DAYS,
    VALID_GRADES,
    VALID_SECTIONS,
    VALID_SUBJECTS,
    now_utc,
    validate_enrollment_payload,
    validate_schedule_payload,
)
from .auth import load_user, require_role, user_names
from .common import json_error, store_guard, validation_error

schedules_bp = Blueprint("schedules", __name__, url_prefix="/api/schedules")

logger = logging.getLogger(__name__)

SCHEDULE_SORT = [("day_index", ASCENDING), ("start_time", ASCENDING)]
SCHEDULE_PAGE_SIZE = 50

SCHEDULE_FILTERS = (
    FieldFilter("subject", "subject", choices=VALID_SUBJECTS),
    FieldFilter("classGrade", "class_grade", choices=VALID_GRADES),
    FieldFilter("classSection", "class_section", choices=VALID_SECTIONS),
    FieldFilter("dayOfWeek", "day_of_week", choices=VALID_DAYS),
)


def _schedule_statistics(documents: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
    docs = list(documents)
    return {
        "totalClasses": len(docs),
        "byDay": group_counts(docs, "day_of_week"),
        "bySubject": group_counts(docs, "subject"),
    }


def _schedule_list(scope: Scope):
    spec = build_filter_spec(request.args, SCHEDULE_FILTERS, scope)
    result = run_list_query(
        get_schedules_store(),
        spec,
        parse_page_request(request.args, default_limit=SCHEDULE_PAGE_SIZE),
        sort=SCHEDULE_SORT,
        statistics=_schedule_statistics,
        fields=("day_of_week", "subject"),
    )

    names = user_names(str(item.get("teacher_id")) for item in result.items)

    def serialize(document):
        payload = serialize_schedule(document)
        payload["teacherName"] = names.get(payload["teacherId"])
        return payload

    return jsonify(result.to_dict(serialize))


@schedules_bp.get("")
@require_role("admin")
@store_guard("Failed to list schedules")
def list_schedules():
    return _schedule_list(Scope.everything())


@schedules_bp.get("/teacher")
@require_role("teacher")
@store_guard("Failed to list teacher schedule")
def teacher_schedule():
    return _schedule_list(Scope.owned_by("teacher_id", g.user_id))


@schedules_bp.get("/student")
@require_role("student")
@store_guard("Failed to list student schedule")
def student_schedule():
    return _schedule_list(Scope.owned_by("student_ids", g.user_id))


def _find_conflict(cleaned: Dict[str, Any]):
    spec = FilterSpec(Scope.owned_by("teacher_id", cleaned["teacher_id"])).narrowed(
        Condition("day_of_week", "eq", cleaned["day_of_week"]),
        Condition("start_time", "lt", cleaned["end_time"]),
    )
    for existing in get_schedules_store().iter_documents(spec, ("start_time", "end_time")):
        if existing.get("end_time", "") > cleaned["start_time"]:
            return existing
    return None


@schedules_bp.post("")
@require_role("admin")
@store_guard("Failed to create schedule")
def create_schedule():
    cleaned, errors = validate_schedule_payload(request.get_json(silent=True))
    if errors:
        return validation_error(errors)

    teacher = load_user(cleaned["teacher_id"])
    if not teacher or teacher.get("role") != "teacher":
        return json_error("Teacher not found.", 404)
    if cleaned["subject"] not in (teacher.get("subjects") or []):
        return json_error(f"Teacher does not teach {cleaned['subject']}.", 400)

    conflict = _find_conflict(cleaned)
    if conflict:
        return json_error(
            f"Time conflict: teacher already has a class on {cleaned['day_of_week']} "
            f"from {conflict.get('start_time')} to {conflict.get('end_time')}.",
            400,
        )

    now = now_utc()
    document = dict(cleaned, created_at=now, updated_at=now)
    get_schedules_store().insert(document)
    logger.info(
        "Scheduled %s for %s%s on %s",
        cleaned["subject"],
        cleaned["class_grade"],
        cleaned["class_section"],
        cleaned["day_of_week"],
    )
    return jsonify(serialize_schedule(document)), 201


def _enroll(student: Dict[str, Any], class_grade: str, class_section: str) -> int:
    """Move a student onto every schedule of one grade and section.

    Returns the number of schedules the student was added to.
    """

    store = get_schedules_store()
    student_id = str(student["_id"])
    now = now_utc()

    previous = FilterSpec(Scope.owned_by("student_ids", student_id))
    for schedule in list(store.iter_documents(previous, ("student_ids",))):
        remaining = [sid for sid in schedule.get("student_ids") or [] if sid != student_id]
        store.update(schedule["_id"], {"student_ids": remaining, "updated_at": now})

    section = FilterSpec(Scope.everything()).narrowed(
        Condition("class_grade", "eq", class_grade),
        Condition("class_section", "eq", class_section),
    )
    enrolled = 0
    for schedule in list(store.iter_documents(section, ("student_ids",))):
        store.update(
            schedule["_id"],
            {"student_ids": list(schedule.get("student_ids") or []) + [student_id], "updated_at": now},
        )
        enrolled += 1

    get_users_store().update(
        student["_id"],
        {"class_grade": class_grade, "class_section": class_section, "updated_at": now},
    )
    return enrolled


def _load_student(student_id: str):
    student = load_user(student_id)
    if not student or student.get("role") != "student":
        return None
    return student


@schedules_bp.post("/enroll")
@require_role("admin")
@store_guard("Failed to enroll student")
def enroll_student():
    cleaned, errors = validate_enrollment_payload(request.get_json(silent=True))
    if errors:
        return validation_error(errors)

    student = _load_student(cleaned["student_id"])
    if student is None:
        return json_error("Student not found.", 404)

    enrolled = _enroll(student, cleaned["class_grade"], cleaned["class_section"])
    logger.info(
        "Enrolled %s in %s%s (%d classes)",
        cleaned["student_id"],
        cleaned["class_grade"],
        cleaned["class_section"],
        enrolled,
    )
    return jsonify(
        {
            "message": f"Student enrolled in {cleaned['class_grade']} section {cleaned['class_section']}.",
            "enrolledClasses": enrolled,
            "student": {
                "_id": str(student["_id"]),
                "name": student.get("name"),
                "classGrade": cleaned["class_grade"],
                "classSection": cleaned["class_section"],
            },
        }
    )


@schedules_bp.post("/enroll-bulk")
@require_role("admin")
@store_guard("Failed to enroll students")
def enroll_students():
    cleaned, errors = validate_enrollment_payload(request.get_json(silent=True), bulk=True)
    if errors:
        return validation_error(errors)

    results = {"success": [], "failed": []}
    for student_id in cleaned["student_ids"]:
        student = _load_student(student_id)
        if student is None:
            results["failed"].append({"studentId": student_id, "error": "Student not found."})
            continue
        enrolled = _enroll(student, cleaned["class_grade"], cleaned["class_section"])
        results["success"].append(
            {"studentId": student_id, "name": student.get("name"), "enrolledClasses": enrolled}
        )

    logger.info(
        "Bulk enrolment into %s%s: %d ok, %d failed",
        cleaned["class_grade"],
        cleaned["class_section"],
        len(results["success"]),
        len(results["failed"]),
    )
    return jsonify(results)


@schedules_bp.delete("/<schedule_id>")
@require_role("admin")
@store_guard("Failed to delete schedule")
def delete_schedule(schedule_id: str):
    if not get_schedules_store().delete(schedule_id):
        return json_error("Schedule not found.", 404)
    return jsonify({"ok": True})


__all__ = ["schedules_bp"]
