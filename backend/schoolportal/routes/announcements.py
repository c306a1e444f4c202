"""Teacher announcements, assignments, quizzes and their submissions."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List

from flask import Blueprint, g, jsonify, request
from pymongo.errors import DuplicateKeyError

from ..db import (
    get_announcements_store,
    get_schedules_store,
    get_submissions_store,
    get_users_store,
)
from ..listing import (
    DESCENDING,
    Condition,
    FieldFilter,
    FilterSpec,
    Scope,
    build_filter_spec,
    parse_page_request,
    run_list_query,
)
from ..listing.aggregate import grade_averages, group_counts, status_breakdown
from ..records import AnnouncementRecord, serialize_submission
from ..validation import (
    ANNOUNCEMENT_STATUSES,
    ANNOUNCEMENT_TYPES,
    SUBMISSION_STATUSES,
    VALID_SUBJECTS,
    now_utc,
    sanitize_text,
    validate_announcement_payload,
    validate_grade_payload,
)
from .auth import load_user, parent_owns_child, require_role, user_names
from .common import json_error, store_guard, validation_error

announcements_bp = Blueprint("announcements", __name__, url_prefix="/api/announcements")
submissions_bp = Blueprint("submissions", __name__, url_prefix="/api/submissions")

logger = logging.getLogger(__name__)

ANNOUNCEMENT_SORT = [("created_at", DESCENDING)]
SUBMISSION_SORT = [("submitted_at", DESCENDING)]

TEACHER_FILTERS = (
    FieldFilter("subject", "subject", choices=VALID_SUBJECTS),
    FieldFilter("type", "type", choices=ANNOUNCEMENT_TYPES),
    FieldFilter("status", "status", choices=ANNOUNCEMENT_STATUSES),
)

STUDENT_FILTERS = (
    FieldFilter("subject", "subject", choices=VALID_SUBJECTS),
    FieldFilter("type", "type", choices=ANNOUNCEMENT_TYPES),
)

SUBMISSION_FILTERS = (FieldFilter("status", "status", choices=SUBMISSION_STATUSES),)

GRADABLE_TYPES = ("assignment", "quiz")


def _teacher_statistics(documents: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
    docs = list(documents)
    return {
        "total": len(docs),
        "byType": group_counts(docs, "type"),
        "byStatus": group_counts(docs, "status"),
        "bySubject": group_counts(docs, "subject"),
    }


def _submissions_for(
    announcement_ids: List[str], scope: Scope, fields: Iterable[str] | None = None
) -> List[Dict[str, Any]]:
    if not announcement_ids:
        return []
    spec = FilterSpec(scope).narrowed(Condition("announcement_id", "in", tuple(announcement_ids)))
    return list(get_submissions_store().iter_documents(spec, fields))


@announcements_bp.get("/teacher")
@require_role("teacher")
@store_guard("Failed to list teacher announcements")
def list_teacher_announcements():
    scope = Scope.owned_by("teacher_id", g.user_id)
    spec = build_filter_spec(request.args, TEACHER_FILTERS, scope)
    page_request = parse_page_request(request.args)

    result = run_list_query(
        get_announcements_store(),
        spec,
        page_request,
        sort=ANNOUNCEMENT_SORT,
        statistics=_teacher_statistics,
        fields=("type", "status", "subject"),
    )

    page_ids = [str(item["_id"]) for item in result.items]
    submissions = _submissions_for(page_ids, scope, fields=("announcement_id", "status"))

    submitted: Dict[str, int] = {}
    graded: Dict[str, int] = {}
    for submission in submissions:
        key = str(submission.get("announcement_id"))
        submitted[key] = submitted.get(key, 0) + 1
        if submission.get("status") == "graded":
            graded[key] = graded.get(key, 0) + 1

    def serialize(document):
        record = AnnouncementRecord.from_document(document)
        payload = record.to_json()
        payload["submissionCount"] = submitted.get(record.id, 0)
        payload["gradedCount"] = graded.get(record.id, 0)
        payload["totalStudents"] = len(record.target_student_ids)
        return payload

    return jsonify(result.to_dict(serialize))


def _student_announcements(student_id: str):
    scope = Scope.owned_by("target_student_ids", student_id).with_condition(
        Condition("status", "eq", "published")
    )
    spec = build_filter_spec(request.args, STUDENT_FILTERS, scope)
    page_request = parse_page_request(request.args)
    submission_scope = Scope.owned_by("student_id", student_id)
    now = now_utc()

    def statistics(documents):
        docs = list(documents)
        ids = [str(doc["_id"]) for doc in docs]
        done = {
            str(submission.get("announcement_id"))
            for submission in _submissions_for(ids, submission_scope, fields=("announcement_id",))
        }
        gradable = [doc for doc in docs if doc.get("type") in GRADABLE_TYPES]
        pending = [doc for doc in gradable if str(doc["_id"]) not in done]
        overdue = [
            doc for doc in pending if doc.get("due_date") is not None and now > doc["due_date"]
        ]
        return {
            "total": len(docs),
            "byType": group_counts(docs, "type"),
            "submitted": len(done),
            "pending": len(pending),
            "overdue": len(overdue),
        }

    result = run_list_query(
        get_announcements_store(),
        spec,
        page_request,
        sort=ANNOUNCEMENT_SORT,
        statistics=statistics,
        fields=("type", "due_date"),
    )

    page_ids = [str(item["_id"]) for item in result.items]
    by_announcement = {
        str(submission.get("announcement_id")): submission
        for submission in _submissions_for(page_ids, submission_scope)
    }

    def serialize(document):
        record = AnnouncementRecord.from_document(document)
        payload = record.to_json()
        # Students never see the full target list.
        payload.pop("targetStudents", None)
        submission = by_announcement.get(record.id)
        payload["hasSubmitted"] = submission is not None
        payload["submission"] = serialize_submission(submission) if submission else None
        payload["isOverdue"] = record.is_overdue(now)
        return payload

    return jsonify(result.to_dict(serialize))


@announcements_bp.get("/student")
@require_role("student")
@store_guard("Failed to list student announcements")
def list_student_announcements():
    return _student_announcements(g.user_id)


@announcements_bp.get("/parent/child/<child_id>")
@require_role("parent")
@store_guard("Failed to list child announcements")
def list_child_announcements(child_id: str):
    if not parent_owns_child(g.user_id, child_id):
        return json_error("You can only view your own children's announcements.", 403)
    return _student_announcements(child_id)


def _resolve_targets(cleaned: Dict[str, Any], teacher_id: str):
    """Return ``(student_ids, error)`` for a new announcement.

    Grades and sections select matching students. Without any target the
    students enrolled in the teacher's classes for the subject are used.
    """

    grades = cleaned.get("target_grades") or []
    sections = cleaned.get("target_sections") or []
    if grades or sections:
        spec = FilterSpec(Scope.everything()).narrowed(Condition("role", "eq", "student"))
        if grades:
            spec = spec.narrowed(Condition("class_grade", "in", tuple(grades)))
        if sections:
            spec = spec.narrowed(Condition("class_section", "in", tuple(sections)))
        students = [str(user["_id"]) for user in get_users_store().iter_documents(spec, ("_id",))]
        if not students:
            return [], "No students found matching the selected grades and sections."
        return sorted(students), None

    if cleaned.get("target_student_ids"):
        return cleaned["target_student_ids"], None

    spec = FilterSpec(Scope.owned_by("teacher_id", teacher_id)).narrowed(
        Condition("subject", "eq", cleaned["subject"])
    )
    enrolled = set()
    for schedule in get_schedules_store().iter_documents(spec, ("student_ids",)):
        enrolled.update(str(student) for student in schedule.get("student_ids") or [] if student)
    if not enrolled:
        return [], f"No students enrolled in your {cleaned['subject']} classes yet."
    return sorted(enrolled), None


@announcements_bp.post("")
@require_role("teacher")
@store_guard("Failed to create announcement")
def create_announcement():
    cleaned, errors = validate_announcement_payload(request.get_json(silent=True))
    if errors:
        return validation_error(errors)

    teacher = load_user(g.user_id)
    subjects = (teacher or {}).get("subjects") or []
    if cleaned["subject"] not in subjects:
        return json_error("You do not teach this subject.", 403)

    students, error = _resolve_targets(cleaned, g.user_id)
    if error:
        return json_error(error, 400)
    cleaned["target_student_ids"] = students

    now = now_utc()
    document = dict(cleaned, teacher_id=g.user_id, created_at=now, updated_at=now)
    get_announcements_store().insert(document)
    logger.info("Teacher %s published %s %s", g.user_id, cleaned["type"], document["_id"])

    return jsonify(AnnouncementRecord.from_document(document).to_json()), 201


@announcements_bp.get("/<announcement_id>/submissions")
@require_role("teacher")
@store_guard("Failed to list submissions")
def list_announcement_submissions(announcement_id: str):
    announcement = get_announcements_store().get(announcement_id)
    if not announcement or str(announcement.get("teacher_id")) != g.user_id:
        return json_error("Announcement not found or access denied.", 404)

    record = AnnouncementRecord.from_document(announcement)
    scope = Scope.owned_by("announcement_id", record.id)
    spec = build_filter_spec(request.args, SUBMISSION_FILTERS, scope)
    page_request = parse_page_request(request.args, default_limit=20)

    def statistics(documents):
        docs = list(documents)
        averages = grade_averages(docs)["overall"]
        return {
            "total": len(docs),
            "graded": averages["gradedCount"],
            "statusBreakdown": status_breakdown(docs),
            "averagePercentage": averages["average"],
        }

    result = run_list_query(
        get_submissions_store(),
        spec,
        page_request,
        sort=SUBMISSION_SORT,
        statistics=statistics,
        fields=("status", "grade", "total_points", "subject"),
    )

    names = user_names(str(item.get("student_id")) for item in result.items)

    def serialize(document):
        payload = serialize_submission(document)
        payload["studentName"] = names.get(payload["studentId"])
        return payload

    payload = result.to_dict(serialize)
    payload["totalStudents"] = len(record.target_student_ids)
    return jsonify(payload)


@announcements_bp.post("/<announcement_id>/submit")
@require_role("student")
@store_guard("Failed to submit assignment")
def submit_assignment(announcement_id: str):
    announcement = get_announcements_store().get(announcement_id)
    if not announcement or announcement.get("status") != "published":
        return json_error("Announcement not found.", 404)

    record = AnnouncementRecord.from_document(announcement)
    if g.user_id not in record.target_student_ids:
        return json_error("This announcement is not assigned to you.", 403)
    if record.type not in GRADABLE_TYPES:
        return json_error("Only assignments and quizzes accept submissions.", 400)

    payload = request.get_json(silent=True) or {}
    content = sanitize_text(payload.get("content"))
    if not content:
        return json_error("Validation failed.", 400, {"content": "Content is required."})

    now = now_utc()
    is_late = record.is_overdue(now)
    document = {
        "announcement_id": record.id,
        "student_id": g.user_id,
        "teacher_id": record.teacher_id,
        "subject": record.subject,
        "announcement_title": record.title,
        "announcement_type": record.type,
        "total_points": record.total_points,
        "content": content,
        "submitted_at": now,
        "status": "late" if is_late else "submitted",
        "is_late": is_late,
        "created_at": now,
    }

    try:
        get_submissions_store().insert(document)
    except DuplicateKeyError:
        return json_error("You have already submitted this assignment.", 409)

    return jsonify(serialize_submission(document)), 201


@submissions_bp.post("/<submission_id>/grade")
@require_role("teacher")
@store_guard("Failed to grade submission")
def grade_submission(submission_id: str):
    store = get_submissions_store()
    submission = store.get(submission_id)
    if not submission:
        return json_error("Submission not found.", 404)
    if str(submission.get("teacher_id")) != g.user_id:
        return json_error("Access denied.", 403)

    cleaned, errors = validate_grade_payload(
        request.get_json(silent=True), total_points=submission.get("total_points")
    )
    if errors:
        return validation_error(errors)

    now = now_utc()
    changes = dict(cleaned, status="graded", graded_by=g.user_id, graded_at=now)
    if not store.update(submission["_id"], changes):
        return json_error("Submission not found.", 404)

    submission.update(changes)
    return jsonify({"message": "Submission graded successfully", "submission": serialize_submission(submission)})


__all__ = ["announcements_bp", "submissions_bp"]
