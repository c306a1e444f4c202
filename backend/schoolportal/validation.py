"""Payload validation shared by the portal blueprints.

Validators return ``(cleaned, errors)``. ``cleaned`` uses the stored
snake_case field names; ``errors`` maps request field names to messages.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Tuple

from .listing.errors import InvalidFilterError
from .listing.filters import parse_date_param

VALID_SUBJECTS = (
    "Math",
    "Physics",
    "Chemistry",
    "Biology",
    "English",
    "History",
    "Geography",
    "Computer",
    "Computer Science",
    "Arabic",
    "French",
)

VALID_GRADES = (
    "kg1",
    "kg2",
    "grade1",
    "grade2",
    "grade3",
    "grade4",
    "grade5",
    "grade6",
    "grade7",
    "grade8",
    "grade9",
    "grade10",
    "grade11",
    "grade12",
)

VALID_SECTIONS = ("A", "B", "C", "D", "E", "F")

VALID_DAYS = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)

DAY_INDEX = {day: index for index, day in enumerate(VALID_DAYS)}

ATTENDANCE_STATUSES = ("present", "absent", "late", "excused")
ANNOUNCEMENT_TYPES = ("announcement", "assignment", "quiz")
ANNOUNCEMENT_STATUSES = ("draft", "published", "closed")
SUBMISSION_STATUSES = ("submitted", "graded", "late", "returned")
PRIORITIES = ("low", "medium", "high", "urgent")

_TIME_RE = re.compile(r"^([01]?[0-9]|2[0-3]):[0-5][0-9]$")
_TAG_RE = re.compile(r"[<>]")
_SCRIPT_RE = re.compile(r"javascript:", re.IGNORECASE)
_HANDLER_RE = re.compile(r"on\w+=", re.IGNORECASE)

Validated = Tuple[Dict[str, Any], Dict[str, str]]


def clean_string(value: Any) -> str:
    return str(value).strip() if value is not None else ""


def sanitize_text(value: Any) -> str:
    """Strip markup characters from free text."""

    text = clean_string(value)
    text = _TAG_RE.sub("", text)
    text = _SCRIPT_RE.sub("", text)
    return _HANDLER_RE.sub("", text)


def is_valid_time(value: str) -> bool:
    return bool(_TIME_RE.match(value))


def _minutes(value: str) -> int:
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def _string_list(value: Any) -> List[str] | None:
    if value in (None, ""):
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    if isinstance(value, list):
        return [clean_string(item) for item in value if clean_string(item)]
    return None


def _choice(
    payload: Dict[str, Any],
    field: str,
    choices: Tuple[str, ...],
    errors: Dict[str, str],
    *,
    required: bool,
    label: str,
) -> str | None:
    value = clean_string(payload.get(field))
    if not value:
        if required:
            errors[field] = f"{label} is required."
        return None
    if value not in choices:
        errors[field] = f"{label} must be one of: {', '.join(choices)}."
        return None
    return value


def validate_announcement_payload(payload: Dict[str, Any] | None) -> Validated:
    if payload is None:
        return {}, {"_global": "Request body must be JSON."}

    errors: Dict[str, str] = {}
    cleaned: Dict[str, Any] = {}

    subject = _choice(payload, "subject", VALID_SUBJECTS, errors, required=True, label="Subject")
    kind = _choice(payload, "type", ANNOUNCEMENT_TYPES, errors, required=True, label="Type")
    status = _choice(
        payload, "status", ANNOUNCEMENT_STATUSES, errors, required=False, label="Status"
    )
    priority = _choice(payload, "priority", PRIORITIES, errors, required=False, label="Priority")

    if subject:
        cleaned["subject"] = subject
    if kind:
        cleaned["type"] = kind
    cleaned["status"] = status or "published"
    cleaned["priority"] = priority or "medium"

    title = sanitize_text(payload.get("title"))
    if not title:
        errors["title"] = "Title is required."
    else:
        cleaned["title"] = title

    description = sanitize_text(payload.get("description"))
    if not description:
        errors["description"] = "Description is required."
    else:
        cleaned["description"] = description

    needs_grading = kind in ("assignment", "quiz")

    due_raw = clean_string(payload.get("dueDate"))
    if due_raw:
        try:
            cleaned["due_date"], _ = parse_date_param(due_raw, param="dueDate")
        except InvalidFilterError as exc:
            errors["dueDate"] = exc.message
    elif needs_grading:
        errors["dueDate"] = "Due date is required for assignments and quizzes."

    points_raw = payload.get("totalPoints")
    if points_raw not in (None, ""):
        try:
            points = float(points_raw)
            if points < 0:
                raise ValueError
            cleaned["total_points"] = int(points) if points.is_integer() else points
        except (TypeError, ValueError):
            errors["totalPoints"] = "Total points must be a non-negative number."
    elif needs_grading:
        errors["totalPoints"] = "Total points are required for assignments and quizzes."

    for source, target, choices in (
        ("targetStudents", "target_student_ids", None),
        ("targetGrades", "target_grades", VALID_GRADES),
        ("targetSections", "target_sections", VALID_SECTIONS),
    ):
        values = _string_list(payload.get(source))
        if values is None:
            errors[source] = f"{source} must be an array."
            continue
        invalid = [value for value in values if choices is not None and value not in choices]
        if invalid:
            errors[source] = f"Unknown values: {', '.join(invalid)}."
            continue
        cleaned[target] = values

    return cleaned, errors


def validate_attendance_payload(
    payload: Dict[str, Any] | None, *, require_all: bool
) -> Validated:
    if payload is None:
        return {}, {"_global": "Request body must be JSON."}

    errors: Dict[str, str] = {}
    cleaned: Dict[str, Any] = {}

    if require_all or "studentId" in payload:
        student_id = clean_string(payload.get("studentId"))
        if not student_id:
            errors["studentId"] = "Student ID is required."
        else:
            cleaned["student_id"] = student_id

    if require_all or "subject" in payload:
        subject = _choice(
            payload, "subject", VALID_SUBJECTS, errors, required=True, label="Subject"
        )
        if subject:
            cleaned["subject"] = subject

    if require_all or "status" in payload:
        status = _choice(
            payload, "status", ATTENDANCE_STATUSES, errors, required=True, label="Status"
        )
        if status:
            cleaned["status"] = status

    if "notes" in payload:
        cleaned["notes"] = sanitize_text(payload.get("notes"))

    return cleaned, errors


def validate_bulk_attendance_payload(payload: Dict[str, Any] | None) -> Validated:
    if payload is None:
        return {}, {"_global": "Request body must be JSON."}

    errors: Dict[str, str] = {}
    cleaned: Dict[str, Any] = {}

    subject = _choice(payload, "subject", VALID_SUBJECTS, errors, required=True, label="Subject")
    if subject:
        cleaned["subject"] = subject

    records = payload.get("attendanceRecords")
    if not isinstance(records, list) or not records:
        errors["attendanceRecords"] = "attendanceRecords must be a non-empty array."
        return cleaned, errors

    entries: List[Dict[str, Any]] = []
    for index, record in enumerate(records):
        if not isinstance(record, dict):
            errors[f"attendanceRecords[{index}]"] = "Entries must be objects."
            continue
        entry, entry_errors = validate_attendance_payload(
            {**record, "subject": subject or ""}, require_all=True
        )
        entry_errors.pop("subject", None)
        if entry_errors:
            errors[f"attendanceRecords[{index}]"] = "; ".join(entry_errors.values())
            continue
        entries.append(entry)

    cleaned["records"] = entries
    return cleaned, errors


def validate_schedule_payload(payload: Dict[str, Any] | None) -> Validated:
    if payload is None:
        return {}, {"_global": "Request body must be JSON."}

    errors: Dict[str, str] = {}
    cleaned: Dict[str, Any] = {}

    teacher_id = clean_string(payload.get("teacherId"))
    if not teacher_id:
        errors["teacherId"] = "Teacher is required."
    else:
        cleaned["teacher_id"] = teacher_id

    for field, target, choices, label in (
        ("subject", "subject", VALID_SUBJECTS, "Subject"),
        ("dayOfWeek", "day_of_week", VALID_DAYS, "Day of week"),
        ("classGrade", "class_grade", VALID_GRADES, "Class grade"),
        ("classSection", "class_section", VALID_SECTIONS, "Class section"),
    ):
        value = _choice(payload, field, choices, errors, required=True, label=label)
        if value:
            cleaned[target] = value

    if "day_of_week" in cleaned:
        cleaned["day_index"] = DAY_INDEX[cleaned["day_of_week"]]

    start = clean_string(payload.get("startTime"))
    end = clean_string(payload.get("endTime"))
    if not is_valid_time(start):
        errors["startTime"] = "Start time must be HH:MM."
    if not is_valid_time(end):
        errors["endTime"] = "End time must be HH:MM."
    if "startTime" not in errors and "endTime" not in errors:
        if _minutes(start) >= _minutes(end):
            errors["endTime"] = "End time must be after start time."
        else:
            cleaned["start_time"] = start.zfill(5)
            cleaned["end_time"] = end.zfill(5)

    students = _string_list(payload.get("studentIds"))
    if students is None:
        errors["studentIds"] = "studentIds must be an array."
    else:
        cleaned["student_ids"] = students

    return cleaned, errors


def validate_enrollment_payload(payload: Dict[str, Any] | None, *, bulk: bool = False) -> Validated:
    if payload is None:
        return {}, {"_global": "Request body must be JSON."}

    errors: Dict[str, str] = {}
    cleaned: Dict[str, Any] = {}

    if bulk:
        students = _string_list(payload.get("studentIds"))
        if not students:
            errors["studentIds"] = "studentIds must be a non-empty array."
        else:
            cleaned["student_ids"] = list(dict.fromkeys(students))
    else:
        student_id = clean_string(payload.get("studentId"))
        if not student_id:
            errors["studentId"] = "Student is required."
        else:
            cleaned["student_id"] = student_id

    grade = _choice(payload, "classGrade", VALID_GRADES, errors, required=True, label="Class grade")
    if grade:
        cleaned["class_grade"] = grade
    section = _choice(
        payload, "classSection", VALID_SECTIONS, errors, required=True, label="Class section"
    )
    if section:
        cleaned["class_section"] = section

    return cleaned, errors


def validate_grade_payload(
    payload: Dict[str, Any] | None, *, total_points: float | int | None
) -> Validated:
    if payload is None:
        return {}, {"_global": "Request body must be JSON."}

    errors: Dict[str, str] = {}
    cleaned: Dict[str, Any] = {}

    raw = payload.get("grade")
    try:
        if raw in (None, "") or isinstance(raw, bool):
            raise ValueError
        grade = float(raw)
    except (TypeError, ValueError):
        errors["grade"] = "Grade must be a number."
    else:
        if grade < 0:
            errors["grade"] = "Grade cannot be negative."
        elif total_points is not None and grade > total_points:
            errors["grade"] = f"Grade cannot exceed {total_points:g} points."
        else:
            cleaned["grade"] = int(grade) if grade.is_integer() else round(grade, 2)

    if "feedback" in payload:
        cleaned["feedback"] = sanitize_text(payload.get("feedback"))

    return cleaned, errors


def now_utc() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None, microsecond=0)


__all__ = [
    "ANNOUNCEMENT_STATUSES",
    "ANNOUNCEMENT_TYPES",
    "ATTENDANCE_STATUSES",
    "DAY_INDEX",
    "PRIORITIES",
    "SUBMISSION_STATUSES",
    "VALID_DAYS",
    "VALID_GRADES",
    "VALID_SECTIONS",
    "VALID_SUBJECTS",
    "clean_string",
    "is_valid_time",
    "now_utc",
    "sanitize_text",
    "validate_announcement_payload",
    "validate_attendance_payload",
    "validate_bulk_attendance_payload",
    "validate_enrollment_payload",
    "validate_grade_payload",
    "validate_schedule_payload",
]
