"""Typed views over the documents stored in each collection.

Documents are stored with snake_case keys; ``to_json`` renders the camelCase
shape returned by the API.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping


def _str_id(value: Any) -> str | None:
    return str(value) if value is not None else None


def _iso(value: Any) -> str | None:
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def _number(value: Any) -> float | int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return int(number) if number.is_integer() else number


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, (list, tuple)):
        return []
    return [str(item) for item in value if item is not None]


@dataclass
class AttendanceRecord:
    id: str
    teacher_id: str
    student_id: str
    subject: str
    date: datetime | None
    status: str
    class_grade: str | None = None
    class_section: str | None = None
    notes: str = ""
    check_in_time: datetime | None = None
    created_at: datetime | None = None

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> "AttendanceRecord":
        return cls(
            id=_str_id(document.get("_id")) or "",
            teacher_id=_str_id(document.get("teacher_id")) or "",
            student_id=_str_id(document.get("student_id")) or "",
            subject=document.get("subject") or "",
            date=document.get("date"),
            status=document.get("status") or "",
            class_grade=document.get("class_grade"),
            class_section=document.get("class_section"),
            notes=document.get("notes") or "",
            check_in_time=document.get("check_in_time"),
            created_at=document.get("created_at"),
        )

    def to_json(self) -> Dict[str, Any]:
        return {
            "_id": self.id,
            "teacherId": self.teacher_id,
            "studentId": self.student_id,
            "subject": self.subject,
            "date": _iso(self.date),
            "status": self.status,
            "classGrade": self.class_grade,
            "classSection": self.class_section,
            "notes": self.notes,
            "checkInTime": _iso(self.check_in_time),
            "createdAt": _iso(self.created_at),
        }


@dataclass
class AnnouncementRecord:
    id: str
    teacher_id: str
    subject: str
    type: str
    title: str
    description: str
    status: str = "published"
    priority: str = "medium"
    due_date: datetime | None = None
    total_points: float | int | None = None
    target_student_ids: List[str] = field(default_factory=list)
    target_grades: List[str] = field(default_factory=list)
    target_sections: List[str] = field(default_factory=list)
    created_at: datetime | None = None

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> "AnnouncementRecord":
        return cls(
            id=_str_id(document.get("_id")) or "",
            teacher_id=_str_id(document.get("teacher_id")) or "",
            subject=document.get("subject") or "",
            type=document.get("type") or "",
            title=document.get("title") or "",
            description=document.get("description") or "",
            status=document.get("status") or "published",
            priority=document.get("priority") or "medium",
            due_date=document.get("due_date"),
            total_points=_number(document.get("total_points")),
            target_student_ids=_string_list(document.get("target_student_ids")),
            target_grades=_string_list(document.get("target_grades")),
            target_sections=_string_list(document.get("target_sections")),
            created_at=document.get("created_at"),
        )

    def is_overdue(self, now: datetime) -> bool:
        return self.due_date is not None and now > self.due_date

    def to_json(self) -> Dict[str, Any]:
        return {
            "_id": self.id,
            "teacherId": self.teacher_id,
            "subject": self.subject,
            "type": self.type,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "priority": self.priority,
            "dueDate": _iso(self.due_date),
            "totalPoints": self.total_points,
            "targetStudents": self.target_student_ids,
            "targetGrades": self.target_grades,
            "targetSections": self.target_sections,
            "createdAt": _iso(self.created_at),
        }


@dataclass
class SubmissionRecord:
    id: str
    announcement_id: str
    student_id: str
    teacher_id: str
    status: str
    submitted_at: datetime | None
    subject: str | None = None
    announcement_title: str | None = None
    announcement_type: str | None = None
    total_points: float | int | None = None
    content: str = ""
    grade: float | int | None = None
    feedback: str | None = None
    graded_at: datetime | None = None
    is_late: bool = False

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> "SubmissionRecord":
        return cls(
            id=_str_id(document.get("_id")) or "",
            announcement_id=_str_id(document.get("announcement_id")) or "",
            student_id=_str_id(document.get("student_id")) or "",
            teacher_id=_str_id(document.get("teacher_id")) or "",
            status=document.get("status") or "submitted",
            submitted_at=document.get("submitted_at"),
            subject=document.get("subject"),
            announcement_title=document.get("announcement_title"),
            announcement_type=document.get("announcement_type"),
            total_points=_number(document.get("total_points")),
            content=document.get("content") or "",
            grade=_number(document.get("grade")),
            feedback=document.get("feedback"),
            graded_at=document.get("graded_at"),
            is_late=bool(document.get("is_late", False)),
        )

    @property
    def percentage(self) -> float | None:
        if self.grade is None or not self.total_points:
            return None
        return round(self.grade / self.total_points * 100, 1)

    def to_json(self) -> Dict[str, Any]:
        return {
            "_id": self.id,
            "announcementId": self.announcement_id,
            "studentId": self.student_id,
            "teacherId": self.teacher_id,
            "status": self.status,
            "submittedAt": _iso(self.submitted_at),
            "subject": self.subject,
            "announcementTitle": self.announcement_title,
            "announcementType": self.announcement_type,
            "totalPoints": self.total_points,
            "content": self.content,
            "grade": self.grade,
            "percentage": self.percentage,
            "feedback": self.feedback,
            "gradedAt": _iso(self.graded_at),
            "isLate": self.is_late,
        }


@dataclass
class ScheduleEntry:
    id: str
    teacher_id: str
    subject: str
    day_of_week: str
    start_time: str
    end_time: str
    class_grade: str
    class_section: str
    student_ids: List[str] = field(default_factory=list)

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> "ScheduleEntry":
        return cls(
            id=_str_id(document.get("_id")) or "",
            teacher_id=_str_id(document.get("teacher_id")) or "",
            subject=document.get("subject") or "",
            day_of_week=document.get("day_of_week") or "",
            start_time=document.get("start_time") or "",
            end_time=document.get("end_time") or "",
            class_grade=document.get("class_grade") or "",
            class_section=document.get("class_section") or "",
            student_ids=_string_list(document.get("student_ids")),
        )

    def to_json(self) -> Dict[str, Any]:
        return {
            "_id": self.id,
            "teacherId": self.teacher_id,
            "subject": self.subject,
            "dayOfWeek": self.day_of_week,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "classGrade": self.class_grade,
            "classSection": self.class_section,
            "studentCount": len(self.student_ids),
        }


def serialize_attendance(document: Mapping[str, Any]) -> Dict[str, Any]:
    return AttendanceRecord.from_document(document).to_json()


def serialize_submission(document: Mapping[str, Any]) -> Dict[str, Any]:
    return SubmissionRecord.from_document(document).to_json()


def serialize_schedule(document: Mapping[str, Any]) -> Dict[str, Any]:
    return ScheduleEntry.from_document(document).to_json()


def serialize_user(document: Mapping[str, Any]) -> Dict[str, Any]:
    """Public view of a user document. Never includes the password hash."""

    user = {
        "_id": _str_id(document.get("_id")),
        "name": document.get("name"),
        "email": document.get("email"),
        "role": document.get("role"),
    }
    if document.get("role") == "teacher":
        user["subjects"] = _string_list(document.get("subjects"))
    if document.get("role") == "parent":
        user["children"] = _string_list(document.get("children"))
    if document.get("role") == "student":
        user["classGrade"] = document.get("class_grade")
        user["classSection"] = document.get("class_section")
    return user


__all__ = [
    "AnnouncementRecord",
    "AttendanceRecord",
    "ScheduleEntry",
    "SubmissionRecord",
    "serialize_attendance",
    "serialize_schedule",
    "serialize_submission",
    "serialize_user",
]
