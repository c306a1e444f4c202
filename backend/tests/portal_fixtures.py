"""Shared setup for route tests: in-memory stores behind every accessor."""

from __future__ import annotations

import sys
import unittest
from pathlib import Path
from unittest import mock

from werkzeug.security import generate_password_hash

BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from app import app  # noqa: E402
from schoolportal.listing import InMemoryRecordStore  # noqa: E402

PASSWORD = "secret-pass"
PASSWORD_HASH = generate_password_hash(PASSWORD)

USERS = (
    {"_id": "admin1", "name": "Admin", "email": "admin@school.test", "role": "admin"},
    {
        "_id": "t1",
        "name": "Teacher One",
        "email": "t1@school.test",
        "role": "teacher",
        "subjects": ["Math", "Physics"],
    },
    {
        "_id": "t2",
        "name": "Teacher Two",
        "email": "t2@school.test",
        "role": "teacher",
        "subjects": ["English"],
    },
    {
        "_id": "s1",
        "name": "Student One",
        "email": "s1@school.test",
        "role": "student",
        "class_grade": "grade7",
        "class_section": "A",
    },
    {
        "_id": "s2",
        "name": "Student Two",
        "email": "s2@school.test",
        "role": "student",
        "class_grade": "grade7",
        "class_section": "A",
    },
    {"_id": "s3", "name": "Student Three", "email": "s3@school.test", "role": "student"},
    {
        "_id": "p1",
        "name": "Parent One",
        "email": "p1@school.test",
        "role": "parent",
        "children": ["s1"],
    },
)

# Module-level names each blueprint resolves its stores through.
STORE_TARGETS = {
    "users": (
        "schoolportal.routes.auth.get_users_store",
        "schoolportal.routes.reports.get_users_store",
        "schoolportal.routes.announcements.get_users_store",
        "schoolportal.routes.schedules.get_users_store",
    ),
    "announcements": ("schoolportal.routes.announcements.get_announcements_store",),
    "submissions": (
        "schoolportal.routes.announcements.get_submissions_store",
        "schoolportal.routes.grades.get_submissions_store",
    ),
    "attendance": (
        "schoolportal.routes.attendance.get_attendance_store",
        "schoolportal.routes.reports.get_attendance_store",
    ),
    "schedules": (
        "schoolportal.routes.schedules.get_schedules_store",
        "schoolportal.routes.announcements.get_schedules_store",
    ),
}


class PortalTestCase(unittest.TestCase):
    def setUp(self) -> None:
        app.config["TESTING"] = True
        self.client = app.test_client()

        self.users = InMemoryRecordStore(
            [dict(user, password_hash=PASSWORD_HASH) for user in USERS],
            name="users",
            unique=(("email",),),
        )
        self.announcements = InMemoryRecordStore(name="announcements")
        self.submissions = InMemoryRecordStore(
            name="submissions", unique=(("announcement_id", "student_id"),)
        )
        self.attendance = InMemoryRecordStore(
            name="attendance", unique=(("student_id", "subject", "date"),)
        )
        self.schedules = InMemoryRecordStore(name="schedules")

        for store_name, targets in STORE_TARGETS.items():
            store = getattr(self, store_name)
            for target in targets:
                patcher = mock.patch(target, return_value=store)
                patcher.start()
                self.addCleanup(patcher.stop)

    def login_as(self, user_id: str, role: str) -> None:
        with self.client.session_transaction() as session:
            session["user_id"] = user_id
            session["role"] = role
