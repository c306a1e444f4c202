"""Grade lists for students and parents."""

from __future__ import annotations

import unittest
from datetime import datetime

from portal_fixtures import PortalTestCase


def _submission(student_id, subject, status, grade=None, total=10, day=1):
    return {
        "announcement_id": f"{subject}-{day}",
        "student_id": student_id,
        "teacher_id": "t1",
        "subject": subject,
        "status": status,
        "grade": grade,
        "total_points": total,
        "submitted_at": datetime(2024, 4, day),
    }


class GradeRoutesTestCase(PortalTestCase):
    def setUp(self) -> None:
        super().setUp()
        for document in (
            _submission("s1", "Math", "graded", 8, day=1),
            _submission("s1", "Math", "graded", 9, day=2),
            _submission("s1", "Math", "graded", 10, day=3),
            _submission("s1", "Math", "submitted", day=4),
            _submission("s1", "Physics", "late", day=5),
            _submission("s2", "Math", "graded", 2, day=6),
        ):
            self.submissions.insert(document)

    def test_student_grade_statistics(self) -> None:
        self.login_as("s1", "student")

        payload = self.client.get("/api/grades/student").get_json()

        statistics = payload["statistics"]
        self.assertEqual(90, statistics["bySubject"]["Math"]["average"])
        self.assertEqual(3, statistics["overall"]["gradedCount"])
        self.assertEqual({"graded": 3, "submitted": 1, "late": 1}, statistics["statusBreakdown"])
        self.assertEqual(2, statistics["pendingCount"])
        self.assertEqual(5, payload["pagination"]["totalItems"])
        # Newest submission first.
        self.assertEqual("Physics", payload["items"][0]["subject"])

    def test_statistics_ignore_page_size(self) -> None:
        self.login_as("s1", "student")

        small = self.client.get("/api/grades/student?limit=1").get_json()
        large = self.client.get("/api/grades/student?limit=50").get_json()

        self.assertEqual(1, len(small["items"]))
        self.assertEqual(5, len(large["items"]))
        self.assertEqual(small["statistics"], large["statistics"])

    def test_subject_filter(self) -> None:
        self.login_as("s1", "student")

        payload = self.client.get("/api/grades/student?subject=Physics").get_json()

        self.assertEqual(1, payload["pagination"]["totalItems"])
        self.assertEqual({}, payload["statistics"]["bySubject"])

    def test_parent_child_grades(self) -> None:
        self.login_as("p1", "parent")

        response = self.client.get("/api/grades/parent/child/s1")
        self.assertEqual(200, response.status_code)
        self.assertEqual(5, response.get_json()["pagination"]["totalItems"])

        response = self.client.get("/api/grades/parent/child/s2")
        self.assertEqual(403, response.status_code)


if __name__ == "__main__":
    unittest.main()
