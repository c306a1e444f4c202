"""Announcements, submissions and grading."""

from __future__ import annotations

import unittest
from datetime import timedelta

from portal_fixtures import PortalTestCase
from schoolportal.validation import now_utc

NOW = now_utc()


def _announcement(_id, **overrides):
    document = {
        "_id": _id,
        "teacher_id": "t1",
        "subject": "Math",
        "type": "assignment",
        "status": "published",
        "priority": "medium",
        "title": f"Title {_id}",
        "description": "Do the work.",
        "due_date": NOW + timedelta(days=3),
        "total_points": 10,
        "target_student_ids": ["s1", "s2"],
        "created_at": NOW - timedelta(days=int(_id[1:])),
    }
    document.update(overrides)
    return document


class AnnouncementRoutesTestCase(PortalTestCase):
    def setUp(self) -> None:
        super().setUp()
        for document in (
            _announcement("a1"),
            _announcement("a2", type="quiz", subject="Physics", due_date=NOW - timedelta(days=1)),
            _announcement("a3", type="announcement", due_date=None, total_points=None),
            _announcement("a4", status="draft"),
            _announcement("a5", teacher_id="t2", subject="English", target_student_ids=["s3"]),
        ):
            self.announcements.insert(document)

    def test_teacher_sees_only_own_announcements(self) -> None:
        self.login_as("t1", "teacher")
        self.submissions.insert(
            {"announcement_id": "a1", "student_id": "s1", "teacher_id": "t1", "status": "graded"}
        )

        payload = self.client.get("/api/announcements/teacher").get_json()

        ids = [item["_id"] for item in payload["items"]]
        self.assertEqual(["a1", "a2", "a3", "a4"], ids)
        self.assertEqual(4, payload["statistics"]["total"])
        self.assertEqual({"assignment": 2, "quiz": 1, "announcement": 1}, payload["statistics"]["byType"])
        self.assertEqual({"published": 3, "draft": 1}, payload["statistics"]["byStatus"])
        first = payload["items"][0]
        self.assertEqual(1, first["submissionCount"])
        self.assertEqual(1, first["gradedCount"])
        self.assertEqual(2, first["totalStudents"])

    def test_teacher_filters_and_statistics_follow_the_filter(self) -> None:
        self.login_as("t1", "teacher")

        payload = self.client.get("/api/announcements/teacher?subject=Math&limit=1").get_json()

        self.assertEqual(1, len(payload["items"]))
        self.assertEqual(3, payload["pagination"]["totalItems"])
        self.assertEqual(3, payload["pagination"]["totalPages"])
        self.assertEqual(3, payload["statistics"]["total"])
        self.assertEqual({"Math": 3}, payload["statistics"]["bySubject"])

    def test_invalid_filter_and_pagination_are_rejected(self) -> None:
        self.login_as("t1", "teacher")

        response = self.client.get("/api/announcements/teacher?type=memo")
        self.assertEqual(400, response.status_code)
        self.assertEqual("InvalidFilter", response.get_json()["kind"])

        response = self.client.get("/api/announcements/teacher?page=0")
        self.assertEqual(400, response.status_code)
        self.assertEqual("InvalidPagination", response.get_json()["kind"])

    def test_student_sees_published_targeted_announcements(self) -> None:
        self.login_as("s1", "student")
        self.submissions.insert(
            {"announcement_id": "a1", "student_id": "s1", "teacher_id": "t1", "status": "submitted"}
        )

        payload = self.client.get("/api/announcements/student").get_json()

        items = {item["_id"]: item for item in payload["items"]}
        self.assertEqual({"a1", "a2", "a3"}, set(items))
        self.assertNotIn("targetStudents", items["a1"])
        self.assertTrue(items["a1"]["hasSubmitted"])
        self.assertEqual("submitted", items["a1"]["submission"]["status"])
        self.assertFalse(items["a2"]["hasSubmitted"])
        self.assertTrue(items["a2"]["isOverdue"])
        self.assertEqual(
            {"total": 3, "byType": {"assignment": 1, "quiz": 1, "announcement": 1}, "submitted": 1, "pending": 1, "overdue": 1},
            payload["statistics"],
        )

    def test_parent_views_only_own_child(self) -> None:
        self.login_as("p1", "parent")

        response = self.client.get("/api/announcements/parent/child/s1")
        self.assertEqual(200, response.status_code)
        self.assertEqual(3, response.get_json()["pagination"]["totalItems"])

        response = self.client.get("/api/announcements/parent/child/s3")
        self.assertEqual(403, response.status_code)

    def test_create_announcement(self) -> None:
        self.login_as("t1", "teacher")

        response = self.client.post(
            "/api/announcements",
            json={
                "subject": "Physics",
                "type": "quiz",
                "title": "Forces <b>quiz</b>",
                "description": "Chapter 3",
                "dueDate": "2030-01-15T10:00:00Z",
                "totalPoints": 20,
                "targetStudents": ["s1"],
            },
        )

        self.assertEqual(201, response.status_code)
        payload = response.get_json()
        self.assertEqual("t1", payload["teacherId"])
        self.assertEqual("Forces bquiz/b", payload["title"])
        self.assertEqual("2030-01-15T10:00:00", payload["dueDate"])
        self.assertEqual("published", payload["status"])
        self.assertIsNotNone(self.announcements.get(payload["_id"]))

    def test_create_requires_taught_subject_and_fields(self) -> None:
        self.login_as("t1", "teacher")

        response = self.client.post(
            "/api/announcements",
            json={"subject": "English", "type": "announcement", "title": "Hi", "description": "x"},
        )
        self.assertEqual(403, response.status_code)

        response = self.client.post("/api/announcements", json={"subject": "Math", "type": "quiz"})
        self.assertEqual(400, response.status_code)
        details = response.get_json()["details"]
        self.assertIn("title", details)
        self.assertIn("dueDate", details)
        self.assertIn("totalPoints", details)


class SubmissionRoutesTestCase(PortalTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.announcements.insert(_announcement("a1"))
        self.announcements.insert(
            _announcement("a2", type="quiz", subject="Physics", due_date=NOW - timedelta(days=1))
        )
        self.announcements.insert(_announcement("a3", type="announcement", due_date=None))
        self.announcements.insert(_announcement("a9", teacher_id="t2", subject="English"))

    def test_submit_assignment(self) -> None:
        self.login_as("s1", "student")

        response = self.client.post("/api/announcements/a1/submit", json={"content": "My work"})

        self.assertEqual(201, response.status_code)
        payload = response.get_json()
        self.assertEqual("submitted", payload["status"])
        self.assertEqual("Math", payload["subject"])
        self.assertEqual(10, payload["totalPoints"])
        self.assertEqual("t1", payload["teacherId"])

        again = self.client.post("/api/announcements/a1/submit", json={"content": "Again"})
        self.assertEqual(409, again.status_code)

    def test_overdue_submission_is_late(self) -> None:
        self.login_as("s1", "student")

        payload = self.client.post("/api/announcements/a2/submit", json={"content": "Sorry"}).get_json()

        self.assertEqual("late", payload["status"])
        self.assertTrue(payload["isLate"])

    def test_submit_rejections(self) -> None:
        self.login_as("s3", "student")
        self.assertEqual(
            403, self.client.post("/api/announcements/a1/submit", json={"content": "x"}).status_code
        )

        self.login_as("s1", "student")
        self.assertEqual(
            400, self.client.post("/api/announcements/a3/submit", json={"content": "x"}).status_code
        )
        self.assertEqual(
            400, self.client.post("/api/announcements/a1/submit", json={"content": "  "}).status_code
        )
        self.assertEqual(
            404, self.client.post("/api/announcements/zzz/submit", json={"content": "x"}).status_code
        )

    def _submit(self, student_id: str, announcement_id: str = "a1") -> str:
        self.login_as(student_id, "student")
        response = self.client.post(
            f"/api/announcements/{announcement_id}/submit", json={"content": "work"}
        )
        return response.get_json()["_id"]

    def test_teacher_lists_and_grades_submissions(self) -> None:
        first = self._submit("s1")
        self._submit("s2")

        self.login_as("t1", "teacher")
        response = self.client.post(
            f"/api/submissions/{first}/grade", json={"grade": 9, "feedback": "Good"}
        )
        self.assertEqual(200, response.status_code)
        graded = response.get_json()["submission"]
        self.assertEqual("graded", graded["status"])
        self.assertEqual(90.0, graded["percentage"])

        payload = self.client.get("/api/announcements/a1/submissions").get_json()
        self.assertEqual(2, payload["pagination"]["totalItems"])
        self.assertEqual(20, payload["pagination"]["itemsPerPage"])
        self.assertEqual(2, payload["totalStudents"])
        self.assertEqual(
            {
                "total": 2,
                "graded": 1,
                "statusBreakdown": {"graded": 1, "submitted": 1},
                "averagePercentage": 90,
            },
            payload["statistics"],
        )
        names = {item["studentName"] for item in payload["items"]}
        self.assertEqual({"Student One", "Student Two"}, names)

        filtered = self.client.get("/api/announcements/a1/submissions?status=graded").get_json()
        self.assertEqual(1, filtered["pagination"]["totalItems"])

    def test_grade_validation_and_ownership(self) -> None:
        submission_id = self._submit("s1")

        self.login_as("t1", "teacher")
        response = self.client.post(f"/api/submissions/{submission_id}/grade", json={"grade": 11})
        self.assertEqual(400, response.status_code)
        self.assertIn("grade", response.get_json()["details"])

        self.login_as("t2", "teacher")
        response = self.client.post(f"/api/submissions/{submission_id}/grade", json={"grade": 5})
        self.assertEqual(403, response.status_code)

        response = self.client.post("/api/submissions/507f1f77bcf86cd799439011/grade", json={"grade": 5})
        self.assertEqual(404, response.status_code)

    def test_other_teacher_cannot_list_submissions(self) -> None:
        self.login_as("t2", "teacher")

        response = self.client.get("/api/announcements/a1/submissions")

        self.assertEqual(404, response.status_code)


class AnnouncementTargetingTestCase(PortalTestCase):
    BODY = {
        "subject": "Math",
        "type": "assignment",
        "title": "Fractions",
        "description": "Exercises 1-10",
        "dueDate": "2030-01-15",
        "totalPoints": 10,
    }

    def _create(self, **overrides):
        self.login_as("t1", "teacher")
        return self.client.post("/api/announcements", json=dict(self.BODY, **overrides))

    def test_grade_and_section_reach_matching_students(self) -> None:
        response = self._create(targetGrades=["grade7"], targetSections=["A"])

        self.assertEqual(201, response.status_code)
        announcement = response.get_json()
        self.assertEqual(["s1", "s2"], announcement["targetStudents"])

        self.login_as("s1", "student")
        listing = self.client.get("/api/announcements/student").get_json()
        self.assertEqual(1, listing["pagination"]["totalItems"])
        self.assertEqual(announcement["_id"], listing["items"][0]["_id"])

        submitted = self.client.post(
            f"/api/announcements/{announcement['_id']}/submit", json={"content": "Done"}
        )
        self.assertEqual(201, submitted.status_code)

        self.login_as("s3", "student")
        listing = self.client.get("/api/announcements/student").get_json()
        self.assertEqual(0, listing["pagination"]["totalItems"])

    def test_grade_without_students_is_rejected(self) -> None:
        response = self._create(targetGrades=["grade12"])

        self.assertEqual(400, response.status_code)
        self.assertIn("No students found", response.get_json()["error"])
        self.assertEqual([], self.announcements.documents)

    def test_untargeted_announcement_uses_enrolled_students(self) -> None:
        self.schedules.insert(
            {"teacher_id": "t1", "subject": "Math", "class_grade": "grade7", "student_ids": ["s2"]}
        )
        self.schedules.insert(
            {"teacher_id": "t2", "subject": "Math", "class_grade": "grade7", "student_ids": ["s3"]}
        )

        response = self._create()
        self.assertEqual(201, response.status_code)
        self.assertEqual(["s2"], response.get_json()["targetStudents"])

        response = self._create(subject="Physics")
        self.assertEqual(400, response.status_code)
        self.assertIn("No students enrolled", response.get_json()["error"])


if __name__ == "__main__":
    unittest.main()
