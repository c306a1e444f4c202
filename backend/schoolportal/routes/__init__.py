"""Application route blueprints and helpers."""

from .announcements import announcements_bp, submissions_bp
from .attendance import attendance_bp
from .auth import auth_bp, require_role
from .grades import grades_bp
from .reports import reports_bp
from .schedules import schedules_bp

BLUEPRINTS = (
    auth_bp,
    announcements_bp,
    submissions_bp,
    grades_bp,
    attendance_bp,
    schedules_bp,
    reports_bp,
)

__all__ = [
    "BLUEPRINTS",
    "announcements_bp",
    "attendance_bp",
    "auth_bp",
    "grades_bp",
    "reports_bp",
    "require_role",
    "schedules_bp",
    "submissions_bp",
]
