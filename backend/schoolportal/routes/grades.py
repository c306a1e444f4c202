"""Grade reports for students and their parents."""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from ..db import get_submissions_store
from ..listing import DESCENDING, FieldFilter, Scope, build_filter_spec, parse_page_request, run_list_query
from ..listing.aggregate import grade_averages, status_breakdown
from ..records import serialize_submission
from ..validation import SUBMISSION_STATUSES, VALID_SUBJECTS
from .auth import parent_owns_child, require_role
from .common import json_error, store_guard

grades_bp = Blueprint("grades", __name__, url_prefix="/api/grades")

GRADE_SORT = [("submitted_at", DESCENDING)]

GRADE_FILTERS = (
    FieldFilter("subject", "subject", choices=VALID_SUBJECTS),
    FieldFilter("status", "status", choices=SUBMISSION_STATUSES),
)


def _grade_statistics(documents):
    docs = list(documents)
    breakdown = status_breakdown(docs)
    statistics = grade_averages(docs)
    statistics["statusBreakdown"] = breakdown
    statistics["pendingCount"] = breakdown.get("submitted", 0) + breakdown.get("late", 0)
    return statistics


def _grades_for(student_id: str):
    spec = build_filter_spec(request.args, GRADE_FILTERS, Scope.owned_by("student_id", student_id))
    result = run_list_query(
        get_submissions_store(),
        spec,
        parse_page_request(request.args),
        sort=GRADE_SORT,
        statistics=_grade_statistics,
        fields=("status", "grade", "total_points", "subject"),
    )
    return jsonify(result.to_dict(serialize_submission))


@grades_bp.get("/student")
@require_role("student")
@store_guard("Failed to load student grades")
def student_grades():
    return _grades_for(g.user_id)


@grades_bp.get("/parent/child/<child_id>")
@require_role("parent")
@store_guard("Failed to load child grades")
def child_grades(child_id: str):
    if not parent_owns_child(g.user_id, child_id):
        return json_error("You can only view your own children's grades.", 403)
    return _grades_for(child_id)


__all__ = ["grades_bp"]
