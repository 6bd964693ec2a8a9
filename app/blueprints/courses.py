"""Courses blueprint — access checks, lesson progress, purchase history.

Routes:
- GET  /api/courses/<course_id>/access?uid=  — does the user hold a purchase?
- POST /api/courses/<course_id>/progress     — move the lesson bookmark
- GET  /api/purchases?uid=                   — the user's purchases
"""

from flask import Blueprint, request

from app.decorators import json_endpoint
from app.errors import MissingField, ValidationError
from app.services.purchase_service import has_access, list_purchases, set_lesson_progress

courses_bp = Blueprint("courses", __name__, url_prefix="/api")


@courses_bp.route("/courses/<course_id>/access", methods=["GET"])
@json_endpoint("courseAccess")
def course_access(course_id):
    uid = (request.args.get("uid") or "").strip()
    if not uid:
        raise MissingField("uid")
    return {"courseId": course_id, "hasAccess": has_access(uid, course_id)}


@courses_bp.route("/courses/<course_id>/progress", methods=["POST"])
@json_endpoint("lessonProgress")
def lesson_progress(course_id):
    """Body: { uid, lessonIndex } — index is clamped to the course's lessons."""
    data = request.get_json(silent=True) or {}
    uid = data.get("uid") if isinstance(data, dict) else None
    if not uid or not isinstance(uid, str):
        raise MissingField("uid")

    lesson_index = data.get("lessonIndex")
    if isinstance(lesson_index, bool) or not isinstance(lesson_index, int):
        raise ValidationError("lessonIndex must be an integer")

    index = set_lesson_progress(uid.strip(), course_id, lesson_index)
    return {"courseId": course_id, "currentLessonIndex": index}


@courses_bp.route("/purchases", methods=["GET"])
@json_endpoint("listPurchases")
def purchases():
    uid = (request.args.get("uid") or "").strip()
    if not uid:
        raise MissingField("uid")
    return {"purchases": [p.to_dict() for p in list_purchases(uid)]}
