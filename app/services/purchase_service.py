"""Purchase service — access grants and lesson progress.

Responsible for:
- Granting course access after a confirmed payment (idempotent upsert)
- Recording best-effort fee data on an existing grant
- Access checks and lesson progress tracking

A Purchase row is the only thing that authorizes access to course
content; no row, no access.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError

from app.errors import AccessDenied, CourseNotFound
from app.extensions import db
from app.models.course import Course
from app.models.purchase import Purchase

logger = logging.getLogger(__name__)

# Bookkeeping columns filled from Stripe data. Only empty columns are
# written, so replaying a finalize (or finalizing a second paid session
# for the same course) never rewrites what the first grant recorded.
_PAYMENT_FIELDS = (
    "amount_cents",
    "currency",
    "application_fee_cents",
    "stripe_session_id",
    "stripe_payment_intent_id",
    "stripe_customer_id",
)


def _fill_missing(purchase, values):
    for name in _PAYMENT_FIELDS:
        value = values.get(name)
        if value is not None and getattr(purchase, name) is None:
            setattr(purchase, name, value)


def grant_access(uid, course_id, **payment):
    """Create the purchase record for (uid, course_id) if it doesn't exist.

    acquired_at and current_lesson_index are only set on creation; an
    existing record keeps its timestamp and the buyer's progress.
    Safe to call any number of times, including concurrently.

    Returns (purchase, created).
    """
    purchase = db.session.get(Purchase, (uid, course_id))
    created = purchase is None

    if created:
        purchase = Purchase(
            user_id=uid,
            course_id=course_id,
            acquired_at=datetime.now(timezone.utc),
            current_lesson_index=0,
        )
        db.session.add(purchase)

    _fill_missing(purchase, payment)

    try:
        db.session.commit()
    except IntegrityError:
        # Lost an insert race with another finalize for the same grant
        db.session.rollback()
        purchase = db.session.get(Purchase, (uid, course_id))
        if purchase is None:
            raise
        created = False
        logger.info(f"Purchase {uid}/{course_id} was created concurrently")
        _fill_missing(purchase, payment)
        db.session.commit()

    if created:
        logger.info(f"Granted course {course_id} to user {uid}")
    return purchase, created


def record_processing_fee(uid, course_id, session_id, processing_fee_cents):
    """Store Stripe's processing fee on the grant made for session_id.

    Returns True when the record was updated.
    """
    purchase = db.session.get(Purchase, (uid, course_id))
    if purchase is None or purchase.stripe_session_id != session_id:
        return False
    if purchase.processing_fee_cents == processing_fee_cents:
        return False

    purchase.processing_fee_cents = processing_fee_cents
    db.session.commit()
    return True


def has_access(uid, course_id):
    """True if uid holds a purchase record for course_id."""
    if not uid or not course_id:
        return False
    return db.session.get(Purchase, (uid, course_id)) is not None


def set_lesson_progress(uid, course_id, lesson_index):
    """Move the buyer's bookmark to lesson_index, clamped to the course.

    Returns the stored index.
    Raises CourseNotFound / AccessDenied.
    """
    course = db.session.get(Course, course_id)
    if course is None:
        raise CourseNotFound()

    purchase = db.session.get(Purchase, (uid, course_id))
    if purchase is None:
        raise AccessDenied()

    last = max(0, course.lesson_count - 1)
    index = min(max(int(lesson_index), 0), last)

    if purchase.current_lesson_index != index:
        purchase.current_lesson_index = index
        db.session.commit()
    return index


def list_purchases(uid):
    """All of a buyer's purchase records, newest first."""
    return (
        Purchase.query
        .filter_by(user_id=uid)
        .order_by(Purchase.acquired_at.desc())
        .all()
    )
