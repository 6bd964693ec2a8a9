"""Shared test fixtures for the marketplace payments test suite.

Provides:
- app: Flask app configured for testing (in-memory SQLite, fake Stripe keys)
- client: Flask test client
- db_session: clean database per test (tables created/dropped)
- seed_data: onboarded creator, buyer, and a set of courses
- purchase_lookup_miss: first Purchase lookup misses (concurrent insert)
"""

from decimal import Decimal
from unittest.mock import patch

import pytest

from app import create_app
from app.extensions import db as _db
from app.models.course import Course, Lesson
from app.models.purchase import Purchase
from app.models.user import User


@pytest.fixture(scope="session")
def app():
    """Create the Flask application configured for testing."""
    app = create_app("testing")
    yield app


@pytest.fixture(autouse=True)
def db_session(app):
    """Create all tables before each test, drop after."""
    with app.app_context():
        _db.create_all()
        yield _db.session
        _db.session.rollback()
        _db.drop_all()


@pytest.fixture
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture
def seed_data(app, db_session):
    """Seed users and courses.

    - creator: onboarded, account acct_creator
    - pending_creator: has an account but isn't onboarded
    - buyer: plain user, no account
    - course: 10.00, three lessons, by creator
    - cheap_course: 0.50, by creator
    - free_course: is_free, by creator
    - pending_course: 25.00, by pending_creator
    - orphan_course: 15.00, no creator
    """
    with app.app_context():
        creator = User(
            id="uid_creator",
            display_name="Ada Lovelace",
            email="ada@example.com",
            stripe_account_id="acct_creator",
            stripe_onboarded=True,
        )
        pending_creator = User(
            id="uid_pending",
            display_name="Grace",
            email="grace@example.com",
            stripe_account_id="acct_pending",
            stripe_onboarded=False,
        )
        buyer = User(
            id="uid_buyer",
            display_name="Alan Mathison Turing",
            email="alan@example.com",
        )
        _db.session.add_all([creator, pending_creator, buyer])
        _db.session.flush()

        course = Course(
            title="Bread Basics",
            description="Everything about bread.",
            price=Decimal("10.00"),
            creator_uid=creator.id,
            lessons=[
                Lesson(position=0, title="Flour", body="..."),
                Lesson(position=1, title="Water", body="..."),
                Lesson(position=2, title="Heat", body="..."),
            ],
        )
        cheap_course = Course(
            title="Tiny Course", price=Decimal("0.50"), creator_uid=creator.id
        )
        free_course = Course(
            title="Free Course", price=Decimal("12.00"), is_free=True,
            creator_uid=creator.id,
        )
        pending_course = Course(
            title="Pending Creator Course", price=Decimal("25.00"),
            creator_uid=pending_creator.id,
        )
        orphan_course = Course(title="Orphan", price=Decimal("15.00"))
        _db.session.add_all(
            [course, cheap_course, free_course, pending_course, orphan_course]
        )
        _db.session.commit()

        # Store plain IDs so tests can use them even when objects
        # are detached from the session (cross-context access).
        return {
            "creator_id": creator.id,
            "pending_creator_id": pending_creator.id,
            "buyer_id": buyer.id,
            "course_id": course.id,
            "cheap_course_id": cheap_course.id,
            "free_course_id": free_course.id,
            "pending_course_id": pending_course.id,
            "orphan_course_id": orphan_course.id,
        }


@pytest.fixture
def purchase_lookup_miss(app):
    """Make the first db.session.get(Purchase, ...) return None.

    Reproduces another finalize inserting the same grant between our
    lookup and our insert. Later lookups hit the database normally.
    """
    real_get = _db.session.get
    missed = []

    def get(entity, ident, **kwargs):
        if entity is Purchase and not missed:
            missed.append(ident)
            return None
        return real_get(entity, ident, **kwargs)

    with patch.object(_db.session, "get", side_effect=get):
        yield missed
