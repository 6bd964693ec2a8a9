"""Tests for the courses blueprint: access checks, lesson progress, purchase history."""

import json
from datetime import datetime, timedelta, timezone

import pytest

from app.extensions import db
from app.models.purchase import Purchase
from app.services.purchase_service import grant_access, has_access, record_processing_fee


def _grant(app, uid, course_id, **payment):
    with app.app_context():
        grant_access(uid, course_id, **payment)


class TestGrantAccess:
    """Tests for grant_access() / record_processing_fee()."""

    def test_creates_record_at_first_lesson(self, app, seed_data):
        with app.app_context():
            purchase, created = grant_access(
                seed_data["buyer_id"], seed_data["course_id"], amount_cents=1300
            )
            assert created is True
            assert purchase.current_lesson_index == 0
            assert purchase.amount_cents == 1300

    def test_second_grant_fills_only_empty_fields(self, app, seed_data):
        _grant(app, seed_data["buyer_id"], seed_data["course_id"], amount_cents=1300)

        with app.app_context():
            purchase, created = grant_access(
                seed_data["buyer_id"], seed_data["course_id"],
                amount_cents=9999, currency="EUR",
            )
            assert created is False
            assert purchase.amount_cents == 1300
            assert purchase.currency == "EUR"

    def test_processing_fee_only_for_granting_session(self, app, seed_data):
        _grant(app, seed_data["buyer_id"], seed_data["course_id"], stripe_session_id="cs_a")

        with app.app_context():
            assert record_processing_fee(
                seed_data["buyer_id"], seed_data["course_id"], "cs_b", 40
            ) is False
            assert record_processing_fee(
                seed_data["buyer_id"], seed_data["course_id"], "cs_a", 40
            ) is True
            purchase = db.session.get(Purchase, (seed_data["buyer_id"], seed_data["course_id"]))
            assert purchase.processing_fee_cents == 40

    def test_concurrent_insert_counts_as_already_granted(self, app, seed_data,
                                                         purchase_lookup_miss):
        """Another request inserts the grant between our lookup and our insert."""
        uid, course_id = seed_data["buyer_id"], seed_data["course_id"]
        with app.app_context():
            db.session.add(Purchase(
                user_id=uid, course_id=course_id,
                acquired_at=datetime(2020, 1, 1, tzinfo=timezone.utc),
                current_lesson_index=2,
            ))
            db.session.commit()

        with app.app_context():
            purchase, created = grant_access(uid, course_id, amount_cents=1300)

            assert purchase_lookup_miss == [(uid, course_id)]
            assert created is False
            assert purchase.current_lesson_index == 2
            assert purchase.acquired_at.replace(tzinfo=None) == datetime(2020, 1, 1)
            assert purchase.amount_cents == 1300
            assert Purchase.query.filter_by(user_id=uid).count() == 1

    def test_has_access(self, app, seed_data):
        _grant(app, seed_data["buyer_id"], seed_data["course_id"])
        with app.app_context():
            assert has_access(seed_data["buyer_id"], seed_data["course_id"]) is True
            assert has_access(seed_data["buyer_id"], seed_data["cheap_course_id"]) is False
            assert has_access(None, seed_data["course_id"]) is False


class TestAccessRoute:
    """Tests for GET /api/courses/<id>/access."""

    def test_without_purchase(self, client, seed_data):
        resp = client.get(
            f"/api/courses/{seed_data['course_id']}/access?uid={seed_data['buyer_id']}"
        )
        assert resp.status_code == 200
        assert json.loads(resp.data) == {
            "courseId": seed_data["course_id"],
            "hasAccess": False,
        }

    def test_with_purchase(self, client, seed_data, app):
        _grant(app, seed_data["buyer_id"], seed_data["course_id"])
        resp = client.get(
            f"/api/courses/{seed_data['course_id']}/access?uid={seed_data['buyer_id']}"
        )
        assert json.loads(resp.data)["hasAccess"] is True

    def test_missing_uid_returns_400(self, client, seed_data):
        resp = client.get(f"/api/courses/{seed_data['course_id']}/access")
        assert resp.status_code == 400
        assert json.loads(resp.data) == {"error": "Missing uid"}


class TestLessonProgress:
    """Tests for POST /api/courses/<id>/progress."""

    def _post(self, client, course_id, uid, index):
        return client.post(
            f"/api/courses/{course_id}/progress",
            json={"uid": uid, "lessonIndex": index},
        )

    @pytest.mark.parametrize("index, stored", [(0, 0), (1, 1), (2, 2), (7, 2), (-4, 0)])
    def test_index_clamped_to_lessons(self, index, stored, client, seed_data, app):
        _grant(app, seed_data["buyer_id"], seed_data["course_id"])

        resp = self._post(client, seed_data["course_id"], seed_data["buyer_id"], index)
        assert resp.status_code == 200
        assert json.loads(resp.data) == {
            "courseId": seed_data["course_id"],
            "currentLessonIndex": stored,
        }

        with app.app_context():
            purchase = db.session.get(Purchase, (seed_data["buyer_id"], seed_data["course_id"]))
            assert purchase.current_lesson_index == stored

    def test_course_without_lessons_stays_at_zero(self, client, seed_data, app):
        _grant(app, seed_data["buyer_id"], seed_data["cheap_course_id"])
        resp = self._post(client, seed_data["cheap_course_id"], seed_data["buyer_id"], 3)
        assert json.loads(resp.data)["currentLessonIndex"] == 0

    def test_without_purchase_returns_403(self, client, seed_data):
        resp = self._post(client, seed_data["course_id"], seed_data["buyer_id"], 1)
        assert resp.status_code == 403
        assert json.loads(resp.data) == {"error": "You do not have access to this course"}

    def test_unknown_course_returns_404(self, client, seed_data):
        resp = self._post(client, "no-such-course", seed_data["buyer_id"], 1)
        assert resp.status_code == 404

    @pytest.mark.parametrize("index", ["2", 1.5, None, True])
    def test_non_integer_index_returns_400(self, index, client, seed_data, app):
        _grant(app, seed_data["buyer_id"], seed_data["course_id"])
        resp = self._post(client, seed_data["course_id"], seed_data["buyer_id"], index)
        assert resp.status_code == 400
        assert json.loads(resp.data) == {"error": "lessonIndex must be an integer"}

    def test_missing_uid_returns_400(self, client, seed_data):
        resp = client.post(
            f"/api/courses/{seed_data['course_id']}/progress", json={"lessonIndex": 1}
        )
        assert resp.status_code == 400


class TestPurchaseHistory:
    """Tests for GET /api/purchases."""

    def test_lists_newest_first(self, client, seed_data, app):
        now = datetime.now(timezone.utc)
        with app.app_context():
            db.session.add_all([
                Purchase(
                    user_id=seed_data["buyer_id"], course_id=seed_data["course_id"],
                    acquired_at=now - timedelta(days=2), current_lesson_index=1,
                    amount_cents=1300, currency="EUR",
                    application_fee_cents=300, processing_fee_cents=45,
                ),
                Purchase(
                    user_id=seed_data["buyer_id"], course_id=seed_data["pending_course_id"],
                    acquired_at=now, current_lesson_index=0,
                ),
            ])
            db.session.commit()

        resp = client.get(f"/api/purchases?uid={seed_data['buyer_id']}")
        assert resp.status_code == 200
        purchases = json.loads(resp.data)["purchases"]
        assert [p["courseId"] for p in purchases] == [
            seed_data["pending_course_id"],
            seed_data["course_id"],
        ]
        older = purchases[1]
        assert older["amountCents"] == 1300
        assert older["platformFeeCents"] == 300
        assert older["processingFeeCents"] == 45
        assert older["creatorGrossCents"] == 1000
        assert older["platformNetCents"] == 255
        assert purchases[0]["creatorGrossCents"] is None

    def test_empty_history(self, client, seed_data):
        resp = client.get(f"/api/purchases?uid={seed_data['creator_id']}")
        assert json.loads(resp.data) == {"purchases": []}

    def test_missing_uid_returns_400(self, client, seed_data):
        assert client.get("/api/purchases").status_code == 400
