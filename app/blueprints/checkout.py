"""Checkout blueprint — /api/checkout/*

One-time course purchases through Stripe Checkout.

Routes:
- POST /api/checkout           — create a Checkout Session for a course
- POST /api/checkout/finalize  — verify a completed session and grant access
"""

import logging

from flask import Blueprint, current_app, request

from app.decorators import json_endpoint
from app.extensions import limiter
from app.services.checkout_service import finalize_checkout, start_checkout

logger = logging.getLogger(__name__)

checkout_bp = Blueprint("checkout", __name__, url_prefix="/api/checkout")


def _payload():
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return {}
    return {
        k: v.strip() for k, v in data.items()
        if isinstance(v, str) and v.strip()
    }


@checkout_bp.route("", methods=["POST"])
@limiter.limit(lambda: current_app.config["CHECKOUT_RATE_LIMIT"])
@json_endpoint("startCheckout")
def create_checkout():
    """Start a purchase: returns the hosted checkout URL to redirect to.

    Body: { uid, courseId, origin? }
    Returns: { url, id, totalAmount }
    """
    data = _payload()
    return start_checkout(
        buyer_uid=data.get("uid"),
        course_id=data.get("courseId"),
        request_origin=data.get("origin") or request.headers.get("Origin"),
    )


@checkout_bp.route("/finalize", methods=["POST"])
@json_endpoint("finalizeCheckout")
def finalize():
    """Called from the checkout success page with the session id.

    Everything except the session id and the caller's uid is re-read
    from Stripe.

    Body: { uid, sessionId }
    Returns: { ok, courseId, customerId, applicationFeeCents, processingFeeCents }
    """
    data = _payload()
    return finalize_checkout(data.get("uid"), data.get("sessionId"))
