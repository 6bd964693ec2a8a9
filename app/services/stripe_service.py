"""Stripe service — client setup, expandable fields, and webhook handling.

Responsible for:
- Configuring the process-wide stripe module once at app start
- Translating Stripe API failures into UpstreamError
- Normalizing "expandable" fields (id string vs. inlined object)
- Verifying incoming webhooks and dispatching to event handlers
- Idempotency via stripe_events table
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass

import stripe
from flask import current_app

from app.errors import ServiceError, UpstreamError, describe_error
from app.extensions import db
from app.models.stripe_event import StripeEvent

logger = logging.getLogger(__name__)


def init_stripe(app):
    """Configure the stripe module from app config.

    Called once from create_app(). Handlers never retry processor calls on
    their own, so the SDK's automatic network retries are switched off.
    """
    stripe.api_key = app.config.get("STRIPE_SECRET_KEY")
    if app.config.get("STRIPE_API_VERSION"):
        stripe.api_version = app.config["STRIPE_API_VERSION"]
    stripe.max_network_retries = 0


@contextmanager
def stripe_errors(action):
    """Re-raise Stripe API failures inside the block as UpstreamError.

    The original StripeError stays reachable as __cause__.
    """
    try:
        yield
    except stripe.StripeError as e:
        logger.error(f"Stripe {action} failed: {describe_error(e)}")
        raise UpstreamError(getattr(e, "user_message", None) or str(e) or None) from e


# ──────────────────────────────────────────────
# Expandable fields
# ──────────────────────────────────────────────

@dataclass(frozen=True)
class Reference:
    """An expandable field Stripe returned as a bare id."""

    id: str


@dataclass(frozen=True)
class Inlined:
    """An expandable field Stripe returned as the full object."""

    obj: object


def expandable(value):
    """Classify an expandable Stripe field.

    Returns Reference, Inlined, or None when the field is empty.
    """
    if value is None or value == "":
        return None
    if isinstance(value, str):
        return Reference(value)
    return Inlined(value)


def resolve(value, fetch):
    """Return the inlined object for an expandable field.

    ``fetch`` is called with the id when Stripe only gave us a reference,
    e.g. ``resolve(charge["balance_transaction"], stripe.BalanceTransaction.retrieve)``.
    """
    field = expandable(value)
    if field is None:
        return None
    if isinstance(field, Reference):
        return fetch(field.id)
    return field.obj


def object_id(value):
    """Id of an expandable field whether or not it was expanded."""
    field = expandable(value)
    if field is None:
        return None
    if isinstance(field, Reference):
        return field.id
    return field.obj.get("id")


# ──────────────────────────────────────────────
# Webhook Handling
# ──────────────────────────────────────────────

def verify_webhook_signature(payload, sig_header):
    """Verify Stripe webhook signature and construct the event.

    Returns the verified Stripe event object.
    Raises stripe.SignatureVerificationError on invalid signature.
    """
    webhook_secret = current_app.config["STRIPE_WEBHOOK_SECRET"]
    return stripe.Webhook.construct_event(payload, sig_header, webhook_secret)


def handle_webhook_event(event):
    """Process a verified Stripe webhook event.

    Idempotency: checks stripe_events table before processing.
    If the event was already processed, returns immediately.

    Returns (success: bool, message: str).
    """
    event_id = event["id"]
    event_type = event["type"]

    # --- Idempotency check ---
    existing = StripeEvent.query.filter_by(
        stripe_event_id=event_id
    ).first()
    if existing:
        logger.info(f"Duplicate webhook event {event_id}, skipping")
        return True, "already_processed"

    # --- Route to handler ---
    handlers = {
        "checkout.session.completed": _handle_checkout_completed,
        "checkout.session.async_payment_succeeded": _handle_checkout_completed,
        "account.updated": _handle_account_updated,
    }

    handler = handlers.get(event_type)
    if handler:
        try:
            handler(event)
        except Exception as e:
            logger.error(f"Error handling {event_type}: {e}", exc_info=True)
            db.session.rollback()
            return False, str(e)

    # --- Record event for idempotency ---
    stripe_event = StripeEvent(
        stripe_event_id=event_id,
        event_type=event_type,
    )
    db.session.add(stripe_event)
    db.session.commit()

    return True, "processed"


# ──────────────────────────────────────────────
# Event Handlers
# ──────────────────────────────────────────────

def _handle_checkout_completed(event):
    """Handle checkout.session.completed for one-time course payments.

    The event payload is only used to find the session and the buyer;
    finalize_checkout re-reads everything else from Stripe, exactly as the
    browser redirect path does. Either path may run first.
    """
    from app.services.checkout_service import finalize_checkout

    session = event["data"]["object"]
    if session.get("mode") != "payment":
        return
    if session.get("payment_status") != "paid":
        # Delayed payment methods finish via async_payment_succeeded
        logger.info(f"Checkout session {session.get('id')} not paid yet, waiting")
        return

    metadata = session.get("metadata") or {}
    uid = metadata.get("uid") or session.get("client_reference_id")
    if not uid:
        logger.warning(f"checkout.session.completed {session.get('id')} has no buyer uid")
        return

    try:
        result = finalize_checkout(uid, session["id"])
    except ServiceError as e:
        if e.status_code >= 500:
            raise
        # Business-rule rejection: redelivering the event won't change it
        logger.warning(f"Webhook finalize of {session['id']} rejected: {e.message}")
        return
    logger.info(
        f"Webhook granted course {result['courseId']} to {uid} "
        f"(session {session['id']})"
    )


def _handle_account_updated(event):
    """Handle account.updated — persist the connected account's onboarding verdict."""
    from app.services.account_service import record_onboarding_status
    from app.services.onboarding_service import derive_onboarded

    account = event["data"]["object"]
    account_id = account.get("id")
    if not account_id:
        return

    record_onboarding_status(account_id, derive_onboarded(account))
