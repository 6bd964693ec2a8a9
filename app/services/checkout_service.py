"""Checkout service — one-time course purchases through Stripe Checkout.

Responsible for:
- Pricing: course price to minor units and the platform's fee split
- Creating Checkout Sessions that route the course price to the creator's
  connected account and keep the platform fee as the application fee
- Finalizing completed sessions: re-read the session from Stripe, verify
  it, grant access, then (best effort) record Stripe's processing fee

A single checkout attempt moves through:

    Created -> PaidPendingFinalize -> Finalized
            -> Abandoned

Finalize can be re-run with the same session id any number of times; a
failed finalize is retried that way, never by opening a new session.

Rounding: every amount is rounded half-up (ROUND_HALF_UP) in both the
session builder and the finalizer's integrity check.
"""

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from urllib.parse import quote

import stripe
from flask import current_app

from app.errors import (
    CourseIsFree,
    CourseMisconfigured,
    CourseNotFound,
    CreatorNotOnboarded,
    IdentityMismatch,
    InvalidSession,
    MissingField,
    MissingPayment,
    PaymentNotCompleted,
    PriceTooLow,
    describe_error,
)
from app.extensions import db
from app.models.course import Course
from app.models.user import User
from app.services.purchase_service import grant_access, record_processing_fee
from app.services.stripe_service import object_id, resolve, stripe_errors
from app.services.url_service import build_url, normalize_origin

logger = logging.getLogger(__name__)

# Payment intent -> latest charge -> balance transaction, in one round trip
SESSION_EXPAND = ["payment_intent.latest_charge.balance_transaction"]


# ──────────────────────────────────────────────
# Pricing
# ──────────────────────────────────────────────

def _round_half_up(value):
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def to_minor_units(price):
    """Major currency units (e.g. 10.00) to integer cents, never negative."""
    return max(0, _round_half_up(Decimal(str(price)) * 100))


def platform_fee_for(base_amount, percent=None):
    """Platform commission on a base amount in cents."""
    if percent is None:
        percent = current_app.config["PLATFORM_FEE_PERCENT"]
    return _round_half_up(Decimal(base_amount) * Decimal(percent) / 100)


def expected_total(price, percent=None):
    """What the buyer pays for a course at this price: base + fee."""
    base = to_minor_units(price)
    return base + platform_fee_for(base, percent)


# ──────────────────────────────────────────────
# Session metadata
# ──────────────────────────────────────────────

def _as_int(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class CheckoutMetadata:
    """The context a session carries across the Stripe redirect.

    Written to both the session and its payment intent; the finalizer
    reads it back from whichever has it.
    """

    uid: str
    course_id: str
    creator_uid: str = None
    base_amount: int = None
    platform_fee: int = None
    currency: str = None

    def to_stripe(self):
        values = {
            "uid": self.uid,
            "courseId": self.course_id,
            "creatorUid": self.creator_uid,
            "baseAmount": self.base_amount,
            "platformFee": self.platform_fee,
            "currency": self.currency,
        }
        return {k: str(v) for k, v in values.items() if v is not None}

    @classmethod
    def recover(cls, session, payment_intent=None):
        """Read the metadata back, session first, then payment intent.

        The buyer id also falls back to the session's client_reference_id.
        Raises InvalidSession if the course id or buyer id can't be found.
        """
        sources = [
            session.get("metadata") or {},
            (payment_intent or {}).get("metadata") or {},
        ]

        def pick(key):
            for source in sources:
                value = source.get(key)
                if value:
                    return str(value)
            return None

        course_id = pick("courseId")
        if not course_id:
            raise InvalidSession("Session metadata missing courseId")
        uid = pick("uid") or session.get("client_reference_id")
        if not uid:
            raise InvalidSession("Session metadata missing uid")

        return cls(
            uid=uid,
            course_id=course_id,
            creator_uid=pick("creatorUid"),
            base_amount=_as_int(pick("baseAmount")),
            platform_fee=_as_int(pick("platformFee")),
            currency=pick("currency"),
        )


# ──────────────────────────────────────────────
# Start checkout
# ──────────────────────────────────────────────

def start_checkout(buyer_uid, course_id, request_origin=None):
    """Create a Stripe Checkout Session for a paid course.

    Two line items: the course at its price and the platform service fee.
    The course price is transferred to the creator's connected account and
    the fee is kept as the application fee. Nothing is written locally.

    Returns {"url", "id", "totalAmount"}.
    Raises a ServiceError for any business-rule rejection, UpstreamError
    on Stripe API failures.
    """
    if not buyer_uid:
        raise MissingField("uid")
    if not course_id:
        raise MissingField("courseId")

    course = db.session.get(Course, course_id)
    if course is None:
        raise CourseNotFound()
    if not course.creator_uid:
        raise CourseMisconfigured()
    if course.is_free or course.effective_price <= 0:
        raise CourseIsFree()

    creator = db.session.get(User, course.creator_uid)
    if creator is None or not creator.can_receive_payouts:
        raise CreatorNotOnboarded()

    config = current_app.config
    currency = config["CURRENCY"]
    fee_percent = config["PLATFORM_FEE_PERCENT"]

    base_amount = to_minor_units(course.effective_price)
    if base_amount < config["MIN_PRICE_CENTS"]:
        raise PriceTooLow(
            f"Minimum course price is {config['MIN_PRICE_CENTS'] / 100:.2f} "
            f"{currency.upper()}."
        )

    platform_fee = platform_fee_for(base_amount, fee_percent)
    total_amount = base_amount + platform_fee

    origin = normalize_origin(request_origin, config["FALLBACK_ORIGIN"])
    success_url = build_url(
        origin,
        f"/checkout/success?course={quote(course_id, safe='')}"
        f"&session_id={{CHECKOUT_SESSION_ID}}",
    )
    cancel_url = build_url(origin, "/?canceled=1")

    metadata = CheckoutMetadata(
        uid=buyer_uid,
        course_id=course_id,
        creator_uid=course.creator_uid,
        base_amount=base_amount,
        platform_fee=platform_fee,
        currency=currency,
    ).to_stripe()

    course_product = {"name": course.title or "Course"}
    if course.description:
        course_product["description"] = course.description[:500]

    with stripe_errors("checkout session create"):
        session = stripe.checkout.Session.create(
            mode="payment",
            success_url=success_url,
            cancel_url=cancel_url,
            customer_creation="always",
            client_reference_id=buyer_uid,
            line_items=[
                {
                    "quantity": 1,
                    "price_data": {
                        "currency": currency,
                        "unit_amount": base_amount,
                        "product_data": course_product,
                    },
                },
                {
                    "quantity": 1,
                    "price_data": {
                        "currency": currency,
                        "unit_amount": platform_fee,
                        "product_data": {
                            "name": f"Service fee ({fee_percent}%)",
                            "description": "Platform service fee",
                        },
                    },
                },
            ],
            payment_intent_data={
                "transfer_data": {"destination": creator.stripe_account_id},
                "application_fee_amount": platform_fee,
                "metadata": metadata,
            },
            metadata=metadata,
        )

    logger.info(
        f"Checkout session {session['id']} for course {course_id} by {buyer_uid}: "
        f"base={base_amount} fee={platform_fee} total={total_amount} {currency}"
    )
    return {"url": session["url"], "id": session["id"], "totalAmount": total_amount}


# ──────────────────────────────────────────────
# Finalize checkout
# ──────────────────────────────────────────────

def _check_amount(session, course, session_id):
    """Compare what Stripe charged with what the course costs today.

    Only logs: the price may have changed since the session was created,
    and Stripe's amount is what the buyer actually paid.
    """
    amount_total = session.get("amount_total")
    if amount_total is None:
        return
    expected = expected_total(course.effective_price)
    if expected != amount_total:
        logger.warning(
            f"Amount mismatch on finalize: expected {expected}, got {amount_total} "
            f"(course {course.id}, session {session_id})"
        )


def extract_processing_fee(payment_intent):
    """Stripe's own fee for the payment, in cents, or None.

    Walks payment intent -> latest charge -> balance transaction, fetching
    any link Stripe returned as a bare id. Failures are logged and yield
    None; the fee is reporting data only.
    """
    try:
        charge = resolve(payment_intent.get("latest_charge"), stripe.Charge.retrieve)
        if charge is None:
            return None
        balance_txn = resolve(
            charge.get("balance_transaction"), stripe.BalanceTransaction.retrieve
        )
        if balance_txn is None:
            # Not settled yet (e.g. delayed payment methods)
            return None
        return _as_int(balance_txn.get("fee"))
    except Exception as e:
        logger.warning(
            f"Processing fee lookup failed for {payment_intent.get('id')}: "
            f"{describe_error(e)}"
        )
        return None


def finalize_checkout(uid, session_id):
    """Verify a completed Checkout Session and grant the buyer access.

    Phase 1 (must succeed): re-read the session from Stripe, check mode,
    payment and buyer identity, then upsert the purchase record.
    Phase 2 (best effort): look up Stripe's processing fee and store it.
    A phase 2 failure never changes the outcome.

    Returns {"ok", "courseId", "customerId", "applicationFeeCents",
    "processingFeeCents"}.
    """
    if not uid:
        raise MissingField("uid")
    if not session_id:
        raise MissingField("sessionId")

    # --- Phase 1: verify against Stripe, grant access ---
    with stripe_errors("checkout session lookup"):
        session = stripe.checkout.Session.retrieve(session_id, expand=SESSION_EXPAND)
    if not session or session.get("mode") != "payment":
        raise InvalidSession()

    with stripe_errors("payment intent lookup"):
        payment_intent = resolve(session.get("payment_intent"), stripe.PaymentIntent.retrieve)
    if not payment_intent:
        raise MissingPayment()

    paid = (
        session.get("payment_status") == "paid"
        or payment_intent.get("status") == "succeeded"
    )
    if not paid:
        logger.info(f"Finalize for unpaid session {session_id} by {uid}")
        raise PaymentNotCompleted()

    metadata = CheckoutMetadata.recover(session, payment_intent)
    if metadata.uid != uid:
        logger.warning(
            f"Finalize identity mismatch: caller {uid}, session {session_id} "
            f"belongs to {metadata.uid}"
        )
        raise IdentityMismatch()

    course = db.session.get(Course, metadata.course_id)
    if course is None:
        # Paid but ungrantable: leave enough in the log to refund or re-grant by hand
        logger.error(
            f"Paid session {session_id} references missing course {metadata.course_id}: "
            f"buyer={uid} payment_intent={payment_intent.get('id')} "
            f"amount={session.get('amount_total')} {session.get('currency')}"
        )
        raise CourseNotFound()
    _check_amount(session, course, session_id)

    application_fee = payment_intent.get("application_fee_amount")
    application_fee_cents = application_fee if isinstance(application_fee, int) else 0
    customer_id = object_id(session.get("customer"))
    currency = session.get("currency") or metadata.currency or current_app.config["CURRENCY"]

    grant_access(
        uid,
        metadata.course_id,
        amount_cents=session.get("amount_total"),
        currency=currency.upper(),
        application_fee_cents=application_fee_cents,
        stripe_session_id=session_id,
        stripe_payment_intent_id=payment_intent.get("id"),
        stripe_customer_id=customer_id,
    )

    # --- Phase 2: reconciliation data ---
    processing_fee_cents = extract_processing_fee(payment_intent)
    if processing_fee_cents is not None:
        try:
            record_processing_fee(uid, metadata.course_id, session_id, processing_fee_cents)
        except Exception as e:
            db.session.rollback()
            logger.warning(
                f"Could not store processing fee for session {session_id}: {describe_error(e)}"
            )

    return {
        "ok": True,
        "courseId": metadata.course_id,
        "customerId": customer_id,
        "applicationFeeCents": application_fee_cents,
        "processingFeeCents": processing_fee_cents,
    }
