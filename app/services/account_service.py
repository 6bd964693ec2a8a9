"""Account service — Stripe Connect payee accounts for course creators.

Responsible for:
- Creating (or refreshing) a creator's Express connected account
- Issuing onboarding links (collect only what is currently due)
- Issuing Express dashboard login links
- Persisting the onboarding verdict on the creator's profile

Exactly one connected account exists per user: the stored
stripe_account_id is checked before any create call.
"""

import logging

import stripe
from flask import current_app

from app.errors import AccountMismatch, MissingField, NoAccountFound, UserNotFound
from app.extensions import db
from app.models.user import User
from app.services.stripe_service import stripe_errors
from app.services.url_service import build_url, normalize_origin

logger = logging.getLogger(__name__)


def split_name(display_name):
    """Split a full name into (first_name, last_name).

    The last whitespace-separated token is the last name. A single token
    yields no last name.
    """
    if not display_name or not display_name.strip():
        return None, None
    parts = display_name.split()
    if len(parts) == 1:
        return parts[0], None
    return " ".join(parts[:-1]), parts[-1]


def _account_params(user):
    """Identity + business profile prefill for create and update calls."""
    first_name, last_name = split_name(user.display_name)
    individual = {"first_name": first_name, "last_name": last_name, "email": user.email}
    return {
        "business_type": "individual",
        "email": user.email,
        "individual": {k: v for k, v in individual.items() if v},
        "business_profile": {
            "url": current_app.config["PLATFORM_URL"],
            "product_description": current_app.config["PLATFORM_PRODUCT_DESCRIPTION"],
            "mcc": current_app.config["PLATFORM_MCC"],
        },
        "capabilities": {
            "card_payments": {"requested": True},
            "transfers": {"requested": True},
        },
    }


def create_or_update_payee_account(uid):
    """Create the user's Express account, or refresh it if one exists.

    Returns the connected account id.
    Raises UserNotFound if there is no profile for uid.
    Raises UpstreamError on Stripe API failures (nothing is persisted then).
    """
    user = db.session.get(User, uid)
    if user is None:
        raise UserNotFound()

    params = _account_params(user)

    if user.stripe_account_id:
        with stripe_errors("account update"):
            stripe.Account.modify(user.stripe_account_id, **params)
        logger.info(f"Updated Stripe account {user.stripe_account_id} for user {uid}")
        return user.stripe_account_id

    with stripe_errors("account create"):
        account = stripe.Account.create(type="express", metadata={"uid": uid}, **params)
    user.stripe_account_id = account["id"]
    user.stripe_onboarded = False
    db.session.commit()
    logger.info(f"Created Stripe account {account['id']} for user {uid}")
    return account["id"]


def resolve_account_id(uid=None, account_id=None):
    """Pick the connected account for a request.

    An explicit account_id wins; otherwise the user's stored one is used.
    """
    if not uid and not account_id:
        raise MissingField("uid", "accountId")
    if account_id:
        return account_id

    user = db.session.get(User, uid)
    if user is None or not user.stripe_account_id:
        raise NoAccountFound()
    return user.stripe_account_id


def create_onboarding_link(account_id=None, uid=None, request_origin=None):
    """Create a single-use onboarding link for the connected account.

    Stripe sends the creator to /return/<id> when done and /refresh/<id>
    when the link expired; the refresh page simply asks for a new link.

    Returns {"url", "expires_at"}.
    """
    account_id = resolve_account_id(uid=uid, account_id=account_id)

    origin = normalize_origin(request_origin, current_app.config["FALLBACK_ORIGIN"])
    with stripe_errors("onboarding link"):
        link = stripe.AccountLink.create(
            account=account_id,
            type="account_onboarding",
            collect="currently_due",
            return_url=build_url(origin, f"/return/{account_id}"),
            refresh_url=build_url(origin, f"/refresh/{account_id}"),
        )
    return {"url": link["url"], "expires_at": link["expires_at"]}


def create_dashboard_login_link(uid=None, account_id=None):
    """Create an Express dashboard login link.

    When the caller names both a user and an account, the account must be
    the one stored on that user's profile.

    Returns {"url"}.
    """
    if uid and account_id:
        user = db.session.get(User, uid)
        stored = user.stripe_account_id if user else None
        if stored != account_id:
            logger.warning(
                f"Login link refused: user {uid} asked for {account_id}, owns {stored}"
            )
            raise AccountMismatch()

    account_id = resolve_account_id(uid=uid, account_id=account_id)
    with stripe_errors("login link"):
        link = stripe.Account.create_login_link(account_id)
    return {"url": link["url"]}


def record_onboarding_status(account_id, onboarded, uid=None):
    """Persist an onboarding verdict on the profile owning account_id.

    If uid is given, the profile must be that user's. Returns the updated
    User, or None when no matching profile exists.
    """
    query = User.query.filter_by(stripe_account_id=account_id)
    if uid:
        query = query.filter_by(id=uid)
    user = query.first()
    if user is None:
        logger.info(f"No profile owns Stripe account {account_id}, verdict not stored")
        return None

    if user.stripe_onboarded != bool(onboarded):
        user.stripe_onboarded = bool(onboarded)
        db.session.commit()
        logger.info(f"User {user.id} stripe_onboarded -> {user.stripe_onboarded}")
    return user
