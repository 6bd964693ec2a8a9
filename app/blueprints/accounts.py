"""Accounts blueprint — /api/accounts/*

Stripe Connect payee accounts for course creators.

Routes:
- POST /api/accounts             — create (or refresh) the creator's Express account
- POST /api/accounts/link        — onboarding link (also used when a link expired)
- POST /api/accounts/login-link  — Express dashboard login link
- POST /api/accounts/status      — onboarding verdict, persisted on the profile
"""

import logging

from flask import Blueprint, current_app, request

from app.decorators import json_endpoint
from app.errors import MissingField
from app.extensions import limiter
from app.services.account_service import (
    create_dashboard_login_link,
    create_onboarding_link,
    create_or_update_payee_account,
    record_onboarding_status,
    resolve_account_id,
)
from app.services.onboarding_service import check_onboarded

logger = logging.getLogger(__name__)

accounts_bp = Blueprint("accounts", __name__, url_prefix="/api/accounts")


def _payload():
    """JSON body as a dict of stripped, non-empty string fields."""
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return {}
    return {
        k: v.strip() for k, v in data.items()
        if isinstance(v, str) and v.strip()
    }


@accounts_bp.route("", methods=["POST"])
@limiter.limit(lambda: current_app.config["ACCOUNT_RATE_LIMIT"])
@json_endpoint("createPayeeAccount")
def create_account():
    """Create the caller's connected account, or refresh its identity fields.

    Body: { uid }
    Returns: { accountId }
    """
    data = _payload()
    uid = data.get("uid")
    if not uid:
        raise MissingField("uid")

    account_id = create_or_update_payee_account(uid)
    return {"accountId": account_id}


@accounts_bp.route("/link", methods=["POST"])
@json_endpoint("createOnboardingLink")
def onboarding_link():
    """Create an onboarding link for an account (by id, or the user's own).

    Body: { accountId?, uid?, origin? }
    Returns: { url, expires_at }
    """
    data = _payload()
    return create_onboarding_link(
        account_id=data.get("accountId"),
        uid=data.get("uid"),
        request_origin=data.get("origin") or request.headers.get("Origin"),
    )


@accounts_bp.route("/login-link", methods=["POST"])
@json_endpoint("createDashboardLoginLink")
def login_link():
    """Create an Express dashboard login link.

    Body: { uid?, accountId? }
    Returns: { url }
    """
    data = _payload()
    return create_dashboard_login_link(
        uid=data.get("uid"),
        account_id=data.get("accountId"),
    )


@accounts_bp.route("/status", methods=["POST"])
@json_endpoint("checkOnboardingStatus")
def onboarding_status():
    """Check an account's onboarding state with Stripe.

    When a uid is supplied the verdict is stored on that user's profile
    (only if the account is the one recorded there).

    Body: { uid?, accountId? }
    Returns: { accountId, onboarded, details_submitted, charges_enabled,
               payouts_enabled, currently_due, ... }
    """
    data = _payload()
    uid = data.get("uid")
    account_id = resolve_account_id(uid=uid, account_id=data.get("accountId"))

    status = check_onboarded(account_id)
    if uid:
        record_onboarding_status(account_id, status.onboarded, uid=uid)

    return status.to_dict()
