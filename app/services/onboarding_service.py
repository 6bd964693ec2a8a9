"""Onboarding service — derive a single "fully onboarded" verdict for a
connected account from Stripe's capability flags and requirement lists.

The verdict is a pure derivation; callers decide whether to persist it
(see account_service.record_onboarding_status). A failed Stripe lookup is
an error, never a "not onboarded" answer.
"""

import logging
from dataclasses import dataclass, field

import stripe

from app.services.stripe_service import stripe_errors

logger = logging.getLogger(__name__)


@dataclass
class OnboardingStatus:
    account_id: str
    onboarded: bool
    details_submitted: bool = False
    charges_enabled: bool = False
    payouts_enabled: bool = False
    currently_due: list = field(default_factory=list)
    future_currently_due: list = field(default_factory=list)
    disabled_reason: str = None

    def to_dict(self):
        return {
            "accountId": self.account_id,
            "onboarded": self.onboarded,
            "details_submitted": self.details_submitted,
            "charges_enabled": self.charges_enabled,
            "payouts_enabled": self.payouts_enabled,
            "currently_due": list(self.currently_due),
            "future_currently_due": list(self.future_currently_due),
            "disabled_reason": self.disabled_reason,
        }


def _requirements(account, key):
    return account.get(key) or {}


def status_from_account(account, account_id=None):
    """Build an OnboardingStatus from a Stripe Account object (or dict)."""
    requirements = _requirements(account, "requirements")
    future = _requirements(account, "future_requirements")

    details_submitted = account.get("details_submitted") is True
    charges_enabled = account.get("charges_enabled") is True
    payouts_enabled = account.get("payouts_enabled") is True
    currently_due = list(requirements.get("currently_due") or [])
    future_currently_due = list(future.get("currently_due") or [])
    disabled_reason = requirements.get("disabled_reason")

    onboarded = (
        details_submitted
        and not currently_due
        and not future_currently_due
        and charges_enabled
        and payouts_enabled
        and disabled_reason is None
    )

    return OnboardingStatus(
        account_id=account.get("id") or account_id,
        onboarded=onboarded,
        details_submitted=details_submitted,
        charges_enabled=charges_enabled,
        payouts_enabled=payouts_enabled,
        currently_due=currently_due,
        future_currently_due=future_currently_due,
        disabled_reason=disabled_reason,
    )


def derive_onboarded(account):
    """True only when every onboarding condition holds for the account."""
    return status_from_account(account).onboarded


def check_onboarded(account_id):
    """Fetch the account from Stripe and derive its onboarding status.

    Raises UpstreamError when the lookup fails (unknown account,
    network failure).
    """
    with stripe_errors("account lookup"):
        account = stripe.Account.retrieve(account_id)
    status = status_from_account(account, account_id)
    if not status.onboarded:
        logger.info(
            f"Account {account_id} not onboarded: "
            f"details_submitted={status.details_submitted} "
            f"due={status.currently_due} future_due={status.future_currently_due} "
            f"disabled_reason={status.disabled_reason}"
        )
    return status
