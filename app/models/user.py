"""User profile model.

One row per signed-in principal. The primary key is the identity
provider's opaque uid; profiles are created on first sign-in.

Payout fields:
- stripe_account_id: the creator's connected (Express) account, once created.
- stripe_onboarded: last persisted onboarding verdict for that account.
  Can never be true while stripe_account_id is null (CHECK constraint).
"""

from app.extensions import db


class User(db.Model):
    __tablename__ = "users"
    __table_args__ = (
        db.CheckConstraint(
            "NOT stripe_onboarded OR stripe_account_id IS NOT NULL",
            name="ck_users_onboarded_requires_account",
        ),
    )

    id = db.Column(db.String(128), primary_key=True)  # identity provider uid
    display_name = db.Column(db.String(255))
    email = db.Column(db.String(255))
    avatar_url = db.Column(db.String(1024))
    stripe_account_id = db.Column(db.String(255), unique=True, nullable=True)
    stripe_onboarded = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    # --- Relationships ---
    courses = db.relationship(
        "Course", back_populates="creator", lazy="dynamic"
    )
    purchases = db.relationship(
        "Purchase", back_populates="user", lazy="dynamic"
    )

    @property
    def can_receive_payouts(self):
        """Both halves of the payout path are in place."""
        return bool(self.stripe_account_id) and bool(self.stripe_onboarded)

    def __repr__(self):
        return f"<User {self.id}>"
