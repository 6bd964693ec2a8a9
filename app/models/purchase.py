"""Purchase model.

One row per (buyer, course). The row's existence is the only thing that
grants access to course content. Written by the checkout finalizer, then
touched by progress tracking as the buyer moves through lessons.

Amount columns are integer minor units (cents) as reported by Stripe.
"""

from app.extensions import db


class Purchase(db.Model):
    __tablename__ = "purchases"
    __table_args__ = (
        db.Index("ix_purchases_user_acquired", "user_id", "acquired_at"),
    )

    user_id = db.Column(
        db.String(128), db.ForeignKey("users.id"), primary_key=True
    )
    course_id = db.Column(
        db.String(36), db.ForeignKey("courses.id"), primary_key=True
    )
    acquired_at = db.Column(db.DateTime(timezone=True), nullable=False)
    current_lesson_index = db.Column(db.Integer, nullable=False, default=0)

    # --- Payment bookkeeping (from Stripe, never from the client) ---
    amount_cents = db.Column(db.Integer, nullable=True)  # buyer paid, course + fee
    currency = db.Column(db.String(3), nullable=True)  # e.g. "EUR"
    application_fee_cents = db.Column(db.Integer, nullable=True)  # platform's cut
    processing_fee_cents = db.Column(db.Integer, nullable=True)  # Stripe's cut
    stripe_session_id = db.Column(db.String(255), nullable=True)
    stripe_payment_intent_id = db.Column(db.String(255), nullable=True)
    stripe_customer_id = db.Column(db.String(255), nullable=True)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    # --- Relationships ---
    user = db.relationship("User", back_populates="purchases")
    course = db.relationship("Course", back_populates="purchases")

    @property
    def creator_gross_cents(self):
        """What the creator receives before their own Stripe fees."""
        if self.amount_cents is None or self.application_fee_cents is None:
            return None
        return self.amount_cents - self.application_fee_cents

    @property
    def platform_net_cents(self):
        """Platform fee minus Stripe's processing fee, floored at zero."""
        if self.application_fee_cents is None or self.processing_fee_cents is None:
            return None
        return max(0, self.application_fee_cents - self.processing_fee_cents)

    def to_dict(self):
        return {
            "courseId": self.course_id,
            "acquiredAt": self.acquired_at.isoformat() if self.acquired_at else None,
            "currentLessonIndex": self.current_lesson_index,
            "amountCents": self.amount_cents,
            "currency": self.currency,
            "platformFeeCents": self.application_fee_cents,
            "processingFeeCents": self.processing_fee_cents,
            "creatorGrossCents": self.creator_gross_cents,
            "platformNetCents": self.platform_net_cents,
        }

    def __repr__(self):
        return f"<Purchase {self.user_id} -> {self.course_id}>"
