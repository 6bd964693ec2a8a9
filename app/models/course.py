"""Course models.

- Course: a sellable (or free) course authored by a creator.
- Lesson: ordered content of a course (position is 0-based).

Price is stored in major currency units. When is_free is set the stored
price is ignored and the course is treated as costing zero.
"""

import uuid
from decimal import Decimal

from app.extensions import db


class Course(db.Model):
    __tablename__ = "courses"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    title = db.Column(db.String(255), nullable=False, default="")
    description = db.Column(db.Text, nullable=True)
    price = db.Column(db.Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    is_free = db.Column(db.Boolean, nullable=False, default=False)
    creator_uid = db.Column(
        db.String(128), db.ForeignKey("users.id"), nullable=True
    )
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    # --- Relationships ---
    creator = db.relationship("User", back_populates="courses")
    lessons = db.relationship(
        "Lesson",
        back_populates="course",
        order_by="Lesson.position",
        cascade="all, delete-orphan",
    )
    purchases = db.relationship(
        "Purchase", back_populates="course", lazy="dynamic"
    )

    @property
    def effective_price(self):
        """Price to charge, as a Decimal. Zero for free courses."""
        if self.is_free or self.price is None:
            return Decimal("0")
        return Decimal(self.price)

    @property
    def lesson_count(self):
        return len(self.lessons)

    def __repr__(self):
        return f"<Course {self.title!r}>"


class Lesson(db.Model):
    __tablename__ = "lessons"
    __table_args__ = (
        db.UniqueConstraint("course_id", "position", name="uq_lessons_course_position"),
    )

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    course_id = db.Column(
        db.String(36),
        db.ForeignKey("courses.id", ondelete="CASCADE"),
        nullable=False,
    )
    position = db.Column(db.Integer, nullable=False)
    title = db.Column(db.String(255), nullable=False, default="")
    body = db.Column(db.Text, nullable=True)

    course = db.relationship("Course", back_populates="lessons")

    def __repr__(self):
        return f"<Lesson {self.position}: {self.title!r}>"
