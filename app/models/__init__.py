# Models package — import all models here so Alembic can discover them.

from app.models.user import User  # noqa: F401
from app.models.course import Course, Lesson  # noqa: F401
from app.models.purchase import Purchase  # noqa: F401
from app.models.stripe_event import StripeEvent  # noqa: F401
