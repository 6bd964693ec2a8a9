"""Error taxonomy for the API handlers.

Every business-rule rejection raised by a service is a ServiceError carrying
the HTTP status it maps to. Anything else reaching a handler (Stripe API
errors, database errors) is an upstream fault and becomes a 500.

    ValidationError     400  missing / malformed input
    NotFoundError       404  user, course or payee account absent
    StateError          400  business rule rejected the request
    AuthorizationError  403  caller may not act on this resource
    UpstreamError       500  processor or store failure
"""

import json


class ServiceError(Exception):
    status_code = 400
    default_message = "Request failed"

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(ServiceError):
    status_code = 400


class NotFoundError(ServiceError):
    status_code = 404


class StateError(ServiceError):
    status_code = 400


class AuthorizationError(ServiceError):
    status_code = 403


class UpstreamError(ServiceError):
    status_code = 500
    default_message = "Upstream service error"


# --- Validation ---

class MissingField(ValidationError):
    def __init__(self, *fields):
        self.fields = fields
        super().__init__(f"Missing {' or '.join(fields)}")


# --- Not found ---

class UserNotFound(NotFoundError):
    default_message = "User not found"


class CourseNotFound(NotFoundError):
    default_message = "Course not found"


class NoAccountFound(NotFoundError):
    default_message = "No Stripe account found"


# --- State ---

class CourseMisconfigured(StateError):
    default_message = "Course missing creatorUid"


class CourseIsFree(StateError):
    default_message = "Course is free"


class CreatorNotOnboarded(StateError):
    default_message = "Creator is not onboarded to Stripe"


class PriceTooLow(StateError):
    default_message = "Course price is below the minimum"


class InvalidSession(StateError):
    default_message = "Invalid session"


class MissingPayment(StateError):
    default_message = "Session has no payment attached"


class PaymentNotCompleted(StateError):
    default_message = "Payment not completed"


class IdentityMismatch(StateError):
    default_message = "Metadata missing or UID mismatch"


# --- Authorization ---

class AccountMismatch(AuthorizationError):
    default_message = "Account mismatch"


class AccessDenied(AuthorizationError):
    default_message = "You do not have access to this course"


def describe_error(err):
    """Serialize an exception for logging.

    Includes the Stripe-specific attributes (code, http status, request id)
    when present so a failed processor call can be traced in the dashboard.
    """
    details = {"type": type(err).__name__, "message": str(err)}
    for attr in ("code", "http_status", "request_id", "user_message"):
        value = getattr(err, attr, None)
        if value is not None:
            details[attr] = value
    return json.dumps(details, default=str)
