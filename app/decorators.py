"""
Custom route decorators for the JSON API.

- json_endpoint: runs a view that returns a dict (or (dict, status)) and
  maps failures to the uniform {"error": "..."} shape:
    ServiceError subclasses  -> their own status (400 / 403 / 404)
    anything else            -> 500, logged with the operation name
"""

import logging
from functools import wraps

from flask import jsonify

from app.errors import ServiceError, describe_error
from app.extensions import db

logger = logging.getLogger(__name__)


def error_response(message, status_code):
    return jsonify({"error": message}), status_code


def json_endpoint(operation):
    """Wrap an API view; ``operation`` names it in error logs."""

    def decorator(f):
        @wraps(f)
        def decorated(*args, **kwargs):
            try:
                result = f(*args, **kwargs)
            except ServiceError as e:
                if e.status_code >= 500:
                    db.session.rollback()
                    logger.error(f"{operation} failed: {describe_error(e)}")
                else:
                    logger.info(f"{operation} rejected ({e.status_code}): {e.message}")
                return error_response(e.message, e.status_code)
            except Exception as e:
                db.session.rollback()
                logger.error(f"{operation} failed: {describe_error(e)}", exc_info=True)
                return error_response(getattr(e, "user_message", None) or str(e) or "Unknown error", 500)

            if isinstance(result, tuple):
                body, status_code = result
                return jsonify(body), status_code
            return jsonify(result)

        return decorated

    return decorator
