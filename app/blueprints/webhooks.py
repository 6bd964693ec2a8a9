"""Webhooks blueprint — /stripe/webhooks

Stripe delivers checkout completions and connected-account updates here.
The signature is checked against the raw request body.
"""

import logging

from flask import Blueprint, jsonify, request

from app.services.stripe_service import handle_webhook_event, verify_webhook_signature

logger = logging.getLogger(__name__)

webhooks_bp = Blueprint("webhooks", __name__, url_prefix="/stripe")


@webhooks_bp.route("/webhooks", methods=["POST"])
def stripe_webhook():
    """Verify, then hand the event to handle_webhook_event.

    A 500 makes Stripe redeliver the event later; anything already
    handled is skipped on redelivery via the stripe_events table.
    """
    sig_header = request.headers.get("Stripe-Signature")
    if not sig_header:
        logger.warning("Webhook received without Stripe-Signature header")
        return jsonify({"error": "Missing signature"}), 400

    try:
        event = verify_webhook_signature(request.get_data(as_text=True), sig_header)
    except Exception as e:
        logger.warning(f"Webhook signature verification failed: {e}")
        return jsonify({"error": "Invalid signature"}), 400

    success, message = handle_webhook_event(event)
    if not success:
        logger.error(f"Webhook {event['id']} processing failed: {message}")
        return jsonify({"error": message}), 500

    return jsonify({"status": message}), 200
