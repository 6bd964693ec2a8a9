"""Local development entry point.

Usage:
    python run.py

Reads .env (STRIPE_SECRET_KEY, STRIPE_WEBHOOK_SECRET, DATABASE_URL, ...)
before the app is built. Forward Stripe webhooks locally with:
    stripe listen --forward-to localhost:5001/stripe/webhooks
"""

from dotenv import load_dotenv

load_dotenv()  # Load .env before anything else

from app import create_app  # noqa: E402

app = create_app()

if __name__ == "__main__":
    app.run(debug=True, host="0.0.0.0", port=5001)
