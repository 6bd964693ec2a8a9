import os
import logging

import click
from flask import Flask, jsonify, request

from app.config import config_by_name
from app.extensions import db, migrate, limiter


def create_app(config_name=None):
    """Application factory."""

    if config_name is None:
        config_name = os.environ.get("FLASK_ENV", "development")

    app = Flask(__name__)
    app.config.from_object(config_by_name[config_name])

    # --- Validate required env vars (skip in testing) ---
    if config_name != "testing":
        try:
            config_by_name[config_name].validate()
        except RuntimeError as e:
            app.logger.warning(f"Config validation: {e}")

    # --- Init extensions ---
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)

    from app.services.stripe_service import init_stripe
    init_stripe(app)

    # --- Import models so Alembic can discover them ---
    with app.app_context():
        from app import models  # noqa: F401

    # --- Register blueprints ---
    from app.blueprints.accounts import accounts_bp
    from app.blueprints.checkout import checkout_bp
    from app.blueprints.courses import courses_bp
    from app.blueprints.webhooks import webhooks_bp

    app.register_blueprint(accounts_bp)
    app.register_blueprint(checkout_bp)
    app.register_blueprint(courses_bp)
    app.register_blueprint(webhooks_bp)

    # --- Health check ---
    @app.route("/healthz")
    def healthz():
        return jsonify({"ok": True})

    # --- Error handlers (JSON everywhere, same shape as the API) ---
    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({"error": "Method not allowed"}), 405

    @app.errorhandler(429)
    def rate_limited(e):
        return jsonify({"error": "Too many requests. Please slow down."}), 429

    @app.errorhandler(500)
    def server_error(e):
        return jsonify({"error": "Internal server error"}), 500

    # --- CLI commands ---
    register_cli(app)

    # --- Security + CORS headers ---
    @app.after_request
    def add_response_headers(response):
        """Add security headers to every response, CORS to API responses."""
        # Prevent MIME type sniffing
        response.headers["X-Content-Type-Options"] = "nosniff"
        # Prevent clickjacking
        response.headers["X-Frame-Options"] = "DENY"
        # Control referrer information
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        # JSON only, nothing to load
        response.headers["Content-Security-Policy"] = (
            "default-src 'none'; frame-ancestors 'none';"
        )
        # Strict Transport Security (only in production)
        if not app.debug:
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )

        # The browser client calls the API cross-origin
        if request.path.startswith("/api/"):
            response.headers["Access-Control-Allow-Origin"] = "*"
            response.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
            response.headers["Access-Control-Allow-Headers"] = "Content-Type"
        return response

    # --- Logging ---
    if not app.debug:
        logging.basicConfig(level=logging.INFO)

    return app


def register_cli(app):
    """Register custom CLI commands with the Flask app."""

    @app.cli.command("seed-demo")
    @click.option("--creator-uid", default="demo-creator", help="Creator uid")
    @click.option("--buyer-uid", default="demo-buyer", help="Buyer uid")
    @click.option("--account-id", default=None, help="Existing connected account for the creator")
    def seed_demo(creator_uid, buyer_uid, account_id):
        """Create a creator, a buyer and a 10.00 course with three lessons.

        Pass --account-id to attach an already-onboarded Stripe test account
        to the creator; the creator is then marked onboarded so checkout can
        be exercised end to end.

        Usage:
            flask seed-demo
            flask seed-demo --account-id acct_123
        """
        from decimal import Decimal

        from app.models.course import Course, Lesson
        from app.models.user import User

        # --- 1. Creator ---
        creator = db.session.get(User, creator_uid)
        if creator:
            click.echo(f"Creator already exists: {creator_uid}")
        else:
            creator = User(
                id=creator_uid,
                display_name="Demo Creator",
                email="creator@example.com",
            )
            db.session.add(creator)
            click.echo(f"Created creator: {creator_uid}")
        if account_id:
            creator.stripe_account_id = account_id
            creator.stripe_onboarded = True

        # --- 2. Buyer ---
        if db.session.get(User, buyer_uid) is None:
            db.session.add(User(
                id=buyer_uid,
                display_name="Demo Buyer",
                email="buyer@example.com",
            ))
            click.echo(f"Created buyer: {buyer_uid}")

        # --- 3. Course ---
        course = Course(
            title="Intro to Sourdough",
            description="Starter, dough, bake.",
            price=Decimal("10.00"),
            is_free=False,
            creator_uid=creator_uid,
            lessons=[
                Lesson(position=0, title="Your starter", body="Flour and water."),
                Lesson(position=1, title="The dough", body="Mix, rest, fold."),
                Lesson(position=2, title="The bake", body="Hot oven, steam."),
            ],
        )
        db.session.add(course)
        db.session.commit()

        click.echo("")
        click.echo("=" * 60)
        click.echo("Demo data created")
        click.echo("=" * 60)
        click.echo(f"  Creator:  {creator_uid} (account: {creator.stripe_account_id or 'none'})")
        click.echo(f"  Buyer:    {buyer_uid}")
        click.echo(f"  Course:   {course.title} (id: {course.id}, price: {course.price})")
        click.echo("=" * 60)

    @app.cli.command("sync-onboarding")
    @click.option("--uid", required=True, help="Creator uid")
    def sync_onboarding(uid):
        """Ask Stripe for a creator's onboarding state and store the verdict.

        Usage:
            flask sync-onboarding --uid demo-creator
        """
        from app.errors import UpstreamError
        from app.models.user import User
        from app.services.account_service import record_onboarding_status
        from app.services.onboarding_service import check_onboarded

        user = db.session.get(User, uid)
        if user is None:
            click.echo(f"ERROR: no user {uid}")
            return
        if not user.stripe_account_id:
            click.echo(f"User {uid} has no Stripe account yet.")
            return

        try:
            status = check_onboarded(user.stripe_account_id)
        except UpstreamError as e:
            click.echo(f"ERROR: Stripe lookup failed: {e}")
            return

        record_onboarding_status(status.account_id, status.onboarded, uid=uid)
        click.echo(f"Account:            {status.account_id}")
        click.echo(f"  onboarded:        {status.onboarded}")
        click.echo(f"  details_submitted:{status.details_submitted}")
        click.echo(f"  charges_enabled:  {status.charges_enabled}")
        click.echo(f"  payouts_enabled:  {status.payouts_enabled}")
        if status.currently_due:
            click.echo(f"  currently_due:    {', '.join(status.currently_due)}")
        if status.future_currently_due:
            click.echo(f"  future due:       {', '.join(status.future_currently_due)}")
        if status.disabled_reason:
            click.echo(f"  disabled_reason:  {status.disabled_reason}")
