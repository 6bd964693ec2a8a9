import os


class Config:
    """Base configuration. Shared across all environments."""

    # --- Required ---
    SECRET_KEY = os.environ.get("SECRET_KEY")

    # Handle DATABASE_URL: some PaaS providers (Railway, Heroku) use
    # "postgres://" which SQLAlchemy 1.4+ doesn't accept.
    _db_url = os.environ.get("DATABASE_URL", "")
    if _db_url.startswith("postgres://"):
        _db_url = _db_url.replace("postgres://", "postgresql://", 1)
    SQLALCHEMY_DATABASE_URI = _db_url or None

    # --- Stripe ---
    STRIPE_SECRET_KEY = os.environ.get("STRIPE_SECRET_KEY")
    STRIPE_WEBHOOK_SECRET = os.environ.get("STRIPE_WEBHOOK_SECRET")
    STRIPE_API_VERSION = os.environ.get("STRIPE_API_VERSION")  # None = account default

    # --- Origins ---
    # Used when the caller's Origin header is missing or unparseable.
    FALLBACK_ORIGIN = os.environ.get("FALLBACK_ORIGIN", "http://localhost:5173")

    # --- Connected account prefill ---
    PLATFORM_URL = os.environ.get("PLATFORM_URL", "https://learnitnow.net")
    PLATFORM_PRODUCT_DESCRIPTION = os.environ.get(
        "PLATFORM_PRODUCT_DESCRIPTION", "Online courses sold on Learn It Now"
    )
    PLATFORM_MCC = os.environ.get("PLATFORM_MCC", "8299")  # schools & educational services

    # --- Pricing ---
    CURRENCY = os.environ.get("CURRENCY", "eur")
    PLATFORM_FEE_PERCENT = int(os.environ.get("PLATFORM_FEE_PERCENT", 30))
    MIN_PRICE_CENTS = int(os.environ.get("MIN_PRICE_CENTS", 100))  # 1.00

    # --- Rate limits ---
    CHECKOUT_RATE_LIMIT = os.environ.get("CHECKOUT_RATE_LIMIT", "30 per minute")
    ACCOUNT_RATE_LIMIT = os.environ.get("ACCOUNT_RATE_LIMIT", "10 per minute")

    # --- SQLAlchemy ---
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_recycle": 300,
    }

    JSON_SORT_KEYS = False

    @staticmethod
    def validate():
        """Fail fast if required env vars are missing."""
        required = [
            "SECRET_KEY",
            "DATABASE_URL",
            "STRIPE_SECRET_KEY",
            "STRIPE_WEBHOOK_SECRET",
        ]
        missing = [v for v in required if not os.environ.get(v)]
        if missing:
            raise RuntimeError(
                f"Missing required environment variables: {', '.join(missing)}"
            )


class DevConfig(Config):
    """Local development."""

    DEBUG = True
    SQLALCHEMY_DATABASE_URI = Config.SQLALCHEMY_DATABASE_URI or "sqlite:///dev.db"


class TestConfig(Config):
    """Testing — in-memory SQLite, fake Stripe keys."""

    TESTING = True
    DEBUG = True
    SECRET_KEY = "test-secret-key-not-for-production"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    STRIPE_SECRET_KEY = "sk_test_fake"
    STRIPE_WEBHOOK_SECRET = "whsec_test_fake"
    STRIPE_API_VERSION = None
    FALLBACK_ORIGIN = "http://localhost:5173"
    PLATFORM_URL = "https://learnitnow.net"
    CURRENCY = "eur"
    PLATFORM_FEE_PERCENT = 30
    MIN_PRICE_CENTS = 100
    RATELIMIT_ENABLED = False  # disable rate limiting in tests

    @staticmethod
    def validate():
        """Skip validation in test mode — everything is hardcoded."""
        pass


class ProdConfig(Config):
    """Production."""

    DEBUG = False


config_by_name = {
    "development": DevConfig,
    "production": ProdConfig,
    "testing": TestConfig,
}
