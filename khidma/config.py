import os
from decimal import Decimal


def _flag(value, default="0"):
    return str(value if value is not None else default).lower() in ("1", "true", "yes")


def normalize_db_url(url: str) -> str:
    """Standardize postgres URLs on the psycopg v3 driver."""
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+psycopg://", 1)
    if url.startswith("postgresql://") and "+psycopg://" not in url:
        return url.replace("postgresql://", "postgresql+psycopg://", 1)
    return url


class Config:
    """Settings read from the environment when the app is created."""

    def __init__(self, environ=None):
        env = os.environ if environ is None else environ

        self.SECRET_KEY = env.get("SECRET_KEY", "dev-secret-key")
        self.JWT_SECRET_KEY = (
            env.get("KHIDMA_JWT_SECRET")  # preferred
            or env.get("JWT_SECRET")      # legacy fallback
            or "dev-jwt-secret"
        )
        self.JWT_ALGORITHM = "HS256"
        self.SQLALCHEMY_TRACK_MODIFICATIONS = False

        db_url = env.get("DATABASE_URL")
        self.SQLALCHEMY_DATABASE_URI = normalize_db_url(db_url) if db_url else None

        # Stripe
        self.STRIPE_SECRET_KEY = env.get("STRIPE_SECRET_KEY", "").strip()
        self.STRIPE_WEBHOOK_SECRET = env.get("STRIPE_WEBHOOK_SECRET")
        self.STRIPE_API_VERSION = env.get("STRIPE_API_VERSION") or None
        self.STRIPE_PRICES = {
            "house_worker": env.get("STRIPE_PRICE_HOUSE_WORKER", ""),
            "home_cook": env.get("STRIPE_PRICE_HOME_COOK", ""),
        }

        # Marketplace economics
        self.CURRENCY = env.get("KHIDMA_CURRENCY", "mad").lower()
        self.PLATFORM_FEE_PERCENT = Decimal(env.get("PLATFORM_FEE_PERCENT", "10"))
        self.TRIAL_PERIOD_DAYS = int(env.get("TRIAL_PERIOD_DAYS", 30))
        self.PUBLIC_SITE_URL = env.get("PUBLIC_SITE_URL", "https://khidma-saria.app").rstrip("/")

        # Jobs
        self.ORPHAN_ORDER_TTL_MINUTES = int(env.get("ORPHAN_ORDER_TTL_MINUTES", 60))
        self.REMINDER_WINDOW_DAYS = int(env.get("REMINDER_WINDOW_DAYS", 3))
        self.CRON_SECRET = env.get("CRON_SECRET")

        # Email
        self.SENDGRID_API_KEY = env.get("SENDGRID_API_KEY")
        self.SENDGRID_FROM_EMAIL = env.get("SENDGRID_FROM_EMAIL", "onboarding@khidma-saria.app")
        self.SENDGRID_FROM_NAME = env.get("SENDGRID_FROM_NAME", "خدمة سريعة")

        cors = env.get(
            "CORS_ALLOWED_ORIGINS",
            "https://khidma-saria.app,http://localhost:5173,http://localhost:3000",
        )
        self.CORS_ALLOWED_ORIGINS = [o.strip() for o in cors.split(",") if o.strip()]

        self.DIFFERENTIATED_ERRORS = _flag(env.get("KHIDMA_DIFFERENTIATED_ERRORS"))
        self.DB_AUTOCREATE = _flag(env.get("KHIDMA_DB_AUTOCREATE"))
        self.DB_MIGRATE_ON_START = _flag(env.get("KHIDMA_DB_MIGRATE_ON_START"), "true")
        self.TESTING = _flag(env.get("TESTING"))

    def as_dict(self):
        return {k: v for k, v in vars(self).items() if k.isupper()}
