import logging
import os
from datetime import timedelta

from dotenv import load_dotenv

# Load .env file
load_dotenv()


def env(name, default=None):
    """Reads a FLYNEST_-prefixed environment variable."""
    return os.getenv(f"FLYNEST_{name}", default)


def env_bool(name, default="false"):
    return env(name, default).lower() == "true"


class Config:
    # === Database ===
    SQLALCHEMY_DATABASE_URI = env("DATABASE_URL", "sqlite:///flynest.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # === Auth ===
    JWT_SECRET_KEY = env("JWT_SECRET_KEY", "flynest-dev-secret-change-me-in-production")
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(hours=int(env("JWT_ACCESS_TOKEN_HOURS", "12")))
    JWT_REFRESH_TOKEN_EXPIRES = timedelta(days=int(env("JWT_REFRESH_TOKEN_DAYS", "7")))
    BCRYPT_LOG_ROUNDS = int(env("BCRYPT_LOG_ROUNDS", "12"))

    # === Payment simulator ===
    PAYMENT_SUCCESS_RATE = float(env("PAYMENT_SUCCESS_RATE", "0.9"))
    PAYMENT_DELAY_SECONDS = float(env("PAYMENT_DELAY_SECONDS", "3.0"))
    PAYMENT_CURRENCY = env("PAYMENT_CURRENCY", "INR")
    RECEIPT_BASE_URL = env("RECEIPT_BASE_URL", "https://receipts.flynest.local/")

    # === Frontend origins ===
    CORS_ORIGINS = env(
        "CORS_ORIGINS",
        "http://localhost:5173,http://localhost:5174,http://localhost:3000,http://localhost:4173",
    ).split(",")

    # === Seed admin ===
    ADMIN_EMAIL = env("ADMIN_EMAIL", "admin@flynest.in")
    ADMIN_PASSWORD = env("ADMIN_PASSWORD", "admin123")

    # === Runtime ===
    DEBUG = env_bool("DEBUG")
    PORT = int(env("PORT", "5000"))
    LOG_LEVEL = env("LOG_LEVEL", "INFO").upper()


# === Logging Configuration ===
def setup_logging(level=None):
    """Configure logging for the application"""
    logging.basicConfig(
        level=level or Config.LOG_LEVEL,
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        handlers=[logging.StreamHandler()]
    )