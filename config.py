from __future__ import annotations
import os
from pathlib import Path

class BaseConfig:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")
    BASE_DIR = Path(__file__).resolve().parent
    # SQLite file in project directory
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", f"sqlite:///{BASE_DIR / 'hostel.db'}")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # одноразовые коды и токены сброса пароля
    OTP_LENGTH = 6
    OTP_TTL_MINUTES = 10
    RESET_TOKEN_TTL_MINUTES = 15
    CREDENTIAL_SWEEP_SECONDS = 300
    # отдавать выданный код/токен в ответе API (только dev/test)
    EXPOSE_CREDENTIALS = False

    ADMIN_SIGNUP_KEY = os.getenv("ADMIN_KEY")

    AUTH_RL_MAX = 5
    AUTH_RL_WINDOW = 300  # 5 минут

    SEED_TEST_DATA = False
    DEFAULT_ADMINS: list[dict] = []

class DevConfig(BaseConfig):
    DEBUG = True
    SEED_TEST_DATA = True
    EXPOSE_CREDENTIALS = True
    ADMIN_SIGNUP_KEY = os.getenv("ADMIN_KEY", "dev-admin-key")
    DEFAULT_ADMINS = [
        {"username": "admin", "password": "pass"},
    ]

class TestConfig(BaseConfig):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    WTF_CSRF_ENABLED = False
    EXPOSE_CREDENTIALS = True
    ADMIN_SIGNUP_KEY = "test-admin-key"
    AUTH_RL_MAX = 50

class ProdConfig(BaseConfig):
    DEBUG = False
    SEED_TEST_DATA = False
    DEFAULT_ADMINS = []

config_map = {
    "dev": DevConfig,
    "test": TestConfig,
    "prod": ProdConfig,
    "default": DevConfig,
}
