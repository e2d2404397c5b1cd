from __future__ import annotations
import os
from importlib import import_module
from flask import Flask
from config import config_map
from extensions import db, migrate, login_manager, csrf, signup_otps, reset_credentials, events
from werkzeug.security import generate_password_hash
from sqlalchemy import inspect

def _seed_from_config(app):
    if not app.config.get("SEED_TEST_DATA"):
        return
    with app.app_context():
        # таблица admins может ещё не быть создана (alembic upgrade и т.п.)
        if not inspect(db.engine).has_table("admins"):
            return

        from models import Admin  # локальный импорт, чтобы избежать циклов
        created = 0
        for a in app.config.get("DEFAULT_ADMINS", []):
            if Admin.query.filter_by(username=a["username"]).first():
                continue
            db.session.add(Admin(
                username=a["username"],
                password_hash=generate_password_hash(a["password"]),
            ))
            created += 1
        if created:
            db.session.commit()

def register_blueprints(app: Flask) -> None:
    # Жёстко импортируем модуль с маршрутами core перед взятием bp
    import_module("blueprints.core.routes")
    from blueprints.core import bp as core_bp, api_bp as core_api_bp
    from blueprints.auth.routes import api_bp as auth_api_bp
    from blueprints.inventory.routes import api_bp as inventory_api_bp
    from blueprints.residents.routes import api_bp as residents_api_bp
    from blueprints.swap.routes import api_bp as swap_api_bp

    # core без префикса → '/health' в корне
    app.register_blueprint(core_bp)
    app.register_blueprint(core_api_bp, url_prefix="/api/v1")
    app.register_blueprint(auth_api_bp, url_prefix="/api/v1")
    app.register_blueprint(inventory_api_bp, url_prefix="/api/v1")
    app.register_blueprint(residents_api_bp, url_prefix="/api/v1")
    app.register_blueprint(swap_api_bp, url_prefix="/api/v1")

def register_commands(app: Flask) -> None:
    @app.cli.command("sweep-credentials")
    def sweep_credentials():
        """Удалить просроченные OTP и токены сброса."""
        removed = signup_otps.sweep() + reset_credentials.sweep()
        print(f"removed {removed} expired credential(s)")

def create_app(config_name: str | None = None, overrides: dict | None = None) -> Flask:
    app = Flask(__name__)
    app.config.setdefault("SECRET_KEY", "change-me-in-prod")
    cfg_name = config_name or os.getenv("FLASK_CONFIG", "default")
    app.config.from_object(config_map[cfg_name])
    # под pytest каждая фабрика получает свою БД в памяти
    if os.environ.get("PYTEST_CURRENT_TEST"):
        app.config["SQLALCHEMY_DATABASE_URI"] = "sqlite:///:memory:"
    # явные настройки (например, файловая БД для тестов) - до init_app движка
    if overrides:
        app.config.update(overrides)
    app.config.setdefault("WTF_CSRF_TIME_LIMIT", None)
    app.config.setdefault("WTF_CSRF_HEADERS", ["X-CSRF-Token", "X-CSRFToken"])

    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    csrf.init_app(app)
    signup_otps.init_app(app)
    reset_credentials.init_app(app)
    events.init_app(app)
    register_blueprints(app)
    register_commands(app)
    _seed_from_config(app)
    return app
