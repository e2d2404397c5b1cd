import logging
import os
import sys
from logging.config import fileConfig

from alembic import context

# корень репозитория в sys.path, чтобы `alembic` без flask-cli находил app/extensions
MIGRATIONS_DIR = os.path.dirname(os.path.abspath(__file__))
PROJECT_ROOT = os.path.dirname(MIGRATIONS_DIR)
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)
log = logging.getLogger("alembic.env")

from flask import current_app, has_app_context  # noqa: E402
from extensions import db  # noqa: E402

if has_app_context():
    # `flask db upgrade` - контекст уже поднят Flask-Migrate
    app = current_app._get_current_object()
else:
    from app import create_app  # noqa: E402
    app = create_app()  # FLASK_CONFIG
    app.app_context().push()

if not config.get_main_option("sqlalchemy.url"):
    config.set_main_option("sqlalchemy.url", str(db.engine.url).replace("%", "%%"))

target_metadata = db.metadata

def _configure_kwargs() -> dict:
    return {
        "target_metadata": target_metadata,
        "compare_type": True,
        # ALTER для SQLite через copy-and-move
        "render_as_batch": db.engine.dialect.name == "sqlite",
    }

def run_migrations_offline():
    """SQL-скрипт без подключения к БД."""
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_configure_kwargs(),
    )
    with context.begin_transaction():
        context.run_migrations()

def run_migrations_online():
    with db.engine.connect() as connection:
        context.configure(connection=connection, **_configure_kwargs())
        log.info("migrating %s", db.engine.url.render_as_string(hide_password=True))
        with context.begin_transaction():
            context.run_migrations()

if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
