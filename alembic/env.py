import os
import sys
from logging.config import fileConfig

from sqlalchemy import engine_from_config
from sqlalchemy import pool

from alembic import context

# The alembic.ini is in the project root, and env.py is in ./alembic/
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from compliance_engine.config import Config  # noqa: E402
from compliance_engine.models import Base  # noqa: E402  registers every ORM table

# this is the Alembic Config object, which provides
# access to the values within the .ini file in use.
config = context.config

# Interpret the config file for Python logging.
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# If ALEMBIC_DATABASE_URL is set, use that directly; otherwise build the URL
# from the application configuration (DATABASE_URL or the PG_* variables)
if os.environ.get("ALEMBIC_DATABASE_URL"):
    DATABASE_URL = os.environ["ALEMBIC_DATABASE_URL"]
else:
    APP_CONFIG_YAML_PATH = os.environ.get(
        "COMPLIANCE_CONFIG", os.path.join(PROJECT_ROOT, "config", "config.yaml")
    )
    app_config = Config.from_files(APP_CONFIG_YAML_PATH)
    DATABASE_URL = app_config.postgres.sqlalchemy_url()

config.set_main_option('sqlalchemy.url', DATABASE_URL.replace('%', '%%'))

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode.

    This configures the context with just a URL and not an Engine.
    Calls to context.execute() here emit the given string to the
    script output.
    """
    context.configure(
        url=DATABASE_URL,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode.

    In this scenario we need to create an Engine
    and associate a connection with the context.
    """
    connectable = engine_from_config(
        {'sqlalchemy.url': DATABASE_URL},
        prefix="sqlalchemy.",
        poolclass=pool.NullPool
    )

    with connectable.connect() as connection:
        context.configure(
            connection=connection, target_metadata=target_metadata
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
