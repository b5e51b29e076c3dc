"""Alembic entry point for the billing tables."""

from __future__ import annotations

import sys
from logging.config import fileConfig
from pathlib import Path

from alembic import context
from sqlalchemy import create_engine, pool
from sqlalchemy.engine import make_url

sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

import backend.app.models  # noqa: E402,F401
from backend.app.database import SQLALCHEMY_DATABASE_URL, Base  # noqa: E402

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name, disable_existing_loggers=False)

billing_url = make_url(config.get_main_option("sqlalchemy.url") or SQLALCHEMY_DATABASE_URL)
# SQLite cannot ALTER most constraints in place; batch mode rebuilds the table.
batch_tables = billing_url.get_backend_name() == "sqlite"

migration_options = {
    "target_metadata": Base.metadata,
    "render_as_batch": batch_tables,
    "compare_type": True,
}

if context.is_offline_mode():
    context.configure(
        url=billing_url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **migration_options,
    )
    with context.begin_transaction():
        context.run_migrations()
else:
    connect_args = {"check_same_thread": False} if batch_tables else {}
    engine = create_engine(billing_url, poolclass=pool.NullPool, connect_args=connect_args)
    with engine.connect() as connection:
        context.configure(connection=connection, **migration_options)
        with context.begin_transaction():
            context.run_migrations()
    engine.dispose()
