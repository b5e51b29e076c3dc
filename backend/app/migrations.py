"""Bring the billing schema to the Alembic head when the API starts."""

from __future__ import annotations

import logging
import os
import sys
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect
from sqlalchemy.engine import make_url

from .database import SQLALCHEMY_DATABASE_URL

LOGGER = logging.getLogger(__name__)

BACKEND_DIR = Path(__file__).resolve().parents[1]
BILLING_TABLES = ("billing_items", "billing_summaries", "tenant_invoices", "tenant_invoice_items")
MIGRATION_LOCK_FILE = BACKEND_DIR / ".billing-migrations.lock"
MIGRATION_LOCK_TIMEOUT = 30.0

if os.name == "posix":  # pragma: no cover - platform specific
    import fcntl
else:  # pragma: no cover - platform specific
    import msvcrt


def billing_alembic_config(database_url: Optional[str] = None) -> Config:
    """Alembic config pointing at the billing revisions and ``database_url``."""

    project_root = str(BACKEND_DIR.parent)
    if project_root not in sys.path:
        sys.path.insert(0, project_root)

    config = Config(str(BACKEND_DIR / "alembic.ini"))
    config.set_main_option("script_location", str(BACKEND_DIR / "alembic"))
    url = database_url or os.getenv("DATABASE_URL") or SQLALCHEMY_DATABASE_URL
    # ConfigParser interpolation treats "%" specially.
    config.set_main_option("sqlalchemy.url", url.replace("%", "%%"))
    return config


def _try_lock(handle) -> bool:
    try:
        if os.name == "posix":  # pragma: no cover - platform specific
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        else:  # pragma: no cover - platform specific
            msvcrt.locking(handle.fileno(), msvcrt.LK_NBLCK, 1)
    except OSError:
        return False
    return True


@contextmanager
def _exclusive_migration_run(timeout: float = MIGRATION_LOCK_TIMEOUT) -> Iterator[None]:
    """Serialize workers that start at the same time against one database."""

    deadline = time.monotonic() + timeout
    with MIGRATION_LOCK_FILE.open("a+") as handle:
        while not _try_lock(handle):
            if time.monotonic() >= deadline:
                raise TimeoutError(f"Could not lock {MIGRATION_LOCK_FILE} within {timeout:.0f}s")
            time.sleep(0.25)
        try:
            yield
        finally:
            if os.name == "posix":  # pragma: no cover - platform specific
                fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
            else:  # pragma: no cover - platform specific
                msvcrt.locking(handle.fileno(), msvcrt.LK_UNLCK, 1)


def _schema_state(database_url: str) -> tuple[bool, bool]:
    """Return ``(is_versioned, has_billing_tables)`` for the target database."""

    connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
    engine = create_engine(database_url, connect_args=connect_args)
    try:
        inspector = inspect(engine)
        return (
            inspector.has_table("alembic_version"),
            all(inspector.has_table(table) for table in BILLING_TABLES),
        )
    finally:
        engine.dispose()


def run_database_migrations(database_url: Optional[str] = None) -> None:
    """Upgrade to head; adopt unversioned databases already holding the billing tables."""

    config = billing_alembic_config(database_url)
    url = config.get_main_option("sqlalchemy.url")
    LOGGER.info(
        "Checking billing schema at %s",
        make_url(url).render_as_string(hide_password=True),
    )

    with _exclusive_migration_run():
        is_versioned, has_billing_tables = _schema_state(url)
        if not is_versioned and has_billing_tables:
            LOGGER.info("Billing tables exist without an Alembic version; stamping head")
            command.stamp(config, "head")
            return
        command.upgrade(config, "head")
