"""Engine and session wiring for the billing store.

Settings come from the environment once, at import time:

``DATABASE_URL``
    Target database. Without it the billing data lives in ``billing.db`` next
    to the ``backend`` package, unless ``REQUIRE_POSTGRES`` forbids SQLite.
``BILLING_DB_POOL_SIZE`` / ``BILLING_DB_MAX_OVERFLOW`` / ``BILLING_DB_POOL_TIMEOUT``
    Connection pool limits for server databases.
``BILLING_DB_STATEMENT_TIMEOUT_MS``
    PostgreSQL statement timeout applied to every billing connection.
"""

from __future__ import annotations

import os
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.orm import Session, declarative_base, sessionmaker

BILLING_SQLITE_FILE = Path(__file__).resolve().parents[1] / "billing.db"


def _read_int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer") from exc
    if value < 0:
        raise ValueError(f"{name} must be non-negative")
    return value


def _read_bool_env(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class BillingDatabaseSettings:
    url: URL
    pool_size: int = 5
    max_overflow: int = 10
    pool_timeout: int = 30
    statement_timeout_ms: int = 0

    @property
    def is_sqlite(self) -> bool:
        return self.url.get_backend_name() == "sqlite"

    @classmethod
    def from_env(cls) -> "BillingDatabaseSettings":
        require_postgres = _read_bool_env("REQUIRE_POSTGRES")
        raw_url = os.getenv("DATABASE_URL")
        if raw_url:
            url = make_url(raw_url)
        elif require_postgres:
            raise RuntimeError("REQUIRE_POSTGRES is set but DATABASE_URL is empty")
        else:
            url = make_url(f"sqlite:///{BILLING_SQLITE_FILE.as_posix()}")

        if require_postgres and url.get_backend_name() != "postgresql":
            raise RuntimeError(
                f"REQUIRE_POSTGRES is set but DATABASE_URL points at {url.get_backend_name()}"
            )
        return cls(
            url=url,
            pool_size=_read_int_env("BILLING_DB_POOL_SIZE", 5),
            max_overflow=_read_int_env("BILLING_DB_MAX_OVERFLOW", 10),
            pool_timeout=_read_int_env("BILLING_DB_POOL_TIMEOUT", 30),
            statement_timeout_ms=_read_int_env("BILLING_DB_STATEMENT_TIMEOUT_MS", 0),
        )

    def engine_options(self) -> dict[str, Any]:
        if self.is_sqlite:
            return {"connect_args": {"check_same_thread": False}}

        options: dict[str, Any] = {
            "pool_pre_ping": True,
            "pool_size": self.pool_size,
            "max_overflow": self.max_overflow,
            "pool_timeout": self.pool_timeout,
        }
        if self.statement_timeout_ms and self.url.get_backend_name() == "postgresql":
            options["connect_args"] = {
                "options": f"-c statement_timeout={self.statement_timeout_ms}"
            }
        return options


def build_engine(settings: BillingDatabaseSettings) -> Engine:
    database: Optional[str] = settings.url.database
    if settings.is_sqlite and database not in (None, "", ":memory:"):
        Path(database).parent.mkdir(parents=True, exist_ok=True)
    return create_engine(settings.url, **settings.engine_options())


DATABASE_SETTINGS = BillingDatabaseSettings.from_env()
SQLALCHEMY_DATABASE_URL = DATABASE_SETTINGS.url.render_as_string(hide_password=False)

engine = build_engine(DATABASE_SETTINGS)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def session_scope() -> Iterator[Session]:
    """Session for the billing CLI: commit on success, roll back on error."""

    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
