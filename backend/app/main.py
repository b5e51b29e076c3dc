"""FastAPI application serving the billing lifecycle endpoints."""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .database import _read_bool_env
from .migrations import run_database_migrations
from .routers import (
    auth_router,
    billing_items_router,
    billing_summaries_router,
    tenant_invoices_router,
)

LOGGER = logging.getLogger(__name__)

LOCAL_DEVELOPMENT_ORIGIN = "http://localhost:5173"
LOOPBACK_ORIGIN_REGEX = r"https?://(localhost|127\.0\.0\.1)(:\d+)?$"
RUN_DB_MIGRATIONS_ENV = "RUN_DB_MIGRATIONS"


def billing_console_origins(raw_value: str | None = None) -> list[str]:
    """Origins allowed to call the API from a browser.

    ``BILLING_CONSOLE_ORIGINS`` holds a comma separated list; the local
    console dev server is always included.
    """

    if raw_value is None:
        raw_value = os.getenv("BILLING_CONSOLE_ORIGINS", "")
    origins = {LOCAL_DEVELOPMENT_ORIGIN}
    for candidate in raw_value.split(","):
        origin = candidate.strip().rstrip("/")
        if origin:
            origins.add(origin)
    return sorted(origins)


def ensure_database_is_ready() -> None:
    """Apply pending database migrations when the service starts."""

    if not _read_bool_env(RUN_DB_MIGRATIONS_ENV, True):
        LOGGER.info("Database migrations disabled via %s", RUN_DB_MIGRATIONS_ENV)
        return
    LOGGER.info("Ensuring database schema is up to date before serving requests")
    run_database_migrations()


@asynccontextmanager
async def lifespan(_: FastAPI):
    ensure_database_is_ready()
    yield


app = FastAPI(title="Waste Collection Billing API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=billing_console_origins(),
    allow_origin_regex=LOOPBACK_ORIGIN_REGEX,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH"],
    allow_headers=["Authorization", "Content-Type"],
)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed request bodies and parameters as 400 Bad Request."""

    LOGGER.debug("Rejected malformed request to %s", request.url.path)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "Validation error", "errors": jsonable_encoder(exc.errors())},
    )


app.include_router(auth_router)
app.include_router(billing_items_router, prefix="/billing-items", tags=["billing-items"])
app.include_router(
    billing_summaries_router,
    prefix="/billing-summaries",
    tags=["billing-summaries"],
)
app.include_router(tenant_invoices_router, prefix="/tenant-invoices", tags=["tenant-invoices"])


@app.get("/", tags=["health"])
def billing_health() -> dict[str, str]:
    return {"status": "ok", "service": "billing"}
