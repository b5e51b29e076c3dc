import pytest
from fastapi.testclient import TestClient

from backend.app.main import LOCAL_DEVELOPMENT_ORIGIN, app, billing_console_origins


def test_console_origins_always_include_local_dev_server():
    assert billing_console_origins("") == [LOCAL_DEVELOPMENT_ORIGIN]
    assert billing_console_origins(" https://billing.example.org/ ,,https://ops.example.org") == [
        LOCAL_DEVELOPMENT_ORIGIN,
        "https://billing.example.org",
        "https://ops.example.org",
    ]


def test_console_origins_read_environment(monkeypatch):
    monkeypatch.setenv("BILLING_CONSOLE_ORIGINS", "https://billing.example.org")

    assert "https://billing.example.org" in billing_console_origins()


@pytest.mark.parametrize(
    "path, method",
    [("/tenant-invoices/any/paid", "PATCH"), ("/billing-summaries/submit", "POST")],
)
def test_preflight_allows_console_origin(path, method):
    client = TestClient(app)

    response = client.options(
        path,
        headers={
            "Origin": LOCAL_DEVELOPMENT_ORIGIN,
            "Access-Control-Request-Method": method,
            "Access-Control-Request-Headers": "Authorization",
        },
    )

    assert response.status_code == 200
    assert response.headers.get("access-control-allow-origin") == LOCAL_DEVELOPMENT_ORIGIN


def test_preflight_rejects_unknown_origin():
    client = TestClient(app)

    response = client.options(
        "/billing-items/approve",
        headers={"Origin": "https://elsewhere.example.com", "Access-Control-Request-Method": "POST"},
    )

    assert response.status_code == 400
    assert "access-control-allow-origin" not in response.headers
