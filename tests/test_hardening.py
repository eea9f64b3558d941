from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path
from uuid import UUID

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, inspect

from insomnia_fuel.core import startup_checks
from insomnia_fuel.core.database import Database
from insomnia_fuel.core.logging_setup import JsonFormatter
from insomnia_fuel.core.metrics import request_metrics
from insomnia_fuel.payments.mock_gateway import MockGateway
from tests.fixtures_data import ADMIN_HEADERS, CUSTOMER_HEADERS, FakeIdentityVerifier, build_memory_database

ALEMBIC_INI = Path(__file__).resolve().parents[1] / "alembic.ini"

REQUIRED_ROUTES = {
    "/api/menu",
    "/api/cart",
    "/api/checkout/create-session",
    "/api/orders",
    "/api/orders/my",
    "/api/orders/confirm/{session_id}",
    "/api/orders/{order_id}",
    "/api/orders/{order_id}/payment-status",
    "/api/webhooks/stripe",
    "/api/users/sync",
    "/api/contact",
    "/api/gallery/upload-url",
    "/internal/metrics",
    "/api/health",
}


def _app(monkeypatch, database=None):
    from insomnia_fuel import main

    monkeypatch.setattr(main, "_startup_tasks", lambda *_: None)
    return main.create_app(
        database=database or build_memory_database(),
        payment_gateway=MockGateway(),
        identity_verifier=FakeIdentityVerifier(),
    )


def test_api_startup_and_router_registration(monkeypatch):
    app = _app(monkeypatch)

    with TestClient(app) as client:
        root = client.get("/")
        health = client.get("/api/health")
        openapi_response = client.get("/openapi.json")

    assert root.json() == {"status": "ok", "service": "insomnia-fuel-api"}
    assert health.json() == {"status": "healthy"}
    assert openapi_response.status_code == 200
    assert REQUIRED_ROUTES.issubset(openapi_response.json()["paths"])


def test_sqlite_startup_creates_schema(tmp_path: Path):
    from insomnia_fuel import main

    database = Database(f"sqlite:///{tmp_path / 'startup.db'}")
    main._startup_tasks(database)

    tables = set(inspect(database.engine).get_table_names())
    database.dispose()
    assert {"orders", "order_items", "carts", "users", "menu_items", "contact_messages", "gallery_images"} <= tables


def test_request_id_is_generated_or_echoed(monkeypatch):
    with TestClient(_app(monkeypatch)) as client:
        generated = client.get("/api/health")
        echoed = client.get("/api/health", headers={"X-Request-ID": "req-123"})

    UUID(generated.headers["X-Request-ID"])
    assert echoed.headers["X-Request-ID"] == "req-123"


def test_cors_allows_known_origin_and_blocks_unknown_origin(monkeypatch):
    from insomnia_fuel.core.config import CORS_ORIGINS

    allowed_origin = CORS_ORIGINS[0]

    with TestClient(_app(monkeypatch)) as client:
        allowed = client.options(
            "/api/health",
            headers={"origin": allowed_origin, "access-control-request-method": "GET"},
        )
        blocked = client.options(
            "/api/health",
            headers={"origin": "https://blocked-origin.example", "access-control-request-method": "GET"},
        )

    assert allowed.status_code == 200
    assert allowed.headers.get("access-control-allow-origin") == allowed_origin
    assert blocked.status_code == 400
    assert blocked.headers.get("access-control-allow-origin") is None


def test_metrics_endpoint_is_admin_only_and_counts_requests(monkeypatch):
    request_metrics.reset()

    with TestClient(_app(monkeypatch)) as client:
        client.get("/api/health")
        denied = client.get("/internal/metrics", headers=CUSTOMER_HEADERS)
        response = client.get("/internal/metrics", headers=ADMIN_HEADERS)

    assert denied.status_code == 403
    assert response.status_code == 200
    assert response.json()["endpoints"]["GET /api/health"]["total_requests"] == 1
    assert response.json()["endpoints"]["GET /internal/metrics"]["error_count"] == 1


def test_production_environment_rejects_sqlite():
    with pytest.raises(RuntimeError, match="SQLite is forbidden"):
        startup_checks.validate_database_environment("sqlite:///./forbidden.db", "production")

    startup_checks.validate_database_environment("postgresql://db/insomnia", "production")


def test_migration_check_fails_when_pending_migration(tmp_path: Path):
    db_path = tmp_path / "pending.db"
    conn = sqlite3.connect(db_path)
    conn.execute("CREATE TABLE alembic_version (version_num VARCHAR(32) NOT NULL)")
    conn.execute("INSERT INTO alembic_version (version_num) VALUES ('000000000000')")
    conn.commit()
    conn.close()

    engine = create_engine(f"sqlite:///{db_path}")

    with pytest.raises(RuntimeError, match="Pending migrations"):
        startup_checks.ensure_migrations_applied(engine=engine, alembic_config_path=ALEMBIC_INI, env="development")


def test_migration_check_accepts_head_and_rejects_unmigrated(tmp_path: Path):
    db_path = tmp_path / "head.db"
    conn = sqlite3.connect(db_path)
    conn.execute("CREATE TABLE alembic_version (version_num VARCHAR(32) NOT NULL)")
    conn.execute("INSERT INTO alembic_version (version_num) VALUES ('0001_create_schema')")
    conn.commit()
    conn.close()

    startup_checks.ensure_migrations_applied(
        engine=create_engine(f"sqlite:///{db_path}"),
        alembic_config_path=ALEMBIC_INI,
        env="development",
    )

    with pytest.raises(RuntimeError, match="no migration state"):
        startup_checks.ensure_migrations_applied(
            engine=create_engine(f"sqlite:///{tmp_path / 'empty.db'}"),
            alembic_config_path=ALEMBIC_INI,
            env="development",
        )


def test_log_lines_are_json_and_mask_credentials():
    record = logging.LogRecord(
        "insomnia_fuel.test",
        logging.INFO,
        __file__,
        1,
        "calling stripe with %s and Authorization: Bearer eyJhbGciOi.abc",
        ("sk_test_51Habc123",),
        None,
    )
    record.session_id = "cs_test_1"

    payload = json.loads(JsonFormatter("%(message)s").format(record))

    assert payload["level"] == "INFO"
    assert payload["session_id"] == "cs_test_1"
    assert "sk_test_51Habc123" not in payload["message"]
    assert "eyJhbGciOi.abc" not in payload["message"]
    assert payload["message"].startswith("calling stripe with sk_test_***")
