import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from insomnia_fuel.core.config import CORS_ORIGINS, DATABASE_URL, ENV
from insomnia_fuel.core.database import Database
from insomnia_fuel.core.logging_setup import configure_logging
from insomnia_fuel.core.startup_checks import ensure_migrations_applied, validate_database_environment
from insomnia_fuel.middleware.observability import ObservabilityMiddleware
from insomnia_fuel.payments.base import PaymentGateway
from insomnia_fuel.payments.factory import build_payment_gateway
from insomnia_fuel.services.identity import FirebaseIdentityVerifier, IdentityVerifier
import insomnia_fuel.models  # noqa: F401  models must be registered before create_all
import insomnia_fuel.services.event_handlers  # noqa: F401  subscribes the event bus handlers

from insomnia_fuel.routers.cart import router as cart_router
from insomnia_fuel.routers.checkout import router as checkout_router
from insomnia_fuel.routers.contact import router as contact_router
from insomnia_fuel.routers.gallery import router as gallery_router
from insomnia_fuel.routers.internal_metrics import router as internal_metrics_router
from insomnia_fuel.routers.menu import router as menu_router
from insomnia_fuel.routers.orders import router as orders_router
from insomnia_fuel.routers.users import router as users_router
from insomnia_fuel.routers.webhook import router as webhook_router

configure_logging()

logger = logging.getLogger(__name__)
STARTUP_PREFIX = "[STARTUP]"
REPO_ROOT = Path(__file__).resolve().parents[1]
ALEMBIC_CONFIG_PATH = Path(
    os.getenv("ALEMBIC_CONFIG", str(REPO_ROOT / "alembic.ini"))
)


def _startup_tasks(database: Database) -> None:
    try:
        validate_database_environment(database.url, ENV)
        if database.is_sqlite:
            database.create_all()
        else:
            ensure_migrations_applied(engine=database.engine, alembic_config_path=ALEMBIC_CONFIG_PATH, env=ENV)
    except Exception:
        logger.exception("%s ERROR startup failed", STARTUP_PREFIX)
        raise


def create_app(
    *,
    database: Database | None = None,
    payment_gateway: PaymentGateway | None = None,
    identity_verifier: IdentityVerifier | None = None,
) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.database = database or Database(DATABASE_URL)
        app.state.payment_gateway = payment_gateway or build_payment_gateway()
        app.state.identity_verifier = identity_verifier or FirebaseIdentityVerifier()
        _startup_tasks(app.state.database)
        logger.info("%s ready env=%s", STARTUP_PREFIX, ENV)
        try:
            yield
        finally:
            app.state.database.dispose()

    app = FastAPI(
        title="Insomnia Fuel API",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(ObservabilityMiddleware)

    # Routers
    app.include_router(menu_router)
    app.include_router(cart_router)
    app.include_router(checkout_router)
    app.include_router(orders_router)
    app.include_router(webhook_router)
    app.include_router(users_router)
    app.include_router(contact_router)
    app.include_router(gallery_router)
    app.include_router(internal_metrics_router)

    @app.get("/")
    def root():
        return {"status": "ok", "service": "insomnia-fuel-api"}

    @app.get("/api/health")
    def health():
        return {"status": "healthy"}

    return app


app = create_app()
