import os
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
import structlog

from .config import settings
from .db import Base, engine, SessionLocal
from .errors import PropdeskError
from .logging import setup_logging, RequestIdMiddleware
from .models.models import ENHANCED_ONLY_TABLES
from .routes.database_management import router as database_management_router
from .services.tenant_backend import TenantBackendService

logger = structlog.get_logger(__name__)


def create_core_tables(bind) -> int:
    """Create missing tables, except the enhanced tenant ones added by scripts/migrate_enhanced_schema.py."""
    tables = [t for name, t in Base.metadata.tables.items() if name not in ENHANCED_ONLY_TABLES]
    Base.metadata.create_all(bind=bind, tables=tables)
    return len(tables)


def create_app() -> FastAPI:
    setup_logging()
    app = FastAPI(title=settings.app_name)

    # Middlewares
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    @app.exception_handler(PropdeskError)
    async def _propdesk_error(request: Request, exc: PropdeskError):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    # Probes once, on first use
    app.state.tenant_backend = TenantBackendService(SessionLocal)

    # Routers
    app.include_router(database_management_router)

    @app.get("/health")
    def health():
        return {"status": "ok", "environment": settings.environment}

    # Metrics
    Instrumentator().instrument(app).expose(app)

    @app.on_event("startup")
    def _startup():
        logger.info("startup", app=settings.app_name, environment=settings.environment)
        # Ensure local SQLite directory exists
        if settings.database_url.startswith("sqlite:///./"):
            os.makedirs("var", exist_ok=True)
        if settings.auto_create_db:
            logger.info("startup_tables_verified", tables=create_core_tables(engine))

    return app


app = create_app()
