"""FastAPI application factory"""

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from splitledger.api.middleware import RequestIDMiddleware, MetricsMiddleware
from splitledger.api.v1 import bills, merge, settlements, users
from splitledger.infrastructure.observability.logging import setup_logging
from splitledger.config import settings

# Setup structured logging
setup_logging(settings.log_level)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Splitledger",
        description="Shared expense ledger with debt settlement and bill netting",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(users.router, prefix="/v1", tags=["users"])
    app.include_router(bills.router, prefix="/v1", tags=["bills"])
    app.include_router(settlements.router, prefix="/v1", tags=["settlements"])
    app.include_router(merge.router, prefix="/v1", tags=["merge"])

    return app


app = create_app()
