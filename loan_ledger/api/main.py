"""FastAPI application factory"""

from fastapi import FastAPI
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from loan_ledger.api.error_handlers import register_error_handlers
from loan_ledger.api.middleware import MetricsMiddleware, RequestIDMiddleware
from loan_ledger.api.v1 import accounts, loans
from loan_ledger.config import settings
from loan_ledger.infrastructure.observability.logging import setup_logging

# Setup structured logging
setup_logging(settings.log_level)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Loan Ledger",
        description="Peer-to-peer loan ledger with atomic balance transfers",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_error_handlers(app)

    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    app.include_router(loans.router, prefix="/v1", tags=["loans"])
    app.include_router(accounts.router, prefix="/v1", tags=["accounts"])

    return app


app = create_app()
