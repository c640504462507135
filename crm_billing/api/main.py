"""FastAPI application factory"""

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from crm_billing.api.middleware import RequestIDMiddleware, MetricsMiddleware
from crm_billing.api.v1 import billing, clients, contacts, expenses, installments
from crm_billing.infrastructure.observability.logging import setup_logging
from crm_billing.config import settings

# Setup structured logging
setup_logging(settings.log_level)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="CRM Billing",
        description="Installment schedules, fee breakdowns and profit dispatch for a small sales team",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(contacts.router, prefix="/v1", tags=["contacts"])
    app.include_router(clients.router, prefix="/v1", tags=["clients"])
    app.include_router(installments.router, prefix="/v1", tags=["installments"])
    app.include_router(expenses.router, prefix="/v1", tags=["expenses"])
    app.include_router(billing.router, prefix="/v1", tags=["billing"])

    return app


app = create_app()
