"""FastAPI application factory"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from fraud_sentinel.api.middleware import RequestIDMiddleware, MetricsMiddleware
from fraud_sentinel.api.v1 import alerts, monitor, risk_metrics, security_alerts, transactions
from fraud_sentinel.infrastructure.database.session import get_session_factory
from fraud_sentinel.infrastructure.observability.logging import setup_logging
from fraud_sentinel.infrastructure.scheduler import TimerService
from fraud_sentinel.services.pattern_monitor import PatternMonitor
from fraud_sentinel.config import settings

# Setup structured logging
setup_logging(settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Schedule the periodic pattern scan for the lifetime of the app"""
    timers = TimerService()
    app.state.timers = timers
    if settings.monitor_interval_seconds > 0:
        monitor = PatternMonitor(get_session_factory())
        timers.schedule_every(settings.monitor_interval_seconds, monitor.scan, name="pattern_scan")
    yield
    await timers.cancel_all()


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Fraud Sentinel",
        description="Transaction risk scoring and fraud alerting service",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
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

    app.include_router(transactions.router, prefix="/v1", tags=["transactions"])
    app.include_router(alerts.router, prefix="/v1", tags=["alerts"])
    app.include_router(risk_metrics.router, prefix="/v1", tags=["risk-metrics"])
    app.include_router(monitor.router, prefix="/v1", tags=["monitor"])
    app.include_router(security_alerts.router, prefix="/v1", tags=["security-alerts"])

    return app


app = create_app()
