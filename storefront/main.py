"""
FastAPI Application Entry Point - Storefront Order Service
"""
from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator

from storefront.config import Settings, settings as default_settings
from storefront.database import Database
from storefront.exceptions import StorefrontError
from storefront.logging_config import configure_logging
from storefront.middleware.rate_limit import RateLimiter, rate_limit_middleware
from storefront.publishers.event_publisher import EventPublisher
from storefront.repositories.order_repository import OrderRepository
from storefront.services.notification_service import EmailSender
from storefront.services.payment_gateway import PaymentGateway, RazorpayGateway
from storefront.api import admin, health, orders, payments, products

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database on startup, release resources on shutdown"""
    config = app.state.settings
    logger.info("service_starting", service=config.SERVICE_NAME)

    app.state.db.init_db()
    db = app.state.db.session()
    try:
        OrderRepository(db).ensure_counters()
    finally:
        db.close()
    logger.info(
        "service_started",
        service=config.SERVICE_NAME,
        port=config.SERVICE_PORT,
        email_service=config.EMAIL_SERVICE,
        events_enabled=config.EVENTS_ENABLED,
    )

    yield

    logger.info("service_stopping", service=config.SERVICE_NAME)
    await app.state.payment_gateway.aclose()
    if app.state.rate_limiter is not None:
        app.state.rate_limiter.reset()
    app.state.db.dispose()


async def storefront_error_handler(request: Request, exc: StorefrontError):
    logger.info(
        "request_rejected",
        path=request.url.path,
        error=type(exc).__name__,
        detail=exc.message,
    )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("unhandled_error", path=request.url.path, method=request.method)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


def create_app(
    config: Optional[Settings] = None,
    gateway: Optional[PaymentGateway] = None,
) -> FastAPI:
    """
    Build the application and every process-wide resource it owns

    Args:
        config: Settings to use (defaults to environment settings)
        gateway: Payment gateway override, e.g. a fake in tests
    """
    config = config or default_settings
    configure_logging(config.LOG_LEVEL, config.LOG_JSON)

    app = FastAPI(
        title="Storefront Order Service",
        description="Order placement, payment settlement and refunds",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.state.settings = config
    app.state.db = Database(config.DATABASE_URL, echo=config.DATABASE_ECHO)
    app.state.payment_gateway = gateway or RazorpayGateway(
        config.RAZORPAY_KEY_ID,
        config.RAZORPAY_KEY_SECRET,
        base_url=config.RAZORPAY_API_URL,
        timeout=config.GATEWAY_TIMEOUT,
        max_retries=config.MAX_RETRIES,
        retry_delay=config.RETRY_DELAY,
    )
    app.state.email_sender = EmailSender(config)
    app.state.event_publisher = EventPublisher(config)
    app.state.rate_limiter = (
        RateLimiter(config.RATE_LIMIT_REQUESTS, config.RATE_LIMIT_WINDOW)
        if config.RATE_LIMIT_ENABLED else None
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.middleware("http")(rate_limit_middleware)

    app.add_exception_handler(StorefrontError, storefront_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    # Include routers
    app.include_router(health.router)
    app.include_router(products.router)
    app.include_router(orders.router)
    app.include_router(payments.router)
    app.include_router(admin.router)

    # Prometheus metrics
    Instrumentator().instrument(app).expose(app)

    return app


app = create_app()
