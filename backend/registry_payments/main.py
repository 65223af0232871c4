"""
Registry Payments Backend - FastAPI Application

Gift registry purchase and payment-gateway webhook reconciliation service.
"""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging

from .config import settings
from .exceptions import RegistryPaymentError
from .db.init_db import initialize_database
from .services.scheduler import start_scheduler, shutdown_scheduler
from .api.gifts import router as gifts_router
from .api.purchases import router as purchases_router
from .api.webhooks import router as webhooks_router
from .api.transactions import router as transactions_router
from .api.dev_payments import router as dev_payments_router


# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    - Startup: create tables, start housekeeping scheduler
    - Shutdown: stop scheduler
    """
    logger.info("Starting registry payments backend...")
    logger.info(f"Demo mode: {settings.demo_mode}")

    if not settings.payment_webhook_secret:
        logger.warning("PAYMENT_WEBHOOK_SECRET is not set; all webhooks will be rejected")

    try:
        await initialize_database()
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise

    try:
        start_scheduler()
    except Exception as e:
        logger.error(f"Failed to start scheduler: {e}")
        if not settings.demo_mode:
            raise
        logger.warning("Continuing without scheduler in demo mode")

    logger.info("Server startup complete")

    yield

    logger.info("Shutting down registry payments backend...")
    try:
        shutdown_scheduler(wait=True)
    except Exception as e:
        logger.error(f"Error during scheduler shutdown: {e}")


app = FastAPI(
    title="Registry Payments API",
    description="Gift registry payments and gateway webhook reconciliation",
    version="0.1.0",
    lifespan=lifespan,
)


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RegistryPaymentError)
async def registry_error_handler(request: Request, exc: RegistryPaymentError):
    """
    Handle registry payment errors with the standard error body.

    Status code comes from the exception class.
    """
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(f"Registry error: {exc.error_code} - {exc.message}", extra={"details": exc.details})

    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def general_error_handler(request: Request, exc: Exception):
    """
    Catch-all handler for unexpected errors.

    Logs full exception for debugging but returns generic message to client.
    """
    logger.error(f"Unexpected error: {str(exc)}", exc_info=True)

    return JSONResponse(
        status_code=500,
        content={
            "error_code": "internal_error",
            "message": "An unexpected error occurred. Please try again.",
            "details": {"error_type": type(exc).__name__} if settings.demo_mode else {}
        }
    )


@app.get("/api/health")
async def health_check():
    """Health check endpoint for monitoring and load balancers."""
    return {
        "status": "healthy",
        "version": "0.1.0",
        "demo_mode": settings.demo_mode,
        "webhook_secret_configured": bool(settings.payment_webhook_secret),
    }


app.include_router(gifts_router, prefix="/api", tags=["Gifts"])
app.include_router(purchases_router, prefix="/api", tags=["Purchases"])
app.include_router(transactions_router, prefix="/api/transactions", tags=["Transactions"])
app.include_router(dev_payments_router, prefix="/api/dev", tags=["Development"])
app.include_router(webhooks_router, prefix="/webhooks", tags=["Webhooks"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "registry_payments.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.demo_mode,
        log_level=settings.log_level.lower()
    )
