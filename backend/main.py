"""
FastAPI application entry point for the myon.clinic activation mailer.

Receives Shopify orders/paid webhooks and Flow actions, turns purchased
line items into click-limited activation links and emails them to the
customer exactly once per order.
"""

import os
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from activation_mailer.api.routes import health
from activation_mailer.api.routes import webhooks_shopify
from activation_mailer.api.routes import flow_actions
from activation_mailer.database.session import init_db
from activation_mailer.integrations.myoncare import TokenCache, UrlShortenerClient
from activation_mailer.services.email_sender import get_email_sender
from activation_mailer.services.order_metafield_store import OrderMetafieldStore

# Configure structured logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

INTEGRATION_ENV_VARS = {
    "database": "DATABASE_URL",
    "shopify_webhooks": "SHOPIFY_API_SECRET",
    "shopify_admin": "SHOPIFY_ADMIN_TOKEN",
    "myoncare": "MYONCARE_API_TOKEN",
    "brevo": "BREVO_API_TOKEN",
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    logger.info("Starting activation mailer API")

    integration_status = {
        name: "set" if os.getenv(var) else "missing"
        for name, var in INTEGRATION_ENV_VARS.items()
    }
    app.state.integration_status = integration_status

    missing_vars = [var for name, var in INTEGRATION_ENV_VARS.items() if integration_status[name] == "missing"]
    if missing_vars:
        logger.warning(
            f"Integrations not configured (missing: {missing_vars}). "
            "Dependent stages will fail or degrade until they are set."
        )
    else:
        logger.info("All integrations configured")

    if os.getenv("DATABASE_URL"):
        try:
            init_db()
        except Exception as e:
            logger.error("Database initialization failed", extra={"error": str(e)})

    # One token cache per process, shared by every shortener request
    app.state.token_cache = TokenCache()
    app.state.url_shortener = UrlShortenerClient(app.state.token_cache)
    app.state.metafield_store = OrderMetafieldStore()
    app.state.email_sender = get_email_sender()

    yield

    # Shutdown
    logger.info("Shutting down activation mailer API")
    await app.state.url_shortener.close()
    await app.state.token_cache.close()
    await app.state.email_sender.close()


# Create FastAPI app
app = FastAPI(
    title="Activation Mailer API",
    description="Order confirmation emails with click-limited activation links",
    version="1.0.0",
    lifespan=lifespan
)

# Include health route
app.include_router(health.router)

# Include Shopify webhook routes (uses HMAC verification)
app.include_router(webhooks_shopify.router)

# Include Shopify Flow action routes
app.include_router(flow_actions.router)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle unhandled exceptions with proper logging."""
    logger.error(
        "Unhandled exception",
        extra={
            "error": str(exc),
            "error_type": type(exc).__name__,
            "path": request.url.path
        },
        exc_info=True
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "detail": "An unexpected error occurred"
        }
    )


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", 8000))
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=port,
        reload=os.getenv("ENV") == "development"
    )
