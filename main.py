"""
Trial & Subscription Gate - Entitlement Service
Gates the hosted app behind a 24h trial and a paid subscription driven by
payment provider webhooks.
"""

from pathlib import Path
import logging
import traceback

from fastapi import FastAPI, Request
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, PlainTextResponse

from routers.app_router import app_router
from routers.billing_router import billing_router
from backend.utils.pages import APP_ORIGIN, error_page
from backend.utils.responses import error_response, html_response
from config.settings import settings, IS_PRODUCTION
from dependencies import close_store
from services.errors import EntitlementError

# ============================================================================
# LOGGING
# ============================================================================

LOGS_DIR = Path("./logs")
LOGS_DIR.mkdir(exist_ok=True)
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.FileHandler(LOGS_DIR / "app.log"),
        logging.StreamHandler()
    ]
)
logger = logging.getLogger(__name__)

# ============================================================================
# FASTAPI APP SETUP
# ============================================================================

app = FastAPI(title="Trial & Subscription Gate", docs_url=None, redoc_url=None, openapi_url=None)


# Uncaught exception middleware - logs all unhandled exceptions and returns 500
class UncaughtExceptionMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        try:
            return await call_next(request)
        except Exception as e:
            logger.error(f"Uncaught exception: {e}\n{traceback.format_exc()}")
            return JSONResponse(
                status_code=500,
                content={"error": "Internal Server Error"}
            )


# Security headers middleware
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses: CSP, HSTS, X-Frame-Options, X-Content-Type-Options"""
    async def dispatch(self, request, call_next):
        response = await call_next(request)

        # The dashboard embeds the app in an iframe and talks to it from an inline script
        response.headers["Content-Security-Policy"] = (
            "default-src 'self'; "
            "script-src 'self' 'unsafe-inline'; "
            "style-src 'self' 'unsafe-inline'; "
            f"frame-src {APP_ORIGIN}; "
            "img-src 'self' data:; "
            "object-src 'none'; "
            "base-uri 'self'; "
            "form-action 'self';"
        )

        if IS_PRODUCTION:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"

        return response


app.add_middleware(UncaughtExceptionMiddleware)
app.add_middleware(SecurityHeadersMiddleware)

# ============================================================================
# ERROR HANDLERS
# ============================================================================


@app.exception_handler(EntitlementError)
async def entitlement_error_handler(request: Request, exc: EntitlementError):
    """API routes get a JSON envelope, browser routes a styled page."""
    logger.error(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}")
    if request.url.path.startswith("/api/"):
        return error_response(exc.message, status=exc.status_code)
    return html_response(error_page(exc.message), status=exc.status_code)


@app.exception_handler(StarletteHTTPException)
async def not_found_handler(request: Request, exc: StarletteHTTPException):
    # Unknown paths and wrong methods on known paths are both 404
    if exc.status_code in (404, 405):
        return PlainTextResponse("Page Not Found.", status_code=404)
    return PlainTextResponse(str(exc.detail), status_code=exc.status_code)

# ============================================================================
# STARTUP CHECKS
# ============================================================================


@app.on_event("startup")
async def check_env_keys_on_startup():
    """Check for missing environment variables on startup (non-fatal warning)"""
    missing = []
    key_checks = {
        "DODO_PAYMENTS_WEBHOOK_KEY": settings.webhook_secret,
        "REDIS_URL": settings.redis_url,
    }
    for env_key, value in key_checks.items():
        if not value:
            missing.append(env_key)
    if missing:
        logger.warning(f"Startup check: Missing environment variables: {', '.join(missing)}")
    else:
        logger.info("Startup check: All critical environment variables are set")
    logger.info(f"Checkout environment: {settings.checkout_environment}, trial: {settings.trial_duration_hours}h")


@app.on_event("shutdown")
async def shutdown_store():
    await close_store()


@app.get("/health")
async def health():
    return {"status": "ok"}

# ============================================================================
# INCLUDE ROUTERS
# ============================================================================
app.include_router(billing_router)
app.include_router(app_router)

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
