# =====================================================
# app.py
# =====================================================
import os

# Force unbuffered output (Render needs this for real-time logs)
os.environ["PYTHONUNBUFFERED"] = "1"

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import APP_NAME, APP_VERSION, SWEEPER_ENABLED
from db import init_db
from handlers import books, coupons, courses, events, health, orders, payments, preorders, publishing, webhooks
from helpers import StorefrontError, fail
from logging_setup import get_logger, capture_exception
from tasks import start_background_tasks, stop_background_tasks

logger = get_logger(__name__)

app = FastAPI(title=APP_NAME, version=APP_VERSION)


# -------------------------------------------------
# Root route
# -------------------------------------------------
@app.get("/")
@app.head("/")
async def root():
    return {
        "status": "ok",
        "message": f"{APP_NAME} API is running ✅",
        "health": "Check /api/health for service status",
    }


# -------------------------------------------------
# Error envelope
# -------------------------------------------------
@app.exception_handler(StorefrontError)
async def storefront_error_handler(request: Request, exc: StorefrontError):
    return fail(exc.status_code, exc.error, **exc.extra)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return fail(400, "Invalid input", details=jsonable_encoder(exc.errors()))


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return fail(exc.status_code, str(exc.detail))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"❌ Unhandled error on {request.method} {request.url.path}: {exc}")
    capture_exception(exc)
    return fail(500, "Internal server error")


# -------------------------------------------------
# Routers
# -------------------------------------------------
for module in (health, books, orders, coupons, preorders, payments, webhooks, publishing, courses, events):
    module.register_handlers(app)


# -------------------------------------------------
# Startup / shutdown
# -------------------------------------------------
@app.on_event("startup")
async def on_startup():
    logger.info(f"🚀 Starting up {APP_NAME} v{APP_VERSION}...")
    await init_db()

    if SWEEPER_ENABLED:
        await start_background_tasks()
    else:
        logger.info("⏸️ Background tasks disabled (SWEEPER_ENABLED=false).")


@app.on_event("shutdown")
async def on_shutdown():
    try:
        await stop_background_tasks()
    except Exception as e:
        logger.warning(f"⚠️ Error while shutting down: {e}")
