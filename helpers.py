# ===============================================================
# helpers.py
# ===============================================================
import secrets
import string
import time
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Any

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from logging_setup import get_logger, capture_exception

logger = get_logger(__name__)

_REF_ALPHABET = string.digits + string.ascii_uppercase
TWO_PLACES = Decimal("0.01")


# -------------------------------------------------
# API error carried to the JSON envelope handler
# -------------------------------------------------
class StorefrontError(Exception):
    """Raised by routes/services; rendered as {success: false, error, ...}."""

    def __init__(self, status_code: int, error: str, **extra: Any):
        super().__init__(error)
        self.status_code = status_code
        self.error = error
        self.extra = extra


def ok(data: Any = None, message: str | None = None, status_code: int = 200, **extra: Any) -> JSONResponse:
    body: dict[str, Any] = {"success": True}
    if data is not None:
        body["data"] = data
    if message:
        body["message"] = message
    body.update(extra)
    return JSONResponse(jsonable_encoder(body), status_code=status_code)


def fail(status_code: int, error: str, **extra: Any) -> JSONResponse:
    body = {"success": False, "error": error}
    body.update(extra)
    return JSONResponse(jsonable_encoder(body), status_code=status_code)


# -------------------------------------------------
# Time & ids
# -------------------------------------------------
def utcnow() -> datetime:
    """Naive UTC timestamp, matching the TIMESTAMP columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_uuid(value: str, not_found: str = "Not found") -> uuid.UUID:
    try:
        return uuid.UUID(str(value))
    except (ValueError, TypeError):
        raise StorefrontError(404, not_found)


def _random_suffix(length: int = 6) -> str:
    return "".join(secrets.choice(_REF_ALPHABET) for _ in range(length))


def generate_reference(prefix: str) -> str:
    """PREFIX-<epoch ms>-<6 uppercase base36 chars>"""
    return f"{prefix}-{int(time.time() * 1000)}-{_random_suffix()}"


def generate_order_number() -> str:
    timestamp = str(int(time.time() * 1000))
    return f"ORD-{timestamp[-6:]}{_random_suffix()}"


# -------------------------------------------------
# Money
# -------------------------------------------------
def to_money(value: Any) -> Decimal:
    return Decimal(str(value if value is not None else 0)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def mask_sensitive(value: str, visible: int = 4) -> str:
    value = str(value or "")
    if len(value) <= visible * 2:
        return "*" * len(value)
    return f"{value[:visible]}…{value[-visible:]}"


# -------------------------------------------------
# Route error boundary
# -------------------------------------------------
@contextmanager
def fails_with(message: str, status_code: int = 500):
    """
    Let StorefrontError through; anything else is logged, sent to Sentry
    and turned into StorefrontError(status_code, message).
    """
    try:
        yield
    except StorefrontError:
        raise
    except Exception as e:
        logger.exception(f"❌ {message}: {e}")
        capture_exception(e)
        raise StorefrontError(status_code, message) from e
