# ===============================================================
# handlers/health.py
# ===============================================================
import time

from fastapi import APIRouter, Depends, FastAPI
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from config import APP_VERSION, ENVIRONMENT, RESEND_API_KEY
from db import get_session, test_connection
from helpers import utcnow
from services.payment_providers import PaymentService, get_payment_service

router = APIRouter(tags=["health"])

STARTED_AT = time.monotonic()
HEALTH_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "X-Health-Check": "true",
}


def _configured(name: str, ok: bool) -> dict:
    if ok:
        return {"status": "healthy", "message": f"{name} credentials configured"}
    return {"status": "warning", "message": f"{name} credentials missing"}


@router.get("/api/health")
@router.head("/api/health")
async def health_check(
    session: AsyncSession = Depends(get_session),
    payments: PaymentService = Depends(get_payment_service),
):
    """healthy/degraded -> 200, unhealthy -> 503."""
    started = time.monotonic()
    checks = {}

    try:
        checks["database"] = {
            "status": "healthy",
            "responseTime": await test_connection(session),
            "message": "Database connection successful",
        }
    except Exception as e:
        checks["database"] = {
            "status": "unhealthy",
            "error": "Database connection failed",
            "message": str(e),
        }

    checks["externalServices"] = {
        "paystack": _configured("Paystack", bool(payments.paystack.secret_key)),
        "flutterwave": _configured("Flutterwave", bool(payments.flutterwave.secret_key)),
        "resend": _configured("Resend", bool(RESEND_API_KEY)),
    }

    statuses = [checks["database"]["status"]]
    statuses += [svc["status"] for svc in checks["externalServices"].values()]
    if "unhealthy" in statuses:
        status = "unhealthy"
    elif "warning" in statuses:
        status = "degraded"
    else:
        status = "healthy"

    checks["responseTime"] = {"value": round((time.monotonic() - started) * 1000), "unit": "ms"}
    body = {
        "status": status,
        "timestamp": utcnow().isoformat() + "Z",
        "version": APP_VERSION,
        "environment": ENVIRONMENT,
        "uptime": round(time.monotonic() - STARTED_AT, 3),
        "checks": checks,
    }
    return JSONResponse(body, status_code=503 if status == "unhealthy" else 200, headers=HEALTH_HEADERS)


def register_handlers(app: FastAPI) -> None:
    app.include_router(router)
