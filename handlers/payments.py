# ===============================================================
# handlers/payments.py
# ===============================================================
from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from config import APP_URL, DEFAULT_CURRENCY, SUPPORTED_CURRENCIES
from db import get_session
from helpers import fail, fails_with, ok
from logging_setup import get_logger
from models import User
from schemas import InitializePaymentRequest, VerifyPaymentRequest
from services import checkout
from services.payment_providers import PaymentService, get_payment_service
from utils.security import get_current_user

logger = get_logger(__name__)

router = APIRouter(prefix="/api/payment", tags=["payment"])


# -------------------------------------------------
# Providers for a currency
# -------------------------------------------------
@router.get("/providers")
async def payment_providers(currency: str = Query(DEFAULT_CURRENCY, min_length=3, max_length=3)):
    currency = currency.upper()
    return ok({
        "currency": currency,
        "supported": currency in SUPPORTED_CURRENCIES,
        "providers": PaymentService.get_available_providers(currency),
        "recommended": PaymentService.get_recommended_provider(currency),
    })


# -------------------------------------------------
# Initialize / verify an order payment
# -------------------------------------------------
@router.post("/initialize")
async def initialize_payment(
    payload: InitializePaymentRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    payments: PaymentService = Depends(get_payment_service),
):
    with fails_with("Failed to initialize payment"):
        data = await checkout.initialize_order_payment(session, payments, user, payload)
    return ok(data, message="Payment initialized successfully")


@router.post("/verify")
async def verify_payment(
    payload: VerifyPaymentRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    payments: PaymentService = Depends(get_payment_service),
):
    with fails_with("Failed to verify payment"):
        verified, data = await checkout.verify_order_payment(session, payments, user, payload)

    if not verified:
        return fail(400, "Payment verification failed", data=data)
    if data.get("alreadyVerified"):
        return ok(data, message="Payment already verified")
    return ok(data, message="Payment verified successfully")


# -------------------------------------------------
# Gateway redirect callbacks
# -------------------------------------------------
async def _redirect_callback(request, session, payments, provider, on_success, error_base):
    try:
        txn = await checkout.confirm_redirect_payment(session, payments, provider, request.query_params)
    except checkout.CallbackFailure as e:
        logger.warning(f"⚠️ {provider} callback failed: {e.code}")
        return RedirectResponse(f"{APP_URL}{error_base}?error={e.code}", status_code=302)
    except Exception as e:
        logger.exception(f"❌ Error verifying {provider} callback: {e}")
        return RedirectResponse(f"{APP_URL}{error_base}?error=verification_failed", status_code=302)
    return RedirectResponse(on_success(txn), status_code=302)


@router.get("/verify/submission/{provider}")
async def verify_submission_callback(
    provider: str,
    request: Request,
    session: AsyncSession = Depends(get_session),
    payments: PaymentService = Depends(get_payment_service),
):
    return await _redirect_callback(
        request, session, payments, provider, checkout.submission_redirect_url, "/publishing"
    )


@router.get("/verify/event/{provider}")
async def verify_event_callback(
    provider: str,
    request: Request,
    session: AsyncSession = Depends(get_session),
    payments: PaymentService = Depends(get_payment_service),
):
    return await _redirect_callback(
        request, session, payments, provider, checkout.event_redirect_url, "/events"
    )


@router.get("/verify/{provider}")
async def verify_course_callback(
    provider: str,
    request: Request,
    session: AsyncSession = Depends(get_session),
    payments: PaymentService = Depends(get_payment_service),
):
    return await _redirect_callback(
        request, session, payments, provider, checkout.course_redirect_url, "/academy"
    )


def register_handlers(app: FastAPI) -> None:
    app.include_router(router)
