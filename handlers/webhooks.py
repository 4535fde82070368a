# ===============================================================
# handlers/webhooks.py
# ===============================================================
import json

from fastapi import APIRouter, Depends, FastAPI, Request
from sqlalchemy.ext.asyncio import AsyncSession

from config import PAYSTACK, FLUTTERWAVE
from db import get_session
from helpers import fail, fails_with, ok
from logging_setup import get_logger
from services import payments as ledger
from services import webhooks
from services.payment_providers import PaymentService, get_payment_service

logger = get_logger(__name__)

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])


@router.post("/paystack")
async def paystack_webhook(
    request: Request,
    session: AsyncSession = Depends(get_session),
    payments: PaymentService = Depends(get_payment_service),
):
    """
    Paystack webhook.
    - x-paystack-signature is HMAC-SHA512 of the raw body
    - raw body is stored before processing
    """
    raw_body = await request.body()
    signature = request.headers.get("x-paystack-signature", "")

    if not payments.paystack.validate_webhook(raw_body, signature):
        logger.warning("⚠️ Invalid Paystack webhook signature")
        return fail(400, "Invalid signature")

    with fails_with("Webhook processing failed"):
        await ledger.log_transaction(session, PAYSTACK, raw_body.decode("utf-8", errors="ignore"))
        event = json.loads(raw_body)
        if isinstance(event, dict):
            outcome = await webhooks.handle_paystack_event(session, event)
        else:
            logger.warning("⚠️ Paystack webhook body is not an object; ignoring.")
            outcome = "ignored"
        await session.commit()

    return ok(status=outcome)


@router.post("/flutterwave")
async def flutterwave_webhook(
    request: Request,
    session: AsyncSession = Depends(get_session),
    payments: PaymentService = Depends(get_payment_service),
):
    """
    Flutterwave webhook.
    - verif-hash checked with constant-time compare
    - charge.completed double-verified with the Flutterwave API
    """
    raw_body = await request.body()
    signature = request.headers.get("verif-hash", "")

    if not payments.flutterwave.validate_webhook(raw_body, signature):
        logger.warning("⚠️ Invalid Flutterwave webhook signature")
        return fail(400, "Invalid signature")

    with fails_with("Webhook processing failed"):
        await ledger.log_transaction(session, FLUTTERWAVE, raw_body.decode("utf-8", errors="ignore"))
        event = json.loads(raw_body)
        if isinstance(event, dict):
            outcome = await webhooks.handle_flutterwave_event(session, payments, event)
        else:
            logger.warning("⚠️ Flutterwave webhook body is not an object; ignoring.")
            outcome = "ignored"
        await session.commit()

    return ok(status=outcome)


def register_handlers(app: FastAPI) -> None:
    app.include_router(router)
