# ========================================================
# services/webhooks.py
# Paystack & Flutterwave webhook events -> settlement
# ========================================================
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from config import PAYSTACK, FLUTTERWAVE
from helpers import parse_uuid, StorefrontError
from logging_setup import get_logger
from models import Order, PaymentTransaction
from services import payments as ledger
from services.payment_providers import (
    PaymentProviderError,
    PaymentService,
    PaystackService,
    VerificationResult,
)

logger = get_logger(__name__)


async def _transaction_for_event(
    session: AsyncSession,
    provider: str,
    reference: str,
    data: Dict[str, Any],
    meta: Dict[str, Any],
) -> Optional[PaymentTransaction]:
    """
    Known reference -> its transaction. Unknown reference -> a new book-order
    transaction if the metadata names an existing order, else None.
    """
    txn = await ledger.get_transaction(session, reference)
    if txn is not None:
        return txn

    order_id = meta.get("orderId")
    if not order_id:
        logger.error(f"❌ No order ID in payment metadata for {reference}")
        return None

    try:
        order = await session.get(Order, parse_uuid(order_id))
    except StorefrontError:
        order = None
    if order is None:
        logger.error(f"❌ Order not found for webhook reference {reference}: {order_id}")
        return None

    return await ledger.record_transaction(
        session,
        reference=reference,
        provider=provider,
        amount=order.total,
        currency=data.get("currency") or "NGN",
        customer_email=(data.get("customer") or {}).get("email") or "",
        purpose=ledger.COURSE_ENROLLMENT if order.course_id else ledger.BOOK_ORDER,
        order_id=order.id,
        metadata=meta,
    )


async def _settle(session: AsyncSession, txn: PaymentTransaction, verification: VerificationResult) -> str:
    outcome = await ledger.settle_transaction(session, txn, verification)
    if outcome == "successful":
        await ledger.notify_settlement(session, txn)
    return outcome


# -------------------------------------------------
# Paystack
# -------------------------------------------------
async def handle_paystack_event(session: AsyncSession, event: Dict[str, Any]) -> str:
    """The body is already signature-checked, so its data is trusted as the verification."""
    name = event.get("event")
    data = event.get("data") or {}
    logger.info(f"📩 Paystack webhook event: {name}")

    if name in ("charge.success", "charge.failed"):
        reference = data.get("reference")
        if not reference:
            logger.error("❌ Paystack webhook missing reference; ignoring.")
            return "ignored"

        existing = await ledger.get_transaction(session, reference)
        if existing and existing.status == "successful":
            logger.info(f"🔁 Duplicate webhook ignored for reference={reference}")
            return "duplicate"

        meta = data.get("metadata") or {}
        amount = PaystackService.from_kobo(data.get("amount"))
        txn = await _transaction_for_event(session, PAYSTACK, reference, data, meta)
        if txn is None:
            return "ignored"

        verification = VerificationResult(
            success=name == "charge.success" and data.get("status") == "success",
            status=data.get("status") or ("failed" if name == "charge.failed" else "unknown"),
            amount=amount,
            currency=data.get("currency") or "",
            reference=reference,
            customer_email=(data.get("customer") or {}).get("email") or "",
            provider=PAYSTACK,
            metadata=meta,
            data=data,
        )
        return await _settle(session, txn, verification)

    if name in ("transfer.success", "transfer.failed", "transfer.reversed"):
        logger.info(f"🏦 Paystack {name}: {data.get('reference')} {data.get('amount')}")
        return "logged"

    logger.info(f"ℹ️ Unhandled Paystack event: {name}")
    return "ignored"


# -------------------------------------------------
# Flutterwave
# -------------------------------------------------
async def handle_flutterwave_event(session: AsyncSession, payments: PaymentService, event: Dict[str, Any]) -> str:
    """charge.completed is double-checked against the verify API before anything is credited."""
    name = event.get("event")
    data = event.get("data") or {}
    logger.info(f"📩 Flutterwave webhook event: {name}")

    if name in ("charge.completed", "charge.failed"):
        tx_ref = data.get("tx_ref") or data.get("reference")
        if not tx_ref:
            logger.error("❌ Flutterwave webhook missing tx_ref; ignoring.")
            return "ignored"

        existing = await ledger.get_transaction(session, tx_ref)
        if existing and existing.status == "successful":
            logger.info(f"🔁 Duplicate webhook ignored for tx_ref={tx_ref}")
            return "duplicate"

        meta = data.get("meta") or data.get("meta_data") or event.get("meta_data") or {}
        amount = Decimal(str(data.get("amount") or 0))

        if name == "charge.completed":
            try:
                verification = await payments.verify_payment(FLUTTERWAVE, str(data.get("id")))
            except PaymentProviderError as e:
                logger.warning(f"⚠️ Could not verify {tx_ref} with Flutterwave, not crediting: {e.message}")
                return "unverified"
            if verification.reference and verification.reference != tx_ref:
                logger.warning(f"⚠️ tx_ref mismatch for {tx_ref}: API says {verification.reference}")
                return "ignored"
        else:
            verification = VerificationResult(
                success=False,
                status=data.get("status") or "failed",
                amount=amount,
                currency=data.get("currency") or "",
                reference=tx_ref,
                customer_email=(data.get("customer") or {}).get("email") or "",
                provider=FLUTTERWAVE,
                metadata=meta,
                data=data,
            )

        txn = await _transaction_for_event(session, FLUTTERWAVE, tx_ref, data, meta)
        if txn is None:
            return "ignored"
        return await _settle(session, txn, verification)

    if name in ("transfer.completed", "transfer.failed"):
        logger.info(f"🏦 Flutterwave {name}: {data.get('reference')} {data.get('amount')}")
        return "logged"

    logger.info(f"ℹ️ Unhandled Flutterwave event: {name}")
    return "ignored"
