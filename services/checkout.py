# ========================================================
# services/checkout.py
# Gateway checkout for orders, plus the browser-redirect callbacks
# ========================================================
from typing import Mapping, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from config import APP_URL, PAYSTACK, FLUTTERWAVE
from helpers import StorefrontError, parse_uuid, utcnow
from logging_setup import get_logger
from models import Book, Order, PaymentTransaction, User
from schemas import InitializePaymentRequest, VerifyPaymentRequest
from services import payments as ledger
from services.payment_providers import PaymentIntent, PaymentProviderError, PaymentService

logger = get_logger(__name__)


class CallbackFailure(Exception):
    """Redirect-callback failure; `code` ends up in ?error=<code>."""

    def __init__(self, code: str):
        super().__init__(code)
        self.code = code


def _order_purpose(order: Order) -> str:
    return ledger.COURSE_ENROLLMENT if order.course_id else ledger.BOOK_ORDER


def _check_access(order: Order, user: User) -> None:
    if not user.is_admin and order.user_id != user.id:
        raise StorefrontError(403, "Unauthorized to access this order")


def _check_reference(txn: Optional[PaymentTransaction], order: Order) -> None:
    if txn is not None and txn.order_id != order.id:
        raise StorefrontError(400, "Payment reference does not match this order")


# ------------------------------------------------------
# 1. Initialize payment for an existing order
# ------------------------------------------------------
async def initialize_order_payment(
    session: AsyncSession,
    payments: PaymentService,
    user: User,
    payload: InitializePaymentRequest,
) -> dict:
    order = await session.get(Order, parse_uuid(payload.order_id, "Order not found"))
    book = await session.get(Book, order.book_id) if order and order.book_id else None
    if order is None or book is None:
        raise StorefrontError(404, "Order not found")

    _check_access(order, user)

    if order.status != "pending":
        raise StorefrontError(400, "Order is not available for payment")
    if not book.is_available:
        raise StorefrontError(400, "Book is no longer available")

    customer = await session.get(User, order.user_id)
    intent = PaymentIntent(
        order_id=str(order.id),
        user_id=str(customer.id),
        book_id=str(book.id),
        amount=order.total,
        currency=payload.currency,
        customer_email=customer.email,
        customer_name=customer.name,
        customer_phone=customer.phone,
        callback_url=str(payload.callback_url) if payload.callback_url else f"{APP_URL}/orders/{order.id}/payment-callback",
        metadata={
            "orderNumber": order.order_number,
            "bookTitle": book.title,
            "bookAuthor": book.author,
        },
    )

    result = await payments.initialize_payment(payload.payment_method, intent)
    if not result.success:
        raise StorefrontError(400, result.error or "Failed to initialize payment")

    order.payment_reference = result.reference
    order.payment_method = payload.payment_method
    await ledger.record_transaction(
        session,
        reference=result.reference,
        provider=payload.payment_method,
        amount=order.total,
        currency=payload.currency,
        customer_email=customer.email,
        purpose=_order_purpose(order),
        order_id=order.id,
        metadata=intent.metadata,
    )
    await session.commit()
    logger.info(f"💳 Payment initialized for order {order.order_number} via {payload.payment_method}")

    return {
        "paymentUrl": result.payment_url,
        "reference": result.reference,
        "provider": result.provider,
        "amount": order.total,
        "currency": payload.currency,
        "orderId": str(order.id),
    }


# ------------------------------------------------------
# 2. Verify payment for an order (client-initiated)
# ------------------------------------------------------
async def verify_order_payment(
    session: AsyncSession,
    payments: PaymentService,
    user: User,
    payload: VerifyPaymentRequest,
) -> tuple[bool, dict]:
    """
    Returns (verified, data). For Flutterwave the reference is the gateway transaction id.
    """
    order = await session.get(Order, parse_uuid(payload.order_id, "Order not found"))
    if order is None:
        raise StorefrontError(404, "Order not found")
    _check_access(order, user)

    existing = await ledger.get_transaction(session, payload.reference)
    _check_reference(existing, order)
    if existing and existing.status == "successful":
        return True, {"alreadyVerified": True, "status": existing.status, "orderId": payload.order_id}

    try:
        verification = await payments.verify_payment(payload.provider, payload.reference)
    except PaymentProviderError:
        raise StorefrontError(500, "Failed to verify payment")

    txn = existing
    if verification.reference and verification.reference != payload.reference:
        txn = await ledger.get_transaction(session, verification.reference) or existing
        _check_reference(txn, order)
    if txn and txn.status == "successful":
        return True, {"alreadyVerified": True, "status": txn.status, "orderId": payload.order_id}

    if txn is None:
        txn = await ledger.record_transaction(
            session,
            reference=verification.reference or payload.reference,
            provider=payload.provider,
            amount=order.total,
            currency=verification.currency or "NGN",
            customer_email=verification.customer_email,
            purpose=_order_purpose(order),
            order_id=order.id,
            metadata=verification.metadata,
        )

    await ledger.settle_transaction(session, txn, verification)

    if txn.status != "successful":
        return False, {"status": verification.status, "orderId": payload.order_id}

    await ledger.notify_settlement(session, txn)
    return True, {
        "status": "successful",
        "amount": verification.amount,
        "currency": verification.currency,
        "orderId": payload.order_id,
        "verifiedAt": txn.verified_at or utcnow(),
    }


# ------------------------------------------------------
# 3. Redirect callbacks (course checkout, submission fee)
# ------------------------------------------------------
async def confirm_redirect_payment(
    session: AsyncSession,
    payments: PaymentService,
    provider: str,
    query: Mapping[str, str],
) -> PaymentTransaction:
    """
    Verify the payment named in the gateway's redirect query and settle it.
    Raises CallbackFailure with the error code used in the redirect URL.
    """
    if provider == PAYSTACK:
        reference = query.get("reference") or query.get("trxref")
        if not reference:
            raise CallbackFailure("missing_reference")
        lookup = reference
    elif provider == FLUTTERWAVE:
        reference = query.get("tx_ref")
        lookup = query.get("transaction_id")
        if query.get("status") != "successful" or not reference or not lookup:
            raise CallbackFailure("payment_failed")
    else:
        raise CallbackFailure("unsupported_provider")

    try:
        verification = await payments.verify_payment(provider, lookup)
    except PaymentProviderError:
        raise CallbackFailure("verification_failed")

    if provider == FLUTTERWAVE and verification.reference and verification.reference != reference:
        logger.warning(f"⚠️ tx_ref mismatch on callback: {reference} vs {verification.reference}")
        raise CallbackFailure("payment_failed")

    txn = await ledger.get_transaction(session, reference)
    if txn is None:
        raise CallbackFailure("transaction_not_found")

    # declined verifications settle as failed
    outcome = await ledger.settle_transaction(session, txn, verification)
    if outcome != "duplicate" and txn.status != "successful":
        raise CallbackFailure("payment_failed")

    if outcome != "duplicate":
        await ledger.notify_settlement(session, txn)
    return txn


def course_redirect_url(txn: PaymentTransaction) -> str:
    meta = txn.meta or {}
    return meta.get("redirectUrl") or f"{APP_URL}/academy/courses/{meta.get('courseId')}?enrolled=true"


def submission_redirect_url(txn: PaymentTransaction) -> str:
    meta = txn.meta or {}
    submission_id = meta.get("submissionId") or txn.subject_id
    return meta.get("redirectUrl") or f"{APP_URL}/publishing/submissions/{submission_id}?payment=success"


def event_redirect_url(txn: PaymentTransaction) -> str:
    meta = txn.meta or {}
    return meta.get("redirectUrl") or f"{APP_URL}/events/{meta.get('eventId')}?registered=true"
