# ================================================================
# services/payments.py
# Persisting gateway outcomes: transactions, settlement, webhook log
# ================================================================
import uuid
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from helpers import utcnow, to_money, mask_sensitive
from logging_setup import get_logger
from models import (
    PaymentTransaction,
    TransactionLog,
    Order,
    BookSubmission,
    EventRegistration,
    Enrollment,
    Course,
    User,
)
from services import mailer
from services.payment_providers.types import VerificationResult

logger = get_logger(__name__)

BOOK_ORDER = "book_order"
COURSE_ENROLLMENT = "course_enrollment"
SUBMISSION_FEE = "submission_fee"
EVENT_REGISTRATION = "event_registration"

TERMINAL_STATUSES = ("successful", "failed", "expired")


def _as_uuid(value: Any) -> Optional[uuid.UUID]:
    if value is None or isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


# ------------------------------------------------------
# 1. Transaction records
# ------------------------------------------------------
async def get_transaction(session: AsyncSession, reference: str) -> Optional[PaymentTransaction]:
    result = await session.execute(
        select(PaymentTransaction).where(PaymentTransaction.reference == str(reference))
    )
    return result.scalar_one_or_none()


async def record_transaction(
    session: AsyncSession,
    *,
    reference: str,
    provider: str,
    amount,
    currency: str,
    customer_email: str = "",
    status: str = "pending",
    purpose: str = BOOK_ORDER,
    order_id=None,
    subject_id=None,
    metadata: Optional[dict] = None,
    provider_response: Optional[dict] = None,
    verified: bool = False,
) -> PaymentTransaction:
    """
    Create or update the payment_transactions row for `reference`.
    Flushes only; the caller commits.
    """
    txn = await get_transaction(session, reference)
    if txn is None:
        txn = PaymentTransaction(reference=str(reference), purpose=purpose)
        session.add(txn)

    txn.provider = provider
    txn.status = status
    txn.amount = to_money(amount)
    txn.currency = currency
    txn.customer_email = customer_email or txn.customer_email or ""
    txn.purpose = purpose or txn.purpose
    if order_id is not None:
        txn.order_id = _as_uuid(order_id)
    if subject_id is not None:
        txn.subject_id = _as_uuid(subject_id)
    if metadata is not None:
        txn.meta = metadata
    if provider_response is not None:
        txn.provider_response = provider_response
    if verified:
        txn.verified_at = utcnow()

    await session.flush()
    return txn


async def log_transaction(session: AsyncSession, provider: str, payload: str) -> None:
    """Keep the raw webhook body for manual review."""
    session.add(TransactionLog(provider=provider, payload=payload))
    await session.flush()


# ------------------------------------------------------
# 2. Settlement
# ------------------------------------------------------
async def settle_transaction(
    session: AsyncSession,
    txn: PaymentTransaction,
    verification: VerificationResult,
) -> str:
    """
    Apply a verified gateway outcome to the transaction and to whatever it pays for.
    Returns "duplicate" if the transaction was already successful, else the new status.
    Commits.
    """
    if txn.status == "successful":
        logger.info(f"🔁 Transaction {mask_sensitive(txn.reference)} already settled, skipping")
        return "duplicate"

    expected = to_money(txn.amount)
    paid = to_money(verification.amount)
    successful = verification.success

    if successful and expected > 0 and paid < expected:
        logger.warning(f"⚠️ Underpayment on {txn.reference}: expected {expected}, got {paid}")
        successful = False

    if successful and txn.currency and verification.currency and txn.currency.upper() != verification.currency.upper():
        logger.warning(f"⚠️ Currency mismatch on {txn.reference}: {txn.currency} vs {verification.currency}")
        successful = False

    txn.provider_response = verification.data
    txn.verified_at = utcnow()
    if verification.customer_email:
        txn.customer_email = verification.customer_email

    if successful:
        txn.status = "successful"
        await _apply_success(session, txn, paid)
        logger.info(f"✅ Transaction {txn.reference} settled ({txn.purpose})")
    else:
        txn.status = "failed"
        await _apply_failure(session, txn)
        logger.info(f"❌ Transaction {txn.reference} marked failed (gateway status={verification.status})")

    await session.commit()
    return txn.status


async def _apply_success(session: AsyncSession, txn: PaymentTransaction, paid: Decimal) -> None:
    now = utcnow()

    if txn.purpose in (BOOK_ORDER, COURSE_ENROLLMENT):
        order = await session.get(Order, txn.order_id) if txn.order_id else None
        if order is None:
            logger.error(f"❌ Order not found for transaction {txn.reference}")
            return

        order.payment_status = "completed"
        order.payment_reference = txn.reference
        order.paid_at = now
        if txn.purpose == BOOK_ORDER:
            if order.status == "pending":
                order.status = "confirmed"
            return

        order.status = "delivered"
        course_id = order.course_id or _as_uuid((txn.meta or {}).get("courseId"))
        if course_id is None:
            logger.error(f"❌ No course linked to transaction {txn.reference}")
            return
        await ensure_enrollment(session, order.user_id, course_id)

    elif txn.purpose == SUBMISSION_FEE:
        submission = await session.get(BookSubmission, txn.subject_id) if txn.subject_id else None
        if submission is None:
            logger.error(f"❌ Submission not found for transaction {txn.reference}")
            return
        submission.fee_payment_status = "completed"
        submission.fee_payment_reference = txn.reference
        if submission.status == "draft":
            submission.status = "submitted"
        submission.submitted_at = now

    elif txn.purpose == EVENT_REGISTRATION:
        registration = await session.get(EventRegistration, txn.subject_id) if txn.subject_id else None
        if registration is None:
            logger.error(f"❌ Registration not found for transaction {txn.reference}")
            return
        registration.payment_status = "completed"
        registration.amount_paid = paid


async def _apply_failure(session: AsyncSession, txn: PaymentTransaction) -> None:
    if txn.purpose in (BOOK_ORDER, COURSE_ENROLLMENT) and txn.order_id:
        order = await session.get(Order, txn.order_id)
        if order and order.payment_status != "completed":
            order.payment_status = "failed"
    elif txn.purpose == SUBMISSION_FEE and txn.subject_id:
        submission = await session.get(BookSubmission, txn.subject_id)
        if submission and submission.fee_payment_status != "completed":
            submission.fee_payment_status = "failed"
    elif txn.purpose == EVENT_REGISTRATION and txn.subject_id:
        registration = await session.get(EventRegistration, txn.subject_id)
        if registration and registration.payment_status != "completed":
            registration.payment_status = "failed"


async def ensure_enrollment(session: AsyncSession, user_id, course_id) -> Enrollment:
    result = await session.execute(
        select(Enrollment).where(Enrollment.user_id == user_id, Enrollment.course_id == course_id)
    )
    enrollment = result.scalar_one_or_none()
    if enrollment:
        return enrollment

    enrollment = Enrollment(user_id=user_id, course_id=course_id, progress=0)
    session.add(enrollment)
    await session.flush()
    logger.info(f"🎓 Enrolled user {user_id} in course {course_id}")
    return enrollment


# ------------------------------------------------------
# 3. Notifications after settlement
# ------------------------------------------------------
async def notify_settlement(session: AsyncSession, txn: PaymentTransaction) -> None:
    """Best-effort emails for a successful transaction. Never raises."""
    if txn.status != "successful":
        return

    try:
        if txn.purpose == BOOK_ORDER and txn.order_id:
            order = await session.get(Order, txn.order_id)
            if order:
                await mailer.notify_safely(
                    mailer.send_payment_confirmation(txn.customer_email, order.order_number, txn.amount, txn.currency)
                )
        elif txn.purpose == COURSE_ENROLLMENT and txn.order_id:
            order = await session.get(Order, txn.order_id)
            course = await session.get(Course, order.course_id) if order and order.course_id else None
            user = await session.get(User, order.user_id) if order else None
            if course and user:
                instructor = await session.get(User, course.instructor_id)
                await mailer.notify_safely(
                    mailer.send_enrollment_welcome(
                        user.email,
                        user.name or "Student",
                        course.title,
                        str(course.id),
                        instructor.name if instructor else "DIFY Academy Team",
                    )
                )
    except Exception as e:
        logger.warning(f"⚠️ Could not send settlement notification for {txn.reference}: {e}")
