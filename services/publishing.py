# ========================================================
# services/publishing.py
# Manuscript submissions & the submission fee
# ========================================================
from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config import APP_URL, DEFAULT_CURRENCY, SUBMISSION_FEE
from helpers import StorefrontError, generate_reference, parse_uuid
from logging_setup import get_logger
from models import AuthorProfile, BookSubmission, User
from schemas import CreateSubmissionRequest, SubmissionPaymentRequest
from services import payments as ledger
from services.payment_providers import PaymentIntent, PaymentService

logger = get_logger(__name__)


def serialize_submission(submission: BookSubmission) -> dict:
    return {
        "id": submission.id,
        "authorId": submission.author_id,
        "title": submission.title,
        "description": submission.description,
        "category": submission.category,
        "price": submission.price,
        "manuscriptFile": submission.manuscript_file,
        "coverImage": submission.cover_image,
        "synopsis": submission.synopsis,
        "authorBio": submission.author_bio,
        "targetAudience": submission.target_audience,
        "marketingPlan": submission.marketing_plan,
        "status": submission.status,
        "submissionFee": submission.submission_fee,
        "feePaymentStatus": submission.fee_payment_status,
        "feePaymentReference": submission.fee_payment_reference,
        "submittedAt": submission.submitted_at,
        "reviewedAt": submission.reviewed_at,
        "reviewNotes": submission.review_notes,
        "rejectionReason": submission.rejection_reason,
        "createdAt": submission.created_at,
        "updatedAt": submission.updated_at,
    }


async def list_submissions(session: AsyncSession, user: User) -> List[dict]:
    result = await session.execute(
        select(BookSubmission)
        .where(BookSubmission.author_id == user.id)
        .order_by(BookSubmission.created_at)
    )
    return [serialize_submission(s) for s in result.scalars().all()]


async def ensure_author_profile(session: AsyncSession, user: User, bio: str | None = None) -> AuthorProfile:
    result = await session.execute(select(AuthorProfile).where(AuthorProfile.user_id == user.id))
    profile = result.scalar_one_or_none()
    if profile:
        return profile

    profile = AuthorProfile(user_id=user.id, display_name=user.name or "Author", bio=bio)
    session.add(profile)
    await session.flush()
    logger.info(f"✍️ Author profile created for {user.id}")
    return profile


async def create_submission(session: AsyncSession, user: User, payload: CreateSubmissionRequest) -> dict:
    """Saved as a draft; it enters review once the fee is paid."""
    await ensure_author_profile(session, user, payload.author_bio)

    submission = BookSubmission(
        author_id=user.id,
        title=payload.title,
        description=payload.description,
        category=payload.category,
        price=payload.price,
        manuscript_file=str(payload.manuscript_file),
        cover_image=str(payload.cover_image) if payload.cover_image else None,
        synopsis=payload.synopsis,
        author_bio=payload.author_bio,
        target_audience=payload.target_audience,
        marketing_plan=payload.marketing_plan,
        status="draft",
        submission_fee=SUBMISSION_FEE,
        fee_payment_status="pending",
    )
    session.add(submission)
    await session.commit()
    logger.info(f"📝 Submission {submission.id} created by {user.id}")
    return serialize_submission(submission)


async def pay_submission_fee(
    session: AsyncSession,
    payments: PaymentService,
    user: User,
    submission_id,
    payload: SubmissionPaymentRequest,
) -> dict:
    submission = await session.get(BookSubmission, parse_uuid(submission_id, "Submission not found"))
    if submission is None or submission.author_id != user.id:
        raise StorefrontError(404, "Submission not found")

    if submission.fee_payment_status == "completed":
        raise StorefrontError(400, "Submission fee already paid")

    reference = generate_reference("SUB")
    metadata = {
        "submissionId": str(submission.id),
        "submissionTitle": submission.title,
        "userId": str(user.id),
        "type": ledger.SUBMISSION_FEE,
    }
    if payload.redirect_url:
        metadata["redirectUrl"] = str(payload.redirect_url)

    result = await payments.initialize_payment(
        payload.payment_method,
        PaymentIntent(
            user_id=str(user.id),
            amount=submission.submission_fee,
            currency=DEFAULT_CURRENCY,
            customer_email=user.email,
            customer_name=user.name,
            callback_url=f"{APP_URL}/api/payment/verify/submission/{payload.payment_method}",
            metadata=metadata,
            reference=reference,
            description=f'Submission fee for "{submission.title}"',
        ),
    )
    if not result.success:
        raise StorefrontError(400, result.error or "Failed to process payment")

    await ledger.record_transaction(
        session,
        reference=reference,
        provider=payload.payment_method,
        amount=submission.submission_fee,
        currency=DEFAULT_CURRENCY,
        customer_email=user.email,
        purpose=ledger.SUBMISSION_FEE,
        subject_id=submission.id,
        metadata=metadata,
    )
    submission.fee_payment_reference = reference
    await session.commit()
    logger.info(f"💳 Submission fee initialized for {submission.id} ({reference})")

    return {
        "submission": serialize_submission(submission),
        "payment": {
            "reference": reference,
            "authorizationUrl": result.payment_url,
            "provider": result.provider,
        },
    }
