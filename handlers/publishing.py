# ===============================================================
# handlers/publishing.py
# ===============================================================
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI
from sqlalchemy.ext.asyncio import AsyncSession

from db import get_session
from helpers import fails_with, ok
from models import User
from schemas import CreateSubmissionRequest, SubmissionPaymentRequest
from services import publishing
from services.payment_providers import PaymentService, get_payment_service
from utils.security import get_current_user

router = APIRouter(prefix="/api/publishing", tags=["publishing"])


@router.get("/submissions")
async def list_submissions(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    with fails_with("Failed to fetch submissions"):
        data = await publishing.list_submissions(session, user)
    return ok(data)


@router.post("/submissions")
async def create_submission(
    payload: CreateSubmissionRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    with fails_with("Failed to create submission"):
        data = await publishing.create_submission(session, user, payload)
    return ok(
        data,
        message="Submission created successfully. Please proceed to payment to submit for review.",
        status_code=201,
    )


@router.post("/submissions/{submission_id}/pay")
async def pay_submission_fee(
    submission_id: str,
    payload: Optional[SubmissionPaymentRequest] = None,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    payments: PaymentService = Depends(get_payment_service),
):
    with fails_with("Failed to process payment"):
        data = await publishing.pay_submission_fee(
            session, payments, user, submission_id, payload or SubmissionPaymentRequest()
        )
    return ok(data, message="Payment initialized. Complete payment to submit for review.")


def register_handlers(app: FastAPI) -> None:
    app.include_router(router)
