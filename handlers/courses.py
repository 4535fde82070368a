# ===============================================================
# handlers/courses.py
# ===============================================================
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI
from sqlalchemy.ext.asyncio import AsyncSession

from db import get_session
from helpers import fails_with, ok
from models import User
from schemas import EnrollRequest
from services import academy
from services.payment_providers import PaymentService, get_payment_service
from utils.security import get_current_user

router = APIRouter(prefix="/api/courses", tags=["courses"])


@router.get("")
async def list_courses(
    level: Optional[str] = None,
    published: bool = True,
    session: AsyncSession = Depends(get_session),
):
    with fails_with("Failed to fetch courses"):
        data = await academy.list_courses(session, level, published)
    return ok(data)


@router.post("/{course_id}/enroll")
async def enroll(
    course_id: str,
    payload: Optional[EnrollRequest] = None,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    payments: PaymentService = Depends(get_payment_service),
):
    with fails_with("Failed to process enrollment"):
        data = await academy.enroll_in_course(session, payments, user, course_id, payload or EnrollRequest())
    message = data.pop("message")
    return ok(data, message=message)


def register_handlers(app: FastAPI) -> None:
    app.include_router(router)
