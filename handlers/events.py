# ===============================================================
# handlers/events.py
# ===============================================================
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Query
from sqlalchemy.ext.asyncio import AsyncSession

from db import get_session
from helpers import fails_with, ok
from models import User
from schemas import EventRegistrationRequest
from services import events
from services.payment_providers import PaymentService, get_payment_service
from utils.security import get_current_user

router = APIRouter(prefix="/api/events", tags=["events"])


@router.get("")
async def list_events(
    type: Optional[str] = None,
    status: str = "published",
    upcoming: bool = False,
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_session),
):
    with fails_with("Failed to fetch events"):
        data = await events.list_events(session, type, status, upcoming, limit, offset)
    return ok(data)


@router.get("/{event_id}/register")
async def registration_status(
    event_id: str,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    with fails_with("Failed to check registration status"):
        data = await events.get_registration_status(session, user, event_id)
    return ok(data)


@router.post("/{event_id}/register")
async def register(
    event_id: str,
    payload: Optional[EventRegistrationRequest] = None,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    payments: PaymentService = Depends(get_payment_service),
):
    with fails_with("Failed to register for event"):
        data = await events.register_for_event(
            session, payments, user, event_id, payload or EventRegistrationRequest()
        )
    message = data.pop("message")
    return ok(data, message=message)


@router.delete("/{event_id}/register")
async def cancel_registration(
    event_id: str,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    with fails_with("Failed to cancel registration"):
        await events.cancel_registration(session, user, event_id)
    return ok(message="Registration cancelled successfully")


def register_handlers(app: FastAPI) -> None:
    app.include_router(router)
