# ========================================================
# services/events.py
# Event listing, registration & cancellation
# ========================================================
from datetime import timedelta
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from config import APP_URL, DEFAULT_CURRENCY
from helpers import StorefrontError, generate_reference, parse_uuid, to_money, utcnow
from logging_setup import get_logger
from models import Event, EventRegistration, User
from schemas import EventRegistrationRequest
from services import payments as ledger
from services.payment_providers import PaymentIntent, PaymentService

logger = get_logger(__name__)

NOT_AVAILABLE = "Event not found or not available for registration"
CANCELLATION_WINDOW = timedelta(hours=24)


def serialize_event(event: Event, organizer: Optional[User] = None, registration_count: int = 0) -> dict:
    return {
        "id": event.id,
        "title": event.title,
        "description": event.description,
        "type": event.type,
        "status": event.status,
        "startDate": event.start_date,
        "endDate": event.end_date,
        "timezone": event.timezone,
        "location": event.location,
        "isOnline": event.is_online,
        "maxAttendees": event.max_attendees,
        "price": event.price,
        "isFree": event.is_free,
        "organizerId": event.organizer_id,
        "isPublished": event.is_published,
        "registrationDeadline": event.registration_deadline,
        "createdAt": event.created_at,
        "organizer": {"id": organizer.id, "name": organizer.name, "avatar": organizer.avatar} if organizer else None,
        "registrationCount": registration_count,
    }


def serialize_registration(registration: EventRegistration) -> dict:
    return {
        "id": registration.id,
        "eventId": registration.event_id,
        "userId": registration.user_id,
        "status": registration.status,
        "paymentStatus": registration.payment_status,
        "paymentReference": registration.payment_reference,
        "amountPaid": registration.amount_paid,
        "specialRequests": registration.special_requests,
        "registeredAt": registration.registered_at,
    }


def is_free_event(event: Event) -> bool:
    return bool(event.is_free) or Decimal(event.price or 0) == 0


# -------------------------------------------------
# Listing
# -------------------------------------------------
async def list_events(
    session: AsyncSession,
    event_type: Optional[str] = None,
    status: str = "published",
    upcoming: bool = False,
    limit: int = 10,
    offset: int = 0,
) -> List[dict]:
    counts = (
        select(EventRegistration.event_id, func.count(EventRegistration.id).label("registration_count"))
        .where(EventRegistration.status != "cancelled")
        .group_by(EventRegistration.event_id)
        .subquery()
    )
    stmt = (
        select(Event, User, func.coalesce(counts.c.registration_count, 0))
        .outerjoin(User, Event.organizer_id == User.id)
        .outerjoin(counts, counts.c.event_id == Event.id)
    )
    if status != "all":
        stmt = stmt.where(Event.status == status)
    if event_type and event_type != "all":
        stmt = stmt.where(Event.type == event_type)
    if upcoming:
        stmt = stmt.where(Event.start_date >= utcnow())

    stmt = stmt.order_by(Event.start_date.desc()).limit(limit).offset(offset)
    rows = (await session.execute(stmt)).all()
    return [serialize_event(event, organizer, count) for event, organizer, count in rows]


async def _active_registration_count(session: AsyncSession, event_id) -> int:
    return await session.scalar(
        select(func.count())
        .select_from(EventRegistration)
        .where(EventRegistration.event_id == event_id, EventRegistration.status != "cancelled")
    )


async def _find_registration(session: AsyncSession, event_id, user_id) -> Optional[EventRegistration]:
    result = await session.execute(
        select(EventRegistration).where(
            EventRegistration.event_id == event_id,
            EventRegistration.user_id == user_id,
        )
    )
    return result.scalar_one_or_none()


async def get_registration_status(session: AsyncSession, user: User, event_id) -> dict:
    registration = await _find_registration(session, parse_uuid(event_id, "Registration not found"), user.id)
    return {
        "isRegistered": registration is not None,
        "registration": serialize_registration(registration) if registration else None,
    }


# -------------------------------------------------
# Register
# -------------------------------------------------
async def register_for_event(
    session: AsyncSession,
    payments: PaymentService,
    user: User,
    event_id,
    payload: EventRegistrationRequest,
) -> dict:
    event = await session.get(Event, parse_uuid(event_id, NOT_AVAILABLE))
    if event is None or not event.is_published or event.status != "published":
        raise StorefrontError(404, NOT_AVAILABLE)

    now = utcnow()
    if event.registration_deadline and now > event.registration_deadline:
        raise StorefrontError(400, "Registration deadline has passed")
    if now > event.start_date:
        raise StorefrontError(400, "Event has already started")

    if await _find_registration(session, event.id, user.id):
        raise StorefrontError(400, "You are already registered for this event")

    if event.max_attendees and await _active_registration_count(session, event.id) >= event.max_attendees:
        raise StorefrontError(400, "Event is fully booked")

    free = is_free_event(event)
    amount = to_money(0 if free else event.price)
    reference = None if free else generate_reference("EVT")

    registration = EventRegistration(
        event_id=event.id,
        user_id=user.id,
        status="registered",
        payment_status="completed" if free else "pending",
        payment_reference=reference,
        amount_paid=amount if free else None,
        special_requests=payload.special_requests,
    )
    session.add(registration)
    try:
        await session.flush()
    except IntegrityError:
        await session.rollback()
        raise StorefrontError(400, "You are already registered for this event")

    payment_url = None
    if not free:
        metadata = {
            "eventId": str(event.id),
            "eventTitle": event.title,
            "registrationId": str(registration.id),
            "userId": str(user.id),
            "type": ledger.EVENT_REGISTRATION,
        }
        result = await payments.initialize_payment(
            payload.payment_method,
            PaymentIntent(
                user_id=str(user.id),
                amount=amount,
                currency=DEFAULT_CURRENCY,
                customer_email=user.email,
                customer_name=user.name,
                callback_url=f"{APP_URL}/api/payment/verify/event/{payload.payment_method}",
                metadata=metadata,
                reference=reference,
                description=f"Registration for {event.title}",
            ),
        )
        if not result.success:
            await session.rollback()
            raise StorefrontError(400, result.error or "Failed to register for event")

        payment_url = result.payment_url
        await ledger.record_transaction(
            session,
            reference=reference,
            provider=payload.payment_method,
            amount=amount,
            currency=DEFAULT_CURRENCY,
            customer_email=user.email,
            purpose=ledger.EVENT_REGISTRATION,
            subject_id=registration.id,
            metadata=metadata,
        )

    await session.commit()
    logger.info(f"🎟️ {user.id} registered for event {event.id} (free={free})")

    return {
        "registration": serialize_registration(registration),
        "paymentRequired": not free,
        "paymentReference": reference,
        "paymentUrl": payment_url,
        "amount": amount,
        "message": "Registration successful!" if free
        else "Registration created. Please complete payment to confirm your spot.",
    }


async def cancel_registration(session: AsyncSession, user: User, event_id) -> None:
    registration = await _find_registration(session, parse_uuid(event_id, "Registration not found"), user.id)
    if registration is None:
        raise StorefrontError(404, "Registration not found")

    event = await session.get(Event, registration.event_id)
    if event and utcnow() > event.start_date - CANCELLATION_WINDOW:
        raise StorefrontError(400, "Cannot cancel registration less than 24 hours before event")

    registration.status = "cancelled"
    await session.commit()
    logger.info(f"🚫 {user.id} cancelled registration for event {registration.event_id}")
