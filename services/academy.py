# ========================================================
# services/academy.py
# Course catalogue & enrollment
# ========================================================
import uuid
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config import APP_URL, DEFAULT_CURRENCY
from helpers import StorefrontError, generate_order_number, parse_uuid
from logging_setup import get_logger
from models import Course, Enrollment, Order, User
from schemas import EnrollRequest
from services import mailer
from services import payments as ledger
from services.orders import serialize_order
from services.payment_providers import PaymentIntent, PaymentService

logger = get_logger(__name__)


def serialize_course(course: Course, instructor: Optional[User] = None) -> dict:
    return {
        "id": course.id,
        "title": course.title,
        "description": course.description,
        "price": course.price,
        "thumbnailImage": course.thumbnail_image,
        "duration": course.duration,
        "level": course.level,
        "isPublished": course.is_published,
        "createdAt": course.created_at,
        "instructor": {
            "id": instructor.id,
            "name": instructor.name,
            "avatar": instructor.avatar,
        } if instructor else None,
    }


def serialize_enrollment(enrollment: Enrollment) -> dict:
    return {
        "id": enrollment.id,
        "userId": enrollment.user_id,
        "courseId": enrollment.course_id,
        "progress": enrollment.progress,
        "enrolledAt": enrollment.enrolled_at,
        "completedAt": enrollment.completed_at,
    }


async def list_courses(session: AsyncSession, level: Optional[str] = None, published: bool = True) -> List[dict]:
    stmt = select(Course, User).outerjoin(User, Course.instructor_id == User.id)
    if published:
        stmt = stmt.where(Course.is_published.is_(True))
    if level and level != "all":
        stmt = stmt.where(Course.level == level)
    result = await session.execute(stmt.order_by(Course.created_at.desc()))
    return [serialize_course(course, instructor) for course, instructor in result.all()]


async def enroll_in_course(
    session: AsyncSession,
    payments: PaymentService,
    user: User,
    course_id,
    payload: EnrollRequest,
) -> dict:
    """
    Free courses enroll immediately. Paid courses open a pending order and a
    gateway checkout; the enrollment is created when the payment settles.
    """
    course = await session.get(Course, parse_uuid(course_id, "Course not found"))
    if course is None:
        raise StorefrontError(404, "Course not found")
    if not course.is_published:
        raise StorefrontError(400, "Course is not available for enrollment")

    existing = await session.execute(
        select(Enrollment.id).where(Enrollment.user_id == user.id, Enrollment.course_id == course.id)
    )
    if existing.first():
        raise StorefrontError(400, "Already enrolled in this course")

    if Decimal(course.price) == 0:
        enrollment = await ledger.ensure_enrollment(session, user.id, course.id)
        await session.commit()

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
        return {
            "enrollment": serialize_enrollment(enrollment),
            "paymentRequired": False,
            "message": "Successfully enrolled in course!",
        }

    # Paid course
    order = Order(
        id=uuid.uuid4(),
        order_number=generate_order_number(),
        user_id=user.id,
        course_id=course.id,
        total=course.price,
        status="pending",
        payment_method=payload.payment_method,
        payment_status="pending",
    )
    reference = f"COURSE-{order.order_number}"
    metadata = {
        "orderId": str(order.id),
        "courseId": str(course.id),
        "courseName": course.title,
        "userId": str(user.id),
        "type": ledger.COURSE_ENROLLMENT,
    }
    if payload.redirect_url:
        metadata["redirectUrl"] = str(payload.redirect_url)

    result = await payments.initialize_payment(
        payload.payment_method,
        PaymentIntent(
            user_id=str(user.id),
            order_id=str(order.id),
            amount=course.price,
            currency=DEFAULT_CURRENCY,
            customer_email=user.email,
            customer_name=user.name,
            callback_url=f"{APP_URL}/api/payment/verify/{payload.payment_method}",
            metadata=metadata,
            reference=reference,
            description=f"Enrollment for {course.title}",
        ),
    )
    if not result.success:
        raise StorefrontError(400, result.error or "Failed to process enrollment")

    order.payment_reference = reference
    session.add(order)
    await session.flush()
    await ledger.record_transaction(
        session,
        reference=reference,
        provider=payload.payment_method,
        amount=course.price,
        currency=DEFAULT_CURRENCY,
        customer_email=user.email,
        purpose=ledger.COURSE_ENROLLMENT,
        order_id=order.id,
        metadata=metadata,
    )
    await session.commit()
    logger.info(f"🎓 Checkout opened for course {course.id} by {user.id} ({reference})")

    return {
        "order": serialize_order(order),
        "payment": {
            "reference": reference,
            "authorizationUrl": result.payment_url,
            "provider": result.provider,
        },
        "paymentRequired": True,
        "message": "Payment initialized. Complete payment to enroll.",
    }
