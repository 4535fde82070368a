# ========================================================
# services/mailer.py
# Transactional email via the Resend REST API
# ========================================================
from typing import Optional

import httpx

from config import RESEND_API_KEY, RESEND_API_URL, FROM_EMAIL, APP_URL, HTTP_TIMEOUT
from logging_setup import get_logger
from services.payment_providers.service import PaymentService

logger = get_logger(__name__)


async def send_email(
    to: str,
    subject: str,
    html: str,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> bool:
    """Returns False (and logs) when email is not configured."""
    if not RESEND_API_KEY:
        logger.info(f"✉️ Email skipped (RESEND_API_KEY not set): {subject}")
        return False

    async with httpx.AsyncClient(timeout=HTTP_TIMEOUT, transport=transport) as client:
        resp = await client.post(
            RESEND_API_URL,
            json={"from": FROM_EMAIL, "to": to, "subject": subject, "html": html},
            headers={"Authorization": f"Bearer {RESEND_API_KEY}"},
        )
        resp.raise_for_status()

    logger.info(f"✉️ Email sent: {subject}")
    return True


async def send_payment_confirmation(email: str, order_number: str, amount, currency: str) -> bool:
    formatted = PaymentService.format_amount(amount, currency)
    html = f"""
      <div style="max-width: 600px; margin: 0 auto; padding: 20px; font-family: Arial, sans-serif;">
        <h2 style="color: #28a745; text-align: center;">Payment Confirmed!</h2>
        <p>Thank you for your purchase!</p>
        <div style="background-color: #f8f9fa; padding: 20px; border-radius: 5px; margin: 20px 0;">
          <h3 style="margin-top: 0;">Order Details:</h3>
          <p><strong>Order Number:</strong> {order_number}</p>
          <p><strong>Amount Paid:</strong> {formatted}</p>
          <p><strong>Status:</strong> Confirmed</p>
        </div>
        <p>You can track your order status in your <a href="{APP_URL}/dashboard/orders">dashboard</a>.</p>
        <hr style="border: none; border-top: 1px solid #eee; margin: 30px 0;">
        <p style="color: #666; font-size: 12px; text-align: center;">EdifyPub Team</p>
      </div>
    """
    return await send_email(email, f"Payment Confirmed - Order {order_number}", html)


async def send_enrollment_welcome(
    email: str,
    user_name: str,
    course_name: str,
    course_id: str,
    instructor_name: str = "DIFY Academy Team",
) -> bool:
    html = f"""
      <div style="max-width: 600px; margin: 0 auto; padding: 20px; font-family: Arial, sans-serif;">
        <h2>Welcome to {course_name}, {user_name}!</h2>
        <p>Your instructor, {instructor_name}, is glad to have you.</p>
        <p><a href="{APP_URL}/academy/courses/{course_id}">Start learning</a></p>
        <p style="color: #666; font-size: 12px; text-align: center;">DIFY Academy</p>
      </div>
    """
    return await send_email(email, f"Welcome to {course_name}", html)


async def notify_safely(coro) -> None:
    """Await an email coroutine; a failure is logged, never raised."""
    try:
        await coro
    except Exception as e:
        logger.warning(f"⚠️ Failed to send email: {e}")
