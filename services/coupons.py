# ========================================================
# services/coupons.py
# Coupon validation & discount maths
# ========================================================
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterable, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from helpers import StorefrontError, to_money, utcnow
from logging_setup import get_logger
from models import Coupon, CouponUsage

logger = get_logger(__name__)


@dataclass
class CouponQuote:
    coupon: Coupon
    discount: Decimal
    final_amount: Decimal

    def as_dict(self) -> dict:
        return {
            "success": True,
            "coupon": {
                "id": self.coupon.id,
                "code": self.coupon.code,
                "name": self.coupon.name,
                "type": self.coupon.type,
                "value": self.coupon.value,
            },
            "discount": self.discount,
            "finalAmount": self.final_amount,
        }


def _plain_number(value: Decimal) -> str:
    """50.00 -> "50", 50.50 -> "50.5" """
    value = Decimal(value)
    if value == value.to_integral_value():
        return str(int(value))
    return format(value.normalize(), "f")


def _item_field(item: Any, name: str):
    if isinstance(item, dict):
        return item.get(name)
    return getattr(item, name, None)


def _applies_to_items(coupon: Coupon, items: Iterable[Any]) -> bool:
    if coupon.applies_to == "all":
        return True

    allowed_ids = {str(ai.get("id")) for ai in (coupon.applicable_items or []) if isinstance(ai, dict)}
    for item in items or []:
        item_type = _item_field(item, "type")
        if coupon.applies_to == "books" and item_type == "book":
            return True
        if coupon.applies_to == "courses" and item_type == "course":
            return True
        if coupon.applies_to == "specific" and str(_item_field(item, "id")) in allowed_ids:
            return True
    return False


def calculate_discount(coupon: Coupon, order_amount) -> Decimal:
    """Percentage (capped by max_discount_amount) or fixed; never more than the order."""
    amount = to_money(order_amount)
    if coupon.type == "percentage":
        discount = amount * Decimal(coupon.value) / 100
        if coupon.max_discount_amount:
            discount = min(discount, Decimal(coupon.max_discount_amount))
    else:
        discount = Decimal(coupon.value)
    return to_money(min(discount, amount))


async def get_coupon_by_code(session: AsyncSession, code: str) -> Optional[Coupon]:
    result = await session.execute(select(Coupon).where(Coupon.code == code.strip().upper()))
    return result.scalar_one_or_none()


async def validate_coupon(
    session: AsyncSession,
    user_id,
    code: Optional[str],
    order_amount,
    items: Iterable[Any] = (),
) -> CouponQuote:
    """Runs every coupon rule in order; the first failing rule raises a 400."""
    if not code or not order_amount:
        raise StorefrontError(400, "Coupon code and order amount are required")

    coupon = await get_coupon_by_code(session, code)
    if coupon is None:
        raise StorefrontError(400, "Invalid coupon code")

    if not coupon.is_active:
        raise StorefrontError(400, "This coupon is no longer active")

    now = utcnow()
    if coupon.starts_at and now < coupon.starts_at:
        raise StorefrontError(400, "This coupon is not yet available")

    if coupon.expires_at and now > coupon.expires_at:
        raise StorefrontError(400, "This coupon has expired")

    amount = to_money(order_amount)
    min_amount = Decimal(coupon.min_order_amount or 0)
    if amount < min_amount:
        raise StorefrontError(400, f"Minimum order amount of ${_plain_number(min_amount)} required")

    if coupon.usage_limit:
        total_usage = await session.scalar(
            select(func.count()).select_from(CouponUsage).where(CouponUsage.coupon_id == coupon.id)
        )
        if total_usage >= coupon.usage_limit:
            raise StorefrontError(400, "This coupon has reached its usage limit")

    user_limit = coupon.user_limit or 1
    user_usage = await session.scalar(
        select(func.count())
        .select_from(CouponUsage)
        .where(CouponUsage.coupon_id == coupon.id, CouponUsage.user_id == user_id)
    )
    if user_usage >= user_limit:
        plural = "s" if user_limit > 1 else ""
        raise StorefrontError(400, f"You have already used this coupon {user_limit} time{plural}")

    if not _applies_to_items(coupon, items):
        raise StorefrontError(400, "This coupon is not applicable to the items in your order")

    discount = calculate_discount(coupon, amount)
    return CouponQuote(coupon=coupon, discount=discount, final_amount=amount - discount)


async def record_coupon_usage(
    session: AsyncSession,
    coupon: Coupon,
    user_id,
    discount,
    order_id=None,
) -> CouponUsage:
    usage = CouponUsage(
        coupon_id=coupon.id,
        user_id=user_id,
        order_id=order_id,
        discount_amount=to_money(discount),
    )
    session.add(usage)
    await session.flush()
    logger.info(f"🏷️ Coupon {coupon.code} used by {user_id} (-{usage.discount_amount})")
    return usage
