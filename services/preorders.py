# ========================================================
# services/preorders.py
# ========================================================
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from helpers import StorefrontError, parse_uuid, to_money, utcnow
from logging_setup import get_logger
from models import Book, BookPreorder, PreorderPurchase, User

logger = get_logger(__name__)

NOT_ACTIVE = "Preorder not found or not active"


def is_preorder_active(preorder: BookPreorder, now: Optional[datetime] = None) -> bool:
    now = now or utcnow()
    return bool(preorder.is_active) and preorder.preorder_start <= now <= preorder.preorder_end


def preorder_discount(price, discount_percent) -> Decimal:
    return to_money(Decimal(price) * Decimal(discount_percent or 0) / 100)


def serialize_preorder(preorder: BookPreorder, book: Optional[Book]) -> dict:
    return {
        "id": preorder.id,
        "preorderStart": preorder.preorder_start,
        "preorderEnd": preorder.preorder_end,
        "releaseDate": preorder.release_date,
        "earlyAccessDiscount": preorder.early_access_discount,
        "maxPreorderQuantity": preorder.max_preorder_quantity,
        "currentPreorderCount": preorder.current_preorder_count,
        "preorderBenefits": preorder.preorder_benefits,
        "book": {
            "id": book.id,
            "title": book.title,
            "description": book.description,
            "coverImage": book.cover_image,
            "price": book.price,
            "author": book.author,
            "category": book.category,
        } if book else None,
    }


def _active_query(now: datetime):
    return (
        select(BookPreorder, Book)
        .outerjoin(Book, BookPreorder.book_id == Book.id)
        .where(
            BookPreorder.is_active.is_(True),
            BookPreorder.preorder_start <= now,
            BookPreorder.preorder_end >= now,
        )
    )


async def list_active_preorders(session: AsyncSession) -> List[dict]:
    result = await session.execute(_active_query(utcnow()).order_by(BookPreorder.preorder_end))
    return [serialize_preorder(preorder, book) for preorder, book in result.all()]


async def get_active_preorder(session: AsyncSession, preorder_id) -> Tuple[BookPreorder, Optional[Book]]:
    pid = parse_uuid(preorder_id, NOT_ACTIVE)
    result = await session.execute(_active_query(utcnow()).where(BookPreorder.id == pid))
    row = result.first()
    if row is None:
        raise StorefrontError(404, NOT_ACTIVE)
    return row[0], row[1]


async def purchase_preorder(session: AsyncSession, preorder_id, user: User, quantity: int = 1) -> dict:
    """
    Reserve `quantity` copies at the early-access price.
    One purchase per user per preorder; no payment is taken here.
    """
    preorder, book = await get_active_preorder(session, preorder_id)

    existing = await session.execute(
        select(PreorderPurchase.id).where(
            PreorderPurchase.preorder_id == preorder.id,
            PreorderPurchase.user_id == user.id,
        )
    )
    if existing.first():
        raise StorefrontError(400, "You have already preordered this book")

    if book is None:
        raise StorefrontError(404, "Book not found")

    # no row updated means the quantity limit would be exceeded
    reserved = await session.execute(
        update(BookPreorder)
        .where(
            BookPreorder.id == preorder.id,
            or_(
                BookPreorder.max_preorder_quantity.is_(None),
                BookPreorder.max_preorder_quantity == 0,
                BookPreorder.current_preorder_count + quantity <= BookPreorder.max_preorder_quantity,
            ),
        )
        .values(current_preorder_count=BookPreorder.current_preorder_count + quantity, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if reserved.rowcount == 0:
        raise StorefrontError(400, "Preorder quantity limit exceeded")

    original_price = to_money(book.price)
    discount_amount = preorder_discount(original_price, preorder.early_access_discount)

    purchase = PreorderPurchase(
        preorder_id=preorder.id,
        user_id=user.id,
        quantity=quantity,
        discount_applied=discount_amount,
    )
    session.add(purchase)
    try:
        await session.flush()
    except IntegrityError:
        await session.rollback()
        raise StorefrontError(400, "You have already preordered this book")

    await session.commit()
    logger.info(f"📚 Preorder {preorder.id} placed by {user.id} (qty={quantity})")

    return {
        "purchase": {
            "id": purchase.id,
            "preorderId": purchase.preorder_id,
            "userId": purchase.user_id,
            "quantity": purchase.quantity,
            "discountApplied": purchase.discount_applied,
            "createdAt": purchase.created_at,
        },
        "originalPrice": original_price,
        "discountAmount": discount_amount,
        "finalPrice": original_price - discount_amount,
        "message": "Preorder placed successfully",
    }
