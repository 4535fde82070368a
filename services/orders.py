# ========================================================
# services/orders.py
# Book orders: create, list, fetch, update
# ========================================================
from typing import Optional

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from helpers import StorefrontError, generate_order_number, parse_uuid, to_money
from logging_setup import get_logger
from models import Book, Order, User
from schemas import CreateOrderRequest, UpdateOrderRequest
from services import coupons

logger = get_logger(__name__)

ORDER_NOT_FOUND = "Order not found"
CLOSED_STATUSES = ("cancelled", "delivered")


# -------------------------------------------------
# Serialization
# -------------------------------------------------
def serialize_order(order: Order, book: Optional[Book] = None, owner: Optional[User] = None) -> dict:
    data = {
        "id": order.id,
        "orderNumber": order.order_number,
        "userId": order.user_id,
        "bookId": order.book_id,
        "courseId": order.course_id,
        "status": order.status,
        "total": order.total,
        "discountAmount": order.discount_amount,
        "paymentMethod": order.payment_method,
        "paymentStatus": order.payment_status,
        "paymentReference": order.payment_reference,
        "shippingAddress": order.shipping_address,
        "billingAddress": order.billing_address,
        "trackingNumber": order.tracking_number,
        "notes": order.notes,
        "paidAt": order.paid_at,
        "createdAt": order.created_at,
        "updatedAt": order.updated_at,
    }
    if book is not None:
        data["book"] = {
            "id": book.id,
            "title": book.title,
            "author": book.author,
            "price": book.price,
            "coverImage": book.cover_image,
        }
    if owner is not None:
        data["user"] = {"id": owner.id, "name": owner.name, "email": owner.email}
    return data


# -------------------------------------------------
# Create
# -------------------------------------------------
async def create_order(session: AsyncSession, user: User, payload: CreateOrderRequest) -> dict:
    book = await session.get(Book, parse_uuid(payload.book_id, "Book not found"))
    if book is None:
        raise StorefrontError(404, "Book not found")
    if not book.is_available:
        raise StorefrontError(400, "Book is not available for purchase")

    price = to_money(book.price)
    quote = None
    if payload.coupon_code:
        quote = await coupons.validate_coupon(
            session, user.id, payload.coupon_code, price, items=[{"id": str(book.id), "type": "book"}]
        )

    shipping = payload.shipping_address.model_dump(by_alias=True)
    billing = payload.billing_address.model_dump(by_alias=True) if payload.billing_address else shipping

    order = Order(
        order_number=generate_order_number(),
        user_id=user.id,
        book_id=book.id,
        status="pending",
        payment_status="pending",
        total=quote.final_amount if quote else price,
        discount_amount=quote.discount if quote else to_money(0),
        coupon_id=quote.coupon.id if quote else None,
        payment_method=payload.payment_method,
        shipping_address=shipping,
        billing_address=billing,
        notes=payload.notes,
    )
    session.add(order)
    await session.flush()

    if quote:
        await coupons.record_coupon_usage(session, quote.coupon, user.id, quote.discount, order_id=order.id)

    await session.commit()
    logger.info(f"🧾 Order {order.order_number} created for user {user.id} (total={order.total})")
    return serialize_order(order, book)


# -------------------------------------------------
# Read
# -------------------------------------------------
async def list_orders(
    session: AsyncSession,
    user: User,
    status: Optional[str] = None,
    search: Optional[str] = None,
    limit: int = 10,
    offset: int = 0,
) -> dict:
    """Admins see every order; everybody else only their own."""
    stmt = (
        select(Order, Book, User)
        .outerjoin(Book, Order.book_id == Book.id)
        .join(User, Order.user_id == User.id)
    )
    if not user.is_admin:
        stmt = stmt.where(Order.user_id == user.id)
    if status:
        stmt = stmt.where(Order.status == status)
    if search:
        pattern = f"%{search}%"
        stmt = stmt.where(or_(Order.order_number.ilike(pattern), Book.title.ilike(pattern)))

    stmt = stmt.order_by(Order.created_at.desc()).limit(limit).offset(offset)
    rows = (await session.execute(stmt)).all()

    orders = [serialize_order(order, book, owner if user.is_admin else None) for order, book, owner in rows]
    return {
        "orders": orders,
        "pagination": {"limit": limit, "offset": offset, "hasMore": len(orders) == limit},
    }


async def load_order(session: AsyncSession, user: User, order_id) -> Order:
    """Fetch an order the user may see; 404 otherwise."""
    order = await session.get(Order, parse_uuid(order_id, ORDER_NOT_FOUND))
    if order is None or (not user.is_admin and order.user_id != user.id):
        raise StorefrontError(404, ORDER_NOT_FOUND)
    return order


async def get_order(session: AsyncSession, user: User, order_id) -> dict:
    order = await load_order(session, user, order_id)
    book = await session.get(Book, order.book_id) if order.book_id else None
    owner = await session.get(User, order.user_id) if user.is_admin else None
    return serialize_order(order, book, owner)


# -------------------------------------------------
# Update
# -------------------------------------------------
async def update_order(session: AsyncSession, user: User, order_id, payload: UpdateOrderRequest) -> dict:
    """
    Admins may change status, tracking number and notes.
    Owners may only edit their notes.
    """
    if not user.is_admin and (payload.status or payload.tracking_number):
        raise StorefrontError(403, "Insufficient permissions")

    order = await load_order(session, user, order_id)
    if order.status in CLOSED_STATUSES:
        raise StorefrontError(400, "Cannot update completed orders")

    changes = payload.model_dump(exclude_none=True)
    for field, value in changes.items():
        setattr(order, field, value)

    await session.commit()
    logger.info(f"✏️ Order {order.order_number} updated by {user.id}: {sorted(changes)}")
    return serialize_order(order)
