#=================================================================
# models.py (storefront, publishing, academy, events, payments)
#=================================================================
import uuid
from sqlalchemy import (
    Column, String, Integer, ForeignKey, Text, TIMESTAMP, CheckConstraint,
    Boolean, JSON, Numeric, Uuid, UniqueConstraint
)
from base import Base  # from base.py
from helpers import utcnow


def _status_check(column: str, values, name: str) -> CheckConstraint:
    allowed = ",".join(f"'{v}'" for v in values)
    return CheckConstraint(f"{column} IN ({allowed})", name=name)


# ================================================================
# 1. USERS
# ================================================================
class User(Base):
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String(255), unique=True, nullable=False)
    name = Column(String(255), nullable=False)
    phone = Column(String(20), nullable=True)
    avatar = Column(Text, nullable=True)
    bio = Column(Text, nullable=True)
    role = Column(String(20), default="reader", nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(TIMESTAMP, default=utcnow, nullable=False)
    updated_at = Column(TIMESTAMP, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        _status_check("role", ("admin", "author", "reader", "guest"), "check_user_role"),
    )

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class AuthorProfile(Base):
    __tablename__ = "author_profiles"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    display_name = Column(String(255), nullable=False)
    bio = Column(Text, nullable=True)
    created_at = Column(TIMESTAMP, default=utcnow, nullable=False)
    updated_at = Column(TIMESTAMP, default=utcnow, onupdate=utcnow, nullable=False)


# ================================================================
# 2. BOOKS
# ================================================================
class Book(Base):
    __tablename__ = "books"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    title = Column(String(255), nullable=False)
    author = Column(String(255), nullable=False)
    author_id = Column(Uuid, ForeignKey("users.id"), nullable=True)
    description = Column(Text, nullable=True)
    excerpt = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    cover_image = Column(Text, nullable=True)
    status = Column(String(20), default="draft", nullable=False)
    category = Column(String(100), nullable=True)
    tags = Column(JSON, nullable=True)
    stock = Column(Integer, default=0)
    is_available = Column(Boolean, default=True, nullable=False)
    isbn = Column(String(50), nullable=True)
    language = Column(String(50), default="English")
    sales_count = Column(Integer, default=0, nullable=False)
    published_at = Column(TIMESTAMP, nullable=True)

    created_at = Column(TIMESTAMP, default=utcnow, nullable=False)
    updated_at = Column(TIMESTAMP, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        _status_check(
            "status",
            ("draft", "pending_review", "approved", "published", "rejected", "archived"),
            "check_book_status",
        ),
    )


# ================================================================
# 3. ORDERS
# ================================================================
class Order(Base):
    __tablename__ = "orders"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    order_number = Column(String(50), unique=True, nullable=False)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    book_id = Column(Uuid, ForeignKey("books.id"), nullable=True)
    course_id = Column(Uuid, ForeignKey("courses.id"), nullable=True)

    total = Column(Numeric(10, 2), nullable=False)
    discount_amount = Column(Numeric(10, 2), default=0, nullable=False)
    coupon_id = Column(Uuid, ForeignKey("coupons.id"), nullable=True)

    status = Column(String(20), default="pending", nullable=False)
    payment_method = Column(String(50), nullable=True)
    payment_status = Column(String(20), default="pending", nullable=False)
    payment_reference = Column(String(255), nullable=True, index=True)
    tracking_number = Column(String(100), nullable=True)
    shipping_address = Column(JSON, nullable=True)
    billing_address = Column(JSON, nullable=True)
    notes = Column(Text, nullable=True)
    paid_at = Column(TIMESTAMP, nullable=True)

    created_at = Column(TIMESTAMP, default=utcnow, nullable=False)
    updated_at = Column(TIMESTAMP, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        _status_check(
            "status",
            ("pending", "confirmed", "processing", "shipped", "delivered", "cancelled"),
            "check_order_status",
        ),
        _status_check("payment_status", ("pending", "completed", "failed", "refunded"), "check_order_payment_status"),
    )


# ================================================================
# 4. PAYMENT TRANSACTIONS
# ================================================================
class PaymentTransaction(Base):
    __tablename__ = "payment_transactions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    reference = Column(String(255), unique=True, nullable=False)
    provider = Column(String(50), nullable=False)
    purpose = Column(String(30), default="book_order", nullable=False)

    order_id = Column(Uuid, ForeignKey("orders.id"), nullable=True, index=True)
    subject_id = Column(Uuid, nullable=True, index=True)  # submission / registration id

    status = Column(String(20), default="pending", nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), default="NGN", nullable=False)
    customer_email = Column(String(255), nullable=False, default="")
    meta = Column("metadata", JSON, nullable=True, default=dict)
    provider_response = Column(JSON, nullable=True)
    verified_at = Column(TIMESTAMP, nullable=True)

    created_at = Column(TIMESTAMP, default=utcnow, nullable=False)
    updated_at = Column(TIMESTAMP, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        _status_check("status", ("pending", "successful", "failed", "expired"), "check_payment_txn_status"),
        _status_check(
            "purpose",
            ("book_order", "course_enrollment", "submission_fee", "event_registration"),
            "check_payment_txn_purpose",
        ),
    )


# ================================================================
# 5. TRANSACTION LOG (raw webhook bodies)
# ================================================================
class TransactionLog(Base):
    __tablename__ = "transaction_logs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    provider = Column(String, nullable=False)
    payload = Column(Text, nullable=False)
    created_at = Column(TIMESTAMP, default=utcnow, nullable=False)


# ================================================================
# 6. BOOK SUBMISSIONS
# ================================================================
class BookSubmission(Base):
    __tablename__ = "book_submissions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    author_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    book_id = Column(Uuid, ForeignKey("books.id"), nullable=True)

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    category = Column(String(100), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    manuscript_file = Column(Text, nullable=False)
    cover_image = Column(Text, nullable=True)
    synopsis = Column(Text, nullable=True)
    author_bio = Column(Text, nullable=True)
    target_audience = Column(Text, nullable=True)
    marketing_plan = Column(Text, nullable=True)

    status = Column(String(20), default="draft", nullable=False)
    submission_fee = Column(Numeric(10, 2), default=5000, nullable=False)
    fee_payment_status = Column(String(20), default="pending", nullable=False)
    fee_payment_reference = Column(String(255), nullable=True)

    submitted_at = Column(TIMESTAMP, nullable=True)
    reviewed_at = Column(TIMESTAMP, nullable=True)
    reviewed_by = Column(Uuid, ForeignKey("users.id"), nullable=True)
    review_notes = Column(Text, nullable=True)
    rejection_reason = Column(Text, nullable=True)

    created_at = Column(TIMESTAMP, default=utcnow, nullable=False)
    updated_at = Column(TIMESTAMP, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        _status_check(
            "status",
            ("draft", "submitted", "under_review", "approved", "rejected", "published"),
            "check_submission_status",
        ),
        _status_check(
            "fee_payment_status", ("pending", "completed", "failed", "refunded"), "check_submission_fee_status"
        ),
    )


# ================================================================
# 7. COURSES & ENROLLMENTS
# ================================================================
class Course(Base):
    __tablename__ = "courses"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    thumbnail_image = Column(Text, nullable=True)
    instructor_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    is_published = Column(Boolean, default=False, nullable=False)
    duration = Column(Integer, nullable=True)  # minutes
    level = Column(String(50), nullable=True)

    created_at = Column(TIMESTAMP, default=utcnow, nullable=False)
    updated_at = Column(TIMESTAMP, default=utcnow, onupdate=utcnow, nullable=False)


class Enrollment(Base):
    __tablename__ = "enrollments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    course_id = Column(Uuid, ForeignKey("courses.id"), nullable=False)
    progress = Column(Integer, default=0, nullable=False)  # percentage 0-100
    completed_at = Column(TIMESTAMP, nullable=True)
    enrolled_at = Column(TIMESTAMP, default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "course_id", name="uq_enrollment_user_course"),
    )


# ================================================================
# 8. EVENTS & REGISTRATIONS
# ================================================================
class Event(Base):
    __tablename__ = "events"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    type = Column(String(20), nullable=False)
    status = Column(String(20), default="draft", nullable=False)
    start_date = Column(TIMESTAMP, nullable=False)
    end_date = Column(TIMESTAMP, nullable=True)
    timezone = Column(String(50), default="Africa/Lagos")
    location = Column(String(255), nullable=True)
    is_online = Column(Boolean, default=False)
    meeting_url = Column(Text, nullable=True)
    max_attendees = Column(Integer, nullable=True)
    price = Column(Numeric(10, 2), default=0, nullable=False)
    is_free = Column(Boolean, default=True, nullable=False)
    organizer_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    is_published = Column(Boolean, default=False, nullable=False)
    registration_deadline = Column(TIMESTAMP, nullable=True)

    created_at = Column(TIMESTAMP, default=utcnow, nullable=False)
    updated_at = Column(TIMESTAMP, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        _status_check(
            "type",
            ("workshop", "webinar", "book_launch", "masterclass", "meet_greet", "conference"),
            "check_event_type",
        ),
        _status_check("status", ("draft", "published", "cancelled", "completed"), "check_event_status"),
    )


class EventRegistration(Base):
    __tablename__ = "event_registrations"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    event_id = Column(Uuid, ForeignKey("events.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    status = Column(String(20), default="registered", nullable=False)
    payment_status = Column(String(20), default="pending", nullable=False)
    payment_reference = Column(String(255), nullable=True)
    amount_paid = Column(Numeric(10, 2), nullable=True)
    special_requests = Column(Text, nullable=True)
    attended_at = Column(TIMESTAMP, nullable=True)
    registered_at = Column(TIMESTAMP, default=utcnow, nullable=False)
    updated_at = Column(TIMESTAMP, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="uq_registration_event_user"),
        _status_check("status", ("registered", "attended", "cancelled", "no_show"), "check_registration_status"),
    )


# ================================================================
# 9. COUPONS
# ================================================================
class Coupon(Base):
    __tablename__ = "coupons"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    code = Column(String(50), unique=True, nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    type = Column(String(20), default="percentage", nullable=False)
    value = Column(Numeric(10, 2), nullable=False)
    min_order_amount = Column(Numeric(10, 2), nullable=True)
    max_discount_amount = Column(Numeric(10, 2), nullable=True)
    usage_limit = Column(Integer, nullable=True)
    user_limit = Column(Integer, default=1, nullable=True)
    applies_to = Column(String(20), default="all", nullable=False)
    applicable_items = Column(JSON, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    starts_at = Column(TIMESTAMP, default=utcnow, nullable=False)
    expires_at = Column(TIMESTAMP, nullable=True)

    created_at = Column(TIMESTAMP, default=utcnow, nullable=False)
    updated_at = Column(TIMESTAMP, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        _status_check("type", ("percentage", "fixed"), "check_coupon_type"),
        _status_check("applies_to", ("all", "books", "courses", "specific"), "check_coupon_applies_to"),
    )


class CouponUsage(Base):
    __tablename__ = "coupon_usage"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    coupon_id = Column(Uuid, ForeignKey("coupons.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    order_id = Column(Uuid, ForeignKey("orders.id"), nullable=True)
    discount_amount = Column(Numeric(10, 2), nullable=False)
    used_at = Column(TIMESTAMP, default=utcnow, nullable=False)


# ================================================================
# 10. PREORDERS
# ================================================================
class BookPreorder(Base):
    __tablename__ = "book_preorders"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    book_id = Column(Uuid, ForeignKey("books.id", ondelete="CASCADE"), nullable=False)
    preorder_start = Column(TIMESTAMP, nullable=False)
    preorder_end = Column(TIMESTAMP, nullable=False)
    release_date = Column(TIMESTAMP, nullable=True)
    early_access_discount = Column(Numeric(5, 2), default=0, nullable=False)  # percent
    max_preorder_quantity = Column(Integer, nullable=True)
    current_preorder_count = Column(Integer, default=0, nullable=False)
    preorder_benefits = Column(JSON, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(TIMESTAMP, default=utcnow, nullable=False)
    updated_at = Column(TIMESTAMP, default=utcnow, onupdate=utcnow, nullable=False)


class PreorderPurchase(Base):
    __tablename__ = "preorder_purchases"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    preorder_id = Column(Uuid, ForeignKey("book_preorders.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    quantity = Column(Integer, default=1, nullable=False)
    discount_applied = Column(Numeric(10, 2), default=0, nullable=False)
    created_at = Column(TIMESTAMP, default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("preorder_id", "user_id", name="uq_preorder_purchase_user"),
    )
