"""
Shared fixtures: in-memory database, fake Paystack/Flutterwave gateways,
an ASGI test client and a small seeded catalogue.
"""
import json
import os
from datetime import timedelta
from types import SimpleNamespace

# Settings are read at import time, so these go first
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["PAYSTACK_SECRET_KEY"] = "sk_test_secret"
os.environ["FLUTTERWAVE_SECRET_KEY"] = "FLWSECK_TEST-secret"
os.environ["FLUTTERWAVE_SECRET_HASH"] = "flw-hash"
os.environ["RESEND_API_KEY"] = ""
os.environ["SESSION_SECRET"] = "test-session-secret"
os.environ["APP_URL"] = "http://testserver"
os.environ["SWEEPER_ENABLED"] = "false"

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.pool import StaticPool

from app import app
from base import Base
from db import get_session
from helpers import generate_order_number, utcnow
from models import Book, BookPreorder, Coupon, Course, Event, Order, User
from services.payment_providers import (
    FlutterwaveService,
    PaymentService,
    PaystackService,
    get_payment_service,
)
from utils.security import issue_access_token

PAYSTACK_SECRET = "sk_test_secret"
FLUTTERWAVE_SECRET = "FLWSECK_TEST-secret"
FLUTTERWAVE_HASH = "flw-hash"


# -------------------------------------------------
# Database
# -------------------------------------------------
@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def db(engine):
    """Session factory; use `async with db() as s:` for fresh reads."""
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(db):
    async with db() as s:
        yield s


# -------------------------------------------------
# Fake gateways
# -------------------------------------------------
class FakeGateway:
    """Answers Paystack and Flutterwave API calls from in-memory charges."""

    def __init__(self):
        self.requests = []
        self.paystack_charges = {}
        self.flutterwave_charges = {}
        self.fail_initialize = False

    def paystack_charge(self, reference, amount, status="success", currency="NGN", email="reader@example.com"):
        self.paystack_charges[reference] = {
            "status": status,
            "amount": PaystackService.to_kobo(amount),
            "currency": currency,
            "customer": {"email": email},
            "metadata": {},
        }

    def flutterwave_charge(self, transaction_id, tx_ref, amount, status="successful", currency="NGN"):
        self.flutterwave_charges[str(transaction_id)] = {
            "id": transaction_id,
            "tx_ref": tx_ref,
            "status": status,
            "amount": float(amount),
            "currency": currency,
            "customer": {"email": "reader@example.com"},
        }

    def paystack(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if request.method == "POST" and path == "/transaction/initialize":
            if self.fail_initialize:
                return httpx.Response(400, json={"status": False, "message": "Invalid key"})
            body = json.loads(request.content)
            return httpx.Response(200, json={
                "status": True,
                "message": "Authorization URL created",
                "data": {
                    "authorization_url": f"https://checkout.paystack.com/{body['reference']}",
                    "access_code": "ac_test",
                    "reference": body["reference"],
                },
            })
        if path.startswith("/transaction/verify/"):
            reference = path.rsplit("/", 1)[-1]
            charge = self.paystack_charges.get(reference)
            if charge is None:
                return httpx.Response(400, json={"status": False, "message": "Transaction reference not found"})
            return httpx.Response(200, json={
                "status": True,
                "message": "Verification successful",
                "data": {"reference": reference, **charge},
            })
        return httpx.Response(404, json={"status": False, "message": "Not found"})

    def flutterwave(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if request.method == "POST" and path.endswith("/payments"):
            if self.fail_initialize:
                return httpx.Response(400, json={"status": "error", "message": "Invalid key"})
            body = json.loads(request.content)
            return httpx.Response(200, json={
                "status": "success",
                "message": "Hosted Link",
                "data": {"link": f"https://checkout.flutterwave.com/pay/{body['tx_ref']}"},
            })
        if path.endswith("/verify") and "/transactions/" in path:
            transaction_id = path.split("/transactions/")[1].split("/")[0]
            charge = self.flutterwave_charges.get(transaction_id)
            if charge is None:
                return httpx.Response(404, json={"status": "error", "message": "No transaction was found for this id"})
            return httpx.Response(200, json={"status": "success", "message": "Transaction fetched", "data": charge})
        return httpx.Response(404, json={"status": "error", "message": "Not found"})


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def payments(gateway):
    return PaymentService(
        paystack=PaystackService(secret_key=PAYSTACK_SECRET, transport=httpx.MockTransport(gateway.paystack)),
        flutterwave=FlutterwaveService(
            secret_key=FLUTTERWAVE_SECRET,
            secret_hash=FLUTTERWAVE_HASH,
            transport=httpx.MockTransport(gateway.flutterwave),
        ),
    )


# -------------------------------------------------
# HTTP client
# -------------------------------------------------
@pytest_asyncio.fixture
async def client(db, payments):
    async def _session():
        async with db() as s:
            yield s

    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[get_payment_service] = lambda: payments
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def auth():
    def _headers(user):
        return {"Authorization": f"Bearer {issue_access_token(user)}"}
    return _headers


# -------------------------------------------------
# Seed data
# -------------------------------------------------
@pytest_asyncio.fixture
async def seed(db):
    now = utcnow()
    async with db() as s:
        reader = User(email="reader@example.com", name="Ada Reader", role="reader")
        other = User(email="other@example.com", name="Obi Other", role="reader")
        admin = User(email="admin@example.com", name="Ngozi Admin", role="admin")
        s.add_all([reader, other, admin])
        await s.flush()

        book = Book(title="Things Fall Apart", author="Chinua Achebe", price=5000, status="published",
                    category="Fiction", is_available=True, published_at=now)
        sold_out = Book(title="Half of a Yellow Sun", author="Chimamanda Adichie", price=7000,
                        status="published", category="Fiction", is_available=False)
        draft_book = Book(title="Unreleased", author="Anon", price=3000, status="draft")
        s.add_all([book, sold_out, draft_book])

        paid_course = Course(title="Writing for Publication", price=10000, instructor_id=admin.id,
                             is_published=True, level="beginner")
        free_course = Course(title="Self-Editing Basics", price=0, instructor_id=admin.id,
                             is_published=True, level="beginner")
        draft_course = Course(title="Coming Soon", price=2000, instructor_id=admin.id, is_published=False)
        s.add_all([paid_course, free_course, draft_course])

        paid_event = Event(title="Lagos Book Launch", type="book_launch", status="published", is_published=True,
                           start_date=now + timedelta(days=10), price=2000, is_free=False, organizer_id=admin.id)
        free_event = Event(title="Poetry Webinar", type="webinar", status="published", is_published=True,
                           start_date=now + timedelta(days=5), price=0, is_free=True, organizer_id=admin.id)
        soon_event = Event(title="Morning Workshop", type="workshop", status="published", is_published=True,
                           start_date=now + timedelta(hours=12), price=0, is_free=True, organizer_id=admin.id)
        small_event = Event(title="Masterclass", type="masterclass", status="published", is_published=True,
                            start_date=now + timedelta(days=3), price=0, is_free=True, organizer_id=admin.id,
                            max_attendees=1)
        s.add_all([paid_event, free_event, soon_event, small_event])

        coupon = Coupon(code="SAVE10", name="Ten percent off", type="percentage", value=10,
                        starts_at=now - timedelta(days=1), user_limit=1)
        s.add(coupon)
        await s.flush()

        preorder = BookPreorder(book_id=book.id, preorder_start=now - timedelta(days=1),
                                preorder_end=now + timedelta(days=30), early_access_discount=20,
                                max_preorder_quantity=3)
        s.add(preorder)
        await s.commit()

    return SimpleNamespace(
        reader=reader, other=other, admin=admin,
        book=book, sold_out=sold_out, draft_book=draft_book,
        paid_course=paid_course, free_course=free_course, draft_course=draft_course,
        paid_event=paid_event, free_event=free_event, soon_event=soon_event, small_event=small_event,
        coupon=coupon, preorder=preorder,
    )


@pytest.fixture
def make_order(db):
    async def _make(user, book, **kwargs):
        async with db() as s:
            order = Order(
                order_number=generate_order_number(),
                user_id=user.id,
                book_id=book.id,
                total=kwargs.pop("total", book.price),
                status=kwargs.pop("status", "pending"),
                payment_status="pending",
                payment_method="paystack",
                **kwargs,
            )
            s.add(order)
            await s.commit()
            return order
    return _make
