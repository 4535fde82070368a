from datetime import timedelta
from decimal import Decimal

import pytest

from helpers import StorefrontError, utcnow
from models import Coupon
from services import coupons


def _coupon(**overrides):
    data = dict(code="X", name="X", type="percentage", value=Decimal("10"), applies_to="all")
    data.update(overrides)
    return Coupon(**data)


@pytest.mark.parametrize(
    "coupon, amount, expected",
    [
        (_coupon(value=Decimal("10")), "5000", Decimal("500.00")),
        (_coupon(value=Decimal("50"), max_discount_amount=Decimal("1000")), "5000", Decimal("1000.00")),
        (_coupon(type="fixed", value=Decimal("750")), "5000", Decimal("750.00")),
        (_coupon(type="fixed", value=Decimal("9000")), "5000", Decimal("5000.00")),
    ],
)
def test_calculate_discount(coupon, amount, expected):
    assert coupons.calculate_discount(coupon, amount) == expected


async def _expect(session, user_id, code, amount, message, items=()):
    with pytest.raises(StorefrontError) as exc:
        await coupons.validate_coupon(session, user_id, code, amount, items)
    assert exc.value.status_code == 400
    assert exc.value.error == message


async def test_valid_coupon_quote(session, seed):
    quote = await coupons.validate_coupon(session, seed.reader.id, "save10", Decimal("5000"))

    assert quote.coupon.id == seed.coupon.id
    assert quote.discount == Decimal("500.00")
    assert quote.final_amount == Decimal("4500.00")
    assert quote.as_dict()["finalAmount"] == Decimal("4500.00")


async def test_coupon_rules_in_order(session, seed):
    now = utcnow()
    session.add_all([
        _coupon(code="OFF", name="Off", is_active=False),
        _coupon(code="LATER", name="Later", starts_at=now + timedelta(days=1)),
        _coupon(code="OLD", name="Old", starts_at=now - timedelta(days=10), expires_at=now - timedelta(days=1)),
        _coupon(code="BIG", name="Big", starts_at=now - timedelta(days=1), min_order_amount=Decimal("10000")),
        _coupon(code="COURSES", name="Courses", starts_at=now - timedelta(days=1), applies_to="courses"),
    ])
    await session.commit()

    await _expect(session, seed.reader.id, "", Decimal("5000"), "Coupon code and order amount are required")
    await _expect(session, seed.reader.id, "SAVE10", None, "Coupon code and order amount are required")
    await _expect(session, seed.reader.id, "NOPE", Decimal("5000"), "Invalid coupon code")
    await _expect(session, seed.reader.id, "OFF", Decimal("5000"), "This coupon is no longer active")
    await _expect(session, seed.reader.id, "LATER", Decimal("5000"), "This coupon is not yet available")
    await _expect(session, seed.reader.id, "OLD", Decimal("5000"), "This coupon has expired")
    await _expect(session, seed.reader.id, "BIG", Decimal("5000"), "Minimum order amount of $10000 required")
    await _expect(session, seed.reader.id, "COURSES", Decimal("5000"),
                  "This coupon is not applicable to the items in your order", items=[{"type": "book"}])

    quote = await coupons.validate_coupon(session, seed.reader.id, "COURSES", Decimal("5000"), [{"type": "course"}])
    assert quote.discount == Decimal("500.00")


async def test_usage_limits(session, seed):
    session.add(_coupon(code="ONCE", name="Once", starts_at=utcnow() - timedelta(days=1), usage_limit=1))
    await session.commit()
    once = await coupons.get_coupon_by_code(session, "once")

    await coupons.record_coupon_usage(session, seed.coupon, seed.reader.id, Decimal("500"))
    await _expect(session, seed.reader.id, "SAVE10", Decimal("5000"), "You have already used this coupon 1 time")

    await coupons.record_coupon_usage(session, once, seed.other.id, Decimal("500"))
    await _expect(session, seed.reader.id, "ONCE", Decimal("5000"), "This coupon has reached its usage limit")


async def test_validate_endpoint(client, seed, auth):
    response = await client.post(
        "/api/coupons/validate",
        json={"code": "SAVE10", "orderAmount": 5000, "items": [{"id": str(seed.book.id), "type": "book"}]},
        headers=auth(seed.reader),
    )

    body = response.json()
    assert response.status_code == 200
    assert body["success"] is True
    assert body["coupon"]["code"] == "SAVE10"
    assert body["discount"] == 500
    assert body["finalAmount"] == 4500


async def test_validate_endpoint_errors(client, seed, auth):
    response = await client.post("/api/coupons/validate", json={"code": "NOPE", "orderAmount": 5000},
                                 headers=auth(seed.reader))
    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Invalid coupon code"}

    response = await client.post("/api/coupons/validate", json={"code": "SAVE10", "orderAmount": 5000})
    assert response.status_code == 401
