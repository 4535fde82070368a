import hashlib
import hmac
import json

from models import Order, PaymentTransaction, TransactionLog
from sqlalchemy import func, select

PAYSTACK_SECRET = "sk_test_secret"
FLUTTERWAVE_HASH = "flw-hash"


def _paystack_post(client, payload, signature=None):
    body = json.dumps(payload).encode()
    if signature is None:
        signature = hmac.new(PAYSTACK_SECRET.encode(), body, hashlib.sha512).hexdigest()
    return client.post(
        "/api/webhooks/paystack",
        content=body,
        headers={"x-paystack-signature": signature, "content-type": "application/json"},
    )


def _flutterwave_post(client, payload, signature=FLUTTERWAVE_HASH):
    return client.post("/api/webhooks/flutterwave", json=payload, headers={"verif-hash": signature})


async def _pending_order(client, seed, auth, make_order, method="paystack"):
    order = await make_order(seed.reader, seed.book)
    response = await client.post(
        "/api/payment/initialize",
        json={"orderId": str(order.id), "paymentMethod": method},
        headers=auth(seed.reader),
    )
    return order, response.json()["data"]["reference"]


def _charge_success(reference, amount_kobo=500000, **meta):
    return {
        "event": "charge.success",
        "data": {
            "reference": reference,
            "status": "success",
            "amount": amount_kobo,
            "currency": "NGN",
            "customer": {"email": "reader@example.com"},
            "metadata": meta,
        },
    }


# -------------------------------------------------
# Paystack
# -------------------------------------------------
async def test_signed_non_object_bodies_are_ignored(client, db):
    paystack = await _paystack_post(client, [1, 2])
    assert paystack.status_code == 200
    assert paystack.json() == {"success": True, "status": "ignored"}

    flutterwave = await _flutterwave_post(client, [1, 2])
    assert flutterwave.status_code == 200
    assert flutterwave.json() == {"success": True, "status": "ignored"}

    async with db() as s:
        assert await s.scalar(select(func.count()).select_from(TransactionLog)) == 2


async def test_paystack_rejects_bad_signature(client, db):
    response = await _paystack_post(client, {"event": "charge.success", "data": {}}, signature="bad")

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Invalid signature"}
    async with db() as s:
        assert await s.scalar(select(func.count()).select_from(TransactionLog)) == 0


async def test_paystack_charge_success_settles_once(client, db, seed, auth, make_order):
    order, reference = await _pending_order(client, seed, auth, make_order)

    first = await _paystack_post(client, _charge_success(reference))
    assert first.status_code == 200
    assert first.json() == {"success": True, "status": "successful"}

    second = await _paystack_post(client, _charge_success(reference))
    assert second.json()["status"] == "duplicate"

    async with db() as s:
        saved = await s.get(Order, order.id)
        logged = await s.scalar(select(func.count()).select_from(TransactionLog))
    assert saved.payment_status == "completed"
    assert saved.status == "confirmed"
    assert logged == 2


async def test_paystack_underpaid_charge_fails(client, db, seed, auth, make_order):
    order, reference = await _pending_order(client, seed, auth, make_order)

    response = await _paystack_post(client, _charge_success(reference, amount_kobo=1000))
    assert response.json()["status"] == "failed"

    async with db() as s:
        saved = await s.get(Order, order.id)
    assert saved.payment_status == "failed"


async def test_paystack_unknown_reference_uses_order_metadata(client, db, seed, make_order):
    order = await make_order(seed.reader, seed.book)

    response = await _paystack_post(client, _charge_success("PSK-NEW", orderId=str(order.id)))
    assert response.json()["status"] == "successful"

    async with db() as s:
        txn = (await s.execute(
            select(PaymentTransaction).where(PaymentTransaction.reference == "PSK-NEW")
        )).scalar_one()
    assert txn.order_id == order.id
    assert txn.status == "successful"


async def test_paystack_events_without_target_are_ignored(client):
    no_reference = await _paystack_post(client, {"event": "charge.success", "data": {}})
    assert no_reference.json()["status"] == "ignored"

    no_order = await _paystack_post(client, _charge_success("PSK-ORPHAN"))
    assert no_order.json()["status"] == "ignored"

    transfer = await _paystack_post(client, {"event": "transfer.success", "data": {"reference": "T1"}})
    assert transfer.json()["status"] == "logged"

    other = await _paystack_post(client, {"event": "subscription.create", "data": {}})
    assert other.json()["status"] == "ignored"


# -------------------------------------------------
# Flutterwave
# -------------------------------------------------
async def test_flutterwave_rejects_bad_hash(client):
    response = await _flutterwave_post(client, {"event": "charge.completed", "data": {}}, signature="nope")
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid signature"


async def test_flutterwave_charge_completed_is_double_checked(client, db, gateway, seed, auth, make_order):
    order, reference = await _pending_order(client, seed, auth, make_order, method="flutterwave")
    gateway.flutterwave_charge(4242, reference, 5000)

    payload = {
        "event": "charge.completed",
        "data": {"id": 4242, "tx_ref": reference, "status": "successful", "amount": 5000, "currency": "NGN"},
    }
    response = await _flutterwave_post(client, payload)
    assert response.json()["status"] == "successful"
    assert any(r.url.path.endswith("/transactions/4242/verify") for r in gateway.requests)

    duplicate = await _flutterwave_post(client, payload)
    assert duplicate.json()["status"] == "duplicate"

    async with db() as s:
        saved = await s.get(Order, order.id)
    assert saved.payment_status == "completed"


async def test_flutterwave_unverifiable_charge_is_not_credited(client, db, seed, auth, make_order):
    order, reference = await _pending_order(client, seed, auth, make_order, method="flutterwave")

    payload = {
        "event": "charge.completed",
        "data": {"id": 999, "tx_ref": reference, "status": "successful", "amount": 5000, "currency": "NGN"},
    }
    response = await _flutterwave_post(client, payload)
    assert response.json()["status"] == "unverified"

    async with db() as s:
        saved = await s.get(Order, order.id)
        txn = (await s.execute(
            select(PaymentTransaction).where(PaymentTransaction.reference == reference)
        )).scalar_one()
    assert saved.payment_status == "pending"
    assert txn.status == "pending"


async def test_flutterwave_charge_failed(client, db, seed, auth, make_order):
    order, reference = await _pending_order(client, seed, auth, make_order, method="flutterwave")

    payload = {"event": "charge.failed", "data": {"id": 1, "tx_ref": reference, "status": "failed", "amount": 5000}}
    response = await _flutterwave_post(client, payload)
    assert response.json()["status"] == "failed"

    async with db() as s:
        saved = await s.get(Order, order.id)
    assert saved.payment_status == "failed"
