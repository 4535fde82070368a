import hashlib
import hmac
import json
from decimal import Decimal

import pytest

from services.payment_providers import (
    FlutterwaveService,
    PaymentIntent,
    PaymentProviderError,
    PaymentService,
    PaystackService,
)


def _intent(**overrides):
    data = dict(
        user_id="user-1",
        order_id="order-1",
        amount=Decimal("5000.50"),
        currency="NGN",
        customer_email="reader@example.com",
        customer_name="Ada Reader",
        callback_url="http://testserver/callback",
    )
    data.update(overrides)
    return PaymentIntent(**data)


# -------------------------------------------------
# Paystack
# -------------------------------------------------
def test_kobo_conversion_rounds_half_up():
    assert PaystackService.to_kobo(Decimal("5000.50")) == 500050
    assert PaystackService.to_kobo("10.005") == 1001
    assert PaystackService.from_kobo(500050) == Decimal("5000.50")
    assert PaystackService.from_kobo(None) == Decimal("0")


def test_paystack_webhook_signature():
    service = PaystackService(secret_key="sk_test_secret")
    body = b'{"event":"charge.success"}'
    signature = hmac.new(b"sk_test_secret", body, hashlib.sha512).hexdigest()

    assert service.validate_webhook(body, signature)
    assert service.validate_webhook(body.decode(), signature)
    assert not service.validate_webhook(body, "0" * 128)
    assert not service.validate_webhook(body, "")
    assert not PaystackService(secret_key="").validate_webhook(body, signature)


async def test_paystack_initialize_sends_kobo_and_channels(payments, gateway):
    result = await payments.initialize_payment("paystack", _intent(reference="REF-1"))

    assert result.success
    assert result.reference == "REF-1"
    assert result.payment_url == "https://checkout.paystack.com/REF-1"

    sent = json.loads(gateway.requests[-1].content)
    assert sent["amount"] == 500050
    assert "bank_transfer" in sent["channels"]
    assert gateway.requests[-1].headers["authorization"] == "Bearer sk_test_secret"


async def test_paystack_initialize_default_reference_uses_order_id(payments):
    result = await payments.initialize_payment("paystack", _intent())
    assert result.reference.startswith("order-1-")


async def test_paystack_vendor_message_is_surfaced(payments, gateway):
    gateway.fail_initialize = True
    result = await payments.initialize_payment("paystack", _intent())

    assert not result.success
    assert result.error == "Invalid key"


async def test_missing_secret_key_raises():
    service = PaystackService(secret_key="")
    with pytest.raises(PaymentProviderError, match="not configured"):
        await service.verify_payment("REF")


async def test_paystack_verify_normalizes_amount(payments, gateway):
    gateway.paystack_charge("REF-2", Decimal("1500"))
    verification = await payments.verify_payment("paystack", "REF-2")

    assert verification.success
    assert verification.amount == Decimal("1500")
    assert verification.currency == "NGN"
    assert verification.reference == "REF-2"


async def test_paystack_verify_unknown_reference_raises(payments):
    with pytest.raises(PaymentProviderError) as exc:
        await payments.verify_payment("paystack", "NOPE")
    assert exc.value.message == "Transaction reference not found"
    assert exc.value.status_code == 400


# -------------------------------------------------
# Flutterwave
# -------------------------------------------------
def test_flutterwave_webhook_accepts_secret_hash_or_hmac():
    service = FlutterwaveService(secret_key="FLWSECK_TEST-secret", secret_hash="flw-hash")
    body = b'{"event":"charge.completed"}'
    digest = hmac.new(b"FLWSECK_TEST-secret", body, hashlib.sha256).hexdigest()

    assert service.validate_webhook(body, "flw-hash")
    assert service.validate_webhook(body, digest)
    assert not service.validate_webhook(body, "wrong")
    assert not service.validate_webhook(body, "")


def test_flutterwave_tx_ref_format():
    ref = FlutterwaveService.generate_tx_ref("VIC")
    prefix, millis, suffix = ref.split("-")
    assert prefix == "VIC"
    assert millis.isdigit()
    assert len(suffix) == 6
    assert all(c.isdigit() or c.isupper() for c in suffix)


async def test_flutterwave_initialize_returns_link(payments):
    result = await payments.initialize_payment("flutterwave", _intent(reference="EVT-1"))

    assert result.success
    assert result.reference == "EVT-1"
    assert result.payment_url == "https://checkout.flutterwave.com/pay/EVT-1"


async def test_flutterwave_verify_by_transaction_id(payments, gateway):
    gateway.flutterwave_charge(987, "EVT-1", 2000)
    verification = await payments.verify_payment("flutterwave", "987")

    assert verification.success
    assert verification.reference == "EVT-1"
    assert verification.amount == Decimal("2000")


# -------------------------------------------------
# PaymentService
# -------------------------------------------------
async def test_unsupported_provider_fails_softly(payments):
    result = await payments.initialize_payment("stripe", _intent())
    assert not result.success
    assert "Unsupported payment provider" in result.error

    with pytest.raises(PaymentProviderError):
        await payments.verify_payment("stripe", "REF")


@pytest.mark.parametrize(
    "currency, providers, recommended",
    [
        ("NGN", ["paystack", "flutterwave"], "paystack"),
        ("usd", ["flutterwave"], "flutterwave"),
        ("KES", ["flutterwave"], "paystack"),
        ("ZAR", ["paystack"], "paystack"),
    ],
)
def test_provider_selection(currency, providers, recommended):
    assert PaymentService.get_available_providers(currency) == providers
    assert PaymentService.get_recommended_provider(currency) == recommended


def test_format_amount():
    assert PaymentService.format_amount(Decimal("1234.5"), "USD") == "$1,234.50"
    assert PaymentService.format_amount(5000, "NGN") == "NGN 5,000.00"
