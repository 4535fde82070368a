# =======================================================================
# services/payment_providers/service.py
# =======================================================================
from __future__ import annotations

import uuid
from decimal import Decimal
from typing import Any, Dict, List, Optional

from config import PAYSTACK, FLUTTERWAVE, APP_NAME, APP_LOGO_URL
from logging_setup import get_logger
from services.payment_providers.flutterwave import FlutterwaveService, flutterwave_service
from services.payment_providers.paystack import PaystackService, paystack_service
from services.payment_providers.types import (
    PaymentIntent,
    PaymentProviderError,
    PaymentResult,
    VerificationResult,
)

logger = get_logger(__name__)

PAYSTACK_CHANNELS = ["card", "bank", "ussd", "qr", "mobile_money", "bank_transfer"]
FLUTTERWAVE_OPTIONS = "card,banktransfer,ussd,account"

INTERNATIONAL_CURRENCIES = ("USD", "GBP", "EUR")
FLUTTERWAVE_CURRENCIES = ("USD", "GBP", "EUR", "KES", "GHS", "UGX", "TZS")
CURRENCY_SYMBOLS = {"USD": "$", "GBP": "£", "EUR": "€"}


def _drop_none(d: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in d.items() if v is not None}


class PaymentService:
    """Picks a gateway and normalizes its responses to PaymentResult / VerificationResult."""

    def __init__(
        self,
        paystack: Optional[PaystackService] = None,
        flutterwave: Optional[FlutterwaveService] = None,
    ):
        self.paystack = paystack or paystack_service
        self.flutterwave = flutterwave or flutterwave_service

    # ------------------------------------------------------
    # 1. Initialize
    # ------------------------------------------------------
    async def initialize_payment(self, provider: str, intent: PaymentIntent) -> PaymentResult:
        """Never raises; failures come back as PaymentResult(success=False)."""
        try:
            if provider == PAYSTACK:
                return await self._initialize_paystack(intent)
            if provider == FLUTTERWAVE:
                return await self._initialize_flutterwave(intent)
            raise PaymentProviderError(f"Unsupported payment provider: {provider}", provider=provider)
        except PaymentProviderError as e:
            logger.error(f"❌ Payment initialization error ({provider}): {e.message}")
            return PaymentResult(success=False, error=e.message, provider=provider)
        except Exception as e:
            logger.exception(f"❌ Unexpected payment initialization error ({provider}): {e}")
            return PaymentResult(success=False, error=str(e) or "Failed to initialize payment", provider=provider)

    async def _initialize_paystack(self, intent: PaymentIntent) -> PaymentResult:
        reference = intent.reference or f"{intent.order_id}-{uuid.uuid4()}"

        metadata = _drop_none({
            "orderId": intent.order_id,
            "userId": intent.user_id,
            "bookId": intent.book_id,
        })
        metadata.update(intent.metadata or {})
        metadata["custom_fields"] = [
            {
                "display_name": "Order ID",
                "variable_name": "order_id",
                "value": intent.order_id or reference,
            },
            {
                "display_name": "Customer Name",
                "variable_name": "customer_name",
                "value": intent.customer_name,
            },
        ]

        payload = {
            "reference": reference,
            "amount": self.paystack.to_kobo(intent.amount),
            "email": intent.customer_email,
            "currency": intent.currency,
            "callback_url": intent.callback_url,
            "metadata": metadata,
            "channels": PAYSTACK_CHANNELS,
        }

        response = await self.paystack.initialize_payment(payload)
        if not response.get("status"):
            raise PaymentProviderError(response.get("message") or "Failed to initialize payment", provider=PAYSTACK)

        data = response.get("data") or {}
        return PaymentResult(
            success=True,
            payment_url=data.get("authorization_url"),
            reference=data.get("reference") or reference,
            provider=PAYSTACK,
            data=data,
        )

    async def _initialize_flutterwave(self, intent: PaymentIntent) -> PaymentResult:
        tx_ref = intent.reference or self.flutterwave.generate_tx_ref("VIC")

        meta = _drop_none({
            "orderId": intent.order_id,
            "userId": intent.user_id,
            "bookId": intent.book_id,
        })
        meta.update(intent.metadata or {})

        payload = {
            "tx_ref": tx_ref,
            "amount": float(intent.amount),
            "currency": intent.currency,
            "redirect_url": intent.callback_url,
            "payment_options": FLUTTERWAVE_OPTIONS,
            "customer": _drop_none({
                "email": intent.customer_email,
                "phonenumber": intent.customer_phone,
                "name": intent.customer_name,
            }),
            "customizations": {
                "title": APP_NAME,
                "description": intent.description,
                "logo": APP_LOGO_URL,
            },
            "meta": meta,
        }

        response = await self.flutterwave.initialize_payment(payload)
        if response.get("status") != "success":
            raise PaymentProviderError(response.get("message") or "Failed to initialize payment", provider=FLUTTERWAVE)

        data = response.get("data") or {}
        return PaymentResult(
            success=True,
            payment_url=data.get("link"),
            reference=tx_ref,
            provider=FLUTTERWAVE,
            data=data,
        )

    # ------------------------------------------------------
    # 2. Verify
    # ------------------------------------------------------
    async def verify_payment(self, provider: str, reference: str) -> VerificationResult:
        """
        Paystack verifies by reference, Flutterwave by transaction id.
        Raises PaymentProviderError on any failure.
        """
        try:
            if provider == PAYSTACK:
                return await self._verify_paystack(reference)
            if provider == FLUTTERWAVE:
                return await self._verify_flutterwave(reference)
            raise PaymentProviderError(f"Unsupported payment provider: {provider}", provider=provider)
        except PaymentProviderError as e:
            logger.error(f"❌ Payment verification error ({provider}): {e.message}")
            raise

    async def _verify_paystack(self, reference: str) -> VerificationResult:
        response = await self.paystack.verify_payment(reference)
        if not response.get("status"):
            raise PaymentProviderError(response.get("message") or "Failed to verify payment", provider=PAYSTACK)

        data = response.get("data") or {}
        return VerificationResult(
            success=data.get("status") == "success",
            status=data.get("status") or "unknown",
            amount=self.paystack.from_kobo(data.get("amount")),
            currency=data.get("currency") or "",
            reference=data.get("reference") or reference,
            customer_email=(data.get("customer") or {}).get("email") or "",
            metadata=data.get("metadata") or {},
            provider=PAYSTACK,
            data=data,
        )

    async def _verify_flutterwave(self, transaction_id: str) -> VerificationResult:
        response = await self.flutterwave.verify_payment(transaction_id)
        if response.get("status") != "success":
            raise PaymentProviderError(response.get("message") or "Failed to verify payment", provider=FLUTTERWAVE)

        data = response.get("data") or {}
        return VerificationResult(
            success=data.get("status") == "successful",
            status=data.get("status") or "unknown",
            amount=Decimal(str(data.get("amount") or 0)),
            currency=data.get("currency") or "",
            reference=data.get("tx_ref") or "",
            customer_email=(data.get("customer") or {}).get("email") or "",
            metadata=data.get("meta") or data.get("meta_data") or {},
            provider=FLUTTERWAVE,
            data=data,
        )

    # ------------------------------------------------------
    # 3. Provider selection & display
    # ------------------------------------------------------
    @staticmethod
    def get_recommended_provider(currency: str) -> str:
        if currency.upper() in INTERNATIONAL_CURRENCIES:
            return FLUTTERWAVE
        return PAYSTACK

    @staticmethod
    def get_available_providers(currency: str) -> List[str]:
        currency = currency.upper()
        if currency == "NGN":
            return [PAYSTACK, FLUTTERWAVE]
        if currency in FLUTTERWAVE_CURRENCIES:
            return [FLUTTERWAVE]
        return [PAYSTACK]

    @staticmethod
    def format_amount(amount, currency: str) -> str:
        """en-US currency display, e.g. $1,234.50 or NGN 5,000.00"""
        value = Decimal(str(amount))
        currency = currency.upper()
        symbol = CURRENCY_SYMBOLS.get(currency, f"{currency} ")
        sign = "-" if value < 0 else ""
        return f"{sign}{symbol}{abs(value):,.2f}"


payment_service = PaymentService()


def get_payment_service() -> PaymentService:
    """FastAPI dependency; tests override it with mocked transports."""
    return payment_service
