# =================================================================
# services/payment_providers/__init__.py
# =================================================================
"""
Gateway clients and the provider-agnostic payment service.

- paystack.py: Paystack REST client (amounts in kobo)
- flutterwave.py: Flutterwave v3 REST client (amounts in major units)
- service.py: PaymentService, picks a provider and normalizes results
"""
from services.payment_providers.types import (
    PaymentIntent,
    PaymentProviderError,
    PaymentResult,
    VerificationResult,
)
from services.payment_providers.paystack import PaystackService, paystack_service
from services.payment_providers.flutterwave import FlutterwaveService, flutterwave_service
from services.payment_providers.service import PaymentService, payment_service, get_payment_service

__all__ = [
    "PaymentIntent",
    "PaymentProviderError",
    "PaymentResult",
    "VerificationResult",
    "PaystackService",
    "FlutterwaveService",
    "PaymentService",
    "paystack_service",
    "flutterwave_service",
    "payment_service",
    "get_payment_service",
]
