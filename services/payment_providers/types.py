# =================================================================
# services/payment_providers/types.py
# ================================================================
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Optional


class PaymentProviderError(Exception):
    """A vendor call failed; message is the vendor's message when it sent one."""

    def __init__(self, message: str, provider: str = "", status_code: Optional[int] = None, raw: Any = None):
        super().__init__(message)
        self.message = message
        self.provider = provider
        self.status_code = status_code
        self.raw = raw


@dataclass
class PaymentIntent:
    user_id: str
    amount: Decimal
    currency: str
    customer_email: str
    customer_name: str
    callback_url: str
    order_id: Optional[str] = None
    book_id: Optional[str] = None
    customer_phone: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    reference: Optional[str] = None
    description: str = "Book Purchase"


@dataclass
class PaymentResult:
    success: bool
    provider: str
    payment_url: Optional[str] = None
    reference: Optional[str] = None
    error: Optional[str] = None
    data: Optional[dict] = None


@dataclass
class VerificationResult:
    success: bool
    status: str
    amount: Decimal
    currency: str
    reference: str
    customer_email: str
    provider: str
    metadata: Optional[dict] = None
    data: Optional[dict] = None
