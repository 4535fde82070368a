# ==========================================================
# services/payment_providers/paystack.py
# Paystack REST API (amounts in kobo)
# ==========================================================
from __future__ import annotations

import hashlib
import hmac
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Optional

import httpx

from config import PAYSTACK_BASE_URL, PAYSTACK_SECRET_KEY, HTTP_TIMEOUT, PAYSTACK
from logging_setup import get_logger
from services.payment_providers.types import PaymentProviderError

logger = get_logger(__name__)


def _vendor_message(response: Optional[httpx.Response]) -> Optional[str]:
    if response is None:
        return None
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        return body.get("message")
    return None


class PaystackService:
    def __init__(
        self,
        secret_key: str = PAYSTACK_SECRET_KEY,
        base_url: str = PAYSTACK_BASE_URL,
        timeout: float = HTTP_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.secret_key = secret_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/json",
        }

    async def _request(self, method: str, path: str, fallback: str, action: str, **kwargs) -> Dict[str, Any]:
        if not self.secret_key:
            raise PaymentProviderError("Paystack secret key is not configured", provider=PAYSTACK)

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.request(method, f"{self.base_url}{path}", headers=self._headers(), **kwargs)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"🚫 Paystack {action} error [{e.response.status_code}]: {e.response.text}")
            raise PaymentProviderError(
                _vendor_message(e.response) or fallback,
                provider=PAYSTACK,
                status_code=e.response.status_code,
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"🚫 Paystack {action} error: {e}")
            raise PaymentProviderError(fallback, provider=PAYSTACK) from e

    # ------------------------------------------------------
    # Transactions
    # ------------------------------------------------------
    async def initialize_payment(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """POST /transaction/initialize. `data["amount"]` must already be in kobo."""
        return await self._request(
            "POST", "/transaction/initialize", "Failed to initialize payment", "initialization", json=data
        )

    async def verify_payment(self, reference: str) -> Dict[str, Any]:
        return await self._request(
            "GET", f"/transaction/verify/{reference}", "Failed to verify payment", "verification"
        )

    # ------------------------------------------------------
    # Customers, banks & transfers
    # ------------------------------------------------------
    async def create_customer(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", "/customer", "Failed to create customer", "customer creation", json=data)

    async def get_all_banks(self) -> Dict[str, Any]:
        return await self._request("GET", "/bank", "Failed to fetch banks", "banks fetch")

    async def create_transfer_recipient(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request(
            "POST", "/transferrecipient", "Failed to create transfer recipient", "transfer recipient", json=data
        )

    async def initiate_transfer(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", "/transfer", "Failed to initiate transfer", "transfer", json=data)

    # ------------------------------------------------------
    # Units
    # ------------------------------------------------------
    @staticmethod
    def to_kobo(amount) -> int:
        """Naira → kobo, rounded half up."""
        return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))

    @staticmethod
    def from_kobo(amount) -> Decimal:
        return Decimal(str(amount or 0)) / 100

    # ------------------------------------------------------
    # Webhooks
    # ------------------------------------------------------
    def validate_webhook(self, payload: str | bytes, signature: str) -> bool:
        """x-paystack-signature is hex HMAC-SHA512 of the raw body keyed by the secret key."""
        if not signature or not self.secret_key:
            return False
        body = payload.encode("utf-8") if isinstance(payload, str) else payload
        digest = hmac.new(self.secret_key.encode("utf-8"), body, hashlib.sha512).hexdigest()
        return hmac.compare_digest(digest, signature.strip())


paystack_service = PaystackService()
