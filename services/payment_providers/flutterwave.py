# ==========================================================
# services/payment_providers/flutterwave.py
# Flutterwave v3 REST API (amounts in major units)
# ==========================================================
from __future__ import annotations

import hashlib
import hmac
from typing import Any, Dict, List, Optional

import httpx

from config import (
    FLUTTERWAVE_BASE_URL,
    FLUTTERWAVE_SECRET_KEY,
    FLUTTERWAVE_SECRET_HASH,
    HTTP_TIMEOUT,
    FLUTTERWAVE,
)
from helpers import generate_reference
from logging_setup import get_logger
from services.payment_providers.paystack import _vendor_message
from services.payment_providers.types import PaymentProviderError

logger = get_logger(__name__)

PAYMENT_METHODS = ["card", "banktransfer", "ussd", "qr", "mobilemoney", "mpesa", "account"]


class FlutterwaveService:
    def __init__(
        self,
        secret_key: str = FLUTTERWAVE_SECRET_KEY,
        secret_hash: str = FLUTTERWAVE_SECRET_HASH,
        base_url: str = FLUTTERWAVE_BASE_URL,
        timeout: float = HTTP_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.secret_key = secret_key
        self.secret_hash = secret_hash
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
            raise PaymentProviderError("Flutterwave secret key is not configured", provider=FLUTTERWAVE)

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.request(method, f"{self.base_url}{path}", headers=self._headers(), **kwargs)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"🚫 Flutterwave {action} error [{e.response.status_code}]: {e.response.text}")
            raise PaymentProviderError(
                _vendor_message(e.response) or fallback,
                provider=FLUTTERWAVE,
                status_code=e.response.status_code,
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"🚫 Flutterwave {action} error: {e}")
            raise PaymentProviderError(fallback, provider=FLUTTERWAVE) from e

    # ------------------------------------------------------
    # Payments
    # ------------------------------------------------------
    async def initialize_payment(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Hosted checkout. Returns {"status": "success", "data": {"link": ...}}."""
        return await self._request("POST", "/payments", "Failed to initialize payment", "initialization", json=data)

    async def verify_payment(self, transaction_id: str) -> Dict[str, Any]:
        return await self._request(
            "GET", f"/transactions/{transaction_id}/verify", "Failed to verify payment", "verification"
        )

    async def verify_by_reference(self, tx_ref: str) -> Dict[str, Any]:
        return await self._request(
            "GET",
            "/transactions/verify_by_reference",
            "Failed to verify payment",
            "verification",
            params={"tx_ref": tx_ref},
        )

    async def get_transaction(self, transaction_id: str) -> Dict[str, Any]:
        return await self._request(
            "GET", f"/transactions/{transaction_id}", "Failed to fetch transaction", "transaction fetch"
        )

    # ------------------------------------------------------
    # Customers, banks & transfers
    # ------------------------------------------------------
    async def create_customer(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", "/customers", "Failed to create customer", "customer creation", json=data)

    async def get_banks(self, country: str = "NG") -> Dict[str, Any]:
        return await self._request("GET", f"/banks/{country}", "Failed to fetch banks", "banks fetch")

    async def create_transfer(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", "/transfers", "Failed to create transfer", "transfer", json=data)

    async def verify_account_number(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request(
            "POST", "/accounts/resolve", "Failed to verify account", "account verification", json=data
        )

    # ------------------------------------------------------
    # Helpers
    # ------------------------------------------------------
    @staticmethod
    def generate_tx_ref(prefix: str = "VIC") -> str:
        return generate_reference(prefix)

    def validate_webhook(self, payload: str | bytes, signature: str) -> bool:
        """
        verif-hash must equal the dashboard secret hash, or the hex
        HMAC-SHA256 of the raw body keyed by the secret key.
        """
        signature = (signature or "").strip()
        if not signature:
            return False

        if self.secret_hash and hmac.compare_digest(signature, self.secret_hash.strip()):
            return True

        if not self.secret_key:
            return False
        body = payload.encode("utf-8") if isinstance(payload, str) else payload
        digest = hmac.new(self.secret_key.encode("utf-8"), body, hashlib.sha256).hexdigest()
        return hmac.compare_digest(digest, signature)

    @staticmethod
    def get_payment_methods() -> List[str]:
        return list(PAYMENT_METHODS)


flutterwave_service = FlutterwaveService()
