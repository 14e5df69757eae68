"""Moyasar invoice client.

Only invoice creation is needed: the returned hosted-page URL is handed to the
client app and the outcome arrives later through the webhook.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional
import logging

import httpx

from app.config import settings
from app.exceptions import PaymentProviderError

logger = logging.getLogger("mealpass.moyasar")


@dataclass(frozen=True)
class InvoiceResult:
    id: str
    url: Optional[str]
    currency: str


class MoyasarClient:
    """Thin synchronous wrapper over the Moyasar REST API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.moyasar_secret_key
        self.base_url = (base_url or settings.moyasar_api_url).rstrip("/")
        self.timeout = timeout or settings.provider_timeout_sec
        self._transport = transport

    def _client(self) -> httpx.Client:
        if not self.api_key:
            raise PaymentProviderError(
                "Missing Moyasar secret key", code="PROVIDER_NOT_CONFIGURED"
            )
        return httpx.Client(
            base_url=self.base_url,
            auth=(self.api_key, ""),
            timeout=self.timeout,
            transport=self._transport,
        )

    def create_invoice(
        self,
        amount: int,
        description: str,
        callback_url: str,
        success_url: Optional[str] = None,
        back_url: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        currency: Optional[str] = None,
    ) -> InvoiceResult:
        """
        Create a hosted invoice.

        Args:
            amount: amount in minor units (halalas)
            description: text shown on the payment page
            callback_url: webhook URL notified on payment
            success_url: redirect after a successful payment
            back_url: redirect when the user leaves the page
            metadata: echoed back in the webhook payload
            currency: defaults to the configured billing currency

        Returns:
            InvoiceResult with the provider invoice id and payment URL

        Raises:
            PaymentProviderError: On transport failure or a 4xx/5xx answer
        """
        body = {
            "amount": amount,
            "currency": currency or settings.currency,
            "description": description,
            "callback_url": callback_url,
            "success_url": success_url,
            "back_url": back_url,
            "metadata": metadata or {},
        }
        try:
            with self._client() as client:
                response = client.post("/v1/invoices", json=body)
        except httpx.HTTPError as exc:
            logger.error("Moyasar invoice request failed: %s", exc)
            raise PaymentProviderError(f"Moyasar request failed: {exc}")

        try:
            payload = response.json() if response.content else {}
        except ValueError:
            payload = {}

        if response.status_code >= 400:
            message = payload.get("message") if isinstance(payload, dict) else None
            logger.warning(
                "Moyasar rejected invoice: status=%s message=%s",
                response.status_code,
                message,
            )
            raise PaymentProviderError(
                message or "Moyasar request failed",
                details={"status": response.status_code},
            )

        invoice_id = payload.get("id")
        if not invoice_id:
            raise PaymentProviderError("Moyasar response did not include an invoice id")

        logger.info("Moyasar invoice created: %s amount=%s", invoice_id, amount)
        return InvoiceResult(
            id=str(invoice_id),
            url=payload.get("url"),
            currency=payload.get("currency") or body["currency"],
        )


_default_client: Optional[MoyasarClient] = None


def get_invoice_client() -> MoyasarClient:
    """Process-wide client built from settings."""
    global _default_client
    if _default_client is None:
        _default_client = MoyasarClient()
    return _default_client
