# checkout/services/payment_gateway.py
from decimal import Decimal
from typing import Any, Dict, Protocol

import requests
from pydantic import BaseModel
from requests import RequestException

from checkout.domain.errors import ExternalGatewayError
from checkout.utils.money import from_minor_units, to_minor_units
from checkout.utils.retry import http_retry
from checkout.utils.settings import (
    GATEWAY_TIMEOUT_SECONDS,
    PAYMENT_CALLBACK_URL,
    PAYMENT_CURRENCY,
    PAYSTACK_BASE_URL,
    PAYSTACK_SECRET_KEY,
)
from checkout.utils.logging import get_logger

logger = get_logger(__name__)


class GatewayInitialization(BaseModel):
    authorization_url: str
    access_code: str
    reference: str


class GatewayVerification(BaseModel):
    reference: str
    status: str
    amount: Decimal
    currency: str
    channel: str | None = None
    authorization_code: str | None = None
    metadata: Dict[str, Any] = {}

    @property
    def succeeded(self) -> bool:
        return self.status == "success"


class PaymentGateway(Protocol):
    def initialize(
        self, email: str, amount: Decimal, reference: str, metadata: Dict[str, Any] | None = None
    ) -> GatewayInitialization: ...

    def verify(self, reference: str) -> GatewayVerification: ...


class PaystackClient:
    """HTTP adapter for the payment provider; amounts travel in minor units."""

    def __init__(
        self,
        base_url: str | None = None,
        secret_key: str | None = None,
        timeout: int = GATEWAY_TIMEOUT_SECONDS,
        callback_url: str | None = None,
        currency: str = PAYMENT_CURRENCY,
        session: requests.Session | None = None,
    ):
        self.base_url = (base_url or PAYSTACK_BASE_URL).rstrip("/")
        self.secret_key = secret_key or PAYSTACK_SECRET_KEY
        self.timeout = timeout
        self.callback_url = callback_url or PAYMENT_CALLBACK_URL
        self.currency = currency
        self.session = session or requests.Session()

    @property
    def is_live(self) -> bool:
        return self.secret_key.startswith("sk_live_")

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/json",
        }

    @http_retry()
    def _send(self, method: str, path: str, payload: dict | None = None) -> dict:
        url = f"{self.base_url}{path}"
        logger.info(f"PaystackClient {method} {url} ({'live' if self.is_live else 'test'})")

        resp = self.session.request(method, url, json=payload, headers=self._headers(), timeout=self.timeout)
        resp.raise_for_status()
        return resp.json()

    def _request(self, method: str, path: str, payload: dict | None = None) -> dict:
        try:
            body = self._send(method, path, payload)
        except RequestException as e:
            logger.error(f"Payment gateway unreachable: {method} {path}: {e}")
            raise ExternalGatewayError(f"Payment gateway request failed: {e}") from e
        except ValueError as e:
            logger.error(f"Payment gateway returned invalid JSON for {method} {path}")
            raise ExternalGatewayError("Invalid JSON response from payment gateway") from e

        if not body.get("status"):
            message = body.get("message") or "unknown error"
            logger.error(f"Payment gateway rejected {method} {path}: {message}")
            raise ExternalGatewayError(f"Payment gateway error: {message}")
        return body.get("data") or {}

    def initialize(
        self, email: str, amount: Decimal, reference: str, metadata: Dict[str, Any] | None = None
    ) -> GatewayInitialization:
        logger.info(f"Initializing payment: {amount} {self.currency} (ref {reference})")
        data = self._request(
            "POST",
            "/transaction/initialize",
            {
                "email": email,
                "amount": to_minor_units(amount),
                "reference": reference,
                "callback_url": self.callback_url,
                "metadata": metadata or {},
                "currency": self.currency,
            },
        )
        return GatewayInitialization(
            authorization_url=data["authorization_url"],
            access_code=data["access_code"],
            reference=data.get("reference") or reference,
        )

    def verify(self, reference: str) -> GatewayVerification:
        data = self._request("GET", f"/transaction/verify/{reference}")
        authorization = data.get("authorization") or {}
        metadata = data.get("metadata")
        if not isinstance(metadata, dict):
            metadata = {}
        verification = GatewayVerification(
            reference=data.get("reference") or reference,
            status=data.get("status") or "unknown",
            amount=from_minor_units(data.get("amount") or 0),
            currency=data.get("currency") or self.currency,
            channel=data.get("channel"),
            authorization_code=authorization.get("authorization_code"),
            metadata=metadata,
        )
        logger.info(
            f"Payment {reference} verified: status={verification.status}, "
            f"amount={verification.amount} {verification.currency}"
        )
        return verification
