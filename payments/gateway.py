"""Client for the payment provider's REST API.

Verification is two calls: exchange the API key/secret for an access token,
then look up the transaction and compare its status and amount with what the
order expects. Any transport problem, non-2xx response or unexpected payload
is reported as ``PaymentVerificationFailed``; there is no retry.
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Optional

import requests
from common.exceptions import PaymentVerificationFailed
from django.conf import settings

logger = logging.getLogger("storefront.payments")

DEFAULT_BASE_URL = "https://api.iamport.kr"


class PaymentGateway:
    """Verifies provider transactions with explicit credentials.

    A gateway without credentials is "unconfigured"; callers check
    ``is_configured`` and skip verification in that case.
    """

    def __init__(
        self,
        api_key: str = "",
        api_secret: str = "",
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 10,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key or ""
        self.api_secret = api_secret or ""
        self.base_url = (base_url or DEFAULT_BASE_URL).rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key and self.api_secret)

    def _request(self, method: str, path: str, **kwargs) -> dict:
        url = f"{self.base_url}{path}"
        try:
            resp = self.session.request(method, url, timeout=self.timeout, **kwargs)
            resp.raise_for_status()
            body = resp.json()
        except requests.Timeout:
            logger.warning("payments.timeout", extra={"event": "payments.timeout", "path": path})
            raise PaymentVerificationFailed("Payment provider timed out.") from None
        except (requests.RequestException, ValueError) as exc:
            logger.warning(
                "payments.request_failed",
                extra={"event": "payments.request_failed", "path": path, "error": str(exc)},
            )
            raise PaymentVerificationFailed("Payment provider request failed.") from None

        payload = body.get("response") if isinstance(body, dict) else None
        if not isinstance(payload, dict):
            raise PaymentVerificationFailed("Malformed payment provider response.")
        return payload

    def _access_token(self) -> str:
        payload = self._request("POST", "/users/getToken", json={"imp_key": self.api_key, "imp_secret": self.api_secret})
        token = payload.get("access_token")
        if not token:
            raise PaymentVerificationFailed("Malformed payment provider response.")
        return token

    def verify(self, transaction_id: str, expected_amount) -> dict:
        """Confirm that ``transaction_id`` is paid for exactly ``expected_amount``.

        Returns the provider's payment record on success.
        """

        token = self._access_token()
        payment = self._request(
            "GET",
            f"/payments/{transaction_id}",
            headers={"Authorization": f"Bearer {token}"},
        )

        if payment.get("status") != "paid":
            logger.info(
                "payments.not_paid",
                extra={"event": "payments.not_paid", "transaction_id": transaction_id, "status": payment.get("status")},
            )
            raise PaymentVerificationFailed("Payment has not been completed.")

        try:
            paid_amount = Decimal(str(payment.get("amount")))
            expected = Decimal(str(expected_amount))
        except InvalidOperation:
            raise PaymentVerificationFailed("Malformed payment provider response.") from None
        if paid_amount != expected:
            logger.info(
                "payments.amount_mismatch",
                extra={
                    "event": "payments.amount_mismatch",
                    "transaction_id": transaction_id,
                    "paid": str(paid_amount),
                    "expected": str(expected),
                },
            )
            raise PaymentVerificationFailed(f"Payment amount mismatch (paid: {paid_amount}, expected: {expected}).")

        logger.info("payments.verified", extra={"event": "payments.verified", "transaction_id": transaction_id})
        return payment


def get_payment_gateway() -> PaymentGateway:
    """Build a gateway from settings."""

    return PaymentGateway(
        api_key=getattr(settings, "PAYMENT_GATEWAY_API_KEY", ""),
        api_secret=getattr(settings, "PAYMENT_GATEWAY_API_SECRET", ""),
        base_url=getattr(settings, "PAYMENT_GATEWAY_BASE_URL", DEFAULT_BASE_URL),
        timeout=getattr(settings, "PAYMENT_GATEWAY_TIMEOUT", 10),
    )
