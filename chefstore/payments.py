from urllib.parse import quote

import requests

from .config import Settings
from .errors import PaymentGatewayError, PaymentNotVerified


class PaystackVerifier:
    """Confirms a payment reference with Paystack before an order is stored."""

    def __init__(self, settings: Settings, logger):
        self.secret_key = settings.paystack_secret_key
        self.base_url = settings.paystack_base_url
        self.timeout = settings.paystack_timeout_seconds
        self.logger = logger

    def verify(self, payment_ref: str) -> dict:
        """Return the Paystack transaction data for ``payment_ref``.

        Raises ``PaymentNotVerified`` when Paystack does not report a successful
        transaction, and ``PaymentGatewayError`` when the gateway cannot be used.
        """
        if not self.secret_key:
            self.logger.error("Payment verification requested but PAYSTACK_SECRET_KEY is unset.")
            raise PaymentGatewayError(
                "Payment configuration is incomplete. Please contact support."
            )

        url = f"{self.base_url}/transaction/verify/{quote(payment_ref, safe='')}"
        try:
            response = requests.get(
                url,
                headers={"Authorization": f"Bearer {self.secret_key}"},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            self.logger.error("Paystack request for %s failed: %s", payment_ref, exc)
            raise PaymentGatewayError() from exc

        if response.status_code == 401:
            self.logger.error("Paystack rejected the configured secret key.")
            raise PaymentGatewayError(
                "Payment provider rejected our credentials. Please contact support."
            )
        if response.status_code >= 500:
            self.logger.error(
                "Paystack returned %s while verifying %s", response.status_code, payment_ref
            )
            raise PaymentGatewayError()

        try:
            body = response.json()
        except ValueError as exc:
            self.logger.error("Paystack returned a non-JSON body for %s", payment_ref)
            raise PaymentGatewayError() from exc

        if not isinstance(body, dict):
            body = {}
        data = body.get("data")
        if not (body.get("status") and isinstance(data, dict) and data.get("status") == "success"):
            self.logger.info("Payment %s not verified by Paystack", payment_ref)
            raise PaymentNotVerified()

        return data
