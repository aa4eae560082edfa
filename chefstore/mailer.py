from datetime import datetime, timezone
from typing import Dict, Optional, Tuple

import resend
from flask import render_template

from .config import Settings

STATUS_LABELS = {
    "Pending": "Pending confirmation",
    "Processing": "Being prepared",
    "Shipped": "Shipped and on its way",
    "Delivered": "Delivered",
    "Cancelled": "Cancelled",
}


def describe_status(status: str) -> str:
    return STATUS_LABELS.get(status, status)


class Mailer:
    """Sends transactional email through Resend.

    Delivery problems are logged and reported back as ``(False, reason)``; they
    never raise, so the operation that triggered the email still succeeds.
    """

    def __init__(self, settings: Settings, logger):
        self.settings = settings
        self.logger = logger
        self.api_key = (settings.resend_api_key or "").strip()
        if self.api_key:
            resend.api_key = self.api_key

    @property
    def sender(self) -> str:
        return f"{self.settings.store_name} <{self.settings.email_sender}>"

    def verification_link(self, token: str) -> str:
        return f"{self.settings.frontend_url}/verify/{token}"

    def tracking_link(self, order_id) -> str:
        return f"{self.settings.frontend_url}/track/{order_id}"

    def _send(self, payload: Dict[str, object]) -> Tuple[bool, Optional[str]]:
        if not self.api_key:
            self.logger.warning(
                "Skipping email to %s: Resend API key is not configured.", payload["to"]
            )
            return False, "Resend API key is not configured."

        try:
            response = resend.Emails.send(payload)
        except Exception as exc:
            self.logger.error("Email delivery to %s failed: %s", payload["to"], exc)
            return False, str(exc)

        if not isinstance(response, dict) or not response.get("id"):
            self.logger.error(
                "Email delivery to %s returned an unexpected response: %s",
                payload["to"],
                response,
            )
            return False, str(response)

        self.logger.info("Email '%s' sent to %s", payload["subject"], payload["to"])
        return True, None

    def send_verification_email(self, recipient_email: str, token: str):
        link = self.verification_link(token)
        store_name = self.settings.store_name
        html_body = render_template(
            "emails/verify_email.html",
            store_name=store_name,
            verification_link=link,
            year=datetime.now(timezone.utc).year,
        )
        text_body = (
            f"Thanks for signing up to {store_name}! "
            f"Verify your email address by opening this link: {link}"
        )
        return self._send(
            {
                "from": self.sender,
                "to": [recipient_email],
                "subject": f"Verify your email - {store_name}",
                "html": html_body,
                "text": text_body,
            }
        )

    def send_status_update_email(self, order_document: Dict):
        recipient_email = str(order_document.get("email") or "").strip()
        if not recipient_email:
            self.logger.warning(
                "Order %s has no contact email; status email skipped.",
                order_document.get("_id"),
            )
            return False, "Missing customer email for the status update."

        store_name = self.settings.store_name
        status_label = describe_status(order_document.get("status", ""))
        link = self.tracking_link(order_document.get("_id"))
        payment_ref = order_document.get("payment_ref", "")
        html_body = render_template(
            "emails/order_status.html",
            store_name=store_name,
            customer_name=order_document.get("name") or "there",
            payment_ref=payment_ref,
            status_label=status_label,
            tracking_link=link,
            year=datetime.now(timezone.utc).year,
        )
        text_body = (
            f"Your order {payment_ref} is now: {status_label}.\n"
            f"Track it here: {link}\n\n"
            f"{store_name} Team"
        )
        return self._send(
            {
                "from": self.sender,
                "to": [recipient_email],
                "subject": f"Your Order Status Update - {store_name}",
                "html": html_body,
                "text": text_body,
            }
        )
