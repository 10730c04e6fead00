"""Invoice delivery through the SendGrid v3 mail API."""
import base64
import logging
from dataclasses import dataclass
from pathlib import Path

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from invoicely.core.config import settings
from invoicely.core.exceptions import UpstreamError
from invoicely.services.pdf_service import InvoiceDocument, format_money

logger = logging.getLogger(__name__)

SENDGRID_URL = "https://api.sendgrid.com/v3/mail/send"


@dataclass
class InvoiceEmail:
    to: str
    subject: str
    text: str
    html: str


def compose_invoice_email(document: InvoiceDocument) -> InvoiceEmail:
    due = document.due_date.strftime("%d %b %Y")
    amount = format_money(document.total_amount)
    return InvoiceEmail(
        to=document.client.email or "",
        subject=f"Invoice {document.sequence_number} from {document.company_name}",
        text=(
            f"Please find attached invoice {document.sequence_number} for {amount}. "
            f"Payment is due by {due}."
        ),
        html=(
            f"<p>Please find attached invoice {document.sequence_number} for {amount}.</p>"
            f"<p>Payment is due by {due}.</p>"
        ),
    )


def _retrying_session(max_retries: int) -> requests.Session:
    retry = Retry(
        total=max_retries,
        backoff_factor=0.5,
        status_forcelist=(429, 500, 502, 503, 504),
        allowed_methods=frozenset(["POST"]),
        raise_on_status=False,
    )
    session = requests.Session()
    session.mount("https://", HTTPAdapter(max_retries=retry))
    return session


class SendGridMailer:
    """Sends one invoice email with its PDF attached. Raises UpstreamError on any failure."""

    def __init__(self, api_key: str, from_email: str, max_retries: int = 3, timeout: float = 15.0):
        self.api_key = api_key
        self.from_email = from_email
        self.timeout = timeout
        self.session = _retrying_session(max_retries)

    def build_payload(self, email: InvoiceEmail, attachment: bytes, filename: str) -> dict:
        return {
            "personalizations": [{"to": [{"email": email.to}]}],
            "from": {"email": self.from_email},
            "subject": email.subject,
            "content": [
                {"type": "text/plain", "value": email.text},
                {"type": "text/html", "value": email.html},
            ],
            "attachments": [
                {
                    "content": base64.b64encode(attachment).decode("ascii"),
                    "filename": filename,
                    "type": "application/pdf",
                    "disposition": "attachment",
                }
            ],
        }

    def send_invoice(self, email: InvoiceEmail, attachment_path: Path, filename: str) -> None:
        if not self.api_key or not self.from_email:
            raise UpstreamError("Email delivery is not configured")

        payload = self.build_payload(email, attachment_path.read_bytes(), filename)
        try:
            response = self.session.post(
                SENDGRID_URL,
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"[Email] SendGrid request failed: {type(e).__name__}: {e}")
            raise UpstreamError("Email delivery failed") from e

        if response.status_code >= 300:
            logger.error(f"[Email] SendGrid rejected message: {response.status_code} {response.text[:200]}")
            raise UpstreamError("Email delivery failed")

        logger.info(f"[Email] Sent '{email.subject}' to {email.to}")


def get_mailer() -> SendGridMailer:
    return SendGridMailer(
        api_key=settings.SENDGRID_API_KEY,
        from_email=settings.SENDGRID_FROM_EMAIL,
        max_retries=settings.EMAIL_MAX_RETRIES,
    )
