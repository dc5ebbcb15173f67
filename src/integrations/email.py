"""Client email: welcome mail via the Make.com relay, document requests via SMTP."""

from __future__ import annotations

import asyncio
import smtplib
from collections.abc import Callable
from datetime import date
from email.message import Message
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, make_msgid
from pathlib import Path
from typing import Any

import httpx
from jinja2 import Environment, FileSystemLoader, select_autoescape

from src.clients.schemas import CamelModel
from src.core.config import settings
from src.core.logging import get_logger
from src.models.base import utcnow
from src.models.client import DEFAULT_RATEN_START, Client

logger = get_logger(__name__)

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"

SENDER_NAME = "Scuric Rechtsanwälte"
WELCOME_CASE_NUMBER_PLACEHOLDER = "Wird in Kürze vergeben"
PORTAL_CASE_NUMBER_PLACEHOLDER = "Pending"

SendMail = Callable[[Message], None]


class EmailDeliveryError(Exception):
    """Raised when an email could not be handed to its transport."""

    def __init__(self, channel: str, reason: str) -> None:
        self.channel = channel
        self.reason = reason
        super().__init__(f"{channel} delivery failed: {reason}")


class InvoiceData(CamelModel):
    """Optional invoice details attached to the welcome email."""

    invoice_number: str | None = None
    date: str | None = None
    amount: float | None = None
    due_date: str | None = None
    invoice_url: str | None = None
    file_name: str | None = None
    file_size: int | None = None
    mime_type: str | None = None


def generate_portal_url(client: Client) -> str:
    """Public URL of the client's portal page."""
    return f"{settings.client_portal_base_url.rstrip('/')}/portal/{client.id}"


def _german_date(value: date) -> str:
    return f"{value.day}.{value.month}.{value.year}"


class EmailService:
    """Renders and sends client emails.

    Args:
        http_client: Client used for the relay webhook; one is created from
            settings when omitted.
        send_mail: Callable delivering a finished MIME message; defaults to
            SMTP with the configured server.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        send_mail: SendMail | None = None,
    ) -> None:
        self.http_client = http_client or httpx.AsyncClient(
            timeout=settings.make_webhook_timeout
        )
        self.send_mail = send_mail or send_via_smtp
        self._jinja = Environment(
            loader=FileSystemLoader(str(TEMPLATE_DIR)),
            autoescape=select_autoescape(["html"]),
        )

    async def aclose(self) -> None:
        await self.http_client.aclose()

    # Welcome email

    def build_welcome_payload(
        self, client: Client, invoice: InvoiceData | None = None
    ) -> dict[str, Any]:
        """Relay payload: client block with defaults, portal and invoice links."""
        portal_url = generate_portal_url(client)
        client_block = {
            "id": client.id,
            "name": client.name or "",
            "email": client.email or "",
            "phone": client.phone or "",
            "honorar": client.honorar if client.honorar else "",
            "raten": client.raten,
            "ratenStart": client.raten_start or DEFAULT_RATEN_START,
            "caseNumber": client.case_number or WELCOME_CASE_NUMBER_PLACEHOLDER,
        }

        invoice_block = None
        invoice_url = None
        invoice_file = None
        if invoice is not None:
            invoice_block = {
                "invoiceNumber": invoice.invoice_number or "",
                "date": invoice.date or _german_date(utcnow().date()),
                "amount": invoice.amount or client.honorar or "",
                "dueDate": (invoice.due_date or "").strip(),
            }
            if invoice.invoice_url:
                invoice_url = invoice.invoice_url
                if invoice.file_name or invoice.file_size or invoice.mime_type:
                    invoice_file = {
                        "fileName": invoice.file_name or "Rechnung.pdf",
                        "fileSize": invoice.file_size or "",
                        "mimeType": invoice.mime_type or "application/pdf",
                    }
            else:
                invoice_url = portal_url

        return {
            "client": client_block,
            "portalUrl": portal_url,
            "invoice": invoice_block,
            "invoiceURL": invoice_url,
            "invoiceFile": invoice_file,
            "rawClient": {
                "id": client.id,
                "clickupId": client.clickup_id,
                "name": client.name,
                "email": client.email,
                "phone": client.phone,
                "honorar": client.honorar,
                "raten": client.raten,
                "ratenStart": client.raten_start,
                "caseNumber": client.case_number,
                "currentPhase": client.current_phase,
                "emailSent": client.email_sent,
            },
            "timestamp": utcnow().isoformat(),
        }

    def render_welcome(self, client: Client, invoice: InvoiceData | None = None) -> str:
        payload = self.build_welcome_payload(client, invoice)
        honorar = client.honorar
        honorar_display = f"{honorar:g}€" if honorar else "den vereinbarten Betrag"
        template = self._jinja.get_template("welcome_email.html")
        return template.render(
            client=payload["client"],
            invoice=payload["invoice"],
            portal_url=payload["portalUrl"],
            honorar_display=honorar_display,
        )

    async def send_welcome(
        self, client: Client, invoice: InvoiceData | None = None
    ) -> dict[str, Any]:
        """POST the welcome payload to the Make.com relay.

        Raises:
            EmailDeliveryError: Relay unreachable or answered with an error.
        """
        payload = self.build_welcome_payload(client, invoice)
        try:
            response = await self.http_client.post(
                settings.make_webhook_url,
                json=payload,
                headers={"Accept": "application/json"},
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error("welcome_email_failed", client_id=client.id, error=str(exc))
            raise EmailDeliveryError("relay", str(exc)) from exc

        try:
            relay_response: Any = response.json()
        except ValueError:
            relay_response = response.text

        logger.info(
            "welcome_email_sent",
            client_id=client.id,
            status_code=response.status_code,
        )
        return {"success": True, "sentTo": client.email, "makeResponse": relay_response}

    # Document request email

    def build_document_request(self, client: Client, document_type: str) -> MIMEMultipart:
        """Compose the SMTP message asking the client for `document_type`."""
        upload_url = generate_portal_url(client)
        html = self._jinja.get_template("document_request_email.html").render(
            client=client,
            document_type=document_type,
            upload_url=upload_url,
            year=utcnow().year,
        )
        text = (
            f"Sehr geehrte(r) {client.name},\n\n"
            f"für die weitere Bearbeitung Ihres Falles benötigen wir: {document_type}.\n"
            f"Bitte laden Sie die Dokumente hier hoch: {upload_url}\n"
        )

        msg = MIMEMultipart("alternative")
        msg["Subject"] = f"Bitte laden Sie Ihre {document_type} hoch"
        msg["From"] = formataddr((SENDER_NAME, settings.smtp_user or "noreply@localhost"))
        msg["To"] = client.email
        msg["Message-ID"] = make_msgid()
        msg.attach(MIMEText(text, "plain", "utf-8"))
        msg.attach(MIMEText(html, "html", "utf-8"))
        return msg

    async def send_document_request(self, client: Client, document_type: str) -> dict[str, Any]:
        """Send the document request over SMTP in a worker thread.

        Raises:
            EmailDeliveryError: SMTP connection or delivery failed.
        """
        msg = self.build_document_request(client, document_type)
        try:
            await asyncio.to_thread(self.send_mail, msg)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("document_request_failed", client_id=client.id, error=str(exc))
            raise EmailDeliveryError("smtp", str(exc)) from exc

        logger.info(
            "document_request_sent",
            client_id=client.id,
            document_type=document_type,
        )
        return {
            "success": True,
            "messageId": msg["Message-ID"],
            "uploadLink": generate_portal_url(client),
        }


def send_via_smtp(msg: Message) -> None:
    """Deliver `msg` through the configured SMTP server (blocking)."""
    if settings.smtp_secure:
        server: smtplib.SMTP = smtplib.SMTP_SSL(settings.smtp_host, settings.smtp_port)
    else:
        server = smtplib.SMTP(settings.smtp_host, settings.smtp_port)
    with server:
        if not settings.smtp_secure:
            server.ehlo()
            if server.has_extn("starttls"):
                server.starttls()
                server.ehlo()
        if settings.smtp_user:
            server.login(settings.smtp_user, settings.smtp_password or "")
        server.send_message(msg)
