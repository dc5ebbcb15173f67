"""Tests for welcome and document request emails."""

import json
import smtplib
from email.message import Message

import httpx
import pytest

from src.core.config import settings
from src.integrations.email import (
    EmailDeliveryError,
    EmailService,
    InvoiceData,
    generate_portal_url,
)
from src.models.client import Client


def _client(**overrides) -> Client:
    values = {
        "id": 42,
        "clickup_id": "cu-42",
        "name": "Erika Musterfrau",
        "email": "erika@example.com",
        "phone": "+49301234567",
        "honorar": 1800.0,
        "raten": 6,
        "raten_start": "01.03.2025",
        "case_number": "",
        "current_phase": 2,
        "email_sent": False,
    }
    values.update(overrides)
    return Client(**values)


def test_portal_url_uses_configured_base() -> None:
    assert generate_portal_url(_client()) == f"{settings.client_portal_base_url}/portal/42"


def test_welcome_payload_fills_defaults(email_service: EmailService) -> None:
    payload = email_service.build_welcome_payload(_client(raten_start=""))

    assert payload["client"]["caseNumber"] == "Wird in Kürze vergeben"
    assert payload["client"]["ratenStart"] == "01.01.2025"
    assert payload["client"]["raten"] == 6
    assert payload["portalUrl"].endswith("/portal/42")
    assert payload["invoice"] is None
    assert payload["invoiceURL"] is None
    assert payload["rawClient"]["clickupId"] == "cu-42"


def test_welcome_payload_with_invoice_without_upload_links_portal(
    email_service: EmailService,
) -> None:
    invoice = InvoiceData(invoice_number="R-2025-001", due_date=" 15.03.2025 ")

    payload = email_service.build_welcome_payload(_client(), invoice)

    assert payload["invoice"]["invoiceNumber"] == "R-2025-001"
    assert payload["invoice"]["amount"] == 1800.0
    assert payload["invoice"]["dueDate"] == "15.03.2025"
    assert payload["invoiceURL"] == payload["portalUrl"]
    assert payload["invoiceFile"] is None


def test_welcome_payload_with_uploaded_invoice(email_service: EmailService) -> None:
    invoice = InvoiceData(invoice_url="https://files.test/r1.pdf", file_name="r1.pdf")

    payload = email_service.build_welcome_payload(_client(), invoice)

    assert payload["invoiceURL"] == "https://files.test/r1.pdf"
    assert payload["invoiceFile"] == {
        "fileName": "r1.pdf",
        "fileSize": "",
        "mimeType": "application/pdf",
    }


def test_render_welcome_contains_terms_and_link(email_service: EmailService) -> None:
    html = email_service.render_welcome(_client(case_number="AZ-7"))

    assert "Erika Musterfrau" in html
    assert "1800€" in html
    assert "6 Raten" in html
    assert "AZ-7" in html
    assert "/portal/42" in html
    assert "Rechnungsinformationen" not in html


def test_render_welcome_escapes_client_name(email_service: EmailService) -> None:
    html = email_service.render_welcome(_client(name="<script>x</script>"))

    assert "<script>x</script>" not in html


@pytest.mark.asyncio
async def test_send_welcome_posts_payload_to_relay(
    email_service: EmailService, relay
) -> None:
    relay.body = {"accepted": True}

    result = await email_service.send_welcome(_client())

    assert result == {
        "success": True,
        "sentTo": "erika@example.com",
        "makeResponse": {"accepted": True},
    }
    request = relay.requests[0]
    assert str(request.url) == settings.make_webhook_url
    body = json.loads(request.content)
    assert body["client"]["email"] == "erika@example.com"


@pytest.mark.asyncio
async def test_send_welcome_accepts_plain_text_reply(
    email_service: EmailService, relay
) -> None:
    relay.body = "Accepted"

    result = await email_service.send_welcome(_client())

    assert result["makeResponse"] == "Accepted"


@pytest.mark.asyncio
async def test_send_welcome_relay_failure_raises(
    email_service: EmailService, relay
) -> None:
    relay.status_code = 500

    with pytest.raises(EmailDeliveryError) as exc_info:
        await email_service.send_welcome(_client())

    assert exc_info.value.channel == "relay"


@pytest.mark.asyncio
async def test_send_welcome_unreachable_relay_raises(
    email_service: EmailService, relay
) -> None:
    relay.error = httpx.ConnectError("refused")

    with pytest.raises(EmailDeliveryError):
        await email_service.send_welcome(_client())


@pytest.mark.asyncio
async def test_document_request_sent_over_smtp(
    email_service: EmailService, sent_mail: list[Message]
) -> None:
    result = await email_service.send_document_request(_client(), "Gläubigerschreiben")

    assert result["success"] is True
    assert result["uploadLink"].endswith("/portal/42")
    message = sent_mail[0]
    assert message["To"] == "erika@example.com"
    assert "Gläubigerschreiben" in str(message["Subject"])
    html_part = message.get_payload()[1].get_payload(decode=True).decode("utf-8")
    assert "Gläubigerschreiben" in html_part


@pytest.mark.asyncio
async def test_document_request_smtp_failure_raises() -> None:
    def failing_sender(message: Message) -> None:
        raise smtplib.SMTPServerDisconnected("connection lost")

    service = EmailService(
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200))),
        send_mail=failing_sender,
    )
    try:
        with pytest.raises(EmailDeliveryError) as exc_info:
            await service.send_document_request(_client(), "Kontoauszüge")
    finally:
        await service.aclose()

    assert exc_info.value.channel == "smtp"
