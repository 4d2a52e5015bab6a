from __future__ import annotations

import pytest
from datetime import datetime
from unittest.mock import Mock

from app.shared.services.email_service import EmailService, EmailTemplateEngine, TEMPLATE_SUBJECTS
from app.shared.clients.email_client import EmailClient, EmailDeliveryError


@pytest.fixture
def template_engine():
    """Create EmailTemplateEngine instance for testing"""
    return EmailTemplateEngine()


@pytest.fixture
def recording_client():
    client = Mock(spec=EmailClient)
    client.send = Mock(return_value={"ok": True, "provider": "mock", "message_id": "m-1"})
    return client


@pytest.fixture
def email_service(recording_client, template_engine):
    return EmailService(client=recording_client, template_engine=template_engine)


@pytest.fixture
def blood_request_vars():
    return {
        "donor_name": "Asha Patil",
        "blood_type": "O-",
        "patient_name": "R. Kulkarni",
        "location": "Pune",
        "accept_link": "http://localhost:3000/respond?requestId=r1&donorId=d1",
    }


class TestEmailTemplateEngine:
    """Test EmailTemplateEngine functionality"""

    def test_template_engine_initialization(self, template_engine):
        assert template_engine.env is not None
        assert 'datetime' in template_engine.env.filters
        assert template_engine.templates_path.name == "templates"

    def test_datetime_filter(self, template_engine):
        dt = datetime(2024, 1, 15, 14, 30, 0)
        assert template_engine._datetime_filter(dt) == "2024-01-15 14:30"
        assert template_engine._datetime_filter(dt, '%d/%m/%Y') == "15/01/2024"
        assert template_engine._datetime_filter("not a date") == "not a date"

    def test_blood_request_template_renders(self, template_engine, blood_request_vars):
        html = template_engine.render_template(
            "email/blood_request.html", {**blood_request_vars, "platform_name": "BloodLink", "year": 2024}
        )

        assert "Asha Patil" in html
        assert "O-" in html
        assert "R. Kulkarni" in html
        assert "requestId=r1&amp;donorId=d1" in html

    def test_patient_name_is_optional(self, template_engine, blood_request_vars):
        blood_request_vars.pop("patient_name")
        html = template_engine.render_template("email/blood_request.html", blood_request_vars)
        assert "Patient Name" not in html

    def test_template_exists(self, template_engine):
        assert template_engine.template_exists("email/blood_request.html")
        assert template_engine.template_exists("email/otp_verification.html")
        assert not template_engine.template_exists("email/nonexistent.html")


class TestEmailService:
    """Test EmailService functionality"""

    @pytest.mark.asyncio
    async def test_send_blood_request(self, email_service, recording_client, blood_request_vars):
        result = await email_service.send("asha@example.com", "blood_request", blood_request_vars)

        assert result["ok"] is True
        args, kwargs = recording_client.send.call_args
        to, subject, html = args
        assert to == "asha@example.com"
        assert subject == "Blood Request: O- Needed"
        assert "Accept Request" in html
        assert "<" not in kwargs["text"]
        assert kwargs["meta"]["template"] == "blood_request"

    @pytest.mark.asyncio
    async def test_send_otp(self, email_service, recording_client):
        await email_service.send("new@example.com", "otp_verification", {"name": "Ravi", "otp": "482913", "expires_minutes": 10})

        args, _ = recording_client.send.call_args
        assert "482913" in args[2]

    @pytest.mark.asyncio
    async def test_dev_provider_accepts_without_network(self, template_engine, blood_request_vars):
        service = EmailService(client=EmailClient(provider="dev"), template_engine=template_engine)
        result = await service.send("asha@example.com", "blood_request", blood_request_vars)
        assert result["provider"] == "dev"
        assert result["message_id"].startswith("dev-")

    @pytest.mark.asyncio
    async def test_unknown_template_raises(self, email_service, recording_client):
        with pytest.raises(EmailDeliveryError):
            await email_service.send("asha@example.com", "newsletter", {})
        recording_client.send.assert_not_called()

    @pytest.mark.asyncio
    async def test_empty_recipient_raises(self, email_service):
        with pytest.raises(EmailDeliveryError):
            await email_service.send("", "blood_request", {})

    @pytest.mark.asyncio
    async def test_rejected_delivery_raises(self, email_service, recording_client, blood_request_vars):
        recording_client.send.return_value = {"ok": False, "error": "mailbox full"}
        with pytest.raises(EmailDeliveryError, match="mailbox full"):
            await email_service.send("asha@example.com", "blood_request", blood_request_vars)

    @pytest.mark.asyncio
    async def test_client_error_propagates(self, email_service, recording_client, blood_request_vars):
        recording_client.send.side_effect = EmailDeliveryError("SMTP host is not configured")
        with pytest.raises(EmailDeliveryError):
            await email_service.send("asha@example.com", "blood_request", blood_request_vars)

    def test_html_to_text(self, email_service):
        html = "<html><head><style>p {}</style></head><body><p>Hello&nbsp;<b>World</b></p></body></html>"
        assert email_service._html_to_text(html) == "Hello World"

    def test_get_available_templates(self, email_service):
        assert sorted(email_service.get_available_templates()) == sorted(TEMPLATE_SUBJECTS)


class TestEmailClient:
    def test_unknown_provider_raises(self):
        with pytest.raises(EmailDeliveryError):
            EmailClient(provider="carrier-pigeon").send("a@example.com", "s", "<p>x</p>")

    def test_smtp_without_host_raises(self, monkeypatch):
        from app.core.config import settings
        monkeypatch.setattr(settings, "smtp_host", None)
        with pytest.raises(EmailDeliveryError):
            EmailClient(provider="smtp").send("a@example.com", "s", "<p>x</p>")

    def test_message_has_both_parts(self):
        msg = EmailClient(provider="dev")._build_message("a@example.com", "Subject", "<p>x</p>", "x")
        assert msg["To"] == "a@example.com"
        assert [part.get_content_type() for part in msg.get_payload()] == ["text/plain", "text/html"]
