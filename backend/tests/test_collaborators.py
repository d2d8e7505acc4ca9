"""Generator client error mapping, mailer selection and the invitation map."""

import smtplib
from types import SimpleNamespace

import ollama
import pytest

from rfpflow.errors import CompletionError, MailDeliveryError, UpstreamQuotaError
from rfpflow.models.rfp import RFP, InvitationStatus
from rfpflow.services import completion_client
from rfpflow.services.completion_client import OllamaCompletionClient, get_completion_client
from rfpflow.services.contact_checks import verify_email, verify_phone
from rfpflow.services.mail_service import LogOnlyMailer, OutgoingMessage, SmtpMailer, get_mailer, mailer_kind


class StubOllama:
    def __init__(self, outcome):
        self.outcome = outcome
        self.kwargs = None

    def chat(self, **kwargs):
        self.kwargs = kwargs
        if isinstance(self.outcome, BaseException):
            raise self.outcome
        return self.outcome


def client_with(monkeypatch, outcome):
    stub = StubOllama(outcome)
    monkeypatch.setattr(completion_client.ollama, "Client", lambda **kw: stub)
    return OllamaCompletionClient(host="http://ollama.test", model="llama3"), stub


class TestOllamaClient:
    def test_structured_requests_json_format(self, monkeypatch):
        client, stub = client_with(monkeypatch, {"message": {"content": '{"a": 1}'}})
        assert client.generate("p", structured=True) == '{"a": 1}'
        assert stub.kwargs["format"] == "json"
        assert stub.kwargs["messages"] == [{"role": "user", "content": "p"}]

    def test_free_text_has_no_format(self, monkeypatch):
        client, stub = client_with(monkeypatch, SimpleNamespace(message=SimpleNamespace(content="Hello")))
        assert client.generate("p") == "Hello"
        assert "format" not in stub.kwargs

    def test_rate_limit_maps_to_quota_error(self, monkeypatch):
        client, _ = client_with(monkeypatch, ollama.ResponseError("too many requests", 429))
        with pytest.raises(UpstreamQuotaError):
            client.generate("p")

    def test_other_response_error(self, monkeypatch):
        client, _ = client_with(monkeypatch, ollama.ResponseError("model not found", 404))
        with pytest.raises(CompletionError):
            client.generate("p")

    def test_unreachable(self, monkeypatch):
        client, _ = client_with(monkeypatch, ConnectionError("refused"))
        with pytest.raises(CompletionError):
            client.generate("p")

    def test_factory_reads_environment(self, monkeypatch):
        captured = {}
        monkeypatch.setattr(completion_client.ollama, "Client", lambda **kw: captured.update(kw))
        monkeypatch.setenv("OLLAMA_BASE_URL", "http://gpu-box:11434")
        monkeypatch.setenv("OLLAMA_MODEL", "mistral")
        monkeypatch.setenv("OLLAMA_TIMEOUT_SEC", "30")
        client = get_completion_client()
        assert client.model == "mistral"
        assert captured == {"host": "http://gpu-box:11434", "timeout": 30.0}


class StubSMTP:
    """Stands in for smtplib.SMTP; calling the instance opens a connection."""

    def __init__(self, extensions):
        self.extensions = extensions
        self.calls = []
        self.sent = []

    def __call__(self, host, port, timeout=None):
        return self

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def ehlo(self):
        self.calls.append("ehlo")

    def has_extn(self, name):
        return name.lower() in self.extensions

    def starttls(self):
        self.calls.append("starttls")

    def login(self, user, password):
        self.calls.append("login")

    def send_message(self, message):
        self.calls.append("send_message")
        self.sent.append(message)


class TestMailer:
    def test_log_only_without_smtp_host(self, monkeypatch):
        monkeypatch.delenv("SMTP_HOST", raising=False)
        assert isinstance(get_mailer(), LogOnlyMailer)
        assert mailer_kind() == "log-only"
        get_mailer().send(OutgoingMessage(to="a@example.com", subject="s", body="b"))

    def test_smtp_when_configured(self, monkeypatch):
        monkeypatch.setenv("SMTP_HOST", "smtp.example.com")
        monkeypatch.setenv("SMTP_PORT", "2525")
        monkeypatch.setenv("FROM_EMAIL", "procurement@example.com")
        mailer = get_mailer()
        assert isinstance(mailer, SmtpMailer)
        assert (mailer.host, mailer.port, mailer.sender) == ("smtp.example.com", 2525, "procurement@example.com")
        assert mailer_kind() == "smtp"

    def test_smtp_failure_is_mail_delivery_error(self, monkeypatch):
        def refuse(*args, **kwargs):
            raise smtplib.SMTPConnectError(421, "unavailable")

        monkeypatch.setattr(smtplib, "SMTP", refuse)
        with pytest.raises(MailDeliveryError):
            SmtpMailer("smtp.example.com").send(OutgoingMessage(to="a@example.com", subject="s", body="b"))

    def test_plain_relay_without_starttls(self, monkeypatch):
        server = StubSMTP(extensions={"8bitmime"})
        monkeypatch.setattr(smtplib, "SMTP", server)
        SmtpMailer("relay.internal", port=25).send(OutgoingMessage(to="v@example.com", subject="s", body="b"))
        assert "starttls" not in server.calls
        (sent,) = server.sent
        assert sent["To"] == "v@example.com"

    def test_upgrades_to_tls_when_offered(self, monkeypatch):
        server = StubSMTP(extensions={"starttls", "auth"})
        monkeypatch.setattr(smtplib, "SMTP", server)
        SmtpMailer("smtp.example.com", username="bot", password="pw").send(
            OutgoingMessage(to="v@example.com", subject="s", body="b")
        )
        assert server.calls == ["ehlo", "starttls", "ehlo", "login", "send_message"]


class TestInvitationMap:
    def test_absent_vendor_is_draft(self):
        assert RFP(title="t", description_nlp="d").invitation_status(1) == InvitationStatus.DRAFT

    def test_one_entry_per_vendor(self):
        rfp = RFP(title="t", description_nlp="d")
        rfp.upsert_invitation(3, InvitationStatus.SENT)
        rfp.upsert_invitation(3, InvitationStatus.RESPONDED)
        assert list(rfp.invitations) == [3]
        assert rfp.invitation_status(3) == InvitationStatus.RESPONDED

    def test_draft_cannot_be_stored(self):
        with pytest.raises(ValueError):
            RFP(title="t", description_nlp="d").upsert_invitation(1, InvitationStatus.DRAFT)


class TestContactChecks:
    @pytest.mark.parametrize("email,ok", [("a@b.example", True), ("nope", False), ("a@b", False)])
    def test_email(self, email, ok):
        assert verify_email(email) is ok

    @pytest.mark.parametrize("phone,ok", [("+1 555 0100", True), ("(555) 010-0100", True), ("call me", False)])
    def test_phone(self, phone, ok):
        assert verify_phone(phone) is ok
