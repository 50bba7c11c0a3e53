"""
Tests for EmailGatewayClient.

Tests verify the client's contract with calling code.
Focus on observable behavior, not implementation details.
"""

import hashlib
import hmac
import json

import pytest
import responses

from clients.email_client import EmailGatewayClient, EmailGatewayError


class TestEmailGatewayClientInit:
    """Test client initialization - fail-fast on invalid config."""

    def test_init_with_valid_credentials(self):
        """Client initializes with all required credentials."""
        client = EmailGatewayClient(
            gateway_url="https://gateway.example.com/send",
            api_key="test-api-key",
            hmac_secret="test-hmac-secret",
        )
        assert client is not None

    def test_init_rejects_empty_gateway_url(self):
        """Empty gateway_url raises ValueError."""
        with pytest.raises(ValueError, match="gateway_url"):
            EmailGatewayClient(
                gateway_url="",
                api_key="test-api-key",
                hmac_secret="test-hmac-secret",
            )

    def test_init_rejects_empty_api_key(self):
        """Empty api_key raises ValueError."""
        with pytest.raises(ValueError, match="api_key"):
            EmailGatewayClient(
                gateway_url="https://gateway.example.com/send",
                api_key="",
                hmac_secret="test-hmac-secret",
            )

    def test_init_rejects_empty_hmac_secret(self):
        """Empty hmac_secret raises ValueError."""
        with pytest.raises(ValueError, match="hmac_secret"):
            EmailGatewayClient(
                gateway_url="https://gateway.example.com/send",
                api_key="test-api-key",
                hmac_secret="",
            )


class TestSendEmail:
    """Test send_email - uses responses library for HTTP mocking."""

    GATEWAY_URL = "https://gateway.example.com/send"

    @pytest.fixture
    def client(self):
        """Create client with test credentials."""
        return EmailGatewayClient(
            gateway_url=self.GATEWAY_URL,
            api_key="test-api-key",
            hmac_secret="test-hmac-secret",
            default_sender="donations@example.org",
        )

    @responses.activate
    def test_successful_send_returns_none(self, client):
        """Successful gateway response completes without exception."""
        responses.add(responses.POST, self.GATEWAY_URL, json={"success": True}, status=200)

        result = client.send_email(
            to="user@example.com",
            sender="",
            subject="Thank you",
            body="<p>Thanks</p>",
            is_html=True,
        )
        assert result is None

    @responses.activate
    def test_payload_and_signature(self, client):
        """Request body is signed with HMAC-SHA256 and carries the default sender."""
        responses.add(responses.POST, self.GATEWAY_URL, json={"success": True}, status=200)

        client.send_email(to="user@example.com", sender="", subject="Hi", body="Body")

        request = responses.calls[0].request
        body = request.body if isinstance(request.body, bytes) else request.body.encode("utf-8")
        payload = json.loads(body)
        assert payload["email"] == "user@example.com"
        assert payload["from"] == "donations@example.org"
        assert payload["is_html"] is False
        assert request.headers["X-API-Key"] == "test-api-key"

        expected = hmac.new(b"test-hmac-secret", body, hashlib.sha256).hexdigest()
        assert request.headers["X-Signature"] == expected

    @responses.activate
    def test_explicit_sender_wins(self, client):
        responses.add(responses.POST, self.GATEWAY_URL, json={"success": True}, status=200)

        client.send_email(to="user@example.com", sender="events@example.org", subject="Hi", body="Body")

        assert json.loads(responses.calls[0].request.body)["from"] == "events@example.org"

    def test_invalid_recipient_raises_before_http(self, client):
        """Malformed recipient fails without contacting the gateway."""
        with pytest.raises(EmailGatewayError, match="Invalid recipient"):
            client.send_email(to="not-an-email", sender="", subject="Hi", body="Body")

    @responses.activate
    def test_gateway_500_raises_error(self, client):
        """Server error from gateway raises EmailGatewayError."""
        responses.add(
            responses.POST,
            self.GATEWAY_URL,
            json={"success": False, "message": "Internal error"},
            status=500,
        )

        with pytest.raises(EmailGatewayError, match="Internal error"):
            client.send_email(to="user@example.com", sender="", subject="Hi", body="Body")

    @responses.activate
    def test_gateway_success_false_raises_error(self, client):
        """Gateway returns 200 but success=false raises EmailGatewayError."""
        responses.add(
            responses.POST,
            self.GATEWAY_URL,
            json={"success": False, "message": "Mailbox full"},
            status=200,
        )

        with pytest.raises(EmailGatewayError, match="Mailbox full"):
            client.send_email(to="user@example.com", sender="", subject="Hi", body="Body")

    @responses.activate
    def test_connection_failure_raises_error(self, client):
        """Network failure raises EmailGatewayError."""
        responses.add(
            responses.POST,
            self.GATEWAY_URL,
            body=ConnectionError("Network unreachable"),
        )

        with pytest.raises(EmailGatewayError, match="Connection failed"):
            client.send_email(to="user@example.com", sender="", subject="Hi", body="Body")

    @responses.activate
    def test_invalid_json_response_raises_error(self, client):
        """Non-JSON response raises EmailGatewayError."""
        responses.add(responses.POST, self.GATEWAY_URL, body="not json", status=200)

        with pytest.raises(EmailGatewayError):
            client.send_email(to="user@example.com", sender="", subject="Hi", body="Body")


class TestIsValidEmail:

    @pytest.fixture
    def client(self):
        return EmailGatewayClient("https://gateway.example.com/send", "k", "s")

    @pytest.mark.parametrize("address", ["a@example.com", " a.b@sub.example.org "])
    def test_valid(self, client, address):
        assert client.is_valid_email(address)

    @pytest.mark.parametrize("address", ["", "a@b", "a b@example.com", "@example.com"])
    def test_invalid(self, client, address):
        assert not client.is_valid_email(address)
