from unittest.mock import MagicMock, patch

import requests
from django.core.mail import EmailMultiAlternatives
from django.test import TestCase, override_settings
from rest_framework import exceptions, status
from rest_framework.test import APITestCase

from project.exceptions import api_exception_handler
from project.mail import BrevoEmailBackend


class NotFoundHandlerTests(APITestCase):
    def test_unknown_route_returns_json_envelope(self):
        response = self.client.get("/api/v1/does-not-exist")

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(
            response.json(),
            {
                "status": "fail",
                "message": "Can't find /api/v1/does-not-exist on this server!",
            },
        )


class HealthCheckTests(APITestCase):
    def test_health_check_reports_dependencies(self):
        response = self.client.get("/health/")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["status"], "healthy")
        self.assertEqual(response.data["checks"], {"database": "ok", "cache": "ok"})


class ExceptionHandlerTests(TestCase):
    def test_validation_error_keeps_field_errors(self):
        exc = exceptions.ValidationError({"email": ["Enter a valid email address."]})

        response = api_exception_handler(exc, {})

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["status"], "fail")
        self.assertEqual(response.data["message"], "Enter a valid email address.")
        self.assertEqual(response.data["errors"], {"email": ["Enter a valid email address."]})

    def test_not_authenticated_message(self):
        response = api_exception_handler(exceptions.NotAuthenticated(), {})

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(
            response.data["message"], "You are not logged in! Please log in to access."
        )

    def test_unexpected_error_is_hidden(self):
        with self.assertLogs("project.exceptions", level="ERROR"):
            response = api_exception_handler(RuntimeError("db password leaked"), {})

        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(
            response.data, {"status": "error", "message": "Something went very wrong!"}
        )


@override_settings(
    BREVO_API_KEY="test-key",
    BREVO_API_URL="https://brevo.test/v3/smtp/email",
    DEFAULT_FROM_EMAIL="PhotoFlow <no-reply@photoflow.app>",
)
class BrevoEmailBackendTests(TestCase):
    def _message(self):
        message = EmailMultiAlternatives(
            subject="OTP for Email Verification",
            body="Your code is 123456",
            to=["alice@example.com"],
        )
        message.attach_alternative("<p>123456</p>", "text/html")
        return message

    @patch("project.mail.requests.post")
    def test_posts_message_to_api(self, mock_post):
        mock_post.return_value = MagicMock(status_code=201)

        sent = BrevoEmailBackend().send_messages([self._message()])

        self.assertEqual(sent, 1)
        args, kwargs = mock_post.call_args
        self.assertEqual(args[0], "https://brevo.test/v3/smtp/email")
        self.assertEqual(kwargs["headers"]["api-key"], "test-key")
        self.assertEqual(
            kwargs["json"],
            {
                "sender": {"name": "PhotoFlow", "email": "no-reply@photoflow.app"},
                "to": [{"email": "alice@example.com"}],
                "subject": "OTP for Email Verification",
                "textContent": "Your code is 123456",
                "htmlContent": "<p>123456</p>",
            },
        )

    @patch("project.mail.requests.post")
    def test_api_error_is_raised(self, mock_post):
        mock_post.return_value.raise_for_status.side_effect = requests.HTTPError("400")

        with self.assertRaises(requests.HTTPError):
            BrevoEmailBackend().send_messages([self._message()])

    @patch("project.mail.requests.post")
    def test_api_error_can_be_silenced(self, mock_post):
        mock_post.side_effect = requests.ConnectionError("unreachable")

        sent = BrevoEmailBackend(fail_silently=True).send_messages([self._message()])

        self.assertEqual(sent, 0)
