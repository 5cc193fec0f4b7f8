from smtplib import SMTPException
from unittest.mock import patch

from django.contrib.auth.models import User
from django.core import mail
from django.core.cache import cache
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from accounts.models import EmailOTP
from accounts.utils import generate_access_token

PASSWORD = "Sup3r-Secret-pass"
NEW_PASSWORD = "An0ther-Secret-pass"


def signup_payload(username="alice", email="alice@example.com", password=PASSWORD):
    return {
        "username": username,
        "email": email,
        "password": password,
        "passwordConfirm": password,
    }


class SignupAndVerifyTests(APITestCase):
    def setUp(self):
        cache.clear()

    @patch("accounts.services.generate_otp_code", return_value="123456")
    def test_signup_then_verify(self, _mock_otp):
        response = self.client.post(reverse("signup"), signup_payload(), format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["status"], "success")
        self.assertEqual(
            response.data["message"],
            "Registration successful. Check your email for OTP verification.",
        )
        self.assertIn("token", response.data)
        self.assertIn("token", response.cookies)
        self.assertTrue(response.cookies["token"]["httponly"])

        user_data = response.data["data"]["user"]
        self.assertEqual(user_data["username"], "alice")
        self.assertFalse(user_data["is_verified"])
        self.assertNotIn("password", user_data)
        self.assertNotIn("otp", user_data)

        # The signup cookie authenticates the verify request
        response = self.client.post(reverse("verify_account"), {"otp": "123456"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["message"], "Email has been verified.")
        self.assertTrue(response.data["data"]["user"]["is_verified"])
        self.assertFalse(EmailOTP.objects.exists())

    def test_duplicate_email_returns_conflict(self):
        self.client.post(reverse("signup"), signup_payload(), format="json")

        response = self.client.post(
            reverse("signup"),
            signup_payload(username="alice2", email="ALICE@example.com"),
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data["status"], "fail")
        self.assertEqual(response.data["message"], "Email already registered")
        self.assertEqual(User.objects.count(), 1)

    def test_password_confirmation_mismatch(self):
        payload = signup_payload()
        payload["passwordConfirm"] = "different-pass-123"

        response = self.client.post(reverse("signup"), payload, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["message"], "Passwords are not the same!")
        self.assertIn("passwordConfirm", response.data["errors"])
        self.assertFalse(User.objects.exists())

    def test_invalid_email_is_rejected(self):
        response = self.client.post(
            reverse("signup"), signup_payload(email="not-an-email"), format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("email", response.data["errors"])

    @patch("accounts.emails.send_mail", side_effect=SMTPException("down"))
    def test_signup_email_failure_returns_server_error(self, _mock_send):
        response = self.client.post(reverse("signup"), signup_payload(), format="json")

        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(response.data["status"], "error")
        self.assertFalse(User.objects.exists())

    def test_verify_requires_authentication(self):
        response = self.client.post(reverse("verify_account"), {"otp": "123456"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(
            response.data["message"], "You are not logged in! Please log in to access."
        )

    def test_verify_with_wrong_otp(self):
        self.client.post(reverse("signup"), signup_payload(), format="json")

        response = self.client.post(reverse("verify_account"), {"otp": "000000"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["message"], "Invalid OTP")

    def test_resend_otp(self):
        self.client.post(reverse("signup"), signup_payload(), format="json")

        response = self.client.post(reverse("resend_otp"))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["message"], "A new OTP has been sent to your email.")
        self.assertEqual(len(mail.outbox), 2)


class LoginLogoutTests(APITestCase):
    def setUp(self):
        cache.clear()
        self.user = User.objects.create_user(
            username="alice", email="alice@example.com", password=PASSWORD
        )

    def test_login_sets_cookie_and_returns_token(self):
        response = self.client.post(
            reverse("login"),
            {"email": "alice@example.com", "password": PASSWORD},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["message"], "Login Successful")
        self.assertEqual(response.cookies["token"].value, response.data["token"])
        self.assertEqual(response.data["data"]["user"]["id"], self.user.id)

    def test_login_failures_are_indistinguishable(self):
        unknown = self.client.post(
            reverse("login"),
            {"email": "nobody@example.com", "password": PASSWORD},
            format="json",
        )
        wrong = self.client.post(
            reverse("login"),
            {"email": "alice@example.com", "password": "wrong-password"},
            format="json",
        )

        self.assertEqual(unknown.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(wrong.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(unknown.data, wrong.data)
        self.assertEqual(unknown.data["message"], "Incorrect email or password")

    def test_logout_clears_cookie(self):
        self.client.post(
            reverse("login"),
            {"email": "alice@example.com", "password": PASSWORD},
            format="json",
        )

        response = self.client.post(reverse("logout"))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["message"], "Logged out successfully.")
        self.assertEqual(response.cookies["token"].value, "")
        self.assertEqual(response.cookies["token"]["max-age"], 0)

        # Browser-style client no longer has a usable cookie
        response = self.client.get(reverse("get_current_user"))
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_logout_without_session(self):
        response = self.client.post(reverse("logout"))

        self.assertEqual(response.status_code, status.HTTP_200_OK)


class PasswordFlowTests(APITestCase):
    def setUp(self):
        cache.clear()
        self.user = User.objects.create_user(
            username="alice", email="alice@example.com", password=PASSWORD
        )

    @patch("accounts.services.generate_otp_code", return_value="123456")
    def test_forgot_then_reset_password(self, _mock_otp):
        response = self.client.post(
            reverse("forget_password"), {"email": "alice@example.com"}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["message"], "Password Reset OTP sent to your email")

        response = self.client.post(
            reverse("reset_password"),
            {
                "email": "alice@example.com",
                "otp": "123456",
                "password": NEW_PASSWORD,
                "passwordConfirm": NEW_PASSWORD,
            },
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["message"], "Password Reset Successful")
        self.assertIn("token", response.cookies)
        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password(NEW_PASSWORD))

    def test_forgot_password_unknown_email(self):
        response = self.client.post(
            reverse("forget_password"), {"email": "nobody@example.com"}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data["message"], "No user found with that email")

    def test_reset_password_with_bad_otp(self):
        response = self.client.post(
            reverse("reset_password"),
            {
                "email": "alice@example.com",
                "otp": "123456",
                "password": NEW_PASSWORD,
                "passwordConfirm": NEW_PASSWORD,
            },
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(
            response.data["message"], "Invalid or expired password reset OTP"
        )

    def test_change_password(self):
        self.client.credentials(
            HTTP_AUTHORIZATION=f"Bearer {generate_access_token(self.user)}"
        )

        response = self.client.post(
            reverse("change_password"),
            {
                "currentPassword": PASSWORD,
                "newPassword": NEW_PASSWORD,
                "newPasswordConfirm": NEW_PASSWORD,
            },
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["message"], "Password changed successfully")
        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password(NEW_PASSWORD))

    def test_change_password_with_wrong_current_password(self):
        self.client.force_authenticate(user=self.user)

        response = self.client.post(
            reverse("change_password"),
            {
                "currentPassword": "wrong-password",
                "newPassword": NEW_PASSWORD,
                "newPasswordConfirm": NEW_PASSWORD,
            },
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["message"], "Incorrect current password")
