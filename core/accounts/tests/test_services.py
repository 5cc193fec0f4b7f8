from datetime import timedelta
from smtplib import SMTPException
from unittest.mock import patch

from django.contrib.auth.models import User
from django.core import mail
from django.core.cache import cache
from django.db import IntegrityError, transaction
from django.test import TestCase
from django.utils import timezone

from accounts.errors import ErrorKind
from accounts.models import EmailOTP
from accounts.services import AccountService
from accounts.utils import decode_token, hash_otp

PASSWORD = "Sup3r-Secret-pass"
NEW_PASSWORD = "An0ther-Secret-pass"


class SignupServiceTests(TestCase):
    def setUp(self):
        cache.clear()

    @patch("accounts.services.generate_otp_code", return_value="123456")
    def test_signup_creates_unverified_user_with_hashed_otp(self, _mock_otp):
        user, token = AccountService.signup("alice", "Alice@Example.com", PASSWORD)

        self.assertIsNotNone(user)
        self.assertEqual(user.email, "alice@example.com")
        self.assertFalse(user.profile.is_verified)
        self.assertEqual(decode_token(token)["user_id"], user.id)

        otp = EmailOTP.objects.get(user=user, purpose=EmailOTP.Purpose.VERIFY)
        self.assertNotEqual(otp.otp, "123456")
        self.assertEqual(otp.otp, hash_otp(user.email, "123456"))

        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].subject, "OTP for Email Verification")
        self.assertIn("123456", mail.outbox[0].body)

    def test_duplicate_email_is_a_conflict(self):
        AccountService.signup("alice", "alice@example.com", PASSWORD)

        user, error = AccountService.signup("alice2", "ALICE@example.com", PASSWORD)

        self.assertIsNone(user)
        self.assertEqual(error.kind, ErrorKind.CONFLICT)
        self.assertEqual(error.status_code, 409)
        self.assertEqual(User.objects.count(), 1)

    def test_duplicate_username_is_a_conflict(self):
        AccountService.signup("alice", "alice@example.com", PASSWORD)

        user, error = AccountService.signup("Alice", "other@example.com", PASSWORD)

        self.assertIsNone(user)
        self.assertEqual(error.message, "Username already taken")

    def test_interleaved_signups_with_same_email_create_one_account(self):
        create_account = AccountService._create_account
        racing = []

        def other_signup_lands_first(username, email, password):
            # Runs after the email check of the first signup, before its insert
            if not racing:
                racing.append(None)
                racing[0] = AccountService.signup("bob", "shared@example.com", PASSWORD)
            return create_account(username, email, password)

        with patch.object(
            AccountService, "_create_account", side_effect=other_signup_lands_first
        ):
            user, error = AccountService.signup("alice", "Shared@example.com", PASSWORD)

        bob, _ = racing[0]
        self.assertEqual(bob.username, "bob")
        self.assertIsNone(user)
        self.assertEqual(error.kind, ErrorKind.CONFLICT)
        self.assertEqual(error.message, "Email already registered")
        self.assertEqual(User.objects.filter(email__iexact="shared@example.com").count(), 1)
        self.assertFalse(User.objects.filter(username="alice").exists())

    def test_profile_email_is_unique(self):
        User.objects.create_user(username="alice", email="alice@example.com")

        with self.assertRaises(IntegrityError), transaction.atomic():
            User.objects.create_user(username="bob", email="ALICE@example.com")

    @patch("accounts.emails.send_mail", side_effect=SMTPException("down"))
    def test_signup_is_rolled_back_when_email_fails(self, _mock_send):
        user, error = AccountService.signup("alice", "alice@example.com", PASSWORD)

        self.assertIsNone(user)
        self.assertEqual(error.kind, ErrorKind.DEPENDENCY)
        self.assertEqual(
            error.message, "There was an error creating the account. Try again later!"
        )
        self.assertFalse(User.objects.filter(email="alice@example.com").exists())
        self.assertFalse(EmailOTP.objects.exists())


class VerifyAccountServiceTests(TestCase):
    def setUp(self):
        cache.clear()
        with patch("accounts.services.generate_otp_code", return_value="123456"):
            self.user, _ = AccountService.signup("alice", "alice@example.com", PASSWORD)

    def assertPendingOTPUnchanged(self, before):
        after = EmailOTP.objects.get(user=self.user, purpose=EmailOTP.Purpose.VERIFY)
        self.assertEqual(after.pk, before.pk)
        self.assertEqual(after.otp, before.otp)
        self.assertEqual(after.expires_at, before.expires_at)

    def test_correct_otp_verifies_and_clears_otp(self):
        user, token = AccountService.verify_account(self.user, "123456")

        self.assertIsNotNone(token)
        user.profile.refresh_from_db()
        self.assertTrue(user.profile.is_verified)
        self.assertFalse(EmailOTP.objects.filter(user=user).exists())
        # Welcome email is sent by the eager celery task
        self.assertEqual(mail.outbox[-1].to, ["alice@example.com"])

    def test_wrong_otp_is_rejected(self):
        pending = EmailOTP.objects.get(user=self.user)

        user, error = AccountService.verify_account(self.user, "000000")

        self.assertIsNone(user)
        self.assertEqual(error.message, "Invalid OTP")
        self.user.profile.refresh_from_db()
        self.assertFalse(self.user.profile.is_verified)
        self.assertPendingOTPUnchanged(pending)

        # The real code still works afterwards
        user, _ = AccountService.verify_account(self.user, "123456")
        self.assertIsNotNone(user)

    def test_missing_otp_is_rejected(self):
        user, error = AccountService.verify_account(self.user, "")

        self.assertIsNone(user)
        self.assertEqual(error.message, "OTP is required for verification")

    def test_otp_is_valid_until_expiry_instant(self):
        otp = EmailOTP.objects.get(user=self.user)

        with patch(
            "accounts.services.timezone.now",
            return_value=otp.expires_at - timedelta(milliseconds=1),
        ):
            user, _ = AccountService.verify_account(self.user, "123456")

        self.assertIsNotNone(user)

    def test_otp_is_rejected_after_expiry_instant(self):
        otp = EmailOTP.objects.get(user=self.user)

        with patch(
            "accounts.services.timezone.now",
            return_value=otp.expires_at + timedelta(milliseconds=1),
        ):
            user, error = AccountService.verify_account(self.user, "123456")

        self.assertIsNone(user)
        self.assertEqual(error.message, "OTP has expired. Please request a new OTP.")
        self.user.profile.refresh_from_db()
        self.assertFalse(self.user.profile.is_verified)
        self.assertPendingOTPUnchanged(otp)

    def test_repeated_wrong_otps_lock_verification(self):
        for _ in range(AccountService.OTP_VERIFY_MAX_ATTEMPTS):
            AccountService.verify_account(self.user, "000000")

        user, error = AccountService.verify_account(self.user, "123456")

        self.assertIsNone(user)
        self.assertEqual(error.kind, ErrorKind.THROTTLED)

    def test_resend_lifts_verification_lock(self):
        for _ in range(AccountService.OTP_VERIFY_MAX_ATTEMPTS):
            AccountService.verify_account(self.user, "000000")

        with patch("accounts.services.generate_otp_code", return_value="654321"):
            AccountService.resend_otp(self.user)
        user, _ = AccountService.verify_account(self.user, "654321")

        self.assertIsNotNone(user)


class ResendOTPServiceTests(TestCase):
    def setUp(self):
        cache.clear()
        with patch("accounts.services.generate_otp_code", return_value="123456"):
            self.user, _ = AccountService.signup("alice", "alice@example.com", PASSWORD)

    def test_resend_replaces_pending_otp(self):
        with patch("accounts.services.generate_otp_code", return_value="654321"):
            user, error = AccountService.resend_otp(self.user)

        self.assertIsNotNone(user)
        self.assertIsNone(error)
        self.assertEqual(EmailOTP.objects.filter(user=self.user).count(), 1)
        self.assertEqual(mail.outbox[-1].subject, "Resend OTP for Email Verification")

        # The first code no longer works
        _, error = AccountService.verify_account(self.user, "123456")
        self.assertEqual(error.message, "Invalid OTP")
        user, _ = AccountService.verify_account(self.user, "654321")
        self.assertIsNotNone(user)

    def test_resend_on_verified_account_is_rejected(self):
        AccountService.verify_account(self.user, "123456")
        sent = len(mail.outbox)

        user, error = AccountService.resend_otp(self.user)

        self.assertIsNone(user)
        self.assertEqual(error.message, "This account is already verified")
        self.assertEqual(len(mail.outbox), sent)

    def test_resend_clears_otp_when_email_fails(self):
        with patch("accounts.emails.send_mail", side_effect=SMTPException("down")):
            user, error = AccountService.resend_otp(self.user)

        self.assertIsNone(user)
        self.assertEqual(error.kind, ErrorKind.DEPENDENCY)
        self.assertFalse(EmailOTP.objects.filter(user=self.user).exists())

    def test_resend_quota(self):
        for _ in range(AccountService.OTP_REQUEST_MAX):
            AccountService.resend_otp(self.user)

        user, error = AccountService.resend_otp(self.user)

        self.assertIsNone(user)
        self.assertEqual(error.kind, ErrorKind.THROTTLED)


class LoginServiceTests(TestCase):
    def setUp(self):
        cache.clear()
        self.user = User.objects.create_user(
            username="alice", email="alice@example.com", password=PASSWORD
        )

    def test_login_returns_token(self):
        user, token = AccountService.login("ALICE@example.com", PASSWORD)

        self.assertEqual(user, self.user)
        self.assertEqual(decode_token(token)["user_id"], self.user.id)

    def test_unknown_email_and_wrong_password_fail_identically(self):
        _, unknown = AccountService.login("nobody@example.com", PASSWORD)
        _, wrong = AccountService.login("alice@example.com", "not-the-password")

        self.assertEqual(unknown, wrong)
        self.assertEqual(unknown.status_code, 401)
        self.assertEqual(unknown.message, "Incorrect email or password")

    def test_missing_credentials(self):
        _, error = AccountService.login("", "")

        self.assertEqual(error.message, "Please provide your email and password")

    def test_inactive_user_cannot_login(self):
        self.user.is_active = False
        self.user.save()

        _, error = AccountService.login("alice@example.com", PASSWORD)

        self.assertEqual(error.kind, ErrorKind.AUTHORIZATION)


class PasswordResetServiceTests(TestCase):
    def setUp(self):
        cache.clear()
        self.user = User.objects.create_user(
            username="alice", email="alice@example.com", password=PASSWORD
        )
        self.other = User.objects.create_user(
            username="bob", email="bob@example.com", password=PASSWORD
        )

    def _request_reset(self, code="123456"):
        with patch("accounts.services.generate_otp_code", return_value=code):
            return AccountService.forgot_password("alice@example.com")

    def test_forgot_password_emails_reset_otp(self):
        user, error = self._request_reset()

        self.assertEqual(user, self.user)
        self.assertIsNone(error)
        otp = EmailOTP.objects.get(user=self.user, purpose=EmailOTP.Purpose.RESET)
        remaining = (otp.expires_at - timezone.now()).total_seconds()
        self.assertLessEqual(remaining, 300)
        self.assertGreater(remaining, 290)
        self.assertEqual(
            mail.outbox[-1].subject, "Your Password Reset OTP (Valid for 5 minutes)"
        )

    def test_forgot_password_unknown_email(self):
        user, error = AccountService.forgot_password("nobody@example.com")

        self.assertIsNone(user)
        self.assertEqual(error.kind, ErrorKind.NOT_FOUND)
        self.assertEqual(error.message, "No user found with that email")

    def test_forgot_password_clears_otp_when_email_fails(self):
        with patch("accounts.emails.send_mail", side_effect=SMTPException("down")):
            user, error = AccountService.forgot_password("alice@example.com")

        self.assertIsNone(user)
        self.assertEqual(
            error.message, "There was an error sending the email. Try again later!"
        )
        self.assertFalse(EmailOTP.objects.filter(user=self.user).exists())

    def test_reset_password_with_valid_otp(self):
        self._request_reset()

        user, token = AccountService.reset_password(
            "alice@example.com", "123456", NEW_PASSWORD
        )

        self.assertEqual(user, self.user)
        self.assertIsNotNone(token)
        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password(NEW_PASSWORD))
        self.assertFalse(EmailOTP.objects.filter(user=self.user).exists())

    def test_reset_password_requires_matching_email(self):
        self._request_reset()

        user, error = AccountService.reset_password(
            "bob@example.com", "123456", NEW_PASSWORD
        )

        self.assertIsNone(user)
        self.assertEqual(error.message, "Invalid or expired password reset OTP")
        self.other.refresh_from_db()
        self.assertTrue(self.other.check_password(PASSWORD))

    def test_reset_password_requires_matching_otp(self):
        self._request_reset()

        user, error = AccountService.reset_password(
            "alice@example.com", "999999", NEW_PASSWORD
        )

        self.assertIsNone(user)
        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password(PASSWORD))

    def test_reset_password_requires_unexpired_otp(self):
        self._request_reset()
        EmailOTP.objects.filter(user=self.user).update(
            expires_at=timezone.now() - timedelta(seconds=1)
        )

        user, error = AccountService.reset_password(
            "alice@example.com", "123456", NEW_PASSWORD
        )

        self.assertIsNone(user)
        self.assertEqual(error.message, "Invalid or expired password reset OTP")

    def test_new_reset_otp_lifts_reset_lock(self):
        self._request_reset()
        # Someone else burns the attempts for this address
        for _ in range(AccountService.OTP_VERIFY_MAX_ATTEMPTS):
            AccountService.reset_password("alice@example.com", "000000", NEW_PASSWORD)
        _, error = AccountService.reset_password(
            "alice@example.com", "123456", NEW_PASSWORD
        )
        self.assertEqual(error.kind, ErrorKind.THROTTLED)

        self._request_reset(code="654321")
        user, _ = AccountService.reset_password(
            "alice@example.com", "654321", NEW_PASSWORD
        )

        self.assertEqual(user, self.user)

    def test_reset_otp_does_not_verify_account(self):
        self._request_reset()

        user, error = AccountService.verify_account(self.user, "123456")

        self.assertIsNone(user)
        self.assertEqual(error.message, "Invalid OTP")


class ChangePasswordServiceTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(
            username="alice", email="alice@example.com", password=PASSWORD
        )

    def test_change_password(self):
        user, token = AccountService.change_password(
            self.user, PASSWORD, NEW_PASSWORD, NEW_PASSWORD
        )

        self.assertIsNotNone(token)
        user.refresh_from_db()
        self.assertTrue(user.check_password(NEW_PASSWORD))

    def test_wrong_current_password(self):
        user, error = AccountService.change_password(
            self.user, "wrong-password", NEW_PASSWORD, NEW_PASSWORD
        )

        self.assertIsNone(user)
        self.assertEqual(error.message, "Incorrect current password")

    def test_mismatched_confirmation(self):
        _, error = AccountService.change_password(
            self.user, PASSWORD, NEW_PASSWORD, NEW_PASSWORD + "x"
        )

        self.assertEqual(error.message, "New password and confirm password do not match")

    def test_weak_new_password(self):
        _, error = AccountService.change_password(self.user, PASSWORD, "123", "123")

        self.assertEqual(error.kind, ErrorKind.VALIDATION)
        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password(PASSWORD))
