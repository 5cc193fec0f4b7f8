from datetime import timedelta

from django.contrib.auth.models import User
from django.core import mail
from django.test import TestCase
from django.utils import timezone

from accounts.models import EmailOTP
from accounts.tasks import purge_expired_otps, send_welcome_email_task


class PurgeExpiredOTPsTests(TestCase):
    def setUp(self):
        self.alice = User.objects.create_user(username="alice", email="alice@example.com")
        self.bob = User.objects.create_user(username="bob", email="bob@example.com")

    def test_only_expired_otps_are_purged(self):
        EmailOTP.objects.create(
            user=self.alice,
            purpose=EmailOTP.Purpose.VERIFY,
            otp="digest",
            expires_at=timezone.now() - timedelta(minutes=1),
        )
        pending = EmailOTP.objects.create(
            user=self.bob,
            purpose=EmailOTP.Purpose.RESET,
            otp="digest",
            expires_at=timezone.now() + timedelta(minutes=5),
        )

        deleted = purge_expired_otps()

        self.assertEqual(deleted, 1)
        self.assertEqual(list(EmailOTP.objects.all()), [pending])


class WelcomeEmailTaskTests(TestCase):
    def test_sends_welcome_email(self):
        user = User.objects.create_user(username="alice", email="alice@example.com")

        send_welcome_email_task.delay(user.id)

        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].subject, "Welcome to PhotoFlow")

    def test_missing_user_is_ignored(self):
        send_welcome_email_task.delay(999999)

        self.assertEqual(len(mail.outbox), 0)
