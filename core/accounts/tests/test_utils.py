from datetime import timedelta

from django.contrib.auth.models import User
from django.test import TestCase, override_settings

from accounts.utils import (
    decode_token,
    generate_access_token,
    generate_otp_code,
    hash_otp,
    otp_matches,
)


class OTPUtilsTests(TestCase):
    def test_otp_code_is_numeric(self):
        code = generate_otp_code()

        self.assertEqual(len(code), 6)
        self.assertTrue(code.isdigit())

    def test_hash_is_bound_to_email(self):
        digest = hash_otp("alice@example.com", "123456")

        self.assertTrue(otp_matches(digest, "ALICE@example.com", "123456"))
        self.assertFalse(otp_matches(digest, "bob@example.com", "123456"))
        self.assertFalse(otp_matches(digest, "alice@example.com", "654321"))


class TokenUtilsTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="alice", password="x")

    def test_access_token_round_trip(self):
        payload = decode_token(generate_access_token(self.user))

        self.assertEqual(payload["user_id"], self.user.id)
        self.assertEqual(payload["type"], "access")
        self.assertEqual(
            payload["exp"] - payload["iat"], int(timedelta(days=7).total_seconds())
        )

    def test_garbage_token_decodes_to_none(self):
        self.assertIsNone(decode_token("not-a-token"))

    @override_settings(JWT_ACCESS_TOKEN_LIFETIME=-10)
    def test_expired_token_decodes_to_none(self):
        self.assertIsNone(decode_token(generate_access_token(self.user)))
