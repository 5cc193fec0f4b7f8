from datetime import datetime, timedelta, timezone

import jwt
from django.conf import settings
from django.contrib.auth.models import User
from django.core.cache import cache
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from accounts.utils import generate_access_token


def make_token(user_id, lifetime=timedelta(minutes=5), token_type="access"):
    now = datetime.now(timezone.utc)
    payload = {
        "user_id": user_id,
        "exp": now + lifetime,
        "iat": now,
        "type": token_type,
    }
    return jwt.encode(payload, settings.JWT_PRIVATE_KEY, algorithm=settings.JWT_ALGORITHM)


class JWTAuthenticationTests(APITestCase):
    def setUp(self):
        cache.clear()
        self.user = User.objects.create_user(
            username="alice", email="alice@example.com", password="Sup3r-Secret-pass"
        )
        self.url = reverse("get_current_user")

    def test_bearer_header_authenticates(self):
        self.client.credentials(
            HTTP_AUTHORIZATION=f"Bearer {generate_access_token(self.user)}"
        )

        response = self.client.get(self.url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["data"]["user"]["id"], self.user.id)

    def test_cookie_authenticates(self):
        self.client.cookies[settings.JWT_COOKIE_NAME] = generate_access_token(self.user)

        response = self.client.get(self.url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_missing_token(self):
        response = self.client.get(self.url)

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data["status"], "fail")
        self.assertEqual(
            response.data["message"], "You are not logged in! Please log in to access."
        )

    def test_expired_header_token(self):
        token = make_token(self.user.id, lifetime=timedelta(seconds=-1))
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")

        response = self.client.get(self.url)

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(
            response.data["message"], "Invalid or expired token. Please log in again."
        )

    def test_tampered_header_token(self):
        token = generate_access_token(self.user) + "x"
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")

        response = self.client.get(self.url)

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_token_for_deleted_user(self):
        token = generate_access_token(self.user)
        self.user.delete()
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")

        response = self.client.get(self.url)

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(
            response.data["message"], "The user belonging to this token does not exist."
        )

    def test_non_access_token_is_rejected(self):
        self.client.credentials(
            HTTP_AUTHORIZATION=f"Bearer {make_token(self.user.id, token_type='refresh')}"
        )

        response = self.client.get(self.url)

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_stale_cookie_does_not_block_public_endpoints(self):
        self.client.cookies[settings.JWT_COOKIE_NAME] = "not-a-jwt"

        response = self.client.post(
            reverse("login"),
            {"email": "alice@example.com", "password": "Sup3r-Secret-pass"},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_header_takes_precedence_over_cookie(self):
        other = User.objects.create_user(
            username="bob", email="bob@example.com", password="Sup3r-Secret-pass"
        )
        self.client.cookies[settings.JWT_COOKIE_NAME] = generate_access_token(other)
        self.client.credentials(
            HTTP_AUTHORIZATION=f"Bearer {generate_access_token(self.user)}"
        )

        response = self.client.get(self.url)

        self.assertEqual(response.data["data"]["user"]["id"], self.user.id)
