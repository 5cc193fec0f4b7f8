from django.conf import settings
from django.contrib.auth.models import User
from drf_spectacular.extensions import OpenApiAuthenticationExtension
from rest_framework import authentication, exceptions

from .utils import decode_token

INVALID_TOKEN_MESSAGE = "Invalid or expired token. Please log in again."
MISSING_USER_MESSAGE = "The user belonging to this token does not exist."

HEADER = "header"
COOKIE = "cookie"


class JWTAuthentication(authentication.BaseAuthentication):
    """
    Resolves the request user from a PhotoFlow access token.

    The token is read from ``Authorization: Bearer <token>`` first and from
    the HttpOnly ``token`` cookie second. A bad header token is rejected
    with 401; a bad cookie token is ignored so that stale browser cookies
    do not lock people out of login and other public routes.
    """

    def authenticate(self, request):
        token, source = self._get_token(request)
        if not token:
            return None

        payload = decode_token(token)
        if not payload or payload.get("type") != "access":
            return self._reject(source, INVALID_TOKEN_MESSAGE)

        user = (
            User.objects.select_related("profile")
            .filter(pk=payload.get("user_id"))
            .first()
        )
        if user is None:
            return self._reject(source, MISSING_USER_MESSAGE)

        if not user.is_active:
            raise exceptions.AuthenticationFailed("User account is disabled.")

        return user, token

    def authenticate_header(self, request):
        # Makes DRF answer 401 (not 403) for unauthenticated requests
        return "Bearer"

    @staticmethod
    def _get_token(request):
        auth_header = request.headers.get("Authorization", "")
        parts = auth_header.split()
        if len(parts) == 2 and parts[0].lower() == "bearer":
            return parts[1], HEADER

        cookie = request.COOKIES.get(settings.JWT_COOKIE_NAME)
        if cookie:
            return cookie, COOKIE
        return None, None

    @staticmethod
    def _reject(source, message):
        if source == COOKIE:
            return None
        raise exceptions.AuthenticationFailed(message)


class JWTAuthenticationScheme(OpenApiAuthenticationExtension):
    target_class = "accounts.authentication.JWTAuthentication"
    name = "JWTAuth"

    def get_security_definition(self, auto_schema):
        return {"type": "http", "scheme": "bearer", "bearerFormat": "JWT"}
