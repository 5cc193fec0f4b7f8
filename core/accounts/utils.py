import hmac
import secrets
import string
from hashlib import sha256

import jwt
from datetime import datetime, timedelta, timezone
from django.conf import settings


def generate_otp_code(length=6):
    """Generate a numeric OTP code."""
    return "".join(secrets.choice(string.digits) for _ in range(length))


def hash_otp(email: str, otp: str) -> str:
    normalized = f"{email.lower().strip()}:{str(otp).strip()}".encode("utf-8")
    return hmac.new(settings.SECRET_KEY.encode("utf-8"), normalized, sha256).hexdigest()


def otp_matches(stored_hash: str, email: str, otp: str) -> bool:
    return hmac.compare_digest(stored_hash, hash_otp(email, otp))


def generate_access_token(user):
    """
    Generate a signed, time-bound JWT access token.
    Carries only the subject id; no profile data or secrets.
    """
    now = datetime.now(timezone.utc)
    payload = {
        "user_id": user.id,
        "exp": now + timedelta(seconds=settings.JWT_ACCESS_TOKEN_LIFETIME),
        "iat": now,
        "type": "access",
    }
    return jwt.encode(
        payload, settings.JWT_PRIVATE_KEY, algorithm=settings.JWT_ALGORITHM
    )


def decode_token(token):
    """Return the verified claims of ``token``, or None if it is forged or expired."""
    try:
        return jwt.decode(
            token, settings.JWT_PUBLIC_KEY, algorithms=[settings.JWT_ALGORITHM]
        )
    except jwt.InvalidTokenError:
        # ExpiredSignatureError included
        return None
