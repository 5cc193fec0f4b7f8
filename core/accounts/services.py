import logging
from datetime import timedelta

from django.conf import settings
from django.contrib.auth.models import User
from django.contrib.auth.password_validation import validate_password
from django.core.cache import cache
from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.utils import timezone

from .emails import (
    EmailDeliveryError,
    send_password_reset_email,
    send_verification_email,
)
from .errors import ServiceError
from .models import EmailOTP
from .tasks import send_welcome_email_task
from .utils import generate_access_token, generate_otp_code, hash_otp, otp_matches
from users.models import UserProfile

logger = logging.getLogger(__name__)


class AccountService:
    """
    Account lifecycle: signup, verification, login and password flows.

    Every method returns a pair. On failure the first item is None and the
    second a ServiceError; nothing has been mutated unless stated. On success
    the first item is the user and the second a fresh access token, or None
    for operations that do not issue one.

    OTP-bearing flows share one shape: store the new OTP, try to email it,
    and delete it again if the email cannot be delivered.
    """

    OTP_VERIFY_MAX_ATTEMPTS = 5
    OTP_VERIFY_WINDOW_SECONDS = 10 * 60
    OTP_VERIFY_LOCK_SECONDS = 15 * 60
    OTP_REQUEST_WINDOW_SECONDS = 10 * 60
    OTP_REQUEST_MAX = 5

    INVALID_CREDENTIALS = "Incorrect email or password"

    @staticmethod
    def normalize_email(email) -> str:
        return (email or "").lower().strip()

    @staticmethod
    def _otp_attempts_key(email: str, purpose: str) -> str:
        return f"auth:otp:{purpose}:verify_attempts:{email}"

    @staticmethod
    def _otp_lock_key(email: str, purpose: str) -> str:
        return f"auth:otp:{purpose}:verify_lock:{email}"

    @staticmethod
    def _otp_request_key(email: str) -> str:
        return f"auth:otp:request_count:{email}"

    # --- OTP state helpers ---

    @staticmethod
    def _issue_otp(user, purpose, lifetime_seconds):
        """Store a fresh OTP for ``purpose``, replacing any pending one."""
        otp_code = generate_otp_code()
        EmailOTP.objects.update_or_create(
            user=user,
            purpose=purpose,
            defaults={
                "otp": hash_otp(user.email, otp_code),
                "expires_at": timezone.now() + timedelta(seconds=lifetime_seconds),
            },
        )
        return otp_code

    @staticmethod
    def _clear_otp(user, purpose):
        EmailOTP.objects.filter(user=user, purpose=purpose).delete()

    @staticmethod
    def _check_otp_request_quota(email):
        if cache.get(AccountService._otp_request_key(email), 0) >= AccountService.OTP_REQUEST_MAX:
            logger.warning("OTP request quota exhausted for %s", email)
            return ServiceError.throttled(
                "Too many OTP requests. Please try again later."
            )
        return None

    @staticmethod
    def _record_otp_request(email):
        key = AccountService._otp_request_key(email)
        cache.set(
            key,
            cache.get(key, 0) + 1,
            timeout=AccountService.OTP_REQUEST_WINDOW_SECONDS,
        )

    @staticmethod
    def _check_otp_lock(email, purpose):
        if cache.get(AccountService._otp_lock_key(email, purpose)):
            logger.warning("OTP %s locked for %s", purpose, email)
            return ServiceError.throttled("Too many invalid attempts. Try again later.")
        return None

    @staticmethod
    def _record_failed_otp_attempt(email, purpose):
        attempts_key = AccountService._otp_attempts_key(email, purpose)
        attempts = cache.get(attempts_key, 0) + 1
        cache.set(
            attempts_key, attempts, timeout=AccountService.OTP_VERIFY_WINDOW_SECONDS
        )
        if attempts >= AccountService.OTP_VERIFY_MAX_ATTEMPTS:
            cache.set(
                AccountService._otp_lock_key(email, purpose),
                1,
                timeout=AccountService.OTP_VERIFY_LOCK_SECONDS,
            )

    @staticmethod
    def _reset_failed_otp_attempts(email, purpose):
        cache.delete(AccountService._otp_attempts_key(email, purpose))
        cache.delete(AccountService._otp_lock_key(email, purpose))

    @staticmethod
    def _create_account(username, email, password):
        """
        Insert the user, its profile (carrying the unique email) and the
        verification OTP as one unit.
        """
        with transaction.atomic():
            user = User.objects.create_user(
                username=username, email=email, password=password
            )
            otp_code = AccountService._issue_otp(
                user, EmailOTP.Purpose.VERIFY, settings.OTP_VERIFY_LIFETIME
            )
        return user, otp_code

    # --- Lifecycle operations ---

    @staticmethod
    def signup(username, email, password):
        """
        Create an unverified account and email it a verification OTP.

        The account is deleted again if the email cannot be sent, so a failed
        signup never leaves an orphan behind.
        """
        email = AccountService.normalize_email(email)
        username = (username or "").strip()

        if User.objects.filter(email__iexact=email).exists():
            return None, ServiceError.conflict("Email already registered")
        if User.objects.filter(username__iexact=username).exists():
            return None, ServiceError.conflict("Username already taken")

        try:
            user, otp_code = AccountService._create_account(username, email, password)
        except IntegrityError:
            # Lost a race against a concurrent signup; the profile email is unique
            if UserProfile.objects.filter(email=email).exists():
                return None, ServiceError.conflict("Email already registered")
            return None, ServiceError.conflict("Username already taken")

        try:
            send_verification_email(user, otp_code, settings.OTP_VERIFY_LIFETIME)
        except EmailDeliveryError:
            logger.warning("Rolling back signup for %s: OTP email failed", email)
            user.delete()
            return None, ServiceError.dependency(
                "There was an error creating the account. Try again later!"
            )

        logger.info("Registered new account %s (%s)", user.username, email)
        return user, generate_access_token(user)

    @staticmethod
    def verify_account(user, otp):
        """Mark the account verified if ``otp`` matches the pending, unexpired code."""
        otp = str(otp or "").strip()
        if not otp:
            return None, ServiceError.validation("OTP is required for verification")

        purpose = EmailOTP.Purpose.VERIFY
        email = AccountService.normalize_email(user.email)

        lock_error = AccountService._check_otp_lock(email, purpose)
        if lock_error:
            return None, lock_error

        otp_record = EmailOTP.objects.filter(user=user, purpose=purpose).first()
        if otp_record is None or not otp_matches(otp_record.otp, email, otp):
            logger.warning("Invalid verification OTP for %s", email)
            AccountService._record_failed_otp_attempt(email, purpose)
            return None, ServiceError.validation("Invalid OTP")

        if otp_record.is_expired(timezone.now()):
            return None, ServiceError.validation(
                "OTP has expired. Please request a new OTP."
            )

        with transaction.atomic():
            profile = user.profile
            profile.is_verified = True
            profile.save(update_fields=["is_verified", "updated_at"])
            otp_record.delete()

        AccountService._reset_failed_otp_attempts(email, purpose)
        logger.info("Account %s verified", email)

        try:
            send_welcome_email_task.delay(user.id)
        except Exception:
            logger.exception("Failed to enqueue welcome email for %s", email)

        return user, generate_access_token(user)

    @staticmethod
    def resend_otp(user):
        """Replace the pending verification OTP and email the new one."""
        if user.profile.is_verified:
            return None, ServiceError.validation("This account is already verified")

        email = AccountService.normalize_email(user.email)
        quota_error = AccountService._check_otp_request_quota(email)
        if quota_error:
            return None, quota_error

        otp_code = AccountService._issue_otp(
            user, EmailOTP.Purpose.VERIFY, settings.OTP_VERIFY_LIFETIME
        )

        try:
            send_verification_email(
                user, otp_code, settings.OTP_VERIFY_LIFETIME, resend=True
            )
        except EmailDeliveryError:
            # Leave no pending OTP rather than one the user never received
            AccountService._clear_otp(user, EmailOTP.Purpose.VERIFY)
            return None, ServiceError.dependency(
                "There was an error sending the email. Try again later!"
            )

        AccountService._record_otp_request(email)
        # A fresh code lifts any lockout earned on the previous one
        AccountService._reset_failed_otp_attempts(email, EmailOTP.Purpose.VERIFY)
        return user, None

    @staticmethod
    def login(email, password):
        """
        Check credentials and issue a token.

        Unknown email and wrong password produce the same error.
        """
        if not email or not password:
            return None, ServiceError.validation(
                "Please provide your email and password"
            )

        email = AccountService.normalize_email(email)
        user = User.objects.filter(email__iexact=email).first()

        if user is None:
            # Run the hasher anyway so response time does not reveal unknown emails
            User().set_password(password)
            logger.warning("Failed login for %s", email)
            return None, ServiceError.authentication(AccountService.INVALID_CREDENTIALS)

        if not user.check_password(password):
            logger.warning("Failed login for %s", email)
            return None, ServiceError.authentication(AccountService.INVALID_CREDENTIALS)

        if not user.is_active:
            return None, ServiceError.authorization("User account is disabled.")

        return user, generate_access_token(user)

    @staticmethod
    def forgot_password(email):
        """Email a short-lived password reset OTP."""
        email = AccountService.normalize_email(email)
        if not email:
            return None, ServiceError.validation("Please provide your email")

        user = User.objects.filter(email__iexact=email).first()
        if user is None:
            return None, ServiceError.not_found("No user found with that email")

        quota_error = AccountService._check_otp_request_quota(email)
        if quota_error:
            return None, quota_error

        otp_code = AccountService._issue_otp(
            user, EmailOTP.Purpose.RESET, settings.OTP_RESET_LIFETIME
        )

        try:
            send_password_reset_email(user, otp_code, settings.OTP_RESET_LIFETIME)
        except EmailDeliveryError:
            AccountService._clear_otp(user, EmailOTP.Purpose.RESET)
            return None, ServiceError.dependency(
                "There was an error sending the email. Try again later!"
            )

        AccountService._record_otp_request(email)
        AccountService._reset_failed_otp_attempts(email, EmailOTP.Purpose.RESET)
        logger.info("Password reset OTP issued for %s", email)
        return user, None

    @staticmethod
    def reset_password(email, otp, password):
        """
        Set a new password for the account owning a matching reset OTP.

        Email, OTP and expiry are matched in one query, so a wrong email, a
        wrong OTP and an expired OTP are indistinguishable to the caller.
        """
        email = AccountService.normalize_email(email)
        otp = str(otp or "").strip()
        purpose = EmailOTP.Purpose.RESET

        lock_error = AccountService._check_otp_lock(email, purpose)
        if lock_error:
            return None, lock_error

        otp_record = (
            EmailOTP.objects.select_related("user")
            .filter(
                purpose=purpose,
                user__email__iexact=email,
                otp=hash_otp(email, otp),
                expires_at__gt=timezone.now(),
            )
            .first()
        )

        if otp_record is None:
            AccountService._record_failed_otp_attempt(email, purpose)
            return None, ServiceError.validation("Invalid or expired password reset OTP")

        user = otp_record.user
        with transaction.atomic():
            user.set_password(password)
            user.save(update_fields=["password"])
            otp_record.delete()

        AccountService._reset_failed_otp_attempts(email, purpose)
        logger.info("Password reset for %s", email)
        return user, generate_access_token(user)

    @staticmethod
    def change_password(user, current_password, new_password, new_password_confirm):
        """Re-authenticate with the current password, then set a new one."""
        if not user.check_password(current_password or ""):
            return None, ServiceError.validation("Incorrect current password")

        if new_password != new_password_confirm:
            return None, ServiceError.validation(
                "New password and confirm password do not match"
            )

        try:
            validate_password(new_password, user)
        except ValidationError as exc:
            return None, ServiceError.validation(exc.messages[0])

        user.set_password(new_password)
        user.save(update_fields=["password"])

        logger.info("Password changed for %s", user.email)
        return user, generate_access_token(user)
