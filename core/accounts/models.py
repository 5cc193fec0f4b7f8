from django.conf import settings
from django.db import models
from django.utils import timezone


class EmailOTP(models.Model):
    """
    Pending one-time password for an account.

    Each account holds at most one OTP per purpose: signup verification codes
    live for 24 hours, password reset codes for 5 minutes. Only an HMAC digest
    of the code is stored. Rows are deleted once consumed, when delivery fails,
    or by the periodic purge once expired.
    """

    class Purpose(models.TextChoices):
        VERIFY = "verify", "Account verification"
        RESET = "reset", "Password reset"

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="otps",
    )
    purpose = models.CharField(max_length=10, choices=Purpose.choices)
    otp = models.CharField(max_length=128)
    expires_at = models.DateTimeField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["user", "purpose"], name="unique_pending_otp_per_purpose"
            ),
        ]

    def is_expired(self, now=None):
        return (now or timezone.now()) > self.expires_at

    def __str__(self):
        return f"{self.user.email} - {self.purpose} OTP"
