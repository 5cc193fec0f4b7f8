from celery import shared_task
from django.utils import timezone
from .emails import send_welcome_email
from .models import EmailOTP
import logging

logger = logging.getLogger(__name__)


@shared_task
def send_welcome_email_task(user_id):
    """
    Async task to send welcome email.
    We pass user_id because passing complex objects (User) to Celery is an anti-pattern.
    """
    from django.contrib.auth import get_user_model

    User = get_user_model()
    try:
        user = User.objects.get(pk=user_id)
    except User.DoesNotExist:
        logger.warning("User %s not found for welcome email task", user_id)
        return
    send_welcome_email(user)
    logger.info("Welcome email task completed for user %s", user_id)


@shared_task
def purge_expired_otps():
    """
    Delete OTPs whose validity window has passed.
    Scheduled by CELERY_BEAT_SCHEDULE.
    """
    deleted, _ = EmailOTP.objects.filter(expires_at__lte=timezone.now()).delete()
    if deleted:
        logger.info("Purged %s expired OTPs", deleted)
    return deleted
