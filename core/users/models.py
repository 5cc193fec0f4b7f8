from django.db import models
from django.contrib.auth.models import User
from django.db.models.signals import post_save
from django.dispatch import receiver


class UserProfile(models.Model):
    """
    Extended user profile holding the account state Django's User lacks.

    Responsibilities:
    1.  **Verification**: `is_verified` flips to True once, when the signup OTP is confirmed.
    2.  **Profile Data**: Stores public facing data like the avatar and bio.

    Relationships:
    - OneToOne with Django's built-in User model.
    - Posts, saved posts and the follow graph hang off the User (see posts.Post and UserFollow).
    """

    # One-to-one link insures strict 1:1 relationship between auth user and profile
    user = models.OneToOneField(
        User,
        on_delete=models.CASCADE,
        related_name='profile',
        help_text="The associated Django User account."
    )

    is_verified = models.BooleanField(
        default=False,
        help_text="Whether the email address was confirmed with the signup OTP."
    )

    # Lower-cased copy of User.email; auth.User does not enforce uniqueness itself
    email = models.EmailField(
        unique=True,
        null=True,
        blank=True,
        help_text="Normalized sign-in email, unique across accounts."
    )

    # Public Profile Visuals
    avatar = models.ImageField(upload_to='avatars/', blank=True, null=True, help_text="User's profile picture.")
    bio = models.TextField(max_length=500, blank=True, default="", help_text="Short user biography.")

    # Metadata
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'User Profile'
        verbose_name_plural = 'User Profiles'

    def __str__(self):
        # Human-readable identifier for admin/debugging
        state = "verified" if self.is_verified else "unverified"
        return f"{self.user.username} ({state})"


class UserFollow(models.Model):
    """
    Model to store follower/following relationships.

    One row is one edge, so both sides of a follow change together.
    """

    # User who initiates the follow
    follower = models.ForeignKey(
        User,
        related_name='following',
        on_delete=models.CASCADE
    )

    # User being followed
    following = models.ForeignKey(
        User,
        related_name='followers',
        on_delete=models.CASCADE
    )

    # Timestamp of follow action
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            # Prevent duplicate follow relationships
            models.UniqueConstraint(
                fields=['follower', 'following'], name='unique_follow_edge'
            ),
            models.CheckConstraint(
                condition=~models.Q(follower=models.F('following')),
                name='prevent_self_follow',
            ),
        ]

        # Optimize follower/following queries
        indexes = [
            models.Index(fields=['follower', 'following'], name='users_follow_edge_idx'),
        ]

    def __str__(self):
        return f"{self.follower.username} follows {self.following.username}"


@receiver(post_save, sender=User)
def create_user_profile(sender, instance, created, **kwargs):
    # Automatically create profile when a user is created
    if created and not hasattr(instance, 'profile'):
        email = (instance.email or "").strip().lower() or None
        UserProfile.objects.create(user=instance, email=email)
