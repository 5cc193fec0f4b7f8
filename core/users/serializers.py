from rest_framework import serializers
from django.contrib.auth.models import User
from drf_spectacular.utils import extend_schema_field

from posts.serializers import PostSerializer
from project.media import build_file_url


class UserSerializer(serializers.ModelSerializer):
    """
    Sanitized account: no password hash and no OTP state ever leave the API.
    Relationships are exposed as id lists.
    """

    is_verified = serializers.SerializerMethodField()
    bio = serializers.SerializerMethodField()
    profile_picture = serializers.SerializerMethodField()

    # Relationship sets (identifier level)
    posts = serializers.SerializerMethodField()
    saved_posts = serializers.SerializerMethodField()
    followers = serializers.SerializerMethodField()
    following = serializers.SerializerMethodField()

    # Social graph metrics (computed, not stored)
    followers_count = serializers.SerializerMethodField()
    following_count = serializers.SerializerMethodField()

    class Meta:
        model = User

        fields = [
            "id",
            "username",
            "email",
            "is_verified",
            "bio",
            "profile_picture",
            "posts",
            "saved_posts",
            "followers",
            "following",
            "followers_count",
            "following_count",
            "date_joined",
        ]

    @extend_schema_field(bool)
    def get_is_verified(self, obj):
        profile = getattr(obj, "profile", None)
        return bool(profile and profile.is_verified)

    def get_bio(self, obj):
        profile = getattr(obj, "profile", None)
        return profile.bio if profile else ""

    @extend_schema_field(serializers.URLField(allow_null=True))
    def get_profile_picture(self, obj):
        profile = getattr(obj, "profile", None)
        return build_file_url(profile.avatar, self.context.get("request")) if profile else None

    @extend_schema_field(serializers.ListField(child=serializers.IntegerField()))
    def get_posts(self, obj):
        return list(obj.posts.values_list("id", flat=True))

    @extend_schema_field(serializers.ListField(child=serializers.IntegerField()))
    def get_saved_posts(self, obj):
        return list(obj.saved_posts.values_list("id", flat=True))

    @extend_schema_field(serializers.ListField(child=serializers.IntegerField()))
    def get_followers(self, obj):
        # Users following this user
        return list(obj.followers.values_list("follower_id", flat=True))

    @extend_schema_field(serializers.ListField(child=serializers.IntegerField()))
    def get_following(self, obj):
        # Users this user follows
        return list(obj.following.values_list("following_id", flat=True))

    @extend_schema_field(int)
    def get_followers_count(self, obj):
        return obj.followers.count()

    @extend_schema_field(int)
    def get_following_count(self, obj):
        return obj.following.count()


class ProfileSerializer(UserSerializer):
    """Public profile with authored and saved posts expanded, newest first."""

    posts = serializers.SerializerMethodField()
    saved_posts = serializers.SerializerMethodField()

    @extend_schema_field(PostSerializer(many=True))
    def get_posts(self, obj):
        posts = obj.posts.select_related("user__profile").prefetch_related("likes", "saved_by", "comments__user__profile")
        return PostSerializer(posts, many=True, context=self.context).data

    @extend_schema_field(PostSerializer(many=True))
    def get_saved_posts(self, obj):
        posts = obj.saved_posts.select_related("user__profile").prefetch_related("likes", "saved_by", "comments__user__profile")
        return PostSerializer(posts, many=True, context=self.context).data


class UserSummarySerializer(serializers.Serializer):
    id = serializers.IntegerField()
    username = serializers.CharField()
    profile_picture = serializers.SerializerMethodField()
    bio = serializers.SerializerMethodField()
    is_following = serializers.SerializerMethodField()

    def get_profile_picture(self, obj):
        profile = getattr(obj, "profile", None)
        return build_file_url(profile.avatar, self.context.get("request")) if profile else None

    def get_bio(self, obj):
        profile = getattr(obj, "profile", None)
        return profile.bio if profile else ""

    def get_is_following(self, obj):
        request = self.context.get("request")
        if request and request.user.is_authenticated:
            # Check if request.user is following obj (the user in the summary)
            return request.user.following.filter(following=obj).exists()
        return False


class EditProfileSerializer(serializers.Serializer):
    bio = serializers.CharField(max_length=500, required=False, allow_blank=True)
    profilePicture = serializers.ImageField(required=False)


class FollowToggleResponseSerializer(serializers.Serializer):
    status = serializers.CharField()
    message = serializers.CharField()
    data = serializers.DictField()
