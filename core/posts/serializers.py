from rest_framework import serializers
from drf_spectacular.utils import extend_schema_field

from project.media import build_file_url
from .models import Post, Comment


class PostAuthorSerializer(serializers.Serializer):
    """Minimal public view of a post or comment author."""

    id = serializers.IntegerField()
    username = serializers.CharField()
    profile_picture = serializers.SerializerMethodField()
    bio = serializers.SerializerMethodField()

    @extend_schema_field(serializers.URLField(allow_null=True))
    def get_profile_picture(self, obj):
        profile = getattr(obj, "profile", None)
        return build_file_url(profile.avatar, self.context.get("request")) if profile else None

    def get_bio(self, obj):
        profile = getattr(obj, "profile", None)
        return profile.bio if profile else ""


class CommentSerializer(serializers.ModelSerializer):
    user = PostAuthorSerializer(read_only=True)

    class Meta:
        model = Comment
        fields = ["id", "text", "user", "created_at"]
        read_only_fields = ["id", "user", "created_at"]
        extra_kwargs = {
            "text": {
                "error_messages": {
                    "required": "Comment text is required",
                    "blank": "Comment text is required",
                }
            }
        }

    def validate_text(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Comment text is required")
        return value


class PostSerializer(serializers.ModelSerializer):
    user = PostAuthorSerializer(read_only=True)
    image_url = serializers.SerializerMethodField()
    likes = serializers.PrimaryKeyRelatedField(many=True, read_only=True)
    likes_count = serializers.SerializerMethodField()
    is_liked = serializers.SerializerMethodField()
    is_saved = serializers.SerializerMethodField()
    comments = CommentSerializer(many=True, read_only=True)

    class Meta:
        model = Post
        fields = [
            "id",
            "user",
            "caption",
            "image_url",
            "likes",
            "likes_count",
            "is_liked",
            "is_saved",
            "comments",
            "created_at",
        ]

    @extend_schema_field(serializers.URLField(allow_null=True))
    def get_image_url(self, obj):
        return build_file_url(obj.image, self.context.get("request"))

    @extend_schema_field(int)
    def get_likes_count(self, obj):
        return len(obj.likes.all())

    @extend_schema_field(bool)
    def get_is_liked(self, obj):
        request = self.context.get("request")
        if request and request.user.is_authenticated:
            # Uses the prefetched likes when available
            return any(user.pk == request.user.pk for user in obj.likes.all())
        return False

    @extend_schema_field(bool)
    def get_is_saved(self, obj):
        request = self.context.get("request")
        if request and request.user.is_authenticated:
            return any(user.pk == request.user.pk for user in obj.saved_by.all())
        return False


class PostCreateSerializer(serializers.Serializer):
    image = serializers.ImageField(
        required=True,
        error_messages={"required": "Image is required for the post"},
    )
    caption = serializers.CharField(
        max_length=2200, required=False, allow_blank=True, default=""
    )
