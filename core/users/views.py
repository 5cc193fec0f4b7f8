import logging

from django.contrib.auth.models import User
from django.db import IntegrityError, transaction
from rest_framework import status
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from drf_spectacular.utils import (
    extend_schema,
    OpenApiTypes,
    OpenApiParameter,
)
from .models import UserFollow

from .serializers import (
    UserSerializer,
    ProfileSerializer,
    UserSummarySerializer,
    EditProfileSerializer,
    FollowToggleResponseSerializer,
)

from django.utils.decorators import method_decorator
from django.views.decorators.cache import never_cache

from project.exceptions import error_response
from project.media import InvalidImageError, optimize_image

logger = logging.getLogger(__name__)


def _user_not_found():
    return error_response("User not found", status.HTTP_404_NOT_FOUND)


def _user_response(request, user, message=None, serializer_class=UserSerializer):
    payload = {"status": "success"}
    if message:
        payload["message"] = message
    payload["data"] = {"user": serializer_class(user, context={"request": request}).data}
    return Response(payload, status=status.HTTP_200_OK)


def _users_response(request, users):
    data = UserSummarySerializer(users, many=True, context={"request": request}).data
    return Response(
        {"status": "success", "results": len(data), "data": {"users": data}},
        status=status.HTTP_200_OK,
    )


@method_decorator(never_cache, name="dispatch")
class CurrentUserView(APIView):
    """Get the currently authenticated user."""

    permission_classes = [IsAuthenticated]
    serializer_class = UserSerializer

    def get(self, request):
        return _user_response(request, request.user, "authenticated User")


class ProfileDetailView(APIView):
    """View to get public profile details, with posts and saved posts expanded."""

    permission_classes = [AllowAny]
    serializer_class = ProfileSerializer

    @extend_schema(
        parameters=[OpenApiParameter("id", int, OpenApiParameter.PATH)],
        responses={200: ProfileSerializer, 404: OpenApiTypes.OBJECT},
        description="Get public profile details by user id.",
    )
    def get(self, request, id):
        user = User.objects.select_related("profile").filter(pk=id).first()
        if user is None:
            return _user_not_found()

        return _user_response(request, user, serializer_class=ProfileSerializer)


class EditProfileView(APIView):
    """
    Updates the authenticated user's bio and/or profile picture.
    The picture is resized and re-encoded like post images.
    """

    permission_classes = [IsAuthenticated]
    parser_classes = [MultiPartParser, FormParser, JSONParser]
    serializer_class = EditProfileSerializer

    @extend_schema(
        request=EditProfileSerializer,
        responses={200: UserSerializer},
        description="Update current user bio and profile picture.",
    )
    def post(self, request):
        serializer = EditProfileSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        profile = request.user.profile
        update_fields = ["updated_at"]

        if "bio" in data:
            profile.bio = data["bio"].strip()
            update_fields.append("bio")

        if "profilePicture" in data:
            try:
                picture = optimize_image(data["profilePicture"])
            except InvalidImageError as exc:
                return error_response(str(exc), status.HTTP_400_BAD_REQUEST)

            old_avatar = profile.avatar.name if profile.avatar else None
            profile.avatar.save(picture.name, picture, save=False)
            update_fields.append("avatar")
        else:
            old_avatar = None

        profile.save(update_fields=update_fields)

        if old_avatar:
            profile.avatar.storage.delete(old_avatar)

        return _user_response(request, request.user, "Profile updated.")


class FollowToggleView(APIView):
    """View to toggle follow status."""

    permission_classes = [IsAuthenticated]
    serializer_class = FollowToggleResponseSerializer

    @extend_schema(
        request=None,
        parameters=[OpenApiParameter("id", int, OpenApiParameter.PATH)],
        responses={
            200: FollowToggleResponseSerializer,
            400: OpenApiTypes.OBJECT,
            404: OpenApiTypes.OBJECT,
        },
        description="Toggle follow/unfollow for a user.",
    )
    def post(self, request, id):
        # Prevent user from following/unfollowing themselves
        if id == request.user.pk:
            return error_response(
                "You cannot follow/unfollow yourself", status.HTTP_400_BAD_REQUEST
            )

        target_user = User.objects.filter(pk=id).first()
        if target_user is None:
            return _user_not_found()

        # One row is both sides of the edge, so follow/unfollow is a single write
        deleted, _ = UserFollow.objects.filter(
            follower=request.user, following=target_user
        ).delete()

        if deleted:
            is_following = False
        else:
            try:
                with transaction.atomic():
                    UserFollow.objects.create(follower=request.user, following=target_user)
            except IntegrityError:
                # A concurrent request created the same edge
                logger.info(
                    "Follow %s -> %s already exists", request.user.pk, target_user.pk
                )
            is_following = True

        logger.info(
            "User %s %s user %s",
            request.user.pk,
            "followed" if is_following else "unfollowed",
            target_user.pk,
        )

        payload = {
            "status": "success",
            "message": "Followed successfully" if is_following else "Unfollowed successfully",
            "data": {
                "user": UserSerializer(request.user, context={"request": request}).data,
                "is_following": is_following,
                "follower_count": target_user.followers.count(),
            },
        }
        return Response(payload, status=status.HTTP_200_OK)


class UserFollowersView(APIView):
    """View to get list of followers for a user."""

    permission_classes = [AllowAny]
    serializer_class = UserSummarySerializer

    def get(self, request, id):
        target_user = User.objects.filter(pk=id).first()
        if target_user is None:
            return _user_not_found()

        followers = User.objects.filter(following__following=target_user).select_related("profile")
        return _users_response(request, followers)


class UserFollowingView(APIView):
    """View to get list of users a user is following."""

    permission_classes = [AllowAny]
    serializer_class = UserSummarySerializer

    def get(self, request, id):
        target_user = User.objects.filter(pk=id).first()
        if target_user is None:
            return _user_not_found()

        following = User.objects.filter(followers__follower=target_user).select_related("profile")
        return _users_response(request, following)


class SuggestedUsersView(APIView):
    """View to get suggested users to follow: everyone except the caller."""

    permission_classes = [IsAuthenticated]
    serializer_class = UserSummarySerializer

    def get(self, request):
        suggested = (
            User.objects.exclude(pk=request.user.pk)
            .select_related("profile")
            .order_by("-date_joined")
        )
        return _users_response(request, suggested)


class SearchUsersView(APIView):
    """Case-insensitive username search, excluding the caller."""

    permission_classes = [IsAuthenticated]
    serializer_class = UserSummarySerializer

    @extend_schema(
        parameters=[OpenApiParameter("query", str, OpenApiParameter.QUERY, required=True)],
        responses={200: UserSummarySerializer(many=True), 400: OpenApiTypes.OBJECT},
    )
    def get(self, request):
        query = (request.query_params.get("query") or "").strip()
        if not query:
            return error_response(
                "Search query cannot be empty", status.HTTP_400_BAD_REQUEST
            )

        users = (
            User.objects.filter(username__icontains=query)
            .exclude(pk=request.user.pk)
            .select_related("profile")
            .order_by("username")
        )
        return _users_response(request, users)
