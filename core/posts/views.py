import logging

from django.db import transaction
from django.db.models import Prefetch
from drf_spectacular.utils import extend_schema, OpenApiTypes
from rest_framework import status
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from project.exceptions import error_response
from project.media import InvalidImageError, optimize_image
from users.serializers import UserSerializer
from .models import Post, Comment
from .permissions import IsPostOwner
from .serializers import CommentSerializer, PostCreateSerializer, PostSerializer

logger = logging.getLogger(__name__)


def _post_queryset():
    # Authors, likes, saves and comments are joined up front for the list views
    return Post.objects.select_related("user__profile").prefetch_related(
        "likes",
        "saved_by",
        Prefetch("comments", queryset=Comment.objects.select_related("user__profile")),
    )


def _get_post(pk):
    return _post_queryset().filter(pk=pk).first()


def _post_not_found():
    return error_response("Post not found", status.HTTP_404_NOT_FOUND)


def _posts_response(request, posts):
    data = PostSerializer(posts, many=True, context={"request": request}).data
    return Response(
        {"status": "success", "results": len(data), "data": {"posts": data}},
        status=status.HTTP_200_OK,
    )


class CreatePostView(APIView):
    """
    Share a photo.
    The image is fitted into 800x800 and stored as JPEG before the post is created.
    """

    permission_classes = [IsAuthenticated]
    parser_classes = [MultiPartParser, FormParser]
    serializer_class = PostCreateSerializer

    @extend_schema(request=PostCreateSerializer, responses={201: PostSerializer})
    def post(self, request):
        serializer = PostCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            image = optimize_image(serializer.validated_data["image"])
        except InvalidImageError as exc:
            return error_response(str(exc), status.HTTP_400_BAD_REQUEST)

        post = Post.objects.create(
            user=request.user,
            caption=serializer.validated_data["caption"].strip(),
            image=image,
        )
        logger.info("User %s created post %s", request.user.pk, post.pk)

        return Response(
            {
                "status": "success",
                "message": "Post Created",
                "data": {
                    "post": PostSerializer(_get_post(post.pk), context={"request": request}).data
                },
            },
            status=status.HTTP_201_CREATED,
        )


class AllPostsView(APIView):
    """All posts, newest first, with authors and comments."""

    permission_classes = [AllowAny]
    serializer_class = PostSerializer

    def get(self, request):
        return _posts_response(request, _post_queryset())


class UserPostsView(APIView):
    """Posts of one user, newest first."""

    permission_classes = [AllowAny]
    serializer_class = PostSerializer

    def get(self, request, id):
        return _posts_response(request, _post_queryset().filter(user_id=id))


class SaveOrUnsavePostView(APIView):
    """Toggle a post in the current user's saved posts."""

    permission_classes = [IsAuthenticated]

    @extend_schema(request=None, responses={200: OpenApiTypes.OBJECT})
    def post(self, request, post_id):
        post = Post.objects.filter(pk=post_id).first()
        if post is None:
            return _post_not_found()

        if post.saved_by.filter(pk=request.user.pk).exists():
            post.saved_by.remove(request.user)
            message = "Post unsaved successfully"
        else:
            post.saved_by.add(request.user)
            message = "Post saved successfully"

        return Response(
            {
                "status": "success",
                "message": message,
                "data": {"user": UserSerializer(request.user, context={"request": request}).data},
            },
            status=status.HTTP_200_OK,
        )


class DeletePostView(APIView):
    """Delete one of the current user's posts, with its comments, saves and image."""

    permission_classes = [IsAuthenticated, IsPostOwner]

    @extend_schema(request=None, responses={200: OpenApiTypes.OBJECT, 403: OpenApiTypes.OBJECT})
    def delete(self, request, id):
        post = Post.objects.filter(pk=id).first()
        if post is None:
            return _post_not_found()

        # Raises PermissionDenied (403) for anyone but the author
        self.check_object_permissions(request, post)

        image = post.image
        with transaction.atomic():
            post.saved_by.clear()
            post.comments.all().delete()
            post.delete()

        # The row is gone either way; a leftover file is only logged
        try:
            image.delete(save=False)
        except OSError:
            logger.exception("Failed to delete image %s of post %s", image.name, id)

        logger.info("User %s deleted post %s", request.user.pk, id)
        return Response(
            {"status": "success", "message": "Post deleted successfully"},
            status=status.HTTP_200_OK,
        )


class LikeOrDislikePostView(APIView):
    """Toggle the current user's like on a post."""

    permission_classes = [IsAuthenticated]

    @extend_schema(request=None, responses={200: OpenApiTypes.OBJECT})
    def post(self, request, id):
        post = Post.objects.filter(pk=id).first()
        if post is None:
            return _post_not_found()

        if post.likes.filter(pk=request.user.pk).exists():
            post.likes.remove(request.user)
            is_liked = False
        else:
            post.likes.add(request.user)
            is_liked = True

        return Response(
            {
                "status": "success",
                "message": "Post liked successfully" if is_liked else "Post disliked successfully",
                "data": {"is_liked": is_liked, "likes_count": post.likes.count()},
            },
            status=status.HTTP_200_OK,
        )


class AddCommentView(APIView):
    """Comment on a post."""

    permission_classes = [IsAuthenticated]
    parser_classes = [JSONParser, FormParser, MultiPartParser]
    serializer_class = CommentSerializer

    @extend_schema(request=CommentSerializer, responses={201: CommentSerializer})
    def post(self, request, id):
        post = Post.objects.filter(pk=id).first()
        if post is None:
            return _post_not_found()

        serializer = CommentSerializer(data=request.data, context={"request": request})
        serializer.is_valid(raise_exception=True)
        comment = serializer.save(post=post, user=request.user)

        return Response(
            {
                "status": "success",
                "message": "Comment added successfully",
                "data": {"comment": CommentSerializer(comment, context={"request": request}).data},
            },
            status=status.HTTP_201_CREATED,
        )
