from rest_framework.permissions import BasePermission


class IsPostOwner(BasePermission):
    """
    Object-level permission: only the author may modify or delete a post.
    """

    message = "You are not authorized to delete this post"

    def has_object_permission(self, request, _view, obj):
        return bool(
            request.user
            and request.user.is_authenticated
            and obj.user_id == request.user.pk
        )
