from django.urls import path
from .views import (
    CreatePostView,
    AllPostsView,
    UserPostsView,
    SaveOrUnsavePostView,
    DeletePostView,
    LikeOrDislikePostView,
    AddCommentView,
)

urlpatterns = [
    path("create-post", CreatePostView.as_view(), name="create_post"),
    path("all", AllPostsView.as_view(), name="all_posts"),
    path("user-post/<int:id>", UserPostsView.as_view(), name="user_posts"),
    path(
        "save-unsave-post/<int:post_id>",
        SaveOrUnsavePostView.as_view(),
        name="save_unsave_post",
    ),
    path("delete-post/<int:id>", DeletePostView.as_view(), name="delete_post"),
    path("like-dislike/<int:id>", LikeOrDislikePostView.as_view(), name="like_dislike_post"),
    path("comment/<int:id>", AddCommentView.as_view(), name="add_comment"),
]
