from django.urls import path
from .views import (
    CurrentUserView,
    ProfileDetailView,
    EditProfileView,
    SuggestedUsersView,
    FollowToggleView,
    SearchUsersView,
    UserFollowersView,
    UserFollowingView,
)

urlpatterns = [
    path("me", CurrentUserView.as_view(), name="get_current_user"),
    path("profile/<int:id>", ProfileDetailView.as_view(), name="profile_detail"),
    path("edit-profile", EditProfileView.as_view(), name="edit_profile"),
    path("suggested-user", SuggestedUsersView.as_view(), name="suggested_users"),
    path("follow-unfollow/<int:id>", FollowToggleView.as_view(), name="toggle_follow"),
    path("search-users", SearchUsersView.as_view(), name="search_users"),
    path("followers/<int:id>", UserFollowersView.as_view(), name="user_followers"),
    path("following/<int:id>", UserFollowingView.as_view(), name="user_following"),
]
