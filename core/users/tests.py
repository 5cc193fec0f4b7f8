from io import BytesIO

from django.contrib.auth.models import User
from django.core.files.uploadedfile import SimpleUploadedFile
from django.db import IntegrityError, transaction
from django.urls import reverse
from PIL import Image
from rest_framework import status
from rest_framework.test import APITestCase

from posts.models import Post
from .models import UserFollow, UserProfile


class UserProfileSignalTests(APITestCase):
    def test_profile_is_created_with_user(self):
        user = User.objects.create_user(username="alice", password="password")

        self.assertIsInstance(user.profile, UserProfile)
        self.assertFalse(user.profile.is_verified)
        self.assertEqual(user.profile.bio, "")


class CurrentUserTests(APITestCase):
    def setUp(self):
        self.user = User.objects.create_user(
            username="alice", email="alice@example.com", password="password"
        )

    def test_me_returns_sanitized_user(self):
        self.client.force_authenticate(user=self.user)

        response = self.client.get(reverse("get_current_user"))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        data = response.data["data"]["user"]
        self.assertEqual(data["email"], "alice@example.com")
        self.assertNotIn("password", data)
        self.assertEqual(data["followers"], [])
        self.assertEqual(data["posts"], [])

    def test_me_requires_authentication(self):
        response = self.client.get(reverse("get_current_user"))

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class FollowToggleTests(APITestCase):
    def setUp(self):
        self.alice = User.objects.create_user(username="alice", password="password")
        self.bob = User.objects.create_user(username="bob", password="password")
        self.client.force_authenticate(user=self.alice)

    def test_follow_updates_both_sides(self):
        response = self.client.post(reverse("toggle_follow", args=[self.bob.id]))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["message"], "Followed successfully")
        self.assertEqual(response.data["data"]["user"]["following"], [self.bob.id])
        self.assertTrue(response.data["data"]["is_following"])
        self.assertEqual(response.data["data"]["follower_count"], 1)

        # Both sides read from the same edge
        self.assertEqual(
            list(self.bob.followers.values_list("follower_id", flat=True)), [self.alice.id]
        )
        self.assertEqual(
            list(self.alice.following.values_list("following_id", flat=True)), [self.bob.id]
        )

    def test_unfollow_removes_both_sides(self):
        self.client.post(reverse("toggle_follow", args=[self.bob.id]))

        response = self.client.post(reverse("toggle_follow", args=[self.bob.id]))

        self.assertEqual(response.data["message"], "Unfollowed successfully")
        self.assertEqual(response.data["data"]["user"]["following"], [])
        self.assertFalse(UserFollow.objects.exists())

    def test_cannot_follow_self(self):
        response = self.client.post(reverse("toggle_follow", args=[self.alice.id]))

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["message"], "You cannot follow/unfollow yourself")
        self.assertFalse(UserFollow.objects.exists())

    def test_follow_unknown_user(self):
        response = self.client.post(reverse("toggle_follow", args=[999999]))

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data["message"], "User not found")

    def test_database_rejects_self_follow(self):
        with self.assertRaises(IntegrityError), transaction.atomic():
            UserFollow.objects.create(follower=self.alice, following=self.alice)

    def test_follower_and_following_lists(self):
        UserFollow.objects.create(follower=self.alice, following=self.bob)

        followers = self.client.get(reverse("user_followers", args=[self.bob.id]))
        following = self.client.get(reverse("user_following", args=[self.alice.id]))

        self.assertEqual([u["username"] for u in followers.data["data"]["users"]], ["alice"])
        self.assertEqual([u["username"] for u in following.data["data"]["users"]], ["bob"])


class ProfileTests(APITestCase):
    def setUp(self):
        self.alice = User.objects.create_user(username="alice", password="password")
        self.bob = User.objects.create_user(username="bob", password="password")
        self.post = Post.objects.create(
            user=self.alice,
            caption="hello",
            image=SimpleUploadedFile("seed.jpg", b"seed", content_type="image/jpeg"),
        )
        self.post.saved_by.add(self.alice)

    def test_profile_expands_posts(self):
        response = self.client.get(reverse("profile_detail", args=[self.alice.id]))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        data = response.data["data"]["user"]
        self.assertEqual(data["username"], "alice")
        self.assertEqual(data["posts"][0]["caption"], "hello")
        self.assertEqual(data["saved_posts"][0]["id"], self.post.id)

    def test_unknown_profile(self):
        response = self.client.get(reverse("profile_detail", args=[999999]))

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data["message"], "User not found")

    def test_edit_profile_bio_and_picture(self):
        buffer = BytesIO()
        Image.new("RGB", (1200, 1200), color="blue").save(buffer, format="PNG")
        picture = SimpleUploadedFile("me.png", buffer.getvalue(), content_type="image/png")
        self.client.force_authenticate(user=self.bob)

        response = self.client.post(
            reverse("edit_profile"),
            {"bio": "  Street photographer  ", "profilePicture": picture},
            format="multipart",
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.bob.profile.refresh_from_db()
        self.assertEqual(self.bob.profile.bio, "Street photographer")
        self.assertTrue(self.bob.profile.avatar.name.startswith("avatars/"))
        self.assertTrue(self.bob.profile.avatar.name.endswith(".jpg"))
        self.assertEqual(response.data["data"]["user"]["bio"], "Street photographer")
        self.assertIsNotNone(response.data["data"]["user"]["profile_picture"])

    def test_bio_length_is_limited(self):
        self.client.force_authenticate(user=self.bob)

        response = self.client.post(
            reverse("edit_profile"), {"bio": "x" * 501}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class SearchAndSuggestionTests(APITestCase):
    def setUp(self):
        self.alice = User.objects.create_user(username="alice", password="password")
        self.alicia = User.objects.create_user(username="Alicia", password="password")
        self.bob = User.objects.create_user(username="bob", password="password")
        self.client.force_authenticate(user=self.alice)

    def test_search_is_case_insensitive_and_excludes_caller(self):
        response = self.client.get(reverse("search_users"), {"query": "ALI"})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        usernames = [u["username"] for u in response.data["data"]["users"]]
        self.assertEqual(usernames, ["Alicia"])

    def test_empty_search_query(self):
        response = self.client.get(reverse("search_users"), {"query": "  "})

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["message"], "Search query cannot be empty")

    def test_suggested_users_exclude_caller(self):
        UserFollow.objects.create(follower=self.alice, following=self.bob)

        response = self.client.get(reverse("suggested_users"))

        users = {u["username"]: u for u in response.data["data"]["users"]}
        self.assertEqual(set(users), {"Alicia", "bob"})
        self.assertTrue(users["bob"]["is_following"])
        self.assertFalse(users["Alicia"]["is_following"])
