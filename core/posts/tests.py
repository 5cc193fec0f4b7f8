from io import BytesIO

from django.contrib.auth.models import User
from django.core.cache import cache
from django.core.files.storage import default_storage
from django.core.files.uploadedfile import SimpleUploadedFile
from django.db import connection
from django.test.utils import CaptureQueriesContext
from django.urls import reverse
from PIL import Image
from rest_framework import status
from rest_framework.test import APITestCase

from .models import Comment, Post


def make_image(name="photo.png", size=(1600, 1200), mode="RGBA", fmt="PNG"):
    buffer = BytesIO()
    Image.new(mode, size, color=(200, 30, 90, 255) if mode == "RGBA" else "red").save(
        buffer, format=fmt
    )
    return SimpleUploadedFile(name, buffer.getvalue(), content_type=f"image/{fmt.lower()}")


def create_post(user, caption=""):
    return Post.objects.create(
        user=user,
        caption=caption,
        image=SimpleUploadedFile("seed.jpg", b"seed", content_type="image/jpeg"),
    )


class CreatePostTests(APITestCase):
    def setUp(self):
        cache.clear()
        self.user = User.objects.create_user(
            username="alice", email="alice@example.com", password="password"
        )
        self.client.force_authenticate(user=self.user)
        self.url = reverse("create_post")

    def test_create_post_optimizes_image(self):
        response = self.client.post(
            self.url,
            {"caption": "  Sunset  ", "image": make_image()},
            format="multipart",
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["message"], "Post Created")

        post = Post.objects.get()
        self.assertEqual(post.caption, "Sunset")
        self.assertEqual(post.user, self.user)
        self.assertTrue(post.image.name.endswith(".jpg"))

        with default_storage.open(post.image.name) as stored:
            image = Image.open(stored)
            self.assertEqual(image.format, "JPEG")
            self.assertLessEqual(max(image.size), 800)
            self.assertEqual(image.size, (800, 600))

        data = response.data["data"]["post"]
        self.assertEqual(data["user"]["username"], "alice")
        self.assertTrue(data["image_url"].startswith("http://testserver/media/"))
        self.assertEqual(data["likes_count"], 0)
        self.assertEqual(data["comments"], [])

    def test_image_is_required(self):
        response = self.client.post(self.url, {"caption": "No photo"}, format="multipart")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["message"], "Image is required for the post")
        self.assertFalse(Post.objects.exists())

    def test_non_image_upload_is_rejected(self):
        upload = SimpleUploadedFile("notes.txt", b"plain text", content_type="text/plain")

        response = self.client.post(self.url, {"image": upload}, format="multipart")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(Post.objects.exists())

    def test_anonymous_cannot_post(self):
        self.client.force_authenticate(user=None)

        response = self.client.post(self.url, {"image": make_image()}, format="multipart")

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class PostListTests(APITestCase):
    def setUp(self):
        self.alice = User.objects.create_user(username="alice", password="password")
        self.bob = User.objects.create_user(username="bob", password="password")
        self.first = create_post(self.alice, "first")
        self.second = create_post(self.bob, "second")
        self.third = create_post(self.alice, "third")

    def test_all_posts_newest_first(self):
        response = self.client.get(reverse("all_posts"))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["results"], 3)
        ids = [post["id"] for post in response.data["data"]["posts"]]
        self.assertEqual(ids, [self.third.id, self.second.id, self.first.id])

    def test_user_posts(self):
        response = self.client.get(reverse("user_posts", args=[self.alice.id]))

        ids = [post["id"] for post in response.data["data"]["posts"]]
        self.assertEqual(ids, [self.third.id, self.first.id])

    def test_saved_flag_does_not_query_per_post(self):
        self.client.force_authenticate(user=self.bob)
        self.first.saved_by.add(self.bob)

        with CaptureQueriesContext(connection) as few:
            response = self.client.get(reverse("all_posts"))
        saved = {post["id"]: post["is_saved"] for post in response.data["data"]["posts"]}
        self.assertEqual(
            saved, {self.first.id: True, self.second.id: False, self.third.id: False}
        )

        for caption in ("fourth", "fifth", "sixth"):
            create_post(self.alice, caption).saved_by.add(self.bob)

        with CaptureQueriesContext(connection) as many:
            response = self.client.get(reverse("all_posts"))
        self.assertEqual(response.data["results"], 6)
        self.assertEqual(len(many), len(few))

    def test_user_posts_for_unknown_user_is_empty(self):
        response = self.client.get(reverse("user_posts", args=[999999]))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["data"]["posts"], [])


class LikeAndSaveTests(APITestCase):
    def setUp(self):
        self.author = User.objects.create_user(username="alice", password="password")
        self.reader = User.objects.create_user(username="bob", password="password")
        self.post = create_post(self.author)
        self.client.force_authenticate(user=self.reader)

    def test_like_toggles(self):
        url = reverse("like_dislike_post", args=[self.post.id])

        liked = self.client.post(url)
        self.assertEqual(liked.status_code, status.HTTP_200_OK)
        self.assertEqual(liked.data["message"], "Post liked successfully")
        self.assertTrue(liked.data["data"]["is_liked"])
        self.assertEqual(liked.data["data"]["likes_count"], 1)

        disliked = self.client.post(url)
        self.assertEqual(disliked.data["message"], "Post disliked successfully")
        self.assertFalse(disliked.data["data"]["is_liked"])
        self.assertEqual(self.post.likes.count(), 0)

    def test_like_unknown_post(self):
        response = self.client.post(reverse("like_dislike_post", args=[999999]))

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data["message"], "Post not found")

    def test_save_toggles(self):
        url = reverse("save_unsave_post", args=[self.post.id])

        saved = self.client.post(url)
        self.assertEqual(saved.data["message"], "Post saved successfully")
        self.assertEqual(saved.data["data"]["user"]["saved_posts"], [self.post.id])

        unsaved = self.client.post(url)
        self.assertEqual(unsaved.data["message"], "Post unsaved successfully")
        self.assertEqual(unsaved.data["data"]["user"]["saved_posts"], [])


class CommentTests(APITestCase):
    def setUp(self):
        self.author = User.objects.create_user(username="alice", password="password")
        self.reader = User.objects.create_user(username="bob", password="password")
        self.post = create_post(self.author)
        self.client.force_authenticate(user=self.reader)
        self.url = reverse("add_comment", args=[self.post.id])

    def test_add_comment(self):
        response = self.client.post(self.url, {"text": "  Nice shot  "}, format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["data"]["comment"]["text"], "Nice shot")
        self.assertEqual(response.data["data"]["comment"]["user"]["username"], "bob")

        posts = self.client.get(reverse("all_posts")).data["data"]["posts"]
        self.assertEqual(posts[0]["comments"][0]["text"], "Nice shot")

    def test_blank_comment_is_rejected(self):
        response = self.client.post(self.url, {"text": "   "}, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["message"], "Comment text is required")
        self.assertFalse(Comment.objects.exists())

    def test_comment_on_unknown_post(self):
        response = self.client.post(
            reverse("add_comment", args=[999999]), {"text": "hello"}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class DeletePostTests(APITestCase):
    def setUp(self):
        self.author = User.objects.create_user(username="alice", password="password")
        self.other = User.objects.create_user(username="bob", password="password")
        self.post = create_post(self.author)
        self.post.saved_by.add(self.other)
        Comment.objects.create(post=self.post, user=self.other, text="wow")

    def test_author_deletes_post_with_comments_and_saves(self):
        image_name = self.post.image.name
        self.client.force_authenticate(user=self.author)

        response = self.client.delete(reverse("delete_post", args=[self.post.id]))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["message"], "Post deleted successfully")
        self.assertFalse(Post.objects.exists())
        self.assertFalse(Comment.objects.exists())
        self.assertFalse(self.other.saved_posts.exists())
        self.assertFalse(default_storage.exists(image_name))

    def test_non_author_is_forbidden(self):
        self.client.force_authenticate(user=self.other)

        response = self.client.delete(reverse("delete_post", args=[self.post.id]))

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(
            response.data["message"], "You are not authorized to delete this post"
        )
        self.assertTrue(Post.objects.filter(pk=self.post.pk).exists())

    def test_unknown_post(self):
        self.client.force_authenticate(user=self.author)

        response = self.client.delete(reverse("delete_post", args=[999999]))

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
