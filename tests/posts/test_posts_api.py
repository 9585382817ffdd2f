"""Tests for post, like and comment endpoints."""

from pathlib import Path

import pytest
from httpx import AsyncClient

from tests.conftest import open_session
from uconnect.errors import ServerError
from uconnect.posts.service import get_post, toggle_like

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


async def _create_post(client: AsyncClient, headers: dict, content: str = "hello", category: str = "sports") -> dict:
    response = await client.post("/api/posts", data={"content": content, "category": category}, headers=headers)
    assert response.status_code == 200, response.text
    return response.json()["post"]


class TestCreatePost:
    async def test_text_post(self, client: AsyncClient, make_user):
        alice = await make_user("alice")
        post = await _create_post(client, alice["headers"], "First post", "Sports")
        assert post["content"] == "First post"
        assert post["category"] == "sports"
        assert post["media"] is None
        assert post["like_count"] == 0
        assert post["comment_count"] == 0
        assert post["owner"]["id"] == alice["id"]
        assert post["owner"]["username"] == "alice"

    async def test_default_category(self, client: AsyncClient, make_user):
        alice = await make_user("alice")
        response = await client.post("/api/posts", data={"content": "no category"}, headers=alice["headers"])
        assert response.json()["post"]["category"] == "academics"

    async def test_media_post(self, client: AsyncClient, make_user, uploads_dir: Path):
        alice = await make_user("alice")
        response = await client.post(
            "/api/posts",
            data={"content": "", "category": "clubs"},
            files={"media": ("pic.png", PNG_BYTES, "image/png")},
            headers=alice["headers"],
        )
        assert response.status_code == 200
        media = response.json()["post"]["media"]
        assert media["type"] == "image"
        assert media["url"].startswith("/uploads/")
        assert (uploads_dir / Path(media["url"]).name).exists()

    async def test_video_post(self, client: AsyncClient, make_user):
        alice = await make_user("alice")
        response = await client.post(
            "/api/posts",
            data={"category": "campus event"},
            files={"media": ("clip.mp4", b"\x00" * 32, "video/mp4")},
            headers=alice["headers"],
        )
        assert response.status_code == 200
        assert response.json()["post"]["media"]["type"] == "video"

    async def test_empty_post_rejected(self, client: AsyncClient, make_user):
        alice = await make_user("alice")
        response = await client.post("/api/posts", data={"content": "   "}, headers=alice["headers"])
        assert response.status_code == 400
        assert response.json()["detail"] == "Post cannot be empty"

    async def test_invalid_category_rejected(self, client: AsyncClient, make_user):
        alice = await make_user("alice")
        response = await client.post(
            "/api/posts", data={"content": "x", "category": "memes"}, headers=alice["headers"]
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid category"

    async def test_unsupported_media_rejected(self, client: AsyncClient, make_user, uploads_dir: Path):
        alice = await make_user("alice")
        response = await client.post(
            "/api/posts",
            data={"content": "x"},
            files={"media": ("notes.pdf", b"%PDF-1.4", "application/pdf")},
            headers=alice["headers"],
        )
        assert response.status_code == 400
        assert response.json()["code"] == "unsupported_media"
        assert not any(p.is_file() for p in uploads_dir.iterdir())

    async def test_failed_create_quarantines_upload(
        self, client: AsyncClient, make_user, uploads_dir: Path, monkeypatch: pytest.MonkeyPatch
    ):
        alice = await make_user("alice")

        async def _fail(*args, **kwargs):
            raise ServerError

        monkeypatch.setattr("uconnect.posts.router.create_post", _fail)
        response = await client.post(
            "/api/posts",
            data={"content": "x"},
            files={"media": ("pic.png", PNG_BYTES, "image/png")},
            headers=alice["headers"],
        )
        assert response.status_code == 500
        assert not any(p.is_file() for p in uploads_dir.iterdir())
        assert len(list((uploads_dir / "deleted").iterdir())) == 1

    async def test_requires_auth(self, client: AsyncClient):
        response = await client.post("/api/posts", data={"content": "x"})
        assert response.status_code == 401


class TestFeed:
    async def test_feed_newest_first(self, client: AsyncClient, make_user):
        alice = await make_user("alice")
        first = await _create_post(client, alice["headers"], "one")
        second = await _create_post(client, alice["headers"], "two")
        response = await client.get("/api/posts", headers=alice["headers"])
        assert response.status_code == 200
        ids = [p["id"] for p in response.json()["posts"]]
        assert ids == [second["id"], first["id"]]

    async def test_feed_category_filter(self, client: AsyncClient, make_user):
        alice = await make_user("alice")
        await _create_post(client, alice["headers"], "game", "sports")
        await _create_post(client, alice["headers"], "lecture", "academics")

        sports = (await client.get("/api/posts", params={"category": "sports"}, headers=alice["headers"])).json()
        assert [p["content"] for p in sports["posts"]] == ["game"]

        everything = (await client.get("/api/posts", params={"category": "foru"}, headers=alice["headers"])).json()
        assert len(everything["posts"]) == 2

    async def test_posts_by_user(self, client: AsyncClient, make_user):
        alice = await make_user("alice")
        bob = await make_user("bob")
        await _create_post(client, alice["headers"], "from alice")
        await _create_post(client, bob["headers"], "from bob")

        response = await client.get(f"/api/posts/user/{bob['id']}", headers=alice["headers"])
        assert [p["content"] for p in response.json()["posts"]] == ["from bob"]

    async def test_feed_requires_auth(self, client: AsyncClient):
        response = await client.get("/api/posts")
        assert response.status_code == 401
        assert response.json()["code"] == "token_missing"


class TestLikes:
    async def test_toggle_like(self, client: AsyncClient, make_user):
        alice = await make_user("alice")
        bob = await make_user("bob")
        post = await _create_post(client, alice["headers"])

        liked = await client.post(f"/api/posts/{post['id']}/like", headers=bob["headers"])
        assert liked.json() == {"ok": True, "likes": 1, "liked": True}

        feed = (await client.get("/api/posts", headers=bob["headers"])).json()["posts"]
        assert feed[0]["liked_by_me"] is True
        assert feed[0]["like_count"] == 1

        unliked = await client.post(f"/api/posts/{post['id']}/like", headers=bob["headers"])
        assert unliked.json() == {"ok": True, "likes": 0, "liked": False}

    async def test_likes_from_two_accounts(self, client: AsyncClient, make_user):
        alice = await make_user("alice")
        bob = await make_user("bob")
        post = await _create_post(client, alice["headers"])
        await client.post(f"/api/posts/{post['id']}/like", headers=alice["headers"])
        response = await client.post(f"/api/posts/{post['id']}/like", headers=bob["headers"])
        assert response.json()["likes"] == 2

    async def test_like_unknown_post(self, client: AsyncClient, make_user):
        alice = await make_user("alice")
        response = await client.post("/api/posts/does-not-exist/like", headers=alice["headers"])
        assert response.status_code == 404
        assert response.json()["detail"] == "Post not found"

    async def test_concurrent_duplicate_like_keeps_one(self, client: AsyncClient, make_user):
        alice = await make_user("alice")
        post = await _create_post(client, alice["headers"])

        async with open_session() as stale, open_session() as other:
            stale_post = await get_post(stale, post["id"])
            assert stale_post.like_count == 0
            await toggle_like(other, post["id"], alice["id"])
            await other.commit()

            likes, liked = await toggle_like(stale, post["id"], alice["id"])

        assert (likes, liked) == (1, True)

    async def test_deleted_account_token_cannot_like_or_comment(self, client: AsyncClient, make_user):
        alice = await make_user("alice")
        bob = await make_user("bob")
        post = await _create_post(client, bob["headers"])
        deleted = await client.delete("/api/auth/delete-account", headers=alice["headers"])
        assert deleted.status_code == 200
        client.cookies.clear()

        like = await client.post(f"/api/posts/{post['id']}/like", headers=alice["headers"])
        comment = await client.post(
            f"/api/posts/{post['id']}/comments", json={"body": "still here"}, headers=alice["headers"]
        )
        assert like.status_code == 404
        assert comment.status_code == 404

        async with open_session() as session:
            fresh = await get_post(session, post["id"])
            assert fresh.like_count == 0
            assert fresh.comments == []


class TestComments:
    async def test_add_and_list_comments(self, client: AsyncClient, make_user):
        alice = await make_user("alice")
        bob = await make_user("bob")
        post = await _create_post(client, alice["headers"])

        first = await client.post(f"/api/posts/{post['id']}/comments", json={"body": "nice"}, headers=bob["headers"])
        assert first.status_code == 200
        assert first.json()["comments"] == 1
        second = await client.post(
            f"/api/posts/{post['id']}/comments", json={"body": "thanks"}, headers=alice["headers"]
        )
        assert second.json()["comments"] == 2

        listing = (await client.get(f"/api/posts/{post['id']}/comments", headers=alice["headers"])).json()
        assert [c["body"] for c in listing["comments"]] == ["nice", "thanks"]
        assert listing["comments"][0]["author"]["username"] == "bob"
        assert listing["comments"][0]["id"] == first.json()["comment_id"]

    async def test_empty_comment_rejected(self, client: AsyncClient, make_user):
        alice = await make_user("alice")
        post = await _create_post(client, alice["headers"])
        response = await client.post(f"/api/posts/{post['id']}/comments", json={"body": "  "}, headers=alice["headers"])
        assert response.status_code == 400
        assert response.json()["detail"] == "Empty comment"

    async def test_author_deletes_comment(self, client: AsyncClient, make_user):
        alice = await make_user("alice")
        bob = await make_user("bob")
        post = await _create_post(client, alice["headers"])
        added = await client.post(f"/api/posts/{post['id']}/comments", json={"body": "hi"}, headers=bob["headers"])
        comment_id = added.json()["comment_id"]

        response = await client.delete(f"/api/posts/{post['id']}/comments/{comment_id}", headers=bob["headers"])
        assert response.status_code == 200
        listing = (await client.get(f"/api/posts/{post['id']}/comments", headers=bob["headers"])).json()
        assert listing["comments"] == []

    async def test_other_user_cannot_delete_comment(self, client: AsyncClient, make_user):
        alice = await make_user("alice")
        bob = await make_user("bob")
        post = await _create_post(client, alice["headers"])
        added = await client.post(f"/api/posts/{post['id']}/comments", json={"body": "hi"}, headers=bob["headers"])

        response = await client.delete(
            f"/api/posts/{post['id']}/comments/{added.json()['comment_id']}", headers=alice["headers"]
        )
        assert response.status_code == 403

    async def test_admin_deletes_any_comment(self, client: AsyncClient, make_user, admin_headers):
        alice = await make_user("alice")
        post = await _create_post(client, alice["headers"])
        added = await client.post(f"/api/posts/{post['id']}/comments", json={"body": "hi"}, headers=alice["headers"])

        response = await client.delete(
            f"/api/posts/{post['id']}/comments/{added.json()['comment_id']}", headers=admin_headers
        )
        assert response.status_code == 200

    async def test_unknown_comment(self, client: AsyncClient, make_user):
        alice = await make_user("alice")
        post = await _create_post(client, alice["headers"])
        response = await client.delete(f"/api/posts/{post['id']}/comments/nope", headers=alice["headers"])
        assert response.status_code == 404
        assert response.json()["detail"] == "Comment not found"


class TestDeletePost:
    async def test_owner_deletes_post_and_media_is_quarantined(
        self, client: AsyncClient, make_user, uploads_dir: Path
    ):
        alice = await make_user("alice")
        created = await client.post(
            "/api/posts",
            data={"content": "with media"},
            files={"media": ("pic.png", PNG_BYTES, "image/png")},
            headers=alice["headers"],
        )
        post = created.json()["post"]
        filename = Path(post["media"]["url"]).name
        await client.post(f"/api/posts/{post['id']}/like", headers=alice["headers"])
        await client.post(f"/api/posts/{post['id']}/comments", json={"body": "mine"}, headers=alice["headers"])

        response = await client.delete(f"/api/posts/{post['id']}", headers=alice["headers"])
        assert response.status_code == 200
        assert response.json() == {"ok": True, "message": "Post deleted"}

        assert not (uploads_dir / filename).exists()
        assert (uploads_dir / "deleted" / filename).read_bytes() == PNG_BYTES
        feed = (await client.get("/api/posts", headers=alice["headers"])).json()["posts"]
        assert feed == []

    async def test_missing_media_file_does_not_fail_delete(
        self, client: AsyncClient, make_user, uploads_dir: Path
    ):
        alice = await make_user("alice")
        created = await client.post(
            "/api/posts",
            data={"content": "with media"},
            files={"media": ("pic.png", PNG_BYTES, "image/png")},
            headers=alice["headers"],
        )
        post = created.json()["post"]
        (uploads_dir / Path(post["media"]["url"]).name).unlink()

        response = await client.delete(f"/api/posts/{post['id']}", headers=alice["headers"])
        assert response.status_code == 200

    async def test_non_owner_cannot_delete(self, client: AsyncClient, make_user):
        alice = await make_user("alice")
        bob = await make_user("bob")
        post = await _create_post(client, alice["headers"])
        response = await client.delete(f"/api/posts/{post['id']}", headers=bob["headers"])
        assert response.status_code == 403

    async def test_admin_deletes_any_post(self, client: AsyncClient, make_user, admin_headers):
        alice = await make_user("alice")
        post = await _create_post(client, alice["headers"])
        response = await client.delete(f"/api/posts/{post['id']}", headers=admin_headers)
        assert response.status_code == 200

    async def test_unknown_post(self, client: AsyncClient, make_user):
        alice = await make_user("alice")
        response = await client.delete("/api/posts/nope", headers=alice["headers"])
        assert response.status_code == 404
