"""
Integration tests for the HTTP API.

The app runs in-process through FastAPI's TestClient with its lifespan,
so every request goes through the real routes, dependencies and error
handlers over a temporary SQLite database.
"""

import pytest
from fastapi.testclient import TestClient

from backend.flock_server.api import ApiSettings, create_app
from backend.flock_server.media import InMemoryObjectStorage

API = "/api/v1"


@pytest.fixture
def client(config, clock):
    app = create_app(
        config=config,
        storage=InMemoryObjectStorage(),
        settings=ApiSettings(),
        clock=clock,
    )
    with TestClient(app) as test_client:
        yield test_client


def register(client, handle: str) -> tuple[str, str]:
    """Register ``handle`` and return (user_id, token) without keeping the cookie."""
    response = client.post(
        f"{API}/user/register",
        json={
            "name": handle.capitalize(),
            "username": handle,
            "email": f"{handle}@example.com",
            "password": "secret-pw",
        },
    )
    assert response.status_code == 201
    token = response.cookies["token"]
    client.cookies.clear()
    return response.json()["user"]["id"], token


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


class TestAccountsApi:
    """Tests for /user account routes."""

    def test_ping(self, client):
        response = client.get(f"{API}/ping")

        assert response.status_code == 200
        assert response.json()["message"] == "Server is awake!"

    def test_register_sets_cookie(self, client):
        """Registration returns the public user and a credential cookie."""
        response = client.post(
            f"{API}/user/register",
            json={
                "name": "Alice",
                "username": "alice",
                "email": "alice@example.com",
                "password": "secret-pw",
            },
        )

        body = response.json()
        assert response.status_code == 201
        assert body["success"] is True
        assert body["user"]["username"] == "alice"
        assert "password" not in body["user"]
        assert "token" in response.cookies

        me = client.get(f"{API}/user/me")
        assert me.status_code == 200
        assert me.json()["user"]["id"] == body["user"]["id"]

    def test_duplicate_registration_conflicts(self, client):
        register(client, "alice")

        response = client.post(
            f"{API}/user/register",
            json={
                "name": "Other",
                "username": "alice",
                "email": "other@example.com",
                "password": "pw",
            },
        )

        assert response.status_code == 409
        assert response.json() == {
            "success": False,
            "error": "User already exists.",
            "error_code": "CONFLICT",
        }

    def test_missing_fields(self, client):
        """Blank registration fields are a 400."""
        response = client.post(f"{API}/user/register", json={"username": "alice"})

        assert response.status_code == 400
        assert response.json()["error_code"] == "VALIDATION_ERROR"

    def test_login(self, client):
        """Login by username works; a wrong password is a generic 401."""
        register(client, "alice")

        good = client.post(
            f"{API}/user/login", json={"identifier": "alice", "password": "secret-pw"}
        )
        bad = client.post(
            f"{API}/user/login", json={"identifier": "alice", "password": "nope"}
        )

        assert good.status_code == 201
        assert "token" in good.cookies
        assert bad.status_code == 401
        assert bad.json()["error"] == "Incorrect email, username, or password"

    def test_unauthenticated(self, client):
        response = client.get(f"{API}/user/me")

        assert response.status_code == 401
        assert response.json()["error_code"] == "UNAUTHENTICATED"

    def test_garbage_token(self, client):
        response = client.get(f"{API}/user/me", headers=bearer("not-a-token"))

        assert response.status_code == 401

    def test_edit_profile_multipart(self, client):
        """Profile edits accept form fields and image files."""
        _, token = register(client, "alice")

        response = client.post(
            f"{API}/user/profile/edit",
            data={"bio": "hello"},
            files={"profileImg": ("me.png", b"png-bytes", "image/png")},
            headers=bearer(token),
        )

        user = response.json()["user"]
        assert response.status_code == 200
        assert user["bio"] == "hello"
        assert user["name"] == "Alice"
        assert user["profileImg"].endswith(".png")


class TestSocialApi:
    """Follow, like and notification flows over HTTP."""

    def test_follow_like_notifications(self, client):
        """Alice's notifications reflect Bob's follow and like."""
        alice, alice_token = register(client, "alice")
        bob, bob_token = register(client, "bob")

        created = client.post(
            f"{API}/tweet/create", data={"description": "hello"}, headers=bearer(alice_token)
        )
        post_id = created.json()["tweet"]["id"]

        follow = client.post(f"{API}/user/follow/{alice}", headers=bearer(bob_token))
        like = client.put(f"{API}/tweet/like/{post_id}", headers=bearer(bob_token))

        assert follow.status_code == 200
        assert follow.json()["message"] == "Bob just followed Alice"
        assert like.json()["liked"] is True
        assert like.json()["tweet"]["like"] == [bob]

        unread = client.get(f"{API}/notifications/unread-count", headers=bearer(alice_token))
        assert unread.json()["count"] == 2

        listed = client.get(f"{API}/notifications", headers=bearer(alice_token))
        notifications = listed.json()["notifications"]
        assert [n["type"] for n in notifications] == ["like", "follow"]
        assert notifications[0]["fromUser"]["username"] == "bob"

        unread = client.get(f"{API}/notifications/unread-count", headers=bearer(alice_token))
        assert unread.json()["count"] == 0

        feed = client.get(f"{API}/tweet/alltweets/{bob}", headers=bearer(bob_token))
        assert [t["id"] for t in feed.json()["tweets"]] == [post_id]

    def test_self_follow(self, client):
        alice, token = register(client, "alice")

        response = client.post(f"{API}/user/follow/{alice}", headers=bearer(token))

        assert response.status_code == 409
        assert response.json()["error_code"] == "SELF_REFERENCE"

    def test_double_follow(self, client):
        """Following twice is a 409; unfollowing twice as well."""
        alice, _ = register(client, "alice")
        _, bob_token = register(client, "bob")

        client.post(f"{API}/user/follow/{alice}", headers=bearer(bob_token))
        again = client.post(f"{API}/user/follow/{alice}", headers=bearer(bob_token))
        client.post(f"{API}/user/unfollow/{alice}", headers=bearer(bob_token))
        unfollow_again = client.post(f"{API}/user/unfollow/{alice}", headers=bearer(bob_token))

        assert again.status_code == 409
        assert again.json()["error"] == "User already followed Alice"
        assert unfollow_again.status_code == 409

    def test_clear_notifications(self, client):
        alice, alice_token = register(client, "alice")
        _, bob_token = register(client, "bob")
        client.post(f"{API}/user/follow/{alice}", headers=bearer(bob_token))

        cleared = client.delete(f"{API}/notifications/clear", headers=bearer(alice_token))
        listed = client.get(f"{API}/notifications", headers=bearer(alice_token))

        assert cleared.status_code == 200
        assert listed.json()["notifications"] == []


class TestTweetsApi:
    """Post lifecycle over HTTP."""

    def test_create_with_image(self, client):
        """The image is stored and its URL returned on the post."""
        _, token = register(client, "alice")

        response = client.post(
            f"{API}/tweet/create",
            data={"description": "look"},
            files={"image": ("pic.jpg", b"jpeg-bytes", "image/jpeg")},
            headers=bearer(token),
        )

        tweet = response.json()["tweet"]
        assert response.status_code == 201
        assert tweet["image"].endswith(".jpg")
        assert tweet["userId"]["username"] == "alice"

    def test_create_without_description(self, client):
        _, token = register(client, "alice")

        response = client.post(
            f"{API}/tweet/create", data={"description": ""}, headers=bearer(token)
        )

        assert response.status_code == 400

    def test_edit_and_delete_authorization(self, client):
        """Only the author may edit or delete a post."""
        _, alice_token = register(client, "alice")
        _, bob_token = register(client, "bob")
        created = client.post(
            f"{API}/tweet/create", data={"description": "mine"}, headers=bearer(alice_token)
        )
        post_id = created.json()["tweet"]["id"]

        edit = client.put(
            f"{API}/tweet/edit/{post_id}", json={"description": "x"}, headers=bearer(bob_token)
        )
        delete = client.delete(f"{API}/tweet/delete/{post_id}", headers=bearer(bob_token))
        own_edit = client.put(
            f"{API}/tweet/edit/{post_id}",
            json={"description": "edited"},
            headers=bearer(alice_token),
        )

        assert edit.status_code == 403
        assert delete.status_code == 403
        assert own_edit.json()["tweet"]["isEdited"] is True

        deleted = client.delete(f"{API}/tweet/delete/{post_id}", headers=bearer(alice_token))
        fetched = client.get(f"{API}/tweet/{post_id}", headers=bearer(alice_token))

        assert deleted.status_code == 200
        assert fetched.status_code == 404
        assert fetched.json()["error"] == "Tweet not found."

    def test_comment_and_retweet(self, client):
        alice, alice_token = register(client, "alice")
        _, bob_token = register(client, "bob")
        created = client.post(
            f"{API}/tweet/create", data={"description": "hi"}, headers=bearer(alice_token)
        )
        post_id = created.json()["tweet"]["id"]

        comment = client.post(
            f"{API}/tweet/comment/{post_id}", json={"comment": "hey"}, headers=bearer(bob_token)
        )
        empty = client.post(
            f"{API}/tweet/comment/{post_id}", json={"comment": " "}, headers=bearer(bob_token)
        )
        retweet = client.post(f"{API}/tweet/retweet/{post_id}", headers=bearer(bob_token))

        assert comment.status_code == 201
        assert comment.json()["tweet"]["comments"][0]["userId"]["username"] == "bob"
        assert empty.status_code == 400
        assert retweet.json()["retweeted"] is True

        user_feed = client.get(f"{API}/tweet/user/{alice}", headers=bearer(bob_token))
        assert [t["id"] for t in user_feed.json()["tweets"]] == [post_id]

    def test_bookmarks(self, client):
        _, alice_token = register(client, "alice")
        _, bob_token = register(client, "bob")
        created = client.post(
            f"{API}/tweet/create", data={"description": "save me"}, headers=bearer(alice_token)
        )
        post_id = created.json()["tweet"]["id"]

        toggled = client.put(f"{API}/user/bookmark/{post_id}", headers=bearer(bob_token))
        listed = client.get(f"{API}/user/bookmarks", headers=bearer(bob_token))

        assert toggled.json()["bookmarked"] is True
        assert [t["id"] for t in listed.json()["bookmarks"]] == [post_id]

    def test_unknown_tweet(self, client):
        _, token = register(client, "alice")

        response = client.put(f"{API}/tweet/like/missing", headers=bearer(token))

        assert response.status_code == 404
        assert response.json()["error_code"] == "NOT_FOUND"


class TestAccountDeletionApi:
    """Account deletion over HTTP."""

    def test_cannot_delete_other_account(self, client):
        alice, _ = register(client, "alice")
        _, bob_token = register(client, "bob")

        response = client.delete(f"{API}/user/delete/{alice}", headers=bearer(bob_token))

        assert response.status_code == 403

    def test_delete_own_account(self, client):
        """Deletion succeeds once and the credential stops working."""
        alice, token = register(client, "alice")

        response = client.delete(f"{API}/user/delete/{alice}", headers=bearer(token))
        me = client.get(f"{API}/user/me", headers=bearer(token))

        assert response.status_code == 200
        assert response.json()["message"] == "User alice has been successfully deleted."
        assert me.status_code == 401
