"""
Unit tests for the feed composer.

Tests cover:
- personal feed membership (followees, retweets) and ordering
- following feed ordering unaffected by retweets
- author and public feeds
- bookmarks ordering and dangling-reference filtering
- author projections on posts and comments
"""

import pytest

from backend.flock_server.errors import NotFoundError
from backend.flock_server.models import EdgeType


def ids(views):
    return [view.post_id for view in views]


class TestPersonalFeed:
    """Tests for FeedComposer.personal_feed."""

    @pytest.mark.asyncio
    async def test_includes_followee_posts_excludes_own(self, service, make_user):
        """Followees' posts are in; the viewer's own original posts are not."""
        viewer = await make_user("viewer")
        followee = await make_user("followee")
        stranger = await make_user("stranger")
        await service.follow(viewer, followee)

        theirs = await service.create_post(followee, "from followee")
        await service.create_post(viewer, "my own")
        await service.create_post(stranger, "from stranger")

        feed = await service.personal_feed(viewer)

        assert ids(feed) == [theirs.post_id]

    @pytest.mark.asyncio
    async def test_includes_posts_retweeted_by_followee(self, service, make_user):
        """A stranger's post retweeted by a followee appears."""
        viewer = await make_user("viewer")
        followee = await make_user("followee")
        stranger = await make_user("stranger")
        await service.follow(viewer, followee)
        post = await service.create_post(stranger, "boosted")

        await service.toggle_retweet(followee, post.post_id)

        assert ids(await service.personal_feed(viewer)) == [post.post_id]

    @pytest.mark.asyncio
    async def test_includes_posts_retweeted_by_viewer(self, service, make_user):
        """Posts the viewer retweeted appear, including the viewer's own."""
        viewer = await make_user("viewer")
        stranger = await make_user("stranger")
        other = await service.create_post(stranger, "theirs")
        mine = await service.create_post(viewer, "mine")

        await service.toggle_retweet(viewer, other.post_id)
        await service.toggle_retweet(viewer, mine.post_id)

        assert ids(await service.personal_feed(viewer)) == [mine.post_id, other.post_id]

    @pytest.mark.asyncio
    async def test_no_duplicates_when_both_branches_match(self, service, make_user):
        """A followee's post retweeted by another followee is listed once."""
        viewer = await make_user("viewer")
        a = await make_user("a")
        b = await make_user("b")
        await service.follow(viewer, a)
        await service.follow(viewer, b)
        post = await service.create_post(a, "shared")

        await service.toggle_retweet(b, post.post_id)

        assert ids(await service.personal_feed(viewer)) == [post.post_id]

    @pytest.mark.asyncio
    async def test_retweet_resurfaces_older_post(self, service, make_user):
        """personal ranks a retweeted older post first; following keeps creation order."""
        viewer = await make_user("viewer")
        author = await make_user("author")
        booster = await make_user("booster")
        await service.follow(viewer, author)
        await service.follow(viewer, booster)

        p1 = await service.create_post(author, "older")
        p2 = await service.create_post(author, "newer")
        await service.toggle_retweet(booster, p1.post_id)

        personal = await service.personal_feed(viewer)
        following = await service.following_feed(viewer)

        assert ids(personal) == [p1.post_id, p2.post_id]
        assert ids(following) == [p2.post_id, p1.post_id]

    @pytest.mark.asyncio
    async def test_unknown_viewer(self, service):
        """Feeds for a missing viewer are NotFound."""
        with pytest.raises(NotFoundError):
            await service.personal_feed("ghost")
        with pytest.raises(NotFoundError):
            await service.following_feed("ghost")


class TestOtherFeeds:
    """Tests for following, author and public feeds."""

    @pytest.mark.asyncio
    async def test_following_feed_excludes_retweets(self, service, make_user):
        """Only posts authored by followees appear in the following feed."""
        viewer = await make_user("viewer")
        followee = await make_user("followee")
        stranger = await make_user("stranger")
        await service.follow(viewer, followee)
        post = await service.create_post(stranger, "boosted")
        await service.toggle_retweet(followee, post.post_id)

        assert await service.following_feed(viewer) == []

    @pytest.mark.asyncio
    async def test_author_feed_newest_created_first(self, service, make_user):
        """The author feed orders by creation time even after engagement."""
        author = await make_user("author")
        fan = await make_user("fan")
        first = await service.create_post(author, "first")
        second = await service.create_post(author, "second")
        await service.toggle_like(fan, first.post_id)

        assert ids(await service.author_feed(author)) == [second.post_id, first.post_id]
        assert await service.author_feed(fan) == []

    @pytest.mark.asyncio
    async def test_public_feed_orders_by_updated(self, service, make_user):
        """The public feed holds every post, most recently updated first."""
        a = await make_user("a")
        b = await make_user("b")
        first = await service.create_post(a, "first")
        second = await service.create_post(b, "second")
        await service.add_comment(b, first.post_id, "bump")

        assert ids(await service.public_feed()) == [first.post_id, second.post_id]

    @pytest.mark.asyncio
    async def test_projections_on_posts_and_comments(self, service, make_user):
        """Posts and comments carry resolved author projections."""
        alice = await make_user("alice")
        bob = await make_user("bob")
        post = await service.create_post(alice, "hello")
        await service.add_comment(bob, post.post_id, "hi alice")

        data = (await service.public_feed())[0].to_dict()

        assert data["userId"]["username"] == "alice"
        assert data["userId"]["name"] == "Alice"
        assert data["comments"][0]["userId"]["username"] == "bob"
        assert data["comments"][0]["content"] == "hi alice"


class TestBookmarks:
    """Tests for FeedComposer.bookmarks."""

    @pytest.mark.asyncio
    async def test_most_recent_first(self, service, make_user):
        """Bookmarks list in reverse insertion order."""
        alice = await make_user("alice")
        bob = await make_user("bob")
        p1 = await service.create_post(alice, "one")
        p2 = await service.create_post(alice, "two")
        p3 = await service.create_post(alice, "three")

        for post in (p2, p1, p3):
            await service.toggle_bookmark(bob, post.post_id)

        assert ids(await service.bookmarks(bob)) == [p3.post_id, p1.post_id, p2.post_id]

    @pytest.mark.asyncio
    async def test_dangling_bookmarks_skipped(self, service, db, make_user):
        """A bookmark to a post that no longer exists is filtered at read time."""
        alice = await make_user("alice")
        bob = await make_user("bob")
        post = await service.create_post(alice, "kept")
        await service.toggle_bookmark(bob, post.post_id)
        with db.transaction() as conn:
            service.identity.edges.add(conn, EdgeType.BOOKMARKS, bob, "vanished", 1)

        assert ids(await service.bookmarks(bob)) == [post.post_id]

    @pytest.mark.asyncio
    async def test_deleted_post_pruned_from_bookmarks(self, service, make_user):
        """Deleting a post removes it from every bookmark list."""
        alice = await make_user("alice")
        bob = await make_user("bob")
        post = await service.create_post(alice, "short-lived")
        await service.toggle_bookmark(bob, post.post_id)

        await service.delete_post(alice, post.post_id)

        assert await service.bookmarks(bob) == []
        assert (await service.get_me(bob)).bookmarks == []

    @pytest.mark.asyncio
    async def test_bookmarks_beyond_parameter_limit(self, service, db, make_user):
        """Long bookmark lists are read in chunks and keep their order."""
        alice = await make_user("alice")
        bob = await make_user("bob")
        first = await service.create_post(alice, "first")
        last = await service.create_post(alice, "last")
        await service.toggle_bookmark(bob, first.post_id)
        # More ids than SQLite binds in one statement by default
        with db.transaction() as conn:
            for i in range(33_000):
                service.identity.edges.add(conn, EdgeType.BOOKMARKS, bob, f"gone-{i}", 1)
        await service.toggle_bookmark(bob, last.post_id)

        assert ids(await service.bookmarks(bob)) == [last.post_id, first.post_id]
