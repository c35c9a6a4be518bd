"""
Unit tests for the integrity repair tool.

Tests cover:
- Dry runs count without deleting
- Real runs delete every dangling reference and are idempotent
- Users are never removed
- The schema rejects self-follows and self-notifications before repair sees them
- The flock-repair CLI
"""

import asyncio
import sqlite3
import sys
from pathlib import Path

import pytest

from backend.flock_server.errors import InternalError
from backend.flock_server.models import EdgeType, Notification, NotificationType
from backend.flock_server.store import Database, EdgeIndex, NotificationStore
from backend.flock_server.tools import IntegrityChecker
from backend.flock_server.tools import repair


def seed_dangling(db: Database, user_id: str) -> None:
    """Insert dangling rows the schema accepts, anchored on ``user_id``."""
    edges = EdgeIndex()
    with db.transaction() as conn:
        edges.add(conn, EdgeType.FOLLOWS, "ghost", user_id, 1)
        edges.add(conn, EdgeType.FOLLOWS, user_id, "ghost", 1)
        edges.add(conn, EdgeType.BOOKMARKS, user_id, "no-post", 1)
        NotificationStore().insert(
            conn,
            Notification(
                notification_id="n-ghost",
                type=NotificationType.FOLLOW,
                from_user="ghost",
                to_user=user_id,
                post_id=None,
                is_read=False,
                created_at=1,
            ),
        )


class TestIntegrityChecker:
    """Tests for IntegrityChecker."""

    @pytest.mark.asyncio
    async def test_clean_database(self, db, make_user):
        """A database built only through the service has nothing to repair."""
        await make_user("alice")

        report = await IntegrityChecker(db).run()

        assert report.clean
        assert set(report.findings) == {name for name, _, _ in repair.CHECKS}

    @pytest.mark.asyncio
    async def test_dry_run_then_repair(self, db, service, make_user):
        """Dry runs only count; a real run deletes and a second run is clean."""
        alice = await make_user("alice")
        post = await service.create_post(alice, "kept")
        seed_dangling(db, alice)

        dry = await IntegrityChecker(db).run(dry_run=True)
        again_dry = await IntegrityChecker(db).run(dry_run=True)
        fixed = await IntegrityChecker(db).run()
        after = await IntegrityChecker(db).run()

        assert dry.dry_run is True
        assert dry.findings["edges_missing_source"] == 1
        assert dry.findings["follows_missing_target"] == 1
        assert dry.findings["engagement_missing_post"] == 1
        assert dry.findings["notifications_missing_user"] == 1
        assert dry.findings["posts_missing_author"] == 0
        assert again_dry.findings == dry.findings
        assert fixed.total == dry.total
        assert after.clean

        assert (await service.get_me(alice)).username == "alice"
        assert (await service.get_post(post.post_id)).post.description == "kept"

    @pytest.mark.asyncio
    async def test_schema_rejects_self_references(self, db, make_user):
        """Self-follows are dropped and self-notifications raise, so repair finds none."""
        alice = await make_user("alice")

        with db.transaction() as conn:
            assert EdgeIndex().add(conn, EdgeType.FOLLOWS, alice, alice, 1) is False
        with pytest.raises(InternalError) as exc_info:
            with db.transaction() as conn:
                NotificationStore().insert(
                    conn,
                    Notification(
                        notification_id="n-self",
                        type=NotificationType.FOLLOW,
                        from_user=alice,
                        to_user=alice,
                        post_id=None,
                        is_read=False,
                        created_at=1,
                    ),
                )
        assert isinstance(exc_info.value.__cause__, sqlite3.IntegrityError)

        report = await IntegrityChecker(db).run(dry_run=True)
        assert report.findings["self_follows"] == 0
        assert report.findings["self_notifications"] == 0


class TestRepairCli:
    """Tests for the flock-repair entry point."""

    def test_missing_database(self, monkeypatch, capsys, tmp_path):
        """A missing database file exits with status 1."""
        monkeypatch.setattr(sys, "argv", ["flock-repair", "--data-dir", str(tmp_path)])

        with pytest.raises(SystemExit) as exc:
            repair.main()

        assert exc.value.code == 1
        assert "Database not found" in capsys.readouterr().out

    def test_dry_run_reports_without_deleting(self, monkeypatch, capsys, tmp_path):
        """--dry-run prints findings and leaves the rows in place."""
        db = Database(Path(tmp_path) / "flock.db")
        asyncio.run(db.initialize())
        seed_dangling(db, "u1")

        monkeypatch.setattr(
            sys, "argv", ["flock-repair", "--data-dir", str(tmp_path), "--dry-run"]
        )
        with pytest.raises(SystemExit) as exc:
            repair.main()

        out = capsys.readouterr().out
        assert exc.value.code == 0
        assert "Found" in out
        assert asyncio.run(IntegrityChecker(db).run(dry_run=True)).total > 0

    def test_repair_run(self, monkeypatch, capsys, tmp_path):
        """A real run removes everything it reports."""
        db = Database(Path(tmp_path) / "flock.db")
        asyncio.run(db.initialize())
        seed_dangling(db, "u1")

        monkeypatch.setattr(sys, "argv", ["flock-repair", "--data-dir", str(tmp_path)])
        with pytest.raises(SystemExit) as exc:
            repair.main()

        assert exc.value.code == 0
        assert "Removed" in capsys.readouterr().out
        assert asyncio.run(IntegrityChecker(db).run(dry_run=True)).clean
