"""
Integrity repair tool for Flock.

Scans the database for references that should not survive a quiescent
state and, unless running dry, deletes them in one transaction:

1. Posts whose author no longer exists
2. Edges whose source user no longer exists
3. Follow edges whose target user no longer exists
4. Like, retweet and bookmark edges whose target post no longer exists
5. Notifications with a missing sender, recipient or post
6. Self-follow edges and self-notifications

Checks run in order, so the edges and notifications of a post removed by
the first check are cleaned up in the same pass. The self-reference checks
are also enforced by CHECK constraints in the schema; they only find rows
in databases written without those constraints.

Usage:
    flock-repair --data-dir <path> [--dry-run]

Invariants:
    - Idempotent: a second run over a repaired database finds nothing
    - Never deletes users; deletes posts only when their author is gone
    - All deletions commit together

How to change safely:
    - Add new checks as additional (name, predicate) pairs
    - Keep every check expressible as a DELETE predicate
    - Dry runs evaluate every check against the unrepaired state, so a
      real run can remove more rows when an earlier check cascades
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path

from ..models import EdgeType
from ..store import Database, Deadline

logger = logging.getLogger(__name__)

_USER_EDGE = f"'{EdgeType.FOLLOWS.value}'"
_POST_EDGES = ", ".join(
    f"'{t.value}'" for t in (EdgeType.LIKES, EdgeType.RETWEETS, EdgeType.BOOKMARKS)
)

CHECKS: list[tuple[str, str, str]] = [
    (
        "posts_missing_author",
        "posts",
        "author_id NOT IN (SELECT user_id FROM users)",
    ),
    (
        "edges_missing_source",
        "edges",
        "from_id NOT IN (SELECT user_id FROM users)",
    ),
    (
        "follows_missing_target",
        "edges",
        f"edge_type = {_USER_EDGE} AND to_id NOT IN (SELECT user_id FROM users)",
    ),
    (
        "engagement_missing_post",
        "edges",
        f"edge_type IN ({_POST_EDGES}) AND to_id NOT IN (SELECT post_id FROM posts)",
    ),
    (
        "self_follows",
        "edges",
        f"edge_type = {_USER_EDGE} AND from_id = to_id",
    ),
    (
        "notifications_missing_user",
        "notifications",
        "from_user NOT IN (SELECT user_id FROM users)"
        " OR to_user NOT IN (SELECT user_id FROM users)",
    ),
    (
        "notifications_missing_post",
        "notifications",
        "post_id IS NOT NULL AND post_id NOT IN (SELECT post_id FROM posts)",
    ),
    (
        "self_notifications",
        "notifications",
        "from_user = to_user",
    ),
]


@dataclass
class RepairReport:
    """Result of an integrity pass.

    Attributes:
        dry_run: Whether changes were withheld
        findings: Number of offending rows per check name
    """

    dry_run: bool
    findings: dict[str, int] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return sum(self.findings.values())

    @property
    def clean(self) -> bool:
        return self.total == 0


class IntegrityChecker:
    """Find and remove dangling references.

    Example:
        >>> checker = IntegrityChecker(db)
        >>> report = await checker.run(dry_run=True)
        >>> report.clean
        True
    """

    def __init__(self, db: Database) -> None:
        self.db = db

    async def run(self, dry_run: bool = False, deadline: Deadline | None = None) -> RepairReport:
        """Run every check; delete offending rows unless ``dry_run``."""
        report = RepairReport(dry_run=dry_run)

        with self.db.transaction(deadline) as conn:
            for name, table, predicate in CHECKS:
                if dry_run:
                    count = conn.execute(
                        f"SELECT COUNT(*) FROM {table} WHERE {predicate}"
                    ).fetchone()[0]
                else:
                    count = conn.execute(f"DELETE FROM {table} WHERE {predicate}").rowcount
                report.findings[name] = count

        if report.clean:
            logger.info("Integrity check passed")
        else:
            logger.warning(
                "Integrity check found dangling references",
                extra={"dry_run": dry_run, **report.findings},
            )
        return report


async def _run(data_dir: str, db_filename: str, dry_run: bool) -> RepairReport:
    db = Database(Path(data_dir) / db_filename)
    await db.initialize()
    try:
        return await IntegrityChecker(db).run(dry_run=dry_run)
    finally:
        await db.close()


def main() -> None:
    """CLI entry point for the repair tool."""
    parser = argparse.ArgumentParser(
        description="Find and remove dangling references in a Flock database"
    )
    parser.add_argument("--data-dir", required=True, help="Directory holding the database")
    parser.add_argument("--db-filename", default="flock.db", help="Database file name")
    parser.add_argument("--dry-run", action="store_true", help="Report without deleting")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    if not (Path(args.data_dir) / args.db_filename).exists():
        print(f"Database not found: {Path(args.data_dir) / args.db_filename}")
        sys.exit(1)

    report = asyncio.run(_run(args.data_dir, args.db_filename, args.dry_run))

    verb = "Found" if report.dry_run else "Removed"
    for name, count in report.findings.items():
        print(f"  {name}: {count}")
    print(f"{verb} {report.total} dangling reference(s)")
    sys.exit(0)


if __name__ == "__main__":
    main()
