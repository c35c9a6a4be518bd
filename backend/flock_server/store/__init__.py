"""
Store module for Flock - durable state.

This module handles:
- The explicit SQLite database handle (transactions, deadlines)
- Identity records (users) and content records (posts, comments)
- Notification records
- Typed membership edges backing every set-valued field

Invariants:
    - Three record collections linked only by id reference
    - Set fields are edge projections, unique by primary key
    - Multi-record writes share one transaction

How to change safely:
    - Test schema migrations thoroughly before deployment
    - Use Database.transaction() for all multi-statement operations
"""

from .content_store import ContentStore, PostOrder
from .database import Database, Deadline, now_ms
from .edges import EdgeIndex
from .identity_store import IdentityStore
from .notification_store import NotificationStore

__all__ = [
    "ContentStore",
    "Database",
    "Deadline",
    "EdgeIndex",
    "IdentityStore",
    "NotificationStore",
    "PostOrder",
    "now_ms",
]
