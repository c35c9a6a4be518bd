"""
Flock Server - backend for a micro-blogging service.

This package implements accounts, posts, engagement (likes, retweets,
comments, bookmarks), a directed follow graph and per-user notifications
on top of a single SQLite database.

Architecture:
    ┌─────────────┐     ┌─────────────┐     ┌─────────────────────┐
    │   Client    │────▶│  HTTP API   │────▶│    FlockService     │
    │             │     │  (FastAPI)  │     │ (deadlines, retry)  │
    └─────────────┘     └─────────────┘     └──────────┬──────────┘
                                                       │
              ┌──────────────────┬─────────────────────┼──────────────────┐
              ▼                  ▼                     ▼                  ▼
       ┌─────────────┐   ┌──────────────┐      ┌─────────────┐    ┌─────────────┐
       │ SocialGraph │   │  Engagement  │      │    Feed     │    │   Cascade   │
       │    Index    │   │    Ledger    │      │  Composer   │    │  Deletion   │
       └──────┬──────┘   └──────┬───────┘      └──────┬──────┘    └──────┬──────┘
              │   events        │                     │                  │
              ▼                 ▼                     │                  │
          ┌─────────────────────────┐                 │                  │
          │  Notification Fan-out   │                 │                  │
          └────────────┬────────────┘                 │                  │
                       ▼                              ▼                  ▼
          ┌─────────────────────────────────────────────────────────────────┐
          │        SQLite: users, posts, edges, notifications               │
          └─────────────────────────────────────────────────────────────────┘

Invariants:
    - Follow symmetry holds by construction (one follows edge, two projections)
    - Set-valued fields never contain duplicates
    - No self-follows and no self-notifications
    - Deleting an account leaves no reference to it anywhere
    - Post updated_at advances on every engagement mutation

How to change safely:
    - Add reference types together with a cascade step and a repair check
    - Keep multi-record writes inside one Database.transaction()
"""

from ._version import __version__

__all__ = ["__version__"]
