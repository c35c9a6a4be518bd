"""
Flock Test Suite.

This package contains:
- unit/: Unit tests (stores, core components, auth, config, media, repair)
- integration/: Integration tests (FlockService and the HTTP API over SQLite)
"""
