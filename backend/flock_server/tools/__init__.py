"""
Operator tools for Flock.

- repair: find and remove dangling references (flock-repair)
"""

from .repair import IntegrityChecker, RepairReport

__all__ = ["IntegrityChecker", "RepairReport"]
