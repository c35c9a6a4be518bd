"""
HTTP API for Flock (FastAPI).

The transport only authenticates, parses input and renders results; every
rule lives in the service and core layers.
"""

from .app import create_app
from .settings import ApiSettings

__all__ = ["ApiSettings", "create_app"]
