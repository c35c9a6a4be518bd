"""
HTTP transport settings for Flock.

Uses pydantic-settings for environment variable loading.
"""

from pydantic import Field
from pydantic_settings import BaseSettings


class ApiSettings(BaseSettings):
    """HTTP API configuration loaded from environment."""

    host: str = Field(default="0.0.0.0", description="API bind host")
    port: int = Field(default=8000, description="API bind port")

    cors_origins: list[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"],
        description="Allowed CORS origins",
    )

    # Credential cookie
    cookie_name: str = Field(default="token", description="Name of the credential cookie")
    cookie_secure: bool = Field(default=False, description="Send the cookie over HTTPS only")
    cookie_max_age: int = Field(default=24 * 60 * 60, description="Cookie lifetime in seconds")

    model_config = {"env_prefix": "FLOCK_API_"}
