"""Configuration for the CouchDB client."""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class CouchConfig(BaseSettings):
    """Configuration for the CouchDB client.

    All settings can be configured via environment variables with COUCHDB_ prefix.

    Connection:
        - COUCHDB_PROTOCOL / COUCHDB_HOST / COUCHDB_PORT: server location
        - COUCHDB_TIMEOUT: per-request timeout in milliseconds

    Authentication (HTTP basic auth, optional):
        - COUCHDB_USER / COUCHDB_PASSWORD

    Response cache (optional):
        - COUCHDB_CACHE: cache backend name ("memory", "file" or a plugin)
        - COUCHDB_CACHE_DIR: directory for the "file" backend
    """

    model_config = SettingsConfigDict(
        env_prefix="COUCHDB_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    protocol: str = Field(default="http")
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=5984, ge=1, le=65535)
    timeout: int = Field(
        default=5000,
        ge=1,
        le=600_000,
        description="Request timeout in milliseconds",
    )

    user: str | None = Field(default=None)
    password: str | None = Field(default=None)

    cache: str | None = Field(
        default=None,
        description="Response cache backend: 'memory', 'file' or a plugin name",
    )
    cache_dir: str | None = Field(
        default=None,
        description="Directory for the 'file' cache backend (temp dir if not set)",
    )

    user_agent: str | None = Field(default=None)

    @field_validator("protocol")
    @classmethod
    def validate_protocol(cls, v: str) -> str:
        """Validate protocol is http or https."""
        v = v.lower().removesuffix("://")
        if v not in {"http", "https"}:
            raise ValueError(f"Invalid protocol: {v}. Must be 'http' or 'https'")
        return v

    @field_validator("host")
    @classmethod
    def validate_host(cls, v: str) -> str:
        """Reject hosts that carry a scheme or path."""
        if "://" in v or "/" in v:
            raise ValueError("Host must be a bare hostname, e.g. 'localhost'")
        return v

    @property
    def base_url(self) -> str:
        """Server root, e.g. ``http://127.0.0.1:5984``."""
        return f"{self.protocol}://{self.host}:{self.port}"

    @property
    def timeout_seconds(self) -> float:
        """Request timeout converted for httpx."""
        return self.timeout / 1000

    @property
    def auth_enabled(self) -> bool:
        """Check if basic auth credentials are configured."""
        return self.user is not None and self.password is not None

    @property
    def auth(self) -> tuple[str, str] | None:
        """Basic auth tuple for httpx, or None."""
        if not self.auth_enabled:
            return None
        return (self.user, self.password)
