"""Configuration management for the LinkedIn engine client.

This module provides Pydantic models for configuring the remote API client,
pagination batch sizes, action dispatch throttling and the session credentials
used by the command line entry point.
"""

from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .errors import ConfigError

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/115.0.5790.75 Safari/537.36"
)

MAX_CONNECTION_BATCH = 100
MAX_INVITATION_BATCH = 100
MAX_MESSAGE_BATCH = 20
MAX_SEARCH_BATCH = 50


class ClientConfig(BaseModel):
    """Remote API client configuration."""

    api_base_url: str = Field(
        default="https://www.linkedin.com/voyager/api",
        description="Base URL of the Voyager API",
    )
    sales_base_url: str = Field(
        default="https://www.linkedin.com/sales-api",
        description="Base URL of the Sales Navigator API",
    )
    timeout: float = Field(
        default=30.0,
        ge=5,
        le=120,
        description="Request timeout in seconds",
    )
    request_delay: float = Field(
        default=1.0,
        ge=0,
        le=30.0,
        description="Minimum delay between two requests in seconds",
    )
    max_retries: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Maximum retry attempts for server and network errors",
    )
    user_agent: str = Field(
        default=DEFAULT_USER_AGENT,
        description="User agent used when the session does not carry one",
    )

    @field_validator("api_base_url", "sales_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize base URLs so paths can be appended directly."""
        v = v.strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"Base URL must be http(s), got {v!r}")
        return v.rstrip("/")


class PaginationConfig(BaseModel):
    """Per-resource batch caps and delivery granularity."""

    connection_batch: int = Field(default=MAX_CONNECTION_BATCH, ge=1, le=MAX_CONNECTION_BATCH)
    invitation_batch: int = Field(default=MAX_INVITATION_BATCH, ge=1, le=MAX_INVITATION_BATCH)
    message_batch: int = Field(default=MAX_MESSAGE_BATCH, ge=1, le=MAX_MESSAGE_BATCH)
    search_batch: int = Field(default=MAX_SEARCH_BATCH, ge=1, le=MAX_SEARCH_BATCH)
    delivery_chunk_size: int = Field(
        default=25,
        ge=1,
        description="Number of items per notification chunk",
    )


class DispatchConfig(BaseModel):
    """Throttling between consecutive campaign actions."""

    min_delay: float = Field(
        default=15.0,
        ge=0,
        description="Minimum pause before each action in seconds",
    )
    max_delay: float = Field(
        default=45.0,
        ge=0,
        description="Maximum pause before each action in seconds",
    )

    @model_validator(mode="after")
    def validate_delay_range(self) -> "DispatchConfig":
        """Validate that the delay range is not inverted."""
        if self.min_delay > self.max_delay:
            raise ValueError(
                f"min_delay ({self.min_delay}) must not exceed max_delay ({self.max_delay})"
            )
        return self


class SessionConfig(BaseModel):
    """Session credentials for a single integration.

    The li_at cookie identifies the member session. JSESSIONID doubles as the
    CSRF token expected by the Voyager API.
    """

    li_at: Optional[str] = Field(default=None, description="li_at session cookie")
    jsessionid: Optional[str] = Field(default=None, description="JSESSIONID cookie")
    user_agent: Optional[str] = Field(default=None, description="Browser user agent")
    proxy: Optional[str] = Field(default=None, description="Proxy URL")

    @field_validator("li_at", "jsessionid", "user_agent", "proxy")
    @classmethod
    def clean_optional(cls, v: Optional[str]) -> Optional[str]:
        """Strip values and treat blanks as missing."""
        if v is not None:
            v = v.strip()
            if not v:
                return None
        return v

    @field_validator("jsessionid")
    @classmethod
    def strip_quotes(cls, v: Optional[str]) -> Optional[str]:
        """JSESSIONID is often copied with its surrounding quotes."""
        if v is not None:
            v = v.strip('"')
        return v

    @model_validator(mode="after")
    def validate_session(self) -> "SessionConfig":
        if not self.li_at:
            raise ValueError(
                "Session requires LINKEDIN_COOKIE (the li_at cookie) to be set"
            )
        return self

    def cookies(self) -> dict[str, str]:
        """Cookies to send with every request."""
        cookies = {"li_at": self.li_at}
        if self.jsessionid:
            cookies["JSESSIONID"] = f'"{self.jsessionid}"'
        return cookies


class EngineConfig(BaseModel):
    """Main configuration for the LinkedIn engine client."""

    client: ClientConfig = Field(default_factory=ClientConfig)
    pagination: PaginationConfig = Field(default_factory=PaginationConfig)
    dispatch: DispatchConfig = Field(default_factory=DispatchConfig)
    session: Optional[SessionConfig] = Field(
        default=None,
        description="Credentials for the command line integration",
    )
    verbose: bool = Field(default=False, description="Enable verbose logging")

    def require_session(self) -> SessionConfig:
        """Return the session credentials.

        Raises:
            ConfigError: If no li_at cookie was configured
        """
        if self.session is None:
            raise ConfigError(
                "LINKEDIN_COOKIE (the li_at cookie) is required",
                details={"session_provided": False},
            )
        return self.session
