"""Tool dispatcher configuration models."""

from enum import Enum

from pydantic import BaseModel, Field, SecretStr


class AuthScheme(str, Enum):
    """Authentication schemes supported for the external API."""

    NONE = "none"
    BASIC = "basic"
    BEARER = "bearer"
    API_KEY = "api_key"
    CUSTOM_HEADER = "custom_header"


class AuthConfig(BaseModel):
    """Credentials for one auth scheme.

    Only the fields relevant to `scheme` are read.
    """

    scheme: AuthScheme = Field(default=AuthScheme.NONE)
    username: str | None = Field(default=None, description="Basic auth user")
    password: SecretStr | None = Field(default=None, description="Basic auth password")
    token: SecretStr | None = Field(
        default=None, description="Bearer token, API key or custom header value"
    )
    header_name: str = Field(
        default="X-API-Key",
        description="Header used by api_key and custom_header schemes",
    )


class EndpointOverride(BaseModel):
    """Explicit route for one assistant function."""

    path: str = Field(..., description="Path relative to base_url; may contain {placeholders}")
    method: str = Field(default="POST", description="HTTP method")
    auth: AuthConfig | None = Field(default=None, description="Per-function auth")


class ToolsConfig(BaseModel):
    """External business API and retry/caching policy."""

    base_url: str | None = Field(default=None, description="External API base URL")
    timeout_seconds: float = Field(default=30.0, gt=0, description="HTTP timeout")
    max_attempts: int = Field(default=3, ge=1, description="Total attempts per call")
    backoff_base_seconds: float = Field(
        default=0.5, ge=0, description="Base delay for exponential backoff"
    )
    cache_enabled: bool = Field(default=True, description="Cache successful GET responses")
    cache_ttl_seconds: int = Field(default=60, gt=0, description="Response cache TTL")
    endpoints: dict[str, EndpointOverride] = Field(
        default_factory=dict, description="function name -> explicit route"
    )
    field_aliases: dict[str, str] = Field(
        default_factory=dict, description="Exact argument renames"
    )
    suffix_aliases: dict[str, str] = Field(
        default_factory=lambda: {"ada": "ado"},
        description="Argument name suffix corrections",
    )
    auth: AuthConfig = Field(default_factory=AuthConfig, description="Default auth")
    default_headers: dict[str, str] = Field(
        default_factory=lambda: {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": "Switchboard-Tools/1.0",
        },
        description="Headers sent with every call",
    )
