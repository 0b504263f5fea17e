"""Configuration for the token provider.

Settings are validated once at construction and never re-read at call time.
They can be built directly or loaded from ``OKTA_*`` environment variables,
optionally seeded from a ``.env`` file.
"""

from __future__ import annotations

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field, SecretStr, ValidationError, field_validator

from okta_pkce.models.errors import ConfigurationError
from okta_pkce.models.security import MAX_VERIFIER_LENGTH, MIN_VERIFIER_LENGTH
from okta_pkce.primitives.pkce import DEFAULT_VERIFIER_LENGTH

# Just under the provider's usual one hour token lifetime
DEFAULT_CACHE_TTL = 3500.0

_ENV_FIELDS = {
    "base_url": "URL",
    "identity_zone_id": "IDENTITY_ZONE_ID",
    "username": "USERNAME",
    "password": "PASSWORD",
    "client_id": "CLIENT_ID",
    "redirect_uri": "REDIRECT_URI",
    "cache_ttl": "CACHE_TTL",
    "request_timeout": "REQUEST_TIMEOUT",
    "connect_timeout": "CONNECT_TIMEOUT",
}


class TokenProviderConfig(BaseModel):
    """Provider endpoints, account credentials and cache settings."""

    base_url: str
    identity_zone_id: str
    username: str
    password: SecretStr
    client_id: str
    redirect_uri: str

    cache_ttl: float = Field(default=DEFAULT_CACHE_TTL, gt=0)
    request_timeout: float = Field(default=30.0, gt=0)
    connect_timeout: float = Field(default=10.0, gt=0)
    verifier_length: int = Field(
        default=DEFAULT_VERIFIER_LENGTH,
        ge=MIN_VERIFIER_LENGTH,
        le=MAX_VERIFIER_LENGTH,
    )

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        if not v.startswith(("https://", "http://")):
            raise ValueError(f"base_url must be an http(s) URL: {v}")
        return v.rstrip("/")

    @property
    def authn_endpoint(self) -> str:
        return f"{self.base_url}/api/v1/authn"

    @property
    def authorization_endpoint(self) -> str:
        return f"{self.base_url}/oauth2/{self.identity_zone_id}/v1/authorize"

    @property
    def token_endpoint(self) -> str:
        return f"{self.base_url}/oauth2/{self.identity_zone_id}/v1/token"

    @classmethod
    def from_env(
        cls, prefix: str = "OKTA_", dotenv_path: str | None = None
    ) -> TokenProviderConfig:
        """Build configuration from environment variables.

        Loads ``dotenv_path`` (or a ``.env`` file found from the working
        directory) first; variables already set in the environment win.

        Raises:
            ConfigurationError: If a required variable is missing or invalid
        """
        load_dotenv(dotenv_path)

        values = {}
        for field_name, suffix in _ENV_FIELDS.items():
            value = os.environ.get(f"{prefix}{suffix}")
            if value is not None:
                values[field_name] = value

        try:
            return cls.model_validate(values)
        except ValidationError as e:
            raise ConfigurationError(
                f"Invalid {prefix}* environment configuration: {e}"
            ) from e
