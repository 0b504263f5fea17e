"""Request and response models for the three-step PKCE protocol.

Requests are immutable dataclasses that render themselves into the wire
format each endpoint expects. Responses are pydantic models validated from
the provider's JSON bodies.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_SCOPE = "openid profile offline_access email"


@dataclass(frozen=True)
class AuthenticationRequest:
    """Primary authentication request (step 1)."""

    authn_endpoint: str
    username: str
    password: str = field(repr=False)
    multi_optional_factor_enroll: bool = False
    warn_before_password_expired: bool = False

    def to_json(self) -> dict[str, Any]:
        return {
            "username": self.username,
            "password": self.password,
            "options": {
                "multiOptionalFactorEnroll": self.multi_optional_factor_enroll,
                "warnBeforePasswordExpired": self.warn_before_password_expired,
            },
        }


@dataclass(frozen=True)
class AuthorizationRequest:
    """Authorization request parameters (step 2).

    The ``state`` parameter mirrors ``redirect_uri``. It is an opaque
    round-trip value here and provides no CSRF protection.
    """

    authorization_endpoint: str
    client_id: str
    redirect_uri: str
    code_challenge: str
    session_token: str = field(repr=False)
    code_challenge_method: str = "S256"
    scope: str = DEFAULT_SCOPE
    nonce: str = field(default_factory=lambda: str(uuid.uuid4()))

    def to_query_params(self) -> dict[str, str]:
        """Build query parameters in the order the provider documents them."""
        return {
            "client_id": self.client_id,
            "code_challenge": self.code_challenge,
            "code_challenge_method": self.code_challenge_method,
            "nonce": self.nonce,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "state": self.redirect_uri,
            "scope": self.scope,
            "response_mode": "form_post",
            "sessionToken": self.session_token,
        }


@dataclass(frozen=True)
class TokenRequest:
    """Authorization code to access token exchange (step 3).

    Carries the PKCE ``code_verifier``, never the challenge.
    """

    token_endpoint: str
    code: str = field(repr=False)
    redirect_uri: str
    client_id: str
    code_verifier: str = field(repr=False)
    grant_type: str = "authorization_code"

    def to_form_data(self) -> dict[str, str]:
        """Convert to form data for an application/x-www-form-urlencoded body."""
        return {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "grant_type": self.grant_type,
            "code_verifier": self.code_verifier,
            "code": self.code,
        }


class AuthenticationResponse(BaseModel):
    """Primary authentication response.

    Successful responses carry ``sessionToken``; rejections carry the
    provider's ``errorCode``/``errorSummary`` pair.
    """

    model_config = ConfigDict(populate_by_name=True)

    session_token: str | None = Field(default=None, alias="sessionToken")
    status: str | None = None
    error_code: str | None = Field(default=None, alias="errorCode")
    error_summary: str | None = Field(default=None, alias="errorSummary")

    def is_success(self) -> bool:
        return self.session_token is not None


class TokenResponse(BaseModel):
    """Token endpoint response (RFC 6749 Section 5).

    Only ``access_token`` is consumed; the token itself is treated as opaque.
    """

    access_token: str | None = None
    token_type: str = "Bearer"
    expires_in: int | None = None
    scope: str | None = None

    # Error response fields (RFC 6749 Section 5.2)
    error: str | None = None
    error_description: str | None = None

    def is_success(self) -> bool:
        return self.error is None and self.access_token is not None
