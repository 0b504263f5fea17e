"""Exception hierarchy for PKCE token acquisition errors.

Provides specific exception types for each failure mode so callers can
decide on their own retry policy.
"""

from __future__ import annotations


class OAuth2Error(Exception):
    """Base exception for all token broker errors."""

    pass


class ConfigurationError(OAuth2Error):
    """Raised when provider configuration is missing or invalid."""

    pass


class PKCEError(OAuth2Error):
    """Raised when PKCE parameter generation fails."""

    pass


class TokenAcquisitionError(OAuth2Error):
    """Raised when one step of the authorization protocol fails.

    Attributes:
        step: Protocol step that failed ("authenticate", "authorize" or
            "exchange").
    """

    def __init__(self, step: str, message: str):
        super().__init__(f"{step}: {message}")
        self.step = step


class AuthenticationError(TokenAcquisitionError):
    """Raised when the provider rejects the credentials or session token."""

    pass


class ProtocolError(TokenAcquisitionError):
    """Raised when a well-formed response lacks an expected field or element."""

    pass


class TransportError(TokenAcquisitionError):
    """Raised on connectivity failures, timeouts or unparseable bodies."""

    pass


class CacheLoadError(OAuth2Error):
    """Raised by the token cache when loading a key fails.

    The same instance is delivered to every caller waiting on the load.
    The original error is available as ``cause`` and ``__cause__``.
    """

    def __init__(self, key: str, cause: BaseException):
        super().__init__(f"Failed to load token for key {key!r}: {cause}")
        self.key = key
        self.cause = cause


class TokenAcquisitionCancelled(OAuth2Error):
    """Raised when an in-flight token load is cancelled before completing."""

    pass
