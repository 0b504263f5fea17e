"""Client-side OAuth 2.0 PKCE token broker with a single-flight token cache."""

from okta_pkce.config import DEFAULT_CACHE_TTL, TokenProviderConfig
from okta_pkce.models.errors import (
    AuthenticationError,
    CacheLoadError,
    ConfigurationError,
    OAuth2Error,
    PKCEError,
    ProtocolError,
    TokenAcquisitionCancelled,
    TokenAcquisitionError,
    TransportError,
)
from okta_pkce.models.security import PKCEChallengePair
from okta_pkce.primitives.pkce import ChallengeGenerator
from okta_pkce.services.cache import TokenCache
from okta_pkce.services.flow import AuthorizationFlow
from okta_pkce.token_provider import (
    DEFAULT_CACHE_KEY,
    BlockingTokenProvider,
    TokenProvider,
)

__all__ = [
    "DEFAULT_CACHE_KEY",
    "DEFAULT_CACHE_TTL",
    "AuthenticationError",
    "AuthorizationFlow",
    "BlockingTokenProvider",
    "CacheLoadError",
    "ChallengeGenerator",
    "ConfigurationError",
    "OAuth2Error",
    "PKCEChallengePair",
    "PKCEError",
    "ProtocolError",
    "TokenAcquisitionCancelled",
    "TokenAcquisitionError",
    "TokenCache",
    "TokenProvider",
    "TokenProviderConfig",
    "TransportError",
]
