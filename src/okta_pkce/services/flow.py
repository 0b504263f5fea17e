"""PKCE authorization code flow against an Okta-style identity provider.

Runs the three sequential round trips that turn a username and password
into an access token:

1. Primary authentication, yielding a one-time session token
2. Authorization with that session token, yielding an authorization code
3. Code exchange with the PKCE verifier, yielding the access token
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from okta_pkce.config import TokenProviderConfig
from okta_pkce.models.errors import (
    AuthenticationError,
    ProtocolError,
    TransportError,
)
from okta_pkce.models.flow import (
    AuthenticationRequest,
    AuthenticationResponse,
    AuthorizationRequest,
    TokenRequest,
    TokenResponse,
)
from okta_pkce.primitives.forms import find_form_inputs
from okta_pkce.primitives.pkce import ChallengeGenerator

logger = logging.getLogger(__name__)

AUTHORIZE_FORM_ID = "appForm"
AUTHORIZE_CODE_INPUT = "code"

# form_post error values that mean the session or user was rejected
SESSION_REJECTED_ERRORS = frozenset(
    {"access_denied", "login_required", "consent_required", "interaction_required"}
)


class AuthorizationFlow:
    """Executes the authenticate -> authorize -> exchange protocol.

    Each call to :meth:`acquire_token` is an independent attempt with its
    own PKCE pair and session token. There is no retry at this layer; any
    failure aborts the attempt and names the step that failed.
    """

    def __init__(
        self,
        config: TokenProviderConfig,
        http_client: httpx.AsyncClient,
        challenge_generator: ChallengeGenerator | None = None,
    ):
        """Initialize the flow.

        Args:
            config: Provider endpoints, client and account settings
            http_client: Transport used for all three round trips
            challenge_generator: Source of PKCE pairs
        """
        self.config = config
        self._http_client = http_client
        self._challenge_generator = challenge_generator or ChallengeGenerator(
            config.verifier_length
        )

    async def acquire_token(self) -> str:
        """Run the full protocol and return the opaque access token.

        Raises:
            AuthenticationError: Credentials or session rejected
            ProtocolError: A response lacked an expected field or element
            TransportError: Network failure, timeout or unparseable body
            PKCEError: The random source is unavailable
        """
        pkce_pair = self._challenge_generator.generate()

        logger.debug(f"Authenticating {self.config.username} at {self.config.base_url}")
        session_token = await self.authenticate()

        logger.debug(f"Requesting authorization code for client {self.config.client_id}")
        code = await self.authorize(session_token, pkce_pair.code_challenge)

        logger.debug("Exchanging authorization code for access token")
        access_token = await self.exchange(code, pkce_pair.code_verifier)

        logger.info(f"Acquired access token for client {self.config.client_id}")
        return access_token

    async def authenticate(self) -> str:
        """Step 1: exchange username and password for a session token."""
        step = "authenticate"
        request = AuthenticationRequest(
            authn_endpoint=self.config.authn_endpoint,
            username=self.config.username,
            password=self.config.password.get_secret_value(),
        )

        response = await self._send(
            step,
            "POST",
            request.authn_endpoint,
            json=request.to_json(),
            headers={"Accept": "application/json"},
        )

        if response.status_code >= 500:
            raise TransportError(
                step, f"Provider unavailable (HTTP {response.status_code})"
            )

        if response.status_code >= 400:
            # Rejection pages are not always JSON; the summary is best effort
            try:
                data = self._read_json_object(step, response)
                authn_response = AuthenticationResponse.model_validate(data)
            except (TransportError, ValidationError):
                authn_response = AuthenticationResponse()
        else:
            data = self._read_json_object(step, response)
            try:
                authn_response = AuthenticationResponse.model_validate(data)
            except ValidationError as e:
                raise AuthenticationError(
                    step, f"Invalid authentication response: {e}"
                ) from e

        if response.status_code >= 400 or not authn_response.is_success():
            summary = authn_response.error_summary or (
                "request rejected"
                if authn_response.is_success()
                else "no sessionToken in response"
            )
            logger.warning(
                f"Authentication rejected with {response.status_code}: "
                f"{authn_response.error_code} - {summary}"
            )
            raise AuthenticationError(
                step, f"Credentials rejected (HTTP {response.status_code}): {summary}"
            )

        return authn_response.session_token

    async def authorize(self, session_token: str, code_challenge: str) -> str:
        """Step 2: trade the session token for an authorization code."""
        step = "authorize"
        request = AuthorizationRequest(
            authorization_endpoint=self.config.authorization_endpoint,
            client_id=self.config.client_id,
            redirect_uri=self.config.redirect_uri,
            code_challenge=code_challenge,
            session_token=session_token,
        )

        response = await self._send(
            step,
            "GET",
            request.authorization_endpoint,
            params=request.to_query_params(),
        )

        if response.status_code in (401, 403):
            raise AuthenticationError(
                step, f"Session rejected (HTTP {response.status_code})"
            )
        if response.status_code >= 500:
            raise TransportError(
                step, f"Provider unavailable (HTTP {response.status_code})"
            )

        inputs = find_form_inputs(response.text, AUTHORIZE_FORM_ID)
        if inputs is None:
            logger.warning(
                f"Authorize response ({response.status_code}) has no "
                f"#{AUTHORIZE_FORM_ID} form"
            )
            raise ProtocolError(
                step,
                f"Response (HTTP {response.status_code}) has no form "
                f"'{AUTHORIZE_FORM_ID}'",
            )

        error = inputs.get("error")
        if error:
            description = inputs.get("error_description", "")
            logger.warning(f"Authorization failed: {error} - {description}")
            if error in SESSION_REJECTED_ERRORS:
                raise AuthenticationError(
                    step, f"Authorization denied: {error} ({description})"
                )
            raise ProtocolError(step, f"Authorization failed: {error} ({description})")

        code = inputs.get(AUTHORIZE_CODE_INPUT)
        if not code:
            raise ProtocolError(
                step,
                f"Form '{AUTHORIZE_FORM_ID}' has no '{AUTHORIZE_CODE_INPUT}' input",
            )
        return code

    async def exchange(self, code: str, code_verifier: str) -> str:
        """Step 3: exchange the authorization code and verifier for a token."""
        step = "exchange"
        request = TokenRequest(
            token_endpoint=self.config.token_endpoint,
            code=code,
            redirect_uri=self.config.redirect_uri,
            client_id=self.config.client_id,
            code_verifier=code_verifier,
        )

        # Token requests must use form encoding, not JSON (RFC 6749 Section 4.1.3)
        response = await self._send(
            step,
            "POST",
            request.token_endpoint,
            data=request.to_form_data(),
            headers={
                "Content-Type": "application/x-www-form-urlencoded",
                "Accept": "application/json",
            },
        )

        if response.status_code >= 500:
            raise TransportError(
                step, f"Provider unavailable (HTTP {response.status_code})"
            )

        data = self._read_json_object(step, response)
        try:
            token_response = TokenResponse.model_validate(data)
        except ValidationError as e:
            raise ProtocolError(step, f"Invalid token response format: {e}") from e

        if not token_response.is_success():
            error = token_response.error or "missing access_token"
            logger.warning(
                f"Token exchange failed with {response.status_code}: "
                f"{error} - {token_response.error_description}"
            )
            raise ProtocolError(
                step, f"Token response has no access_token (HTTP {response.status_code}): {error}"
            )

        return token_response.access_token

    async def _send(
        self, step: str, method: str, url: str, **kwargs: Any
    ) -> httpx.Response:
        try:
            return await self._http_client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            raise TransportError(step, f"Request to {url} timed out: {e}") from e
        except httpx.HTTPError as e:
            raise TransportError(step, f"HTTP error calling {url}: {e}") from e

    def _read_json_object(self, step: str, response: httpx.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError as e:
            raise TransportError(
                step, f"Response (HTTP {response.status_code}) is not valid JSON: {e}"
            ) from e
        if not isinstance(data, dict):
            raise TransportError(
                step, f"Response (HTTP {response.status_code}) is not a JSON object"
            )
        return data
