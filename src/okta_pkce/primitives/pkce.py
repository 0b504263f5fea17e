"""PKCE (Proof Key for Code Exchange) challenge generation.

Implements RFC 7636 S256 verifier/challenge generation. A new pair is drawn
for every token acquisition attempt.
"""

from __future__ import annotations

import base64
import hashlib
import secrets
import string

from okta_pkce.models.errors import PKCEError
from okta_pkce.models.security import PKCEChallengePair

DEFAULT_VERIFIER_LENGTH = 50


class ChallengeGenerator:
    """Generates PKCE verifier/challenge pairs.

    The verifier is a random string of ASCII letters. Fifty characters is
    the length downstream consumers expect, although anything in 43..128 is
    valid per RFC 7636.
    """

    def __init__(self, verifier_length: int = DEFAULT_VERIFIER_LENGTH):
        self.verifier_length = verifier_length

    def generate(self) -> PKCEChallengePair:
        """Generate a fresh verifier and its S256 challenge.

        Returns:
            PKCEChallengePair: Immutable pair for a single authorization flow

        Raises:
            PKCEError: If the random source is unavailable or the configured
                length is outside RFC 7636 bounds
        """
        try:
            code_verifier = self._generate_code_verifier()
            return PKCEChallengePair(
                code_verifier=code_verifier,
                code_challenge=self.compute_challenge(code_verifier),
            )
        except Exception as e:
            raise PKCEError(f"Failed to generate PKCE parameters: {e}") from e

    @staticmethod
    def compute_challenge(code_verifier: str) -> str:
        """BASE64URL-ENCODE(SHA256(code_verifier)) without padding."""
        digest = hashlib.sha256(code_verifier.encode("utf-8")).digest()
        return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")

    def _generate_code_verifier(self) -> str:
        alphabet = string.ascii_letters
        return "".join(secrets.choice(alphabet) for _ in range(self.verifier_length))
