"""Security-related models for the PKCE flow.

Contains the verifier/challenge pair generated for each token acquisition.
"""

from __future__ import annotations

from dataclasses import dataclass, field

MIN_VERIFIER_LENGTH = 43
MAX_VERIFIER_LENGTH = 128


@dataclass(frozen=True)
class PKCEChallengePair:
    """PKCE (Proof Key for Code Exchange) verifier and challenge (RFC 7636).

    Immutable and created fresh for every acquisition attempt. The verifier
    is sent at token exchange time, the challenge at authorization time.
    """

    code_verifier: str = field(repr=False)
    code_challenge: str = field()
    code_challenge_method: str = field(default="S256")

    def __post_init__(self) -> None:
        """Validate parameters meet RFC 7636 requirements."""
        if not (MIN_VERIFIER_LENGTH <= len(self.code_verifier) <= MAX_VERIFIER_LENGTH):
            raise ValueError("code_verifier must be 43-128 characters")
        # SHA-256 digest, base64url without padding
        if len(self.code_challenge) != 43:
            raise ValueError("code_challenge must be 43 characters")
        if self.code_challenge_method != "S256":
            raise ValueError("Only S256 code challenge method is supported")
