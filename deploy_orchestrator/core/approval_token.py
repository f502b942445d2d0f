# deploy_orchestrator/core/approval_token.py
"""Approval token minting and verification"""

import secrets
import string
from typing import Optional

from ..constants import DEFAULT_TOKEN_LENGTH, TOKEN_LOG_PREFIX_LENGTH
from ..utils.hash_utils import keyed_string_hash, digests_equal

TOKEN_ALPHABET = string.ascii_letters + string.digits


class ApprovalTokenService:
    """Mint opaque approval tokens and compare them by digest only

    The plaintext token is returned once from :meth:`mint` and never kept.
    With a secret configured the digest is HMAC-SHA256, so a leaked store
    cannot be used to test guesses offline.
    """

    def __init__(self, secret: Optional[str] = None, token_length: int = DEFAULT_TOKEN_LENGTH):
        if token_length < DEFAULT_TOKEN_LENGTH:
            raise ValueError(f"Approval tokens must be at least {DEFAULT_TOKEN_LENGTH} characters")
        self.secret = secret
        self.token_length = token_length

    def mint(self) -> str:
        """Generate a new plaintext token"""
        return "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(self.token_length))

    def digest(self, token: str) -> str:
        """Digest stored in place of the token"""
        return keyed_string_hash(token, self.secret)

    def is_well_formed(self, token: Optional[str]) -> bool:
        """Length and alphabet check done before any lookup"""
        return (
            isinstance(token, str)
            and len(token) == self.token_length
            and all(c in TOKEN_ALPHABET for c in token)
        )

    def verify(self, token: str, stored_hash: Optional[str]) -> bool:
        """Constant-time comparison of a presented token against a stored digest"""
        if not self.is_well_formed(token):
            return False
        return digests_equal(self.digest(token), stored_hash)


def token_prefix(token: Optional[str]) -> str:
    """Loggable form of a token"""
    if not token:
        return "<empty>"
    return f"{token[:TOKEN_LOG_PREFIX_LENGTH]}..."
