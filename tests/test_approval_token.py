"""
Unit tests for approval token minting and verification.
"""

import string

import pytest

from deploy_orchestrator.core.approval_token import ApprovalTokenService, token_prefix


class TestApprovalTokenService:
    """Tests for token generation and digest comparison."""

    def test_mint_length_and_alphabet(self):
        token = ApprovalTokenService().mint()

        assert len(token) == 64
        assert all(c in string.ascii_letters + string.digits for c in token)

    def test_tokens_are_unique(self):
        service = ApprovalTokenService()

        assert len({service.mint() for _ in range(50)}) == 50

    def test_short_tokens_refused(self):
        with pytest.raises(ValueError):
            ApprovalTokenService(token_length=32)

    def test_verify_round_trip(self):
        service = ApprovalTokenService(secret="k")
        token = service.mint()

        assert service.verify(token, service.digest(token))
        assert not service.verify(service.mint(), service.digest(token))

    def test_digest_is_not_the_token(self):
        service = ApprovalTokenService()
        token = service.mint()

        assert service.digest(token) != token
        assert len(service.digest(token)) == 64

    def test_secret_changes_digest(self):
        token = ApprovalTokenService().mint()

        assert ApprovalTokenService(secret="a").digest(token) != ApprovalTokenService(secret="b").digest(token)
        assert ApprovalTokenService().digest(token) != ApprovalTokenService(secret="a").digest(token)

    @pytest.mark.parametrize("token", [None, "", "short", "x" * 63 + "!", "x" * 65])
    def test_malformed_tokens(self, token):
        service = ApprovalTokenService()

        assert not service.is_well_formed(token)
        assert not service.verify(token, "anything")

    def test_empty_stored_hash_never_verifies(self):
        service = ApprovalTokenService()

        assert not service.verify(service.mint(), None)
        assert not service.verify(service.mint(), "")


class TestTokenPrefix:
    """Tests for the loggable token form."""

    def test_prefix_is_eight_characters(self):
        assert token_prefix("abcdefghijklmnop") == "abcdefgh..."

    def test_empty(self):
        assert token_prefix("") == "<empty>"
