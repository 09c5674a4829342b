"""
Unit tests for credential helpers.
"""
import pytest

from contract_shield.errors import MissingCredentialError
from contract_shield.utils.credentials import (
    ensure_credential,
    has_credential,
    looks_like_api_key,
    mask_credential,
)


class TestEnsureCredential:
    """Tests for ensure_credential function."""

    def test_present_credential_returned_verbatim(self):
        assert ensure_credential(' sk-abc ') == ' sk-abc '

    @pytest.mark.parametrize("credential", [None, "", "   "])
    def test_missing_credential_raises(self, credential):
        with pytest.raises(MissingCredentialError):
            ensure_credential(credential)

    def test_has_credential(self):
        assert has_credential('anything') is True
        assert has_credential('') is False


class TestMaskCredential:
    """Tests for mask_credential function."""

    def test_long_key_masked(self):
        assert mask_credential('sk-proj-abcdefghijklmnop1234') == 'sk-proj-abcd...1234'

    def test_short_key_fully_hidden(self):
        assert mask_credential('sk-short') == '********'

    def test_empty(self):
        assert mask_credential('') == ''
        assert mask_credential(None) == ''


class TestLooksLikeApiKey:
    """Tests for looks_like_api_key function."""

    def test_expected_prefix(self):
        assert looks_like_api_key('sk-proj-123') is True

    def test_other_prefix(self):
        assert looks_like_api_key('my-secret') is False
        assert looks_like_api_key('') is False
