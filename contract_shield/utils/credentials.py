"""
Credential helpers for the model API key.

The pipeline only checks presence. Format checks here are advisory and are
used by the HTTP layer to warn, never to reject.
"""
import logging
from typing import Optional

from contract_shield.errors import MissingCredentialError

logger = logging.getLogger(__name__)

EXPECTED_PREFIXES = ('sk-',)


def has_credential(credential: Optional[str]) -> bool:
    return bool(credential and credential.strip())


def ensure_credential(credential: Optional[str]) -> str:
    """
    Return the credential unchanged if present.

    Raises:
        MissingCredentialError: If the credential is None, empty or whitespace.
    """
    if not has_credential(credential):
        logger.warning("No model credential configured")
        raise MissingCredentialError()
    return credential


def mask_credential(credential: Optional[str]) -> str:
    """
    Mask a credential for display and logs, e.g. 'sk-proj-abcd...wxyz'.
    """
    if not has_credential(credential):
        return ''
    if len(credential) <= 16:
        return '*' * len(credential)
    return f"{credential[:12]}...{credential[-4:]}"


def looks_like_api_key(credential: Optional[str]) -> bool:
    """Advisory syntactic check on the key's prefix."""
    if not has_credential(credential):
        return False
    return credential.strip().startswith(EXPECTED_PREFIXES)
