"""
Error taxonomy for the analysis pipeline.

Every error is terminal for the current analysis attempt. Each carries a
user-facing message and the HTTP status the API layer answers with.
"""
from enum import Enum
from typing import Optional


class ContractShieldError(Exception):
    """Base class for all pipeline errors."""
    status_code = 500
    user_message = "Something went wrong. Please try again."

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.user_message)

    def to_dict(self) -> dict:
        return {
            'success': False,
            'error': type(self).__name__,
            'message': self.user_message,
        }


class EmptyInputError(ContractShieldError):
    """Raised when the submitted contract text is empty or whitespace-only."""
    status_code = 400
    user_message = "Please provide contract text to analyze."


class InputTooLongError(ContractShieldError):
    """
    Raised when the contract text exceeds the configured input limit.

    Attributes:
        length: Characters submitted.
        limit: Characters accepted.
    """
    status_code = 413

    def __init__(self, length: int, limit: int):
        self.length = length
        self.limit = limit
        super().__init__(f"Contract text is {length} characters; the limit is {limit}")

    @property
    def user_message(self) -> str:
        return (
            f"This contract is too long to analyze in one pass "
            f"({self.length:,} characters, limit {self.limit:,}). "
            "Split it into sections and analyze each one."
        )

    def to_dict(self) -> dict:
        data = super().to_dict()
        data['length'] = self.length
        data['limit'] = self.limit
        return data


class MissingCredentialError(ContractShieldError):
    """Raised when no model credential is configured."""
    status_code = 401
    user_message = "An API key is required. Add it in Settings or try the demo."


class QuotaExceededError(ContractShieldError):
    """Raised when the free tier has no reviews left this month."""
    status_code = 402
    user_message = (
        "You've used all free reviews this month. "
        "Upgrade to Pro for unlimited reviews."
    )


class ServiceErrorKind(str, Enum):
    UNAUTHORIZED = 'unauthorized'
    RATE_LIMITED = 'rate_limited'
    OTHER = 'other'


_SERVICE_MESSAGES = {
    ServiceErrorKind.UNAUTHORIZED: "Invalid API key. Please check your credential in Settings.",
    ServiceErrorKind.RATE_LIMITED: "Rate limit exceeded. Please wait a moment and try again.",
    ServiceErrorKind.OTHER: "The analysis service is unavailable. Please try again.",
}


class ServiceError(ContractShieldError):
    """
    Raised when the model service call fails.

    Attributes:
        kind: Classification used to pick the user message.
        upstream_status: HTTP status returned by the service, if any.
    """
    status_code = 502

    def __init__(
        self,
        kind: ServiceErrorKind = ServiceErrorKind.OTHER,
        message: Optional[str] = None,
        upstream_status: Optional[int] = None
    ):
        self.kind = ServiceErrorKind(kind)
        self.upstream_status = upstream_status
        super().__init__(message or _SERVICE_MESSAGES[self.kind])

    @property
    def user_message(self) -> str:
        return _SERVICE_MESSAGES[self.kind]

    def to_dict(self) -> dict:
        data = super().to_dict()
        data['kind'] = self.kind.value
        if self.upstream_status is not None:
            data['upstream_status'] = self.upstream_status
        return data


class ParseError(ContractShieldError):
    """Raised when a model response cannot be read as a JSON object."""
    status_code = 502
    user_message = "Failed to parse analysis. The contract may be too short or unclear."


class StorageError(ContractShieldError):
    """Raised when a snapshot cannot be written to durable storage."""
    status_code = 500
    user_message = "Could not save your data. Please try again."
