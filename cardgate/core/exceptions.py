"""Domain exceptions for the access-key core.

Services raise these; API endpoints translate them into HTTP responses.
"""
from typing import Optional


class CardGateError(Exception):
    """Base exception for all CardGate errors."""

    error_type = "internal_error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    @property
    def headers(self) -> dict:
        """Response headers identifying the error category."""
        return {"X-Error-Type": self.error_type}


class DuplicateNameError(CardGateError):
    """An access key with this name already exists."""

    error_type = "duplicate_name"

    def __init__(self, name: str):
        self.name = name
        super().__init__(f'Access key name "{name}" already exists, please choose another name')


class KeyNotFoundError(CardGateError):
    """No access key with this id."""

    error_type = "not_found"

    def __init__(self, key_id: int):
        self.key_id = key_id
        super().__init__(f"Access key with id {key_id} not found")


class AccessDeniedError(CardGateError):
    """Verification rejected the presented access key."""

    error_type = "access_denied"
    reason = "denied"

    def __init__(self, message: str, key_id: Optional[int] = None):
        self.key_id = key_id
        super().__init__(message)


class InvalidKeyError(AccessDeniedError):
    reason = "invalid_key"

    def __init__(self):
        super().__init__("Invalid access key")


class KeyExpiredError(AccessDeniedError):
    reason = "expired"

    def __init__(self, key_id: int):
        super().__init__("Access key has expired", key_id=key_id)


class QuotaExhaustedError(AccessDeniedError):
    reason = "quota_exhausted"

    def __init__(self, key_id: int):
        super().__init__("Access key usage quota is exhausted", key_id=key_id)


class StoreUnavailableError(CardGateError):
    """The key store could not be reached or the query failed."""

    error_type = "store_unavailable"


class CardGenerationError(CardGateError):
    """The downstream content generation failed."""

    error_type = "generation_failed"
