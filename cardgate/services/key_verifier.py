"""
Key verifier: decides whether one generation request may proceed.
"""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from cardgate.core.config import settings
from cardgate.core.exceptions import (
    AccessDeniedError,
    InvalidKeyError,
    KeyExpiredError,
    QuotaExhaustedError,
    StoreUnavailableError,
)
from cardgate.models.access_key import AccessKey
from cardgate.services.key_registry import mask_key_code
from cardgate.utils.timeutils import as_utc, utcnow

logger = logging.getLogger(__name__)

GENERIC_DENIED_MESSAGE = "Access denied"

_REASON_MESSAGES = {
    InvalidKeyError.reason: "Invalid access key",
    KeyExpiredError.reason: "Access key has expired",
    QuotaExhaustedError.reason: "Access key usage quota is exhausted",
}


def check_admissible(key: AccessKey, now: Optional[datetime] = None) -> None:
    """
    Raise if an active key is expired or out of quota.

    Expiry is checked before quota.
    """
    now = as_utc(now) if now else utcnow()

    expires_at = as_utc(key.expires_at)
    if expires_at is not None and expires_at <= now:
        raise KeyExpiredError(key.id)

    if key.max_uses != -1 and key.used_count >= key.max_uses:
        raise QuotaExhaustedError(key.id)


def verify_access_key(db: Session, code: Optional[str], now: Optional[datetime] = None) -> AccessKey:
    """
    Verify an access key code for one generation attempt.

    Args:
        db: Database session
        code: Bearer code presented by the caller
        now: Evaluation time override (tests)

    Returns:
        The admitted AccessKey; its id is used for usage accounting

    Raises:
        InvalidKeyError: No active key with this code
        KeyExpiredError: expires_at has passed
        QuotaExhaustedError: used_count reached max_uses
        StoreUnavailableError: The key store failed
    """
    if not code:
        logger.warning("Access denied: empty access key")
        raise InvalidKeyError()

    try:
        key = (
            db.query(AccessKey)
            .filter(AccessKey.key_code == code, AccessKey.is_active == True)  # noqa: E712
            .first()
        )
    except SQLAlchemyError as e:
        logger.error(f"Key store error during verification: {e}", exc_info=True)
        raise StoreUnavailableError("Failed to verify access key") from e

    if key is None:
        logger.warning(f"Access denied (invalid_key): {mask_key_code(code)}")
        raise InvalidKeyError()

    try:
        check_admissible(key, now)
    except AccessDeniedError as e:
        logger.warning(f"Access denied ({e.reason}): key id={key.id}, name={key.name}")
        raise

    logger.debug(f"Access key admitted: id={key.id}, used={key.used_count}/{key.max_uses}")
    return key


def rejection_message(error: AccessDeniedError) -> str:
    """
    Caller-facing text for a verification rejection.

    Reason-specific unless EXPOSE_REJECTION_REASONS is off, in which case
    invalid, expired and exhausted keys are indistinguishable to the caller.
    """
    if settings.EXPOSE_REJECTION_REASONS:
        message = _REASON_MESSAGES.get(error.reason, GENERIC_DENIED_MESSAGE)
    else:
        message = GENERIC_DENIED_MESSAGE
    if settings.SUPPORT_CONTACT:
        message = f"{message}, please contact the administrator: {settings.SUPPORT_CONTACT}"
    return message
