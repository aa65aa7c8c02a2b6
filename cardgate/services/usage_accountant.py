"""
Usage accountant: records the outcome of one generation attempt.

Accounting is best effort. Storage failures are logged and never propagate
to the caller, whose generation result has already been produced.
"""
import logging
from typing import Optional

from fastapi import Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from cardgate.models.access_key import AccessKey
from cardgate.models.usage_log import UsageLog

logger = logging.getLogger(__name__)


def client_origin(request: Optional[Request]) -> str:
    """Caller's network origin, honoring X-Forwarded-For from proxies."""
    if request is None:
        return "unknown"
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def increment_usage(db: Session, key_id: int) -> None:
    """Atomically add one to used_count (single UPDATE, no read-modify-write)."""
    db.query(AccessKey).filter(AccessKey.id == key_id).update(
        {AccessKey.used_count: AccessKey.used_count + 1},
        synchronize_session=False,
    )
    db.commit()


def log_usage(
    db: Session,
    key_id: int,
    origin: str,
    request_text: Optional[str],
    success: bool,
    error_msg: Optional[str] = None,
) -> UsageLog:
    """Append one usage log row."""
    entry = UsageLog(
        key_id=key_id,
        request_text=f"[IP: {origin}] {request_text or ''}",
        success=success,
        error_msg="" if success else (error_msg or "Unknown error"),
    )
    db.add(entry)
    db.commit()
    return entry


def record_usage(
    db: Session,
    key_id: int,
    origin: str,
    request_text: Optional[str],
    success: bool,
    error_msg: Optional[str] = None,
) -> None:
    """
    Record exactly one generation attempt for a verified key.

    Success increments used_count first, then logs. Failure only logs, so a
    failed generation never consumes quota.
    """
    if success:
        try:
            increment_usage(db, key_id)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to increment usage for key {key_id}: {e}", exc_info=True)

    try:
        log_usage(db, key_id, origin, request_text, success, error_msg)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to write usage log for key {key_id}: {e}", exc_info=True)
        return

    logger.info(f"Recorded usage: key id={key_id}, success={success}, origin={origin}")
