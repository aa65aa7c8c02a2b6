"""
Key registry: administrative CRUD over access keys.

Name uniqueness is checked here to give a friendly error, and enforced by the
unique constraint on access_keys.name for concurrent creates.
"""
import logging
import secrets
from datetime import datetime, timedelta
from typing import Any, List, Optional

from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from cardgate.core.config import settings
from cardgate.core.database import Base
from cardgate.core.exceptions import DuplicateNameError, KeyNotFoundError, StoreUnavailableError
from cardgate.models.access_key import AccessKey
from cardgate.models.usage_log import UsageLog
from cardgate.utils.timeutils import as_utc, utcnow

logger = logging.getLogger(__name__)


def generate_key_code() -> str:
    """Generate an unpredictable access key code."""
    return f"{settings.ACCESS_KEY_PREFIX}{secrets.token_urlsafe(24)}"


def mask_key_code(code: Optional[str]) -> str:
    """Masked form of a code for log lines."""
    if not code:
        return "***"
    return f"{code[:6]}..." if len(code) > 6 else "***"


def normalize_max_uses(value: Any) -> int:
    """Keep -1 or a positive quota, otherwise fall back to DEFAULT_MAX_USES."""
    try:
        value = int(value)
    except (TypeError, ValueError):
        return settings.DEFAULT_MAX_USES
    if value == -1 or value > 0:
        return value
    return settings.DEFAULT_MAX_USES


def normalize_days_valid(value: Any) -> int:
    """Keep a day count in 1..MAX_DAYS_VALID, otherwise fall back to DEFAULT_DAYS_VALID."""
    try:
        value = int(value)
    except (TypeError, ValueError):
        return settings.DEFAULT_DAYS_VALID
    if 0 < value <= settings.MAX_DAYS_VALID:
        return value
    return settings.DEFAULT_DAYS_VALID


def _find_by_name(db: Session, name: str) -> Optional[AccessKey]:
    # Global check: inactive keys still own their name
    return db.query(AccessKey).filter(AccessKey.name == name).first()


def create_key(
    db: Session,
    name: str,
    max_uses: Any = None,
    days_valid: Any = None,
    now: Optional[datetime] = None,
) -> AccessKey:
    """
    Create a new access key.

    Args:
        db: Database session
        name: Unique, non-empty label
        max_uses: Usage quota (-1 for unlimited); invalid values use the default
        days_valid: Days until expiry; invalid values use the default
        now: Creation time override (tests)

    Returns:
        The persisted AccessKey, including its generated key_code

    Raises:
        ValueError: If name is empty
        DuplicateNameError: If a key with the same name exists
        StoreUnavailableError: If the key store fails
    """
    name = (name or "").strip()
    if not name:
        raise ValueError("Name is required")

    max_uses = normalize_max_uses(max_uses)
    days_valid = normalize_days_valid(days_valid)
    expires_at = (as_utc(now) if now else utcnow()) + timedelta(days=days_valid)

    try:
        if _find_by_name(db, name):
            raise DuplicateNameError(name)

        # One retry covers a (practically impossible) key_code collision
        for attempt in range(2):
            db_key = AccessKey(
                key_code=generate_key_code(),
                name=name,
                max_uses=max_uses,
                used_count=0,
                expires_at=expires_at,
                is_active=True,
            )
            db.add(db_key)
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                if _find_by_name(db, name):
                    logger.info(f"Concurrent create lost the race for name '{name}'")
                    raise DuplicateNameError(name)
                if attempt == 1:
                    raise StoreUnavailableError("Failed to generate unique access key")
                logger.warning("Access key code collision, regenerating")
                continue
            db.refresh(db_key)
            break
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Key store error while creating access key '{name}': {e}", exc_info=True)
        raise StoreUnavailableError("Failed to create access key") from e

    logger.info(
        f"Created access key: id={db_key.id}, name={name}, max_uses={max_uses}, "
        f"expires_at={expires_at.isoformat()}"
    )
    return db_key


def get_key(db: Session, key_id: int) -> AccessKey:
    """Fetch a key by id or raise KeyNotFoundError."""
    try:
        db_key = db.query(AccessKey).filter(AccessKey.id == key_id).first()
    except SQLAlchemyError as e:
        logger.error(f"Key store error while loading access key {key_id}: {e}", exc_info=True)
        raise StoreUnavailableError("Failed to load access key") from e
    if not db_key:
        raise KeyNotFoundError(key_id)
    return db_key


def update_key(
    db: Session,
    key_id: int,
    max_uses: int,
    expires_at: Optional[datetime],
) -> AccessKey:
    """
    Overwrite quota and expiry of an existing key.

    Name and code are never changed here, so no uniqueness check is needed.
    """
    db_key = get_key(db, key_id)

    try:
        db_key.max_uses = int(max_uses)
        db_key.expires_at = as_utc(expires_at)
        db.commit()
        db.refresh(db_key)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Key store error while updating access key {key_id}: {e}", exc_info=True)
        raise StoreUnavailableError("Failed to update access key") from e

    logger.info(f"Updated access key: id={key_id}, max_uses={db_key.max_uses}, expires_at={db_key.expires_at}")
    return db_key


def delete_key(db: Session, key_id: int) -> None:
    """
    Delete a key and its usage logs.

    Logs go first so the foreign key is satisfied even without ON DELETE CASCADE.
    Deleting an unknown id is a no-op.
    """
    try:
        logs_deleted = (
            db.query(UsageLog)
            .filter(UsageLog.key_id == key_id)
            .delete(synchronize_session=False)
        )
        keys_deleted = (
            db.query(AccessKey)
            .filter(AccessKey.id == key_id)
            .delete(synchronize_session=False)
        )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Key store error while deleting access key {key_id}: {e}", exc_info=True)
        raise StoreUnavailableError("Failed to delete access key") from e

    logger.info(f"Deleted access key: id={key_id} (keys={keys_deleted}, usage_logs={logs_deleted})")


def list_keys(db: Session) -> List[AccessKey]:
    """All keys, newest first."""
    try:
        return (
            db.query(AccessKey)
            .order_by(AccessKey.created_at.desc(), AccessKey.id.desc())
            .all()
        )
    except SQLAlchemyError as e:
        logger.error(f"Key store error while listing access keys: {e}", exc_info=True)
        raise StoreUnavailableError("Failed to list access keys") from e


def list_usage(db: Session, key_id: int, limit: Optional[int] = None) -> List[UsageLog]:
    """Most recent usage logs for a key, newest first, capped at USAGE_LOG_LIMIT."""
    if limit is None:
        limit = settings.USAGE_LOG_LIMIT
    try:
        return (
            db.query(UsageLog)
            .filter(UsageLog.key_id == key_id)
            .order_by(UsageLog.created_at.desc(), UsageLog.id.desc())
            .limit(limit)
            .all()
        )
    except SQLAlchemyError as e:
        logger.error(f"Key store error while listing usage for key {key_id}: {e}", exc_info=True)
        raise StoreUnavailableError("Failed to list usage logs") from e


def init_store(engine: Engine) -> None:
    """Create the access_keys and usage_logs tables if they do not exist."""
    # Imported for their side effect of registering tables on Base.metadata
    import cardgate.models  # noqa: F401

    try:
        Base.metadata.create_all(bind=engine)
    except SQLAlchemyError as e:
        logger.error(f"Failed to initialize key store: {e}", exc_info=True)
        raise StoreUnavailableError("Failed to initialize database") from e
    logger.info("Key store tables created/verified")
