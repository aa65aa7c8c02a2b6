"""
Access key management endpoints (admin gateway).
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from cardgate.core.auth import AdminClient, require_admin
from cardgate.core.database import get_db
from cardgate.core.exceptions import DuplicateNameError, KeyNotFoundError, StoreUnavailableError
from cardgate.schemas.access_key import (
    AccessKeyCreateRequest,
    AccessKeyDeleteResponse,
    AccessKeyListResponse,
    AccessKeyResponse,
    AccessKeyUpdateRequest,
)
from cardgate.schemas.usage_log import UsageLogListResponse, UsageLogResponse
from cardgate.services import key_registry

logger = logging.getLogger(__name__)

router = APIRouter()


def _store_error(e: StoreUnavailableError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=e.message,
        headers=e.headers,
    )


@router.get("/session")
async def admin_session(client: AdminClient = Depends(require_admin)):
    """
    Confirm the admin credential.

    Used by the admin console to check a password before showing the key list.
    """
    return {"ok": True, "auth_enabled": client.authenticated}


@router.post("/init-db")
async def init_database(
    _client: AdminClient = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Create the key store tables if they are missing."""
    try:
        key_registry.init_store(db.get_bind())
    except StoreUnavailableError as e:
        raise _store_error(e)
    return {"success": True, "message": "Database initialized"}


@router.get("/keys", response_model=AccessKeyListResponse)
async def list_access_keys(
    _client: AdminClient = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """
    List all access keys, newest first.

    No server-side filtering; active-only views are a client concern.
    """
    try:
        keys = key_registry.list_keys(db)
    except StoreUnavailableError as e:
        raise _store_error(e)

    logger.info(f"Listed {len(keys)} access keys")
    return AccessKeyListResponse(
        items=[AccessKeyResponse.model_validate(key) for key in keys],
        total=len(keys),
    )


@router.post("/keys", response_model=AccessKeyResponse, status_code=status.HTTP_201_CREATED)
async def create_access_key(
    request: AccessKeyCreateRequest,
    _client: AdminClient = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """
    Create a new access key.

    The response carries the generated key_code; hand it to the key holder.
    """
    try:
        db_key = key_registry.create_key(
            db,
            name=request.name,
            max_uses=request.max_uses,
            days_valid=request.expires_in_days,
        )
    except DuplicateNameError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=e.message,
            headers=e.headers,
        )
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )
    except StoreUnavailableError as e:
        raise _store_error(e)

    return AccessKeyResponse.model_validate(db_key)


@router.patch("/keys/{key_id}", response_model=AccessKeyResponse)
async def update_access_key(
    key_id: int,
    request: AccessKeyUpdateRequest,
    _client: AdminClient = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """
    Update quota and expiry of an access key.

    Both fields are overwritten; the name and code cannot be changed.
    """
    try:
        db_key = key_registry.update_key(
            db,
            key_id,
            max_uses=request.max_uses,
            expires_at=request.expires_at,
        )
    except KeyNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=e.message,
            headers=e.headers,
        )
    except StoreUnavailableError as e:
        raise _store_error(e)

    return AccessKeyResponse.model_validate(db_key)


@router.delete("/keys/{key_id}", response_model=AccessKeyDeleteResponse)
async def delete_access_key(
    key_id: int,
    _client: AdminClient = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Delete an access key together with its usage logs."""
    try:
        key_registry.delete_key(db, key_id)
    except StoreUnavailableError as e:
        raise _store_error(e)

    return AccessKeyDeleteResponse(success=True, id=key_id)


@router.get("/keys/{key_id}/logs", response_model=UsageLogListResponse)
async def list_access_key_logs(
    key_id: int,
    _client: AdminClient = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Most recent usage logs of a key (newest first, capped)."""
    try:
        logs = key_registry.list_usage(db, key_id)
    except StoreUnavailableError as e:
        raise _store_error(e)

    return UsageLogListResponse(
        items=[UsageLogResponse.model_validate(log) for log in logs],
        total=len(logs),
    )
