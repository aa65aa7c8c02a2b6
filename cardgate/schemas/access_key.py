"""Schemas for access key management."""
from datetime import datetime
from typing import Any, Optional
from pydantic import BaseModel, Field, field_validator

from cardgate.utils.timeutils import as_utc


def _coerce_int(v: Any) -> Optional[int]:
    """Best-effort int coercion; unparseable input becomes None."""
    if v is None or v == "" or isinstance(v, bool):
        return None
    try:
        return int(v)
    except (TypeError, ValueError):
        return None


class AccessKeyCreateRequest(BaseModel):
    """Request schema for creating a new access key."""
    name: str = Field(..., min_length=1, max_length=100, description="Unique label for the access key")
    max_uses: Optional[int] = Field(None, description="Usage quota; -1 for unlimited. Invalid values fall back to the default")
    expires_in_days: Optional[int] = Field(None, description="Days until the key expires. Invalid values fall back to the default")

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        return v

    @field_validator("max_uses", "expires_in_days", mode="before")
    @classmethod
    def lenient_int(cls, v: Any) -> Optional[int]:
        return _coerce_int(v)


class AccessKeyUpdateRequest(BaseModel):
    """Request schema for updating quota and expiry of an access key."""
    max_uses: int = Field(..., description="New usage quota; -1 for unlimited")
    expires_at: Optional[datetime] = Field(None, description="New absolute expiry; null clears it")

    @field_validator("expires_at", mode="before")
    @classmethod
    def empty_expiry_is_none(cls, v: Any) -> Any:
        if v == "":
            return None
        return v


class AccessKeyResponse(BaseModel):
    """Response schema for an access key (admin only, includes the code)."""
    id: int
    key_code: str
    name: str
    max_uses: int
    used_count: int
    remaining_uses: Optional[int] = Field(None, description="Uses left before the quota is exhausted; null when unlimited")
    expires_at: Optional[datetime] = None
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}

    @field_validator("expires_at", "created_at")
    @classmethod
    def ensure_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)


class AccessKeyListResponse(BaseModel):
    """Response schema for listing access keys."""
    items: list[AccessKeyResponse]
    total: int


class AccessKeyDeleteResponse(BaseModel):
    success: bool
    id: int
