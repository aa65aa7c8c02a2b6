"""Schemas for usage logs."""
from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, field_validator

from cardgate.utils.timeutils import as_utc


class UsageLogResponse(BaseModel):
    """Response schema for a usage log entry."""
    id: int
    key_id: int
    request_text: Optional[str] = None
    success: bool
    error_msg: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}

    @field_validator("created_at")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        return as_utc(v)


class UsageLogListResponse(BaseModel):
    """Response schema for usage log list (newest first)."""
    items: List[UsageLogResponse]
    total: int
