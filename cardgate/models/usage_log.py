"""
Usage log model: one row per generation attempt against an access key.
"""
from sqlalchemy import Column, Integer, Text, Boolean, DateTime, ForeignKey
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from cardgate.core.database import Base


class UsageLog(Base):
    """Audit record of one generation attempt's outcome."""
    __tablename__ = "usage_logs"

    id = Column(Integer, primary_key=True, index=True)
    key_id = Column(
        Integer,
        ForeignKey("access_keys.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    request_text = Column(Text, nullable=True)  # "[IP: <origin>] <input text>"
    success = Column(Boolean, nullable=False)
    error_msg = Column(Text, nullable=True)  # Empty on success
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    access_key = relationship("AccessKey", back_populates="usage_logs")
