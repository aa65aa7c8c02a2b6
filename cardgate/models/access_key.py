"""Access key database model."""
from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from cardgate.core.database import Base


class AccessKey(Base):
    """Bearer access key with a usage quota and an optional expiry."""
    __tablename__ = "access_keys"

    id = Column(Integer, primary_key=True, index=True)
    key_code = Column(String(64), unique=True, nullable=False, index=True)
    # Unique across all keys, active or not
    name = Column(String(100), unique=True, nullable=False)
    max_uses = Column(Integer, nullable=False, default=-1)  # -1 = unlimited
    used_count = Column(Integer, nullable=False, default=0)
    expires_at = Column(DateTime(timezone=True), nullable=True)  # NULL = never expires
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    usage_logs = relationship(
        "UsageLog",
        back_populates="access_key",
        passive_deletes=True,
    )

    @property
    def is_unlimited(self) -> bool:
        return self.max_uses == -1

    @property
    def remaining_uses(self):
        """Uses left before the quota is exhausted, or None when unlimited."""
        if self.is_unlimited:
            return None
        return max(self.max_uses - self.used_count, 0)
