"""Database models."""
from cardgate.models.access_key import AccessKey
from cardgate.models.usage_log import UsageLog

__all__ = [
    "AccessKey",
    "UsageLog",
]
