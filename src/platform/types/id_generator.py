from datetime import datetime, timezone
from uuid import UUID

from uuid_utils import uuid7


def new_uuid7() -> UUID:
    """Time-ordered id as a stdlib UUID (what asyncpg and cassandra-driver bind)"""
    return UUID(str(uuid7()))


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
