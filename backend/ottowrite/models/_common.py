"""Column defaults shared by the models."""

import uuid
from datetime import datetime, timezone


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    # Python-side timestamps keep microsecond ordering on SQLite, where
    # CURRENT_TIMESTAMP only has one-second resolution.
    return datetime.now(timezone.utc)
