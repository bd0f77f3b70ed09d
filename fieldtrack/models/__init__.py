"""
Field Operations Tracker
Model package — shared Flask-SQLAlchemy handle and column helpers.

All tables use UUID4 string primary keys so ids stay opaque to callers
(the chat front-ends echo them back verbatim).
"""

import uuid
from datetime import datetime, timezone

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


def new_id() -> str:
    """Generate a new UUID4 string for primary keys."""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value else None
