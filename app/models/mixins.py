# app/models/mixins.py
import uuid
from sqlalchemy import Column, DateTime
from sqlalchemy.sql import func


def generate_uuid():
    """Generate a UUID string for use as a primary key"""
    return str(uuid.uuid4())


class TimestampMixin:
    """Adds created_at/updated_at columns maintained by the database"""
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class CreatedAtMixin:
    """Append-only rows only carry a creation timestamp"""
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
