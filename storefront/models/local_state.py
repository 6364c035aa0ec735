"""
Local State Model

Per-user key/value state owned by the storefront session:
saved cart, saved schedule, selected items / package, booking form data.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Text, DateTime, UniqueConstraint, Index
from ..database import Base


class LocalStateEntry(Base):
    __tablename__ = "local_state"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    # Authenticated user id from the auth service
    owner_id = Column(String(128), nullable=False)
    key = Column(String(64), nullable=False)

    # JSON document
    value = Column(Text, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("owner_id", "key", name="uq_local_state_owner_key"),
        Index("ix_local_state_owner", "owner_id"),
    )

    def __repr__(self):
        return f"<LocalStateEntry {self.owner_id}:{self.key}>"
