from __future__ import annotations
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Text
from .db import Base


class ProfileEntry(Base):
	__tablename__ = "profile_entries"
	# One row per key of the learner's profile (checkpoints, cached questions, history)
	key = Column(String(512), primary_key=True, index=True)
	value = Column(Text, nullable=False)  # JSON document
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
