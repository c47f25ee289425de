"""
SQLAlchemy ORM model for project records.

A project maps the identifier clients send to the repository it names.
"""

import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, String, DateTime, Text
from depgraph.utils.db import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class Project(Base):
    __tablename__ = "projects"

    id = Column(String, primary_key=True, default=_uuid)
    name = Column(String, nullable=False)
    github_url = Column(Text, nullable=True)
    github_token = Column(String, nullable=True)   # never serialized
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
