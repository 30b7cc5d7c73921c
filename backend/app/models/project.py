from sqlalchemy import Column, String, Text, DateTime, Uuid
from datetime import datetime
import uuid
from ..core.db import Base

class Project(Base):
    __tablename__ = "projects"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    platform = Column(String, nullable=True)  # last detected platform, e.g. "Amazon Connect"
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
