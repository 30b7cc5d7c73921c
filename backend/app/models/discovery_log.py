from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Uuid
from datetime import datetime

from ..core.db import Base

class DiscoveryLog(Base):
    __tablename__ = "discovery_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    job_id = Column(Uuid(as_uuid=True),
                    ForeignKey("discovery_jobs.id", ondelete="CASCADE"),
                    index=True,
                    nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    message = Column(Text, nullable=False)
    level = Column(String, nullable=False, default="info")  # info, debug, warning, error
