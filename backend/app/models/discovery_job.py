from sqlalchemy import Column, String, JSON, Enum, DateTime, ForeignKey, Uuid
from datetime import datetime
import uuid
import enum
from ..core.db import Base

class DiscoveryStatus(str, enum.Enum):
    QUEUED = "queued"
    RUNNING = "running"
    WAITING_FOR_INPUT = "waiting_for_input"
    COMPLETED = "completed"
    FAILED = "failed"

class DiscoveryJob(Base):
    __tablename__ = "discovery_jobs"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    project_id = Column(Uuid(as_uuid=True),
                        ForeignKey("projects.id", ondelete="CASCADE"),
                        index=True,
                        nullable=False)
    entry_point = Column(String, nullable=False)   # phone number, SIP URI or pasted transcript
    input_type = Column(String, nullable=True)     # "phone", "sip", "text", "simulated"
    status = Column(Enum(DiscoveryStatus), nullable=False, default=DiscoveryStatus.QUEUED)
    platform = Column(String, nullable=True)
    start_time = Column(DateTime, default=datetime.utcnow, nullable=False)
    end_time = Column(DateTime, nullable=True)

    # Set only while status == WAITING_FOR_INPUT
    waiting_for = Column(String, nullable=True)    # e.g. "PIN/ID"
    resume_state = Column(JSON, nullable=True)     # serialized traversal stack

    artifacts = Column(JSON, nullable=True)        # {graph, report, test_cases}
