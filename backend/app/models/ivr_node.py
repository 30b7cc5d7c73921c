from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, JSON, ForeignKey, Index, Uuid
from datetime import datetime

from ..core.db import Base

class IvrNode(Base):
    __tablename__ = "ivr_nodes"
    __table_args__ = (
        Index("ix_ivr_nodes_project_fingerprint", "project_id", "fingerprint"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    project_id = Column(Uuid(as_uuid=True),
                        ForeignKey("projects.id", ondelete="CASCADE"),
                        index=True,
                        nullable=False)
    parent_id = Column(Integer, ForeignKey("ivr_nodes.id", ondelete="CASCADE"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    type = Column(String, nullable=False)       # "menu", "prompt", "input"
    label = Column(String, nullable=False)
    content = Column(Text, nullable=False)      # transcript heard at this node
    meta = Column(JSON, nullable=True)          # confidence, dtmf, path, audio_url, duration_ms

    # Loop detection: a repeated fingerprint is stored with is_loop and a
    # back-edge to the first node, never expanded.
    fingerprint = Column(String, nullable=True)
    is_loop = Column(Boolean, nullable=False, default=False)
    linked_node_id = Column(Integer, ForeignKey("ivr_nodes.id", ondelete="SET NULL"), nullable=True)
