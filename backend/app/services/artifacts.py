from __future__ import annotations

from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Any, Dict
import time

from sqlalchemy.orm import Session

from ..models.discovery_job import DiscoveryJob
from .discovery_store import get_nodes, node_to_dict
from .test_cases import generate_from_nodes


@dataclass
class CrawlMetrics:
    started_at: float = field(default_factory=time.monotonic)
    nodes_discovered: int = 0
    loops_detected: int = 0
    max_depth_reached: int = 0
    errors: int = 0

    def duration_ms(self) -> int:
        return int((time.monotonic() - self.started_at) * 1000)


def build_artifacts(
    db: Session,
    job: DiscoveryJob,
    metrics: CrawlMetrics,
    platform: str,
) -> Dict[str, Any]:
    """
    Post-traversal bundle stored on the job:

    - graph: every node of the project; edges are implicit via parent_id
    - report: entry point, platform and traversal metrics
    - test_cases: drafts generated for nodes that had none
    """
    nodes = get_nodes(db, job.project_id)

    graph = {"nodes": [node_to_dict(n) for n in nodes], "edges": []}

    counters = asdict(metrics)
    counters.pop("started_at")
    report = {
        "job_id": str(job.id),
        "entry_point": job.entry_point,
        "platform": platform,
        "metrics": {
            **counters,
            "duration_ms": metrics.duration_ms(),
            "total_nodes": len(nodes),
        },
        "generated_at": datetime.utcnow().isoformat() + "Z",
    }

    test_cases = generate_from_nodes(db, job.project_id, job.entry_point)

    return {"graph": graph, "report": report, "test_cases": test_cases}
