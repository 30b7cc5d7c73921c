"""
IVR discovery crawler.

Iterative depth-first search over an IVR call tree. Every frame re-dials the
entry point and replays its DTMF path from the root, fingerprints what is
heard, persists a node and pushes one frame per extracted menu option.

The frontier is an explicit, JSON-serializable stack rather than recursion:
when a prompt asks for free-form input (a PIN, an account number) the whole
pending stack is saved on the job and the crawl returns. A later resume call
appends the human-supplied value to the top frame's path and re-enters the
same loop.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional
from uuid import UUID
import logging

from sqlalchemy.orm import Session

from ..core.config import Settings, get_settings
from ..models.discovery_job import DiscoveryJob, DiscoveryStatus
from .artifacts import CrawlMetrics, build_artifacts
from .discovery_store import (
    DiscoveryStateError,
    complete_job,
    get_job,
    insert_node,
    mark_running,
    resume_job,
    set_waiting,
    visited_fingerprints,
    write_log,
)
from .fingerprint import fingerprint
from .menu_options import extract_options, requires_input
from .telephony import (
    SIMULATED_INPUT_TYPES,
    TelephonySession,
    check_telephony_configuration,
    create_telephony_session,
    forbidden_backend_hosts,
)

logger = logging.getLogger(__name__)

WAITING_FOR_PIN = "PIN/ID"
FAILED_PLATFORM = "Unknown"

SessionFactory = Callable[..., TelephonySession]


@dataclass
class Frame:
    """One unit of pending work: a DTMF path from the root and its tree position."""

    path: List[str] = field(default_factory=list)
    parent_id: Optional[int] = None
    depth: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"path": list(self.path), "parent_id": self.parent_id, "depth": self.depth}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Frame":
        return cls(
            path=[str(d) for d in data.get("path") or []],
            parent_id=data.get("parent_id"),
            depth=int(data.get("depth") or 0),
        )


class DiscoveryCrawler:
    def __init__(
        self,
        db: Session,
        job: DiscoveryJob,
        *,
        settings: Optional[Settings] = None,
        session_factory: Optional[SessionFactory] = None,
    ) -> None:
        self.db = db
        self.job = job
        self.settings = settings or get_settings()
        self.max_depth = self.settings.DISCOVERY_MAX_DEPTH
        self.backend_url = self.settings.TELEPHONY_BACKEND_URL or None
        self._session_factory = session_factory or create_telephony_session

        self.metrics = CrawlMetrics()
        # fingerprint -> id of the first node that carried it
        self.visited: Dict[str, int] = {}
        self.platform: Optional[str] = None

    def _log(self, message: str, level: str = "info") -> None:
        write_log(self.db, self.job.id, message, level)

    def _new_session(self) -> TelephonySession:
        return self._session_factory(
            self.job.entry_point,
            self.job.input_type,
            backend_url=self.backend_url,
            procedural=self.settings.SIMULATOR_PROCEDURAL_FLOWS,
            timeout=self.settings.TELEPHONY_TIMEOUT_SECONDS,
        )

    def _initial_stack(
        self,
        resume_stack: Optional[List[Dict[str, Any]]],
        resume_input: Optional[str],
    ) -> List[Frame]:
        if resume_stack is None:
            return [Frame(path=[], parent_id=None, depth=0)]

        stack = [Frame.from_dict(f) for f in resume_stack]
        self._log("Resuming from saved state...")
        if resume_input and stack:
            current = stack.pop()
            stack.append(
                Frame(
                    path=[*current.path, resume_input],
                    parent_id=current.parent_id,
                    depth=current.depth,
                )
            )
            self._log(f"Applied manual input ({len(resume_input)} characters).")

        # Nodes persisted before the pause still count for loop detection
        self.visited = visited_fingerprints(self.db, self.job.project_id)
        return stack

    async def crawl(
        self,
        resume_stack: Optional[List[Dict[str, Any]]] = None,
        resume_input: Optional[str] = None,
    ) -> DiscoveryStatus:
        """
        Run the DFS until the stack empties (completed), a prompt needs human
        input (waiting_for_input) or anything raises (failed).
        """
        job = self.job
        mark_running(self.db, job)

        try:
            self._log(
                f"Starting Graph-Based Discovery for {job.entry_point} "
                f"(input_type={job.input_type or 'none'})..."
            )
            check_telephony_configuration(
                job.input_type,
                self.backend_url,
                forbidden_backend_hosts(self.settings),
            )

            stack = self._initial_stack(resume_stack, resume_input)

            while stack:
                frame = stack.pop()

                if frame.depth > self.max_depth:
                    self._log(
                        f"Max depth ({self.max_depth}) reached. Pruning branch [{','.join(frame.path)}].",
                        "debug",
                    )
                    continue

                suspended = await self._visit(frame, stack)
                if suspended:
                    logger.info(
                        "Discovery paused for input",
                        extra={"job_id": str(job.id), "step": "waiting_for_input"},
                    )
                    return DiscoveryStatus.WAITING_FOR_INPUT

            self._finish()
            return DiscoveryStatus.COMPLETED

        except Exception as e:
            self.db.rollback()
            self.metrics.errors += 1
            logger.exception(
                "Discovery job failed",
                extra={"job_id": str(job.id), "project_id": str(job.project_id), "step": "failed"},
            )
            self._log(f"Critical Failure: {e}", "error")
            complete_job(self.db, job, status=DiscoveryStatus.FAILED, platform=FAILED_PLATFORM)
            return DiscoveryStatus.FAILED

    async def _visit(self, frame: Frame, stack: List[Frame]) -> bool:
        """Replay one frame, persist its node and expand it. Returns True when suspending."""
        self.metrics.max_depth_reached = max(self.metrics.max_depth_reached, frame.depth)

        session = self._new_session()
        if self.platform is None:
            self.platform = session.platform
        self._log(
            f"Created {session.kind} session for path [{','.join(frame.path)}]",
            "debug",
        )

        try:
            result = await session.dial()
            for digit in frame.path:
                result = await session.send_dtmf(digit)

            fp = fingerprint(result.transcript)
            linked_node_id = self.visited.get(fp)
            is_loop = linked_node_id is not None

            self._log(
                f"[Depth {frame.depth}] Reached node. Fingerprint={fp}, "
                f"Confidence={result.confidence * 100:.1f}%"
            )

            node = insert_node(
                self.db,
                project_id=self.job.project_id,
                parent_id=frame.parent_id,
                type="menu" if frame.depth == 0 else "prompt",
                label="Main Menu" if frame.depth == 0 else f"Option {frame.path[-1]}",
                content=result.transcript,
                meta={
                    "path": ">".join(frame.path),
                    "confidence": result.confidence,
                    "audio_url": result.audio_url,
                    "duration_ms": result.duration_ms,
                    "dtmf": frame.path[-1] if frame.path else None,
                },
                fingerprint=fp,
                is_loop=is_loop,
                linked_node_id=linked_node_id,
            )
            self.metrics.nodes_discovered += 1

            if is_loop:
                self.metrics.loops_detected += 1
                self._log(f"Loop detected. Stopping branch at fingerprint={fp}.")
                await session.hangup()
                return False

            self.visited[fp] = node.id

            options = extract_options(result.transcript)
            if options:
                self._log(
                    f"Found {len(options)} options: "
                    + " | ".join(f"{o.dtmf}:{o.label}" for o in options)
                )
                # Reversed so the first listed option is popped first
                for option in reversed(options):
                    stack.append(
                        Frame(
                            path=[*frame.path, option.dtmf],
                            parent_id=node.id,
                            depth=frame.depth + 1,
                        )
                    )
                await session.hangup()
                return False

            if requires_input(result.transcript):
                self._log(
                    "Node requires input (PIN/ID). Pausing for human intervention.",
                    "warning",
                )
                # Retried with the supplied value appended once the job is resumed
                stack.append(frame)
                await session.hangup()
                set_waiting(self.db, self.job, WAITING_FOR_PIN, [f.to_dict() for f in stack])
                return True

            self._log("No further options found. Leaf node.")
            await session.hangup()
            return False

        except Exception:
            await session.hangup()
            raise

    def _finish(self) -> None:
        self._log("Generating artifacts...")

        platform = self.platform
        if platform is None:
            platform = "Simulated" if self.job.input_type in SIMULATED_INPUT_TYPES else "Live/Discovered"

        artifacts = build_artifacts(self.db, self.job, self.metrics, platform)

        self._log("Graph traversal complete.")
        complete_job(
            self.db,
            self.job,
            status=DiscoveryStatus.COMPLETED,
            platform=platform,
            artifacts=artifacts,
        )
        logger.info(
            "Discovery job completed",
            extra={
                "job_id": str(self.job.id),
                "project_id": str(self.job.project_id),
                "step": "completed",
            },
        )


def run_discovery(
    db: Session,
    job_id: UUID,
    *,
    settings: Optional[Settings] = None,
    session_factory: Optional[SessionFactory] = None,
) -> DiscoveryJob:
    """Run a freshly created (queued) job to completion, failure or its first pause."""
    job = get_job(db, job_id)
    if job is None:
        raise LookupError(f"Discovery job {job_id} not found")
    if job.status != DiscoveryStatus.QUEUED:
        raise DiscoveryStateError(f"Job {job_id} is {job.status.value}; only queued jobs can be started")

    crawler = DiscoveryCrawler(db, job, settings=settings, session_factory=session_factory)
    asyncio.run(crawler.crawl())
    db.refresh(job)
    return job


def resume_discovery(
    db: Session,
    job_id: UUID,
    user_input: str,
    *,
    settings: Optional[Settings] = None,
    session_factory: Optional[SessionFactory] = None,
) -> DiscoveryJob:
    """Continue a waiting job, appending ``user_input`` to the path that asked for it."""
    job = get_job(db, job_id, for_update=True)
    if job is None:
        raise LookupError(f"Discovery job {job_id} not found")

    stack = resume_job(db, job)

    crawler = DiscoveryCrawler(db, job, settings=settings, session_factory=session_factory)
    asyncio.run(crawler.crawl(resume_stack=stack, resume_input=user_input))
    db.refresh(job)
    return job
