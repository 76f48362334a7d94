"""Generation sessions: one orchestration run at a time per browser session.

A run goes submit -> poll -> resolve. Starting a new run bumps the session's
generation counter, trips the previous run's cancellation token and cancels
its task. Every state write is guarded by a generation check, so a superseded
run can never overwrite the state of a newer one.
"""

import asyncio
import time
import uuid
from enum import Enum
from functools import partial
from typing import Callable, Optional

import structlog
from pydantic import BaseModel

from modelsmith.core.cancellation import CancellationToken
from modelsmith.core.config import Settings
from modelsmith.models.generation import (
    GenerationRequest,
    JobStatusSnapshot,
    ProgressView,
    ResolvedArtifact,
    SubtaskStatus,
)
from modelsmith.services.artifacts import ArtifactResolver
from modelsmith.services.exceptions import OrchestrationError, RunCancelled
from modelsmith.services.progress import estimate
from modelsmith.services.rodin.request_validator import validate_request
from modelsmith.services.rodin.rodin_client import RodinClient
from modelsmith.workers.status_poller import PollerState, StatusPoller

logger = structlog.get_logger(__name__)


class SessionPhase(str, Enum):
    """Phase of a session's current orchestration run."""

    IDLE = "idle"
    SUBMITTING = "submitting"
    POLLING = "polling"
    RESOLVING = "resolving"
    COMPLETED = "completed"
    FAILED = "failed"


class SessionView(BaseModel):
    """Read-only view of a session for the browser."""

    session_id: str
    generation: int
    phase: SessionPhase
    task_id: str | None = None
    subtasks: list[SubtaskStatus] = []
    progress: ProgressView | None = None
    error: str | None = None
    model_url: str | None = None
    download_url: str | None = None
    artifact_name: str | None = None


class GenerationSession:
    """Owns the orchestration run of one browser session."""

    def __init__(
        self,
        session_id: str,
        client: RodinClient,
        resolver: ArtifactResolver,
        settings: Settings,
    ):
        self.session_id = session_id
        self.client = client
        self.resolver = resolver
        self.settings = settings

        self.generation = 0
        self._token: Optional[CancellationToken] = None
        self._task: Optional[asyncio.Task] = None

        self.phase = SessionPhase.IDLE
        self.task_id: str | None = None
        self.snapshot = JobStatusSnapshot()
        self.progress: ProgressView | None = None
        self.error: str | None = None
        self.artifact: ResolvedArtifact | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def is_current(self, generation: int) -> bool:
        return generation == self.generation

    def start(self, request: GenerationRequest) -> int:
        """Validate a request and start a new run, superseding any current one.

        Args:
            request: Generation request from the browser

        Returns:
            Generation number of the new run

        Raises:
            ValidationError: Request rejected before any network call
        """
        validate_request(
            request,
            max_images=self.settings.max_images,
            max_image_bytes=self.settings.max_image_bytes,
            max_prompt_length=self.settings.max_prompt_length,
        )

        self.cancel()
        self.generation += 1
        generation = self.generation
        token = CancellationToken()
        self._token = token

        self.phase = SessionPhase.SUBMITTING
        self.task_id = None
        self.snapshot = JobStatusSnapshot()
        self.progress = estimate(self.snapshot)
        self.error = None
        self.artifact = None

        self._task = asyncio.create_task(self._run(generation, request, token))
        logger.info(
            "generation.started",
            session_id=self.session_id,
            generation=generation,
            images=len(request.images),
            has_prompt=request.has_prompt,
        )
        return generation

    def cancel(self) -> None:
        """Trip the current run's token and cancel its task."""
        if self._token is not None:
            self._token.cancel()
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def wait(self) -> None:
        """Wait for the current run to finish (used by the CLI and tests)."""
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)

    def _on_snapshot(
        self, generation: int, snapshot: JobStatusSnapshot, state: PollerState
    ) -> None:
        if not self.is_current(generation):
            return
        self.snapshot = snapshot
        # Progress stops moving once the poller has failed.
        if state is not PollerState.FAILED:
            self.progress = estimate(snapshot)

    async def _run(
        self, generation: int, request: GenerationRequest, token: CancellationToken
    ) -> None:
        log = logger.bind(session_id=self.session_id, generation=generation)
        try:
            handle = await self.client.submit(request)
            token.raise_if_cancelled()
            self.phase = SessionPhase.POLLING
            self.task_id = handle.task_id

            poller = StatusPoller(
                self.client,
                interval_seconds=self.settings.poll_interval_seconds,
                token=token,
                on_snapshot=partial(self._on_snapshot, generation),
            )
            await poller.run(handle)
            token.raise_if_cancelled()
            self.phase = SessionPhase.RESOLVING

            artifact = await self.resolver.resolve(
                handle, extension=request.options.target_extension, token=token
            )
            token.raise_if_cancelled()
            self.artifact = artifact
            self.phase = SessionPhase.COMPLETED
            log.info("generation.completed", task_id=handle.task_id, via_relay=artifact.via_relay)

        except RunCancelled:
            log.info("generation.superseded")

        except OrchestrationError as e:
            if not self.is_current(generation):
                log.info("generation.superseded", error_type=type(e).__name__)
                return
            self.phase = SessionPhase.FAILED
            self.error = e.user_message
            log.warning(
                "generation.failed",
                error_type=type(e).__name__,
                error_message=str(e),
            )

        except asyncio.CancelledError:
            log.info("generation.cancelled")
            raise

        except Exception as e:
            if not self.is_current(generation):
                return
            self.phase = SessionPhase.FAILED
            self.error = "An unknown error occurred"
            log.error(
                "generation.crashed",
                error_type=type(e).__name__,
                error_message=str(e),
                exc_info=True,
            )

    def view(self) -> SessionView:
        return SessionView(
            session_id=self.session_id,
            generation=self.generation,
            phase=self.phase,
            task_id=self.task_id,
            subtasks=list(self.snapshot.subtasks),
            progress=self.progress,
            error=self.error,
            model_url=self.artifact.model_url if self.artifact else None,
            download_url=self.artifact.download_url if self.artifact else None,
            artifact_name=self.artifact.file.name if self.artifact else None,
        )


class SessionRegistry:
    """In-memory registry of generation sessions.

    Sessions idle for longer than ``SESSION_TTL_SECONDS`` are pruned whenever
    a new one is created. At ``MAX_SESSIONS`` the least recently seen session
    is evicted. Pruned and evicted sessions have their runs cancelled.
    """

    def __init__(
        self,
        client: RodinClient,
        resolver: ArtifactResolver,
        settings: Settings,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.client = client
        self.resolver = resolver
        self.settings = settings
        self.clock = clock
        self._sessions: dict[str, GenerationSession] = {}
        self._last_seen: dict[str, float] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def create(self) -> GenerationSession:
        self.prune()
        while len(self._sessions) >= self.settings.max_sessions:
            oldest = min(self._last_seen, key=self._last_seen.__getitem__)
            self._discard(oldest, "session.evicted")

        session_id = uuid.uuid4().hex
        session = GenerationSession(session_id, self.client, self.resolver, self.settings)
        self._sessions[session_id] = session
        self._last_seen[session_id] = self.clock()
        logger.debug("session.created", session_id=session_id)
        return session

    def get(self, session_id: str) -> GenerationSession | None:
        session = self._sessions.get(session_id)
        if session is not None:
            self._last_seen[session_id] = self.clock()
        return session

    def remove(self, session_id: str) -> bool:
        if session_id not in self._sessions:
            return False
        self._discard(session_id, "session.removed")
        return True

    def prune(self) -> int:
        """Drop sessions not seen within the TTL. Returns how many were dropped."""
        cutoff = self.clock() - self.settings.session_ttl_seconds
        expired = [sid for sid, seen in self._last_seen.items() if seen < cutoff]
        for session_id in expired:
            self._discard(session_id, "session.expired")
        return len(expired)

    def _discard(self, session_id: str, event: str) -> None:
        session = self._sessions.pop(session_id)
        del self._last_seen[session_id]
        session.cancel()
        logger.debug(event, session_id=session_id)

    async def shutdown(self) -> None:
        """Cancel every in-flight run and wait for the tasks to unwind."""
        sessions = list(self._sessions.values())
        self._sessions.clear()
        self._last_seen.clear()
        for session in sessions:
            session.cancel()
        await asyncio.gather(*(session.wait() for session in sessions))
