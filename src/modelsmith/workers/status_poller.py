"""Status poller for one submitted Rodin job.

Polls subtask status for a subscription key until every subtask is Done,
any subtask Failed, or a poll tick errors.

State machine:

    IDLE -> POLLING -> SUCCEEDED | FAILED | ERRORED
                    -> CANCELLED (token tripped by a newer generation)

The first query is issued immediately. While POLLING, the next query is
issued after a fixed interval. Errors are never retried: a transport or
protocol failure moves straight to ERRORED and stops polling.

Cancellation is structural. The poller checks its CancellationToken before
every query and after every suspension point, and the inter-tick wait wakes
up as soon as the token is tripped. A result that arrives after cancellation
is discarded without being reported.
"""

import asyncio
import time
from enum import Enum
from typing import Callable, Optional

import structlog

from modelsmith.core.cancellation import CancellationToken
from modelsmith.models.generation import JobHandle, JobStatusSnapshot
from modelsmith.services.exceptions import (
    OrchestrationError,
    PollProtocolError,
    PollTransportError,
    RunCancelled,
    SubtaskFailure,
)
from modelsmith.services.rodin.rodin_client import RodinClient

logger = structlog.get_logger(__name__)


class PollerState(str, Enum):
    """Status poller lifecycle state."""

    IDLE = "idle"
    POLLING = "polling"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    ERRORED = "errored"
    CANCELLED = "cancelled"


TERMINAL_STATES = frozenset(
    {PollerState.SUCCEEDED, PollerState.FAILED, PollerState.ERRORED, PollerState.CANCELLED}
)


class InvalidStateTransition(Exception):
    """Raised when attempting an invalid poller state transition."""

    pass


SnapshotCallback = Callable[[JobStatusSnapshot, PollerState], None]


class StatusPoller:
    """Single-use poller for one JobHandle."""

    def __init__(
        self,
        client: RodinClient,
        interval_seconds: float = 2.0,
        token: Optional[CancellationToken] = None,
        on_snapshot: Optional[SnapshotCallback] = None,
    ):
        """Initialize status poller.

        Args:
            client: Rodin API client used for status queries
            interval_seconds: Fixed delay between ticks while POLLING
            token: Cancellation token for the owning run (new token if omitted)
            on_snapshot: Called with (snapshot, state) after every successful tick
        """
        self.client = client
        self.interval_seconds = interval_seconds
        self.token = token or CancellationToken()
        self.on_snapshot = on_snapshot
        self.state = PollerState.IDLE
        self.snapshot: JobStatusSnapshot | None = None
        self.error: OrchestrationError | None = None
        self.ticks = 0

    def _transition(self, new_state: PollerState) -> None:
        if self.state in TERMINAL_STATES:
            raise InvalidStateTransition(
                f"Cannot move poller to {new_state.value} from terminal state {self.state.value}."
            )
        if new_state is PollerState.POLLING and self.state is not PollerState.IDLE:
            raise InvalidStateTransition(
                f"Cannot start polling from {self.state.value}. Poller must be idle."
            )
        self.state = new_state

    def _evaluate(self, snapshot: JobStatusSnapshot) -> None:
        """Apply terminal evaluation in priority order: all Done, any Failed."""
        if snapshot.all_done:
            self._transition(PollerState.SUCCEEDED)
            return
        failed = snapshot.first_failed
        if failed is not None:
            self.error = SubtaskFailure(failed.uuid, failed.error)
            self._transition(PollerState.FAILED)

    def _cancel(self, handle: JobHandle) -> RunCancelled:
        self._transition(PollerState.CANCELLED)
        logger.info("poller.cancelled", task_id=handle.task_id, ticks=self.ticks)
        return RunCancelled("Run was superseded")

    async def run(self, handle: JobHandle) -> JobStatusSnapshot:
        """Poll until a terminal state is reached.

        Args:
            handle: Job handle returned by the submission

        Returns:
            The all-Done snapshot once every subtask succeeded

        Raises:
            SubtaskFailure: A subtask reported Failed
            PollTransportError: Network/HTTP/JSON failure during a tick
            PollProtocolError: Empty or malformed status response
            RunCancelled: The cancellation token was tripped
        """
        self._transition(PollerState.POLLING)
        start_time = time.monotonic()
        logger.info("poller.started", task_id=handle.task_id, interval=self.interval_seconds)

        try:
            while self.state is PollerState.POLLING:
                if self.token.cancelled:
                    raise self._cancel(handle)

                try:
                    snapshot = await self.client.check_status(handle.subscription_key)
                except (PollTransportError, PollProtocolError) as e:
                    if self.token.cancelled:
                        raise self._cancel(handle) from e
                    self.error = e
                    self._transition(PollerState.ERRORED)
                    logger.error(
                        "poller.errored",
                        task_id=handle.task_id,
                        error_type=type(e).__name__,
                        error_message=str(e),
                        ticks=self.ticks,
                    )
                    raise

                if self.token.cancelled:
                    raise self._cancel(handle)

                self.ticks += 1
                self.snapshot = snapshot
                self._evaluate(snapshot)
                logger.debug(
                    "poller.tick",
                    task_id=handle.task_id,
                    tick=self.ticks,
                    state=self.state.value,
                    subtasks=snapshot.total,
                )

                if self.on_snapshot is not None:
                    self.on_snapshot(snapshot, self.state)

                if self.state is PollerState.POLLING:
                    await self.token.sleep(self.interval_seconds)

        except asyncio.CancelledError:
            if self.state not in TERMINAL_STATES:
                self._transition(PollerState.CANCELLED)
            raise

        duration = time.monotonic() - start_time
        if self.state is PollerState.FAILED:
            assert self.error is not None
            logger.warning(
                "poller.failed",
                task_id=handle.task_id,
                error_message=str(self.error),
                ticks=self.ticks,
                duration_seconds=duration,
            )
            raise self.error

        logger.info(
            "poller.succeeded",
            task_id=handle.task_id,
            ticks=self.ticks,
            duration_seconds=duration,
        )
        assert self.snapshot is not None
        return self.snapshot
