"""Background polling for submitted generation jobs."""

from modelsmith.workers.status_poller import PollerState, StatusPoller

__all__ = [
    "PollerState",
    "StatusPoller",
]
