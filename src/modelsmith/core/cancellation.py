"""Cancellation token shared by every step of one orchestration run."""

import asyncio

from modelsmith.services.exceptions import RunCancelled


class CancellationToken:
    """One-way cancellation flag. Once tripped it stays tripped."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise RunCancelled("Run was superseded")

    async def sleep(self, seconds: float) -> bool:
        """Wait for ``seconds`` or until cancelled.

        Returns:
            True if the token was cancelled during (or before) the wait
        """
        if self._event.is_set():
            return True
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return False
        return True
