"""Artifact resolution for a completed Rodin job.

After every subtask is Done, waits a short settle delay, lists the task's
output files, selects the one with the target extension and decides which
URL the client should use: the same-origin relay URL when a HEAD probe of it
succeeds, otherwise the raw upstream URL.
"""

from typing import Optional
from urllib.parse import quote

import httpx
import structlog

from modelsmith.core.cancellation import CancellationToken
from modelsmith.models.generation import ArtifactFile, JobHandle, ResolvedArtifact
from modelsmith.services.exceptions import (
    ArtifactNotFoundError,
    NoArtifactsError,
    RelayProbeFailure,
)
from modelsmith.services.rodin.rodin_client import RodinClient

logger = structlog.get_logger(__name__)


def select_artifact(files: list[ArtifactFile], extension: str) -> ArtifactFile:
    """Pick the first file whose name ends with ``extension`` (case-insensitive).

    Raises:
        ArtifactNotFoundError: No file matches; lists the available names
    """
    suffix = extension.lower()
    for file in files:
        if file.name.lower().endswith(suffix):
            return file
    raise ArtifactNotFoundError(extension, [file.name for file in files])


def relay_url(relay_base: str, remote_url: str) -> str:
    """Build a relay URL that re-streams ``remote_url`` from our own origin."""
    return f"{relay_base}?url={quote(remote_url, safe='')}"


class ArtifactResolver:
    """Resolves the downloadable artifact for a finished job."""

    def __init__(
        self,
        client: RodinClient,
        probe_client: httpx.AsyncClient,
        relay_path: str,
        relay_probe_base: str,
        settle_seconds: float = 1.0,
    ):
        """Initialize artifact resolver.

        Args:
            client: Rodin API client used for the file listing
            probe_client: HTTP client used for the relay HEAD probe
            relay_path: Same-origin relay path handed to the browser
            relay_probe_base: Absolute relay URL reachable from this process
            settle_seconds: Delay before listing files
        """
        self.client = client
        self.probe_client = probe_client
        self.relay_path = relay_path
        self.relay_probe_base = relay_probe_base
        self.settle_seconds = settle_seconds

    async def probe_relay(self, remote_url: str) -> None:
        """Check that the relay can serve ``remote_url``.

        Raises:
            RelayProbeFailure: Probe request failed or returned non-2xx
        """
        probe_url = relay_url(self.relay_probe_base, remote_url)
        try:
            response = await self.probe_client.head(probe_url)
        except httpx.HTTPError as e:
            raise RelayProbeFailure(f"Relay probe failed: {e}") from e
        if not response.is_success:
            raise RelayProbeFailure(f"Relay returned {response.status_code}")

    async def resolve(
        self,
        handle: JobHandle,
        extension: str = ".glb",
        token: Optional[CancellationToken] = None,
    ) -> ResolvedArtifact:
        """Resolve the artifact for a job whose subtasks are all Done.

        Args:
            handle: Job handle of the finished job
            extension: Target file suffix, e.g. ".glb"
            token: Cancellation token of the owning run

        Returns:
            ResolvedArtifact with preview and download URLs

        Raises:
            ArtifactListingError: Listing call failed
            NoArtifactsError: Listing returned no files
            ArtifactNotFoundError: No file matches ``extension``
            RunCancelled: Token was tripped during the settle delay or listing
        """
        token = token or CancellationToken()

        await token.sleep(self.settle_seconds)
        token.raise_if_cancelled()

        files = await self.client.list_files(handle.task_id)
        token.raise_if_cancelled()

        if not files:
            raise NoArtifactsError(handle.task_id)

        logger.debug(
            "artifact.listing", task_id=handle.task_id, files=[file.name for file in files]
        )
        artifact = select_artifact(files, extension)

        try:
            await self.probe_relay(artifact.remote_url)
        except RelayProbeFailure as e:
            token.raise_if_cancelled()
            logger.warning(
                "artifact.relay_probe_failed",
                task_id=handle.task_id,
                reason=str(e),
                fallback="direct_url",
            )
            resolved = ResolvedArtifact(
                file=artifact,
                model_url=artifact.remote_url,
                download_url=artifact.remote_url,
                via_relay=False,
            )
        else:
            token.raise_if_cancelled()
            resolved = ResolvedArtifact(
                file=artifact,
                model_url=relay_url(self.relay_path, artifact.remote_url),
                download_url=artifact.remote_url,
                via_relay=True,
            )

        logger.info(
            "artifact.resolved",
            task_id=handle.task_id,
            name=artifact.name,
            via_relay=resolved.via_relay,
        )
        return resolved
