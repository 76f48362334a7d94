"""Rodin API client for submitting 3D generation jobs and tracking them."""

from typing import Any

import httpx
import structlog
from pydantic import ValidationError as PydanticValidationError

from modelsmith.models.generation import (
    ArtifactFile,
    GenerationRequest,
    JobHandle,
    JobStatusSnapshot,
    SubtaskStatus,
)
from modelsmith.services.exceptions import (
    ArtifactListingError,
    PollProtocolError,
    PollTransportError,
    SubmissionError,
)
from modelsmith.services.rodin.payload import build_multipart

logger = structlog.get_logger(__name__)


def _upstream_message(response: httpx.Response) -> str:
    """Extract the most useful error text from an upstream response."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("error", "message", "detail"):
            if body.get(key):
                return str(body[key])
    text = response.text.strip().replace("\n", " ")
    return text[:200] or f"HTTP {response.status_code}"


def _has_upstream_error(body: dict[str, Any]) -> bool:
    error = body.get("error")
    return error is not None and error != "OK"


class RodinClient:
    """Client for the Rodin submission, status and download endpoints."""

    def __init__(self, http_client: httpx.AsyncClient, api_key: str, base_url: str):
        """Initialize Rodin client.

        Args:
            http_client: Shared async HTTP client (owns timeouts and pooling)
            api_key: Rodin API key (from RODIN_API_KEY env var)
            base_url: API root, e.g. "https://hyperhuman.deemos.com/api/v2"
        """
        self.http_client = http_client
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.headers = {"Authorization": f"Bearer {api_key}"}

    async def submit(self, request: GenerationRequest) -> JobHandle:
        """Submit a generation job as multipart form data.

        Args:
            request: Validated generation request

        Returns:
            JobHandle with task id and subscription key

        Raises:
            SubmissionError: Transport failure, non-2xx status, undecodable
                body, upstream error field, or missing handle fields
        """
        data, files = build_multipart(request)
        try:
            response = await self.http_client.post(
                f"{self.base_url}/rodin",
                headers=self.headers,
                data=data,
                files=files or None,
            )
        except httpx.HTTPError as e:
            raise SubmissionError(f"Network error: {e}") from e

        if response.is_error:
            raise SubmissionError(_upstream_message(response))

        try:
            body = response.json()
        except ValueError as e:
            raise SubmissionError(f"Invalid JSON in submission response: {e}") from e

        if not isinstance(body, dict):
            raise SubmissionError("Unexpected submission response format")
        if _has_upstream_error(body):
            raise SubmissionError(str(body["error"]))

        task_id = body.get("uuid") or body.get("task_id")
        jobs = body.get("jobs") if isinstance(body.get("jobs"), dict) else {}
        subscription_key = jobs.get("subscription_key")
        if not task_id or not subscription_key:
            raise SubmissionError("Missing required data for status checking")

        handle = JobHandle(task_id=str(task_id), subscription_key=str(subscription_key))
        logger.info("rodin.submitted", task_id=handle.task_id, images=len(request.images))
        return handle

    async def check_status(self, subscription_key: str) -> JobStatusSnapshot:
        """Fetch the current status of every subtask.

        Args:
            subscription_key: Key returned by submit()

        Returns:
            Fresh JobStatusSnapshot with at least one subtask

        Raises:
            PollTransportError: Network error, non-2xx status or invalid JSON
            PollProtocolError: Missing/empty jobs list or malformed entries
        """
        try:
            response = await self.http_client.post(
                f"{self.base_url}/status",
                headers=self.headers,
                json={"subscription_key": subscription_key},
            )
        except httpx.HTTPError as e:
            raise PollTransportError(f"Network error: {e}") from e

        if response.is_error:
            raise PollTransportError(
                f"Status check failed ({response.status_code}): {_upstream_message(response)}"
            )

        try:
            body = response.json()
        except ValueError as e:
            raise PollTransportError(f"Invalid JSON in status response: {e}") from e

        jobs = body.get("jobs") if isinstance(body, dict) else None
        if not isinstance(jobs, list) or not jobs:
            raise PollProtocolError("No jobs found in status response")

        try:
            subtasks = tuple(SubtaskStatus.model_validate(job) for job in jobs)
        except PydanticValidationError as e:
            raise PollProtocolError(f"Malformed subtask entry in status response: {e}") from e

        return JobStatusSnapshot(subtasks=subtasks)

    async def list_files(self, task_id: str) -> list[ArtifactFile]:
        """List the output files produced for a task.

        Args:
            task_id: Task identifier from the JobHandle

        Returns:
            Listed files in upstream order (may be empty)

        Raises:
            ArtifactListingError: Transport/HTTP failure or non-OK error field
        """
        try:
            response = await self.http_client.post(
                f"{self.base_url}/download",
                headers=self.headers,
                json={"task_uuid": task_id},
            )
        except httpx.HTTPError as e:
            raise ArtifactListingError(f"Network error: {e}") from e

        if response.is_error:
            raise ArtifactListingError(
                f"Download listing failed ({response.status_code}): {_upstream_message(response)}"
            )

        try:
            body = response.json()
        except ValueError as e:
            raise ArtifactListingError(f"Invalid JSON in download response: {e}") from e

        if not isinstance(body, dict):
            raise ArtifactListingError("Unexpected download response format")
        if _has_upstream_error(body):
            raise ArtifactListingError(f"Download error: {body['error']}")

        files = []
        for entry in body.get("list") or []:
            if not isinstance(entry, dict) or not entry.get("name") or not entry.get("url"):
                logger.warning("rodin.listing_entry_skipped", task_id=task_id, entry=entry)
                continue
            try:
                file = ArtifactFile(
                    name=str(entry["name"]),
                    remote_url=str(entry["url"]),
                    content_type=entry.get("content_type"),
                )
            except PydanticValidationError:
                logger.warning("rodin.listing_entry_skipped", task_id=task_id, entry=entry)
                continue
            files.append(file)
        return files
