"""Error hierarchy for generation job orchestration.

This module defines the exception hierarchy for orchestration errors:
- OrchestrationError: Base for all orchestration errors
- Fatal errors terminate the current run and are surfaced to the user
- RelayProbeFailure is non-fatal and only triggers the direct-URL fallback

No error is retried automatically. The user retries by submitting again.
"""


class OrchestrationError(Exception):
    """Base exception for all orchestration errors."""

    fatal: bool = True

    @property
    def user_message(self) -> str:
        """Message shown to the user for this failure."""
        return str(self)


class ValidationError(OrchestrationError):
    """Generation request rejected locally, before any network call."""

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field
        self.message = message


class SubmissionError(OrchestrationError):
    """Submission failed or returned a response without a usable job handle."""

    pass


class PollProtocolError(OrchestrationError):
    """Status response was well-formed JSON but not a usable subtask list."""

    pass


class PollTransportError(OrchestrationError):
    """Network, HTTP or decoding failure during a status poll."""

    pass


class SubtaskFailure(OrchestrationError):
    """One or more subtasks were reported as Failed."""

    def __init__(self, subtask_uuid: str, error: str | None = None):
        self.subtask_uuid = subtask_uuid
        self.error = error
        message = "Generation task failed"
        if error:
            message = f"{message}: {error}"
        super().__init__(message)


class ArtifactListingError(OrchestrationError):
    """File listing call failed or reported a non-OK error field."""

    pass


class NoArtifactsError(OrchestrationError):
    """File listing succeeded but returned no files."""

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__("No files available for download")


class ArtifactNotFoundError(OrchestrationError):
    """No listed file matches the target extension."""

    def __init__(self, extension: str, available: list[str]):
        self.extension = extension
        self.available = available
        names = ", ".join(available) if available else "none"
        super().__init__(
            f"No {extension.lstrip('.').upper()} file found in the results. "
            f"Available files: {names}"
        )


class RelayProbeFailure(OrchestrationError):
    """HEAD probe of the relay URL failed. Never surfaced to the user."""

    fatal = False


class RunCancelled(OrchestrationError):
    """Run was superseded by a newer generation or its session was closed."""

    fatal = False
