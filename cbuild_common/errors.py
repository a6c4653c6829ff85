"""
Error types raised by the build runner and its collaborators.

All errors derive from RuntimeError so the CLI can report any of them
through a single handler.
"""


class CBuildError(RuntimeError):
    """Base class for all cbuild errors."""


class ConfigurationError(CBuildError):
    """Required configuration is missing or invalid. Raised before any remote call."""


class RemoteCallError(CBuildError):
    """
    A call to a remote collaborator failed.

    Attributes:
        operation: Short description of the failed call (e.g. "submitting build")
    """

    operation = "calling remote service"

    def __init__(self, message: str, operation: str | None = None):
        super().__init__(message)
        if operation is not None:
            self.operation = operation


class SubmissionError(RemoteCallError):
    operation = "submitting build"


class UploadError(RemoteCallError):
    operation = "uploading source archive"


class LogFetchError(RemoteCallError):
    operation = "fetching build logs"


class StatusQueryError(RemoteCallError):
    operation = "querying build status"


class LogOutputError(CBuildError):
    """Emitting a log line failed (for example, stdout was closed)."""


class WaitTimeoutError(CBuildError):
    """The build did not complete within the configured number of status polls."""

    def __init__(self, build_id: str, attempts: int):
        super().__init__(
            f"Build {build_id} did not complete after {attempts} status checks"
        )
        self.build_id = build_id
        self.attempts = attempts


class WaitCancelledError(CBuildError):
    """Waiting for the build was cancelled before it completed."""

    def __init__(self, build_id: str):
        super().__init__(f"Cancelled while waiting for build {build_id}")
        self.build_id = build_id
