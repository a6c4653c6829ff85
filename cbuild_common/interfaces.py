"""
Abstract interfaces for the remote collaborators of a build.

The orchestrator, log tailer and completion waiter depend only on these
contracts, allowing the HTTP service client to be swapped for test doubles.
"""

from abc import ABC, abstractmethod
from typing import BinaryIO

from .models import BuildStatus, LogPage


class LogSource(ABC):
    """Paginated access to a build's log stream."""

    @abstractmethod
    async def fetch_page(
        self, group: str, stream: str, next_token: str | None = None
    ) -> LogPage:
        """
        Fetch the next page of log lines.

        Args:
            group: Log group name
            stream: Log stream name
            next_token: Continuation token from the previous page, or None

        Returns:
            The page of lines and its continuation token. A token equal to
            next_token means no new data is available yet. A stream that does
            not exist yet yields an empty page rather than an error.

        Raises:
            LogFetchError: If the log source cannot be read
        """
        pass


class StatusSource(ABC):
    """Batch status queries for builds."""

    @abstractmethod
    async def batch_status(self, build_ids: list[str]) -> list[BuildStatus]:
        """
        Query the status of one or more builds.

        Raises:
            StatusQueryError: If the query fails
        """
        pass


class BuildSubmitter(ABC):
    """Starts builds on the remote build service."""

    @abstractmethod
    async def submit(
        self, project: str, source_location: str, buildspec: str | None = None
    ) -> str:
        """
        Submit a build for a project.

        Args:
            project: Build project identifier
            source_location: "bucket/key" of the uploaded source archive
            buildspec: Optional build specification overriding the project's own

        Returns:
            The build id assigned by the service

        Raises:
            SubmissionError: If the service rejects the submission
        """
        pass


class ObjectStore(ABC):
    """Upload target for source archives."""

    @abstractmethod
    async def upload(self, bucket: str, key: str, stream: BinaryIO) -> str:
        """
        Upload a byte stream and return its location URI.

        Raises:
            UploadError: If the upload fails
        """
        pass
