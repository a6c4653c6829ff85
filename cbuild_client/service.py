"""
HTTP client for the remote build service.

Implements the collaborator interfaces used by the build runner on top of the
service's REST API. Requests are blocking and run in a worker thread so they
can be awaited from the orchestrator's event loop.
"""

import asyncio
import logging
from datetime import UTC, datetime
from typing import Any, BinaryIO

import requests

from cbuild_common.errors import (
    LogFetchError,
    StatusQueryError,
    SubmissionError,
    UploadError,
)
from cbuild_common.interfaces import BuildSubmitter, LogSource, ObjectStore, StatusSource
from cbuild_common.models import BuildStatus, LogLine, LogPage

logger = logging.getLogger(__name__)


class RemoteBuildService(BuildSubmitter, LogSource, StatusSource, ObjectStore):
    """
    Client for the build, log, status and object storage endpoints.

    Args:
        server_url: Base URL of the build service
        api_key: Optional API key sent as a Bearer token
        timeout: Per-request timeout in seconds
    """

    def __init__(
        self, server_url: str, api_key: str | None = None, timeout: float = 30
    ):
        self.server_url = server_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout

    def _headers(self) -> dict[str, str]:
        if self.api_key:
            return {"Authorization": f"Bearer {self.api_key}"}
        return {}

    async def submit(
        self, project: str, source_location: str, buildspec: str | None = None
    ) -> str:
        return await asyncio.to_thread(
            self._submit, project, source_location, buildspec
        )

    def _submit(self, project: str, source_location: str, buildspec: str | None) -> str:
        payload: dict[str, Any] = {
            "source_type": "S3",
            "source_location": source_location,
        }
        if buildspec is not None:
            payload["buildspec_override"] = buildspec

        try:
            response = requests.post(
                f"{self.server_url}/projects/{project}/builds",
                json=payload,
                headers=self._headers(),
                timeout=self.timeout,
            )
            response.raise_for_status()
            return response.json()["build"]["id"]
        except requests.exceptions.RequestException as e:
            raise SubmissionError(f"Error submitting build: {e}")
        except (KeyError, TypeError, ValueError) as e:
            raise SubmissionError(f"Error submitting build: unexpected response ({e})")

    async def fetch_page(
        self, group: str, stream: str, next_token: str | None = None
    ) -> LogPage:
        return await asyncio.to_thread(self._fetch_page, group, stream, next_token)

    def _fetch_page(self, group: str, stream: str, next_token: str | None) -> LogPage:
        logger.debug(f"Reading logs (group={group}, stream={stream})")

        params = {"group": group, "stream": stream}
        if next_token is not None:
            params["next_token"] = next_token

        try:
            response = requests.get(
                f"{self.server_url}/logs/events",
                params=params,
                headers=self._headers(),
                timeout=self.timeout,
            )
            if response.status_code == 404:
                # Stream is created lazily once the build starts writing output
                logger.debug(f"Log stream {group}/{stream} not found yet")
                return LogPage(lines=[], next_token=None)
            response.raise_for_status()
            body = response.json()
        except requests.exceptions.RequestException as e:
            raise LogFetchError(f"Error fetching build logs: {e}")
        except ValueError as e:
            raise LogFetchError(f"Error fetching build logs: invalid response ({e})")

        lines = [
            LogLine(
                timestamp=datetime.fromtimestamp(event["timestamp"] / 1000, UTC),
                message=event.get("message", ""),
            )
            for event in body.get("events", [])
        ]
        return LogPage(lines=lines, next_token=body.get("next_forward_token"))

    async def batch_status(self, build_ids: list[str]) -> list[BuildStatus]:
        return await asyncio.to_thread(self._batch_status, build_ids)

    def _batch_status(self, build_ids: list[str]) -> list[BuildStatus]:
        try:
            response = requests.post(
                f"{self.server_url}/builds/batch-get",
                json={"ids": build_ids},
                headers=self._headers(),
                timeout=self.timeout,
            )
            response.raise_for_status()
            return [BuildStatus.from_dict(b) for b in response.json().get("builds", [])]
        except requests.exceptions.RequestException as e:
            raise StatusQueryError(f"Error querying build status: {e}")
        except (KeyError, TypeError, ValueError) as e:
            raise StatusQueryError(
                f"Error querying build status: unexpected response ({e})"
            )

    async def upload(self, bucket: str, key: str, stream: BinaryIO) -> str:
        return await asyncio.to_thread(self._upload, bucket, key, stream)

    def _upload(self, bucket: str, key: str, stream: BinaryIO) -> str:
        try:
            response = requests.put(
                f"{self.server_url}/objects/{bucket}/{key}",
                data=stream,
                headers={**self._headers(), "Content-Type": "application/zip"},
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise UploadError(f"Error uploading source archive: {e}")

        try:
            location = response.json().get("location")
        except ValueError:
            location = None
        return location or f"{bucket}/{key}"
