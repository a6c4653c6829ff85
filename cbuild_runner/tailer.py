"""
Incremental log tailing for a running build.

The tailer repeatedly fetches the next page of a build's log stream using the
continuation token returned by the previous fetch, drops lines it has already
emitted and emits the rest in order. It runs until its stop event is set.
"""

import asyncio
import logging
import sys
from collections.abc import Callable

from cbuild_common.errors import LogFetchError, LogOutputError
from cbuild_common.interfaces import LogSource
from cbuild_common.models import Job, LogLine, LogPage

from .dedup import LogDedupCache
from .settings import RunnerSettings

logger = logging.getLogger(__name__)


def print_log_line(line: LogLine) -> None:
    """Write a log line to stdout."""
    text = line.format()
    if not text.endswith("\n"):
        text += "\n"
    print(text, end="", flush=True, file=sys.stdout)


async def sleep_until_stopped(stop_event: asyncio.Event, interval: float) -> bool:
    """
    Sleep for interval seconds or until stop_event is set.

    Returns:
        True if the event was set, False if the interval elapsed
    """
    try:
        await asyncio.wait_for(stop_event.wait(), timeout=interval)
        return True
    except asyncio.TimeoutError:
        return False


class LogTailer:
    """
    Tails the log stream of one build.

    Attributes:
        next_token: Continuation token held for the next fetch
        lines_emitted: Number of lines emitted so far
        fetch_count: Number of completed fetch_page calls
    """

    def __init__(
        self,
        source: LogSource,
        job: Job,
        settings: RunnerSettings | None = None,
        emit: Callable[[LogLine], None] | None = None,
        cache: LogDedupCache | None = None,
    ):
        self.source = source
        self.job = job
        self.settings = settings or RunnerSettings()
        self.emit = emit or print_log_line
        self.cache = cache or LogDedupCache(self.settings.dedup_capacity)

        self.next_token: str | None = None
        self.lines_emitted = 0
        self.fetch_count = 0

    async def run(self, stop_event: asyncio.Event) -> int:
        """
        Tail the log stream until stop_event is set.

        The stop event is checked before every fetch and interrupts the sleeps
        between fetches; a fetch already in flight is allowed to finish.

        Returns:
            Number of lines emitted

        Raises:
            LogFetchError: If a page cannot be fetched. The loop is not retried.
            LogOutputError: If emitting a line fails
        """
        logger.info(
            f"Reading logs for build {self.job.build_id} "
            f"(group={self.job.log_group}, stream={self.job.log_stream})"
        )

        while not stop_event.is_set():
            page = await self._fetch()

            if page.next_token == self.next_token:
                logger.debug("Tokens match, no new log data")
                await sleep_until_stopped(stop_event, self.settings.idle_poll_interval)
                continue

            logger.debug(f"{len(page.lines)} log lines returned")

            for line in page.lines:
                if self.cache.seen_or_record(line.dedup_key()):
                    logger.debug("Skipping duplicate log line")
                    continue
                try:
                    self.emit(line)
                except Exception as e:
                    raise LogOutputError(f"Error writing build logs: {e}") from e
                self.lines_emitted += 1

            self.next_token = page.next_token
            await sleep_until_stopped(stop_event, self.settings.steady_poll_interval)

        logger.debug(f"Log tailer stopped after {self.fetch_count} fetches")
        return self.lines_emitted

    async def _fetch(self) -> LogPage:
        logger.debug(f"Fetching log page (next_token={self.next_token})")
        try:
            page = await self.source.fetch_page(
                self.job.log_group, self.job.log_stream, self.next_token
            )
        except LogFetchError:
            raise
        except Exception as e:
            raise LogFetchError(f"Error fetching build logs: {e}") from e

        self.fetch_count += 1
        logger.debug(f"Fetched log page (next_token={page.next_token})")
        return page
