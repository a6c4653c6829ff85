"""
Completion waiter for remote builds.

Polls the build service's batch status query on a fixed interval until the
build reports complete, giving up after a fixed number of polls.
"""

import asyncio
import logging

from cbuild_common.errors import StatusQueryError, WaitCancelledError, WaitTimeoutError
from cbuild_common.interfaces import StatusSource
from cbuild_common.models import BuildStatus

from .settings import RunnerSettings
from .tailer import sleep_until_stopped

logger = logging.getLogger(__name__)


class CompletionWaiter:
    """
    Blocks until a build is complete.

    The waiter only reports that the build finished; whether it passed is
    carried in the returned BuildStatus.
    """

    def __init__(self, source: StatusSource, settings: RunnerSettings | None = None):
        self.source = source
        self.settings = settings or RunnerSettings()
        self.attempts = 0

    async def wait_until_done(
        self, build_id: str, cancel_event: asyncio.Event | None = None
    ) -> BuildStatus:
        """
        Poll the build status until the build is complete.

        Args:
            build_id: Build to wait for
            cancel_event: Optional event that aborts the wait when set

        Returns:
            The final status of the build

        Raises:
            WaitTimeoutError: If the build is not complete after max_wait_attempts polls
            WaitCancelledError: If cancel_event is set before the build completes
            StatusQueryError: If a status query fails
        """
        logger.info(f"Waiting for build {build_id} to complete")

        self.attempts = 0
        max_attempts = self.settings.max_wait_attempts
        interval = self.settings.wait_poll_interval

        while True:
            if cancel_event is not None and cancel_event.is_set():
                raise WaitCancelledError(build_id)

            self.attempts += 1
            logger.debug(f"Checking build status ({self.attempts}/{max_attempts})")
            statuses = await self._poll(build_id, cancel_event)

            if statuses and all(status.build_complete for status in statuses):
                final = _status_for(build_id, statuses)
                logger.info(
                    f"Build {build_id} complete with status {final.build_status}"
                )
                return final

            if self.attempts >= max_attempts:
                raise WaitTimeoutError(build_id, self.attempts)

            if cancel_event is None:
                await asyncio.sleep(interval)
            elif await sleep_until_stopped(cancel_event, interval):
                raise WaitCancelledError(build_id)

    async def _poll(
        self, build_id: str, cancel_event: asyncio.Event | None
    ) -> list[BuildStatus]:
        if cancel_event is None:
            return await self._query(build_id)

        poll = asyncio.ensure_future(self._query(build_id))
        cancelled = asyncio.ensure_future(cancel_event.wait())
        try:
            await asyncio.wait({poll, cancelled}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            pending = [task for task in (poll, cancelled) if not task.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

        if poll.cancelled():
            logger.debug(f"Status check for build {build_id} abandoned")
            raise WaitCancelledError(build_id)
        return poll.result()

    async def _query(self, build_id: str) -> list[BuildStatus]:
        try:
            return await self.source.batch_status([build_id])
        except StatusQueryError:
            raise
        except Exception as e:
            raise StatusQueryError(f"Error querying build status: {e}") from e


def _status_for(build_id: str, statuses: list[BuildStatus]) -> BuildStatus:
    for status in statuses:
        if status.build_id == build_id:
            return status
    return statuses[0]
