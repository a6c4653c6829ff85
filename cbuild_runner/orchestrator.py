"""
Build orchestration: submit a build, tail its logs and wait for it to finish.

The orchestrator runs the log tailer as a single background task while the
completion waiter blocks the caller. Once the wait ends, successfully or not,
the tailer is signalled to stop and awaited before run() returns, so no log
output is written after the build result is reported.

    IDLE -> SUBMITTED -> RUNNING -> STOPPING -> DONE
"""

import asyncio
import logging
from collections.abc import Callable
from enum import Enum

from cbuild_common.errors import CBuildError, LogFetchError, SubmissionError
from cbuild_common.interfaces import BuildSubmitter, LogSource, StatusSource
from cbuild_common.models import BuildResult, Job, LogLine

from .settings import RunnerSettings
from .tailer import LogTailer
from .waiter import CompletionWaiter

logger = logging.getLogger(__name__)


class OrchestratorState(Enum):
    IDLE = "idle"
    SUBMITTED = "submitted"
    RUNNING = "running"
    STOPPING = "stopping"
    DONE = "done"


class BuildOrchestrator:
    """
    Runs the lifecycle of exactly one remote build per call to run().

    By default a log streaming failure is logged and reported on the result
    while the wait continues. With settings.fail_on_log_error the failure
    aborts the wait and is raised instead.
    """

    def __init__(
        self,
        submitter: BuildSubmitter,
        log_source: LogSource,
        status_source: StatusSource,
        settings: RunnerSettings | None = None,
        emit: Callable[[LogLine], None] | None = None,
    ):
        self.submitter = submitter
        self.log_source = log_source
        self.status_source = status_source
        self.settings = settings or RunnerSettings()
        self.emit = emit
        self.waiter = CompletionWaiter(status_source, self.settings)

        self.state = OrchestratorState.IDLE
        self.tailer: LogTailer | None = None
        self._abort_error: Exception | None = None

    async def run(
        self,
        source_location: str,
        project: str,
        buildspec: str | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> BuildResult:
        """
        Submit a build and block until it completes, streaming its logs.

        Args:
            source_location: "bucket/key" of the uploaded source archive
            project: Build project identifier
            buildspec: Optional build specification override
            cancel_event: Optional event that aborts the wait when set

        Returns:
            BuildResult with the final status and any log streaming error

        Raises:
            SubmissionError: If the build cannot be submitted
            WaitTimeoutError: If the build does not complete in time
            WaitCancelledError: If cancel_event is set before completion
            StatusQueryError: If a status query fails
            LogFetchError: If log streaming fails and fail_on_log_error is set
            LogOutputError: If writing log lines fails and fail_on_log_error is set
        """
        self.state = OrchestratorState.IDLE
        self._abort_error = None

        job = await self._submit(source_location, project, buildspec)
        self.state = OrchestratorState.SUBMITTED

        self.tailer = LogTailer(self.log_source, job, self.settings, emit=self.emit)
        stop_event = asyncio.Event()
        tailer_task = asyncio.create_task(self.tailer.run(stop_event))
        wait_task = asyncio.ensure_future(
            self.waiter.wait_until_done(job.build_id, cancel_event)
        )
        tailer_task.add_done_callback(
            lambda task: self._on_tailer_done(task, wait_task)
        )
        self.state = OrchestratorState.RUNNING

        try:
            try:
                status = await wait_task
            except asyncio.CancelledError:
                current = asyncio.current_task()
                if self._abort_error is not None and not (
                    current and current.cancelling()
                ):
                    raise self._abort_error from None
                raise
        finally:
            self.state = OrchestratorState.STOPPING
            stop_event.set()
            if not wait_task.done():
                wait_task.cancel()
                await asyncio.gather(wait_task, return_exceptions=True)
            tailer_error = await self._join_tailer(tailer_task)
            self.state = OrchestratorState.DONE

        logger.info(f"Finished build {job.build_id} ({status.build_status})")
        return BuildResult(
            job=job,
            status=status,
            tailer_error=tailer_error,
            lines_emitted=self.tailer.lines_emitted,
        )

    async def _submit(
        self, source_location: str, project: str, buildspec: str | None
    ) -> Job:
        try:
            build_id = await self.submitter.submit(project, source_location, buildspec)
        except SubmissionError:
            raise
        except Exception as e:
            raise SubmissionError(f"Error submitting build: {e}") from e

        job = Job.from_build_id(project, build_id)
        logger.info(
            f"Created build {job.build_id} "
            f"(group={job.log_group}, stream={job.log_stream})"
        )
        return job

    def _on_tailer_done(self, task: asyncio.Task, wait_task: asyncio.Future) -> None:
        if task.cancelled() or task.exception() is None:
            return

        error = _tailer_error(task.exception())
        logger.error(f"Log streaming failed: {error}")
        if self.settings.fail_on_log_error and not wait_task.done():
            self._abort_error = error
            wait_task.cancel()

    async def _join_tailer(self, task: asyncio.Task) -> CBuildError | None:
        """Wait for the tailer to acknowledge the stop signal."""
        try:
            await task
        except Exception as e:
            return _tailer_error(e)
        logger.debug("Log tailer acknowledged stop")
        return None


def _tailer_error(error: BaseException) -> CBuildError:
    if isinstance(error, CBuildError):
        return error
    wrapped = LogFetchError(f"Error streaming build logs: {error}")
    wrapped.__cause__ = error
    return wrapped
