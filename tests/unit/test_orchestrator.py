"""
Unit tests for BuildOrchestrator.

These tests replace the build service with in-memory doubles to test the
submit / tail / wait / stop sequencing in isolation.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from cbuild_common.errors import (
    LogFetchError,
    LogOutputError,
    RemoteCallError,
    StatusQueryError,
    SubmissionError,
    WaitCancelledError,
    WaitTimeoutError,
)
from cbuild_common.models import LogPage, WaitState
from cbuild_runner.orchestrator import BuildOrchestrator, OrchestratorState
from cbuild_runner.settings import RunnerSettings
from tests.doubles import (
    FakeSubmitter,
    ScriptedLogSource,
    ScriptedStatusSource,
    make_line,
)


@pytest.fixture
def settings():
    """Settings with short intervals for testing."""
    return RunnerSettings(
        idle_poll_interval=0.001,
        steady_poll_interval=0.001,
        wait_poll_interval=0.005,
        max_wait_attempts=200,
    )


async def assert_no_more_fetches(source: ScriptedLogSource) -> None:
    """Check that the tailer stays quiet after run() has returned."""
    calls = len(source.calls)
    await asyncio.sleep(0.05)
    assert len(source.calls) == calls


class TestBuildOrchestrator:
    """Test suite for BuildOrchestrator class."""

    @pytest.mark.asyncio
    async def test_successful_build(self, settings):
        """Test a build that streams logs and completes successfully."""
        log_source = ScriptedLogSource(
            [LogPage(lines=[make_line(0, "building")], next_token="t1")]
        )
        status_source = ScriptedStatusSource(gate=log_source.exhausted)
        submitter = FakeSubmitter("proj:abc123")
        emitted = []
        orchestrator = BuildOrchestrator(
            submitter, log_source, status_source, settings, emit=emitted.append
        )

        result = await orchestrator.run("bucket/src.zip", "proj", buildspec="version: 0.2")

        assert submitter.calls == [("proj", "bucket/src.zip", "version: 0.2")]
        assert result.job.build_id == "proj:abc123"
        assert result.job.log_group == "/remote/proj"
        assert result.job.log_stream == "abc123"
        assert result.succeeded
        assert result.state is WaitState.SUCCEEDED
        assert result.tailer_error is None
        assert result.lines_emitted == 1
        assert [line.message for line in emitted] == ["building"]
        assert orchestrator.state is OrchestratorState.DONE
        await assert_no_more_fetches(log_source)

    @pytest.mark.asyncio
    async def test_failed_build_is_reported_not_raised(self, settings):
        """Test that a build completing with FAILED is returned as a result."""
        orchestrator = BuildOrchestrator(
            FakeSubmitter(),
            ScriptedLogSource(),
            ScriptedStatusSource(complete_after=2, final_status="FAILED"),
            settings,
            emit=lambda line: None,
        )

        result = await orchestrator.run("bucket/src.zip", "proj")

        assert result.state is WaitState.FAILED
        assert not result.succeeded

    @pytest.mark.asyncio
    async def test_submission_failure_is_fatal(self, settings):
        """Test that a failed submission raises before tailing or waiting starts."""
        log_source = ScriptedLogSource()
        status_source = ScriptedStatusSource(complete_after=1)
        orchestrator = BuildOrchestrator(
            FakeSubmitter(error=SubmissionError("Error submitting build: 403")),
            log_source,
            status_source,
            settings,
        )

        with pytest.raises(SubmissionError, match="403"):
            await orchestrator.run("bucket/src.zip", "proj")

        assert log_source.calls == []
        assert status_source.calls == []
        assert orchestrator.tailer is None

    @pytest.mark.asyncio
    async def test_submission_unexpected_error_is_wrapped(self, settings):
        """Test that arbitrary submitter errors become SubmissionError."""
        submitter = AsyncMock()
        submitter.submit = AsyncMock(side_effect=OSError("network down"))
        orchestrator = BuildOrchestrator(
            submitter, ScriptedLogSource(), ScriptedStatusSource(), settings
        )

        with pytest.raises(SubmissionError, match="network down"):
            await orchestrator.run("bucket/src.zip", "proj")

    @pytest.mark.asyncio
    async def test_malformed_build_id_is_rejected(self, settings):
        """Test that a build id without a separator cannot be tailed."""
        orchestrator = BuildOrchestrator(
            FakeSubmitter("no-separator"),
            ScriptedLogSource(),
            ScriptedStatusSource(complete_after=1),
            settings,
        )

        with pytest.raises(RemoteCallError, match="Unexpected build id format"):
            await orchestrator.run("bucket/src.zip", "proj")

    @pytest.mark.asyncio
    async def test_tailer_stopped_when_wait_times_out(self, settings):
        """Test that the tailer is shut down even when the waiter fails."""
        settings.max_wait_attempts = 3
        log_source = ScriptedLogSource()
        orchestrator = BuildOrchestrator(
            FakeSubmitter(), log_source, ScriptedStatusSource(), settings
        )

        with pytest.raises(WaitTimeoutError):
            await orchestrator.run("bucket/src.zip", "proj")

        assert orchestrator.state is OrchestratorState.DONE
        assert len(log_source.calls) >= 1
        await assert_no_more_fetches(log_source)

    @pytest.mark.asyncio
    async def test_tailer_stopped_when_status_query_fails(self, settings):
        """Test that a status query failure still stops the tailer."""
        log_source = ScriptedLogSource()
        orchestrator = BuildOrchestrator(
            FakeSubmitter(),
            log_source,
            ScriptedStatusSource(error=StatusQueryError("boom")),
            settings,
        )

        with pytest.raises(StatusQueryError):
            await orchestrator.run("bucket/src.zip", "proj")

        assert orchestrator.state is OrchestratorState.DONE
        await assert_no_more_fetches(log_source)

    @pytest.mark.asyncio
    async def test_cancel_event_stops_wait_and_tailer(self, settings):
        """Test that cancellation ends the wait and shuts down the tailer."""
        log_source = ScriptedLogSource()
        cancel = asyncio.Event()
        orchestrator = BuildOrchestrator(
            FakeSubmitter(), log_source, ScriptedStatusSource(), settings
        )

        task = asyncio.create_task(
            orchestrator.run("bucket/src.zip", "proj", cancel_event=cancel)
        )
        await asyncio.sleep(0.02)
        cancel.set()

        with pytest.raises(WaitCancelledError):
            await asyncio.wait_for(task, timeout=2)

        assert orchestrator.state is OrchestratorState.DONE
        await assert_no_more_fetches(log_source)

    @pytest.mark.asyncio
    async def test_log_error_reported_while_build_completes(self, settings):
        """Test that by default a log failure does not abort the wait."""
        log_source = ScriptedLogSource([LogFetchError("Error fetching build logs: 500")])
        status_source = ScriptedStatusSource(complete_after=5)
        orchestrator = BuildOrchestrator(
            FakeSubmitter(), log_source, status_source, settings
        )

        result = await orchestrator.run("bucket/src.zip", "proj")

        assert result.succeeded
        assert isinstance(result.tailer_error, LogFetchError)
        assert len(status_source.calls) == 5
        assert len(log_source.calls) == 1

    @pytest.mark.asyncio
    async def test_log_error_aborts_when_configured(self, settings):
        """Test that fail_on_log_error makes a log failure fatal to the run."""
        settings.fail_on_log_error = True
        log_source = ScriptedLogSource([LogFetchError("Error fetching build logs: 500")])
        status_source = ScriptedStatusSource()
        orchestrator = BuildOrchestrator(
            FakeSubmitter(), log_source, status_source, settings
        )

        with pytest.raises(LogFetchError, match="500"):
            await asyncio.wait_for(
                orchestrator.run("bucket/src.zip", "proj"), timeout=2
            )

        assert orchestrator.state is OrchestratorState.DONE
        assert len(status_source.calls) < settings.max_wait_attempts

    @pytest.mark.asyncio
    async def test_emit_failure_reported_while_build_completes(self, settings):
        """Test that a broken output stream does not discard the build result."""

        def closed_stdout(line):
            raise BrokenPipeError("stdout closed")

        log_source = ScriptedLogSource(
            [LogPage(lines=[make_line(0, "building")], next_token="t1")]
        )
        status_source = ScriptedStatusSource(complete_after=5)
        orchestrator = BuildOrchestrator(
            FakeSubmitter(), log_source, status_source, settings, emit=closed_stdout
        )

        result = await orchestrator.run("bucket/src.zip", "proj")

        assert result.succeeded
        assert isinstance(result.tailer_error, LogOutputError)
        assert isinstance(result.tailer_error.__cause__, BrokenPipeError)
        assert result.lines_emitted == 0
        assert len(status_source.calls) == 5
        assert orchestrator.state is OrchestratorState.DONE

    @pytest.mark.asyncio
    async def test_emit_failure_aborts_when_configured(self, settings):
        """Test that fail_on_log_error also covers output failures."""
        settings.fail_on_log_error = True

        def closed_stdout(line):
            raise BrokenPipeError("stdout closed")

        log_source = ScriptedLogSource(
            [LogPage(lines=[make_line(0, "building")], next_token="t1")]
        )
        orchestrator = BuildOrchestrator(
            FakeSubmitter(),
            log_source,
            ScriptedStatusSource(),
            settings,
            emit=closed_stdout,
        )

        with pytest.raises(LogOutputError, match="stdout closed"):
            await asyncio.wait_for(
                orchestrator.run("bucket/src.zip", "proj"), timeout=2
            )

        assert orchestrator.state is OrchestratorState.DONE

    @pytest.mark.asyncio
    async def test_unexpected_tailer_exception_is_wrapped(self, settings):
        """Test that any tailer exception is reported as a cbuild error."""

        async def crash():
            raise ValueError("unexpected")

        orchestrator = BuildOrchestrator(
            FakeSubmitter(), ScriptedLogSource(), ScriptedStatusSource(), settings
        )
        task = asyncio.create_task(crash())

        error = await orchestrator._join_tailer(task)

        assert isinstance(error, LogFetchError)
        assert isinstance(error, RuntimeError)
        assert isinstance(error.__cause__, ValueError)
        assert "unexpected" in str(error)

    @pytest.mark.asyncio
    async def test_outer_cancellation_propagates(self, settings):
        """Test that cancelling the run task stops both paths and re-raises."""
        log_source = ScriptedLogSource()
        orchestrator = BuildOrchestrator(
            FakeSubmitter(), log_source, ScriptedStatusSource(), settings
        )

        task = asyncio.create_task(orchestrator.run("bucket/src.zip", "proj"))
        await asyncio.sleep(0.02)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert orchestrator.state is OrchestratorState.DONE
        await assert_no_more_fetches(log_source)
