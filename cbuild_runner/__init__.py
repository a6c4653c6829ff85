"""
cbuild runner module.

This module contains the build orchestration engine: the log tailer and its
de-duplication cache, the completion waiter and the orchestrator that runs
them concurrently for one build.
"""

from .dedup import LogDedupCache
from .orchestrator import BuildOrchestrator, OrchestratorState
from .settings import RunnerSettings
from .tailer import LogTailer
from .waiter import CompletionWaiter

__all__ = [
    "BuildOrchestrator",
    "CompletionWaiter",
    "LogDedupCache",
    "LogTailer",
    "OrchestratorState",
    "RunnerSettings",
]
