"""
cbuild common module.

This module contains the shared domain models, error types and collaborator
interfaces used by the build runner and the client.

The common module has no dependencies on other cbuild_* modules, making it
a pure domain layer that can be imported by any component.
"""

from .errors import (
    CBuildError,
    ConfigurationError,
    LogFetchError,
    LogOutputError,
    RemoteCallError,
    StatusQueryError,
    SubmissionError,
    UploadError,
    WaitCancelledError,
    WaitTimeoutError,
)
from .interfaces import BuildSubmitter, LogSource, ObjectStore, StatusSource
from .models import BuildResult, BuildStatus, Job, LogLine, LogPage, WaitState

__all__ = [
    "BuildResult",
    "BuildStatus",
    "BuildSubmitter",
    "CBuildError",
    "ConfigurationError",
    "Job",
    "LogFetchError",
    "LogLine",
    "LogOutputError",
    "LogPage",
    "LogSource",
    "ObjectStore",
    "RemoteCallError",
    "StatusQueryError",
    "StatusSource",
    "SubmissionError",
    "UploadError",
    "WaitCancelledError",
    "WaitState",
    "WaitTimeoutError",
]
