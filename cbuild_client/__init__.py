"""
cbuild client module.

This module contains the HTTP client for the remote build service, source
archive and build spec helpers, configuration loading and the cbuild CLI.
"""

__version__ = "0.1.0"

from .archive import SourceArchive, build_archive
from .buildspec import load_buildspec
from .config import ClientConfig
from .service import RemoteBuildService

__all__ = [
    "ClientConfig",
    "RemoteBuildService",
    "SourceArchive",
    "build_archive",
    "load_buildspec",
]
