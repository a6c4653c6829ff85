"""
Source archive creation.

Packages a project directory into a zip file spooled to a temporary file,
skipping paths matched by the rules in an ignore file (.cbuildignore).
"""

import fnmatch
import logging
import os
import tempfile
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

from cbuild_common.errors import CBuildError

logger = logging.getLogger(__name__)

DEFAULT_IGNORE_FILE = ".cbuildignore"


class IgnoreRules:
    """
    Glob-based ignore rules.

    One pattern per line; blank lines and lines starting with "#" are skipped.
    A trailing "/" restricts a pattern to directories. Patterns without "/"
    match a file or directory name at any depth, patterns with "/" match the
    path relative to the project root. A leading "!" negates a pattern; the
    last matching pattern decides.
    """

    def __init__(self, patterns: list[str] | None = None):
        self.patterns: list[tuple[str, bool, bool]] = []
        for raw in patterns or []:
            pattern = raw.strip()
            if not pattern or pattern.startswith("#"):
                continue
            negate = pattern.startswith("!")
            if negate:
                pattern = pattern[1:]
            dir_only = pattern.endswith("/")
            pattern = pattern.rstrip("/").lstrip("/")
            if pattern:
                self.patterns.append((pattern, dir_only, negate))

    @classmethod
    def from_file(cls, path: Path) -> "IgnoreRules":
        if not path.exists():
            return cls()
        try:
            return cls(path.read_text().splitlines())
        except OSError as e:
            raise CBuildError(f"Failed to read ignore file {path}: {e}")

    def ignores(self, rel_path: str, is_dir: bool) -> bool:
        name = rel_path.rsplit("/", 1)[-1]
        ignored = False
        for pattern, dir_only, negate in self.patterns:
            if dir_only and not is_dir:
                continue
            target = rel_path if "/" in pattern else name
            if fnmatch.fnmatch(target, pattern):
                ignored = not negate
        return ignored


@dataclass
class SourceArchive:
    """
    A zip archive on disk, rewound and ready to upload.

    The caller owns the backing temp file and must call cleanup() (or use the
    archive as a context manager) once it has been uploaded.
    """

    path: Path
    handle: BinaryIO
    size: int  # bytes of file content written

    def cleanup(self) -> None:
        logger.debug(f"Cleaning up temp file {self.path}")
        self.handle.close()
        self.path.unlink(missing_ok=True)

    def __enter__(self) -> "SourceArchive":
        return self

    def __exit__(self, *exc_info) -> None:
        self.cleanup()


def build_archive(
    root: Path | str = ".", ignore_file: str = DEFAULT_IGNORE_FILE
) -> SourceArchive:
    """
    Zip the files under root, honouring the ignore file.

    Args:
        root: Project directory to package
        ignore_file: Name of the ignore file, relative to root

    Returns:
        SourceArchive positioned at the start of the stream
    """
    root = Path(root)
    rules = IgnoreRules.from_file(root / ignore_file)

    fd, tmp_name = tempfile.mkstemp(prefix="cbuild.", suffix=".zip")
    os.close(fd)
    tmp_path = Path(tmp_name)
    logger.info(f"Created temp file {tmp_path}")

    total = 0
    try:
        # Files older than 1980 are clamped to the earliest zip timestamp
        with zipfile.ZipFile(
            tmp_path, "w", zipfile.ZIP_DEFLATED, strict_timestamps=False
        ) as zf:
            for dirpath, dirnames, filenames in os.walk(root):
                rel_dir = Path(dirpath).relative_to(root)

                # Prune ignored directories in place so os.walk skips them
                dirnames[:] = sorted(
                    d
                    for d in dirnames
                    if not rules.ignores((rel_dir / d).as_posix(), is_dir=True)
                )

                for filename in sorted(filenames):
                    rel_path = (rel_dir / filename).as_posix()
                    if rules.ignores(rel_path, is_dir=False):
                        continue
                    file_path = Path(dirpath) / filename
                    if file_path.resolve() == tmp_path.resolve():
                        continue
                    logger.debug(f"Added file {rel_path}")
                    zf.write(file_path, rel_path)
                    total += file_path.stat().st_size
    except Exception as e:
        tmp_path.unlink(missing_ok=True)
        raise CBuildError(f"Failed to build source archive: {e}") from e

    handle = open(tmp_path, "rb")
    return SourceArchive(path=tmp_path, handle=handle, size=total)
