"""Loading of the optional build specification file."""

import logging
from pathlib import Path

from cbuild_common.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_BUILDSPEC_PATH = "buildspec.yml"


def load_buildspec(path: Path | str = DEFAULT_BUILDSPEC_PATH) -> str | None:
    """
    Read the build specification if the file exists.

    Returns:
        The file contents, or None when there is no build spec file

    Raises:
        ConfigurationError: If the file exists but cannot be read
    """
    path = Path(path)
    if not path.exists():
        logger.debug(f"No build spec at {path}, using project default")
        return None

    try:
        data = path.read_text()
    except OSError as e:
        raise ConfigurationError(f"Failed to load build spec {path}: {e}")

    logger.debug(f"Loaded build spec from {path}")
    return data
