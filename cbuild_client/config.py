"""
Client configuration.

Each setting is resolved from, in priority order: the command line, the
environment, the config file (~/.cbuild/config, API key only) and finally
the built-in default.

Environment variables:
    BUILD_PROJECT: Build project identifier (required)
    SOURCE_BUCKET: Bucket receiving the source archive (required)
    SOURCE_PREFIX: Optional key prefix inside the bucket
    CBUILD_SERVER_URL: Base URL of the build service (default: http://localhost:8000)
    CBUILD_API_KEY: API key for the build service
"""

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from cbuild_common.errors import ConfigurationError
from cbuild_runner.settings import RunnerSettings

from .archive import DEFAULT_IGNORE_FILE
from .buildspec import DEFAULT_BUILDSPEC_PATH

DEFAULT_SERVER_URL = "http://localhost:8000"


def get_config_path() -> Path:
    return Path.home() / ".cbuild" / "config"


def get_api_key(
    cli_arg: str | None = None,
    environ: Mapping[str, str] | None = None,
    config_path: Path | None = None,
) -> str | None:
    """
    Get API key from multiple sources in priority order.

    Priority (highest to lowest):
    1. Command line argument (--api-key)
    2. Environment variable (CBUILD_API_KEY)
    3. Config file (~/.cbuild/config)

    Config file format:
        api_key=cb_abc123...
    """
    if cli_arg:
        return cli_arg

    env = os.environ if environ is None else environ
    env_key = env.get("CBUILD_API_KEY")
    if env_key:
        return env_key

    config_path = config_path or get_config_path()
    if config_path.exists():
        try:
            content = config_path.read_text()
        except OSError:
            return None
        for line in content.splitlines():
            line = line.strip()
            if line.startswith("api_key="):
                return line[8:].strip()

    return None


@dataclass
class ClientConfig:
    """Resolved settings for one cbuild invocation."""

    project: str | None = None
    source_bucket: str | None = None
    source_prefix: str = ""
    server_url: str = DEFAULT_SERVER_URL
    api_key: str | None = None
    buildspec_path: str = DEFAULT_BUILDSPEC_PATH
    ignore_file: str = DEFAULT_IGNORE_FILE
    runner: RunnerSettings = field(default_factory=RunnerSettings)

    @classmethod
    def load(
        cls,
        project: str | None = None,
        source_bucket: str | None = None,
        source_prefix: str | None = None,
        server_url: str | None = None,
        api_key: str | None = None,
        buildspec_path: str | None = None,
        ignore_file: str | None = None,
        fail_on_log_error: bool = False,
        environ: Mapping[str, str] | None = None,
    ) -> "ClientConfig":
        env = os.environ if environ is None else environ

        runner = RunnerSettings.from_env(env)
        if fail_on_log_error:
            runner.fail_on_log_error = True

        return cls(
            project=project or env.get("BUILD_PROJECT"),
            source_bucket=source_bucket or env.get("SOURCE_BUCKET"),
            source_prefix=(
                source_prefix
                if source_prefix is not None
                else env.get("SOURCE_PREFIX", "")
            ),
            server_url=server_url or env.get("CBUILD_SERVER_URL", DEFAULT_SERVER_URL),
            api_key=get_api_key(api_key, environ=env),
            buildspec_path=buildspec_path or DEFAULT_BUILDSPEC_PATH,
            ignore_file=ignore_file or DEFAULT_IGNORE_FILE,
            runner=runner,
        )

    def validate(self) -> None:
        """
        Raises:
            ConfigurationError: If the project or source bucket is missing
        """
        if not self.project:
            raise ConfigurationError(
                "Build project is required (--project or BUILD_PROJECT)"
            )
        if not self.source_bucket:
            raise ConfigurationError(
                "Source bucket is required (--bucket or SOURCE_BUCKET)"
            )
        self.runner.validate()

    def source_key(self, source_id: str) -> str:
        prefix = self.source_prefix.strip("/")
        if prefix:
            return f"{prefix}/{source_id}.zip"
        return f"{source_id}.zip"
