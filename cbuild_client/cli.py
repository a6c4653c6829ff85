"""
cbuild CLI.

Packages the current directory, uploads it, runs a remote build and streams
its logs until the build finishes.

Usage:
    cbuild --project my-project --bucket my-sources [-v]
"""

import asyncio
import logging
import signal
import sys
import uuid
from pathlib import Path
from typing import Any

import click

from cbuild_common.errors import ConfigurationError, WaitCancelledError
from cbuild_common.models import BuildResult
from cbuild_runner.orchestrator import BuildOrchestrator

from . import __version__
from .archive import build_archive
from .buildspec import load_buildspec
from .config import ClientConfig
from .service import RemoteBuildService

logger = logging.getLogger(__name__)


async def run_build(
    config: ClientConfig, service: RemoteBuildService, root: Path | str = "."
) -> BuildResult:
    """
    Upload the project under root and run it as a remote build.

    SIGINT and SIGTERM cancel the wait for the build; the build itself keeps
    running on the service.
    """
    logger.info("Building archive")
    source_key = config.source_key(str(uuid.uuid4()))
    with build_archive(root, config.ignore_file) as archive:
        logger.info(f"Archive contains {archive.size} bytes")
        location = await service.upload(config.source_bucket, source_key, archive.handle)
    logger.info(f"Uploaded to {location}")

    buildspec = load_buildspec(Path(root) / config.buildspec_path)

    loop = asyncio.get_running_loop()
    cancel_event = asyncio.Event()

    def signal_handler(sig: Any, _frame: Any) -> None:
        """Handle interrupt signals."""
        logger.info(f"Received signal {sig}, cancelling wait...")
        loop.call_soon_threadsafe(cancel_event.set)

    previous = {
        sig: signal.signal(sig, signal_handler)
        for sig in (signal.SIGINT, signal.SIGTERM)
    }
    try:
        orchestrator = BuildOrchestrator(service, service, service, config.runner)
        return await orchestrator.run(
            f"{config.source_bucket}/{source_key}",
            config.project,
            buildspec=buildspec,
            cancel_event=cancel_event,
        )
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)


@click.command()
@click.option("--project", help="Build project (default: BUILD_PROJECT env)")
@click.option("--bucket", help="Source bucket (default: SOURCE_BUCKET env)")
@click.option("--prefix", help="Key prefix for the source archive (default: SOURCE_PREFIX env)")
@click.option("--buildspec", "buildspec_path", help="Build spec file (default: buildspec.yml)")
@click.option("--ignore-file", help="Ignore file (default: .cbuildignore)")
@click.option("--server-url", help="Build service URL (default: CBUILD_SERVER_URL env)")
@click.option(
    "--api-key",
    help="API key for authentication (can also use CBUILD_API_KEY env var or ~/.cbuild/config)",
)
@click.option(
    "--fail-on-log-error",
    is_flag=True,
    help="Abort when log streaming fails instead of waiting for the build",
)
@click.option("-v", "--verbose", is_flag=True, help="Verbose mode.")
@click.version_option(__version__)
def main(
    project: str | None,
    bucket: str | None,
    prefix: str | None,
    buildspec_path: str | None,
    ignore_file: str | None,
    server_url: str | None,
    api_key: str | None,
    fail_on_log_error: bool,
    verbose: bool,
):
    """Run the current directory as a remote build and stream its logs."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    try:
        config = ClientConfig.load(
            project=project,
            source_bucket=bucket,
            source_prefix=prefix,
            server_url=server_url,
            api_key=api_key,
            buildspec_path=buildspec_path,
            ignore_file=ignore_file,
            fail_on_log_error=fail_on_log_error,
        )
        config.validate()
    except ConfigurationError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    service = RemoteBuildService(config.server_url, api_key=config.api_key)

    try:
        result = asyncio.run(run_build(config, service))
    except WaitCancelledError as e:
        click.echo(f"\n{e}.", err=True)
        click.echo("The build continues to run on the service.", err=True)
        sys.exit(130)
    except KeyboardInterrupt:
        click.echo("\n\nInterrupted.", err=True)
        sys.exit(130)
    except RuntimeError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if result.tailer_error is not None:
        click.echo(f"Warning: build logs incomplete: {result.tailer_error}", err=True)

    click.echo(
        f"Build {result.job.build_id} finished: {result.status.build_status}",
        err=True,
    )
    sys.exit(0 if result.succeeded else 1)


if __name__ == "__main__":
    main()
