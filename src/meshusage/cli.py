# src/meshusage/cli.py
"""Command line entry point."""

import asyncio
import os
import signal
import sys
from typing import Optional

import click
import structlog

from meshusage import __version__
from meshusage.clients.kubernetes import KubernetesClientFactory
from meshusage.config.settings import LogLevel, OutputFormat, Settings
from meshusage.core.cancellation import CancellationToken
from meshusage.core.exceptions import CollectionCancelled, CollectorException
from meshusage.core.progress import NullProgressReporter, RichProgressReporter
from meshusage.core.utils import setup_logging
from meshusage.discovery.collector import UsageCollector

logger = structlog.get_logger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


def apply_overrides(settings: Settings,
                    hide_names: Optional[bool] = None,
                    continue_processing: bool = False,
                    context: Optional[str] = None,
                    output_dir: Optional[str] = None,
                    output_format: Optional[str] = None,
                    output_prefix: Optional[str] = None,
                    debug: bool = False,
                    no_progress: bool = False,
                    max_processors: Optional[int] = None) -> Settings:
    """Flags win over environment and ``.env`` values."""
    if hide_names is not None:
        settings.collection.hide_names = hide_names
    if continue_processing:
        settings.collection.continue_processing = True
    if max_processors is not None:
        settings.collection.max_processors = max_processors
    if context:
        settings.kubernetes.context = context
    if output_dir:
        settings.output.directory = output_dir
    if output_format:
        settings.output.format = OutputFormat(output_format.lower())
    if output_prefix:
        settings.output.file_prefix = output_prefix
    if debug:
        settings.debug = True
        settings.log_level = LogLevel.DEBUG
    if no_progress:
        settings.no_progress = True
    return settings


def install_signal_handlers(token: CancellationToken, grace_seconds: float) -> None:
    """SIGINT/SIGTERM cancel the run; a second deadline forces the exit."""
    loop = asyncio.get_running_loop()

    def force_exit() -> None:
        logger.error("Shutdown timed out, forcing exit")
        os._exit(EXIT_FAILURE)

    def handle(sig: signal.Signals) -> None:
        logger.info(f"Received signal: {sig.name}, initiating shutdown...")
        token.cancel(f"received {sig.name}")
        loop.call_later(grace_seconds, force_exit)

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, handle, sig)
        except (NotImplementedError, RuntimeError):
            # not supported on this platform or outside the main thread
            pass


@click.command()
@click.option('--hide-names/--show-names', '-n', 'hide_names', default=None,
              help='Hash cluster, namespace and node names in the report (default: from COLLECTION_HIDE_NAMES, on)')
@click.option('--continue', '-c', 'continue_processing', is_flag=True,
              help='Continue processing from the last saved state if the run was interrupted')
@click.option('--context', '-k', default=None, help='Kubernetes context to use (if not set, uses current context)')
@click.option('--output-dir', '-d', default=None, help='Directory to store output file')
@click.option('--format', '-f', 'output_format', type=click.Choice(['json', 'yaml', 'yml'], case_sensitive=False),
              default=None, help='Output format (json, yaml/yml)')
@click.option('--output-prefix', '-p', default=None, help='Custom prefix for output file (default: cluster name)')
@click.option('--max-processors', type=click.IntRange(min=0), default=None,
              help='Processor count used to size worker pools (default: all CPUs)')
@click.option('--no-progress', is_flag=True, help='Disable the progress bar')
@click.option('--debug', is_flag=True, help='Enable debug logging')
@click.version_option(__version__, prog_name='mesh-usage-collector')
def main(hide_names, continue_processing, context, output_dir, output_format,
         output_prefix, max_processors, no_progress, debug):
    """
    Gather Kubernetes cluster information for sidecar-less mesh migration estimates.

    Counts the containers of every namespace, splits their CPU and memory
    requests (and live usage, when metrics-server is installed) between
    application containers and istio-proxy sidecars, and records node
    capacity and topology.

    Example:
        mesh-usage-collector --context prod --format yaml --output-dir ./reports
    """

    async def run_collection() -> int:
        settings = apply_overrides(
            Settings.create_from_env(),
            hide_names=hide_names,
            continue_processing=continue_processing,
            context=context,
            output_dir=output_dir,
            output_format=output_format,
            output_prefix=output_prefix,
            debug=debug,
            no_progress=no_progress,
            max_processors=max_processors
        )
        setup_logging(log_level=settings.log_level.value)

        token = CancellationToken()
        install_signal_handlers(token, settings.collection.shutdown_grace_seconds)

        try:
            factory = KubernetesClientFactory(settings.kubernetes.model_dump())
            kube_context = factory.resolve_context()
        except CollectorException as e:
            logger.error("No current kubectl context found", error=e.message)
            return EXIT_FAILURE

        progress = NullProgressReporter() if settings.no_progress else RichProgressReporter()
        collector = UsageCollector(
            settings=settings,
            client=factory.create_client(kube_context),
            context=kube_context,
            token=token,
            progress=progress
        )

        try:
            path = await collector.run()
        except CollectionCancelled as e:
            logger.error("Collection cancelled", reason=e.message)
            return EXIT_INTERRUPTED if token.reason and token.reason.startswith("received") else EXIT_FAILURE
        except CollectorException as e:
            logger.error("Error gathering cluster information", error=e.message)
            return EXIT_FAILURE
        except Exception as e:
            logger.error("Error gathering cluster information", error=str(e))
            if settings.debug:
                import traceback
                click.echo(traceback.format_exc(), err=True)
            return EXIT_FAILURE

        click.echo(f"Cluster information gathered successfully: {path}")
        return EXIT_OK

    exit_code = asyncio.run(run_collection())
    sys.exit(exit_code)


if __name__ == '__main__':
    main()
