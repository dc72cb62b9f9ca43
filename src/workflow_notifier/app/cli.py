"""Command-line interface for workflow-notifier."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

import click

from workflow_notifier.app.bootstrap import Notifier, build_notifier
from workflow_notifier.core.config import (
    ConfigurationError,
    EnvironmentVariableError,
    MainConfig,
    load_main_config,
)
from workflow_notifier.core.delivery import LoggingTransport
from workflow_notifier.core.errors import QueuePayloadError, TriggerContextError
from workflow_notifier.queue.codec import decode_unit
from workflow_notifier.types.models import EMAIL_CHANNEL
from workflow_notifier.utils.logging import configure_logging
from workflow_notifier.utils.sanitization import sanitize_receiver

__all__ = ["cli"]

# Exit codes
EXIT_CONFIG_ERROR = 1
EXIT_RUNTIME_ERROR = 1

try:
    __version__ = version("workflow-notifier")
except PackageNotFoundError:
    __version__ = "unknown"


def validate_config_path(
    ctx: click.Context,  # pyright: ignore[reportUnusedParameter] # required by Click callback signature
    param: click.Parameter,  # pyright: ignore[reportUnusedParameter] # required by Click callback signature
    value: Path | None,
) -> Path | None:
    """Validate the configuration file path.

    Raises:
        click.BadParameter: If the path is a directory or not a YAML file
    """
    if value is None:
        return value

    if value.exists() and value.is_dir():
        raise click.BadParameter("Configuration path must be a file, not a directory")

    valid_extensions = {".yaml", ".yml"}
    if value.suffix.lower() not in valid_extensions:
        extensions_str = ", ".join(sorted(valid_extensions))
        raise click.BadParameter(
            f"Invalid configuration file extension. Supported extensions: {extensions_str}"
        )

    return value


def validate_log_level(
    ctx: click.Context,  # pyright: ignore[reportUnusedParameter] # required by Click callback signature
    param: click.Parameter,  # pyright: ignore[reportUnusedParameter] # required by Click callback signature
    value: str | None,
) -> str | None:
    """Normalize the log level to upper case.

    Raises:
        click.BadParameter: If the level is unknown
    """
    if value is None:
        return value

    normalized_value = value.upper().strip()
    valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR"}
    if normalized_value not in valid_levels:
        raise click.BadParameter(
            f'Invalid log level "{value}". Valid options: {", ".join(sorted(valid_levels))}'
        )

    return normalized_value


def _fail(ctx: click.Context, message: str, exit_code: int) -> None:
    click.echo(message, err=True)
    ctx.exit(exit_code)


def _notifier(ctx: click.Context) -> Notifier:
    notifier = ctx.find_object(Notifier)
    if notifier is None:
        raise click.UsageError("Notifier is not configured")
    return notifier


@click.group()
@click.option(
    "--config",
    "-c",
    type=click.Path(path_type=Path),
    default=None,
    callback=validate_config_path,
    help="Configuration file path (.yaml or .yml). Defaults apply when omitted.",
)
@click.option(
    "--dry-run",
    "-d",
    is_flag=True,
    help="Log deliveries without calling channel transports",
)
@click.option(
    "--log-level",
    "-l",
    type=str,
    default=None,
    callback=validate_log_level,
    help="Override the configured log level (DEBUG, INFO, WARNING, ERROR)",
)
@click.version_option(version=__version__, prog_name="workflow-notifier")
@click.pass_context
def cli(
    ctx: click.Context,
    config: Path | None,
    dry_run: bool,
    log_level: str | None,
) -> None:
    """Workflow notifier - run notification workflows and deferred deliveries.

    Examples:

        # Run the workflows matching a post status change
        workflow-notifier -c notifier.yaml trigger --action transition_post_status \\
            --post-id 12 --old-status draft --new-status publish

        # Deliver queued notifications that are due
        workflow-notifier -c notifier.yaml run-queue

        # Inspect the queue
        workflow-notifier -c notifier.yaml show-queue
    """
    try:
        main_config = load_main_config(config) if config is not None else MainConfig()
    except (ConfigurationError, EnvironmentVariableError) as exc:
        _fail(ctx, f"Configuration error:\n{exc}", EXIT_CONFIG_ERROR)
        return

    # Deferred units must outlive this process
    delivery = main_config.delivery
    if delivery.async_enabled and delivery.queue_file is None:
        _fail(
            ctx,
            "Configuration error:\ndelivery.async_enabled requires delivery.queue_file",
            EXIT_CONFIG_ERROR,
        )
        return

    if dry_run:
        main_config.application.dry_run = True
    if log_level is not None:
        main_config.application.log_level = log_level

    configure_logging(
        log_level=main_config.application.log_level,
        enable_syslog=main_config.application.syslog_enabled,
    )

    channels = dict.fromkeys((EMAIL_CHANNEL, main_config.workflows.default_channel))
    try:
        ctx.obj = build_notifier(
            main_config,
            transports=[LoggingTransport(channel) for channel in channels],
        )
    except QueuePayloadError as exc:
        _fail(ctx, f"Queue error: {exc}", EXIT_RUNTIME_ERROR)


@cli.command()
@click.option("--action", "-a", required=True, help="Name of the triggering event")
@click.option("--post-id", "-p", type=int, required=True, help="Content item id")
@click.option("--title", default="", help="Content item title")
@click.option("--author-id", type=int, default=None, help="Content item author id")
@click.option("--old-status", default=None, help="Status before the event")
@click.option("--new-status", default=None, help="Status after the event")
@click.pass_context
def trigger(
    ctx: click.Context,
    action: str,
    post_id: int,
    title: str,
    author_id: int | None,
    old_status: str | None,
    new_status: str | None,
) -> None:
    """Run every published workflow matching an event."""
    notifier = _notifier(ctx)
    try:
        results = notifier.handle_event(
            {
                "action": action,
                "post": {
                    "id": post_id,
                    "title": title,
                    "author_id": author_id,
                    "status": new_status,
                },
                "old_status": old_status,
                "new_status": new_status,
            }
        )
    except TriggerContextError as exc:
        _fail(ctx, f"Invalid event: {exc}", EXIT_RUNTIME_ERROR)
        return

    deliveries = sum(result.deliveries for result in results)
    click.echo(f"Ran {len(results)} workflow(s), {deliveries} delivery action(s)")


@cli.command("run-queue")
@click.option(
    "--now",
    type=float,
    default=None,
    help="UNIX timestamp treated as the current time (defaults to the clock)",
)
@click.pass_context
def run_queue(ctx: click.Context, now: float | None) -> None:
    """Deliver scheduled notifications that are due."""
    notifier = _notifier(ctx)
    executed = notifier.run_due(now)
    click.echo(f"Executed {executed} scheduled delivery(ies), {len(notifier.scheduler)} pending")


@cli.command("show-queue")
@click.pass_context
def show_queue(ctx: click.Context) -> None:
    """List pending scheduled deliveries."""
    notifier = _notifier(ctx)
    pending = notifier.scheduler.pending()
    if not pending:
        click.echo("Queue is empty")
        return

    for event in pending:
        try:
            unit = decode_unit(event.payload)
        except QueuePayloadError:
            click.echo(f"{event.timestamp:.0f}  {event.action_name}  <invalid payload>")
            continue
        click.echo(
            f"{event.timestamp:.0f}  {event.action_name}  workflow={unit.workflow_id} "
            f"channel={unit.channel} receiver={sanitize_receiver(unit.receiver)}"
        )
