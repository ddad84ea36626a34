# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Command-line entry point for the replication worker.

Every failure before replication starts (bad arguments, bad configuration,
unreachable tables) ends the process with EINVAL.
"""

import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Sequence

import click
import structlog

from ddbcrr import __version__
from ddbcrr.builder import (
    build_config,
    create_empty_config,
    disable_metrics,
    publish_metrics_to,
    single_writer_checkpoints,
    with_batch_size,
    with_checkpoint_db,
    with_destination,
    with_destination_credentials,
    with_item_keys,
    with_parent_shard_poll_interval,
    with_pipelines,
    with_source,
    with_source_credentials,
    with_task_name,
)
from ddbcrr.config import CheckpointPolicy, ReplicatorConfig
from ddbcrr.exceptions import ConfigurationError
from ddbcrr.pipelines import available_pipelines

logger = structlog.get_logger()

EXIT_OK = 0
# Invalid argument, also used for every other bootstrap failure
EINVAL = 22

_LOG_LEVELS = ["critical", "error", "warning", "info", "debug"]


def configure_logging(level: str) -> None:
    """Route structlog output to stderr at the given level."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(level.upper())
        ),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


def build_config_from_options(options: dict) -> ReplicatorConfig:
    """Turn parsed command-line options into a ReplicatorConfig."""
    config = create_empty_config()
    config = with_source(
        config,
        options["source_signing_region"],
        options["source_table"],
        options.get("source_endpoint"),
        options.get("source_streams_endpoint"),
    )
    config = with_destination(
        config,
        options["destination_signing_region"],
        options["destination_table"],
        options.get("destination_endpoint"),
    )

    if options.get("source_access_key_id") and options.get("source_secret_access_key"):
        config = with_source_credentials(
            config, options["source_access_key_id"], options["source_secret_access_key"]
        )
    if options.get("destination_access_key_id") and options.get("destination_secret_access_key"):
        config = with_destination_credentials(
            config, options["destination_access_key_id"], options["destination_secret_access_key"]
        )

    if options.get("task_name"):
        config = with_task_name(config, options["task_name"])
    if options.get("pipeline"):
        config = with_pipelines(config, list(options["pipeline"]))

    try:
        if options.get("batch_size") is not None:
            config = with_batch_size(config, options["batch_size"])
        if options.get("parent_shard_poll_interval_millis") is not None:
            config = with_parent_shard_poll_interval(
                config, options["parent_shard_poll_interval_millis"] / 1000.0
            )
    except ValueError as exc:
        raise ConfigurationError(str(exc)) from exc

    if options.get("dont_publish_cloudwatch"):
        config = disable_metrics(config)
    elif options.get("metrics_region"):
        config = publish_metrics_to(config, options["metrics_region"])

    if options.get("checkpoint_policy") == CheckpointPolicy.SINGLE_WRITER.value:
        config = single_writer_checkpoints(config, options.get("checkpoint_writer") or 0)

    if options.get("checkpoint_db"):
        config = with_checkpoint_db(config, Path(options["checkpoint_db"]))

    if options.get("partition_key_name") or options.get("last_update_time_key_name"):
        config = with_item_keys(
            config, options.get("partition_key_name"), options.get("last_update_time_key_name")
        )

    return build_config(config)


async def _start(config: ReplicatorConfig) -> None:
    from ddbcrr.core import create_worker

    worker = await create_worker(config)
    click.echo("Starting replication now, check logs for more details.")
    await worker.run()


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__, prog_name="ddbcrr")
@click.option("--source-signing-region", required=True, help="Region of the source table")
@click.option("--source-table", required=True, help="Source table whose stream is replicated")
@click.option("--source-endpoint", default=None, help="Explicit source DynamoDB endpoint")
@click.option("--source-streams-endpoint", default=None, help="Explicit source DynamoDB Streams endpoint")
@click.option("--destination-signing-region", required=True, help="Region of the destination table")
@click.option("--destination-table", required=True, help="Destination table")
@click.option("--destination-endpoint", default=None, help="Explicit destination DynamoDB endpoint")
@click.option("--source-access-key-id", envvar="CRR_SOURCE_ACCESS_KEY_ID", default=None)
@click.option("--source-secret-access-key", envvar="CRR_SOURCE_SECRET_ACCESS_KEY", default=None)
@click.option("--destination-access-key-id", envvar="CRR_DESTINATION_ACCESS_KEY_ID", default=None)
@click.option("--destination-secret-access-key", envvar="CRR_DESTINATION_SECRET_ACCESS_KEY", default=None)
@click.option("--task-name", default=None, help="Stable task name; derived from regions and tables if omitted")
@click.option("--batch-size", type=int, default=None, help="Records per GetRecords call (1-1000)")
@click.option("--parent-shard-poll-interval-millis", type=int, default=None)
@click.option("--dont-publish-cloudwatch", is_flag=True, default=False, help="Disable CloudWatch metrics")
@click.option("--metrics-region", default=None, help="CloudWatch region; source region if omitted")
@click.option(
    "--pipeline",
    multiple=True,
    help=f"Pipeline name, repeatable (registered: {', '.join(available_pipelines())})",
)
@click.option(
    "--checkpoint-policy",
    type=click.Choice([p.value for p in CheckpointPolicy]),
    default=CheckpointPolicy.BEST_EFFORT.value,
    show_default=True,
)
@click.option("--checkpoint-writer", type=int, default=0, help="Pipeline index allowed to checkpoint (single_writer)")
@click.option("--checkpoint-db", type=click.Path(dir_okay=False), default=None)
@click.option("--partition-key-name", default=None)
@click.option("--last-update-time-key-name", default=None)
@click.option("--log-level", type=click.Choice(_LOG_LEVELS), default="info", show_default=True)
def cli(**options) -> None:
    """
    Replicate a DynamoDB table's stream to a table in another region.
    """
    configure_logging(options["log_level"])
    config = build_config_from_options(options)
    asyncio.run(_start(config))


def main(argv: Sequence[str] | None = None) -> int:
    """
    Run the command line and map failures to exit codes.

    Returns:
        EXIT_OK, or EINVAL for any failure
    """
    args: List[str] | None = list(argv) if argv is not None else None
    try:
        result = cli.main(args=args, prog_name="ddbcrr", standalone_mode=False)
    except click.ClickException as e:
        e.show()
        return EINVAL
    except click.exceptions.Abort:
        # Interrupted while replicating
        click.echo("Replication stopped.", err=True)
        return EXIT_OK
    except ConfigurationError as e:
        logger.error("invalid_configuration", error=str(e))
        click.echo(str(e), err=True)
        return EINVAL
    except Exception as e:
        logger.critical("bootstrap_failed", error=str(e), error_type=type(e).__name__)
        click.echo(f"{type(e).__name__}: {e}", err=True)
        return EINVAL

    # --help / --version exit through click with their own code
    if isinstance(result, int):
        return result
    return EXIT_OK
