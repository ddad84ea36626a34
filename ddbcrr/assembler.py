# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Worker Configuration Assembler - Turn resolved settings into WorkerConfig.

Combines the resolved endpoints, credentials, discovered stream and tunables
into the immutable configuration consumed by the stream worker, and into
the connector configuration shared by every pipeline.
"""

import re
from dataclasses import dataclass
from pathlib import Path

from ulid import ULID

from ddbcrr.config import (
    DEFAULT_FAILOVER_TIME,
    DEFAULT_PARENT_SHARD_POLL_INTERVAL,
    IDLE_TIME_BETWEEN_READS,
    STREAMS_RECORDS_LIMIT,
    CheckpointPolicy,
    InitialPosition,
    ReplicatorConfig,
)
from ddbcrr.credentials import CredentialsProvider
from ddbcrr.endpoints import ResolvedEndpoint
from ddbcrr.pipelines.base import StreamsConnectorConfiguration
from ddbcrr.streams import StreamDescriptor

WORKER_LABEL = "worker"

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


@dataclass(frozen=True)
class WorkerConfig:
    """
    Immutable configuration of one stream worker.

    application_name is stable across restarts and keys the checkpoints;
    worker_id is unique per run. failover_time is carried for hosts that
    coordinate leases and has no effect on StreamWorker.

    With call_process_records_even_for_empty_list the worker also hands
    empty reads to the processor, so buffers can flush on age alone.
    """

    application_name: str
    worker_id: str
    stream_arn: str
    streams_endpoint: ResolvedEndpoint
    credentials_provider: CredentialsProvider
    checkpoint_db_path: Path
    max_records: int = STREAMS_RECORDS_LIMIT
    initial_position: InitialPosition = InitialPosition.TRIM_HORIZON
    idle_time_between_reads: float = IDLE_TIME_BETWEEN_READS
    parent_shard_poll_interval: float = DEFAULT_PARENT_SHARD_POLL_INTERVAL
    failover_time: float = DEFAULT_FAILOVER_TIME
    validate_sequence_number_before_checkpointing: bool = False
    call_process_records_even_for_empty_list: bool = True
    checkpoint_policy: CheckpointPolicy = CheckpointPolicy.BEST_EFFORT


def derive_task_name(
    source_region: str,
    destination_region: str,
    task_name: str | None,
    source_table: str,
    destination_table: str,
) -> str:
    """
    Derive the deterministic task name.

    An explicit task name wins; otherwise the name is built from both
    regions and both tables so the same logical task always maps to the
    same checkpoints.
    """
    if task_name:
        name = task_name
    else:
        name = f"{source_region}-{source_table}-to-{destination_region}-{destination_table}"
    return _UNSAFE_NAME_CHARS.sub("_", name)


def generate_worker_id(
    source_region: str,
    destination_region: str,
    task_name: str | None,
    source_table: str,
    destination_table: str,
) -> str:
    """
    Generate a globally unique worker identity for one run of a task.

    All identities for the same inputs share the derived task name as a
    prefix; the ULID suffix keeps concurrently started workers apart.
    """
    prefix = derive_task_name(
        source_region, destination_region, task_name, source_table, destination_table
    )
    return f"{WORKER_LABEL}-{prefix}-{ULID()}"


def assemble_worker_config(
    config: ReplicatorConfig,
    stream: StreamDescriptor,
    streams_endpoint: ResolvedEndpoint,
    credentials_provider: CredentialsProvider,
) -> WorkerConfig:
    """
    Build the WorkerConfig for a replication task.

    Args:
        config: Replication settings
        stream: Discovered source stream
        streams_endpoint: Resolved DynamoDB Streams endpoint of the source
        credentials_provider: Source side credentials

    Returns:
        Immutable WorkerConfig
    """
    names = (
        config.source.region,
        config.destination.region,
        config.task_name,
        config.source.table,
        config.destination.table,
    )

    parent_poll = config.parent_shard_poll_interval
    if parent_poll is None:
        parent_poll = DEFAULT_PARENT_SHARD_POLL_INTERVAL

    return WorkerConfig(
        application_name=derive_task_name(*names),
        worker_id=generate_worker_id(*names),
        stream_arn=stream.stream_arn,
        streams_endpoint=streams_endpoint,
        credentials_provider=credentials_provider,
        checkpoint_db_path=config.checkpoint_db_path,
        # Cold starts favor completeness over catch-up latency
        initial_position=InitialPosition.TRIM_HORIZON,
        max_records=config.batch_size or STREAMS_RECORDS_LIMIT,
        idle_time_between_reads=IDLE_TIME_BETWEEN_READS,
        parent_shard_poll_interval=parent_poll,
        failover_time=config.failover_time,
        validate_sequence_number_before_checkpointing=False,
        call_process_records_even_for_empty_list=True,
        checkpoint_policy=config.checkpoint_policy,
    )


def build_connector_configuration(
    config: ReplicatorConfig,
    application_name: str,
    destination_endpoint: ResolvedEndpoint,
    credentials_provider: CredentialsProvider,
) -> StreamsConnectorConfiguration:
    """Build the configuration shared by every pipeline of the task."""
    return StreamsConnectorConfiguration(
        app_name=application_name,
        dynamodb_endpoint=destination_endpoint.url,
        region_name=destination_endpoint.region,
        data_table_name=config.destination.table,
        credentials_provider=credentials_provider,
        publish_metrics=config.publish_metrics,
        partition_key_name=config.partition_key_name,
        last_update_time_key_name=config.last_update_time_key_name,
        buffer_record_count_limit=config.buffer_record_count_limit,
        buffer_milliseconds_limit=config.buffer_milliseconds_limit,
    )
