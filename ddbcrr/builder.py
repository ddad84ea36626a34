# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Replication Builder - Functional builder pattern for configuration.

This module provides pure functions for building ReplicatorConfig objects.
Each function takes a config dict and returns a new dict with the
modification applied (immutable updates).
"""

from pathlib import Path
from typing import Any, Callable, Dict, List

from ddbcrr.config import (
    DEFAULT_BUFFER_MILLISECONDS_LIMIT,
    DEFAULT_BUFFER_RECORD_COUNT_LIMIT,
    DEFAULT_CHECKPOINT_DB_PATH,
    DEFAULT_FAILOVER_TIME,
    DEFAULT_PIPELINE,
    STREAMS_RECORDS_LIMIT,
    CheckpointPolicy,
    ReplicationSide,
    ReplicatorConfig,
)
from ddbcrr.exceptions import ConfigurationError


# Type alias for builder functions
ConfigDict = Dict[str, Any]
BuilderFunc = Callable[[ConfigDict], ConfigDict]

_SIDE_DEFAULTS: Dict[str, Any] = {
    "region": "",
    "table": "",
    "endpoint": None,
    "streams_endpoint": None,
    "access_key_id": None,
    "secret_access_key": None,
}


def create_empty_config() -> ConfigDict:
    """
    Create an initial empty configuration dictionary.

    Returns:
        Dict with default values for all configuration fields
    """
    return {
        "source": dict(_SIDE_DEFAULTS),
        "destination": dict(_SIDE_DEFAULTS),
        "task_name": None,
        "pipelines": [DEFAULT_PIPELINE],
        "batch_size": None,
        "parent_shard_poll_interval": None,
        "failover_time": DEFAULT_FAILOVER_TIME,
        "publish_metrics": True,
        "metrics_region": None,
        "checkpoint_policy": CheckpointPolicy.BEST_EFFORT,
        "checkpoint_writer": 0,
        "checkpoint_db_path": DEFAULT_CHECKPOINT_DB_PATH,
        "partition_key_name": None,
        "last_update_time_key_name": None,
        "buffer_record_count_limit": DEFAULT_BUFFER_RECORD_COUNT_LIMIT,
        "buffer_milliseconds_limit": DEFAULT_BUFFER_MILLISECONDS_LIMIT,
    }


def _with_side(config: ConfigDict, role: str, **updates: Any) -> ConfigDict:
    return {**config, role: {**config[role], **updates}}


def with_source(
    config: ConfigDict,
    region: str,
    table: str,
    endpoint: str | None = None,
    streams_endpoint: str | None = None,
) -> ConfigDict:
    """
    Set the source table and where to reach it.

    Args:
        config: Current configuration dictionary
        region: Source region (also the signing region)
        table: Source table name; its stream is replicated
        endpoint: Explicit DynamoDB endpoint (e.g. DynamoDB Local)
        streams_endpoint: Explicit DynamoDB Streams endpoint, defaults to endpoint

    Returns:
        New configuration dictionary with the source set
    """
    return _with_side(
        config,
        "source",
        region=region,
        table=table,
        endpoint=endpoint,
        streams_endpoint=streams_endpoint,
    )


def with_destination(
    config: ConfigDict,
    region: str,
    table: str,
    endpoint: str | None = None,
) -> ConfigDict:
    """
    Set the destination table and where to reach it.

    Args:
        config: Current configuration dictionary
        region: Destination region
        table: Destination table name
        endpoint: Explicit DynamoDB endpoint

    Returns:
        New configuration dictionary with the destination set
    """
    return _with_side(config, "destination", region=region, table=table, endpoint=endpoint)


def with_source_credentials(config: ConfigDict, access_key_id: str, secret_access_key: str) -> ConfigDict:
    """Use static credentials for the source side instead of the default chain."""
    return _with_side(
        config, "source", access_key_id=access_key_id, secret_access_key=secret_access_key
    )


def with_destination_credentials(config: ConfigDict, access_key_id: str, secret_access_key: str) -> ConfigDict:
    """Use static credentials for the destination side instead of the default chain."""
    return _with_side(
        config, "destination", access_key_id=access_key_id, secret_access_key=secret_access_key
    )


def with_task_name(config: ConfigDict, task_name: str) -> ConfigDict:
    """
    Set an explicit task name.

    The task name keys the checkpoints, so keep it stable across restarts.
    """
    return {**config, "task_name": task_name}


def with_pipelines(config: ConfigDict, pipelines: List[str]) -> ConfigDict:
    """
    Replace the pipeline list.

    Args:
        config: Current configuration dictionary
        pipelines: Registered pipeline names, in init/shutdown order

    Returns:
        New configuration dictionary with the pipelines set
    """
    if not pipelines:
        raise ValueError("at least one pipeline is required")
    return {**config, "pipelines": list(pipelines)}


def add_pipeline(config: ConfigDict, pipeline: str) -> ConfigDict:
    """Append one pipeline to the pipeline list."""
    return {**config, "pipelines": list(config["pipelines"]) + [pipeline]}


def with_batch_size(config: ConfigDict, batch_size: int) -> ConfigDict:
    """
    Set the number of records fetched per GetRecords call.

    Args:
        config: Current configuration dictionary
        batch_size: 1-1000

    Returns:
        New configuration dictionary with batch size set
    """
    if batch_size < 1 or batch_size > STREAMS_RECORDS_LIMIT:
        raise ValueError(f"batch_size must be 1-{STREAMS_RECORDS_LIMIT}, got {batch_size}")
    return {**config, "batch_size": batch_size}


def with_parent_shard_poll_interval(config: ConfigDict, seconds: float) -> ConfigDict:
    """Set how often shards are listed while children wait on their parents."""
    if seconds <= 0:
        raise ValueError(f"parent_shard_poll_interval must be > 0, got {seconds}")
    return {**config, "parent_shard_poll_interval": seconds}


def with_failover_time(config: ConfigDict, seconds: float) -> ConfigDict:
    """
    Set the lease failover time handed to the worker.

    Only hosts that coordinate shard leases act on it; the bundled
    StreamWorker owns every shard and just logs the value.
    """
    if seconds <= 0:
        raise ValueError(f"failover_time must be > 0, got {seconds}")
    return {**config, "failover_time": seconds}


def disable_metrics(config: ConfigDict) -> ConfigDict:
    """Do not publish CloudWatch metrics."""
    return {**config, "publish_metrics": False}


def publish_metrics_to(config: ConfigDict, region: str) -> ConfigDict:
    """Publish CloudWatch metrics to region instead of the source region."""
    return {**config, "publish_metrics": True, "metrics_region": region}


def single_writer_checkpoints(config: ConfigDict, writer: int = 0) -> ConfigDict:
    """
    Let only one pipeline advance the shard checkpoint.

    Args:
        config: Current configuration dictionary
        writer: Index of the pipeline allowed to checkpoint

    Returns:
        New configuration dictionary with the single-writer policy
    """
    return {
        **config,
        "checkpoint_policy": CheckpointPolicy.SINGLE_WRITER,
        "checkpoint_writer": writer,
    }


def best_effort_checkpoints(config: ConfigDict) -> ConfigDict:
    """
    Let every pipeline checkpoint concurrently.

    WARNING: a fast pipeline can checkpoint past records a slower pipeline
    has not written yet. Safe with a single pipeline.
    """
    return {
        **config,
        "checkpoint_policy": CheckpointPolicy.BEST_EFFORT,
        "checkpoint_writer": 0,
    }


def with_checkpoint_db(config: ConfigDict, db_path: Path | str) -> ConfigDict:
    """Set the path of the local checkpoint database."""
    return {**config, "checkpoint_db_path": Path(db_path)}


def with_item_keys(
    config: ConfigDict,
    partition_key_name: str | None = None,
    last_update_time_key_name: str | None = None,
) -> ConfigDict:
    """
    Name the item attributes used to skip stale writes on the destination.
    """
    return {
        **config,
        "partition_key_name": partition_key_name,
        "last_update_time_key_name": last_update_time_key_name,
    }


def build_config(config_dict: ConfigDict) -> ReplicatorConfig:
    """
    Validate and build an immutable ReplicatorConfig from a configuration dictionary.

    Args:
        config_dict: Configuration dictionary built using builder functions

    Returns:
        Validated, immutable ReplicatorConfig instance

    Raises:
        ConfigurationError: If validation fails
    """
    for role in ("source", "destination"):
        side = config_dict.get(role) or {}
        if not side.get("region") or not side.get("table"):
            raise ConfigurationError(f"{role} region and table are required")

    values = dict(config_dict)
    values["source"] = ReplicationSide(**config_dict["source"])
    values["destination"] = ReplicationSide(**config_dict["destination"])
    values["pipelines"] = tuple(config_dict["pipelines"])
    return ReplicatorConfig(**values)


def pipe(*funcs: BuilderFunc) -> BuilderFunc:
    """
    Compose multiple builder functions into a single function.

        config = pipe(
            lambda c: with_source(c, "us-east-1", "orders"),
            lambda c: with_destination(c, "eu-west-1", "orders-replica"),
            disable_metrics,
        )(create_empty_config())
    """

    def composed(config: ConfigDict) -> ConfigDict:
        result = config
        for func in funcs:
            result = func(result)
        return result

    return composed


def build_from_steps(*steps: BuilderFunc) -> ReplicatorConfig:
    """Build config by applying a sequence of builder functions."""
    return build_config(pipe(*steps)(create_empty_config()))


def create_config(
    source_region: str,
    source_table: str,
    destination_region: str,
    destination_table: str,
    *,
    source_endpoint: str | None = None,
    destination_endpoint: str | None = None,
    task_name: str | None = None,
    pipelines: List[str] | None = None,
    batch_size: int | None = None,
    publish_metrics: bool = True,
    checkpoint_policy: str | CheckpointPolicy = CheckpointPolicy.BEST_EFFORT,
    checkpoint_writer: int = 0,
    **kwargs: Any,
) -> ReplicatorConfig:
    """
    Create replication configuration from simple parameters.

    This is the recommended user-facing API for creating configurations.

    Example:
        config = create_config(
            "us-east-1", "orders",
            "eu-west-1", "orders",
            task_name="orders-eu",
            checkpoint_policy="single_writer",
        )

    Returns:
        Validated, immutable ReplicatorConfig instance
    """
    config_dict = create_empty_config()
    config_dict = with_source(config_dict, source_region, source_table, source_endpoint)
    config_dict = with_destination(config_dict, destination_region, destination_table, destination_endpoint)

    if task_name:
        config_dict = with_task_name(config_dict, task_name)

    if pipelines:
        config_dict = with_pipelines(config_dict, pipelines)

    if batch_size is not None:
        config_dict = with_batch_size(config_dict, batch_size)

    if not publish_metrics:
        config_dict = disable_metrics(config_dict)

    policy = CheckpointPolicy(checkpoint_policy)
    if policy == CheckpointPolicy.SINGLE_WRITER:
        config_dict = single_writer_checkpoints(config_dict, checkpoint_writer)
    else:
        config_dict = best_effort_checkpoints(config_dict)

    # Apply any additional kwargs
    for key, value in kwargs.items():
        if key in config_dict:
            config_dict[key] = value

    return build_config(config_dict)
