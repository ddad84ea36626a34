# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Replication Configuration - Immutable configuration data structures.

All configuration is frozen (immutable) after creation so that the source
and destination sides cannot change once a worker has been built.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Tuple
import re


# Largest batch DynamoDB Streams GetRecords returns
STREAMS_RECORDS_LIMIT = 1000

# Seconds to wait after an empty GetRecords call
IDLE_TIME_BETWEEN_READS = 0.5

# Seconds between shard listings while waiting for parent shards
DEFAULT_PARENT_SHARD_POLL_INTERVAL = 10.0

# Seconds before an unrenewed shard is considered lost
DEFAULT_FAILOVER_TIME = 60.0

DEFAULT_PIPELINE = "master_to_replicas"
DEFAULT_CHECKPOINT_DB_PATH = Path("./ddbcrr_checkpoints.db")

# Defaults for the connector buffer
DEFAULT_BUFFER_RECORD_COUNT_LIMIT = 1000
DEFAULT_BUFFER_MILLISECONDS_LIMIT = 1000


class CheckpointPolicy(str, Enum):
    """Who may advance the shared shard checkpoint."""

    BEST_EFFORT = "best_effort"  # Every delegate checkpoints concurrently
    SINGLE_WRITER = "single_writer"  # Only the designated delegate checkpoints


class InitialPosition(str, Enum):
    """Where a shard without a checkpoint starts reading."""

    TRIM_HORIZON = "TRIM_HORIZON"
    LATEST = "LATEST"


_TABLE_NAME_RE = re.compile(r"^[A-Za-z0-9_.-]{3,255}$")


def _validate_table_name(table: str) -> bool:
    """Validate a DynamoDB table name (3-255 chars of [A-Za-z0-9_.-])."""
    return bool(table) and bool(_TABLE_NAME_RE.match(table))


@dataclass(frozen=True)
class ReplicationSide:
    """
    One side of the replication: where a table lives and how to reach it.
    """

    region: str
    table: str

    # Explicit DynamoDB endpoint, overrides the region template
    endpoint: str | None = None

    # Explicit DynamoDB Streams endpoint (source side only)
    streams_endpoint: str | None = None

    access_key_id: str | None = None
    secret_access_key: str | None = field(default=None, repr=False)

    def validate(self, role: str) -> List[str]:
        errors: List[str] = []
        if not self.region:
            errors.append(f"{role} region is required")
        if not _validate_table_name(self.table):
            errors.append(f"Invalid {role} table name: {self.table!r}")
        return errors


@dataclass(frozen=True)
class ReplicatorConfig:
    """
    Immutable top-level settings for one replication task.
    """

    source: ReplicationSide
    destination: ReplicationSide

    # Explicit task name; derived from regions and tables when unset
    task_name: str | None = None

    # Symbolic pipeline names, in init/shutdown order
    pipelines: Tuple[str, ...] = (DEFAULT_PIPELINE,)

    # GetRecords limit; STREAMS_RECORDS_LIMIT when unset
    batch_size: int | None = None

    # Seconds; DEFAULT_PARENT_SHARD_POLL_INTERVAL when unset
    parent_shard_poll_interval: float | None = None

    # Seconds; reserved for lease-coordinating hosts. The bundled worker
    # takes no leases and only reports it.
    failover_time: float = DEFAULT_FAILOVER_TIME

    # Publish CloudWatch metrics
    publish_metrics: bool = True

    # CloudWatch region; source region when unset
    metrics_region: str | None = None

    checkpoint_policy: CheckpointPolicy = CheckpointPolicy.BEST_EFFORT

    # Index of the delegate allowed to checkpoint under SINGLE_WRITER
    checkpoint_writer: int = 0

    checkpoint_db_path: Path = DEFAULT_CHECKPOINT_DB_PATH

    # Item attributes used by the replication emitter
    partition_key_name: str | None = None
    last_update_time_key_name: str | None = None

    buffer_record_count_limit: int = DEFAULT_BUFFER_RECORD_COUNT_LIMIT
    buffer_milliseconds_limit: int = DEFAULT_BUFFER_MILLISECONDS_LIMIT

    def __post_init__(self) -> None:
        """Validate configuration after creation."""
        errors: List[str] = []

        errors.extend(self.source.validate("source"))
        errors.extend(self.destination.validate("destination"))

        if (
            self.source.region == self.destination.region
            and self.source.table == self.destination.table
            and self.source.endpoint == self.destination.endpoint
        ):
            errors.append("source and destination must not be the same table")

        if not self.pipelines:
            errors.append("at least one pipeline is required")

        if self.batch_size is not None and not 1 <= self.batch_size <= STREAMS_RECORDS_LIMIT:
            errors.append(
                f"batch_size must be 1-{STREAMS_RECORDS_LIMIT}, got {self.batch_size}"
            )

        if self.parent_shard_poll_interval is not None and self.parent_shard_poll_interval <= 0:
            errors.append(
                f"parent_shard_poll_interval must be > 0, got {self.parent_shard_poll_interval}"
            )

        if self.failover_time <= 0:
            errors.append(f"failover_time must be > 0, got {self.failover_time}")

        if not 0 <= self.checkpoint_writer < max(len(self.pipelines), 1):
            errors.append(
                f"checkpoint_writer must index a configured pipeline, got {self.checkpoint_writer}"
            )

        if self.buffer_record_count_limit < 1:
            errors.append(
                f"buffer_record_count_limit must be >= 1, got {self.buffer_record_count_limit}"
            )

        if self.buffer_milliseconds_limit < 0:
            errors.append(
                f"buffer_milliseconds_limit must be >= 0, got {self.buffer_milliseconds_limit}"
            )

        # Raise all errors at once
        if errors:
            from ddbcrr.exceptions import ConfigurationError

            raise ConfigurationError(
                "Configuration validation failed",
                details={"errors": errors},
            )

    def with_updates(self, **kwargs) -> "ReplicatorConfig":
        """
        Create a new config with updated values.

        Since the config is frozen, this creates a new instance.
        """
        from dataclasses import replace

        return replace(self, **kwargs)
