# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Environment-based configuration helpers.

Build a ReplicatorConfig from CRR_* environment variables, e.g. in a
container where the task is described entirely by its environment.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import List, Mapping

from ddbcrr.builder import (
    create_empty_config,
    build_config,
    disable_metrics,
    publish_metrics_to,
    single_writer_checkpoints,
    with_batch_size,
    with_checkpoint_db,
    with_destination,
    with_destination_credentials,
    with_pipelines,
    with_source,
    with_source_credentials,
    with_task_name,
)
from ddbcrr.config import CheckpointPolicy, ReplicatorConfig
from ddbcrr.errors import (
    explain_invalid_checkpoint_policy,
    explain_invalid_int_env,
    explain_missing_env,
)
from ddbcrr.exceptions import ConfigurationError


def _require(env: Mapping[str, str], name: str) -> str:
    value = env.get(name)
    if not value:
        raise ConfigurationError(explain_missing_env(name))
    return value


def _parse_positive_int(name: str, value: str | None) -> int | None:
    if not value:
        return None
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(explain_invalid_int_env(name, value)) from exc
    if number < 1:
        raise ConfigurationError(explain_invalid_int_env(name, value))
    return number


def _parse_bool(value: str | None, default: bool) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _parse_pipelines(value: str | None) -> List[str]:
    if not value:
        return []
    return [p.strip() for p in value.split(",") if p.strip()]


def _parse_checkpoint_policy(value: str | None) -> CheckpointPolicy:
    if not value:
        return CheckpointPolicy.BEST_EFFORT
    try:
        return CheckpointPolicy(value.lower())
    except ValueError as exc:
        raise ConfigurationError(explain_invalid_checkpoint_policy(value)) from exc


def create_config_from_env(env: Mapping[str, str] | None = None) -> ReplicatorConfig:
    """
    Create a ReplicatorConfig from environment variables.

    Required:
        - CRR_SOURCE_REGION, CRR_SOURCE_TABLE
        - CRR_DESTINATION_REGION, CRR_DESTINATION_TABLE

    Optional:
        - CRR_SOURCE_ENDPOINT, CRR_SOURCE_STREAMS_ENDPOINT, CRR_DESTINATION_ENDPOINT
        - CRR_SOURCE_ACCESS_KEY_ID, CRR_SOURCE_SECRET_ACCESS_KEY
        - CRR_DESTINATION_ACCESS_KEY_ID, CRR_DESTINATION_SECRET_ACCESS_KEY
        - CRR_TASK_NAME: Explicit task name
        - CRR_PIPELINES: Comma-separated pipeline names
        - CRR_BATCH_SIZE: GetRecords limit (1-1000)
        - CRR_PUBLISH_METRICS: 'true' | 'false' (default: true)
        - CRR_METRICS_REGION: CloudWatch region
        - CRR_CHECKPOINT_POLICY: 'best_effort' | 'single_writer'
        - CRR_CHECKPOINT_WRITER: Index of the checkpointing pipeline
        - CRR_CHECKPOINT_DB: Path of the checkpoint database

    Args:
        env: Mapping to read instead of os.environ
    """
    env = os.environ if env is None else env

    config = create_empty_config()
    config = with_source(
        config,
        _require(env, "CRR_SOURCE_REGION"),
        _require(env, "CRR_SOURCE_TABLE"),
        env.get("CRR_SOURCE_ENDPOINT") or None,
        env.get("CRR_SOURCE_STREAMS_ENDPOINT") or None,
    )
    config = with_destination(
        config,
        _require(env, "CRR_DESTINATION_REGION"),
        _require(env, "CRR_DESTINATION_TABLE"),
        env.get("CRR_DESTINATION_ENDPOINT") or None,
    )

    if env.get("CRR_SOURCE_ACCESS_KEY_ID") and env.get("CRR_SOURCE_SECRET_ACCESS_KEY"):
        config = with_source_credentials(
            config, env["CRR_SOURCE_ACCESS_KEY_ID"], env["CRR_SOURCE_SECRET_ACCESS_KEY"]
        )
    if env.get("CRR_DESTINATION_ACCESS_KEY_ID") and env.get("CRR_DESTINATION_SECRET_ACCESS_KEY"):
        config = with_destination_credentials(
            config, env["CRR_DESTINATION_ACCESS_KEY_ID"], env["CRR_DESTINATION_SECRET_ACCESS_KEY"]
        )

    if env.get("CRR_TASK_NAME"):
        config = with_task_name(config, env["CRR_TASK_NAME"])

    pipelines = _parse_pipelines(env.get("CRR_PIPELINES"))
    if pipelines:
        config = with_pipelines(config, pipelines)

    batch_size = _parse_positive_int("CRR_BATCH_SIZE", env.get("CRR_BATCH_SIZE"))
    if batch_size is not None:
        try:
            config = with_batch_size(config, batch_size)
        except ValueError as exc:
            raise ConfigurationError(str(exc)) from exc

    if not _parse_bool(env.get("CRR_PUBLISH_METRICS"), True):
        config = disable_metrics(config)
    elif env.get("CRR_METRICS_REGION"):
        config = publish_metrics_to(config, env["CRR_METRICS_REGION"])

    if _parse_checkpoint_policy(env.get("CRR_CHECKPOINT_POLICY")) == CheckpointPolicy.SINGLE_WRITER:
        writer = env.get("CRR_CHECKPOINT_WRITER") or "0"
        try:
            config = single_writer_checkpoints(config, int(writer))
        except ValueError as exc:
            raise ConfigurationError(explain_invalid_int_env("CRR_CHECKPOINT_WRITER", writer)) from exc

    if env.get("CRR_CHECKPOINT_DB"):
        config = with_checkpoint_db(config, Path(env["CRR_CHECKPOINT_DB"]))

    return build_config(config)
