# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Command-line tests.

Every bootstrap failure must end the process with EINVAL.
"""

from pathlib import Path

import pytest
import structlog

from ddbcrr.cli import EINVAL, EXIT_OK, build_config_from_options, main
from ddbcrr.config import CheckpointPolicy

REQUIRED = [
    "--source-signing-region", "us-east-1",
    "--source-table", "orders",
    "--destination-signing-region", "eu-west-1",
    "--destination-table", "orders-replica",
]


@pytest.fixture(autouse=True)
def reset_logging():
    """main() configures structlog globally; undo it after each test."""
    yield
    structlog.reset_defaults()


def test_help_exits_cleanly(capsys):
    assert main(["--help"]) == EXIT_OK
    assert "--source-table" in capsys.readouterr().out


def test_version_exits_cleanly(capsys):
    assert main(["--version"]) == EXIT_OK
    assert "0.1.0" in capsys.readouterr().out


def test_missing_required_option_is_einval(capsys):
    assert main(["--source-table", "orders"]) == EINVAL
    assert "Missing option" in capsys.readouterr().err


def test_unknown_option_is_einval():
    assert main(REQUIRED + ["--no-such-option"]) == EINVAL


def test_batch_size_out_of_range_is_einval(capsys):
    assert main(REQUIRED + ["--batch-size", "5000"]) == EINVAL
    assert "batch_size" in capsys.readouterr().err


def test_same_source_and_destination_is_einval(capsys):
    argv = [
        "--source-signing-region", "us-east-1",
        "--source-table", "orders",
        "--destination-signing-region", "us-east-1",
        "--destination-table", "orders",
    ]

    assert main(argv) == EINVAL
    assert "must not be the same table" in capsys.readouterr().err


def test_unknown_pipeline_is_einval(capsys, temp_dir: Path):
    argv = REQUIRED + ["--pipeline", "nope", "--checkpoint-db", str(temp_dir / "c.db")]

    assert main(argv) == EINVAL
    assert "Unknown pipeline" in capsys.readouterr().err


def test_invalid_checkpoint_policy_is_einval():
    assert main(REQUIRED + ["--checkpoint-policy", "everyone"]) == EINVAL


def test_options_map_onto_configuration(temp_dir: Path):
    options = {
        "source_signing_region": "us-east-1",
        "source_table": "orders",
        "source_endpoint": "http://localhost:8000",
        "source_streams_endpoint": None,
        "destination_signing_region": "eu-west-1",
        "destination_table": "orders-replica",
        "destination_endpoint": None,
        "source_access_key_id": "AKIDSOURCE",
        "source_secret_access_key": "source-secret",
        "destination_access_key_id": None,
        "destination_secret_access_key": None,
        "task_name": "orders-eu",
        "batch_size": 100,
        "parent_shard_poll_interval_millis": 2500,
        "dont_publish_cloudwatch": False,
        "metrics_region": "us-west-2",
        "pipeline": ("master_to_replicas", "master_to_replicas"),
        "checkpoint_policy": "single_writer",
        "checkpoint_writer": 1,
        "checkpoint_db": str(temp_dir / "c.db"),
        "partition_key_name": "id",
        "last_update_time_key_name": "updated_at",
        "log_level": "info",
    }

    config = build_config_from_options(options)

    assert config.source.endpoint == "http://localhost:8000"
    assert config.source.access_key_id == "AKIDSOURCE"
    assert config.task_name == "orders-eu"
    assert config.batch_size == 100
    assert config.parent_shard_poll_interval == 2.5
    assert config.metrics_region == "us-west-2"
    assert config.pipelines == ("master_to_replicas", "master_to_replicas")
    assert config.checkpoint_policy == CheckpointPolicy.SINGLE_WRITER
    assert config.checkpoint_writer == 1
    assert config.checkpoint_db_path == temp_dir / "c.db"
    assert config.partition_key_name == "id"
    assert config.last_update_time_key_name == "updated_at"


def test_dont_publish_cloudwatch_disables_metrics():
    options = {
        "source_signing_region": "us-east-1",
        "source_table": "orders",
        "destination_signing_region": "eu-west-1",
        "destination_table": "orders-replica",
        "dont_publish_cloudwatch": True,
        "metrics_region": "us-west-2",
    }

    config = build_config_from_options(options)

    assert config.publish_metrics is False
