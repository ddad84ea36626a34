# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Example: replicate between two DynamoDB Local instances with two pipelines.

The second pipeline only replicates items whose "tier" attribute is "gold",
so the destination receives every change twice for gold items and once
for the rest. Only the first pipeline advances the shard checkpoint.

Run with:
    python examples/local_replication.py

Expects DynamoDB Local on ports 8000 (source, with a NEW_AND_OLD_IMAGES
stream on table "orders") and 8001 (destination table "orders").
"""

import asyncio

import structlog

from ddbcrr import run_replication
from ddbcrr.builder import (
    build_from_steps,
    disable_metrics,
    single_writer_checkpoints,
    with_checkpoint_db,
    with_destination,
    with_destination_credentials,
    with_pipelines,
    with_source,
    with_source_credentials,
    with_task_name,
)
from ddbcrr.pipelines import register_pipeline
from ddbcrr.pipelines.master_to_replicas import MasterToReplicasPipeline

logger = structlog.get_logger()


class GoldTierFilter:
    """Keeps records whose new image has tier == "gold"."""

    def keep_record(self, record) -> bool:
        image = record["dynamodb"].get("NewImage") or {}
        return image.get("tier", {}).get("S") == "gold"


class GoldTierPipeline(MasterToReplicasPipeline):
    def get_filter(self, configuration):
        return GoldTierFilter()


def main() -> None:
    register_pipeline("gold_tier", GoldTierPipeline)

    config = build_from_steps(
        lambda c: with_source(c, "us-east-1", "orders", "http://localhost:8000"),
        lambda c: with_destination(c, "eu-west-1", "orders", "http://localhost:8001"),
        # DynamoDB Local accepts any key pair
        lambda c: with_source_credentials(c, "local", "local"),
        lambda c: with_destination_credentials(c, "local", "local"),
        lambda c: with_task_name(c, "orders-local"),
        lambda c: with_pipelines(c, ["master_to_replicas", "gold_tier"]),
        lambda c: single_writer_checkpoints(c, 0),
        lambda c: with_checkpoint_db(c, "./orders-local-checkpoints.db"),
        disable_metrics,
    )

    logger.info("starting_local_replication", task_name=config.task_name)
    asyncio.run(run_replication(config))


if __name__ == "__main__":
    main()
