# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Replication Core - Bootstrap a stream worker from replication settings.

Bootstrap is all-or-nothing: pipelines, credentials, endpoints, stream
discovery and worker assembly either all succeed and a worker is returned,
or the first failure propagates and nothing runs.
"""

from typing import Any

import structlog

from ddbcrr.assembler import assemble_worker_config, build_connector_configuration
from ddbcrr.config import ReplicatorConfig
from ddbcrr.credentials import select_credentials_provider
from ddbcrr.endpoints import CLOUDWATCH, DYNAMODB, DYNAMODB_STREAMS, resolve_endpoint
from ddbcrr.metrics import create_metrics
from ddbcrr.pipelines import get_pipeline
from ddbcrr.processing import CompositeRecordProcessorFactory, ConnectorRecordProcessorFactory
from ddbcrr.streams import discover_stream
from ddbcrr.worker import StreamWorker

logger = structlog.get_logger()


async def create_worker(config: ReplicatorConfig, session: Any = None) -> StreamWorker:
    """
    Build a ready-to-run stream worker for a replication task.

    Args:
        config: Replication settings
        session: aiobotocore session (a new one is created if omitted)

    Returns:
        StreamWorker configured with the composite processor factory

    Raises:
        ConfigurationError: On unknown regions or pipelines, or an unusable stream
        botocore.exceptions.ClientError: On failing describe calls
    """
    if session is None:
        from aiobotocore.session import get_session

        session = get_session()

    source = config.source
    destination = config.destination

    # Unknown pipeline names fail before any network call
    pipelines = [get_pipeline(name) for name in config.pipelines]

    source_credentials = select_credentials_provider(
        source.access_key_id, source.secret_access_key, session
    )
    destination_credentials = select_credentials_provider(
        destination.access_key_id, destination.secret_access_key, session
    )

    source_endpoint = resolve_endpoint(source.region, source.endpoint, DYNAMODB)
    streams_endpoint = resolve_endpoint(
        source.region, source.streams_endpoint or source.endpoint, DYNAMODB_STREAMS
    )
    destination_endpoint = resolve_endpoint(destination.region, destination.endpoint, DYNAMODB)

    metrics_region = config.metrics_region or source.region
    metrics_endpoint = (
        resolve_endpoint(metrics_region, None, CLOUDWATCH) if config.publish_metrics else None
    )

    source_kwargs = source_credentials.client_kwargs()
    async with session.create_client(
        "dynamodb",
        region_name=source_endpoint.region,
        endpoint_url=source_endpoint.url,
        **source_kwargs,
    ) as dynamodb_client, session.create_client(
        "dynamodbstreams",
        region_name=streams_endpoint.region,
        endpoint_url=streams_endpoint.url,
        **source_kwargs,
    ) as streams_client:
        stream = await discover_stream(dynamodb_client, streams_client, source.table)

    worker_config = assemble_worker_config(config, stream, streams_endpoint, source_credentials)
    connector_config = build_connector_configuration(
        config, worker_config.application_name, destination_endpoint, destination_credentials
    )

    metrics = create_metrics(
        config.publish_metrics,
        session=session,
        region=metrics_region,
        endpoint_url=metrics_endpoint.url if metrics_endpoint else None,
        client_kwargs=source_kwargs,
        default_dimensions={"TaskName": worker_config.application_name},
    )

    factory = CompositeRecordProcessorFactory(
        [ConnectorRecordProcessorFactory(p, connector_config, metrics) for p in pipelines],
        checkpoint_policy=config.checkpoint_policy,
        checkpoint_writer=config.checkpoint_writer,
    )

    logger.info(
        "worker_created",
        application_name=worker_config.application_name,
        worker_id=worker_config.worker_id,
        pipelines=list(config.pipelines),
        checkpoint_policy=config.checkpoint_policy.value,
        source_endpoint=source_endpoint.url,
        destination_endpoint=destination_endpoint.url,
    )

    return StreamWorker(worker_config, factory, session=session, metrics=metrics)


async def run_replication(config: ReplicatorConfig, session: Any = None) -> None:
    """Create a worker for config and run it until stopped."""
    worker = await create_worker(config, session=session)
    await worker.run()
