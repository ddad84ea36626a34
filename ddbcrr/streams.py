# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Stream Discovery - Find and validate the stream attached to the source table.

Discovery runs once at bootstrap. It is not transactional: a stream disabled
after discovery surfaces later as a worker failure and is not retried here.
"""

from dataclasses import dataclass
from typing import Any

import structlog

from ddbcrr.errors import explain_no_stream_found, explain_stream_not_ready
from ddbcrr.exceptions import NoStreamFoundError, StreamNotReadyError

logger = structlog.get_logger()

# Both the old and the new item image are needed to replicate idempotently
NEW_AND_OLD_IMAGES = "NEW_AND_OLD_IMAGES"

_UNUSABLE_STATUSES = {"DISABLED", "DISABLING"}


@dataclass(frozen=True)
class StreamDescriptor:
    """The stream attached to the source table."""

    stream_arn: str
    view_type: str
    status: str | None = None


async def describe_stream_arn(dynamodb_client: Any, table_name: str) -> str | None:
    """Return the latest stream ARN of a table, or None if it has no stream."""
    response = await dynamodb_client.describe_table(TableName=table_name)
    return response["Table"].get("LatestStreamArn") or None


async def discover_stream(
    dynamodb_client: Any,
    streams_client: Any,
    table_name: str,
) -> StreamDescriptor:
    """
    Discover and validate the change stream of the source table.

    Args:
        dynamodb_client: aiobotocore DynamoDB client for the source region
        streams_client: aiobotocore DynamoDB Streams client for the source region
        table_name: Source table name

    Returns:
        StreamDescriptor for the attached stream

    Raises:
        NoStreamFoundError: If no stream is attached to the table
        StreamNotReadyError: If the stream lacks NEW_AND_OLD_IMAGES or is disabled
    """
    stream_arn = await describe_stream_arn(dynamodb_client, table_name)
    if not stream_arn:
        raise NoStreamFoundError(
            explain_no_stream_found(table_name),
            details={"table": table_name},
        )

    response = await streams_client.describe_stream(StreamArn=stream_arn)
    description = response["StreamDescription"]
    view_type = description.get("StreamViewType")
    status = description.get("StreamStatus")

    if view_type != NEW_AND_OLD_IMAGES or status in _UNUSABLE_STATUSES:
        raise StreamNotReadyError(
            explain_stream_not_ready(table_name, view_type, status),
            details={"table": table_name, "stream_arn": stream_arn},
        )

    logger.info(
        "stream_discovered",
        table=table_name,
        stream_arn=stream_arn,
        view_type=view_type,
        status=status,
    )
    return StreamDescriptor(stream_arn=stream_arn, view_type=view_type, status=status)
