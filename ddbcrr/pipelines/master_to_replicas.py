# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Master-to-replicas pipeline - Replay source stream records on a replica table.

INSERT and MODIFY records put the new item image; REMOVE records delete the
item by key. The buffer keeps only the latest record per item key, so a
flush writes each item at most once.
"""

import asyncio
import json
import time
from collections import OrderedDict
from typing import Any, Dict, List

import structlog

from ddbcrr.errors import explain_pipeline_configuration_mismatch
from ddbcrr.exceptions import ConfigurationError
from ddbcrr.pipelines.base import (
    ConnectorConfiguration,
    StreamRecord,
    StreamsConnectorConfiguration,
)

logger = structlog.get_logger()


def _require_streams_configuration(
    component: str, configuration: ConnectorConfiguration
) -> StreamsConnectorConfiguration:
    if not isinstance(configuration, StreamsConnectorConfiguration):
        raise ConfigurationError(
            explain_pipeline_configuration_mismatch(
                component, StreamsConnectorConfiguration.__name__, configuration
            )
        )
    return configuration


def _item_key(record: StreamRecord) -> str:
    """Stable identity of the item a stream record refers to."""
    return json.dumps(record["dynamodb"]["Keys"], sort_keys=True)


class StreamsRecordBuffer:
    """Buffer keeping the latest stream record per item key."""

    def __init__(self, configuration: StreamsConnectorConfiguration):
        self._record_count_limit = configuration.buffer_record_count_limit
        self._milliseconds_limit = configuration.buffer_milliseconds_limit
        self._records: "OrderedDict[str, StreamRecord]" = OrderedDict()
        self._consumed = 0
        self._byte_size = 0
        self._first_sequence_number: str | None = None
        self._last_sequence_number: str | None = None
        self._started_at: float | None = None

    def consume(self, record: StreamRecord, record_size: int, sequence_number: str) -> None:
        key = _item_key(record)
        self._records.pop(key, None)
        self._records[key] = record

        if self._first_sequence_number is None:
            self._first_sequence_number = sequence_number
            self._started_at = time.monotonic()
        self._last_sequence_number = sequence_number
        self._consumed += 1
        self._byte_size += record_size

    def should_flush(self) -> bool:
        if not self._records:
            return False
        if self._consumed >= self._record_count_limit:
            return True
        elapsed_ms = (time.monotonic() - (self._started_at or 0.0)) * 1000
        return elapsed_ms >= self._milliseconds_limit

    def get_records(self) -> List[StreamRecord]:
        return list(self._records.values())

    def get_first_sequence_number(self) -> str | None:
        return self._first_sequence_number

    def get_last_sequence_number(self) -> str | None:
        return self._last_sequence_number

    def get_byte_size(self) -> int:
        return self._byte_size

    def clear(self) -> None:
        self._records.clear()
        self._consumed = 0
        self._byte_size = 0
        self._first_sequence_number = None
        self._last_sequence_number = None
        self._started_at = None


class AllPassFilter:
    """Keeps every record."""

    def keep_record(self, record: StreamRecord) -> bool:
        return True


class StreamsRecordTransformer:
    """Stream records are replicated as they are."""

    def to_class(self, record: StreamRecord) -> StreamRecord:
        return record

    def from_class(self, record: StreamRecord) -> StreamRecord:
        return record


class ReplicationEmitter:
    """
    Writes stream records to the destination table.

    Each emit() runs its own event loop in the calling thread, so the
    emitter can be used from record processor worker threads.
    """

    def __init__(self, configuration: StreamsConnectorConfiguration, session: Any = None):
        self._configuration = configuration
        self._session = session

    def _get_session(self) -> Any:
        if self._session is None:
            from aiobotocore.session import get_session

            self._session = get_session()
        return self._session

    def emit(self, records: List[StreamRecord]) -> List[StreamRecord]:
        if not records:
            return []
        return asyncio.run(self._emit(records))

    async def _emit(self, records: List[StreamRecord]) -> List[StreamRecord]:
        config = self._configuration
        credentials = config.credentials_provider.client_kwargs() if config.credentials_provider else {}
        failed: List[StreamRecord] = []

        async with self._get_session().create_client(
            "dynamodb",
            region_name=config.region_name,
            endpoint_url=config.dynamodb_endpoint,
            **credentials,
        ) as client:
            for record in records:
                try:
                    await self._write(client, record)
                except Exception as e:
                    if _is_conditional_check_failure(e):
                        # Destination already holds a newer version
                        logger.debug(
                            "stale_record_skipped",
                            sequence_number=record["dynamodb"].get("SequenceNumber"),
                        )
                        continue
                    logger.warning(
                        "record_emit_failed",
                        table=config.data_table_name,
                        event_name=record.get("eventName"),
                        sequence_number=record["dynamodb"].get("SequenceNumber"),
                        error=str(e),
                    )
                    failed.append(record)

        logger.debug(
            "records_emitted",
            table=config.data_table_name,
            emitted=len(records) - len(failed),
            failed=len(failed),
        )
        return failed

    async def _write(self, client: Any, record: StreamRecord) -> None:
        table = self._configuration.data_table_name
        event_name = record.get("eventName")
        change = record["dynamodb"]

        if event_name in ("INSERT", "MODIFY"):
            new_image = change.get("NewImage")
            if new_image is None:
                raise ValueError(f"{event_name} record without NewImage")
            await client.put_item(TableName=table, Item=new_image, **self._put_condition(new_image))
        elif event_name == "REMOVE":
            await client.delete_item(TableName=table, Key=change["Keys"])
        else:
            raise ValueError(f"Unsupported event name: {event_name!r}")

    def _put_condition(self, new_image: Dict[str, Any]) -> Dict[str, Any]:
        """Guard puts against overwriting newer items when a timestamp key is configured."""
        lut_name = self._configuration.last_update_time_key_name
        if not lut_name or lut_name not in new_image:
            return {}

        names = {"#lut": lut_name}
        absent = "attribute_not_exists(#lut)"
        pk_name = self._configuration.partition_key_name
        if pk_name:
            names["#pk"] = pk_name
            absent = "attribute_not_exists(#pk)"

        return {
            "ConditionExpression": f"{absent} OR #lut <= :lut",
            "ExpressionAttributeNames": names,
            "ExpressionAttributeValues": {":lut": new_image[lut_name]},
        }

    def fail(self, records: List[StreamRecord]) -> None:
        for record in records:
            logger.error(
                "record_replication_failed",
                table=self._configuration.data_table_name,
                event_name=record.get("eventName"),
                sequence_number=record["dynamodb"].get("SequenceNumber"),
            )

    def shutdown(self) -> None:
        logger.debug("emitter_shutdown", table=self._configuration.data_table_name)


def _is_conditional_check_failure(error: Exception) -> bool:
    response = getattr(error, "response", None) or {}
    return response.get("Error", {}).get("Code") == "ConditionalCheckFailedException"


class MasterToReplicasPipeline:
    """Replicates a master table's stream onto one replica table."""

    def get_buffer(self, configuration: ConnectorConfiguration) -> StreamsRecordBuffer:
        return StreamsRecordBuffer(_require_streams_configuration("StreamsRecordBuffer", configuration))

    def get_filter(self, configuration: ConnectorConfiguration) -> AllPassFilter:
        return AllPassFilter()

    def get_transformer(self, configuration: ConnectorConfiguration) -> StreamsRecordTransformer:
        return StreamsRecordTransformer()

    def get_emitter(self, configuration: ConnectorConfiguration) -> ReplicationEmitter:
        return ReplicationEmitter(_require_streams_configuration("ReplicationEmitter", configuration))

    def __repr__(self) -> str:
        return "MasterToReplicasPipeline()"
