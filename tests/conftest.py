# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Test fixtures for ddbcrr tests.

Provides in-memory stand-ins for aiobotocore sessions and clients, recording
record processors, and test configuration helpers.
"""

import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, Generator, List

import pytest
from botocore.exceptions import ClientError

from ddbcrr.config import ReplicationSide, ReplicatorConfig
from ddbcrr.processing.interfaces import ShutdownReason

SOURCE_STREAM_ARN = (
    "arn:aws:dynamodb:us-east-1:123456789012:table/orders/stream/2026-01-01T00:00:00.000"
)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def test_config(temp_dir: Path) -> ReplicatorConfig:
    """Create a test configuration."""
    return ReplicatorConfig(
        source=ReplicationSide(region="us-east-1", table="orders"),
        destination=ReplicationSide(region="eu-west-1", table="orders-replica"),
        publish_metrics=False,
        checkpoint_db_path=temp_dir / "checkpoints.db",
    )


def client_error(code: str, operation: str = "Operation") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


def make_record(
    sequence_number: str,
    item_id: str = "1",
    event_name: str = "INSERT",
    new_image: Dict[str, Any] | None = None,
) -> Dict[str, Any]:
    """Build a DynamoDB Streams record as GetRecords returns it."""
    keys = {"id": {"S": item_id}}
    change: Dict[str, Any] = {
        "Keys": keys,
        "SequenceNumber": sequence_number,
        "SizeBytes": 10,
        "StreamViewType": "NEW_AND_OLD_IMAGES",
    }
    if event_name != "REMOVE":
        change["NewImage"] = new_image or {**keys, "value": {"S": f"v{sequence_number}"}}
    return {"eventID": f"event-{sequence_number}", "eventName": event_name, "dynamodb": change}


# ============================================================================
# Fake aiobotocore clients
# ============================================================================


class FakeDynamoDBClient:
    """In-memory DynamoDB client: describe_table, put_item and delete_item."""

    def __init__(self, tables: Dict[str, Dict[str, Any]] | None = None):
        self.tables = tables or {}
        self.puts: List[Dict[str, Any]] = []
        self.deletes: List[Dict[str, Any]] = []
        # Exceptions raised by the next put_item calls, in order
        self.put_errors: List[Exception] = []
        self._lock = threading.Lock()

    async def describe_table(self, TableName: str) -> Dict[str, Any]:
        if TableName not in self.tables:
            raise client_error("ResourceNotFoundException", "DescribeTable")
        return {"Table": {"TableName": TableName, **self.tables[TableName]}}

    async def put_item(self, **kwargs: Any) -> Dict[str, Any]:
        with self._lock:
            if self.put_errors:
                raise self.put_errors.pop(0)
            self.puts.append(kwargs)
        return {}

    async def delete_item(self, **kwargs: Any) -> Dict[str, Any]:
        with self._lock:
            self.deletes.append(kwargs)
        return {}


class FakeStreamsClient:
    """
    In-memory DynamoDB Streams client.

    Shard iterators are "<shard_id>:<position>". A closed shard returns no
    next iterator once all of its records have been read; an open shard
    keeps returning empty pages.
    """

    def __init__(
        self,
        streams: Dict[str, Dict[str, Any]] | None = None,
        shard_records: Dict[str, List[Dict[str, Any]]] | None = None,
        closed_shards: set | None = None,
        page_size: int | None = None,
    ):
        self.streams = streams or {}
        self.shard_records = shard_records or {}
        self.closed_shards = closed_shards or set()
        self.page_size = page_size
        self.iterator_requests: List[Dict[str, Any]] = []
        self.get_records_calls: List[Dict[str, Any]] = []
        self.describe_calls: List[Dict[str, Any]] = []

    async def describe_stream(self, StreamArn: str, **kwargs: Any) -> Dict[str, Any]:
        self.describe_calls.append({"StreamArn": StreamArn, **kwargs})
        if StreamArn not in self.streams:
            raise client_error("ResourceNotFoundException", "DescribeStream")
        stream = self.streams[StreamArn]
        shards = list(stream.get("Shards", []))

        start = 0
        if "ExclusiveStartShardId" in kwargs:
            ids = [s["ShardId"] for s in shards]
            start = ids.index(kwargs["ExclusiveStartShardId"]) + 1
        page = shards[start:]
        description = {
            "StreamArn": StreamArn,
            "StreamViewType": stream.get("StreamViewType"),
            "StreamStatus": stream.get("StreamStatus"),
        }
        if self.page_size is not None and len(page) > self.page_size:
            page = page[: self.page_size]
            description["LastEvaluatedShardId"] = page[-1]["ShardId"]
        description["Shards"] = page
        return {"StreamDescription": description}

    async def get_shard_iterator(self, **kwargs: Any) -> Dict[str, Any]:
        self.iterator_requests.append(kwargs)
        shard_id = kwargs["ShardId"]
        records = self.shard_records.get(shard_id, [])
        position = 0
        if kwargs["ShardIteratorType"] == "AFTER_SEQUENCE_NUMBER":
            sequence_numbers = [r["dynamodb"]["SequenceNumber"] for r in records]
            position = sequence_numbers.index(kwargs["SequenceNumber"]) + 1
        elif kwargs["ShardIteratorType"] == "LATEST":
            position = len(records)
        return {"ShardIterator": f"{shard_id}:{position}"}

    async def get_records(self, ShardIterator: str, Limit: int = 1000) -> Dict[str, Any]:
        self.get_records_calls.append({"ShardIterator": ShardIterator, "Limit": Limit})
        shard_id, _, position_text = ShardIterator.rpartition(":")
        position = int(position_text)
        records = self.shard_records.get(shard_id, [])
        page = records[position:position + Limit]
        next_position = position + len(page)

        response: Dict[str, Any] = {"Records": page}
        if shard_id in self.closed_shards and next_position >= len(records):
            return response
        response["NextShardIterator"] = f"{shard_id}:{next_position}"
        return response


class FakeCloudWatchClient:
    def __init__(self):
        self.calls: List[Dict[str, Any]] = []
        self.error: Exception | None = None

    async def put_metric_data(self, **kwargs: Any) -> Dict[str, Any]:
        if self.error is not None:
            raise self.error
        self.calls.append(kwargs)
        return {}


class _ClientContext:
    def __init__(self, client: Any):
        self._client = client

    async def __aenter__(self) -> Any:
        return self._client

    async def __aexit__(self, *exc_info: Any) -> None:
        return None


class FakeCredentials:
    def __init__(self, access_key: str, secret_key: str, token: str | None = None):
        self._frozen = type(
            "FrozenCredentials",
            (),
            {"access_key": access_key, "secret_key": secret_key, "token": token},
        )()

    async def get_frozen_credentials(self) -> Any:
        return self._frozen


class FakeSession:
    """
    Stand-in for an aiobotocore session.

    create_client() hands out the same fake client per service name and
    records the arguments it was called with.
    """

    def __init__(
        self,
        dynamodb: FakeDynamoDBClient | None = None,
        streams: FakeStreamsClient | None = None,
        cloudwatch: FakeCloudWatchClient | None = None,
        credentials: FakeCredentials | None = None,
    ):
        self.clients = {
            "dynamodb": dynamodb or FakeDynamoDBClient(),
            "dynamodbstreams": streams or FakeStreamsClient(),
            "cloudwatch": cloudwatch or FakeCloudWatchClient(),
        }
        self.created: List[Dict[str, Any]] = []
        self._credentials = credentials

    def create_client(self, service_name: str, **kwargs: Any) -> _ClientContext:
        self.created.append({"service_name": service_name, **kwargs})
        return _ClientContext(self.clients[service_name])

    async def get_credentials(self) -> FakeCredentials | None:
        return self._credentials


@pytest.fixture
def source_session() -> FakeSession:
    """Session whose source table has a usable stream with one closed shard."""
    dynamodb = FakeDynamoDBClient(
        tables={"orders": {"LatestStreamArn": SOURCE_STREAM_ARN}},
    )
    streams = FakeStreamsClient(
        streams={
            SOURCE_STREAM_ARN: {
                "StreamViewType": "NEW_AND_OLD_IMAGES",
                "StreamStatus": "ENABLED",
                "Shards": [{"ShardId": "shard-0001"}],
            }
        },
        shard_records={"shard-0001": [make_record(str(100 + i), item_id=str(i)) for i in range(3)]},
        closed_shards={"shard-0001"},
    )
    return FakeSession(dynamodb=dynamodb, streams=streams)


# ============================================================================
# Recording record processors
# ============================================================================


class RecordingCheckpointer:
    def __init__(self):
        self.calls: List[str | None] = []
        self._lock = threading.Lock()

    def checkpoint(self, sequence_number: str | None = None) -> None:
        with self._lock:
            self.calls.append(sequence_number)


class RecordingProcessor:
    """
    Record processor that logs every callback into a shared event list.

    Optional threading.Events let tests hold a callback until released.
    """

    def __init__(
        self,
        name: str,
        events: List[tuple] | None = None,
        checkpoint_on_process: bool = False,
        checkpoint_on_shutdown: bool = False,
    ):
        self.name = name
        self.events = events if events is not None else []
        self.checkpoint_on_process = checkpoint_on_process
        self.checkpoint_on_shutdown = checkpoint_on_shutdown
        self.batches: List[List[Dict[str, Any]]] = []
        self.initialize_gate: threading.Event | None = None
        self.process_gate: threading.Event | None = None
        self.processed = threading.Event()
        self.fail_on: str | None = None
        self.shutdown_reason: ShutdownReason | None = None

    def initialize(self, shard_id: str) -> None:
        if self.initialize_gate is not None:
            self.initialize_gate.wait(timeout=5)
        if self.fail_on == "initialize":
            raise RuntimeError(f"{self.name} initialize failed")
        self.events.append((self.name, "initialize", shard_id))

    def process_records(self, records, checkpointer) -> None:
        if self.process_gate is not None:
            self.process_gate.wait(timeout=5)
        try:
            if self.fail_on == "process_records":
                raise RuntimeError(f"{self.name} process_records failed")
            self.batches.append(list(records))
            self.events.append((self.name, "process_records", len(records)))
            if self.checkpoint_on_process and records:
                checkpointer.checkpoint(records[-1]["dynamodb"]["SequenceNumber"])
        finally:
            self.processed.set()

    def shutdown(self, checkpointer, reason: ShutdownReason) -> None:
        if self.fail_on == "shutdown":
            raise RuntimeError(f"{self.name} shutdown failed")
        self.shutdown_reason = reason
        self.events.append((self.name, "shutdown", reason))
        if self.checkpoint_on_shutdown and reason == ShutdownReason.TERMINATE:
            checkpointer.checkpoint()


class RecordingProcessorFactory:
    def __init__(self, name: str, events: List[tuple] | None = None, **options: Any):
        self.name = name
        self.events = events if events is not None else []
        self.options = options
        self.created: List[RecordingProcessor] = []

    def create_processor(self) -> RecordingProcessor:
        processor = RecordingProcessor(self.name, self.events, **self.options)
        self.created.append(processor)
        return processor
