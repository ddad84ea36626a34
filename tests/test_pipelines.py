# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Pipeline registry and master-to-replicas pipeline tests.
"""

import pytest

from conftest import FakeDynamoDBClient, FakeSession, client_error, make_record
from ddbcrr.credentials import StaticCredentialsProvider
from ddbcrr.exceptions import ConfigurationError
from ddbcrr.pipelines import (
    ConnectorConfiguration,
    MasterToReplicasPipeline,
    StreamsConnectorConfiguration,
    available_pipelines,
    get_pipeline,
    register_pipeline,
    unregister_pipeline,
)
from ddbcrr.pipelines.master_to_replicas import (
    AllPassFilter,
    ReplicationEmitter,
    StreamsRecordBuffer,
    StreamsRecordTransformer,
)


def _configuration(**overrides) -> StreamsConnectorConfiguration:
    values = dict(
        app_name="orders-eu",
        dynamodb_endpoint="http://localhost:8000",
        region_name="eu-west-1",
        data_table_name="orders-replica",
        credentials_provider=StaticCredentialsProvider("AKIDEXAMPLE", "secret"),
    )
    values.update(overrides)
    return StreamsConnectorConfiguration(**values)


# ============================================================================
# Registry
# ============================================================================


def test_default_pipeline_is_registered():
    assert "master_to_replicas" in available_pipelines()
    assert isinstance(get_pipeline("master_to_replicas"), MasterToReplicasPipeline)


def test_each_lookup_constructs_a_new_pipeline():
    assert get_pipeline("master_to_replicas") is not get_pipeline("master_to_replicas")


def test_unknown_pipeline_lists_registered_names():
    with pytest.raises(ConfigurationError) as exc_info:
        get_pipeline("replica_to_master")

    message = str(exc_info.value)
    assert "replica_to_master" in message
    assert "master_to_replicas" in message


def test_register_and_unregister_custom_pipeline():
    register_pipeline("custom", MasterToReplicasPipeline)
    try:
        assert "custom" in available_pipelines()
        with pytest.raises(ConfigurationError):
            register_pipeline("custom", MasterToReplicasPipeline)
    finally:
        unregister_pipeline("custom")

    assert "custom" not in available_pipelines()


# ============================================================================
# Configuration checks
# ============================================================================


def test_buffer_and_emitter_reject_plain_connector_configuration():
    pipeline = MasterToReplicasPipeline()
    plain = ConnectorConfiguration(app_name="orders-eu")

    with pytest.raises(ConfigurationError) as exc_info:
        pipeline.get_buffer(plain)
    assert "StreamsConnectorConfiguration" in str(exc_info.value)

    with pytest.raises(ConfigurationError):
        pipeline.get_emitter(plain)


def test_filter_and_transformer_accept_any_configuration():
    pipeline = MasterToReplicasPipeline()
    plain = ConnectorConfiguration(app_name="orders-eu")

    assert isinstance(pipeline.get_filter(plain), AllPassFilter)
    assert isinstance(pipeline.get_transformer(plain), StreamsRecordTransformer)


# ============================================================================
# Buffer, filter, transformer
# ============================================================================


def test_buffer_keeps_latest_record_per_item():
    buffer = StreamsRecordBuffer(_configuration())

    buffer.consume(make_record("100", item_id="a"), 10, "100")
    buffer.consume(make_record("101", item_id="b"), 10, "101")
    buffer.consume(make_record("102", item_id="a", event_name="REMOVE"), 10, "102")

    records = buffer.get_records()
    assert [r["dynamodb"]["SequenceNumber"] for r in records] == ["101", "102"]
    assert buffer.get_first_sequence_number() == "100"
    assert buffer.get_last_sequence_number() == "102"
    assert buffer.get_byte_size() == 30


def test_buffer_flushes_on_record_count():
    buffer = StreamsRecordBuffer(
        _configuration(buffer_record_count_limit=2, buffer_milliseconds_limit=60_000)
    )

    assert not buffer.should_flush()
    buffer.consume(make_record("100", item_id="a"), 10, "100")
    assert not buffer.should_flush()
    # Consumed records count, not distinct items
    buffer.consume(make_record("101", item_id="a"), 10, "101")
    assert buffer.should_flush()


def test_buffer_flushes_on_age():
    buffer = StreamsRecordBuffer(_configuration(buffer_milliseconds_limit=0))

    buffer.consume(make_record("100"), 10, "100")

    assert buffer.should_flush()


def test_buffer_clear_resets_state():
    buffer = StreamsRecordBuffer(_configuration())
    buffer.consume(make_record("100"), 10, "100")

    buffer.clear()

    assert buffer.get_records() == []
    assert buffer.get_last_sequence_number() is None
    assert not buffer.should_flush()


def test_filter_and_transformer_pass_records_through():
    record = make_record("100")

    assert AllPassFilter().keep_record(record)
    transformer = StreamsRecordTransformer()
    assert transformer.from_class(transformer.to_class(record)) is record


# ============================================================================
# Replication emitter
# ============================================================================


def test_emitter_replays_inserts_modifies_and_removes():
    dynamodb = FakeDynamoDBClient()
    session = FakeSession(dynamodb=dynamodb)
    emitter = ReplicationEmitter(_configuration(), session=session)
    records = [
        make_record("100", item_id="a"),
        make_record("101", item_id="b", event_name="MODIFY"),
        make_record("102", item_id="c", event_name="REMOVE"),
    ]

    failed = emitter.emit(records)

    assert failed == []
    assert [put["Item"] for put in dynamodb.puts] == [
        records[0]["dynamodb"]["NewImage"],
        records[1]["dynamodb"]["NewImage"],
    ]
    assert all(put["TableName"] == "orders-replica" for put in dynamodb.puts)
    assert dynamodb.deletes == [{"TableName": "orders-replica", "Key": {"id": {"S": "c"}}}]

    created = session.created[0]
    assert created["service_name"] == "dynamodb"
    assert created["region_name"] == "eu-west-1"
    assert created["endpoint_url"] == "http://localhost:8000"
    assert created["aws_access_key_id"] == "AKIDEXAMPLE"


def test_emitter_returns_failed_records():
    dynamodb = FakeDynamoDBClient()
    dynamodb.put_errors = [client_error("ProvisionedThroughputExceededException", "PutItem")]
    emitter = ReplicationEmitter(_configuration(), session=FakeSession(dynamodb=dynamodb))
    records = [make_record("100", item_id="a"), make_record("101", item_id="b")]

    failed = emitter.emit(records)

    assert failed == [records[0]]
    assert len(dynamodb.puts) == 1


def test_emitter_skips_stale_conditional_writes():
    dynamodb = FakeDynamoDBClient()
    dynamodb.put_errors = [client_error("ConditionalCheckFailedException", "PutItem")]
    emitter = ReplicationEmitter(_configuration(), session=FakeSession(dynamodb=dynamodb))

    assert emitter.emit([make_record("100")]) == []


def test_emitter_rejects_unknown_event_names():
    emitter = ReplicationEmitter(_configuration(), session=FakeSession())
    record = make_record("100")
    record["eventName"] = "TRUNCATE"

    assert emitter.emit([record]) == [record]


def test_emitter_guards_puts_with_last_update_time():
    dynamodb = FakeDynamoDBClient()
    emitter = ReplicationEmitter(
        _configuration(partition_key_name="id", last_update_time_key_name="updated_at"),
        session=FakeSession(dynamodb=dynamodb),
    )
    image = {"id": {"S": "a"}, "updated_at": {"N": "1700000000"}}

    emitter.emit([make_record("100", item_id="a", new_image=image)])

    put = dynamodb.puts[0]
    assert put["ConditionExpression"] == "attribute_not_exists(#pk) OR #lut <= :lut"
    assert put["ExpressionAttributeNames"] == {"#lut": "updated_at", "#pk": "id"}
    assert put["ExpressionAttributeValues"] == {":lut": {"N": "1700000000"}}


def test_emitter_without_timestamp_attribute_writes_unconditionally():
    dynamodb = FakeDynamoDBClient()
    emitter = ReplicationEmitter(
        _configuration(last_update_time_key_name="updated_at"),
        session=FakeSession(dynamodb=dynamodb),
    )

    emitter.emit([make_record("100")])

    assert "ConditionExpression" not in dynamodb.puts[0]


def test_emit_of_nothing_opens_no_client():
    session = FakeSession()

    assert ReplicationEmitter(_configuration(), session=session).emit([]) == []
    assert session.created == []
