# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Connector Record Processor - Drive one pipeline for one shard.

Each record is transformed, filtered and buffered. When the buffer asks
for a flush its contents are emitted to the destination, failed records are
retried a bounded number of times, and the shard is checkpointed at the
last sequence number of the flushed buffer.
"""

import threading
import time
from typing import Any, List

import structlog

from ddbcrr.metrics import MetricsPublisher, NoopMetrics
from ddbcrr.pipelines.base import ConnectorConfiguration, Pipeline
from ddbcrr.processing.interfaces import Checkpointer, Record, ShutdownReason

logger = structlog.get_logger()

DEFAULT_EMIT_RETRIES = 3
DEFAULT_BACKOFF_INTERVAL = 1.0


def _sequence_number(record: Record) -> str:
    return record["dynamodb"]["SequenceNumber"]


def _record_size(record: Record) -> int:
    return int(record["dynamodb"].get("SizeBytes", 0))


class ConnectorRecordProcessor:
    """
    Record processor built from one pipeline's four collaborators.

    Calls are serialized per instance: the composite may hand this processor
    a new batch while the previous one is still running.
    """

    def __init__(
        self,
        pipeline: Pipeline,
        configuration: ConnectorConfiguration,
        metrics: MetricsPublisher | None = None,
        emit_retries: int = DEFAULT_EMIT_RETRIES,
        backoff_interval: float = DEFAULT_BACKOFF_INTERVAL,
    ):
        self._buffer = pipeline.get_buffer(configuration)
        self._emitter = pipeline.get_emitter(configuration)
        self._transformer = pipeline.get_transformer(configuration)
        self._filter = pipeline.get_filter(configuration)
        self._metrics = metrics or NoopMetrics()
        self._emit_retries = emit_retries
        self._backoff_interval = backoff_interval
        self._pipeline_name = type(pipeline).__name__
        self._lock = threading.Lock()
        self._shard_id: str | None = None
        self._shut_down = False

    def initialize(self, shard_id: str) -> None:
        self._shard_id = shard_id
        logger.debug("connector_initialized", shard_id=shard_id, pipeline=self._pipeline_name)

    def process_records(self, records: List[Record], checkpointer: Checkpointer) -> None:
        with self._lock:
            if self._shut_down:
                if records:
                    logger.warning(
                        "records_after_shutdown",
                        shard_id=self._shard_id,
                        pipeline=self._pipeline_name,
                        records=len(records),
                    )
                return

            for record in records:
                item = self._transformer.to_class(record)
                if self._filter.keep_record(item):
                    self._buffer.consume(item, _record_size(record), _sequence_number(record))

            # Also reached with an empty batch, so age-based flushes happen on a quiet shard
            if self._buffer.should_flush():
                self._flush(checkpointer)

    def shutdown(self, checkpointer: Checkpointer, reason: ShutdownReason) -> None:
        with self._lock:
            if reason == ShutdownReason.TERMINATE:
                self._flush(checkpointer)
                # Shard end: advance past the final record even if nothing was buffered
                checkpointer.checkpoint()
            elif reason == ShutdownReason.REQUESTED:
                self._flush(checkpointer)
            self._shut_down = True
            self._emitter.shutdown()

        logger.debug(
            "connector_shutdown",
            shard_id=self._shard_id,
            pipeline=self._pipeline_name,
            reason=reason.value,
        )

    def _flush(self, checkpointer: Checkpointer) -> None:
        items = self._buffer.get_records()
        if not items:
            return

        last_sequence_number = self._buffer.get_last_sequence_number()
        pending: List[Any] = [self._transformer.from_class(item) for item in items]

        attempt = 0
        while pending and attempt <= self._emit_retries:
            if attempt:
                time.sleep(self._backoff_interval * attempt)
            pending = self._emitter.emit(pending)
            attempt += 1

        emitted = len(items) - len(pending)
        dimensions = {"Pipeline": self._pipeline_name}
        self._metrics.put_metric("RecordsEmitted", emitted, dimensions=dimensions)

        if pending:
            self._metrics.put_metric("RecordsFailed", len(pending), dimensions=dimensions)
            self._emitter.fail(pending)

        self._buffer.clear()
        checkpointer.checkpoint(last_sequence_number)
        logger.info(
            "buffer_flushed",
            shard_id=self._shard_id,
            pipeline=self._pipeline_name,
            emitted=emitted,
            failed=len(pending),
            sequence_number=last_sequence_number,
        )


class ConnectorRecordProcessorFactory:
    """Creates a ConnectorRecordProcessor per shard for one pipeline."""

    def __init__(
        self,
        pipeline: Pipeline,
        configuration: ConnectorConfiguration,
        metrics: MetricsPublisher | None = None,
    ):
        self._pipeline = pipeline
        self._configuration = configuration
        self._metrics = metrics

    def create_processor(self) -> ConnectorRecordProcessor:
        return ConnectorRecordProcessor(self._pipeline, self._configuration, self._metrics)
