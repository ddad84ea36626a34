# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Composite Record Processor - Fan each shard's records out to N pipelines.

One composite wraps one delegate processor per configured pipeline behind a
single processor identity:

- initialize() and shutdown() are barriers: every delegate is called in
  configured order and the call returns only when all of them have.
  shutdown() first waits for each delegate's queued batches, so no batch
  reaches a delegate after it has shut down.
- process_records() is fire-and-forget: one task per delegate is submitted
  to a pool sized to the delegate count and the call returns at once.

Checkpointing hazard under CheckpointPolicy.BEST_EFFORT: every delegate
holds the shared checkpointer, so a fast delegate can advance the shard
cursor while a slower one is still writing the same batch. A crash in that
window loses those records for the slower delegate's destination. Under
CheckpointPolicy.SINGLE_WRITER only the designated delegate can advance it.
"""

import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from enum import Enum
from typing import List, Sequence, Set

import structlog

from ddbcrr.config import CheckpointPolicy
from ddbcrr.exceptions import ConfigurationError, DelegateProcessingError
from ddbcrr.processing.interfaces import (
    Checkpointer,
    ReadOnlyCheckpointer,
    Record,
    RecordProcessor,
    RecordProcessorFactory,
    ShutdownReason,
)

logger = structlog.get_logger()


class ProcessorState(str, Enum):
    CREATED = "CREATED"
    INITIALIZED = "INITIALIZED"
    PROCESSING = "PROCESSING"
    SHUT_DOWN = "SHUT_DOWN"


class CompositeRecordProcessor:
    """Processor for one shard that forwards every callback to all delegates."""

    def __init__(
        self,
        processors: Sequence[RecordProcessor],
        checkpoint_policy: CheckpointPolicy = CheckpointPolicy.BEST_EFFORT,
        checkpoint_writer: int = 0,
    ):
        if not processors:
            raise ConfigurationError("CompositeRecordProcessor needs at least one delegate")
        if not 0 <= checkpoint_writer < len(processors):
            raise ConfigurationError(
                f"checkpoint_writer {checkpoint_writer} out of range for {len(processors)} delegates"
            )

        self._processors: List[RecordProcessor] = list(processors)
        self._checkpoint_policy = checkpoint_policy
        self._checkpoint_writer = checkpoint_writer
        self._executor = ThreadPoolExecutor(
            max_workers=len(self._processors),
            thread_name_prefix="crr-delegate",
        )
        # Submitted process_records tasks not yet finished, per delegate
        self._pending: List[Set[Future]] = [set() for _ in self._processors]
        self._pending_lock = threading.Lock()
        self._state = ProcessorState.CREATED
        self._shard_id: str | None = None
        self._shutdown_reason: ShutdownReason | None = None

    @property
    def state(self) -> ProcessorState:
        return self._state

    @property
    def shard_id(self) -> str | None:
        return self._shard_id

    @property
    def shutdown_reason(self) -> ShutdownReason | None:
        return self._shutdown_reason

    @property
    def delegates(self) -> List[RecordProcessor]:
        return list(self._processors)

    def initialize(self, shard_id: str) -> None:
        for index, processor in enumerate(self._processors):
            try:
                processor.initialize(shard_id)
            except Exception as e:
                raise DelegateProcessingError(
                    f"Delegate {index} failed to initialize shard {shard_id}: {e}",
                    details={"shard_id": shard_id, "delegate": index},
                ) from e

        self._shard_id = shard_id
        self._state = ProcessorState.INITIALIZED
        logger.info("shard_initialized", shard_id=shard_id, delegates=len(self._processors))

    def process_records(self, records: List[Record], checkpointer: Checkpointer) -> None:
        for index, processor in enumerate(self._processors):
            with self._pending_lock:
                future = self._executor.submit(
                    processor.process_records,
                    records,
                    self._checkpointer_for(index, checkpointer),
                )
                self._pending[index].add(future)
            future.add_done_callback(self._delegate_done(index, len(records)))
        self._state = ProcessorState.PROCESSING

    def shutdown(self, checkpointer: Checkpointer, reason: ShutdownReason) -> None:
        for index, processor in enumerate(self._processors):
            self._drain(index)
            try:
                processor.shutdown(self._checkpointer_for(index, checkpointer), reason)
            except Exception as e:
                raise DelegateProcessingError(
                    f"Delegate {index} failed to shut down shard {self._shard_id}: {e}",
                    details={"shard_id": self._shard_id, "delegate": index, "reason": reason.value},
                ) from e

        self._shutdown_reason = reason
        self._state = ProcessorState.SHUT_DOWN
        logger.info("shard_shut_down", shard_id=self._shard_id, reason=reason.value)

    def close(self, wait: bool = False) -> None:
        """Release the delegate pool once the shard is no longer held."""
        self._executor.shutdown(wait=wait)

    def _checkpointer_for(self, index: int, checkpointer: Checkpointer) -> Checkpointer:
        if (
            self._checkpoint_policy == CheckpointPolicy.SINGLE_WRITER
            and index != self._checkpoint_writer
        ):
            return ReadOnlyCheckpointer(checkpointer, owner=f"delegate-{index}")
        return checkpointer

    def _drain(self, index: int) -> None:
        """Block until every batch queued for one delegate has run."""
        with self._pending_lock:
            pending = set(self._pending[index])
        if pending:
            logger.debug(
                "draining_delegate",
                shard_id=self._shard_id,
                delegate=index,
                batches=len(pending),
            )
            wait(pending)

    def _delegate_done(self, index: int, record_count: int):
        shard_id = self._shard_id

        def callback(future: Future) -> None:
            with self._pending_lock:
                self._pending[index].discard(future)
            if future.cancelled():
                return
            error = future.exception()
            if error is not None:
                # Not propagated: the worker never sees pooled task failures
                logger.error(
                    "delegate_process_records_failed",
                    shard_id=shard_id,
                    delegate=index,
                    records=record_count,
                    error=str(error),
                )

        return callback


class CompositeRecordProcessorFactory:
    """Creates one CompositeRecordProcessor per shard from N delegate factories."""

    def __init__(
        self,
        factories: Sequence[RecordProcessorFactory],
        checkpoint_policy: CheckpointPolicy = CheckpointPolicy.BEST_EFFORT,
        checkpoint_writer: int = 0,
    ):
        if not factories:
            raise ConfigurationError("CompositeRecordProcessorFactory needs at least one factory")
        self._factories = list(factories)
        self._checkpoint_policy = checkpoint_policy
        self._checkpoint_writer = checkpoint_writer

    def create_processor(self) -> CompositeRecordProcessor:
        return CompositeRecordProcessor(
            [factory.create_processor() for factory in self._factories],
            checkpoint_policy=self._checkpoint_policy,
            checkpoint_writer=self._checkpoint_writer,
        )
