# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Record processor contracts between the stream worker and its processors.

The worker drives every processor through exactly three callbacks:
initialize, process_records and shutdown. Processors never call these on
themselves.
"""

from enum import Enum
from typing import Any, Dict, List, Protocol

import structlog

logger = structlog.get_logger()

Record = Dict[str, Any]


class ShutdownReason(str, Enum):
    """Why a shard's processor is being shut down."""

    TERMINATE = "TERMINATE"  # Shard end reached; checkpoint must advance
    ZOMBIE = "ZOMBIE"  # Lease lost; must not checkpoint
    REQUESTED = "REQUESTED"  # Worker stopping; may checkpoint


class Checkpointer(Protocol):
    def checkpoint(self, sequence_number: str | None = None) -> None:
        """Record progress up to sequence_number (last delivered record if None)."""
        ...


class RecordProcessor(Protocol):
    def initialize(self, shard_id: str) -> None:
        ...

    def process_records(self, records: List[Record], checkpointer: Checkpointer) -> None:
        ...

    def shutdown(self, checkpointer: Checkpointer, reason: ShutdownReason) -> None:
        ...


class RecordProcessorFactory(Protocol):
    def create_processor(self) -> RecordProcessor:
        ...


class ReadOnlyCheckpointer:
    """
    Checkpointer handed to delegates that may not advance the shared cursor.

    Calls are dropped.
    """

    def __init__(self, delegate: Checkpointer, owner: str = ""):
        self._delegate = delegate
        self._owner = owner

    def checkpoint(self, sequence_number: str | None = None) -> None:
        logger.debug(
            "checkpoint_dropped",
            owner=self._owner,
            sequence_number=sequence_number,
        )
