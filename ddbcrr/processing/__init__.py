# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Record processing - Processor contracts, the composite fan-out processor and
the per-pipeline connector processor.
"""

from ddbcrr.processing.interfaces import (
    Checkpointer,
    ReadOnlyCheckpointer,
    Record,
    RecordProcessor,
    RecordProcessorFactory,
    ShutdownReason,
)
from ddbcrr.processing.composite import (
    CompositeRecordProcessor,
    CompositeRecordProcessorFactory,
    ProcessorState,
)
from ddbcrr.processing.connector import (
    ConnectorRecordProcessor,
    ConnectorRecordProcessorFactory,
)

__all__ = [
    # Contracts
    "Checkpointer",
    "ReadOnlyCheckpointer",
    "Record",
    "RecordProcessor",
    "RecordProcessorFactory",
    "ShutdownReason",
    # Composite
    "CompositeRecordProcessor",
    "CompositeRecordProcessorFactory",
    "ProcessorState",
    # Connector
    "ConnectorRecordProcessor",
    "ConnectorRecordProcessorFactory",
]
