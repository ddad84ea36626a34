# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Pipeline building blocks - Protocols and the shared connector configuration.

A pipeline turns buffered change records into destination writes through
four collaborators: a buffer, a filter, a transformer and an emitter.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Protocol, TypeVar

from ddbcrr.config import DEFAULT_BUFFER_MILLISECONDS_LIMIT, DEFAULT_BUFFER_RECORD_COUNT_LIMIT

# A DynamoDB Streams record as returned by GetRecords
StreamRecord = Dict[str, Any]

T = TypeVar("T")
U = TypeVar("U")


@dataclass(frozen=True)
class ConnectorConfiguration:
    """Settings every connector pipeline receives."""

    app_name: str
    buffer_record_count_limit: int = DEFAULT_BUFFER_RECORD_COUNT_LIMIT
    buffer_milliseconds_limit: int = DEFAULT_BUFFER_MILLISECONDS_LIMIT


@dataclass(frozen=True)
class StreamsConnectorConfiguration(ConnectorConfiguration):
    """Connector settings for replicating into a destination DynamoDB table."""

    dynamodb_endpoint: str = ""
    region_name: str = ""
    data_table_name: str = ""
    credentials_provider: Any = None
    publish_metrics: bool = False
    partition_key_name: str | None = None
    last_update_time_key_name: str | None = None


class Buffer(Protocol[T]):
    def consume(self, record: T, record_size: int, sequence_number: str) -> None:
        ...

    def should_flush(self) -> bool:
        ...

    def get_records(self) -> List[T]:
        ...

    def get_first_sequence_number(self) -> str | None:
        ...

    def get_last_sequence_number(self) -> str | None:
        ...

    def clear(self) -> None:
        ...


class Filter(Protocol[T]):
    def keep_record(self, record: T) -> bool:
        ...


class Transformer(Protocol[T, U]):
    def to_class(self, record: StreamRecord) -> T:
        ...

    def from_class(self, record: T) -> U:
        ...


class Emitter(Protocol[U]):
    def emit(self, records: List[U]) -> List[U]:
        """Write records; return the ones that failed."""
        ...

    def fail(self, records: List[U]) -> None:
        ...

    def shutdown(self) -> None:
        ...


class Pipeline(Protocol[T, U]):
    """
    Produces the four collaborators of one connector.

    Implementations raise ConfigurationError when handed a configuration
    type they cannot work with.
    """

    def get_buffer(self, configuration: ConnectorConfiguration) -> Buffer[T]:
        ...

    def get_filter(self, configuration: ConnectorConfiguration) -> Filter[T]:
        ...

    def get_transformer(self, configuration: ConnectorConfiguration) -> Transformer[T, U]:
        ...

    def get_emitter(self, configuration: ConnectorConfiguration) -> Emitter[U]:
        ...
