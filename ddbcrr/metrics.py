# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Replication metrics - CloudWatch publisher and its no-op stand-in.

Metrics must never block replication: the no-op publisher ignores every
call, and the CloudWatch publisher logs and drops data it cannot send.
"""

import threading
from dataclasses import dataclass, field
from datetime import datetime, UTC
from typing import Any, Dict, List, Protocol

import structlog

logger = structlog.get_logger()

METRICS_NAMESPACE = "DynamoDBCrossRegionReplication"

# PutMetricData accepts at most this many datums per call
_MAX_DATUMS_PER_REQUEST = 1000


@dataclass(frozen=True)
class MetricDatum:
    name: str
    value: float
    unit: str = "Count"
    dimensions: Dict[str, str] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_cloudwatch(self) -> Dict[str, Any]:
        return {
            "MetricName": self.name,
            "Value": self.value,
            "Unit": self.unit,
            "Timestamp": self.timestamp,
            "Dimensions": [{"Name": k, "Value": v} for k, v in sorted(self.dimensions.items())],
        }


class MetricsPublisher(Protocol):
    """Protocol for metrics publishers."""

    def put_metric(
        self,
        name: str,
        value: float,
        unit: str = "Count",
        dimensions: Dict[str, str] | None = None,
    ) -> None:
        ...

    def pending(self) -> List[MetricDatum]:
        ...

    async def flush(self) -> None:
        ...


class NoopMetrics:
    """Publisher used when metrics are disabled. Every call does nothing."""

    def put_metric(
        self,
        name: str,
        value: float,
        unit: str = "Count",
        dimensions: Dict[str, str] | None = None,
    ) -> None:
        return None

    def pending(self) -> List[MetricDatum]:
        return []

    async def flush(self) -> None:
        return None


class CloudWatchMetrics:
    """
    Buffers metric data and publishes it with PutMetricData.

    put_metric() is safe to call from record processor threads; flush()
    runs on the worker's event loop.
    """

    def __init__(
        self,
        session: Any,
        region: str,
        endpoint_url: str | None = None,
        client_kwargs: Dict[str, Any] | None = None,
        namespace: str = METRICS_NAMESPACE,
        default_dimensions: Dict[str, str] | None = None,
    ):
        self._session = session
        self._region = region
        self._endpoint_url = endpoint_url
        self._client_kwargs = client_kwargs or {}
        self._namespace = namespace
        self._default_dimensions = default_dimensions or {}
        self._lock = threading.Lock()
        self._pending: List[MetricDatum] = []

    def put_metric(
        self,
        name: str,
        value: float,
        unit: str = "Count",
        dimensions: Dict[str, str] | None = None,
    ) -> None:
        datum = MetricDatum(
            name=name,
            value=value,
            unit=unit,
            dimensions={**self._default_dimensions, **(dimensions or {})},
        )
        with self._lock:
            self._pending.append(datum)

    def pending(self) -> List[MetricDatum]:
        with self._lock:
            return list(self._pending)

    async def flush(self) -> None:
        with self._lock:
            batch, self._pending = self._pending, []
        if not batch:
            return

        try:
            async with self._session.create_client(
                "cloudwatch",
                region_name=self._region,
                endpoint_url=self._endpoint_url,
                **self._client_kwargs,
            ) as client:
                for start in range(0, len(batch), _MAX_DATUMS_PER_REQUEST):
                    chunk = batch[start:start + _MAX_DATUMS_PER_REQUEST]
                    await client.put_metric_data(
                        Namespace=self._namespace,
                        MetricData=[d.to_cloudwatch() for d in chunk],
                    )
            logger.debug("metrics_published", count=len(batch))
        except Exception as e:
            logger.warning("metrics_publish_failed", count=len(batch), error=str(e))


def create_metrics(
    enabled: bool,
    session: Any = None,
    region: str | None = None,
    endpoint_url: str | None = None,
    client_kwargs: Dict[str, Any] | None = None,
    default_dimensions: Dict[str, str] | None = None,
) -> MetricsPublisher:
    """
    Select the metrics publisher.

    Returns NoopMetrics when disabled, otherwise a CloudWatchMetrics
    publishing to the given region.
    """
    if not enabled:
        return NoopMetrics()
    if session is None:
        from aiobotocore.session import get_session

        session = get_session()
    return CloudWatchMetrics(
        session,
        region=region or "us-east-1",
        endpoint_url=endpoint_url,
        client_kwargs=client_kwargs,
        default_dimensions=default_dimensions,
    )
