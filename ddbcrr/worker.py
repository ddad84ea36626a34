# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Stream Worker - Single-process host runtime for the record processors.

The worker lists the stream's shards, starts one consumer per shard whose
parent has been fully processed, and drives each shard's processor through
initialize / process_records / shutdown. Checkpoints are kept in a local
SQLite database keyed by application name and shard id.

The worker owns every shard of the stream; it does not take or renew
leases, so only one worker per application should run at a time.
"""

import asyncio
from datetime import datetime, UTC
from pathlib import Path
from typing import Any, Dict, List, Set

import aiosqlite
import structlog

from ddbcrr.assembler import WorkerConfig
from ddbcrr.exceptions import CheckpointError, ConfigurationError
from ddbcrr.metrics import MetricsPublisher, NoopMetrics
from ddbcrr.processing.interfaces import RecordProcessorFactory, ShutdownReason

logger = structlog.get_logger()

# Terminal checkpoint of a fully processed shard
SHARD_END = "SHARD_END"


class CheckpointStore:
    """
    Shard checkpoints in SQLite.

    Writes are monotonic per shard: an older sequence number never replaces
    a newer one, and SHARD_END is final.
    """

    def __init__(self, db_path: Path):
        self._db_path = db_path
        self._lock = asyncio.Lock()

    async def initialize(self) -> None:
        try:
            async with aiosqlite.connect(self._db_path) as db:
                await db.execute("""
                    CREATE TABLE IF NOT EXISTS checkpoints (
                        application_name TEXT NOT NULL,
                        shard_id TEXT NOT NULL,
                        sequence_number TEXT NOT NULL,
                        owner TEXT,
                        updated_at TEXT NOT NULL,
                        PRIMARY KEY (application_name, shard_id)
                    )
                """)
                await db.commit()
        except Exception as e:
            raise CheckpointError(
                f"Failed to initialize checkpoint database: {e}",
                details={"db_path": str(self._db_path)},
            )

        logger.info("checkpoint_db_initialized", db_path=str(self._db_path))

    async def get(self, application_name: str, shard_id: str) -> str | None:
        async with aiosqlite.connect(self._db_path) as db:
            async with db.execute(
                "SELECT sequence_number FROM checkpoints WHERE application_name = ? AND shard_id = ?",
                (application_name, shard_id),
            ) as cursor:
                row = await cursor.fetchone()
        return row[0] if row else None

    async def set(
        self,
        application_name: str,
        shard_id: str,
        sequence_number: str,
        owner: str | None = None,
    ) -> bool:
        """
        Advance a shard's checkpoint.

        Returns:
            True if the checkpoint moved, False if it was already further along
        """
        async with self._lock:
            current = await self.get(application_name, shard_id)
            if not _advances(current, sequence_number):
                return False

            async with aiosqlite.connect(self._db_path) as db:
                await db.execute(
                    """
                    INSERT INTO checkpoints
                    (application_name, shard_id, sequence_number, owner, updated_at)
                    VALUES (?, ?, ?, ?, ?)
                    ON CONFLICT (application_name, shard_id) DO UPDATE SET
                        sequence_number = excluded.sequence_number,
                        owner = excluded.owner,
                        updated_at = excluded.updated_at
                    """,
                    (
                        application_name,
                        shard_id,
                        sequence_number,
                        owner,
                        datetime.now(UTC).isoformat(),
                    ),
                )
                await db.commit()

        logger.debug("checkpoint_advanced", shard_id=shard_id, sequence_number=sequence_number)
        return True


def _advances(current: str | None, candidate: str) -> bool:
    if current is None:
        return True
    if current == SHARD_END:
        return False
    if candidate == SHARD_END:
        return True
    return int(candidate) > int(current)


class ShardCheckpointer:
    """
    Checkpointer for one shard, callable from record processor threads.

    Calls are marshalled onto the worker's event loop and block until the
    checkpoint is stored.
    """

    def __init__(
        self,
        store: CheckpointStore,
        application_name: str,
        shard_id: str,
        owner: str,
        loop: asyncio.AbstractEventLoop,
    ):
        self._store = store
        self._application_name = application_name
        self._shard_id = shard_id
        self._owner = owner
        self._loop = loop
        self.last_delivered: str | None = None
        self.at_shard_end = False

    def checkpoint(self, sequence_number: str | None = None) -> None:
        value = sequence_number
        if value is None:
            value = SHARD_END if self.at_shard_end else self.last_delivered
        if value is None:
            return

        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self._loop:
            raise CheckpointError(
                "checkpoint() blocks and must not run on the worker event loop",
                details={"shard_id": self._shard_id},
            )

        future = asyncio.run_coroutine_threadsafe(
            self._store.set(self._application_name, self._shard_id, value, self._owner),
            self._loop,
        )
        future.result()


class StreamWorker:
    """Consumes a DynamoDB stream and drives one processor per shard."""

    def __init__(
        self,
        config: WorkerConfig,
        processor_factory: RecordProcessorFactory,
        session: Any = None,
        metrics: MetricsPublisher | None = None,
    ):
        self._config = config
        self._factory = processor_factory
        self._session = session
        self._metrics = metrics or NoopMetrics()
        self._store = CheckpointStore(config.checkpoint_db_path)
        self._stop_event = asyncio.Event()
        self._consumers: Dict[str, asyncio.Task] = {}
        self._finished: Set[str] = set()
        self._started = False

    @property
    def config(self) -> WorkerConfig:
        return self._config

    @property
    def checkpoint_store(self) -> CheckpointStore:
        return self._store

    @property
    def finished_shards(self) -> Set[str]:
        return set(self._finished)

    def stop(self) -> None:
        self._stop_event.set()

    async def run(self) -> None:
        """
        Run until stop() is called.

        Raises:
            ConfigurationError: If the worker has already been run
        """
        if self._started:
            raise ConfigurationError("WorkerConfig already consumed by this worker")
        self._started = True

        await self._store.initialize()

        session = self._session
        if session is None:
            from aiobotocore.session import get_session

            session = get_session()

        endpoint = self._config.streams_endpoint
        async with session.create_client(
            "dynamodbstreams",
            region_name=endpoint.region,
            endpoint_url=endpoint.url,
            **self._config.credentials_provider.client_kwargs(),
        ) as client:
            logger.info(
                "worker_started",
                application_name=self._config.application_name,
                worker_id=self._config.worker_id,
                stream_arn=self._config.stream_arn,
                initial_position=self._config.initial_position.value,
                max_records=self._config.max_records,
                failover_time=self._config.failover_time,
            )
            try:
                while not self._stop_event.is_set():
                    await self._sync_shards(client)
                    await self._metrics.flush()
                    await self._wait(self._config.parent_shard_poll_interval)
            finally:
                self._stop_event.set()
                if self._consumers:
                    await asyncio.gather(*self._consumers.values(), return_exceptions=True)
                    self._reap_consumers()
                await self._metrics.flush()

        logger.info("worker_stopped", worker_id=self._config.worker_id)

    async def list_shards(self, client: Any) -> List[dict]:
        shards: List[dict] = []
        kwargs: Dict[str, Any] = {"StreamArn": self._config.stream_arn}
        while True:
            response = await client.describe_stream(**kwargs)
            description = response["StreamDescription"]
            shards.extend(description.get("Shards", []))
            last_shard_id = description.get("LastEvaluatedShardId")
            if not last_shard_id:
                return shards
            kwargs["ExclusiveStartShardId"] = last_shard_id

    async def _sync_shards(self, client: Any) -> None:
        self._reap_consumers()

        shards = await self.list_shards(client)
        listed = {shard["ShardId"] for shard in shards}
        app = self._config.application_name

        for shard in shards:
            shard_id = shard["ShardId"]
            if shard_id in self._consumers or shard_id in self._finished:
                continue

            checkpoint = await self._store.get(app, shard_id)
            if checkpoint == SHARD_END:
                self._finished.add(shard_id)
                continue

            # Children wait until their parent has been fully processed
            parent_id = shard.get("ParentShardId")
            if parent_id and parent_id in listed and not await self._is_finished(parent_id):
                continue

            self._consumers[shard_id] = asyncio.create_task(
                self._consume_shard(client, shard_id, checkpoint),
                name=f"shard-{shard_id}",
            )

    def _reap_consumers(self) -> None:
        for shard_id, task in list(self._consumers.items()):
            if not task.done():
                continue
            del self._consumers[shard_id]
            if task.cancelled():
                continue
            error = task.exception()
            if error is not None:
                # Picked up again from its checkpoint on the next sync
                logger.error("shard_consumer_failed", shard_id=shard_id, error=str(error))
            elif task.result():
                self._finished.add(shard_id)

    async def _is_finished(self, shard_id: str) -> bool:
        if shard_id in self._finished:
            return True
        return await self._store.get(self._config.application_name, shard_id) == SHARD_END

    async def _get_shard_iterator(self, client: Any, shard_id: str, checkpoint: str | None) -> str | None:
        kwargs: Dict[str, Any] = {"StreamArn": self._config.stream_arn, "ShardId": shard_id}
        if checkpoint:
            kwargs["ShardIteratorType"] = "AFTER_SEQUENCE_NUMBER"
            kwargs["SequenceNumber"] = checkpoint
        else:
            kwargs["ShardIteratorType"] = self._config.initial_position.value
        response = await client.get_shard_iterator(**kwargs)
        return response.get("ShardIterator")

    async def _consume_shard(self, client: Any, shard_id: str, checkpoint: str | None) -> bool:
        """
        Process one shard until it ends or the worker stops.

        Returns:
            True if the shard was read to its end
        """
        processor = self._factory.create_processor()
        checkpointer = ShardCheckpointer(
            self._store,
            self._config.application_name,
            shard_id,
            self._config.worker_id,
            asyncio.get_running_loop(),
        )

        try:
            await asyncio.to_thread(processor.initialize, shard_id)

            iterator = await self._get_shard_iterator(client, shard_id, checkpoint)
            while iterator and not self._stop_event.is_set():
                response = await client.get_records(
                    ShardIterator=iterator,
                    Limit=self._config.max_records,
                )
                records = response.get("Records", [])
                iterator = response.get("NextShardIterator")

                if records:
                    checkpointer.last_delivered = records[-1]["dynamodb"]["SequenceNumber"]
                    self._metrics.put_metric(
                        "RecordsDelivered", len(records), dimensions={"ShardId": shard_id}
                    )
                    await asyncio.to_thread(processor.process_records, records, checkpointer)
                elif iterator:
                    if self._config.call_process_records_even_for_empty_list:
                        # Lets time-based buffers flush while the shard is quiet
                        await asyncio.to_thread(processor.process_records, [], checkpointer)
                    await self._wait(self._config.idle_time_between_reads)

            shard_ended = iterator is None
            if shard_ended:
                checkpointer.at_shard_end = True
            reason = ShutdownReason.TERMINATE if shard_ended else ShutdownReason.REQUESTED
            await asyncio.to_thread(processor.shutdown, checkpointer, reason)
            return shard_ended
        finally:
            close = getattr(processor, "close", None)
            if close is not None:
                close()

    async def _wait(self, seconds: float) -> None:
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass
