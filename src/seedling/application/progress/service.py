"""
Progress Service — Application layer orchestrator.

Coordinates the chunk record store with the pure scheduling and health
functions. This is the inbound surface the rest of the app calls.
"""

import asyncio
import logging
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, replace
from datetime import UTC, datetime

from seedling.domain.constants import (
    DEFAULT_CONFLICT_RETRIES,
    DEFAULT_DUE_LIMIT,
    DEFAULT_FRAGILE_LIMIT,
    DEFAULT_WORKERS,
)
from seedling.domain.progress.models import (
    RATING_OUTCOMES,
    BatchEncounterResult,
    ChunkRecord,
    ChunkStatus,
    EncounterOutcome,
    GiftType,
    TopicSnapshot,
)
from seedling.domain.progress.ports import ChunkConflictError, ChunkRecordStore

from .growth import currency_to_next_stage, growth_stage, growth_stage_label
from .health import (
    calculate_topic_health,
    gift_buffer_days,
    health_category,
    health_from_elapsed_days,
)
from .scheduler import calculate_next_review, new_chunk_record

logger = logging.getLogger(__name__)


def outcome_for_rating(quality_rating: int) -> EncounterOutcome:
    """
    Translate a lesson star rating into the per-chunk encounter signal.

    3 -> correct-unaided, 2 -> correct-aided, 1 -> incorrect.
    """
    try:
        return RATING_OUTCOMES[quality_rating]
    except KeyError:
        raise ValueError(f"quality rating must be 1, 2 or 3, got {quality_rating!r}") from None


@dataclass
class _EncounterEffect:
    chunk_id: str
    ok: bool
    created: bool = False
    previous: ChunkStatus | None = None
    current: ChunkStatus | None = None


class ProgressService:
    """
    Application service for recording encounters and reading progress views.

    Follows Dependency Inversion: depends on the ChunkRecordStore abstraction,
    not a concrete adapter or a shared singleton.
    """

    def __init__(
        self,
        store: ChunkRecordStore,
        workers: int = DEFAULT_WORKERS,
        conflict_retries: int = DEFAULT_CONFLICT_RETRIES,
    ):
        """
        Args:
            store: The repository (port) holding chunk records.
            workers: Maximum chunks updated concurrently.
            conflict_retries: Re-reads allowed after an optimistic-concurrency conflict.
        """
        self._store = store
        self._workers = max(1, workers)
        self._retries = max(0, conflict_retries)

    async def close(self) -> None:
        """Release the store's connections. Call once the service is no longer used."""
        await self._store.close()

    # ------------------------------------------------------------------
    # Session recording
    # ------------------------------------------------------------------

    async def submit_session_result(
        self,
        learner_id: str,
        chunk_ids: list[str],
        quality_rating: int,
        topic_id: str | None = None,
    ) -> BatchEncounterResult:
        """Entry point called when a lesson session completes."""
        logger.info(
            f"Session result for learner={learner_id}: "
            f"{len(chunk_ids)} chunk(s), rating={quality_rating}"
        )
        return await self.record_batch_encounters(learner_id, chunk_ids, quality_rating, topic_id)

    async def record_batch_encounters(
        self,
        learner_id: str,
        chunk_ids: list[str],
        quality_rating: int,
        topic_id: str | None = None,
        now: datetime | None = None,
    ) -> BatchEncounterResult:
        """
        Record one encounter per chunk id touched in a completed session.

        Every chunk receives the same outcome, derived from the session's
        star rating. This is a coarse session-level proxy: per-chunk results
        are not available upstream.

        A failure on one chunk is logged and counted; it never aborts the
        remaining chunks and never raises to the caller.

        Args:
            learner_id: Learner whose records are updated.
            chunk_ids: Chunk ids in session order. Repeats are applied in order.
            quality_rating: Lesson star rating (1-3).
            topic_id: Topic assigned to chunks created by this session.
            now: Review time; defaults to the current UTC time.

        Returns:
            BatchEncounterResult summarizing updates and status transitions.
        """
        outcome = outcome_for_rating(quality_rating)
        result = BatchEncounterResult()
        if not learner_id:
            logger.warning(
                f"Session result with no learner id: {len(chunk_ids)} chunk(s) not recorded"
            )
            return result
        if not chunk_ids:
            logger.debug(f"Empty session for learner={learner_id}, nothing to record")
            return result

        now = now or datetime.now(UTC)
        occurrences = Counter(chunk_ids)
        # First-seen session order; repeats of one id share a task
        ordered_ids = list(dict.fromkeys(chunk_ids))
        semaphore = asyncio.Semaphore(self._workers)

        async def run(chunk_id: str) -> list[_EncounterEffect]:
            async with semaphore:
                effects = []
                for _ in range(occurrences[chunk_id]):
                    effects.append(
                        await self._record_encounter(learner_id, chunk_id, outcome, topic_id, now)
                    )
                return effects

        per_chunk = await asyncio.gather(*(run(cid) for cid in ordered_ids))

        for effects in per_chunk:
            for effect in effects:
                self._tally(result, effect)

        if result.graduated:
            logger.info(f"{len(result.graduated)} chunk(s) graduated to acquired")
        if result.became_fragile:
            logger.info(f"{len(result.became_fragile)} chunk(s) became fragile")
        if result.failed:
            logger.warning(
                f"{result.failed} encounter(s) could not be recorded for learner={learner_id}"
            )
        return result

    async def _record_encounter(
        self,
        learner_id: str,
        chunk_id: str,
        outcome: EncounterOutcome,
        topic_id: str | None,
        now: datetime,
    ) -> _EncounterEffect:
        try:
            for attempt in range(self._retries + 1):
                current = await self._store.get_chunk(learner_id, chunk_id)
                created = current is None
                if current is None:
                    current = new_chunk_record(learner_id, chunk_id, topic_id)
                elif topic_id and current.topic_id is None:
                    current = replace(current, topic_id=topic_id)

                updated = calculate_next_review(current, outcome, now)
                try:
                    await self._store.put_chunk(learner_id, chunk_id, updated)
                except ChunkConflictError:
                    if attempt == self._retries:
                        raise
                    logger.debug(f"Write conflict on chunk={chunk_id}, retrying")
                    continue

                return _EncounterEffect(
                    chunk_id=chunk_id,
                    ok=True,
                    created=created,
                    previous=ChunkStatus(current.status),
                    current=updated.status,
                )
        except Exception as e:
            logger.warning(f"Failed to record encounter for chunk={chunk_id}: {e}")
        return _EncounterEffect(chunk_id=chunk_id, ok=False)

    @staticmethod
    def _tally(result: BatchEncounterResult, effect: _EncounterEffect) -> None:
        if not effect.ok:
            result.failed += 1
            return
        result.updated += 1
        if effect.created:
            result.created.append(effect.chunk_id)
        if effect.previous == effect.current:
            return
        if effect.current is ChunkStatus.ACQUIRED:
            result.graduated.append(effect.chunk_id)
        elif effect.current is ChunkStatus.FRAGILE:
            result.became_fragile.append(effect.chunk_id)

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def run_maintenance_sweep(self, learner_id: str) -> int:
        """Intended to run once per application start."""
        demoted = await self.decay_overdue_chunks(learner_id)
        logger.info(f"Maintenance sweep for learner={learner_id}: {demoted} chunk(s) demoted")
        return demoted

    async def decay_overdue_chunks(self, learner_id: str, now: datetime | None = None) -> int:
        """
        Demote acquired chunks whose review date passed without an encounter.

        Only the status changes; ease factor and interval are left alone
        because they only move on a real encounter. Already-fragile chunks
        are never listed, so calling this twice demotes each chunk once.

        Returns:
            Number of chunks demoted to fragile.
        """
        now = now or datetime.now(UTC)
        try:
            overdue = await self._store.list_overdue_chunks(learner_id, now)
        except Exception as e:
            logger.warning(f"Could not list overdue chunks for learner={learner_id}: {e}")
            return 0

        semaphore = asyncio.Semaphore(self._workers)

        async def run(record: ChunkRecord) -> bool:
            async with semaphore:
                return await self._demote(record, now)

        outcomes = await asyncio.gather(*(run(r) for r in overdue))
        return sum(1 for demoted in outcomes if demoted)

    async def _demote(self, record: ChunkRecord, now: datetime) -> bool:
        current: ChunkRecord | None = record
        try:
            for attempt in range(self._retries + 1):
                if (
                    current is None
                    or current.status != ChunkStatus.ACQUIRED
                    or not current.is_overdue(now)
                ):
                    return False
                try:
                    await self._store.put_chunk(
                        current.learner_id,
                        current.chunk_id,
                        replace(current, status=ChunkStatus.FRAGILE),
                    )
                    return True
                except ChunkConflictError:
                    if attempt == self._retries:
                        raise
                    current = await self._store.get_chunk(record.learner_id, record.chunk_id)
        except Exception as e:
            logger.warning(f"Failed to demote chunk={record.chunk_id}: {e}")
        return False

    # ------------------------------------------------------------------
    # Read views
    # ------------------------------------------------------------------

    async def get_topic_health(self, learner_id: str, topic_id: str) -> int:
        """Topic health from the statuses of every chunk under the topic."""
        records = await self._store.list_chunks_by_topic(learner_id, topic_id)
        return calculate_topic_health(records)

    def get_lesson_freshness(
        self, days_since_completion: float, unused_gifts: Iterable[GiftType | str] = ()
    ) -> int:
        """Freshness of a completed lesson. Unused gifts on the tree delay the decay."""
        return health_from_elapsed_days(days_since_completion, gift_buffer_days(unused_gifts))

    def get_growth_stage(self, cumulative_currency: int) -> int:
        return growth_stage(cumulative_currency)

    async def describe_topic(
        self, learner_id: str, topic_id: str, cumulative_currency: int
    ) -> TopicSnapshot:
        """Bundle the numbers a tree display needs."""
        records = await self._store.list_chunks_by_topic(learner_id, topic_id)
        health = calculate_topic_health(records)
        stage = growth_stage(cumulative_currency)
        return TopicSnapshot(
            topic_id=topic_id,
            health=health,
            health_category=health_category(health),
            chunk_count=len(records),
            growth_stage=stage,
            growth_label=growth_stage_label(stage),
            currency_to_next_stage=currency_to_next_stage(cumulative_currency),
        )

    async def get_due_chunks(
        self, learner_id: str, limit: int = DEFAULT_DUE_LIMIT
    ) -> list[ChunkRecord]:
        """Chunks due for review, most overdue first."""
        return await self._store.list_due_chunks(learner_id, datetime.now(UTC), limit)

    async def get_fragile_chunks(
        self, learner_id: str, limit: int = DEFAULT_FRAGILE_LIMIT
    ) -> list[ChunkRecord]:
        """Fragile chunks that need priority reinforcement."""
        return await self._store.list_chunks_by_status(learner_id, ChunkStatus.FRAGILE, limit)
