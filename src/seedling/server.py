import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime
from functools import lru_cache

from fastapi import Depends, FastAPI, HTTPException, Query
from pydantic import BaseModel, Field

from seedling.application.progress.growth import currency_to_next_stage, growth_stage_label
from seedling.application.progress.health import (
    gift_buffer_days,
    health_category,
    needs_refresh,
)
from seedling.application.progress.service import ProgressService
from seedling.consts import VERSION
from seedling.domain.constants import DEFAULT_DUE_LIMIT, DEFAULT_FRAGILE_LIMIT
from seedling.domain.progress.models import ChunkRecord, GiftType, QualityRating
from seedling.domain.progress.ports import ChunkStoreError

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("seedling.server")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info(f"Seedling Server v{VERSION} starting up...")
    yield
    # Shutdown
    logger.info("Seedling Server shutting down...")
    if get_service.cache_info().currsize:
        await get_service().close()
        get_service.cache_clear()


app = FastAPI(
    title="Seedling Server",
    description="Learner-progress engine: chunk scheduling, topic health and tree growth.",
    version=VERSION,
    lifespan=lifespan,
)

start_time = time.time()


@lru_cache
def get_service() -> ProgressService:
    """Build the service once from resolved config; closed at shutdown. Overridden in tests."""
    from seedling.application.config import resolve_config
    from seedling.application.factory import get_progress_service

    return get_progress_service(resolve_config())


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    status: str
    version: str
    uptime_seconds: float


class SessionRequest(BaseModel):
    chunk_ids: list[str] = Field(min_length=1)
    quality_rating: QualityRating
    topic_id: str | None = None


class SessionResponse(BaseModel):
    updated: int
    failed: int
    graduated: list[str]
    became_fragile: list[str]
    created: list[str]


class ChunkResponse(BaseModel):
    chunk_id: str
    topic_id: str | None
    status: str
    ease_factor: float
    interval: int
    repetitions: int
    last_reviewed: datetime | None
    next_due: datetime | None
    confidence_score: float

    @classmethod
    def from_record(cls, record: ChunkRecord) -> "ChunkResponse":
        return cls(
            chunk_id=record.chunk_id,
            topic_id=record.topic_id,
            status=record.status.value,
            ease_factor=record.ease_factor,
            interval=record.interval,
            repetitions=record.repetitions,
            last_reviewed=record.last_reviewed,
            next_due=record.next_due,
            confidence_score=record.confidence_score,
        )


class TopicHealthResponse(BaseModel):
    topic_id: str
    health: int
    category: str


class TopicResponse(BaseModel):
    topic_id: str
    health: int
    health_category: str
    chunk_count: int
    growth_stage: int
    growth_label: str
    currency_to_next_stage: int


class FreshnessResponse(BaseModel):
    days: int
    buffer_days: int
    health: int
    category: str
    needs_refresh: bool


class GrowthResponse(BaseModel):
    currency: int
    stage: int
    label: str
    currency_to_next_stage: int


class MaintenanceResponse(BaseModel):
    demoted: int


# ---------------------------------------------------------------------------
# Liveness
# ---------------------------------------------------------------------------


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Simple health check to verify server is reachable.
    """
    return HealthResponse(status="ok", version=VERSION, uptime_seconds=time.time() - start_time)


@app.get("/version")
async def get_version():
    return {"version": VERSION}


# ---------------------------------------------------------------------------
# Learner progress
# ---------------------------------------------------------------------------


@app.post("/learners/{learner_id}/sessions", response_model=SessionResponse)
async def submit_session(
    learner_id: str, req: SessionRequest, service: ProgressService = Depends(get_service)
):
    """
    Record a completed lesson session.

    Per-chunk store failures are reported in `failed`, never as an error.
    """
    result = await service.submit_session_result(
        learner_id, req.chunk_ids, req.quality_rating, req.topic_id
    )
    return SessionResponse(
        updated=result.updated,
        failed=result.failed,
        graduated=result.graduated,
        became_fragile=result.became_fragile,
        created=result.created,
    )


@app.get("/learners/{learner_id}/topics/{topic_id}/health", response_model=TopicHealthResponse)
async def topic_health(
    learner_id: str, topic_id: str, service: ProgressService = Depends(get_service)
):
    try:
        score = await service.get_topic_health(learner_id, topic_id)
    except ChunkStoreError as e:
        logger.error(f"Topic health failed: {e}")
        raise HTTPException(status_code=503, detail=str(e)) from e
    return TopicHealthResponse(topic_id=topic_id, health=score, category=health_category(score))


@app.get("/learners/{learner_id}/topics/{topic_id}", response_model=TopicResponse)
async def describe_topic(
    learner_id: str,
    topic_id: str,
    currency: int = Query(0, ge=0),
    service: ProgressService = Depends(get_service),
):
    try:
        snapshot = await service.describe_topic(learner_id, topic_id, currency)
    except ChunkStoreError as e:
        logger.error(f"Topic snapshot failed: {e}")
        raise HTTPException(status_code=503, detail=str(e)) from e
    return TopicResponse(
        topic_id=snapshot.topic_id,
        health=snapshot.health,
        health_category=snapshot.health_category,
        chunk_count=snapshot.chunk_count,
        growth_stage=snapshot.growth_stage,
        growth_label=snapshot.growth_label,
        currency_to_next_stage=snapshot.currency_to_next_stage,
    )


@app.get("/learners/{learner_id}/chunks/due", response_model=list[ChunkResponse])
async def due_chunks(
    learner_id: str,
    limit: int = Query(DEFAULT_DUE_LIMIT, ge=1),
    service: ProgressService = Depends(get_service),
):
    try:
        records = await service.get_due_chunks(learner_id, limit)
    except ChunkStoreError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e
    return [ChunkResponse.from_record(r) for r in records]


@app.get("/learners/{learner_id}/chunks/fragile", response_model=list[ChunkResponse])
async def fragile_chunks(
    learner_id: str,
    limit: int = Query(DEFAULT_FRAGILE_LIMIT, ge=1),
    service: ProgressService = Depends(get_service),
):
    try:
        records = await service.get_fragile_chunks(learner_id, limit)
    except ChunkStoreError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e
    return [ChunkResponse.from_record(r) for r in records]


@app.post("/learners/{learner_id}/maintenance", response_model=MaintenanceResponse)
async def run_maintenance(learner_id: str, service: ProgressService = Depends(get_service)):
    """Demote overdue acquired chunks. Safe to call repeatedly."""
    return MaintenanceResponse(demoted=await service.run_maintenance_sweep(learner_id))


# ---------------------------------------------------------------------------
# Display views
# ---------------------------------------------------------------------------


@app.get("/freshness", response_model=FreshnessResponse)
async def lesson_freshness(
    days: int = Query(...),
    gift: list[GiftType] = Query([]),
    service: ProgressService = Depends(get_service),
):
    """Freshness of a lesson completed `days` ago. Repeat `gift` for each unused gift."""
    score = service.get_lesson_freshness(days, gift)
    return FreshnessResponse(
        days=days,
        buffer_days=gift_buffer_days(gift),
        health=score,
        category=health_category(score),
        needs_refresh=needs_refresh(score),
    )


@app.get("/growth", response_model=GrowthResponse)
async def growth(currency: int = Query(...), service: ProgressService = Depends(get_service)):
    stage = service.get_growth_stage(currency)
    return GrowthResponse(
        currency=currency,
        stage=stage,
        label=growth_stage_label(stage),
        currency_to_next_stage=currency_to_next_stage(currency),
    )
