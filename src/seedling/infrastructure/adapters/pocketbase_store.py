"""
PocketBase Chunk Store — Infrastructure adapter for a PocketBase backend.

Talks to the `user_chunks` collection over the PocketBase REST API.
PocketBase offers no compare-and-set, so writes are last-write-wins:
record.version is ignored. Chunk records are scoped per learner, which
keeps true races rare.
"""

import logging
from datetime import UTC, datetime
from typing import Any

import httpx

from seedling.domain.constants import POCKETBASE_PAGE_SIZE, REQUEST_TIMEOUT
from seedling.domain.progress.models import ChunkRecord, ChunkStatus
from seedling.domain.progress.ports import ChunkRecordStore, ChunkStoreError


class PocketBaseChunkStore(ChunkRecordStore):
    """Adapter for chunk records stored in PocketBase."""

    def __init__(
        self,
        url: str = "http://127.0.0.1:8090",
        collection: str = "user_chunks",
        token: str | None = None,
    ):
        self.logger = logging.getLogger(__name__)
        self.url = url.rstrip("/")
        self.collection = collection
        self.token = token
        self._client: httpx.AsyncClient | None = None
        # (learner_id, chunk_id) -> PocketBase record id
        self._record_ids: dict[tuple[str, str], str] = {}

    @property
    def _records_path(self) -> str:
        return f"/api/collections/{self.collection}/records"

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        if self._client is None:
            headers = {"Authorization": self.token} if self.token else {}
            self._client = httpx.AsyncClient(
                base_url=self.url, timeout=REQUEST_TIMEOUT, headers=headers
            )
        try:
            resp = await self._client.request(method, path, **kwargs)
            resp.raise_for_status()
            return resp.json()
        except (httpx.HTTPError, ValueError) as e:
            self.logger.error(f"PocketBase {method} {path} failed: {e}")
            raise ChunkStoreError(f"PocketBase {method} {path} failed: {e}") from e

    async def _list(self, filter_expr: str, sort: str | None = None, limit: int | None = None):
        per_page = min(limit, POCKETBASE_PAGE_SIZE) if limit else POCKETBASE_PAGE_SIZE
        page = 1
        items: list[dict[str, Any]] = []
        while True:
            params: dict[str, Any] = {"filter": filter_expr, "page": page, "perPage": per_page}
            if sort:
                params["sort"] = sort
            data = await self._request("GET", self._records_path, params=params)
            batch = data.get("items", [])
            items.extend(batch)
            if limit and len(items) >= limit:
                items = items[:limit]
                break
            if page >= int(data.get("totalPages", 1)) or not batch:
                break
            page += 1

        records = [_item_to_record(item) for item in items]
        for item, record in zip(items, records, strict=True):
            self._record_ids[(record.learner_id, record.chunk_id)] = item["id"]
        return records

    # ------------------------------------------------------------------
    # Port implementation
    # ------------------------------------------------------------------

    async def get_chunk(self, learner_id: str, chunk_id: str) -> ChunkRecord | None:
        records = await self._list(
            f"user = {_quote(learner_id)} && chunk = {_quote(chunk_id)}", limit=1
        )
        return records[0] if records else None

    async def put_chunk(self, learner_id: str, chunk_id: str, record: ChunkRecord) -> None:
        payload = _record_to_payload(learner_id, chunk_id, record)
        record_id = self._record_ids.get((learner_id, chunk_id))
        if record_id is None:
            # May exist even if this process never read it
            existing = await self.get_chunk(learner_id, chunk_id)
            if existing is not None:
                record_id = self._record_ids.get((learner_id, chunk_id))

        if record_id is None:
            created = await self._request("POST", self._records_path, json=payload)
            self._record_ids[(learner_id, chunk_id)] = created["id"]
        else:
            await self._request("PATCH", f"{self._records_path}/{record_id}", json=payload)
        self.logger.debug(f"Stored chunk={chunk_id} for learner={learner_id}")

    async def list_chunks_by_topic(self, learner_id: str, topic_id: str) -> list[ChunkRecord]:
        return await self._list(f"user = {_quote(learner_id)} && topic = {_quote(topic_id)}")

    async def list_overdue_chunks(
        self, learner_id: str, now: datetime | None = None
    ) -> list[ChunkRecord]:
        now = now or datetime.now(UTC)
        return await self._list(
            f"user = {_quote(learner_id)} && status = {_quote(ChunkStatus.ACQUIRED.value)} "
            f"&& next_review_date != '' && next_review_date < {_quote(_format_date(now))}"
        )

    async def list_chunks_by_status(
        self, learner_id: str, status: ChunkStatus, limit: int
    ) -> list[ChunkRecord]:
        return await self._list(
            f"user = {_quote(learner_id)} && status = {_quote(ChunkStatus(status).value)}",
            limit=limit,
        )

    async def list_due_chunks(
        self, learner_id: str, now: datetime | None = None, limit: int = 10
    ) -> list[ChunkRecord]:
        now = now or datetime.now(UTC)
        return await self._list(
            f"user = {_quote(learner_id)} && next_review_date != '' "
            f"&& next_review_date <= {_quote(_format_date(now))}",
            sort="next_review_date",
            limit=limit,
        )


def _quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _format_date(moment: datetime) -> str:
    """PocketBase datetime format: 'YYYY-MM-DD HH:MM:SS.mmmZ'."""
    return moment.astimezone(UTC).strftime("%Y-%m-%d %H:%M:%S.%f")[:-3] + "Z"


def _parse_date(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _record_to_payload(learner_id: str, chunk_id: str, record: ChunkRecord) -> dict[str, Any]:
    return {
        "user": learner_id,
        "chunk": chunk_id,
        "topic": record.topic_id or "",
        "status": ChunkStatus(record.status).value,
        "ease_factor": record.ease_factor,
        "interval": record.interval,
        "repetitions": record.repetitions,
        "last_encountered_at": _format_date(record.last_reviewed) if record.last_reviewed else "",
        "next_review_date": _format_date(record.next_due) if record.next_due else "",
        "total_encounters": record.total_encounters,
        "correct_first_try": record.correct_first_try,
        "wrong_attempts": record.wrong_attempts,
        "help_used_count": record.help_used_count,
        "confidence_score": record.confidence_score,
    }


def _item_to_record(item: dict[str, Any]) -> ChunkRecord:
    return ChunkRecord(
        learner_id=item["user"],
        chunk_id=item["chunk"],
        topic_id=item.get("topic") or None,
        status=ChunkStatus(item.get("status", ChunkStatus.NEW.value)),
        ease_factor=float(item.get("ease_factor", 2.5)),
        interval=int(item.get("interval", 1)),
        repetitions=int(item.get("repetitions", 0)),
        last_reviewed=_parse_date(item.get("last_encountered_at")),
        total_encounters=int(item.get("total_encounters", 0)),
        correct_first_try=int(item.get("correct_first_try", 0)),
        wrong_attempts=int(item.get("wrong_attempts", 0)),
        help_used_count=int(item.get("help_used_count", 0)),
        confidence_score=float(item.get("confidence_score", 0.5)),
        # Informational only; PocketBase writes are last-write-wins
        version=1,
    )
