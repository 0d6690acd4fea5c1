# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Data access for analysis records.

Status changes are checked against the lifecycle in
:mod:`models.analysis` before anything is written, and metadata updates are
merged into the stored blob rather than replacing it.
"""

import json
from typing import List, Optional

import sqlalchemy as sa
from fastapi import Request

from core.logger import logger
from models.analysis import (
    AnalysisCreate,
    AnalysisFilters,
    AnalysisMetadata,
    AnalysisRecord,
    AnalysisStats,
    AnalysisUpdate,
    analyses,
    check_transition,
)
from repositories.base import BaseRepository


class AnalysisRepository(BaseRepository):
    def create(self, data: AnalysisCreate) -> AnalysisRecord:
        analysis_id = self._new_id()
        now = self._now()
        meta = AnalysisMetadata()
        if data.metadata is not None:
            meta = meta.model_copy(update=data.metadata.model_dump(exclude_none=True))

        self.execute(
            analyses.insert().values(
                id=analysis_id,
                user_id=data.user_id,
                url=data.url,
                page_title=data.page_title,
                analysis="",
                pdf_path=None,
                metadata=meta.model_dump_json(),
                status=data.status,
                error_message=None,
                created_at=now,
                updated_at=now,
            )
        )
        record = self.find_by_id(analysis_id)
        if record is None:
            raise RuntimeError("Failed to create analysis")
        return record

    def find_by_id(self, analysis_id: str) -> Optional[AnalysisRecord]:
        row = self.query_one(sa.select(analyses).where(analyses.c.id == analysis_id))
        return self._to_record(row) if row else None

    def update(self, analysis_id: str, data: AnalysisUpdate) -> Optional[AnalysisRecord]:
        """
        Write the explicitly set fields of *data*.  Returns None when the
        record does not exist; raises InvalidStatusTransition when the status
        would move backwards or out of a terminal state.
        """
        with self.transaction() as tx:
            row = tx.query_one(sa.select(analyses).where(analyses.c.id == analysis_id))
            if row is None:
                return None
            current = self._to_record(row)

            values = data.model_dump(exclude_unset=True, exclude={"metadata"})
            if data.status is not None:
                check_transition(current.status, data.status)
            elif "status" in values:
                values.pop("status")

            if data.metadata is not None:
                merged = current.metadata.model_copy(
                    update=data.metadata.model_dump(exclude_unset=True, exclude_none=True)
                )
                values["metadata"] = merged.model_dump_json()

            values["updated_at"] = self._now()
            tx.execute(analyses.update().where(analyses.c.id == analysis_id).values(**values))
            row = tx.query_one(sa.select(analyses).where(analyses.c.id == analysis_id))

        return self._to_record(row)

    def find(self, filters: Optional[AnalysisFilters] = None) -> List[AnalysisRecord]:
        filters = filters or AnalysisFilters()
        stmt = sa.select(analyses)

        if filters.user_id:
            stmt = stmt.where(analyses.c.user_id == filters.user_id)
        if filters.status:
            stmt = stmt.where(analyses.c.status == filters.status)
        if filters.url:
            stmt = stmt.where(analyses.c.url.contains(filters.url, autoescape=True))
        if filters.date_from:
            stmt = stmt.where(analyses.c.created_at >= self._utc(filters.date_from))
        if filters.date_to:
            stmt = stmt.where(analyses.c.created_at <= self._utc(filters.date_to))

        stmt = stmt.order_by(analyses.c.created_at.desc())
        if filters.limit:
            stmt = stmt.limit(filters.limit)
            if filters.offset:
                stmt = stmt.offset(filters.offset)

        return [self._to_record(row) for row in self.query(stmt)]

    def get_stats(self, user_id: Optional[str] = None) -> AnalysisStats:
        """Counts per status plus the mean completion time, in seconds."""
        status = analyses.c.status

        def _count(name):
            return sa.func.sum(sa.case((status == name, 1), else_=0))

        elapsed = self.storage.elapsed_seconds(analyses.c.created_at, analyses.c.updated_at)
        stmt = sa.select(
            sa.func.count().label("total"),
            _count("pending").label("pending"),
            _count("processing").label("processing"),
            _count("completed").label("completed"),
            _count("failed").label("failed"),
            sa.func.avg(sa.case((status == "completed", elapsed), else_=None)).label(
                "average_processing_time"
            ),
        ).select_from(analyses)
        if user_id:
            stmt = stmt.where(analyses.c.user_id == user_id)

        row = self.query_one(stmt) or {}
        return AnalysisStats(
            total=int(row.get("total") or 0),
            pending=int(row.get("pending") or 0),
            processing=int(row.get("processing") or 0),
            completed=int(row.get("completed") or 0),
            failed=int(row.get("failed") or 0),
            average_processing_time=float(row.get("average_processing_time") or 0.0),
        )

    def delete(self, analysis_id: str) -> bool:
        result = self.execute(analyses.delete().where(analyses.c.id == analysis_id))
        return result.rowcount > 0

    def _to_record(self, row: dict) -> AnalysisRecord:
        return AnalysisRecord(
            id=row["id"],
            user_id=row["user_id"],
            url=row["url"],
            page_title=row["page_title"],
            analysis=row["analysis"] or "",
            pdf_path=row["pdf_path"],
            metadata=self._parse_metadata(row["id"], row["metadata"]),
            status=row["status"],
            error_message=row["error_message"],
            created_at=self._aware(row["created_at"]),
            updated_at=self._aware(row["updated_at"]),
        )

    @staticmethod
    def _parse_metadata(analysis_id: str, raw) -> AnalysisMetadata:
        if not raw:
            return AnalysisMetadata()
        try:
            return AnalysisMetadata.model_validate(json.loads(raw))
        except ValueError:
            # json.JSONDecodeError and pydantic.ValidationError are both ValueErrors
            logger.warning("Analysis %s has unreadable metadata, using defaults", analysis_id)
            return AnalysisMetadata()


def get_analysis_repository(request: Request) -> AnalysisRepository:
    """FastAPI dependency.  Use with Depends(get_analysis_repository)."""
    return request.app.state.analyses
