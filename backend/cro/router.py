# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
CRO endpoints – run an analysis, fetch results, download the PDF, stats.

Security invariants enforced by every handler
---------------------------------------------
* JWT is required on every endpoint (via ``get_current_user``).
* Every single-record operation first calls ``_own_analysis``, which loads
  the row and asserts that ``analysis.user_id == current_user.id``.  Even if
  an attacker guesses another user's analysis ID, the request is rejected
  with 403.  This holds for admins too.
* Listings are always scoped to the caller.
"""

from pathlib import Path
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import FileResponse

from core.logger import logger
from core.security import get_current_user
from cro.schemas import AnalyzeRequest, AnalyzeResponse
from cro.service import CroPipeline, get_cro_pipeline
from models.analysis import (
    AnalysisCreate,
    AnalysisFilters,
    AnalysisRecord,
    AnalysisStats,
    AnalysisStatus,
    AnalysisUpdate,
    MetadataPatch,
)
from models.user import UserRecord
from repositories.analysis import AnalysisRepository, get_analysis_repository

router = APIRouter(prefix="/api/cro", tags=["cro"])

# ---------------------------------------------------------------------------
# Ownership helper
# ---------------------------------------------------------------------------


def _own_analysis(analysis_id: str, user_id: str, analyses: AnalysisRepository) -> AnalysisRecord:
    """
    Load an analysis by ID and verify it belongs to *user_id*.

    Raises 404 if the analysis does not exist, 403 if it belongs to someone else.
    """
    record = analyses.find_by_id(analysis_id)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Analysis not found")
    if record.user_id != user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    return record


def _reports_dir(request: Request) -> Path:
    path = Path(request.app.state.settings.reports_dir)
    path.mkdir(parents=True, exist_ok=True)
    return path


# ---------------------------------------------------------------------------
# POST /api/cro/analyze
# ---------------------------------------------------------------------------


@router.post("/analyze", response_model=AnalyzeResponse)
def analyze(
    body: AnalyzeRequest,
    request: Request,
    current_user: UserRecord = Depends(get_current_user),
    analyses: AnalysisRepository = Depends(get_analysis_repository),
    pipeline: CroPipeline = Depends(get_cro_pipeline),
):
    """
    Scrape the page, have the model audit it, and render the audit to PDF.
    Runs synchronously; the record tracks progress and, on failure, the
    error message.
    """
    url = body.url.strip()
    if not url:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing required parameter: url",
        )

    record: Optional[AnalysisRecord] = None
    try:
        record = analyses.create(AnalysisCreate(user_id=current_user.id, url=url))
        analyses.update(record.id, AnalysisUpdate(status="processing"))
        logger.info("Analysis %s started for %s by user %s", record.id, url, current_user.id)

        reports = _reports_dir(request)
        snapshot = pipeline.scrape_page(url, str(reports / f"CRO_Screenshot_{record.id}.png"))
        analyses.update(
            record.id,
            AnalysisUpdate(
                page_title=snapshot.title,
                metadata=MetadataPatch(
                    word_count=len(snapshot.text.split()),
                    page_size=len(snapshot.html),
                    load_time=snapshot.load_time,
                    screenshot_path=snapshot.screenshot_path,
                ),
            ),
        )

        analysis = pipeline.analyze_page(snapshot.text, snapshot.html, url)

        pdf_path = str(reports / f"CRO_Report_{record.id}.pdf")
        pipeline.render_report(analysis, pdf_path)

        analyses.update(
            record.id,
            AnalysisUpdate(
                analysis=analysis,
                pdf_path=pdf_path,
                status="completed",
                metadata=MetadataPatch(analysis_tokens=len(analysis)),
            ),
        )
    except Exception as exc:
        logger.error("Analysis of %s failed", url, exc_info=True)
        if record is not None:
            _mark_failed(analyses, record.id, str(exc))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Analysis failed: {exc}",
        )

    logger.info("Analysis %s completed", record.id)
    return AnalyzeResponse(analysis=analysis, pdf_generated=True, analysis_id=record.id)


def _mark_failed(analyses: AnalysisRepository, analysis_id: str, message: str) -> None:
    try:
        analyses.update(analysis_id, AnalysisUpdate(status="failed", error_message=message))
    except Exception:
        # the original error is what the caller sees
        logger.critical("Could not mark analysis %s as failed", analysis_id, exc_info=True)


# ---------------------------------------------------------------------------
# GET /api/cro/analysis/{id}
# ---------------------------------------------------------------------------


@router.get("/analysis/{analysis_id}", response_model=AnalysisRecord)
def get_analysis(
    analysis_id: str,
    current_user: UserRecord = Depends(get_current_user),
    analyses: AnalysisRepository = Depends(get_analysis_repository),
):
    return _own_analysis(analysis_id, current_user.id, analyses)


# ---------------------------------------------------------------------------
# GET /api/cro/analysis/{id}/pdf
# ---------------------------------------------------------------------------


@router.get("/analysis/{analysis_id}/pdf")
def download_report(
    analysis_id: str,
    current_user: UserRecord = Depends(get_current_user),
    analyses: AnalysisRepository = Depends(get_analysis_repository),
):
    """Stream the rendered PDF of a completed analysis."""
    record = _own_analysis(analysis_id, current_user.id, analyses)
    if not record.pdf_path or not Path(record.pdf_path).is_file():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Report not available")

    return FileResponse(
        record.pdf_path,
        media_type="application/pdf",
        filename=f"CRO_Report_{record.id}.pdf",
    )


# ---------------------------------------------------------------------------
# GET /api/cro/analyses  – the caller's analyses
# ---------------------------------------------------------------------------


@router.get("/analyses", response_model=List[AnalysisRecord])
def list_analyses(
    status_filter: Optional[AnalysisStatus] = Query(None, alias="status"),
    url: Optional[str] = None,
    limit: int = Query(50, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    current_user: UserRecord = Depends(get_current_user),
    analyses: AnalysisRepository = Depends(get_analysis_repository),
):
    """Return the authenticated user's analyses, newest first."""
    filters = AnalysisFilters(
        user_id=current_user.id,
        status=status_filter,
        url=url,
        limit=limit,
        offset=offset,
    )
    return analyses.find(filters)


# ---------------------------------------------------------------------------
# GET /api/cro/analyses/stats
# ---------------------------------------------------------------------------


@router.get("/analyses/stats", response_model=AnalysisStats)
def analysis_stats(
    current_user: UserRecord = Depends(get_current_user),
    analyses: AnalysisRepository = Depends(get_analysis_repository),
):
    """Stats over the caller's analyses; admins see every user's."""
    if current_user.role == "admin":
        return analyses.get_stats()
    return analyses.get_stats(current_user.id)
