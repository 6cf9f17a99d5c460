"""Public report view, addressed by slug."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.exceptions import PersistenceError, ReportNotFoundError
from app.schemas.report_result import ReportView
from app.services.report_service import build_report_service

log = logging.getLogger(__name__)
router = APIRouter()


@router.get("/{slug}", response_model=ReportView)
async def view_report(slug: str, db: Session = Depends(get_db)):
    """
    Report configuration plus its snapshot. The first view generates the
    snapshot; an overdue auto-refresh report is refreshed before it is served.
    """
    service = build_report_service(db)
    try:
        return await service.get_report_view(slug)
    except ReportNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Report not found")
    except PersistenceError as e:
        log.error(f"View of report '{slug}' failed: {e}")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Report storage unavailable")
