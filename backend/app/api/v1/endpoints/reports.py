from datetime import timedelta
from typing import List
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.exceptions import PersistenceError, ReportDashboardError, ReportNotFoundError
from app.models.account import TogglAccount
from app.models.historical_archive import HistoricalArchive
from app.models.report import Report
from app.models.report_account_config import ReportAccountConfig
from app.schemas.archive import ArchiveCreate, ArchiveInDB
from app.schemas.report import (
    ReportCreate,
    ReportUpdate,
    ReportConfig,
    ReportAccountConfigCreate,
    ReportAccountConfigInDB,
)
from app.schemas.report_result import RefreshOutcome, ReportSnapshot
from app.services.report_service import build_report_service
from app.services.report_store import ReportStore
from app.utils.dates import ensure_utc
from app.utils.slug import slugify, unique_slug

log = logging.getLogger(__name__)
router = APIRouter()


def _get_report_or_404(db: Session, report_id: int) -> Report:
    report = db.query(Report).filter(Report.id == report_id).first()
    if report is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Report not found")
    return report


def _claim_slug(db: Session, requested: str, name: str, exclude_id: int = None) -> str:
    """An explicit slug must be free; a derived one is de-duplicated."""
    if requested:
        taken = db.query(Report).filter(Report.slug == requested)
        if exclude_id is not None:
            taken = taken.filter(Report.id != exclude_id)
        if taken.first():
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Slug '{requested}' is already in use")
        return requested
    return unique_slug(db, slugify(name), exclude_id=exclude_id)


@router.post("/", response_model=ReportConfig, status_code=status.HTTP_201_CREATED)
async def create_report(report: ReportCreate, db: Session = Depends(get_db)):
    """Create a report. The slug is derived from the name when left blank."""
    data = report.model_dump()
    data["slug"] = _claim_slug(db, report.slug, report.name)

    db_report = Report(**data)
    db.add(db_report)
    db.commit()
    db.refresh(db_report)
    log.info(f"Created report '{db_report.name}' with slug '{db_report.slug}'")
    return db_report


@router.get("/", response_model=List[ReportConfig])
async def read_reports(skip: int = 0, limit: int = 100, db: Session = Depends(get_db)):
    """List reports, newest first."""
    return (
        db.query(Report)
        .order_by(Report.created_at.desc(), Report.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )


@router.get("/slug/{slug}", response_model=ReportConfig)
async def read_report_by_slug(slug: str, db: Session = Depends(get_db)):
    report = db.query(Report).filter(Report.slug == slug).first()
    if report is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Report not found")
    return report


@router.get("/{report_id}", response_model=ReportConfig)
async def read_report(report_id: int, db: Session = Depends(get_db)):
    return _get_report_or_404(db, report_id)


@router.put("/{report_id}", response_model=ReportConfig)
async def update_report(report_id: int, report: ReportUpdate, db: Session = Depends(get_db)):
    db_report = _get_report_or_404(db, report_id)

    update_data = report.model_dump(exclude_unset=True)
    # Renaming keeps the public URL; a blank slug is re-derived from the name
    if "slug" in update_data:
        name = update_data.get("name") or db_report.name
        update_data["slug"] = _claim_slug(db, update_data["slug"], name, exclude_id=report_id)

    start = update_data.get("date_range_start", db_report.date_range_start)
    end = update_data.get("date_range_end", db_report.date_range_end)
    if start and end and start > end:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="date_range_start must not be after date_range_end")

    for key, value in update_data.items():
        if key in ("name", "refresh_interval_hours", "auto_refresh_enabled", "slug") and value is None:
            continue
        setattr(db_report, key, value)

    # A new interval or re-enabled auto refresh reschedules from the last refresh
    if db_report.last_refreshed_at and ("refresh_interval_hours" in update_data or "auto_refresh_enabled" in update_data):
        db_report.next_refresh_at = ensure_utc(db_report.last_refreshed_at) + timedelta(hours=db_report.refresh_interval_hours)

    db.commit()
    db.refresh(db_report)
    return db_report


@router.delete("/{report_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_report(report_id: int, db: Session = Depends(get_db)):
    """Delete a report with its account configs, archives and cached result."""
    db_report = _get_report_or_404(db, report_id)
    db.delete(db_report)
    db.commit()
    log.info(f"Deleted report {report_id}")
    return


@router.get("/{report_id}/accounts", response_model=List[ReportAccountConfigInDB])
async def read_report_accounts(report_id: int, db: Session = Depends(get_db)):
    _get_report_or_404(db, report_id)
    return (
        db.query(ReportAccountConfig)
        .filter(ReportAccountConfig.report_id == report_id)
        .order_by(ReportAccountConfig.priority.asc(), ReportAccountConfig.id.asc())
        .all()
    )


@router.put("/{report_id}/accounts", response_model=ReportAccountConfigInDB)
async def upsert_report_account(report_id: int, config: ReportAccountConfigCreate, db: Session = Depends(get_db)):
    """Attach an account to a report, or update the filters of an attached one."""
    _get_report_or_404(db, report_id)
    if not db.query(TogglAccount).filter(TogglAccount.id == config.account_id).first():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Account not found")

    db_config = db.query(ReportAccountConfig).filter(
        ReportAccountConfig.report_id == report_id,
        ReportAccountConfig.account_id == config.account_id,
    ).first()
    if db_config is None:
        db_config = ReportAccountConfig(report_id=report_id, account_id=config.account_id)
        db.add(db_config)

    db_config.workspace_id = config.workspace_id
    db_config.client_id = config.client_id
    db_config.project_id = config.project_id
    db_config.tag_id = config.tag_id
    db_config.priority = config.priority

    db.commit()
    db.refresh(db_config)
    return db_config


@router.delete("/{report_id}/accounts/{config_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_report_account(report_id: int, config_id: int, db: Session = Depends(get_db)):
    db_config = db.query(ReportAccountConfig).filter(
        ReportAccountConfig.id == config_id,
        ReportAccountConfig.report_id == report_id,
    ).first()
    if db_config is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Account config not found")
    db.delete(db_config)
    db.commit()
    return


@router.get("/{report_id}/result", response_model=ReportSnapshot)
async def read_report_result(report_id: int, db: Session = Depends(get_db)):
    """The last stored snapshot, without triggering a refresh."""
    _get_report_or_404(db, report_id)
    try:
        snapshot = await ReportStore(db).read_snapshot(report_id)
    except PersistenceError as e:
        log.error(f"Reading snapshot of report {report_id} failed: {e}")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    if snapshot is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Report has not been generated yet")
    return snapshot


@router.post("/{report_id}/refresh", response_model=RefreshOutcome)
async def refresh_report(report_id: int, db: Session = Depends(get_db)):
    """
    Refresh a report now. Requests inside the debounce window, or while a
    refresh is running, return the existing snapshot unchanged.
    """
    service = build_report_service(db)
    try:
        return await service.refresh_report(report_id)
    except ReportNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Report not found")
    except PersistenceError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=f"Refresh could not be stored: {e}")
    except ReportDashboardError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"Refresh failed: {e}")


@router.get("/{report_id}/archives", response_model=List[ArchiveInDB])
async def read_archives(report_id: int, db: Session = Depends(get_db)):
    _get_report_or_404(db, report_id)
    return (
        db.query(HistoricalArchive)
        .filter(HistoricalArchive.report_id == report_id)
        .order_by(HistoricalArchive.uploaded_at.desc(), HistoricalArchive.id.desc())
        .all()
    )


@router.post("/{report_id}/archives", response_model=ArchiveInDB, status_code=status.HTTP_201_CREATED)
async def create_archive(report_id: int, archive: ArchiveCreate, db: Session = Depends(get_db)):
    """Attach a batch of pre-parsed historical entries to a report."""
    _get_report_or_404(db, report_id)
    entries = [
        entry.model_copy(update={"source": "archive"}).model_dump(mode="json")
        for entry in archive.entries
    ]
    db_archive = HistoricalArchive(
        report_id=report_id,
        filename=archive.filename,
        processing_status=archive.processing_status,
        entries=entries,
        error_message=archive.error_message,
    )
    db.add(db_archive)
    db.commit()
    db.refresh(db_archive)
    log.info(f"Stored archive '{archive.filename}' for report {report_id} ({len(entries)} entries, {archive.processing_status})")
    return db_archive


@router.delete("/{report_id}/archives/{archive_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_archive(report_id: int, archive_id: int, db: Session = Depends(get_db)):
    db_archive = db.query(HistoricalArchive).filter(
        HistoricalArchive.id == archive_id,
        HistoricalArchive.report_id == report_id,
    ).first()
    if db_archive is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Archive not found")
    db.delete(db_archive)
    db.commit()
    return
