"""Cases router - CRUD, bulk actions, timeline, and export."""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session

from app.core.deps import get_current_session, get_db, require_csrf_header, require_manager
from app.schemas.auth import UserSession
from app.schemas.case import (
    ActivityCreate,
    ActivityRead,
    BulkCaseAction,
    BulkCaseResult,
    CaseCounts,
    CaseCreate,
    CaseListItem,
    CaseListResponse,
    CaseRead,
    CaseUpdate,
    ExportFormat,
    Pagination,
)
from app.services import activity_service, case_service, export_service
from app.utils.pagination import DEFAULT_PER_PAGE, MAX_PER_PAGE, total_pages

router = APIRouter()


def _get_case_or_404(db: Session, case_id: UUID):
    case = case_service.get_case(db, case_id)
    if not case:
        raise HTTPException(status_code=404, detail="Case not found")
    return case


@router.get("", response_model=CaseListResponse)
def list_cases(
    status: str | None = Query(None, description="Status or comma-separated statuses"),
    severity: str | None = None,
    category: str | None = None,
    case_type_id: UUID | None = None,
    owner_id: UUID | None = None,
    search: str | None = Query(None, max_length=100),
    sort: str | None = Query(None, description="createdAt-desc | createdAt-asc | severity | slaDeadline"),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PER_PAGE, ge=1, le=MAX_PER_PAGE),
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    """
    List cases with filters and pagination.

    Default order is severity (CRITICAL first), then newest.
    """
    if sort and sort not in case_service.SORT_OPTIONS:
        raise HTTPException(status_code=422, detail=f"Invalid sort '{sort}'")

    filters = case_service.CaseFilters(
        status=case_service.parse_status_filter(status),
        severity=severity,
        category=category,
        case_type_id=case_type_id,
        owner_id=owner_id,
        search=search,
    )
    cases, total = case_service.list_cases(db, filters, sort=sort, page=page, limit=limit)
    return CaseListResponse(
        items=[CaseListItem.model_validate(c) for c in cases],
        pagination=Pagination(
            page=page,
            limit=limit,
            total=total,
            total_pages=total_pages(total, limit),
        ),
    )


@router.get("/counts", response_model=CaseCounts)
def get_case_counts(
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    """Tab counts per case-type category."""
    return case_service.get_counts(db)


@router.get("/export")
def export_cases(
    format: ExportFormat = Query("csv"),
    status: str | None = None,
    severity: str | None = None,
    category: str | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    """Export filtered cases as CSV (UTF-8 with BOM) or JSON."""
    filters = case_service.CaseFilters(
        status=case_service.parse_status_filter(status),
        severity=severity,
        category=category,
    )
    cases = case_service.list_cases_for_export(db, filters, start_date, end_date)

    if format == "json":
        return export_service.cases_to_json(cases)

    return Response(
        content=export_service.cases_to_csv(cases).encode("utf-8"),
        media_type="text/csv; charset=utf-8",
        headers={
            "Content-Disposition": f'attachment; filename="{export_service.export_filename()}"'
        },
    )


@router.post(
    "",
    response_model=CaseRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_case(
    data: CaseCreate,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    """
    Create a case.

    Severity and SLA default from the case type. Without an owner the case
    is auto-assigned to the least-loaded technician/support user.
    """
    try:
        case = case_service.create_case(db, data, session.user_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _get_case_or_404(db, case.id)


@router.patch(
    "/bulk",
    response_model=BulkCaseResult,
    dependencies=[Depends(require_csrf_header)],
)
def bulk_update_cases(
    data: BulkCaseAction,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    """Bulk assign / resolve / close."""
    try:
        updated = case_service.bulk_update(
            db, data.case_ids, data.action, data.assignee_id, session.user_id
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return BulkCaseResult(success=True, updated=updated)


@router.get("/{case_id}", response_model=CaseRead)
def get_case(
    case_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    return _get_case_or_404(db, case_id)


@router.patch(
    "/{case_id}",
    response_model=CaseRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_case(
    case_id: UUID,
    data: CaseUpdate,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    """Partial update. Status changes must follow the workflow transitions."""
    case = _get_case_or_404(db, case_id)
    try:
        case_service.update_case(db, case, data, session.user_id)
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))
    return _get_case_or_404(db, case_id)


@router.delete(
    "/{case_id}",
    status_code=204,
    dependencies=[Depends(require_csrf_header)],
)
def delete_case(
    case_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_manager),
):
    """Soft delete. Manager only."""
    case = _get_case_or_404(db, case_id)
    case_service.delete_case(db, case, session.user_id)
    return Response(status_code=204)


# =============================================================================
# Timeline
# =============================================================================

@router.get("/{case_id}/activities", response_model=list[ActivityRead])
def list_case_activities(
    case_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    case = _get_case_or_404(db, case_id)
    return activity_service.list_activities(db, case.id)


@router.post(
    "/{case_id}/activities",
    response_model=ActivityRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def add_case_activity(
    case_id: UUID,
    data: ActivityCreate,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    """Add a note (or other manual entry) to the case timeline."""
    case = _get_case_or_404(db, case_id)
    return case_service.add_note(db, case, data, session.user_id)
