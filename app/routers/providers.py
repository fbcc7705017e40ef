"""Provider endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.core.deps import (
    get_current_session,
    get_db,
    require_admin,
    require_csrf_header,
    require_manager,
)
from app.schemas.auth import UserSession
from app.schemas.provider import ProviderCreate, ProviderRead, ProviderUpdate
from app.services import provider_service

router = APIRouter()


def _get_or_404(db: Session, provider_id: UUID):
    provider = provider_service.get_provider(db, provider_id)
    if not provider:
        raise HTTPException(status_code=404, detail="Provider not found")
    return provider


def _read(db: Session, provider) -> ProviderRead:
    counts = provider_service.count_cases(db, [provider.id])
    return provider_service.to_read(provider, counts.get(provider.id, 0))


@router.get("", response_model=list[ProviderRead])
def list_providers(
    include_inactive: bool = Query(False),
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    providers = provider_service.list_providers(db, include_inactive=include_inactive)
    counts = provider_service.count_cases(db, [p.id for p in providers])
    return [provider_service.to_read(p, counts.get(p.id, 0)) for p in providers]


@router.post(
    "",
    response_model=ProviderRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_provider(
    data: ProviderCreate,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_manager),
):
    try:
        provider = provider_service.create_provider(db, data)
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return provider_service.to_read(provider, 0)


@router.get("/{provider_id}", response_model=ProviderRead)
def get_provider(
    provider_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    return _read(db, _get_or_404(db, provider_id))


@router.patch(
    "/{provider_id}",
    response_model=ProviderRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_provider(
    provider_id: UUID,
    data: ProviderUpdate,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_manager),
):
    provider = _get_or_404(db, provider_id)
    try:
        provider = provider_service.update_provider(db, provider, data)
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return _read(db, provider)


@router.delete(
    "/{provider_id}",
    status_code=204,
    dependencies=[Depends(require_csrf_header)],
)
def delete_provider(
    provider_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
):
    """Providers with cases cannot be deleted."""
    provider = _get_or_404(db, provider_id)
    blocking = provider_service.delete_provider(db, provider)
    if blocking:
        return JSONResponse(
            status_code=400,
            content={
                "detail": "Cannot delete provider with existing cases",
                "cases_count": blocking,
            },
        )
    return Response(status_code=204)
