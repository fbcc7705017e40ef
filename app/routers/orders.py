"""Order endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.core.deps import get_current_session, get_db, require_csrf_header
from app.schemas.auth import UserSession
from app.schemas.order import OrderRead, OrderStatusUpdate
from app.services import order_service

router = APIRouter()


def _get_or_404(db: Session, order_id: UUID):
    order = order_service.get_order(db, order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


@router.get("/{order_id}", response_model=OrderRead)
def get_order(
    order_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    """Order with its provider and linked cases."""
    return _get_or_404(db, order_id)


@router.patch("/{order_id}", dependencies=[Depends(require_csrf_header)])
def update_order_status(
    order_id: UUID,
    data: OrderStatusUpdate,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    """
    Change an order's status.

    Each linked case gets a timeline note; cases whose orders are all
    finished also get a suggestion to resolve.
    """
    order = _get_or_404(db, order_id)
    changed = order_service.update_order_status(db, order, data.status, session.user_id)
    if not changed:
        return {"message": "Status unchanged"}
    return OrderRead.model_validate(_get_or_404(db, order_id))
