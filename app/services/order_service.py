"""Order service - order status updates and case follow-up suggestions."""

from uuid import UUID

from sqlalchemy.orm import Session, selectinload

from app.db.enums import ActivityType, CaseStatus, OrderStatus
from app.db.models import Order
from app.services import activity_service

ORDER_STATUS_LABELS = {
    OrderStatus.PENDING.value: "Pending",
    OrderStatus.PROCESSING.value: "Processing",
    OrderStatus.COMPLETED.value: "Completed",
    OrderStatus.FAILED.value: "Failed",
    OrderStatus.REFUNDED.value: "Refunded",
    OrderStatus.CANCELLED.value: "Cancelled",
}


def get_order(db: Session, order_id: UUID) -> Order | None:
    return (
        db.query(Order)
        .options(selectinload(Order.provider), selectinload(Order.cases))
        .filter(Order.id == order_id)
        .first()
    )


def update_order_status(
    db: Session,
    order: Order,
    new_status: OrderStatus,
    user_id: UUID | None,
) -> bool:
    """
    Change an order's status and log it on every linked case.

    When all orders of a still-open case reach a terminal status, a
    suggestion note is added to that case.

    Returns:
        False if the status was unchanged (nothing written)
    """
    old_status = order.status
    if new_status.value == old_status:
        return False

    order.status = new_status.value
    db.flush()

    terminal = OrderStatus.terminal_values()
    for case in order.cases:
        if case.is_deleted:
            continue
        activity_service.log_activity(
            db=db,
            case_id=case.id,
            activity_type=ActivityType.NOTE_ADDED,
            title=f"Order {order.order_id} updated",
            description=(
                f'Order status changed from "{ORDER_STATUS_LABELS[old_status]}" '
                f'to "{ORDER_STATUS_LABELS[new_status.value]}"'
            ),
            user_id=user_id,
            old_value=old_status,
            new_value=new_status.value,
        )

        if case.status in (CaseStatus.RESOLVED.value, CaseStatus.CLOSED.value):
            continue
        if case.orders and all(o.status in terminal for o in case.orders):
            order_ids = ", ".join(o.order_id for o in case.orders)
            activity_service.log_activity(
                db=db,
                case_id=case.id,
                activity_type=ActivityType.NOTE_ADDED,
                title="Suggestion: all orders are finished",
                description=(
                    f"All orders on this case ({order_ids}) have finished. "
                    "The case can be moved to RESOLVED or CLOSED."
                ),
                user_id=user_id,
            )

    db.commit()
    db.refresh(order)
    return True
