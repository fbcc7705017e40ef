"""Case type service - configurable case templates."""

from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.db.models import Case, CaseType
from app.schemas.case_type import CaseTypeCreate, CaseTypeUpdate


def list_case_types(db: Session, include_inactive: bool = False) -> list[CaseType]:
    query = db.query(CaseType)
    if not include_inactive:
        query = query.filter(CaseType.is_active.is_(True))
    return query.order_by(CaseType.name.asc()).all()


def get_case_type(db: Session, case_type_id: UUID) -> CaseType | None:
    return db.query(CaseType).filter(CaseType.id == case_type_id).first()


def get_case_type_by_name(db: Session, name: str) -> CaseType | None:
    return db.query(CaseType).filter(func.lower(CaseType.name) == name.lower()).first()


def create_case_type(db: Session, data: CaseTypeCreate) -> CaseType:
    """
    Create a case type.

    Raises:
        ValueError: Name already in use
    """
    if get_case_type_by_name(db, data.name):
        raise ValueError("Case type name already exists")

    payload = data.model_dump()
    payload["category"] = data.category.value
    payload["default_severity"] = data.default_severity.value
    case_type = CaseType(**payload)
    db.add(case_type)
    db.commit()
    db.refresh(case_type)
    return case_type


def update_case_type(db: Session, case_type: CaseType, data: CaseTypeUpdate) -> CaseType:
    updates = data.model_dump(exclude_unset=True)

    new_name = updates.get("name")
    if new_name and new_name.lower() != case_type.name.lower():
        if get_case_type_by_name(db, new_name):
            raise ValueError("Case type name already exists")

    for field, value in updates.items():
        if value is None and field not in ("description",):
            continue
        if hasattr(value, "value"):
            value = value.value
        setattr(case_type, field, value)

    db.commit()
    db.refresh(case_type)
    return case_type


def delete_case_type(db: Session, case_type: CaseType) -> bool:
    """
    Delete a case type.

    Types still referenced by cases are deactivated instead of removed.

    Returns:
        True if soft-deleted, False if the row was removed
    """
    in_use = db.query(Case.id).filter(Case.case_type_id == case_type.id).first() is not None
    if in_use:
        case_type.is_active = False
        db.commit()
        return True

    db.delete(case_type)
    db.commit()
    return False
