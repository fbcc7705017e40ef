"""Provider service - external service providers and their case stats."""

from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.db.models import Case, Provider
from app.schemas.provider import ProviderCreate, ProviderRead, ProviderUpdate


def list_providers(db: Session, include_inactive: bool = False) -> list[Provider]:
    query = db.query(Provider)
    if not include_inactive:
        query = query.filter(Provider.is_active.is_(True))
    return query.order_by(Provider.name.asc()).all()


def get_provider(db: Session, provider_id: UUID) -> Provider | None:
    return db.query(Provider).filter(Provider.id == provider_id).first()


def get_provider_by_name(db: Session, name: str) -> Provider | None:
    return db.query(Provider).filter(func.lower(Provider.name) == name.lower()).first()


def count_cases(db: Session, provider_ids: list[UUID]) -> dict[UUID, int]:
    """Non-deleted case counts keyed by provider id."""
    if not provider_ids:
        return {}
    rows = (
        db.query(Case.provider_id, func.count(Case.id))
        .filter(Case.provider_id.in_(provider_ids), Case.is_deleted.is_(False))
        .group_by(Case.provider_id)
        .all()
    )
    return {provider_id: count for provider_id, count in rows}


def to_read(provider: Provider, cases_count: int = 0) -> ProviderRead:
    read = ProviderRead.model_validate(provider)
    read.cases_count = cases_count
    return read


def create_provider(db: Session, data: ProviderCreate) -> Provider:
    """
    Create a provider.

    Raises:
        ValueError: Name already in use
    """
    if get_provider_by_name(db, data.name):
        raise ValueError("Provider name already exists")

    provider = Provider(
        name=data.name.strip(),
        type=data.type.value,
        default_sla_minutes=data.default_sla_minutes,
        contact_channel=data.contact_channel,
        notification_preference=data.notification_preference,
        risk_level=data.risk_level.value,
        is_active=data.is_active,
    )
    db.add(provider)
    db.commit()
    db.refresh(provider)
    return provider


def update_provider(db: Session, provider: Provider, data: ProviderUpdate) -> Provider:
    updates = data.model_dump(exclude_unset=True)

    new_name = updates.get("name")
    if new_name and new_name.lower() != provider.name.lower():
        if get_provider_by_name(db, new_name):
            raise ValueError("Provider name already exists")

    for field, value in updates.items():
        if value is None and field not in ("contact_channel", "notification_preference"):
            continue
        if hasattr(value, "value"):
            value = value.value
        setattr(provider, field, value)

    db.commit()
    db.refresh(provider)
    return provider


def delete_provider(db: Session, provider: Provider) -> int:
    """
    Delete a provider that has no cases.

    Returns:
        0 on success, otherwise the number of cases blocking deletion
    """
    cases_count = count_cases(db, [provider.id]).get(provider.id, 0)
    if cases_count:
        return cases_count
    db.delete(provider)
    db.commit()
    return 0


def record_case_opened(provider: Provider) -> None:
    provider.total_cases = (provider.total_cases or 0) + 1


def record_case_resolved(provider: Provider) -> None:
    provider.resolved_cases = (provider.resolved_cases or 0) + 1
