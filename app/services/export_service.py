"""Case export - CSV (Excel-friendly) and JSON."""

import csv
import io
from datetime import datetime, timezone
from typing import Any, Iterable, Sequence

from app.db.models import Case

CSV_DANGEROUS_PREFIXES = ("=", "+", "-", "@")
UTF8_BOM = "\ufeff"
DATE_FORMAT = "%d/%m/%Y %H:%M"

CSV_HEADERS = [
    "Case Number",
    "Title",
    "Category",
    "Status",
    "Severity",
    "Customer Name",
    "Owner",
    "Provider",
    "Order Count",
    "SLA (minutes)",
    "Source",
    "Created At",
    "Updated At",
    "Resolved At",
    "Closed At",
]


def _csv_safe(value: str) -> str:
    """Neutralise spreadsheet formula injection."""
    if value and value.startswith(CSV_DANGEROUS_PREFIXES):
        return f"'{value}"
    return value


def _serialize_csv_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.strftime(DATE_FORMAT)
    return str(value)


def _format_date(value: datetime | None) -> str:
    return value.strftime(DATE_FORMAT) if value else "-"


def _case_row(case: Case) -> list[Any]:
    return [
        case.case_number,
        case.title,
        case.case_type.category if case.case_type else "-",
        case.status,
        case.severity,
        case.customer_name or "-",
        case.owner.name if case.owner else "Unassigned",
        case.provider.name if case.provider else "-",
        len(case.orders),
        case.case_type.default_sla_minutes if case.case_type else "-",
        case.source or "-",
        _format_date(case.created_at),
        _format_date(case.updated_at),
        _format_date(case.resolved_at),
        _format_date(case.closed_at),
    ]


def write_csv(headers: Sequence[str], rows: Iterable[Sequence[Any]]) -> str:
    """Every cell quoted, quotes doubled, BOM prefixed for Excel."""
    output = io.StringIO()
    writer = csv.writer(output, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(headers)
    for row in rows:
        writer.writerow([_csv_safe(_serialize_csv_value(value)) for value in row])
    return UTF8_BOM + output.getvalue()


def cases_to_csv(cases: list[Case]) -> str:
    return write_csv(CSV_HEADERS, (_case_row(c) for c in cases))


def export_filename(now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"cases-export-{now.strftime('%Y%m%d-%H%M%S')}.csv"


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _case_json(case: Case) -> dict[str, Any]:
    return {
        "id": str(case.id),
        "case_number": case.case_number,
        "title": case.title,
        "description": case.description,
        "status": case.status,
        "severity": case.severity,
        "source": case.source,
        "customer_name": case.customer_name,
        "customer_id": case.customer_id,
        "customer_contact": case.customer_contact,
        "case_type": {
            "id": str(case.case_type.id),
            "name": case.case_type.name,
            "category": case.case_type.category,
        } if case.case_type else None,
        "owner": {"id": str(case.owner.id), "name": case.owner.name} if case.owner else None,
        "provider": {"id": str(case.provider.id), "name": case.provider.name} if case.provider else None,
        "orders": [
            {"id": str(o.id), "order_id": o.order_id, "amount": str(o.amount), "status": o.status}
            for o in case.orders
        ],
        "sla_deadline": _iso(case.sla_deadline),
        "sla_missed": case.sla_missed,
        "root_cause": case.root_cause,
        "resolution": case.resolution,
        "created_at": _iso(case.created_at),
        "updated_at": _iso(case.updated_at),
        "resolved_at": _iso(case.resolved_at),
        "closed_at": _iso(case.closed_at),
    }


def cases_to_json(cases: list[Case]) -> dict[str, Any]:
    return {
        "total": len(cases),
        "exported_at": datetime.now(timezone.utc).isoformat(),
        "data": [_case_json(c) for c in cases],
    }
