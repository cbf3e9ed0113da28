from __future__ import annotations

import datetime as dt
import logging
import math
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable, Mapping, Optional

from sqlalchemy.orm import Session

from core.errors import ValidationFailed
from core.models import ReportEntry, SalarySnapshot

logger = logging.getLogger("shopdesk.salary")

UNSPECIFIED = "(미지정)"
DEFAULT_PER_SALE_INCENTIVE = 30000


@dataclass
class SalesPersonSummary:
    sales_person: str
    count: int = 0
    total_margin: float = 0
    total_support: float = 0

    def as_dict(self) -> dict[str, Any]:
        return {
            "sales_person": self.sales_person,
            "count": self.count,
            "total_margin": self.total_margin,
            "total_support": self.total_support,
        }


def _field(entry: Any, name: str) -> Any:
    if isinstance(entry, Mapping):
        return entry.get(name)
    return getattr(entry, name, None)


def _num(value: Any) -> float:
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    return number if math.isfinite(number) else 0


def _to_decimal(value: Any) -> Decimal:
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return Decimal(0)
    return number if number.is_finite() else Decimal(0)


def summarize(entries: Iterable[Any]) -> list[SalesPersonSummary]:
    """Group by trimmed sales person, busiest first (ties keep input order)."""
    groups: dict[str, SalesPersonSummary] = {}
    for entry in entries:
        key = str(_field(entry, "sales_person") or "").strip() or UNSPECIFIED
        group = groups.get(key)
        if group is None:
            group = groups[key] = SalesPersonSummary(key)
        group.count += 1
        group.total_margin += _num(_field(entry, "margin"))
        group.total_support += _num(_field(entry, "support_amount"))
    # sorted() is stable, dict preserves first-seen order
    return sorted(groups.values(), key=lambda s: s.count, reverse=True)


def calculate(
    summary: SalesPersonSummary | Mapping[str, Any],
    per_sale_incentive: float = DEFAULT_PER_SALE_INCENTIVE,
    margin_percent: float = 0,
) -> int:
    """count × per-sale incentive + round-half-up(total margin × margin percent)."""
    count = int(_field(summary, "count") or 0)
    margin_term = (_to_decimal(_field(summary, "total_margin") or 0) * _to_decimal(margin_percent)).to_integral_value(
        rounding=ROUND_HALF_UP
    )
    base = _to_decimal(per_sale_incentive) * count
    return int(base + margin_term)


def salary_rows(
    entries: Iterable[Any],
    per_sale_incentive: float = DEFAULT_PER_SALE_INCENTIVE,
    margin_percent: float = 0,
) -> list[dict[str, Any]]:
    rows = []
    for s in summarize(entries):
        row = s.as_dict()
        row["calculated_salary"] = calculate(s, per_sale_incentive, margin_percent)
        rows.append(row)
    return rows


def entries_in_period(session: Session, shop_id: str, period_start: dt.date, period_end: dt.date) -> list[ReportEntry]:
    # sale_date is stored as YYYY-MM-DD text, so lexical range == date range
    return (
        session.query(ReportEntry)
        .filter(
            ReportEntry.shop_id == shop_id,
            ReportEntry.sale_date >= period_start.isoformat(),
            ReportEntry.sale_date <= period_end.isoformat(),
        )
        .order_by(ReportEntry.sale_date.asc(), ReportEntry.uploaded_at.asc())
        .all()
    )


def save_snapshots(
    session: Session,
    shop_id: str,
    period_start: dt.date,
    period_end: dt.date,
    rows: Iterable[Mapping[str, Any]],
) -> list[SalarySnapshot]:
    """Append one snapshot per row. Existing snapshots are never touched."""
    if period_end < period_start:
        raise ValidationFailed("period_end must not be before period_start")
    saved: list[SalarySnapshot] = []
    for r in rows:
        snap = SalarySnapshot(
            shop_id=shop_id,
            sales_person=str(r.get("sales_person") or "").strip() or UNSPECIFIED,
            period_start=period_start,
            period_end=period_end,
            sale_count=int(_num(r.get("count"))),
            total_margin=_num(r.get("total_margin")),
            total_support=_num(r.get("total_support")),
            calculated_salary=int(_num(r.get("calculated_salary"))),
        )
        session.add(snap)
        saved.append(snap)
    if not saved:
        raise ValidationFailed("rows must not be empty")
    session.commit()
    logger.info("saved %d salary snapshots for shop %s (%s..%s)", len(saved), shop_id, period_start, period_end)
    return saved


def list_snapshots(
    session: Session,
    shop_id: str,
    *,
    sales_person: Optional[str] = None,
    period_start: Optional[dt.date] = None,
    period_end: Optional[dt.date] = None,
) -> list[SalarySnapshot]:
    """Snapshots overlapping [period_start, period_end], newest first."""
    q = session.query(SalarySnapshot).filter(SalarySnapshot.shop_id == shop_id)
    if sales_person is not None:
        q = q.filter(SalarySnapshot.sales_person == sales_person)
    if period_start is not None:
        q = q.filter(SalarySnapshot.period_end >= period_start)
    if period_end is not None:
        q = q.filter(SalarySnapshot.period_start <= period_end)
    return q.order_by(SalarySnapshot.created_at.desc()).all()
