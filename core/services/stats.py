from __future__ import annotations

import datetime as dt
import re
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Optional

from sqlalchemy.orm import Session

from core.models import Consultation, ReportEntry
from core.services import scope
from core.services.auth import AuthContext
from core.utils.dates import month_bounds, parse_month

CATEGORIES = ("로드", "컨택", "전화", "온라인", "지인")
DEFAULT_CATEGORY = "로드"

_PATH_RULES = (
    (re.compile(r"지인"), "지인"),
    (re.compile(r"당근|온라인"), "온라인"),
    (re.compile(r"전화"), "전화"),
    (re.compile(r"컨택|워킹"), "컨택"),
)


def path_category(path: Optional[str]) -> str:
    """Free-text ledger 유입경로 → one of CATEGORIES (first rule wins)."""
    p = (path or "").strip()
    for pattern, category in _PATH_RULES:
        if pattern.search(p):
            return category
    return DEFAULT_CATEGORY


def _percent(part: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return float((Decimal(part) * 100 / Decimal(total)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def build_table(points: Iterable[tuple[str, int]], days_in_month: int) -> dict[str, Any]:
    """``points`` are (category, day-of-month) pairs; days outside the month are dropped."""
    counts = {c: [0] * days_in_month for c in CATEGORIES}
    for category, day in points:
        if 1 <= day <= days_in_month:
            counts[category][day - 1] += 1
    total_days = [sum(col) for col in zip(*counts.values())]
    total = sum(total_days)
    rows = []
    for label in CATEGORIES:
        row_total = sum(counts[label])
        rows.append({
            "label": label,
            "days": counts[label],
            "total": row_total,
            "percent": _percent(row_total, total),
        })
    return {"rows": rows, "total_row": {"days": total_days, "total": total}}


def _day_of(value: Any) -> int:
    if isinstance(value, dt.date):
        return value.day
    try:
        return int(str(value or "")[8:10])
    except ValueError:
        return 0


def inflow_activation(session: Session, auth: AuthContext, shop_id: Optional[str], month: Optional[str]) -> dict[str, Any]:
    """Per-day consultation inflow and report activations for one shop and month."""
    effective = scope.require_shop(session, auth, shop_id)
    year, mon = parse_month(month)
    start, end = month_bounds(year, mon)
    days = end.day

    consultations = (
        session.query(Consultation.consultation_date, Consultation.inflow_type)
        .filter(
            Consultation.shop_id == effective,
            Consultation.consultation_date >= start,
            Consultation.consultation_date <= end,
        )
        .all()
    )
    reports = (
        session.query(ReportEntry.sale_date, ReportEntry.path)
        .filter(
            ReportEntry.shop_id == effective,
            ReportEntry.sale_date >= start.isoformat(),
            ReportEntry.sale_date <= end.isoformat(),
        )
        .all()
    )
    inflow = build_table(
        ((kind if kind in CATEGORIES else DEFAULT_CATEGORY, _day_of(d)) for d, kind in consultations),
        days,
    )
    activation = build_table(((path_category(p), _day_of(d)) for d, p in reports), days)
    return {
        "month": f"{year:04d}-{mon:02d}",
        "days_in_month": days,
        "inflow": inflow,
        "activation": activation,
    }
