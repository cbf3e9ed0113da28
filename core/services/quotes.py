"""Quote wizard settlement. Pure arithmetic, no store access."""
from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable

from core.errors import ValidationFailed

DEFAULT_INSTALLMENTS = 24


def _round(value: Any) -> int:
    return int(Decimal(str(value)).to_integral_value(rounding=ROUND_HALF_UP))


@dataclass
class Settlement:
    rebate: float
    final_price: float
    margin: int
    installments: int
    monthly_device: int
    monthly_plan_fee: float
    monthly_add_ons: int
    monthly_total: float

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


def settle(
    factory_price: float,
    subsidy: float,
    rebate: float = 0,
    add_on_prices: Iterable[float] = (),
    *,
    installments: int = 0,
    monthly_plan_fee: float = 0,
) -> Settlement:
    """final price = factory - subsidy (never negative); margin = rebate - subsidy - add-ons."""
    prices = [p or 0 for p in add_on_prices]
    if not all(math.isfinite(v) for v in (factory_price, subsidy, rebate, monthly_plan_fee, *prices)):
        raise ValidationFailed("amounts must be finite numbers")
    final_price = max(0, factory_price - subsidy)
    margin = _round(rebate - subsidy - sum(prices))
    months = installments if installments and installments > 0 else DEFAULT_INSTALLMENTS
    monthly_device = _round(final_price / months)
    # add-ons are billed over a year; free promos don't count
    monthly_add_ons = sum(_round(p / 12) for p in prices if p > 0)
    return Settlement(
        rebate=rebate,
        final_price=final_price,
        margin=margin,
        installments=months,
        monthly_device=monthly_device,
        monthly_plan_fee=monthly_plan_fee,
        monthly_add_ons=monthly_add_ons,
        monthly_total=monthly_device + monthly_plan_fee + monthly_add_ons,
    )
