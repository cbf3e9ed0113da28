from __future__ import annotations

import datetime as dt

import pytest

hypothesis = pytest.importorskip("hypothesis")
st = pytest.importorskip("hypothesis.strategies")

from core.services import ingestion
from core.services.ingestion import HEADER_MAP, map_table, normalize_date

TODAY = dt.date(2024, 5, 20)


@hypothesis.settings(suppress_health_check=[hypothesis.HealthCheck.function_scoped_fixture], deadline=None)
@hypothesis.given(
    st.dates(min_value=dt.date(1900, 1, 1), max_value=dt.date(2100, 12, 31)),
)
def test_normalize_date_is_idempotent(day):
    once = normalize_date(day.isoformat() + "T00:00:00Z")
    assert once == day.isoformat()
    assert normalize_date(once) == once


cells = st.one_of(
    st.none(),
    st.text(max_size=12),
    st.integers(min_value=-10**9, max_value=10**9),
    st.floats(allow_nan=True, allow_infinity=True),
    st.booleans(),
    st.dates(),
)


@hypothesis.settings(suppress_health_check=[hypothesis.HealthCheck.function_scoped_fixture], deadline=None)
@hypothesis.given(
    header=st.lists(st.one_of(st.sampled_from(sorted(HEADER_MAP)), st.text(max_size=5), st.none()), max_size=10),
    body=st.lists(st.one_of(st.lists(cells, max_size=12), cells), max_size=8),
)
def test_mapper_is_total(header, body):
    result = map_table([header, *body], "shop-x", today=TODAY)
    for entry in result.entries:
        assert entry["shop_id"] == "shop-x"
        assert entry["name"] or entry["phone"]
        assert entry["sale_date"]
        for key in ingestion.NUMERIC_FIELDS:
            value = entry.get(key)
            assert value is None or isinstance(value, (int, float))

