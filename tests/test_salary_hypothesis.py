from __future__ import annotations

import pytest

hypothesis = pytest.importorskip("hypothesis")
st = pytest.importorskip("hypothesis.strategies")

from core.services.salary import summarize


@hypothesis.settings(suppress_health_check=[hypothesis.HealthCheck.function_scoped_fixture], deadline=None)
@hypothesis.given(
    people=st.lists(st.sampled_from(["A", "B", "C", "", None]), max_size=30),
)
def test_counts_cover_every_entry(people):
    summary = summarize([{"sales_person": p, "margin": 1} for p in people])
    assert sum(s.count for s in summary) == len(people)
    counts = [s.count for s in summary]
    assert counts == sorted(counts, reverse=True)

