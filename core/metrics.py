"""In-process request metrics in the Prometheus text format.

Counters are per worker process; scrape each worker or put the app behind a
single process when exact totals matter.
"""
from __future__ import annotations

import math
import threading
from collections import defaultdict
from typing import Dict, Tuple

PREFIX = "shopdesk"
BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, math.inf)

Route = Tuple[str, str]


class RequestMetrics:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._requests: Dict[Tuple[str, str, int], int] = defaultdict(int)
        self._durations: Dict[Route, list[int]] = {}
        self._sums: Dict[Route, float] = defaultdict(float)

    def observe(self, route: str, method: str, status: int, seconds: float) -> None:
        key = (route, method.upper())
        seconds = max(0.0, float(seconds))
        with self._lock:
            self._requests[(route, key[1], int(status))] += 1
            counts = self._durations.setdefault(key, [0] * len(BUCKETS))
            # non-cumulative here, summed on export
            for i, le in enumerate(BUCKETS):
                if seconds <= le:
                    counts[i] += 1
                    break
            self._sums[key] += seconds

    def reset(self) -> None:
        with self._lock:
            self._requests.clear()
            self._durations.clear()
            self._sums.clear()

    def export(self) -> str:
        lines = [
            f"# HELP {PREFIX}_requests_total HTTP requests by route, method and status",
            f"# TYPE {PREFIX}_requests_total counter",
        ]
        with self._lock:
            for (route, method, status), n in sorted(self._requests.items()):
                lines.append(f'{PREFIX}_requests_total{{{_labels(route, method)},status="{status}"}} {n}')
            lines.append(f"# HELP {PREFIX}_request_duration_seconds Request latency")
            lines.append(f"# TYPE {PREFIX}_request_duration_seconds histogram")
            for (route, method), counts in sorted(self._durations.items()):
                labels = _labels(route, method)
                running = 0
                for le, n in zip(BUCKETS, counts):
                    running += n
                    bound = "+Inf" if math.isinf(le) else repr(le)
                    lines.append(f'{PREFIX}_request_duration_seconds_bucket{{{labels},le="{bound}"}} {running}')
                lines.append(f"{PREFIX}_request_duration_seconds_sum{{{labels}}} {self._sums[(route, method)]}")
                lines.append(f"{PREFIX}_request_duration_seconds_count{{{labels}}} {running}")
        return "\n".join(lines) + "\n"


def _escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace("\n", "\\n").replace('"', '\\"')


def _labels(route: str, method: str) -> str:
    return f'route="{_escape(route)}",method="{_escape(method)}"'


request_metrics = RequestMetrics()
