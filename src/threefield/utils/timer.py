"""Wall-clock accounting per named section."""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Dict, Iterator


class SectionTimer:
    def __init__(self):
        self.totals: Dict[str, float] = {}
        self.calls: Dict[str, int] = {}
        self._t0 = time.perf_counter()

    @contextmanager
    def section(self, name: str) -> Iterator[None]:
        t0 = time.perf_counter()
        try:
            yield
        finally:
            dt = time.perf_counter() - t0
            self.totals[name] = self.totals.get(name, 0.0) + dt
            self.calls[name] = self.calls.get(name, 0) + 1

    def elapsed(self) -> float:
        return time.perf_counter() - self._t0

    def print_summary(self) -> None:
        total = self.elapsed()
        print(f"[timer] total wall time {total:.3f} s")
        print(f"[timer] {'section':<32s} {'calls':>6s} {'wall [s]':>10s} {'share':>7s}")
        for name, t in sorted(self.totals.items(), key=lambda kv: -kv[1]):
            share = 100.0 * t / total if total > 0 else 0.0
            print(f"[timer] {name:<32s} {self.calls[name]:6d} {t:10.3f} {share:6.1f}%")
