"""Pseudo-time stepping."""

from __future__ import annotations

from typing import Iterable, List, Optional, Protocol

import numpy as np

from threefield.newton import NewtonRaphsonController, NewtonResult


class Time:
    """Fixed-increment pseudo time; a step is solved while ``current < end``."""

    def __init__(self, end: float, delta_t: float):
        self.end = float(end)
        self.delta_t = float(delta_t)
        self.timestep = 0
        self.current = 0.0

    def increment(self) -> None:
        self.timestep += 1
        self.current += self.delta_t

    def finished(self) -> bool:
        return self.current >= self.end


class OutputSink(Protocol):
    def write(self, solid) -> None:
        ...


class TimeStepper:
    """Runs the Newton controller once per step and persists the increments.

    Before the first step the initial state is handed to the sinks (step 0).
    """

    def __init__(
        self,
        solid,
        sinks: Iterable[OutputSink] = (),
        controller: Optional[NewtonRaphsonController] = None,
    ):
        self.solid = solid
        self.sinks = list(sinks)
        self.controller = controller or NewtonRaphsonController(solid)

    def _output(self) -> None:
        with self.solid.timer.section("output"):
            for sink in self.sinks:
                sink.write(self.solid)

    def run(self) -> List[NewtonResult]:
        solid = self.solid
        time = solid.time
        results: List[NewtonResult] = []

        self._output()
        time.increment()

        solution_delta = np.zeros(solid.dofs.n_dofs)
        while not time.finished():
            solution_delta[:] = 0.0
            print(f"\n[step] Timestep {time.timestep} @ {time.current:.6g}s")

            result = self.controller.solve(solution_delta)
            solid.solution_n += solution_delta
            solid.last_result = result
            results.append(result)
            if solid.config.verbose:
                solid.print_convergence_footer(result)

            self._output()
            time.increment()
        return results
