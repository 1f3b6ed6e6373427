import numpy as np
import pytest

from threefield.config import SimulationConfig
from threefield.newton import NewtonResult
from threefield.time_stepper import Time, TimeStepper
from threefield.utils.timer import SectionTimer


class _Dofs:
    n_dofs = 3


class _FakeSolid:
    def __init__(self, end_time, delta_t):
        self.config = SimulationConfig(end_time=end_time, delta_t=delta_t, verbose=False)
        self.dofs = _Dofs()
        self.time = Time(end_time, delta_t)
        self.timer = SectionTimer()
        self.solution_n = np.zeros(3)
        self.last_result = None


class _FakeController:
    def __init__(self, solid):
        self.solid = solid
        self.times = []

    def solve(self, solution_delta):
        assert not np.any(solution_delta)
        self.times.append(self.solid.time.current)
        solution_delta += 1.0
        return NewtonResult(converged=True, iterations=2)


class _Sink:
    def __init__(self):
        self.steps = []

    def write(self, solid):
        self.steps.append(solid.time.timestep)


def test_ten_steps_of_a_tenth_reach_end_time():
    solid = _FakeSolid(1.0, 0.1)
    controller = _FakeController(solid)
    sink = _Sink()
    results = TimeStepper(solid, [sink], controller=controller).run()

    assert len(results) == 10
    np.testing.assert_allclose(controller.times, 0.1 * np.arange(1, 11), rtol=1e-12)
    assert controller.times[-1] == pytest.approx(1.0)
    assert sink.steps == list(range(11))
    np.testing.assert_array_equal(solid.solution_n, 10.0)
    assert solid.last_result is results[-1]
    assert solid.timer.calls["output"] == 11


def test_step_past_end_is_not_solved():
    time = Time(1.0, 0.3)
    seen = []
    time.increment()
    while not time.finished():
        seen.append(time.current)
        time.increment()
    np.testing.assert_allclose(seen, [0.3, 0.6, 0.9])


def _solved_times(end, delta_t):
    time = Time(end, delta_t)
    seen = []
    time.increment()
    while not time.finished():
        seen.append(time.current)
        time.increment()
    return seen


def test_step_landing_exactly_on_end_is_not_solved():
    assert _solved_times(1.0, 0.5) == [0.5]
    assert _solved_times(1.0, 0.25) == [0.25, 0.5, 0.75]
    assert _solved_times(1.0, 1.0) == []


def test_time_accumulates_increments():
    time = Time(1.0, 0.1)
    expected = 0.0
    for _ in range(7):
        time.increment()
        expected += 0.1
    assert time.current == expected
    assert time.timestep == 7


def test_stepper_with_half_steps_solves_once():
    solid = _FakeSolid(1.0, 0.5)
    controller = _FakeController(solid)
    sink = _Sink()
    results = TimeStepper(solid, [sink], controller=controller).run()

    assert len(results) == 1
    assert controller.times == [0.5]
    assert sink.steps == [0, 1]
