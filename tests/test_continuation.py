"""
Tests for the predictor-corrector tracer on strategic games.
"""

import numpy as np
import pytest

from logit_qre.config import TraceConfig
from logit_qre.continuation import (
    LogitBranchTracer,
    NewtonCorrector,
    QREPoint,
    TraceStatus,
)
from logit_qre.errors import SingularSystem, StepUnderflow
from logit_qre.games import StrategicGame
from logit_qre.logit_map import StrategicLogitMap
from logit_qre.sink import ListSink


def trace(game, config=None, start=None):
    logit_map = StrategicLogitMap(game)
    sink = ListSink()
    result = LogitBranchTracer(logit_map, config, sink=sink).trace(start)
    return logit_map, sink.points(), result


class TestBranchInvariants:
    """Properties every emitted point of a trace must have."""

    @pytest.fixture
    def traced(self, stag_hunt):
        return trace(stag_hunt)

    def test_first_point_is_centroid(self, traced):
        _, points, _ = traced
        assert points[0].lambda_val == 0.0
        np.testing.assert_array_equal(points[0].profile, [0.5, 0.5, 0.5, 0.5])

    def test_points_lie_on_simplex(self, traced):
        logit_map, points, _ = traced
        for point in points:
            assert np.all(point.profile > 0.0)
            for block in logit_map.layout.split(point.profile):
                assert abs(block.sum() - 1.0) <= 1e-9

    def test_points_solve_logit_system(self, traced):
        logit_map, points, _ = traced
        for point in points:
            assert np.max(np.abs(logit_map.residual(point.state))) <= 1e-8

    def test_tangents_keep_orientation(self, traced):
        _, points, _ = traced
        for prev, curr in zip(points, points[1:]):
            assert np.dot(prev.tangent, curr.tangent) >= 0.0
            assert np.linalg.norm(curr.tangent) == pytest.approx(1.0)

    def test_steps_are_counted(self, traced):
        _, points, result = traced
        assert result.steps == len(points) - 1
        assert result.last_point is points[-1]
        assert result.nfev > 0 and result.njev > 0


class TestScenarios:

    def test_matching_pennies_stays_at_centroid(self, matching_pennies):
        _, points, result = trace(matching_pennies)
        assert result.status is TraceStatus.MAX_LAMBDA
        assert result.success
        assert points[-1].lambda_val >= 1_000_000.0
        for point in points:
            np.testing.assert_allclose(point.profile, 0.5, atol=1e-9)
        lambdas = [p.lambda_val for p in points]
        assert all(a < b for a, b in zip(lambdas, lambdas[1:]))

    def test_stag_hunt_selects_stag(self, stag_hunt):
        _, points, result = trace(stag_hunt)
        assert result.status is TraceStatus.PURE_LIMIT
        final = points[-1].profile
        assert final[0] >= 0.999 and final[2] >= 0.999
        assert final.min() < 1e-10
        lambdas = [p.lambda_val for p in points]
        assert all(b >= a for a, b in zip(lambdas, lambdas[1:]))

    def test_rock_paper_scissors_stays_uniform(self, rock_paper_scissors):
        _, points, result = trace(rock_paper_scissors, TraceConfig(max_lambda=1000.0))
        assert result.status is TraceStatus.MAX_LAMBDA
        for point in points:
            np.testing.assert_allclose(point.profile, 1 / 3, atol=1e-9)

    def test_three_player_game(self, three_player_game):
        logit_map, points, result = trace(three_player_game, TraceConfig(max_lambda=50.0))
        assert result.success
        for point in points:
            assert np.max(np.abs(logit_map.residual(point.state))) <= 1e-8


class TestDominatedStrategy:
    """A strictly dominated row vanishes long before the mixed limit is reached."""

    @pytest.fixture
    def game(self):
        A = np.array([[3.0, 0.0], [0.0, 1.0], [-10.0, -10.0]])
        B = np.array([[0.0, 1.0], [1.0, 0.0], [0.0, 0.0]])
        return StrategicGame.from_arrays(A, B)

    def test_tracing_continues_past_vanishing_strategy(self, game):
        _, points, result = trace(game, TraceConfig(max_lambda=20.0))
        assert result.status is TraceStatus.MAX_LAMBDA
        final = points[-1].profile
        assert final[2] < 1e-10
        # Mixed equilibrium of the remaining 2x2 game
        assert final[0] == pytest.approx(0.5, abs=0.05)
        assert final[3] == pytest.approx(0.25, abs=0.03)

    def test_precision_limit_is_not_a_pure_limit(self, game):
        _, points, result = trace(game, TraceConfig(probability_floor=1e-60))
        assert result.status is TraceStatus.PRECISION_LIMIT
        assert not result.success
        assert points[-1].lambda_val > 10.0
        assert points[-1].profile.min() < 1e-60
        result.raise_for_status()


class TestTerminalOnly:

    def test_emits_single_point(self, matching_pennies):
        config = TraceConfig(full_graph=False, max_lambda=100.0)
        _, points, result = trace(matching_pennies, config)
        assert len(points) == 1
        assert points[0] is result.last_point
        assert points[0].lambda_val >= 100.0

    def test_same_terminal_point_as_full_graph(self, stag_hunt):
        _, full, _ = trace(stag_hunt, TraceConfig(max_lambda=3.0))
        _, last, _ = trace(stag_hunt, TraceConfig(max_lambda=3.0, full_graph=False))
        np.testing.assert_array_equal(full[-1].state, last[0].state)


class TestRestart:

    def test_restart_continues_same_branch(self, stag_hunt):
        _, points, _ = trace(stag_hunt)
        start = points[10]
        _, resumed, result = trace(stag_hunt, start=start)

        assert result.status is TraceStatus.PURE_LIMIT
        np.testing.assert_array_equal(resumed[0].state, start.state)
        assert all(p.lambda_val >= start.lambda_val for p in resumed)

        # The principal branch of this symmetric game is symmetric and favors stag
        for point in resumed:
            assert point.profile[0] > 0.5
            assert point.profile[0] == pytest.approx(point.profile[2], abs=1e-6)
        np.testing.assert_allclose(resumed[-1].profile, points[-1].profile, atol=1e-6)

    def test_restart_without_tangent_moves_toward_larger_lambda(self, stag_hunt):
        _, points, _ = trace(stag_hunt)
        start = QREPoint(points[5].lambda_val, points[5].profile)
        _, resumed, _ = trace(stag_hunt, TraceConfig(max_lambda=5.0), start=start)
        assert resumed[1].lambda_val > start.lambda_val


class TestFailures:

    def test_step_underflow(self, matching_pennies):
        config = TraceConfig(step_start=1e-9)
        _, points, result = trace(matching_pennies, config)
        assert result.status is TraceStatus.STEP_UNDERFLOW
        assert not result.success
        assert "less than minimum" in result.message
        assert len(points) == 1
        with pytest.raises(StepUnderflow):
            result.raise_for_status()

    def test_max_steps(self, matching_pennies):
        _, _, result = trace(matching_pennies, TraceConfig(max_steps=5))
        assert result.status is TraceStatus.MAX_STEPS
        assert result.steps == 5

    def test_singular_system_after_retry(self, matching_pennies):

        class BrokenMap(StrategicLogitMap):
            def jacobian(self, y):
                jac = super().jacobian(y)
                if y[-1] > 0.0:
                    jac[:] = np.nan
                return jac

        logit_map = BrokenMap(matching_pennies)
        result = LogitBranchTracer(logit_map).trace()
        assert result.status is TraceStatus.SINGULAR
        assert result.rejections == 1
        assert result.steps == 0
        with pytest.raises(SingularSystem):
            result.raise_for_status()


class TestCorrector:

    def test_projects_perturbed_point(self, stag_hunt):
        logit_map = StrategicLogitMap(stag_hunt)
        tracer = LogitBranchTracer(logit_map)
        _, points, _ = trace(stag_hunt, TraceConfig(max_lambda=1.0))
        y = points[-1].state
        t = points[-1].tangent

        outcome = tracer.corrector.correct(y + 0.01 * t, t)
        assert outcome is not None
        assert np.max(np.abs(logit_map.residual(outcome.point))) <= 1e-8
        # Correction stays in the hyperplane orthogonal to the tangent
        assert np.dot(outcome.point - (y + 0.01 * t), t) == pytest.approx(0.0, abs=1e-12)

    def test_rejects_far_prediction(self, stag_hunt):
        logit_map = StrategicLogitMap(stag_hunt)
        corrector = NewtonCorrector(logit_map, TraceConfig(max_dist=0.01))
        y = logit_map.centroid()
        t, _ = corrector.tangent(y)
        e = np.zeros_like(y)
        e[0], e[1] = 0.1, -0.1
        assert corrector.correct(y + e + 0.1 * t, t) is None

    def test_initial_tangent_points_up_in_lambda(self, three_player_game):
        logit_map = StrategicLogitMap(three_player_game)
        corrector = NewtonCorrector(logit_map, TraceConfig())
        y = logit_map.centroid()
        t, _ = corrector.tangent(y)
        assert t[-1] > 0.0
        assert np.linalg.norm(t) == pytest.approx(1.0)
        np.testing.assert_allclose(logit_map.jacobian(y) @ t, 0.0, atol=1e-12)
