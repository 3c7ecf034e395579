"""
Predictor-corrector continuation along the principal logit branch.

The tracer starts at the centroid (λ = 0) and follows the one-dimensional
solution curve of the logit system: an Euler predictor along the unit tangent
followed by Newton corrections restricted to the hyperplane orthogonal to the
tangent. Step sizes adapt to the observed distance to the curve and to the
contraction rate of the corrector, following Allgower and Georg (1990),
*Introduction to Numerical Continuation Methods*.
"""

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

import numpy as np
from numpy.linalg import LinAlgError
from scipy.linalg import solve

from .config import TraceConfig
from .errors import PositivityLoss, QREError, SingularSystem, StepUnderflow
from .logit_map import LogitMap

logger = logging.getLogger(__name__)


@dataclass
class QREPoint:
    """Represents an accepted point on the logit branch."""
    lambda_val: float
    profile: np.ndarray                  # Flat profile, blocks in layout order
    tangent: Optional[np.ndarray] = None  # Unit tangent [dx/ds, dλ/ds]

    @classmethod
    def from_state(cls, y: np.ndarray, tangent: Optional[np.ndarray] = None) -> "QREPoint":
        return cls(
            float(y[-1]),
            y[:-1].copy(),
            None if tangent is None else tangent.copy(),
        )

    @property
    def state(self) -> np.ndarray:
        return np.append(self.profile, self.lambda_val)


class TraceStatus(Enum):
    MAX_LAMBDA = "max_lambda"
    PURE_LIMIT = "pure_limit"
    PRECISION_LIMIT = "precision_limit"
    STEP_UNDERFLOW = "step_underflow"
    SINGULAR = "singular_system"
    MAX_STEPS = "max_steps"


@dataclass
class TraceResult:
    """Outcome of a trace, in the spirit of ``scipy.optimize.OptimizeResult``."""
    status: TraceStatus
    message: str
    last_point: QREPoint
    steps: int = 0           # accepted steps
    rejections: int = 0
    nfev: int = 0            # residual evaluations
    njev: int = 0            # Jacobian evaluations
    bifurcations: int = 0    # sign changes of the augmented determinant
    mle_points: List[QREPoint] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.status in (TraceStatus.MAX_LAMBDA, TraceStatus.PURE_LIMIT)

    def raise_for_status(self) -> None:
        """
        Raise the exception matching a failed termination.

        ``PRECISION_LIMIT`` is not a failure: the branch is valid up to the last
        point, it just cannot be followed further in floating point.
        """
        if self.status is TraceStatus.STEP_UNDERFLOW:
            raise StepUnderflow(self.message)
        if self.status is TraceStatus.SINGULAR:
            raise SingularSystem(self.message)
        if self.status is TraceStatus.MAX_STEPS:
            raise QREError(self.message)


@dataclass
class CorrectorOutcome:
    point: np.ndarray
    decel: float        # factor by which the next step should shrink
    iterations: int


class NewtonCorrector:
    """
    Newton corrector on the augmented system [JF; t^T] δ = [-F; 0].

    Owns the scratch matrix of the augmented system, which is reused for every
    solve, and counts residual and Jacobian evaluations.
    """

    def __init__(self, logit_map: LogitMap, config: TraceConfig):
        self.logit_map = logit_map
        self.config = config
        n = logit_map.dimension
        self._system = np.empty((n + 1, n + 1))
        self._rhs = np.empty(n + 1)
        self.nfev = 0
        self.njev = 0

    def _solve_augmented(self, jacobian: np.ndarray, row: np.ndarray,
                         top: np.ndarray, bottom: float) -> np.ndarray:
        n = self.logit_map.dimension
        self._system[:n] = jacobian
        self._system[n] = row
        self._rhs[:n] = top
        self._rhs[n] = bottom
        if not (np.all(np.isfinite(self._system)) and np.all(np.isfinite(self._rhs))):
            raise SingularSystem("Augmented system has non-finite entries")
        try:
            return solve(self._system, self._rhs, check_finite=False)
        except LinAlgError as e:
            raise SingularSystem(f"Augmented system is singular: {e}") from e

    def tangent(self, y: np.ndarray,
                reference: Optional[np.ndarray] = None) -> Tuple[np.ndarray, float]:
        """
        Unit kernel vector of JF at ``y`` and the sign of the augmented determinant.

        The kernel vector is normalized against ``reference`` (t . reference = 1
        before scaling), so the result never points against it. Without a
        reference the λ component is fixed, which orients the tangent toward
        increasing λ.
        """
        n = self.logit_map.dimension
        jacobian = self.logit_map.jacobian(y)
        self.njev += 1
        if reference is None:
            reference = np.zeros(n + 1)
            reference[n] = 1.0
        t = self._solve_augmented(jacobian, reference, np.zeros(n), 1.0)
        det_sign = float(np.linalg.slogdet(self._system)[0])
        norm = np.linalg.norm(t)
        if not norm > 0.0:
            raise SingularSystem(f"Zero tangent vector at λ={y[-1]}")
        return t / norm, det_sign

    def correct(self, y: np.ndarray, direction: np.ndarray) -> Optional[CorrectorOutcome]:
        """
        Project ``y`` onto the curve along the hyperplane orthogonal to ``direction``.

        Convergence requires both the last Newton step and the residual at the
        corrected point to be below ``corrector_tol``. Returns None when the
        iteration diverges (a Newton step farther than ``max_dist``, a
        contraction rate above ``max_contraction``, or no convergence within
        ``max_corrector_iter`` iterations).

        Raises:
            PositivityLoss: An iterate left the interior of the simplex
            SingularSystem: The augmented system could not be solved
        """
        cfg = self.config
        u = y.copy()
        residual = self.logit_map.residual(u)
        self.nfev += 1
        disto = 0.0
        decel = 1.0 / cfg.max_decel
        for it in range(cfg.max_corrector_iter):
            jacobian = self.logit_map.jacobian(u)
            self.njev += 1
            delta = self._solve_augmented(jacobian, direction, -residual, 0.0)
            dist = float(np.linalg.norm(delta))
            if dist >= cfg.max_dist:
                return None
            decel = max(decel, math.sqrt(dist / cfg.max_dist) * cfg.max_decel)
            if it > 0:
                contr = dist / (disto + cfg.corrector_tol * cfg.contraction_eta)
                if contr > cfg.max_contraction:
                    return None
                decel = max(decel, math.sqrt(contr / cfg.max_contraction) * cfg.max_decel)
            u += delta
            residual = self.logit_map.residual(u)
            self.nfev += 1
            if dist < cfg.corrector_tol and np.max(np.abs(residual)) <= cfg.corrector_tol:
                return CorrectorOutcome(u, decel, it + 1)
            disto = dist
        return None


class LogitBranchTracer:
    """
    Traces the principal branch of the logit correspondence of one game.

    The tracer emits accepted points to ``sink`` (every point in full-graph
    mode, otherwise only the last one) and hands each accepted point to the
    optional MLE ``observer``.

    Attributes:
        logit_map: The logit system (strategic or agent form)
        config: Step-size, tolerance and output settings
    """

    BRANCH_TAG = "1"

    def __init__(self, logit_map: LogitMap, config: Optional[TraceConfig] = None,
                 sink=None, observer=None):
        self.logit_map = logit_map
        self.config = config if config is not None else TraceConfig()
        self.sink = sink
        self.observer = observer
        self.corrector = NewtonCorrector(logit_map, self.config)

    def find_tangent(self, y: np.ndarray,
                     reference: Optional[np.ndarray] = None) -> np.ndarray:
        """Unit tangent at ``y``; see :meth:`NewtonCorrector.tangent`."""
        return self.corrector.tangent(y, reference)[0]

    def _emit(self, point: QREPoint, tag: str) -> None:
        if self.sink is not None:
            self.sink.emit(point, tag)

    def _accept(self, point: QREPoint, result: TraceResult) -> None:
        if self.config.full_graph:
            self._emit(point, self.BRANCH_TAG)
        if self.observer is not None:
            found = self.observer.observe(point)
            if found is not None:
                result.mle_points.append(found)
                self._emit(found, self.observer.MLE_TAG)

    def _termination(self, y: np.ndarray, h: float, steps: int) -> Optional[Tuple[TraceStatus, str]]:
        cfg = self.config
        if y[-1] >= cfg.max_lambda:
            return TraceStatus.MAX_LAMBDA, f"Reached λ={y[-1]:g} (maximum {cfg.max_lambda:g})."
        x = y[:-1]
        if cfg.min_probability is not None:
            # Mass off the most likely strategy of each block
            spread = max(x[block].sum() - x[block].max()
                         for block in self.logit_map.layout.slices())
            if spread < cfg.min_probability:
                return (TraceStatus.PURE_LIMIT,
                        f"Every block within {cfg.min_probability:g} of a pure strategy at λ={y[-1]:g}.")
        if x.min() < cfg.probability_floor:
            return (TraceStatus.PRECISION_LIMIT,
                    f"Probability {x.min():.3e} below {cfg.probability_floor:g} at λ={y[-1]:g}.")
        if steps >= cfg.max_steps:
            return TraceStatus.MAX_STEPS, f"Maximum number of steps {cfg.max_steps} reached."
        if h < cfg.min_step:
            return (TraceStatus.STEP_UNDERFLOW,
                    f"Stepsize {h:g} less than minimum {cfg.min_step:g} at λ={y[-1]:g}.")
        return None

    def trace(self, start: Optional[QREPoint] = None) -> TraceResult:
        """
        Follow the branch from ``start`` (default: the centroid at λ = 0).

        A start point with a stored tangent resumes in that direction;
        otherwise the tangent is oriented toward increasing λ.

        Returns:
            TraceResult describing why tracing stopped and the last accepted point
        """
        cfg = self.config
        if start is None:
            y = self.logit_map.centroid()
            t, det_sign = self.corrector.tangent(y)
        else:
            y = start.state
            if start.tangent is not None:
                t, det_sign = self.corrector.tangent(y, start.tangent)
            else:
                t, det_sign = self.corrector.tangent(y)

        point = QREPoint.from_state(y, t)
        result = TraceResult(TraceStatus.MAX_LAMBDA, "", point)
        self._accept(point, result)

        h = cfg.step_start
        singular_retry = False
        while True:
            stop = self._termination(y, h, result.steps)
            if stop is not None:
                result.status, result.message = stop
                break

            outcome = None
            try:
                outcome = self.corrector.correct(y + h * t, t)
                if outcome is not None:
                    if outcome.point[-1] < 0.0:
                        raise PositivityLoss(f"Corrected point has λ={outcome.point[-1]:g}")
                    new_t, new_sign = self.corrector.tangent(outcome.point, t)
            except PositivityLoss as e:
                logger.debug("Rejecting step h=%g at λ=%g: %s", h, y[-1], e)
                outcome = None
            except SingularSystem as e:
                if singular_retry:
                    result.status = TraceStatus.SINGULAR
                    result.message = f"{e} (at λ={y[-1]:g}, stepsize {h:g})"
                    break
                logger.debug("Singular system at λ=%g, retrying with a smaller step", y[-1])
                singular_retry = True
                outcome = None

            if outcome is None:
                # Step was not accepted; take a smaller step and try again
                result.rejections += 1
                h /= cfg.max_decel
                continue

            singular_retry = False
            if new_sign != 0.0 and det_sign != 0.0 and new_sign != det_sign:
                result.bifurcations += 1
                logger.info("Passed a bifurcation point near λ=%g", outcome.point[-1])
            det_sign = new_sign

            h = min(h / min(outcome.decel, cfg.max_decel), cfg.max_step)
            y, t = outcome.point, new_t
            result.steps += 1
            point = QREPoint.from_state(y, t)
            result.last_point = point
            self._accept(point, result)

        if result.status is TraceStatus.PRECISION_LIMIT:
            logger.warning("Stopped before reaching a pure profile: %s", result.message)
        if not cfg.full_graph:
            self._emit(result.last_point, self.BRANCH_TAG)
        if self.observer is not None:
            best = self.observer.finish()
            if best is not None:
                self._emit(best, self.observer.BEST_TAG)

        result.nfev = self.corrector.nfev
        result.njev = self.corrector.njev
        logger.info(
            "Trace finished (%s) after %d steps, %d rejections: %s",
            result.status.value, result.steps, result.rejections, result.message,
        )
        return result
