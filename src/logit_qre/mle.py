"""
Maximum likelihood estimation of λ along a traced branch.

Given observed frequencies p*, the observer tracks the log-likelihood
L(x) = sum_i p*_i log x_i at every accepted point. When L rises and then falls
over three consecutive points, the maximum lies on the arc between them; the
arc is searched by golden section, each trial point being projected back onto
the branch with the Newton corrector.
"""

import logging
import math
import re
from collections import deque
from pathlib import Path
from typing import List, Optional, Tuple, Union

import numpy as np

from .config import TraceConfig
from .continuation import NewtonCorrector, QREPoint
from .errors import InvalidFrequencies, PositivityLoss, SingularSystem
from .logit_map import LogitMap

logger = logging.getLogger(__name__)

GOLDEN_RATIO = (1 + math.sqrt(5)) / 2.0


def read_frequencies(path: Union[str, Path], length: Optional[int] = None) -> np.ndarray:
    """
    Read a comma-separated vector of observed frequencies.

    Whitespace around values and trailing newlines are ignored.

    Raises:
        InvalidFrequencies: A value is not a number, is negative, or the count
            differs from ``length``
    """
    try:
        text = Path(path).read_text()
    except OSError as e:
        raise InvalidFrequencies(f"Cannot read observed frequencies from {path}: {e}") from e

    tokens = [tok for tok in re.split(r"[,\s]+", text.strip()) if tok]
    try:
        values = np.array([float(tok) for tok in tokens])
    except ValueError as e:
        raise InvalidFrequencies(f"Malformed frequency file {path}: {e}") from e

    if length is not None and len(values) != length:
        raise InvalidFrequencies(
            f"Expected {length} observed frequencies in {path}, found {len(values)}"
        )
    if len(values) == 0 or np.any(values < 0) or not np.all(np.isfinite(values)):
        raise InvalidFrequencies(f"Observed frequencies in {path} must be finite and non-negative")
    return values


def log_likelihood(frequencies: np.ndarray, profile: np.ndarray) -> float:
    return float(np.dot(frequencies, np.log(profile)))


class MLEObserver:
    """
    Watches accepted points for a local maximum of the log-likelihood.

    Every maximum found is returned by :meth:`observe` (tag ``MLE_TAG``). If
    none is found by the end of the trace, :meth:`finish` returns the best
    point seen (tag ``BEST_TAG``).
    """

    MLE_TAG = "2"
    BEST_TAG = "3"
    MAX_SEARCH_ITER = 200

    def __init__(self, logit_map: LogitMap, frequencies: np.ndarray,
                 config: Optional[TraceConfig] = None):
        frequencies = np.asarray(frequencies, dtype=float)
        if frequencies.shape != (logit_map.dimension,):
            raise InvalidFrequencies(
                f"Observed frequencies have length {frequencies.size}, "
                f"the profile has length {logit_map.dimension}"
            )
        self.frequencies = frequencies
        self.config = config if config is not None else TraceConfig()
        self.corrector = NewtonCorrector(logit_map, self.config)
        self._window: deque = deque(maxlen=3)
        self.best: Optional[Tuple[QREPoint, float]] = None
        self.found: List[QREPoint] = []

    def likelihood(self, point: QREPoint) -> float:
        return log_likelihood(self.frequencies, point.profile)

    def observe(self, point: QREPoint) -> Optional[QREPoint]:
        value = self.likelihood(point)
        if self.best is None or value > self.best[1]:
            self.best = (point, value)
        self._window.append((point, value))
        if len(self._window) < 3:
            return None

        (_, l0), (_, l1), (_, l2) = self._window
        if not (l0 < l1 and l1 >= l2):
            return None

        logger.debug("Likelihood maximum bracketed between λ=%g and λ=%g",
                     self._window[0][0].lambda_val, self._window[2][0].lambda_val)
        estimate = self._search([p for p, _ in self._window])
        self.found.append(estimate)
        return estimate

    def finish(self) -> Optional[QREPoint]:
        """Best point seen, if no bracketed maximum was located."""
        if self.found or self.best is None:
            return None
        logger.info("No likelihood maximum bracketed; reporting best point at λ=%g",
                    self.best[0].lambda_val)
        return self.best[0]

    def _search(self, points: List[QREPoint]) -> QREPoint:
        states = [p.state for p in points]
        knots = np.array([
            0.0,
            np.linalg.norm(states[1] - states[0]),
            np.linalg.norm(states[1] - states[0]) + np.linalg.norm(states[2] - states[1]),
        ])
        chord = states[2] - states[0]
        chord /= np.linalg.norm(chord)

        def project(s: float) -> Optional[np.ndarray]:
            # Quadratic (Lagrange) interpolation of the three states
            guess = np.zeros_like(states[0])
            for i in range(3):
                weight = 1.0
                for j in range(3):
                    if j != i:
                        weight *= (s - knots[j]) / (knots[i] - knots[j])
                guess += weight * states[i]
            try:
                outcome = self.corrector.correct(guess, chord)
            except (PositivityLoss, SingularSystem):
                return None
            return None if outcome is None else outcome.point

        def objective(s: float) -> float:
            y = project(s)
            return -math.inf if y is None else log_likelihood(self.frequencies, y[:-1])

        a, b = 0.0, float(knots[2])
        c = b - (b - a) / GOLDEN_RATIO
        d = a + (b - a) / GOLDEN_RATIO
        fc, fd = objective(c), objective(d)
        iterations = 0
        while abs(b - a) > self.config.mle_tol and iterations < self.MAX_SEARCH_ITER:
            if fc > fd:
                b, d, fd = d, c, fc
                c = b - (b - a) / GOLDEN_RATIO
                fc = objective(c)
            else:
                a, c, fc = c, d, fd
                d = a + (b - a) / GOLDEN_RATIO
                fd = objective(d)
            iterations += 1

        y = project((a + b) / 2.0)
        middle = points[1]
        if y is None or log_likelihood(self.frequencies, y[:-1]) < self.likelihood(middle):
            return middle
        try:
            tangent, _ = self.corrector.tangent(y, chord)
        except SingularSystem:
            tangent = None
        logger.debug("Likelihood maximum at λ=%g after %d iterations", y[-1], iterations)
        return QREPoint.from_state(y, tangent)
