"""Configuration record for tracing a logit branch."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from .errors import ConfigError


@dataclass(frozen=True)
class TraceConfig:
    """Holds every tunable of the branch tracer and its output.

    **Command-line options:**
    - num_decimals: digits after the decimal point in emitted numbers (``-d``)
    - step_start: initial arclength step (``-s``)
    - max_decel: maximum deceleration/acceleration ratio per step (``-a``)
    - max_lambda: stop once λ reaches this value (``-m``)
    - full_graph: emit every accepted point, not only the terminal one (``-e``)
    - use_strategic: trace the strategic form of extensive games (``-S``)
    - mle_file: observed frequency file enabling MLE mode (``-L``)

    **Corrector tuning:**
    - corrector_tol: bound on the last Newton step and on the residual at a
      corrected point
    - max_dist: largest admissible Newton step (distance to the curve)
    - max_contraction: largest admissible ratio of successive Newton steps
    - contraction_eta: perturbation keeping the contraction estimate finite
    - max_corrector_iter: Newton iterations before a step is rejected

    **Step control and termination:**
    - min_step, max_step: bounds on the step size
    - min_probability: stop once every block puts less than this mass off its
      most likely strategy (pure-strategy limit); ``None`` disables the check
    - probability_floor: stop once any entry drops below this, as the log
      rows can no longer be resolved in floating point
    - max_steps: hard cap on accepted steps
    - mle_tol: arclength bracket width ending the likelihood search
    """

    num_decimals: int = 6
    step_start: float = 0.03
    max_decel: float = 1.1
    max_lambda: float = 1_000_000.0
    full_graph: bool = True
    use_strategic: bool = False
    mle_file: Optional[str] = None

    corrector_tol: float = 1.0e-8
    max_dist: float = 0.4
    max_contraction: float = 0.6
    contraction_eta: float = 0.1
    max_corrector_iter: int = 10

    min_step: float = 1.0e-8
    max_step: float = 1.0e4
    min_probability: Optional[float] = 1.0e-10
    probability_floor: float = 1.0e-200
    max_steps: int = 100_000
    mle_tol: float = 1.0e-9

    def __post_init__(self) -> None:
        if self.num_decimals < 0:
            raise ConfigError(f"num_decimals must be non-negative, got {self.num_decimals}")
        if not self.step_start > 0.0:
            raise ConfigError(f"step_start must be positive, got {self.step_start}")
        if not self.max_decel > 1.0:
            raise ConfigError(f"max_decel must exceed 1, got {self.max_decel}")
        if not self.max_lambda > 0.0 or math.isnan(self.max_lambda):
            raise ConfigError(f"max_lambda must be positive, got {self.max_lambda}")
        if not 0.0 < self.min_step <= self.max_step:
            raise ConfigError(
                f"step bounds must satisfy 0 < min_step <= max_step, "
                f"got ({self.min_step}, {self.max_step})"
            )
        if not self.corrector_tol > 0.0:
            raise ConfigError(f"corrector_tol must be positive, got {self.corrector_tol}")
        if not 0.0 < self.max_contraction < 1.0:
            raise ConfigError(
                f"max_contraction must lie in (0, 1), got {self.max_contraction}"
            )
        if self.max_corrector_iter < 1 or self.max_steps < 1:
            raise ConfigError("iteration limits must be at least 1")
        if self.min_probability is not None and not 0.0 < self.min_probability < 1.0:
            raise ConfigError(
                f"min_probability must lie in (0, 1), got {self.min_probability}"
            )
        if not 0.0 < self.probability_floor < 1.0:
            raise ConfigError(
                f"probability_floor must lie in (0, 1), got {self.probability_floor}"
            )
