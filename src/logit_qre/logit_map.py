"""
The logit fixed-point system whose zero set is the QRE correspondence.

Points are augmented states ``y = (x, λ)`` with the profile ``x`` first and
the precision ``λ`` in the last coordinate. For every block the residual has
one simplex row followed by the log-ratio rows

    F = log x[j] - log x[0] - λ (u[j] - u[0]),    j = 1 .. k-1

where ``u`` are the payoffs supplied by the oracle and index 0 is the block's
first action (the pivot).
"""

from typing import Union

import numpy as np
from numpy.linalg import LinAlgError

from .errors import OracleFailure, PositivityLoss
from .games import ExtensiveGame, StrategicGame
from .oracle import AgentPayoffOracle, PayoffOracle, StrategicPayoffOracle


class LogitMap:
    """Residual and Jacobian of the logit system for one payoff oracle."""

    representation = "generic"

    def __init__(self, oracle: PayoffOracle):
        self.oracle = oracle
        self.layout = oracle.layout
        n = self.layout.dimension
        self._pivot = np.repeat(np.asarray(self.layout.offsets), self.layout.sizes)
        self._is_pivot = self._pivot == np.arange(n)
        self._simplex_rows = self.layout.same_block().astype(float)

    @property
    def dimension(self) -> int:
        """Length n of the profile; states have length n + 1."""
        return self.layout.dimension

    def centroid(self) -> np.ndarray:
        """The state (centroid, λ = 0), the unique solution at λ = 0."""
        return np.append(self.layout.centroid(), 0.0)

    def _payoffs(self, x: np.ndarray, with_jacobian: bool = False):
        try:
            u = self.oracle.payoffs(x)
            du = self.oracle.payoff_jacobian(x) if with_jacobian else None
        except LinAlgError:
            raise
        except (ArithmeticError, ValueError, IndexError) as e:
            raise OracleFailure(f"Payoff evaluation failed: {e}") from e
        if not np.all(np.isfinite(u)):
            raise OracleFailure("Payoff evaluation returned non-finite values")
        return u, du

    def _profile(self, y: np.ndarray):
        x, lam = y[:-1], y[-1]
        if np.any(x <= 0.0):
            raise PositivityLoss(f"Non-positive probability {x.min():.3e} at λ={lam}")
        return x, lam

    def residual(self, y: np.ndarray) -> np.ndarray:
        x, lam = self._profile(y)
        u, _ = self._payoffs(x)
        p = self._pivot
        log_ratio = np.log(x) - np.log(x[p]) - lam * (u - u[p])
        block_sums = np.bincount(self.layout.block_of, weights=x)
        return np.where(self._is_pivot, block_sums[self.layout.block_of] - 1.0, log_ratio)

    def jacobian(self, y: np.ndarray) -> np.ndarray:
        """
        Jacobian of the residual with respect to (x, λ), shape n x (n + 1).

        Log terms contribute 1/x on the diagonal and -1/x[pivot] in the pivot
        column, payoff differences contribute -λ (du[j] - du[pivot]), and the
        last column is -(u[j] - u[pivot]).
        """
        x, lam = self._profile(y)
        n = self.dimension
        u, du = self._payoffs(x, with_jacobian=True)
        p = self._pivot
        rows = np.flatnonzero(~self._is_pivot)

        jac = np.zeros((n, n + 1))
        jac[:, :n] = -lam * (du - du[p])
        jac[rows, rows] += 1.0 / x[rows]
        jac[rows, p[rows]] -= 1.0 / x[p[rows]]
        jac[:, n] = -(u - u[p])

        pivots = np.flatnonzero(self._is_pivot)
        jac[pivots, :n] = self._simplex_rows[pivots]
        jac[pivots, n] = 0.0
        return jac


class StrategicLogitMap(LogitMap):
    """Logit system over mixed strategy profiles (one simplex per player)."""

    representation = "strategic"

    def __init__(self, game: StrategicGame):
        super().__init__(StrategicPayoffOracle(game))


class AgentLogitMap(LogitMap):
    """Logit system over behavior profiles (one simplex per information set)."""

    representation = "agent"

    def __init__(self, game: ExtensiveGame):
        super().__init__(AgentPayoffOracle(game))


def logit_map_for(game: Union[StrategicGame, ExtensiveGame],
                  use_strategic: bool = False) -> LogitMap:
    """Pick the agent form for trees unless ``use_strategic`` is set."""
    if not game.is_tree:
        return StrategicLogitMap(game)
    if use_strategic:
        return StrategicLogitMap(game.to_strategic())
    return AgentLogitMap(game)
