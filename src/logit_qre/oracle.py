"""
Payoff oracles for strategic and agent-form profiles.

A profile is a flat vector made of blocks, one block per player (strategic
form) or per information set (agent form). An oracle returns, for every entry
k of the profile, the expected payoff to the block owner of playing action k
against the rest of the profile, and the Jacobian of these payoffs.
"""

from typing import List, Sequence

import numpy as np

from .errors import OracleFailure
from .games import ExtensiveGame, StrategicGame


class BlockLayout:
    """Positions of the simplex blocks inside a flat profile vector."""

    def __init__(self, sizes: Sequence[int]):
        self.sizes = tuple(int(k) for k in sizes)
        if not self.sizes or min(self.sizes) < 1:
            raise ValueError(f"Invalid block sizes {self.sizes}")
        self.offsets = tuple(int(o) for o in np.cumsum((0,) + self.sizes[:-1]))
        self.dimension = sum(self.sizes)
        self.block_of = np.repeat(np.arange(len(self.sizes)), self.sizes)

    def __len__(self) -> int:
        return len(self.sizes)

    def slices(self) -> List[slice]:
        return [slice(o, o + k) for o, k in zip(self.offsets, self.sizes)]

    def split(self, x: np.ndarray) -> List[np.ndarray]:
        return [x[s] for s in self.slices()]

    def centroid(self) -> np.ndarray:
        """Uniform randomization within every block."""
        return np.concatenate([np.full(k, 1.0 / k) for k in self.sizes])

    def same_block(self) -> np.ndarray:
        """Boolean n x n mask of entries sharing a block."""
        return self.block_of[:, None] == self.block_of[None, :]


class PayoffOracle:
    """Interface shared by the strategic and agent oracles."""

    layout: BlockLayout

    def payoffs(self, x: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    def payoff_jacobian(self, x: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    def _check(self, x: np.ndarray) -> np.ndarray:
        x = np.asarray(x, dtype=float)
        if x.shape != (self.layout.dimension,):
            raise OracleFailure(
                f"Profile has shape {x.shape}, expected ({self.layout.dimension},)"
            )
        return x


class StrategicPayoffOracle(PayoffOracle):
    """Expected payoffs of pure strategies against a mixed strategy profile."""

    def __init__(self, game: StrategicGame):
        self.game = game
        self.layout = BlockLayout(game.strategy_counts)

    @staticmethod
    def _contract(tensor: np.ndarray, blocks: List[np.ndarray], keep) -> np.ndarray:
        # Contract from the last axis so that lower axis numbers stay valid
        result = tensor
        for axis in reversed(range(tensor.ndim)):
            if axis not in keep:
                result = np.tensordot(result, blocks[axis], axes=([axis], [0]))
        return result

    def payoffs(self, x: np.ndarray) -> np.ndarray:
        blocks = self.layout.split(self._check(x))
        return np.concatenate([
            self._contract(tensor, blocks, {i})
            for i, tensor in enumerate(self.game.payoffs)
        ])

    def payoff_jacobian(self, x: np.ndarray) -> np.ndarray:
        """
        Matrix of ``d payoffs[k] / d x[k']``.

        Blocks on the diagonal are zero: a player's own mixture does not enter
        the payoff of their pure strategies.
        """
        blocks = self.layout.split(self._check(x))
        n = self.layout.dimension
        jac = np.zeros((n, n))
        rows = self.layout.slices()
        for i, tensor in enumerate(self.game.payoffs):
            for other in range(self.game.num_players):
                if other == i:
                    continue
                partial = self._contract(tensor, blocks, {i, other})
                if other < i:
                    partial = partial.T
                jac[rows[i], rows[other]] = partial
        return jac


class AgentPayoffOracle(PayoffOracle):
    """
    Conditional action values of a behavior profile.

    For information set b of player i and action j the payoff is

        u[b, j] = sum_{h in b} P(h) V_i(h, j) / sum_{h in b} P(h)

    with P the realization probability of node h and V_i(h, j) player i's
    expected payoff after taking j at h. Both sums are evaluated through the
    incidence of profile entries on root-to-node paths, which gives the
    Jacobian in closed form.
    """

    def __init__(self, game: ExtensiveGame):
        self.game = game
        if not game.infosets:
            raise OracleFailure("Game has no personal decisions to trace")
        self.layout = BlockLayout(game.action_counts)
        n = self.layout.dimension
        offsets = self.layout.offsets

        self._owner = np.array([
            game.infosets[b].player for b in self.layout.block_of
        ])

        self._terminal_paths = np.zeros((len(game.terminals), n), dtype=bool)
        self._terminal_chance = np.array([rec.chance_prob for rec in game.terminals])
        self._terminal_payoffs = np.array([rec.node.payoffs for rec in game.terminals])
        for z, rec in enumerate(game.terminals):
            for b, j in rec.actions:
                self._terminal_paths[z, offsets[b] + j] = True

        self._node_paths = np.zeros((len(game.decisions), n), dtype=bool)
        self._node_chance = np.array([rec.chance_prob for _, rec in game.decisions])
        self._node_members = np.zeros((len(self.layout), len(game.decisions)))
        for h, (b, rec) in enumerate(game.decisions):
            self._node_members[b, h] = 1.0
            for b2, j in rec.actions:
                self._node_paths[h, offsets[b2] + j] = True

    @staticmethod
    def _realization(paths: np.ndarray, chance: np.ndarray, x: np.ndarray) -> np.ndarray:
        return chance * np.prod(np.where(paths, x[None, :], 1.0), axis=1)

    def _evaluate(self, x: np.ndarray):
        terminal_prob = self._realization(self._terminal_paths, self._terminal_chance, x)
        node_prob = self._realization(self._node_paths, self._node_chance, x)
        infoset_prob = self._node_members @ node_prob
        if np.any(infoset_prob <= 0.0):
            raise OracleFailure("An information set is reached with probability zero")

        # weighted[z, k]: probability of z times the payoff of k's owner at z
        weighted = terminal_prob[:, None] * self._terminal_payoffs[:, self._owner]
        numer = (self._terminal_paths * weighted).sum(axis=0) / x
        denom = infoset_prob[self.layout.block_of]
        return terminal_prob, node_prob, weighted, numer, denom

    def payoffs(self, x: np.ndarray) -> np.ndarray:
        x = self._check(x)
        _, _, _, numer, denom = self._evaluate(x)
        return numer / denom

    def payoff_jacobian(self, x: np.ndarray) -> np.ndarray:
        x = self._check(x)
        _, node_prob, weighted, numer, denom = self._evaluate(x)
        u = numer / denom
        paths = self._terminal_paths.astype(float)

        # d numer[k] / d x[k'] for k' != k
        d_numer = ((paths * weighted).T @ paths) / np.outer(x, x)
        # d infoset_prob[b] / d x[k']
        d_infoset = (self._node_members @ (node_prob[:, None] * self._node_paths)) / x[None, :]
        d_denom = d_infoset[self.layout.block_of]

        jac = (d_numer - u[:, None] * d_denom) / denom[:, None]
        jac[self.layout.same_block()] = 0.0
        return jac
