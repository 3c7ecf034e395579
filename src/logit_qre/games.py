"""
Minimal game representations consumed by the payoff oracles.

Strategic games are a list of payoff arrays, one per player, indexed by the
pure strategies of all players. Extensive games are trees of ``Node`` objects
built with :func:`decision`, :func:`chance` and :func:`terminal`; information
sets are identified by ``(player, label)`` and must have perfect recall.
"""

import itertools
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from .errors import InvalidGame


@dataclass
class StrategicGame:
    """A finite game in strategic (normal) form."""
    payoffs: List[np.ndarray]  # payoffs[i][s_1, ..., s_N] is player i's payoff

    def __post_init__(self):
        self.payoffs = [np.asarray(a, dtype=float) for a in self.payoffs]
        if not self.payoffs:
            raise InvalidGame("A strategic game needs at least one player")
        shape = self.payoffs[0].shape
        for i, array in enumerate(self.payoffs):
            if array.shape != shape:
                raise InvalidGame(
                    f"Payoff array of player {i + 1} has shape {array.shape}, expected {shape}"
                )
        if len(shape) != len(self.payoffs):
            raise InvalidGame(
                f"{len(self.payoffs)} payoff arrays given for a game with {len(shape)} players"
            )
        if min(shape) < 1:
            raise InvalidGame("Every player needs at least one strategy")

    @classmethod
    def from_arrays(cls, *arrays) -> "StrategicGame":
        """Build a game from one payoff array per player (as ``pygambit.Game.from_arrays``)."""
        return cls(list(arrays))

    @property
    def num_players(self) -> int:
        return len(self.payoffs)

    @property
    def strategy_counts(self) -> Tuple[int, ...]:
        return self.payoffs[0].shape

    @property
    def is_tree(self) -> bool:
        return False


@dataclass
class Node:
    """A node of a game tree.

    Decision nodes carry ``player`` and ``infoset``; chance nodes carry ``probs``;
    terminal nodes carry ``payoffs``.
    """
    player: Optional[int] = None
    infoset: Optional[str] = None
    children: List["Node"] = field(default_factory=list)
    probs: Optional[np.ndarray] = None
    payoffs: Optional[np.ndarray] = None

    @property
    def is_terminal(self) -> bool:
        return not self.children

    @property
    def is_chance(self) -> bool:
        return self.probs is not None


def terminal(*payoffs: float) -> Node:
    """Terminal node with one payoff per player."""
    return Node(payoffs=np.asarray(payoffs, dtype=float))


def chance(probs: Sequence[float], children: Sequence[Node]) -> Node:
    """Chance node moving to ``children[j]`` with probability ``probs[j]``."""
    probs = np.asarray(probs, dtype=float)
    if len(probs) != len(children):
        raise InvalidGame("Chance node needs one probability per child")
    if np.any(probs < 0) or abs(probs.sum() - 1.0) > 1e-9:
        raise InvalidGame(f"Chance probabilities {probs.tolist()} do not form a distribution")
    return Node(children=list(children), probs=probs)


def decision(player: int, infoset: str, children: Sequence[Node]) -> Node:
    """Decision node of ``player`` (0-based) in information set ``infoset``."""
    if len(children) < 1:
        raise InvalidGame(f"Information set {infoset!r} needs at least one action")
    return Node(player=player, infoset=infoset, children=list(children))


@dataclass
class Infoset:
    player: int
    label: str
    num_actions: int


@dataclass
class PathRecord:
    """A node reached from the root: the personal moves and chance weight on its path."""
    actions: List[Tuple[int, int]]  # (infoset index, action index)
    chance_prob: float
    node: Node


class ExtensiveGame:
    """A finite game in extensive form with perfect recall.

    Attributes:
        root: Root node of the tree
        infosets: Information sets in order of first appearance (depth first)
        num_players: Number of players (length of the terminal payoff vectors)
    """

    def __init__(self, root: Node):
        self.root = root
        self.infosets: List[Infoset] = []
        self._infoset_index: Dict[Tuple[int, str], int] = {}
        self.terminals: List[PathRecord] = []
        self.decisions: List[Tuple[int, PathRecord]] = []
        self._index(root, [], 1.0, set())

        payoff_len = {len(rec.node.payoffs) for rec in self.terminals}
        if len(payoff_len) != 1:
            raise InvalidGame("Terminal nodes disagree on the number of players")
        self.num_players = payoff_len.pop()
        if any(info.player >= self.num_players for info in self.infosets):
            raise InvalidGame("An information set belongs to a player without payoffs")

    def _index(self, node: Node, path, prob, seen):
        if node.is_terminal:
            if node.payoffs is None:
                raise InvalidGame("Terminal node without payoffs")
            self.terminals.append(PathRecord(list(path), prob, node))
            return
        if node.is_chance:
            for p, child in zip(node.probs, node.children):
                self._index(child, path, prob * p, seen)
            return

        key = (node.player, node.infoset)
        if key not in self._infoset_index:
            self._infoset_index[key] = len(self.infosets)
            self.infosets.append(Infoset(node.player, node.infoset, len(node.children)))
        b = self._infoset_index[key]
        if self.infosets[b].num_actions != len(node.children):
            raise InvalidGame(
                f"Information set {node.infoset!r} of player {node.player + 1} "
                f"has inconsistent action counts"
            )
        if b in seen:
            raise InvalidGame(
                f"Information set {node.infoset!r} is visited twice on one path (no perfect recall)"
            )
        self.decisions.append((b, PathRecord(list(path), prob, node)))
        for j, child in enumerate(node.children):
            self._index(child, path + [(b, j)], prob, seen | {b})

    @property
    def is_tree(self) -> bool:
        return True

    @property
    def action_counts(self) -> Tuple[int, ...]:
        return tuple(info.num_actions for info in self.infosets)

    def player_infosets(self, player: int) -> List[int]:
        return [b for b, info in enumerate(self.infosets) if info.player == player]

    def to_strategic(self) -> StrategicGame:
        """Strategic form whose strategies assign an action to every own information set.

        The form is not reduced: strategies that differ only at information sets
        they themselves exclude are kept as separate strategies.
        """
        owned = [self.player_infosets(i) for i in range(self.num_players)]
        strategies = [
            list(itertools.product(*(range(self.infosets[b].num_actions) for b in sets)))
            for sets in owned
        ]
        shape = tuple(len(s) for s in strategies)
        payoffs = [np.zeros(shape) for _ in range(self.num_players)]

        for contingency in itertools.product(*(range(n) for n in shape)):
            choice = {}
            for i, s in enumerate(contingency):
                choice.update(zip(owned[i], strategies[i][s]))
            value = np.zeros(self.num_players)
            for record in self.terminals:
                if all(choice[b] == j for b, j in record.actions):
                    value += record.chance_prob * record.node.payoffs
            for i in range(self.num_players):
                payoffs[i][contingency] = value[i]

        return StrategicGame(payoffs)
