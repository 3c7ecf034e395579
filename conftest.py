"""Pytest configuration: puts the in-repo src package on the path and
provides the games shared by the test modules."""
from __future__ import annotations

import sys
from pathlib import Path

import matplotlib
import numpy as np
import pytest

matplotlib.use("Agg")

SRC_PATH = Path(__file__).resolve().parent / "src"
if SRC_PATH.exists():
    sys.path.insert(0, str(SRC_PATH))

from logit_qre.games import ExtensiveGame, StrategicGame, chance, decision, terminal  # noqa: E402


@pytest.fixture
def matching_pennies():
    A = np.array([[1.0, -1.0], [-1.0, 1.0]])
    return StrategicGame.from_arrays(A, -A)


@pytest.fixture
def stag_hunt():
    # Stag is both payoff and risk dominant, so the branch leaves the centroid
    A = np.array([[4.0, 0.0], [2.0, 1.0]])
    return StrategicGame.from_arrays(A, A.T)


@pytest.fixture
def rock_paper_scissors():
    A = np.array([[0.0, -1.0, 1.0], [1.0, 0.0, -1.0], [-1.0, 1.0, 0.0]])
    return StrategicGame.from_arrays(A, A.T)


@pytest.fixture
def three_player_game():
    rng = np.random.default_rng(7)
    return StrategicGame.from_arrays(*(rng.normal(size=(2, 3, 2)) for _ in range(3)))


@pytest.fixture
def centipede():
    """Four-move centipede; player 1 moves first, take is action 0."""
    node4 = decision(1, "4", [terminal(8, 32), terminal(64, 16)])
    node3 = decision(0, "3", [terminal(16, 4), node4])
    node2 = decision(1, "2", [terminal(2, 8), node3])
    node1 = decision(0, "1", [terminal(4, 1), node2])
    return ExtensiveGame(node1)


@pytest.fixture
def signaling_game():
    """Chance picks a type, the sender signals, the receiver sees only the signal."""
    def receiver(signal, type_payoffs):
        return decision(1, signal, [terminal(*p) for p in type_payoffs])

    strong = decision(0, "strong", [
        receiver("beer", [(3, 0), (1, 1)]),
        receiver("quiche", [(2, 0), (0, 1)]),
    ])
    weak = decision(0, "weak", [
        receiver("beer", [(2, 1), (0, 0)]),
        receiver("quiche", [(3, 1), (1, 0)]),
    ])
    return ExtensiveGame(chance([0.9, 0.1], [strong, weak]))
