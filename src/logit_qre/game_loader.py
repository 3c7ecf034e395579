"""
Reading games into the package's game representations.

Gambit ``.nfg`` and ``.efg`` files are parsed with pygambit and converted into
:class:`StrategicGame` / :class:`ExtensiveGame`. Parsing never raises: callers
receive a :class:`GameParseResult` carrying either the game or an error message.
"""

import io
import itertools
import json
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Union

import numpy as np
import pygambit as gbt

from .errors import InvalidGame
from .games import ExtensiveGame, Node, StrategicGame, chance, decision, terminal

Game = Union[StrategicGame, ExtensiveGame]


@dataclass
class GameParseResult:
    """Either a parsed game or the reason it could not be read."""
    game: Optional[Game] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.game is not None


def _payoff(outcome, player) -> float:
    # Contingencies without an outcome pay zero. Newer pygambit releases return
    # a falsy proxy instead of None for a missing outcome.
    if not outcome:
        return 0.0
    return float(outcome[player])


def _table_from_pygambit(game) -> StrategicGame:
    players = list(game.players)
    shape = tuple(len(player.strategies) for player in players)
    payoffs = [np.zeros(shape) for _ in players]
    for contingency in itertools.product(*(range(k) for k in shape)):
        outcome = game[contingency]
        for i, player in enumerate(players):
            payoffs[i][contingency] = _payoff(outcome, player)
    return StrategicGame(payoffs)


def _tree_from_pygambit(game) -> ExtensiveGame:
    players = list(game.players)

    def player_index(player) -> int:
        for i, candidate in enumerate(players):
            if candidate == player:
                return i
        raise InvalidGame(f"Unknown player {player.label!r}")

    def infoset_label(player, infoset) -> str:
        for j, candidate in enumerate(player.infosets):
            if candidate == infoset:
                return str(j)
        raise InvalidGame(f"Unknown information set {infoset.label!r}")

    def convert(node, accumulated: np.ndarray) -> Node:
        if node.outcome:
            accumulated = accumulated + np.array([_payoff(node.outcome, p) for p in players])
        if node.is_terminal:
            return terminal(*accumulated)
        children = [convert(child, accumulated) for child in node.children]
        infoset = node.infoset
        if infoset.is_chance:
            return chance([float(action.prob) for action in infoset.actions], children)
        return decision(player_index(node.player), infoset_label(node.player, infoset), children)

    return ExtensiveGame(convert(game.root, np.zeros(len(players))))


def from_pygambit(game) -> Game:
    """Convert a pygambit game into the package representation."""
    if game.is_tree:
        return _tree_from_pygambit(game)
    return _table_from_pygambit(game)


def _read(source, header: str) -> GameParseResult:
    header = header.lstrip()[:3].upper()
    if header == "NFG":
        reader = gbt.read_nfg
    elif header == "EFG":
        reader = gbt.read_efg
    else:
        return GameParseResult(error="Game not in a recognized format")

    try:
        game = reader(source)
    except (ValueError, RuntimeError, OSError) as e:
        return GameParseResult(error=f"Game not in a recognized format: {e}")
    try:
        return GameParseResult(game=from_pygambit(game))
    except InvalidGame as e:
        return GameParseResult(error=str(e))
    except (AttributeError, IndexError, KeyError, TypeError, ValueError) as e:
        return GameParseResult(error=f"Cannot convert game: {e!r}")


def parse_game(text: str) -> GameParseResult:
    """
    Parse the contents of a Gambit ``.nfg`` or ``.efg`` file.

    Args:
        text: File contents, starting with the ``NFG`` or ``EFG`` header

    Returns:
        GameParseResult with ``game`` set on success and ``error`` otherwise
    """
    return _read(io.BytesIO(text.encode("utf-8")), text)


def load_game_file(filepath: Union[str, Path]) -> GameParseResult:
    """Parse a game file; unreadable files are reported in the result."""
    try:
        with open(filepath, 'r') as f:
            header = f.read(64)
    except OSError as e:
        return GameParseResult(error=f"Cannot read {filepath}: {e}")
    return _read(str(filepath), header)


def load_games_from_json(filepath: Union[str, Path]) -> List[StrategicGame]:
    """
    Load a list of two-player strategic games from a JSON file.

    Each entry maps a game id to ``{"row": matrix}`` for a symmetric game (the
    column player's payoffs are the transpose) or to
    ``{"row": matrix, "column": matrix}``.

    Args:
        filepath: Path to the JSON file containing game data

    Returns:
        List of games in file order
    """
    with open(filepath, 'r') as f:
        data = json.load(f)

    games = []
    for game_id, game_data in data.items():
        row = np.array(game_data['row'], dtype=float)
        column = np.array(game_data.get('column', row.T), dtype=float)
        try:
            games.append(StrategicGame.from_arrays(row, column))
        except InvalidGame as e:
            raise InvalidGame(f"Game {game_id}: {e}") from e

    return games
