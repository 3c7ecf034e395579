"""
Logit quantal response equilibrium branch tracing.

This package follows the principal branch of the logit QRE correspondence of a
finite game, in strategic or agent form, from the centroid at λ = 0 toward
large λ with a predictor-corrector path follower.
"""

__version__ = "0.2.0"

from .config import TraceConfig
from .continuation import LogitBranchTracer, NewtonCorrector, QREPoint, TraceResult, TraceStatus
from .errors import (
    ConfigError,
    InvalidFrequencies,
    InvalidGame,
    OracleFailure,
    PositivityLoss,
    QREError,
    SingularSystem,
    StepUnderflow,
)
from .game_loader import GameParseResult, load_game_file, load_games_from_json, parse_game
from .games import ExtensiveGame, StrategicGame, chance, decision, terminal
from .logit_map import AgentLogitMap, LogitMap, StrategicLogitMap, logit_map_for
from .mle import MLEObserver, read_frequencies
from .oracle import AgentPayoffOracle, BlockLayout, StrategicPayoffOracle
from .plotter import plot_branch
from .sink import CsvSink, ListSink, format_point

__all__ = [
    "TraceConfig",
    "LogitBranchTracer",
    "NewtonCorrector",
    "QREPoint",
    "TraceResult",
    "TraceStatus",
    "ConfigError",
    "InvalidFrequencies",
    "InvalidGame",
    "OracleFailure",
    "PositivityLoss",
    "QREError",
    "SingularSystem",
    "StepUnderflow",
    "GameParseResult",
    "load_game_file",
    "load_games_from_json",
    "parse_game",
    "ExtensiveGame",
    "StrategicGame",
    "chance",
    "decision",
    "terminal",
    "AgentLogitMap",
    "LogitMap",
    "StrategicLogitMap",
    "logit_map_for",
    "MLEObserver",
    "read_frequencies",
    "AgentPayoffOracle",
    "BlockLayout",
    "StrategicPayoffOracle",
    "plot_branch",
    "CsvSink",
    "ListSink",
    "format_point",
]
