"""Command-line entry point: trace a logit branch of a game read from a file or stdin."""

from __future__ import annotations

import argparse
import logging
import sys

from . import __version__
from .config import TraceConfig
from .continuation import LogitBranchTracer
from .errors import ConfigError, QREError
from .game_loader import load_game_file, parse_game
from .logit_map import logit_map_for
from .mle import MLEObserver, read_frequencies
from .sink import CsvSink

logger = logging.getLogger(__name__)


class _UsageError(Exception):
    pass


class _ArgumentParser(argparse.ArgumentParser):
    """Argument parser whose errors map to exit status 1."""

    def error(self, message: str) -> None:
        self.print_usage(sys.stderr)
        sys.stderr.write(f"{self.prog}: error: {message}\n")
        raise _UsageError(message)


def print_banner(stream) -> None:
    stream.write("Compute a branch of the logit equilibrium correspondence\n")
    stream.write(f"logit-qre version {__version__}\n\n")


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="logit-qre",
        description="Accepts a game on standard input (or GAME_FILE) and prints "
                    "points of the principal logit QRE branch.",
        add_help=False,
    )
    parser.add_argument("game_file", nargs="?", default=None,
                        help="Gambit .nfg or .efg file (default: standard input)")
    parser.add_argument("-d", dest="num_decimals", type=int, default=6, metavar="DECIMALS",
                        help="show equilibria as floating point with DECIMALS digits")
    parser.add_argument("-s", dest="step_start", type=float, default=0.03, metavar="STEP",
                        help="initial stepsize (default is .03)")
    parser.add_argument("-a", dest="max_decel", type=float, default=1.1, metavar="ACCEL",
                        help="maximum acceleration (default is 1.1)")
    parser.add_argument("-m", dest="max_lambda", type=float, default=1_000_000.0,
                        metavar="MAXLAMBDA", help="stop when reaching MAXLAMBDA (default is 1000000)")
    parser.add_argument("-e", dest="terminal_only", action="store_true",
                        help="print only the terminal equilibrium (default is the entire branch)")
    parser.add_argument("-S", dest="use_strategic", action="store_true",
                        help="use the strategic form even for extensive games")
    parser.add_argument("-L", dest="mle_file", default=None, metavar="FILE",
                        help="find the maximum likelihood point for observed frequencies in FILE "
                             "(strategic form only; use -S for extensive games)")
    parser.add_argument("-q", dest="quiet", action="store_true",
                        help="quiet mode (suppresses banner)")
    parser.add_argument("-v", dest="verbose", action="store_true",
                        help="log tracing diagnostics to standard error")
    parser.add_argument("-h", dest="help", action="store_true",
                        help="print this help message")
    return parser


def run(game, config: TraceConfig, stream=None) -> int:
    """Trace ``game`` with ``config``, writing points to ``stream``."""
    logit_map = logit_map_for(game, config.use_strategic)
    sink = CsvSink(stream, config.num_decimals)
    observer = None
    if config.mle_file is not None and logit_map.representation == "agent":
        logger.warning("Likelihood estimation needs the strategic form; ignoring %s (use -S)",
                       config.mle_file)
    elif config.mle_file is not None:
        frequencies = read_frequencies(config.mle_file, logit_map.dimension)
        observer = MLEObserver(logit_map, frequencies, config)

    tracer = LogitBranchTracer(logit_map, config, sink=sink, observer=observer)
    result = tracer.trace()
    result.raise_for_status()
    return 0


def main(argv=None) -> int:
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except _UsageError:
        return 1

    if args.help:
        print_banner(sys.stderr)
        parser.print_help(sys.stderr)
        return 1

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )
    if not args.quiet:
        print_banner(sys.stderr)

    try:
        config = TraceConfig(
            num_decimals=args.num_decimals,
            step_start=args.step_start,
            max_decel=args.max_decel,
            max_lambda=args.max_lambda,
            full_graph=not args.terminal_only,
            use_strategic=args.use_strategic,
            mle_file=args.mle_file,
        )
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        if args.game_file is not None:
            parsed = load_game_file(args.game_file)
        else:
            parsed = parse_game(sys.stdin.read())
        if not parsed.ok:
            print(f"Error: {parsed.error}", file=sys.stderr)
            return 1
        return run(parsed.game, config, sys.stdout)
    except QREError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except Exception:
        logger.debug("Internal error", exc_info=True)
        print("Error: An internal error occurred.", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
