"""Destinations for points emitted while tracing."""

import sys
from typing import List, TextIO, Tuple

from .continuation import QREPoint


def format_point(point: QREPoint, tag: str, num_decimals: int = 6) -> str:
    """``<tag>,<λ>,<x_1>,...,<x_n>`` with fixed-point numbers."""
    fields = [tag, f"{point.lambda_val:.{num_decimals}f}"]
    fields.extend(f"{p:.{num_decimals}f}" for p in point.profile)
    return ",".join(fields)


class CsvSink:
    """Writes one comma-separated line per emitted point."""

    def __init__(self, stream: TextIO = None, num_decimals: int = 6):
        self.stream = stream if stream is not None else sys.stdout
        self.num_decimals = num_decimals

    def emit(self, point: QREPoint, tag: str) -> None:
        self.stream.write(format_point(point, tag, self.num_decimals) + "\n")


class ListSink:
    """Keeps emitted points in memory, in emission order."""

    def __init__(self):
        self.records: List[Tuple[str, QREPoint]] = []

    def emit(self, point: QREPoint, tag: str) -> None:
        self.records.append((tag, point))

    def points(self, tag: str = "1") -> List[QREPoint]:
        return [point for t, point in self.records if t == tag]
