"""Tests for point formatting and the emission sinks."""

import io

import numpy as np

from logit_qre.continuation import QREPoint
from logit_qre.sink import CsvSink, ListSink, format_point


def test_format_point():
    point = QREPoint(1.5, np.array([0.25, 0.75, 1 / 3, 2 / 3]))
    assert format_point(point, "1") == "1,1.500000,0.250000,0.750000,0.333333,0.666667"
    assert format_point(point, "2", num_decimals=2) == "2,1.50,0.25,0.75,0.33,0.67"


def test_csv_sink_writes_lines():
    stream = io.StringIO()
    sink = CsvSink(stream, num_decimals=1)
    sink.emit(QREPoint(0.0, np.array([0.5, 0.5])), "1")
    sink.emit(QREPoint(2.0, np.array([0.9, 0.1])), "3")
    assert stream.getvalue() == "1,0.0,0.5,0.5\n3,2.0,0.9,0.1\n"


def test_list_sink_filters_by_tag():
    sink = ListSink()
    a = QREPoint(0.0, np.array([0.5, 0.5]))
    b = QREPoint(1.0, np.array([0.6, 0.4]))
    sink.emit(a, "1")
    sink.emit(b, "2")
    assert sink.points() == [a]
    assert sink.points("2") == [b]
    assert [tag for tag, _ in sink.records] == ["1", "2"]
