"""Tests for rental_engines.tracer fingerprinting."""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum

from rental_engines.tracer import compute_input_fingerprint, traced_engine


class Color(str, Enum):
    RED = "red"


@dataclass(frozen=True)
class Point:
    x: int
    y: int


class TestFingerprint:
    def test_stable_and_short(self):
        args = {"a": Decimal("1.50"), "b": date(2024, 1, 1)}
        fp = compute_input_fingerprint(("a", "b"), args)
        assert fp == compute_input_fingerprint(("a", "b"), dict(args))
        assert len(fp) == 16

    def test_dict_order_irrelevant(self):
        one = compute_input_fingerprint(("m",), {"m": {"x": 1, "y": 2}})
        two = compute_input_fingerprint(("m",), {"m": {"y": 2, "x": 1}})
        assert one == two

    def test_values_matter(self):
        assert compute_input_fingerprint(("p",), {"p": Point(1, 2)}) != compute_input_fingerprint(
            ("p",), {"p": Point(2, 1)}
        )

    def test_enum_uses_value(self):
        assert compute_input_fingerprint(("c",), {"c": Color.RED}) == compute_input_fingerprint(
            ("c",), {"c": "red"}
        )


class TestTracedEngine:
    def test_positional_and_keyword_calls_fingerprint_alike(self, captured_logs):
        @traced_engine("demo", "1.0", fingerprint_fields=("a", "b"))
        def add(a, b, scale=1):
            return (a + b) * scale

        assert add(1, 2) == 3
        assert add(a=1, b=2) == 3

        traces = [r for r in captured_logs() if r["message"] == "RENTAL_ENGINE_TRACE"]
        assert len(traces) == 2
        assert traces[0]["input_fingerprint"] == traces[1]["input_fingerprint"]
        assert traces[0]["engine_name"] == "demo"
        assert traces[0]["engine_version"] == "1.0"
