"""Tests for safe navigation and lenient parsing helpers."""

from __future__ import annotations

from types import SimpleNamespace

import pytest

from tubegate.translator.parsing import dig, int_of, parse_count, parse_duration, text_of


class Exploding:
    @property
    def title(self) -> str:
        raise RuntimeError("boom")


class TestDig:
    def test_mixed_mapping_attribute_index(self) -> None:
        obj = {"a": SimpleNamespace(b=[{"c": 1}])}
        assert dig(obj, "a", "b", 0, "c") == 1

    def test_missing_step_yields_default(self) -> None:
        assert dig({"a": None}, "a", "b") is None
        assert dig({}, "a", 0, "b", default="") == ""

    def test_index_out_of_range(self) -> None:
        assert dig([1], 5) is None
        assert dig("text", 0) is None

    def test_raising_property_yields_default(self) -> None:
        assert dig(Exploding(), "title", default="x") == "x"


class TestText:
    def test_plain_and_node(self) -> None:
        assert text_of("hi") == "hi"
        assert text_of({"text": "hi"}) == "hi"
        assert text_of(SimpleNamespace(content="c")) == "c"

    @pytest.mark.parametrize("value", [None, 1, True, [], {"text": 3}])
    def test_non_text(self, value: object) -> None:
        assert text_of(value) == ""


class TestNumbers:
    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("1.2M views", 1_200_000),
            ("3,456 views", 3456),
            ("15K", 15_000),
            ("2B", 2_000_000_000),
            ("1.5萬次觀看", 15_000),
            ("3億", 300_000_000),
            ("3 months ago", 3),
            ("No views", 0),
            ("", 0),
            ("9" * 400 + " views", 0),
            ("9" * 400 + "B", 0),
        ],
    )
    def test_parse_count(self, text: str, expected: int) -> None:
        assert parse_count(text) == expected

    def test_parse_count_non_string(self) -> None:
        assert parse_count(None) == 0
        assert parse_count(12) == 0

    @pytest.mark.parametrize(
        ("text", "expected"),
        [("4:13", 253), ("1:02:03", 3723), ("LIVE", 0), ("1:2:3:4", 0), ("", 0), (None, 0)],
    )
    def test_parse_duration(self, text: object, expected: int) -> None:
        assert parse_duration(text) == expected

    def test_int_of(self) -> None:
        assert int_of(5) == 5
        assert int_of(2.9) == 2
        assert int_of(float("nan")) == 0
        assert int_of("12") == 12
        assert int_of(True) == 0
        assert int_of(None) == 0
