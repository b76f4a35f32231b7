"""Tests for pkgward.core.version."""

from __future__ import annotations

import pytest

from pkgward.core.version import Version, compare_versions


class TestEquality:
    """Versions that normalize to the same value compare equal."""

    @pytest.mark.parametrize(
        ("a", "b"),
        [
            ("1", "1.0"),
            (".5", "0.5"),
            ("5.", "5"),
            ("5.", "5.0"),
            ("1.0.0", "1"),
        ],
    )
    def test_equal(self, a: str, b: str) -> None:
        assert Version(a) == Version(b)
        assert hash(Version(a)) == hash(Version(b))

    def test_integer_coercion(self) -> None:
        assert Version("0") == 0
        assert Version("3") == 3

    @pytest.mark.parametrize(
        ("a", "b"),
        [
            ("1..0", "1"),
            ("1..0", "1.0"),
            ("1..0", "1.0.0"),
            ("1.9a.2", "1.9.a.2"),
        ],
    )
    def test_not_equal(self, a: str, b: str) -> None:
        assert Version(a) != Version(b)


class TestOrdering:
    """Segment-wise ordering of version strings."""

    @pytest.mark.parametrize(
        ("lower", "higher"),
        [
            ("1", "1.1"),
            ("1.01", "1.1"),
            ("1.009", "1.010"),
            ("1.0", "2.0.0"),
            ("2.5", "2.5.1"),
            ("2.5.1", "2.6"),
            ("2.9", "2.10"),
            (".5", "5"),
            ("a", "b"),
            ("1.0a", "1.0b"),
            ("1.0", "1.0b"),
            ("1.0.a", "1.0.b"),
            ("1.9a", "1.10b"),
            ("1.9a.2", "1.10b.1"),
        ],
    )
    def test_less_than(self, lower: str, higher: str) -> None:
        assert Version(lower) < Version(higher)
        assert Version(higher) > Version(lower)
        assert compare_versions(lower, higher) == -1
        assert compare_versions(higher, lower) == 1

    def test_mixed_segments_do_not_raise(self) -> None:
        """Numeric and alphabetic segments compare without errors."""
        assert Version("1.a") != Version("1.1")
        assert compare_versions("1.a", "1.1") in (-1, 1)

    def test_sorting(self) -> None:
        versions = ["2.10", "2.9", "1.0b", "1.0", "10"]
        assert [str(v) for v in sorted(Version(v) for v in versions)] == [
            "1.0", "1.0b", "2.9", "2.10", "10",
        ]


class TestMiscellaneous:
    def test_none_reads_as_empty(self) -> None:
        assert Version(None) == Version("")
        assert Version(None) < Version("0.1")

    def test_looks_valid(self) -> None:
        assert Version("1.0").looks_valid
        assert not Version("v1.0").looks_valid
        assert not Version("").looks_valid

    def test_comparison_with_unrelated_type(self) -> None:
        assert Version("1.0") != object()
        with pytest.raises(TypeError):
            _ = Version("1.0") < object()

    def test_str_and_repr(self) -> None:
        assert str(Version(" 1.2 ")) == "1.2"
        assert repr(Version("1.2")) == "Version('1.2')"
