"""Property-based tests for Version ordering laws.

Verifies that Version comparison is a total order consistent with
hashing, and that it agrees with numeric comparison of dotted integer
versions once trailing zero fields are dropped.
"""
from __future__ import annotations

from hypothesis import given
from hypothesis import strategies as st

from pkgward.core.version import Version, compare_versions


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

version_texts = st.text(alphabet="0123456789.abz", max_size=8)
numeric_fields = st.lists(st.integers(min_value=0, max_value=40), min_size=1, max_size=4)


def _dotted(fields: list[int]) -> str:
    return ".".join(str(f) for f in fields)


def _trimmed(fields: list[int]) -> list[int]:
    fields = list(fields)
    while fields and fields[-1] == 0:
        fields.pop()
    return fields


# ---------------------------------------------------------------------------
# Order laws
# ---------------------------------------------------------------------------


class TestTotalOrder:
    @given(a=version_texts, b=version_texts)
    def test_trichotomy(self, a: str, b: str) -> None:
        """Exactly one of a < b, a == b, a > b holds."""
        va, vb = Version(a), Version(b)
        assert [va < vb, va == vb, va > vb].count(True) == 1

    @given(a=version_texts, b=version_texts, c=version_texts)
    def test_transitivity(self, a: str, b: str, c: str) -> None:
        va, vb, vc = sorted([Version(a), Version(b), Version(c)])
        assert va <= vc

    @given(a=version_texts, b=version_texts)
    def test_antisymmetric_compare(self, a: str, b: str) -> None:
        assert compare_versions(a, b) == -compare_versions(b, a)

    @given(a=version_texts, b=version_texts)
    def test_hash_consistent_with_equality(self, a: str, b: str) -> None:
        if Version(a) == Version(b):
            assert hash(Version(a)) == hash(Version(b))


class TestNumericVersions:
    @given(a=numeric_fields, b=numeric_fields)
    def test_matches_integer_comparison(self, a: list[int], b: list[int]) -> None:
        expected = (_trimmed(a) > _trimmed(b)) - (_trimmed(a) < _trimmed(b))
        assert compare_versions(_dotted(a), _dotted(b)) == expected

    @given(fields=numeric_fields, zeros=st.integers(min_value=1, max_value=3))
    def test_trailing_zero_fields_ignored(self, fields: list[int], zeros: int) -> None:
        assert Version(_dotted(fields)) == Version(_dotted(fields) + ".0" * zeros)

    @given(fields=numeric_fields)
    def test_round_trips_through_text(self, fields: list[int]) -> None:
        text = _dotted(fields)
        assert str(Version(text)) == text
        assert Version(Version(text)) == Version(text)
