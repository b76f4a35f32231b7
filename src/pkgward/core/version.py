"""Version values for package versions and package revisions.

A version string is split on ``.`` into fields, and each field into
alternating numeric and non-numeric runs. Comparison walks the fields
left to right; within a field numeric runs compare numerically and every
other run compares lexically, with numeric runs ordering before
non-numeric ones.

Normalization rules, applied before comparison:

- Trailing empty fields are dropped, so ``"5."`` equals ``"5"``.
- A leading empty field reads as ``0``, so ``".5"`` equals ``"0.5"``.
- Trailing all-zero fields are dropped, so ``"1.0"`` equals ``"1"``.
  An empty field in the middle is kept, so ``"1..0"`` differs from
  both ``"1"`` and ``"1.0.0"``.
- Equal numeric runs with different spellings order by text, so
  ``"1.01"`` sorts before ``"1.1"``.

Every input parses to some value; nothing here raises on odd strings.
The derived sort key is a plain tuple, which makes the ordering a strict
total order.
"""

from __future__ import annotations

import re
from functools import total_ordering
from typing import Union

_RUN_RE = re.compile(r"\d+|\D+")

_RunKey = tuple[int, int, str]
_FieldKey = tuple[_RunKey, ...]

VersionLike = Union["Version", str, int]


def _run_key(run: str) -> _RunKey:
    if run.isdigit():
        return (0, int(run), run)
    return (1, 0, run)


def _is_zero_field(field: str) -> bool:
    return field.isdigit() and int(field) == 0


def _normalize_fields(text: str) -> list[str]:
    fields = text.split(".")
    while fields and fields[-1] == "":
        fields.pop()
    if fields and fields[0] == "" and text.startswith("."):
        fields[0] = "0"
    while fields and _is_zero_field(fields[-1]):
        fields.pop()
    return fields


@total_ordering
class Version:
    """An immutable, totally ordered version value.

    Args:
        value: Version text (``"1.2.3a"``). Integers and None are
            accepted and read as their text form (None reads as ``""``).
    """

    __slots__ = ("_text", "_key")

    def __init__(self, value: VersionLike | None) -> None:
        if isinstance(value, Version):
            text = value._text
        elif value is None:
            text = ""
        else:
            text = str(value).strip()
        self._text = text
        self._key: tuple[_FieldKey, ...] = tuple(
            tuple(_run_key(run) for run in _RUN_RE.findall(field))
            for field in _normalize_fields(text)
        )

    @property
    def key(self) -> tuple[_FieldKey, ...]:
        """The normalized sort key."""
        return self._key

    @property
    def looks_valid(self) -> bool:
        """True when the text begins with a digit.

        Versions failing this check still compare, but package builders
        flag them as suspect.
        """
        return bool(self._text) and self._text[0].isdigit()

    @staticmethod
    def _coerce(other: object) -> Version | None:
        if isinstance(other, Version):
            return other
        if isinstance(other, (str, int)):
            return Version(other)
        return None

    def __eq__(self, other: object) -> bool:
        coerced = self._coerce(other)
        if coerced is None:
            return NotImplemented
        return self._key == coerced._key

    def __lt__(self, other: object) -> bool:
        coerced = self._coerce(other)
        if coerced is None:
            return NotImplemented
        return self._key < coerced._key

    def __hash__(self) -> int:
        return hash(self._key)

    def __str__(self) -> str:
        return self._text

    def __repr__(self) -> str:
        return f"Version({self._text!r})"


def compare_versions(a: VersionLike | None, b: VersionLike | None) -> int:
    """Three-way comparison of two version values: -1, 0 or 1."""
    va, vb = Version(a), Version(b)
    if va == vb:
        return 0
    return -1 if va < vb else 1
