"""Run-length encoded strings with the rank/select queries used for matching statistics."""

from __future__ import annotations

import itertools
import os
from bisect import bisect_left, bisect_right
from typing import Dict, Iterable, List, Tuple, Union

TERMINATOR = 1
LENGTH_BYTES = 5

Symbol = Union[int, str, bytes]


def _code(c: Symbol) -> int:
    if isinstance(c, int):
        if not 0 <= c < 256:
            raise ValueError(f"symbol {c} outside the byte range")
        return c
    if len(c) != 1:
        raise ValueError("a symbol must be a single character")
    return c[0] if isinstance(c, bytes) else ord(c)


def _as_bytes(data: Union[bytes, bytearray, str, Iterable[int]]) -> bytes:
    if isinstance(data, str):
        return data.encode("latin-1")
    return bytes(data)


def _clip(code: int) -> int:
    return TERMINATOR if code <= TERMINATOR else code


class RunLengthString:
    """A byte string stored as runs, with symbols at or below the terminator mapped to it."""

    def __init__(self, heads: bytes, lengths: Iterable[int]) -> None:
        self._heads = bytes(_clip(c) for c in heads)
        self._lengths = tuple(lengths)
        if len(self._lengths) != len(self._heads):
            raise ValueError("every run needs a head and a length")
        if any(length <= 0 for length in self._lengths):
            raise ValueError("run lengths must be positive")
        self._starts: List[int] = [0, *itertools.accumulate(self._lengths)]
        self._runs_of: Dict[int, List[int]] = {}
        self._cumulative: Dict[int, List[int]] = {}
        for run, (head, length) in enumerate(zip(self._heads, self._lengths)):
            self._runs_of.setdefault(head, []).append(run)
            counts = self._cumulative.setdefault(head, [])
            counts.append((counts[-1] if counts else 0) + length)

    @classmethod
    def from_text(cls, text: Union[bytes, bytearray, str]) -> RunLengthString:
        """Encode a plain string."""
        data = bytes(_clip(c) for c in _as_bytes(text))
        heads = bytearray()
        lengths = []
        for head, group in itertools.groupby(data):
            heads.append(head)
            lengths.append(sum(1 for _ in group))
        return cls(bytes(heads), lengths)

    @classmethod
    def from_runs(
        cls, heads: Union[bytes, bytearray, str], lengths: Iterable[int]
    ) -> RunLengthString:
        """Build from run heads and their lengths."""
        return cls(_as_bytes(heads), lengths)

    @classmethod
    def from_run_files(
        cls, heads_path: Union[str, os.PathLike], lengths_path: Union[str, os.PathLike]
    ) -> RunLengthString:
        """Read run heads (one byte each) and 5-byte little-endian run lengths."""
        with open(heads_path, "rb") as handle:
            heads = handle.read()
        with open(lengths_path, "rb") as handle:
            raw = handle.read()
        if len(raw) < LENGTH_BYTES * len(heads):
            raise ValueError("the lengths file holds fewer runs than the heads file")
        lengths = [
            int.from_bytes(raw[i * LENGTH_BYTES:(i + 1) * LENGTH_BYTES], "little")
            for i in range(len(heads))
        ]
        return cls(heads, lengths)

    @property
    def heads(self) -> bytes:
        return self._heads

    @property
    def run_lengths(self) -> Tuple[int, ...]:
        return self._lengths

    def __len__(self) -> int:
        return self._starts[-1]

    def __getitem__(self, i: int) -> int:
        return self._heads[self.run_of_position(i)]

    def __iter__(self):
        for head, length in zip(self._heads, self._lengths):
            yield from itertools.repeat(head, length)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RunLengthString):
            return NotImplemented
        return self._heads == other._heads and self._lengths == other._lengths

    def __repr__(self) -> str:
        return f"RunLengthString(heads={self._heads!r}, lengths={self._lengths!r})"

    def number_of_runs(self) -> int:
        return len(self._heads)

    def number_of_letter(self, c: Symbol) -> int:
        """Occurrences of c in the string."""
        counts = self._cumulative.get(_code(c))
        return counts[-1] if counts else 0

    def number_of_runs_of_letter(self, c: Symbol) -> int:
        return len(self._runs_of.get(_code(c), ()))

    def _check_run(self, i: int) -> None:
        if not 0 <= i < len(self._heads):
            raise IndexError(f"run {i} outside [0, {len(self._heads)})")

    def head_of(self, i: int) -> int:
        """Head symbol of the i-th run."""
        self._check_run(i)
        return self._heads[i]

    def rank(self, i: int, c: Symbol) -> int:
        """Occurrences of c in positions [0, i)."""
        code = _code(c)
        if not 0 <= i <= len(self):
            raise IndexError(f"position {i} outside [0, {len(self)}]")
        if i == len(self):
            return self.number_of_letter(code)
        run = self.run_of_position(i)
        before = self.head_rank(run, code)
        if self._heads[run] == code:
            before += i - self._starts[run]
        return before

    def run_of_position(self, pos: int) -> int:
        """Index of the run holding position pos."""
        if not 0 <= pos < len(self):
            raise IndexError(f"position {pos} outside [0, {len(self)})")
        return bisect_right(self._starts, pos) - 1

    def run_head_rank(self, i: int, c: Symbol) -> int:
        """Runs of c among the first i runs."""
        self._check_run(i)
        return bisect_left(self._runs_of.get(_code(c), []), i)

    def head_rank(self, i: int, c: Symbol) -> int:
        """Occurrences of c before the first character of run i."""
        return self.run_and_head_rank(i, c)[1]

    def run_and_head_rank(self, i: int, c: Symbol) -> Tuple[int, int]:
        """Both run_head_rank and head_rank of run i for c."""
        code = _code(c)
        j = self.run_head_rank(i, code)
        if j < 1:
            return j, j
        return j, self._cumulative[code][j - 1]

    def run_head_select(self, i: int, c: Symbol) -> int:
        """Index of the i-th run (1-based) whose head is c."""
        runs = self._runs_of.get(_code(c), [])
        if not 1 <= i <= len(runs):
            raise IndexError(f"there is no run number {i} of the symbol")
        return runs[i - 1]