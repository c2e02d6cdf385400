"""Matching statistics pointers from a run-length BWT, SA samples and thresholds."""

from __future__ import annotations

import itertools
import os
import struct
from typing import BinaryIO, Iterable, List, Sequence, Tuple, Union

from moni.rle_string import RunLengthString

SSA_BYTES = 5
ALPHABET_SIZE = 256
FILE_EXTENSION = ".ms"

_U64 = struct.Struct("<Q")

Pattern = Union[str, bytes, bytearray, Iterable[int]]
Symbol = Union[int, str, bytes]


def _codes(pattern: Pattern) -> bytes:
    if isinstance(pattern, str):
        return pattern.encode("latin-1")
    return bytes(pattern)


def _symbol(c: Symbol) -> int:
    if isinstance(c, int):
        if not 0 <= c < ALPHABET_SIZE:
            raise ValueError(f"symbol {c} outside the byte range")
        return c
    if len(c) != 1:
        raise ValueError("a symbol must be a single character")
    return c[0] if isinstance(c, bytes) else ord(c)


def _read_exact(stream: BinaryIO, size: int) -> bytes:
    data = stream.read(size)
    if len(data) != size:
        raise ValueError("truncated matching statistics index")
    return data


def _read_u64s(stream: BinaryIO, count: int) -> Tuple[int, ...]:
    return struct.unpack(f"<{count}Q", _read_exact(stream, 8 * count))


def read_samples(path: Union[str, os.PathLike], r: int, n: int) -> List[int]:
    """Read r suffix-array samples stored as pairs of 5-byte little-endian integers.

    Each pair holds a BWT position and a suffix-array value; the sample kept is
    the text position preceding that suffix.
    """
    size = os.path.getsize(path)
    if size % SSA_BYTES != 0:
        raise ValueError(f"invalid file {os.fspath(path)}")
    pair_bytes = 2 * SSA_BYTES
    if size // pair_bytes != r or size % pair_bytes != 0:
        raise ValueError(
            f"{os.fspath(path)} holds {size // pair_bytes} samples, expected {r}"
        )
    with open(path, "rb") as handle:
        data = handle.read()
    view = memoryview(data)
    samples = []
    for offset in range(0, len(data), pair_bytes):
        right = int.from_bytes(view[offset + SSA_BYTES:offset + pair_bytes], "little")
        samples.append(right - 1 if right else n - 1)
    return samples


def build_f(bwt: RunLengthString) -> List[int]:
    """The F column: for every byte value, the number of smaller symbols in the BWT."""
    counts = [0] * ALPHABET_SIZE
    for head, length in zip(bwt.heads, bwt.run_lengths):
        counts[head] += length
    return [0, *itertools.accumulate(counts[:-1])]


class MsPointers:
    """Index answering matching statistics pointer queries.

    ``thresholds`` holds one BWT position per run: for a run of symbol c that is
    not the first run of c, rows at or after the threshold jump down to it
    while earlier rows jump up to the previous run of c.
    """

    file_extension = FILE_EXTENSION

    def __init__(
        self,
        bwt: RunLengthString,
        samples_start: Sequence[int],
        samples_last: Sequence[int],
        thresholds: Sequence[int],
    ) -> None:
        r = bwt.number_of_runs()
        if r == 0:
            raise ValueError("the BWT is empty")
        self.bwt = bwt
        self.samples_start: Tuple[int, ...] = tuple(samples_start)
        self.samples_last: Tuple[int, ...] = tuple(samples_last)
        self.thresholds: Tuple[int, ...] = tuple(thresholds)
        for label, values in (
            ("samples_start", self.samples_start),
            ("samples_last", self.samples_last),
            ("thresholds", self.thresholds),
        ):
            if len(values) != r:
                raise ValueError(f"{label} has {len(values)} entries, expected {r}")
        self.f = build_f(bwt)

    @classmethod
    def from_files(
        cls,
        prefix: Union[str, os.PathLike],
        thresholds: Sequence[int],
        rle: bool = False,
    ) -> MsPointers:
        """Build from prefix.bwt (or its .heads/.len run files) and the .ssa/.esa samples."""
        prefix = os.fspath(prefix)
        bwt_path = prefix + ".bwt"
        if rle:
            bwt = RunLengthString.from_run_files(bwt_path + ".heads", bwt_path + ".len")
        else:
            with open(bwt_path, "rb") as handle:
                bwt = RunLengthString.from_text(handle.read())
        r, n = bwt.number_of_runs(), len(bwt)
        return cls(
            bwt,
            read_samples(prefix + ".ssa", r, n),
            read_samples(prefix + ".esa", r, n),
            thresholds,
        )

    def lf(self, i: int, c: Symbol) -> int:
        """LF mapping: rank of c followed by the suffix at row i."""
        code = _symbol(c)
        return self.f[code] + self.bwt.rank(i, code)

    def get_last_run_sample(self) -> int:
        """Suffix-array value of the last BWT row."""
        return (self.samples_last[-1] + 1) % len(self.bwt)

    def query(self, pattern: Pattern) -> List[int]:
        """Matching statistics pointers of every position of the pattern."""
        n = len(self.bwt)
        pos = n - 1
        sample = self.get_last_run_sample()
        pointers = []
        for c in reversed(_codes(pattern)):
            n_c = self.bwt.number_of_letter(c)
            if n_c == 0:
                sample = 0
                pos = self.lf(pos, c)
            elif pos < n and self.bwt[pos] == c:
                sample = (sample - 1) % n
                pos = self.lf(pos, c)
            else:
                pos, sample = self._reposition(pos, c, n_c)
            pointers.append(sample)
        pointers.reverse()
        return pointers

    def _reposition(self, pos: int, c: int, n_c: int) -> Tuple[int, int]:
        if pos < len(self.bwt):
            runs_before, chars_before = self.bwt.run_and_head_rank(
                self.bwt.run_of_position(pos), c
            )
        else:
            runs_before, chars_before = self.bwt.number_of_runs_of_letter(c), n_c
        if chars_before < n_c:
            next_run = self.bwt.run_head_select(runs_before + 1, c)
            if runs_before == 0 or pos >= self.thresholds[next_run]:
                return self.f[c] + chars_before, self.samples_start[next_run]
        prev_run = self.bwt.run_head_select(runs_before, c)
        return self.f[c] + chars_before - 1, self.samples_last[prev_run]

    def save(self, out: BinaryIO) -> int:
        """Write the index to a binary stream; returns the bytes written."""
        r = self.bwt.number_of_runs()
        pack = struct.Struct(f"<{r}Q").pack
        data = b"".join(
            (
                _U64.pack(r),
                self.bwt.heads,
                pack(*self.bwt.run_lengths),
                pack(*self.samples_start),
                pack(*self.samples_last),
                pack(*self.thresholds),
            )
        )
        out.write(data)
        return len(data)

    @classmethod
    def load(cls, stream: BinaryIO) -> MsPointers:
        """Read an index written by save."""
        (r,) = _read_u64s(stream, 1)
        heads = _read_exact(stream, r)
        lengths = _read_u64s(stream, r)
        samples_start = _read_u64s(stream, r)
        samples_last = _read_u64s(stream, r)
        thresholds = _read_u64s(stream, r)
        return cls(RunLengthString.from_runs(heads, lengths), samples_start, samples_last, thresholds)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MsPointers):
            return NotImplemented
        return (
            self.bwt == other.bwt
            and self.samples_start == other.samples_start
            and self.samples_last == other.samples_last
            and self.thresholds == other.thresholds
        )

    def __repr__(self) -> str:
        return f"MsPointers(n={len(self.bwt)}, r={self.bwt.number_of_runs()})"