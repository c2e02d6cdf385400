"""Index of the sequence names in a FASTA/FASTQ collection."""

from __future__ import annotations

import os
import struct
from bisect import bisect_right
from typing import BinaryIO, Iterable, List, Sequence, Tuple, Union

from moni.reads import iter_reads

FILE_EXTENSION = ".idx"

_U64 = struct.Struct("<Q")


def _read_exact(stream: BinaryIO, size: int) -> bytes:
    data = stream.read(size)
    if len(data) != size:
        raise ValueError("truncated sequence index")
    return data


def _read_u64(stream: BinaryIO) -> int:
    return _U64.unpack(_read_exact(stream, _U64.size))[0]


class SeqIdx:
    """Maps positions of a concatenated collection to sequence names.

    ``onsets`` holds the start of every sequence followed by the end of the
    last one; ``w`` is the number of trailing padding characters counted in
    each sequence's span.
    """

    file_extension = FILE_EXTENSION

    def __init__(
        self,
        onsets: Sequence[int] = (0,),
        names: Sequence[str] = (),
        total_length: int = 0,
        w: int = 0,
    ) -> None:
        onsets = list(onsets)
        names = list(names)
        if len(onsets) != len(names) + 1:
            raise ValueError("there must be exactly one more onset than names")
        if onsets[0] != 0:
            raise ValueError("the first onset must be 0")
        if onsets[-1] > total_length:
            raise ValueError("the last onset exceeds the total length")
        if any(a > b for a, b in zip(onsets, onsets[1:])):
            raise ValueError("onsets must be sorted")
        self._onsets: List[int] = onsets
        self._names: List[str] = names
        self.total_length = total_length
        self.w = w

    @classmethod
    def from_fasta(cls, path: Union[str, os.PathLike], w: int) -> SeqIdx:
        """Build the index from the records of a (possibly gzipped) file."""
        onsets = [0]
        names = []
        total = 0
        for read in iter_reads(path):
            total += len(read.seq)
            names.append(read.name)
            onsets.append(total)
        return cls(onsets, names, total, w)

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(self._names)

    @property
    def onsets(self) -> Tuple[int, ...]:
        return tuple(self._onsets)

    def __len__(self) -> int:
        return len(self._names)

    def _rank(self, pos: int) -> int:
        if not 0 <= pos < self.total_length:
            raise IndexError(f"position {pos} outside [0, {self.total_length})")
        return bisect_right(self._onsets, pos)

    def length(self, i: int) -> int:
        """Length of the i-th sequence without its trailing padding."""
        if not 0 <= i < len(self._names):
            raise IndexError(f"sequence {i} does not exist")
        return self._onsets[i + 1] - self._onsets[i] - self.w

    def __getitem__(self, pos: int) -> str:
        """Name of the sequence that position pos belongs to."""
        return self._names[self._rank(pos) - 1]

    def index(self, pos: int) -> Tuple[str, int]:
        """Name of the sequence holding pos and the offset of pos within it."""
        rank = self._rank(pos)
        return self._names[rank - 1], pos - self._onsets[rank - 1]

    def valid(self, pos: int, length: int) -> bool:
        """Whether [pos, pos + length) lies within a single sequence."""
        rank = self._rank(pos)
        return pos + length <= self._onsets[rank]

    def to_sam(self) -> str:
        """SAM header lines describing the reference sequences."""
        return "".join(
            f"@SQ\tSN:{name}\tLN:{self.length(i)}\n" for i, name in enumerate(self._names)
        )

    def serialize(self, out: BinaryIO) -> int:
        """Write the index to a binary stream; returns the bytes written."""
        chunks = [_U64.pack(self.total_length), _U64.pack(self.w)]
        if self.total_length:
            chunks.append(_U64.pack(len(self._onsets)))
            chunks.extend(_U64.pack(onset) for onset in self._onsets)
            chunks.append(_U64.pack(len(self._names)))
            for name in self._names:
                encoded = name.encode("utf-8")
                chunks.append(_U64.pack(len(encoded)))
                chunks.append(encoded)
        data = b"".join(chunks)
        out.write(data)
        return len(data)

    @classmethod
    def load(cls, stream: BinaryIO) -> SeqIdx:
        """Read an index written by serialize."""
        total = _read_u64(stream)
        w = _read_u64(stream)
        if total == 0:
            return cls((0,), (), 0, w)
        onsets = [_read_u64(stream) for _ in range(_read_u64(stream))]
        names = []
        for _ in range(_read_u64(stream)):
            size = _read_u64(stream)
            names.append(_read_exact(stream, size).decode("utf-8"))
        return cls(onsets, names, total, w)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SeqIdx):
            return NotImplemented
        return (
            self._onsets == other._onsets
            and self._names == other._names
            and self.total_length == other.total_length
            and self.w == other.w
        )

    def __repr__(self) -> str:
        return (
            f"SeqIdx(names={self._names!r}, onsets={self._onsets!r}, "
            f"total_length={self.total_length}, w={self.w})"
        )


def _names_of(entries: Iterable[Tuple[str, int]]) -> List[str]:
    return [name for name, _ in entries]