"""Reading FASTA/FASTQ records, batching them, and manipulating reads."""

from __future__ import annotations

import gzip
import os
import re
from dataclasses import dataclass, replace
from itertools import islice
from typing import IO, Iterable, Iterator, Optional, Tuple, TypeVar, Union

GZIP_MAGIC = b"\x1f\x8b"

_COMPLEMENT = str.maketrans("ACGTacgt", "TGCATGCA")
_HEADER_MARKS = (b">", b"@")
_WHITESPACE = re.compile(rb"\s")

T = TypeVar("T")


def reverse_complement(seq: str) -> str:
    """Reverse complement of a nucleotide string; unknown symbols are kept."""
    return seq.translate(_COMPLEMENT)[::-1]


@dataclass(frozen=True)
class Read:
    """A sequencing read as found in a FASTA or FASTQ file."""

    name: str
    seq: str
    comment: str = ""
    qual: Optional[str] = None

    def reverse_complement(self) -> Read:
        """The read on the opposite strand, with the quality string reversed."""
        qual = None if self.qual is None else self.qual[::-1]
        return replace(self, seq=reverse_complement(self.seq), qual=qual)

    def slice(self, start: int, length: int) -> Read:
        """The part of the read of the given length starting at start."""
        end = start + length
        if start < 0 or length < 0 or end > len(self.seq):
            raise IndexError(f"slice [{start}, {end}) outside read of length {len(self.seq)}")
        qual = None if self.qual is None else self.qual[start:end]
        return replace(self, seq=self.seq[start:end], qual=qual)

    def describe(self) -> str:
        """A human-readable, multi-line description of the read."""
        return (
            f"Name:    {self.name}\n"
            f"Comment: {self.comment}\n"
            f"Seq:     {self.seq}\n"
            f"Qual:    {self.qual or ''}"
        )


def is_gzipped(path: Union[str, os.PathLike]) -> bool:
    """Whether the file starts with the gzip magic bytes."""
    with open(path, "rb") as handle:
        return handle.read(2) == GZIP_MAGIC


def file_size(path: Union[str, os.PathLike]) -> int:
    """Size in bytes of an uncompressed file."""
    if is_gzipped(path):
        raise ValueError(f"{os.fspath(path)} is gzipped; its size is unknown")
    return os.path.getsize(path)


def _chomp(line: bytes) -> bytes:
    if line.endswith(b"\n"):
        line = line[:-1]
    if line.endswith(b"\r"):
        line = line[:-1]
    return line


def _text(data: bytes) -> str:
    return data.decode("latin-1")


def _numbered(lines: Iterable[Union[bytes, str]], base: int) -> Iterator[Tuple[int, bytes]]:
    offset = base
    for line in lines:
        if isinstance(line, str):
            line = line.encode("latin-1")
        yield offset, line
        offset += len(line)


def _next_header(lines: Iterator[Tuple[int, bytes]]) -> Optional[Tuple[int, bytes]]:
    for offset, line in lines:
        if line[:1] in _HEADER_MARKS:
            return offset, line
    return None


def _split_header(line: bytes) -> Tuple[str, str]:
    body = _chomp(line[1:])
    match = _WHITESPACE.search(body)
    if match is None:
        return _text(body), ""
    return _text(body[: match.start()]), _text(body[match.end():])


def _records(numbered: Iterable[Tuple[int, bytes]]) -> Iterator[Tuple[int, Read]]:
    lines = iter(numbered)
    header = _next_header(lines)
    while header is not None:
        offset, header_line = header
        name, comment = _split_header(header_line)
        header = None
        seq_parts = []
        has_quality = False
        for line_offset, line in lines:
            mark = line[:1]
            if mark in _HEADER_MARKS:
                header = (line_offset, line)
                break
            if mark == b"+":
                has_quality = True
                break
            seq_parts.append(_chomp(line))
        seq = b"".join(seq_parts)

        qual = None
        if has_quality:
            qual_parts = []
            qual_len = 0
            for _, line in lines:
                chunk = _chomp(line)
                qual_parts.append(chunk)
                qual_len += len(chunk)
                if qual_len >= len(seq):
                    break
            if qual_len != len(seq):
                raise ValueError(f"quality string of read {name!r} does not match its sequence")
            qual = _text(b"".join(qual_parts))
            header = _next_header(lines)

        yield offset, Read(name=name, seq=_text(seq), comment=comment, qual=qual)


def parse_reads(handle: Iterable[Union[bytes, str]]) -> Iterator[Read]:
    """Parse FASTA or FASTQ records from an open file or any iterable of lines."""
    for _, read in _records(_numbered(handle, 0)):
        yield read


def iter_reads(
    path: Union[str, os.PathLike], start: int = 0, end: Optional[int] = None
) -> Iterator[Read]:
    """Reads of a possibly gzipped file whose records start in [start, end).

    Offsets are positions in the uncompressed data.
    """
    if end is not None and start >= end:
        return
    opener = gzip.open if is_gzipped(path) else open
    with opener(path, "rb") as handle:
        stream: IO[bytes] = handle  # type: ignore[assignment]
        stream.seek(start)
        for offset, read in _records(_numbered(stream, start)):
            if end is not None and offset >= end:
                break
            yield read


def batches(reads: Iterable[T], size: int) -> Iterator[list]:
    """Group reads into lists of at most size items."""
    if size < 1:
        raise ValueError("batch size must be positive")
    it = iter(reads)
    while batch := list(islice(it, size)):
        yield batch


def paired_batches(
    mate1: Iterable[T], mate2: Iterable[T], size: int
) -> Iterator[Tuple[list, list]]:
    """Group two mate streams into aligned batches of at most size pairs."""
    if size < 1:
        raise ValueError("batch size must be positive")
    first = iter(mate1)
    second = iter(mate2)
    while True:
        batch1 = list(islice(first, size))
        batch2 = list(islice(second, size))
        if len(batch1) != len(batch2):
            raise ValueError("The paired-end files does not have the same number of sequences!")
        if not batch1:
            return
        yield batch1, batch2