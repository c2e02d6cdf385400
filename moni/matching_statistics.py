"""Matching statistics of reads against an indexed reference."""

from __future__ import annotations

import argparse
import logging
import os
import struct
import sys
import time
from concurrent.futures import ThreadPoolExecutor
from typing import BinaryIO, Iterator, List, Optional, Sequence, Tuple, Union

from moni.ms_pointers import MsPointers
from moni.reads import Read, file_size, is_gzipped, iter_reads

log = logging.getLogger(__name__)

TMP_SUFFIX = ".ms.tmp.out"
DEFAULT_MIN_LEN = 25
DEFAULT_THREADS = 1

_U64 = struct.Struct("<Q")

PathLike = Union[str, os.PathLike]
Record = Tuple[str, Tuple[int, ...], Tuple[int, ...]]


def _as_bytes(seq: Union[str, bytes, bytearray]) -> bytes:
    if isinstance(seq, str):
        return seq.encode("latin-1")
    return bytes(seq)


class MatchingStatistics:
    """Pointers and lengths of the matching statistics of reads against a text.

    ``index`` answers pointer queries (an :class:`MsPointers`) and ``text`` is
    the reference it was built from, used to measure the match lengths.
    """

    def __init__(self, index, text: Union[str, bytes, bytearray]) -> None:
        self.index = index
        self.text = _as_bytes(text)

    @classmethod
    def from_prefix(cls, prefix: PathLike) -> MatchingStatistics:
        """Load the index from prefix + '.ms' and the reference text from prefix."""
        prefix = os.fspath(prefix)
        start = time.perf_counter()
        with open(prefix + MsPointers.file_extension, "rb") as handle:
            index = MsPointers.load(handle)
        log.info("Matching statistics index loading complete")
        log.info("Elapsed time (s): %s", time.perf_counter() - start)

        start = time.perf_counter()
        with open(prefix, "rb") as handle:
            text = handle.read()
        log.info("Random access loading complete")
        log.info("Elapsed time (s): %s", time.perf_counter() - start)
        return cls(index, text)

    def compute(self, seq: Union[str, bytes, bytearray]) -> Tuple[List[int], List[int]]:
        """Matching statistics pointers and lengths of every position of seq."""
        query = _as_bytes(seq)
        pointers = list(self.index.query(query))
        text = self.text
        n = len(text)
        m = len(query)
        lengths = []
        l = 0
        previous: Optional[int] = None
        for i, pos in enumerate(pointers):
            if previous is None or pos != previous + 1:
                while i + l < m and pos + l < n and query[i + l] == text[pos + l]:
                    l += 1
            lengths.append(l)
            l = max(l - 1, 0)
            previous = pos
        return pointers, lengths

    def write(self, read: Read, out: BinaryIO) -> None:
        """Append the read's name, pointers and lengths to out in binary form."""
        pointers, lengths = self.compute(read.seq)
        name = read.name.encode("latin-1")
        q = len(pointers)
        values = struct.Struct(f"<{q}Q")
        out.write(_U64.pack(len(name)))
        out.write(name)
        out.write(_U64.pack(q))
        out.write(values.pack(*pointers))
        out.write(values.pack(*lengths))


def next_start_fastq(handle: BinaryIO) -> int:
    """Offset of the first FASTQ record starting at or after the handle's position."""
    if handle.tell() == 0 and handle.read(1) == b"@":
        return 0
    handle.seek(max(handle.tell() - 1, 0))

    window = []
    for _ in range(4):
        while True:
            c = handle.read(1)
            if not c or c == b"\n":
                break
        if not c:
            return handle.tell()
        c = handle.read(1)
        if not c:
            return handle.tell()
        window.append((c, handle.tell() - 1))

    for i in range(2):
        if window[i][0] == b"@" and window[i + 2][0] == b"+":
            return window[i][1]
        if window[i][0] == b"+" and window[i + 2][0] == b"@":
            return window[i + 2][1]
    return handle.tell()


def split_fastq(path: PathLike, n_threads: int) -> List[int]:
    """Split an uncompressed FASTQ file into n_threads ranges at record starts.

    Returns n_threads + 1 offsets; range i is [starts[i], starts[i + 1]).
    """
    if n_threads < 1:
        raise ValueError("the number of threads must be positive")
    size = file_size(path)
    starts = []
    with open(path, "rb") as handle:
        for i in range(n_threads + 1):
            handle.seek(size * i // n_threads)
            starts.append(next_start_fastq(handle))
    return starts


def _read_exact(stream: BinaryIO, size: int) -> bytes:
    data = stream.read(size)
    if len(data) != size:
        raise ValueError("truncated matching statistics record")
    return data


def read_records(stream: BinaryIO) -> Iterator[Record]:
    """Records (name, pointers, lengths) written by MatchingStatistics.write."""
    while True:
        head = stream.read(_U64.size)
        if not head:
            return
        if len(head) != _U64.size:
            raise ValueError("truncated matching statistics record")
        (name_len,) = _U64.unpack(head)
        name = _read_exact(stream, name_len).decode("latin-1")
        (q,) = _U64.unpack(_read_exact(stream, _U64.size))
        values = struct.Struct(f"<{q}Q")
        pointers = values.unpack(_read_exact(stream, values.size))
        lengths = values.unpack(_read_exact(stream, values.size))
        yield name, pointers, lengths


def _values_line(values: Sequence[int]) -> str:
    return "".join(f"{v} " for v in values) + "\n"


def write_plain_output(tmp_paths: Sequence[PathLike], prefix: PathLike) -> int:
    """Convert the temporary binary files to prefix.pointers and prefix.lengths.

    The temporary files are removed. Returns the number of sequences written.
    """
    prefix = os.fspath(prefix)
    n_seq = 0
    with open(prefix + ".pointers", "w") as f_pointers, open(
        prefix + ".lengths", "w"
    ) as f_lengths:
        for path in tmp_paths:
            with open(path, "rb") as stream:
                for name, pointers, lengths in read_records(stream):
                    f_pointers.write(f">{name}\n")
                    f_lengths.write(f">{name}\n")
                    f_pointers.write(_values_line(pointers))
                    f_lengths.write(_values_line(lengths))
                    n_seq += 1
            os.remove(path)
    return n_seq


def _process(
    ms: MatchingStatistics,
    patterns: str,
    tmp_path: str,
    start: int,
    end: Optional[int],
) -> None:
    with open(tmp_path, "wb") as out:
        for read in iter_reads(patterns, start, end):
            ms.write(read, out)


def run(
    ms: MatchingStatistics,
    patterns: PathLike,
    output: PathLike,
    threads: int = DEFAULT_THREADS,
) -> int:
    """Compute the matching statistics of every read and write the plain output.

    Returns the number of reads processed.
    """
    if threads < 1:
        raise ValueError("the number of threads must be positive")
    patterns = os.fspath(patterns)
    output = os.fspath(output)
    if is_gzipped(patterns):
        log.info("The input is gzipped - forcing single thread matching statistics.")
        threads = 1

    tmp_paths = [f"{output}_{i}{TMP_SUFFIX}" for i in range(threads)]
    start = time.perf_counter()
    if threads == 1:
        _process(ms, patterns, tmp_paths[0], 0, None)
    else:
        starts = split_fastq(patterns, threads)
        with ThreadPoolExecutor(max_workers=threads) as pool:
            futures = [
                pool.submit(_process, ms, patterns, tmp, starts[i], starts[i + 1])
                for i, tmp in enumerate(tmp_paths)
            ]
            for future in futures:
                future.result()
    log.info("Elapsed time (s): %s", time.perf_counter() - start)

    log.info("Printing plain output")
    start = time.perf_counter()
    n_seq = write_plain_output(tmp_paths, output)
    log.info("Elapsed time (s): %s", time.perf_counter() - start)
    return n_seq


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse the command line."""
    parser = argparse.ArgumentParser(
        prog="moni-ms",
        description=(
            "Computes the matching statistics of the reads in the pattern "
            "against the reference index in infile."
        ),
    )
    parser.add_argument("infile", help="reference index prefix")
    parser.add_argument("-p", dest="patterns", required=True, help="path to patterns file")
    parser.add_argument("-o", dest="output", default="", help="output file prefix")
    parser.add_argument(
        "-l", dest="length", type=int, default=DEFAULT_MIN_LEN,
        help=f"minimum MEM length (def. {DEFAULT_MIN_LEN})",
    )
    parser.add_argument(
        "-t", dest="threads", type=int, default=DEFAULT_THREADS,
        help=f"number of threads (def. {DEFAULT_THREADS})",
    )
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Command-line entry point."""
    args = parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    try:
        ms = MatchingStatistics.from_prefix(args.infile)
        output = args.output or f"{args.patterns}_{os.path.basename(args.infile)}"
        run(ms, args.patterns, output, args.threads)
    except (OSError, ValueError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    return 0