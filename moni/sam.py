"""SAM output for local alignments of reads against an indexed reference."""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import List, TextIO, Union

from moni.reads import Read
from moni.seqidx import SeqIdx

SAM_VERSION_LINE = "@HD VN:1.6 SO:unknown\n"
PROGRAM_LINE = "@PG ID:moni PN:moni VN:0.1.0\n"
UNMAPPED_FIELDS = "4\t*\t0\t255\t*\t*\t0\t0\t*\t*\n"
MAX_MAPQ = 254
AMBIGUOUS = 4
DEFAULT_MATCH = 2
DEFAULT_MISMATCH = 2

_NT4 = bytes(
    {ord("A"): 0, ord("C"): 1, ord("G"): 2, ord("T"): 3,
     ord("a"): 0, ord("c"): 1, ord("g"): 2, ord("t"): 3}.get(c, AMBIGUOUS)
    for c in range(256)
)


@dataclass(frozen=True)
class LocalAlignment:
    """Result of a local alignment of a query against a reference window.

    ``tb``/``te`` and ``qb``/``qe`` are the reference and query begin/end
    positions; ``score2`` is the second-best score and ``te2`` its end.
    """

    score: int
    score2: int = 0
    tb: int = 0
    te: int = 0
    qb: int = 0
    qe: int = 0
    te2: int = 0

    def shifted(self, offset: int) -> LocalAlignment:
        """The alignment with its reference coordinates moved by offset."""
        return replace(self, tb=self.tb + offset, te=self.te + offset, te2=self.te2 + offset)

    @property
    def mapq(self) -> int:
        """Mapping quality estimated from the best and second-best scores."""
        if self.score == 0:
            return 255
        ratio = 1.0 - abs(self.score - self.score2) / self.score
        if ratio <= 0.0:
            return MAX_MAPQ
        raw = -4.343 * math.log(ratio)
        mapq = int(int(max(raw, 0.0)) + 4.99)
        return min(mapq, MAX_MAPQ)


def encode_nt4(seq: Union[str, bytes, bytearray]) -> bytes:
    """Map A, C, G, T (either case) to 0..3 and every other symbol to 4."""
    if isinstance(seq, str):
        seq = seq.encode("latin-1")
    return bytes(seq).translate(_NT4)


def scoring_matrix(match: int = DEFAULT_MATCH, mismatch: int = DEFAULT_MISMATCH) -> List[int]:
    """Flat 5x5 scoring matrix over A, C, G, T and the ambiguous base."""
    matrix = []
    for i in range(4):
        matrix.extend(match if i == j else -mismatch for j in range(4))
        matrix.append(0)
    matrix.extend([0] * 5)
    return matrix


def sam_header(idx: SeqIdx) -> str:
    """SAM header describing the reference sequences of idx."""
    return SAM_VERSION_LINE + idx.to_sam() + PROGRAM_LINE


def format_sam_record(
    alignment: LocalAlignment,
    ref_name: str,
    read: Read,
    strand: int,
    cigar: str,
    mismatches: int,
) -> str:
    """One SAM line; strand is 0 for forward and non-zero for reverse complement."""
    if alignment.score == 0:
        return f"{read.name}\t{UNMAPPED_FIELDS}"
    flag = "16" if strand else "0"
    if read.qual is None:
        qual = "*"
    elif strand:
        qual = read.qual[::-1]
    else:
        qual = read.qual
    fields = [
        read.name,
        flag,
        ref_name,
        str(alignment.tb + 1),
        str(alignment.mapq),
        cigar,
        "*",
        "0",
        "0",
        read.seq,
        qual,
        f"AS:i:{alignment.score}",
        f"NM:i:{mismatches}",
    ]
    tail = f"ZS:i:{alignment.score2}" if alignment.score2 > 0 else ""
    return "\t".join(fields) + "\t" + tail + "\n"


def write_sam_record(
    alignment: LocalAlignment,
    ref_name: str,
    read: Read,
    strand: int,
    out: TextIO,
    cigar: str,
    mismatches: int,
) -> None:
    """Write one SAM line to out."""
    out.write(format_sam_record(alignment, ref_name, read, strand, cigar, mismatches))