import gzip
import io
import os
import struct
from itertools import groupby

import pytest

from moni.matching_statistics import (
    MatchingStatistics,
    main,
    next_start_fastq,
    parse_args,
    read_records,
    run,
    split_fastq,
    write_plain_output,
)
from moni.ms_pointers import MsPointers
from moni.reads import Read
from moni.rle_string import RunLengthString

TEXT = b"ACGTTGCAACGTAGGCATTACGATCGGA"

FASTQ = (
    b"@r1\nACGTTG\n+\nIIIIII\n"
    b"@r2\nGATCGG\n+\n@@@@@@\n"
    b"@r3\nTTNACG\n+\nIIIIII\n"
    b"@r4\nCATTAC\n+\n+++III\n"
)


def _common(a, b):
    k = 0
    while k < len(a) and k < len(b) and a[k] == b[k]:
        k += 1
    return k


def _build_index(text):
    t = text + b"\x01"
    n = len(t)
    sa = sorted(range(n), key=lambda i: t[i:])
    bwt = bytes(t[i - 1] for i in sa)
    lcp = [0] + [_common(t[sa[r - 1]:], t[sa[r]:]) for r in range(1, n)]
    runs = []
    for head, group in groupby(range(n), key=lambda r: bwt[r]):
        rows = list(group)
        runs.append((head, rows[0], rows[-1]))
    samples_start = [(sa[s] - 1) % n for _, s, _ in runs]
    samples_last = [(sa[e] - 1) % n for _, _, e in runs]
    thresholds = []
    last_end = {}
    for head, s, e in runs:
        if head in last_end:
            window = range(last_end[head] + 1, s + 1)
            thresholds.append(min(window, key=lambda r: lcp[r]))
        else:
            thresholds.append(0)
        last_end[head] = e
    heads = bytes(h for h, _, _ in runs)
    lengths = [e - s + 1 for _, s, e in runs]
    return MsPointers(
        RunLengthString.from_runs(heads, lengths), samples_start, samples_last, thresholds
    )


class _Fixed:
    def __init__(self, pointers):
        self.pointers = pointers

    def query(self, pattern):
        return list(self.pointers)


@pytest.fixture
def ms():
    return MatchingStatistics(_build_index(TEXT), TEXT)


def test_compute_consecutive_pointers_reuse_length():
    stats = MatchingStatistics(_Fixed([0, 1, 2, 3]), b"ACGTACGT")
    assert stats.compute("ACGT") == ([0, 1, 2, 3], [4, 3, 2, 1])


def test_compute_stops_at_text_end():
    stats = MatchingStatistics(_Fixed([2, 0]), b"ACG")
    assert stats.compute("GT") == ([2, 0], [1, 0])


def test_compute_substring_matches_fully(ms):
    seq = TEXT[5:15]
    pointers, lengths = ms.compute(seq)
    assert lengths[0] == len(seq)
    assert TEXT[pointers[0]:pointers[0] + len(seq)] == seq


def test_write_wire_format():
    stats = MatchingStatistics(_Fixed([0, 1]), b"ACGT")
    out = io.BytesIO()
    stats.write(Read(name="r1", seq="AC"), out)
    expected = (
        struct.pack("<Q", 2) + b"r1" + struct.pack("<Q", 2)
        + struct.pack("<2Q", 0, 1) + struct.pack("<2Q", 2, 1)
    )
    assert out.getvalue() == expected


def test_write_read_records_round_trip(ms):
    out = io.BytesIO()
    reads = [Read(name="a", seq="ACGTTG"), Read(name="b", seq="GGA")]
    for read in reads:
        ms.write(read, out)
    out.seek(0)
    records = list(read_records(out))
    assert [r[0] for r in records] == ["a", "b"]
    for (name, pointers, lengths), read in zip(records, reads):
        assert (list(pointers), list(lengths)) == ms.compute(read.seq)


def test_read_records_truncated():
    stream = io.BytesIO(struct.pack("<Q", 5) + b"ab")
    with pytest.raises(ValueError):
        list(read_records(stream))


def test_next_start_fastq_at_beginning():
    handle = io.BytesIO(FASTQ)
    assert next_start_fastq(handle) == 0


def test_next_start_fastq_inside_record():
    handle = io.BytesIO(FASTQ)
    handle.seek(3)
    assert next_start_fastq(handle) == FASTQ.index(b"@r2")


def test_next_start_fastq_quality_starting_with_at():
    handle = io.BytesIO(FASTQ)
    handle.seek(FASTQ.index(b"@r2") + 2)
    assert next_start_fastq(handle) == FASTQ.index(b"@r3")


def test_split_fastq(tmp_path):
    path = tmp_path / "reads.fq"
    path.write_bytes(FASTQ)
    starts = split_fastq(path, 3)
    record_starts = {FASTQ.index(m) for m in (b"@r1", b"@r2", b"@r3", b"@r4")}
    assert starts[0] == 0
    assert starts[-1] == len(FASTQ)
    assert len(starts) == 4
    assert starts == sorted(starts)
    assert set(starts[:-1]) <= record_starts


def test_split_fastq_gzipped(tmp_path):
    path = tmp_path / "reads.fq.gz"
    path.write_bytes(gzip.compress(FASTQ))
    with pytest.raises(ValueError):
        split_fastq(path, 2)


def test_write_plain_output(tmp_path):
    tmp = tmp_path / "x_0.ms.tmp.out"
    stats = MatchingStatistics(_Fixed([0, 1]), b"ACGT")
    with open(tmp, "wb") as out:
        stats.write(Read(name="r1", seq="AC"), out)
    prefix = tmp_path / "x"
    assert write_plain_output([tmp], prefix) == 1
    assert not tmp.exists()
    assert (tmp_path / "x.pointers").read_text() == ">r1\n0 1 \n"
    assert (tmp_path / "x.lengths").read_text() == ">r1\n2 1 \n"


def test_run_threads_agree(tmp_path, ms):
    reads = tmp_path / "reads.fq"
    reads.write_bytes(FASTQ)
    single = tmp_path / "single"
    multi = tmp_path / "multi"
    assert run(ms, reads, single, 1) == 4
    assert run(ms, reads, multi, 3) == 4
    for ext in (".pointers", ".lengths"):
        assert (tmp_path / ("single" + ext)).read_text() == (tmp_path / ("multi" + ext)).read_text()
    assert not [p for p in os.listdir(tmp_path) if p.endswith(".ms.tmp.out")]


def test_run_rejects_zero_threads(tmp_path, ms):
    reads = tmp_path / "reads.fq"
    reads.write_bytes(FASTQ)
    with pytest.raises(ValueError):
        run(ms, reads, tmp_path / "out", 0)


def test_parse_args_defaults():
    args = parse_args(["ref.fa", "-p", "reads.fq"])
    assert (args.infile, args.patterns, args.output) == ("ref.fa", "reads.fq", "")
    assert args.length == 25
    assert args.threads == 1


def test_parse_args_requires_infile():
    with pytest.raises(SystemExit):
        parse_args(["-p", "reads.fq"])


def test_main_end_to_end(tmp_path):
    prefix = tmp_path / "ref.fa"
    prefix.write_bytes(TEXT)
    with open(str(prefix) + ".ms", "wb") as out:
        _build_index(TEXT).save(out)
    reads = tmp_path / "reads.fq"
    reads.write_bytes(FASTQ)
    output = tmp_path / "result"
    assert main([str(prefix), "-p", str(reads), "-o", str(output)]) == 0
    lines = (tmp_path / "result.pointers").read_text().splitlines()
    assert lines[0::2] == [">r1", ">r2", ">r3", ">r4"]
    loaded = MatchingStatistics.from_prefix(prefix)
    expected = " ".join(map(str, loaded.compute("ACGTTG")[0])) + " "
    assert lines[1] == expected


def test_main_missing_index(tmp_path):
    reads = tmp_path / "reads.fq"
    reads.write_bytes(FASTQ)
    assert main([str(tmp_path / "absent"), "-p", str(reads)]) == 1