import io

import pytest

from moni.reads import Read
from moni.sam import (
    LocalAlignment,
    encode_nt4,
    format_sam_record,
    sam_header,
    scoring_matrix,
    write_sam_record,
)
from moni.seqidx import SeqIdx


@pytest.fixture
def read():
    return Read(name="r1", seq="ACGTACGT", qual="ABCDEFGH")


def test_encode_nt4_maps_bases():
    assert encode_nt4("ACGTN") == bytes([0, 1, 2, 3, 4])
    assert encode_nt4("acgt") == encode_nt4("ACGT")
    assert set(encode_nt4("XYZ-*")) == {4}


def test_encode_nt4_accepts_bytes():
    assert encode_nt4(b"GATTACA") == encode_nt4("GATTACA")
    assert len(encode_nt4("GATTACA")) == 7


@pytest.mark.parametrize("match,mismatch", [(2, 2), (2, 4), (1, 3)])
def test_scoring_matrix_structure(match, mismatch):
    mat = scoring_matrix(match, mismatch)
    assert len(mat) == 25
    for i in range(5):
        for j in range(5):
            value = mat[i * 5 + j]
            if i == 4 or j == 4:
                assert value == 0
            elif i == j:
                assert value == match
            else:
                assert value == -mismatch


def test_scoring_matrix_defaults_are_symmetric():
    mat = scoring_matrix()
    for i in range(5):
        for j in range(5):
            assert mat[i * 5 + j] == mat[j * 5 + i]


def test_unmapped_record(read):
    line = format_sam_record(LocalAlignment(score=0), "chr1", read, 0, "8M", 0)
    assert line == "r1\t4\t*\t0\t255\t*\t*\t0\t0\t*\t*\n"


def test_forward_record_fields(read):
    aln = LocalAlignment(score=16, score2=5, tb=10, te=17, qb=0, qe=7)
    line = format_sam_record(aln, "chr1", read, 0, "8M", 1)
    assert line.endswith("\n")
    fields = line.rstrip("\n").split("\t")
    assert fields[0] == "r1"
    assert fields[1] == "0"
    assert fields[2] == "chr1"
    assert fields[3] == str(aln.tb + 1)
    assert fields[4] == str(aln.mapq)
    assert fields[5] == "8M"
    assert fields[6:9] == ["*", "0", "0"]
    assert fields[9] == read.seq
    assert fields[10] == read.qual
    assert fields[11] == "AS:i:16"
    assert fields[12] == "NM:i:1"
    assert fields[13] == "ZS:i:5"


def test_reverse_record_reverses_quality(read):
    aln = LocalAlignment(score=16, score2=5)
    fields = format_sam_record(aln, "chr1", read, 1, "8M", 0).split("\t")
    assert fields[1] == "16"
    assert fields[10] == read.qual[::-1]


def test_record_without_quality_and_second_score():
    read = Read(name="q", seq="ACGT")
    aln = LocalAlignment(score=8, score2=0)
    line = format_sam_record(aln, "chr2", read, 0, "4M", 0)
    fields = line.split("\t")
    assert fields[10] == "*"
    assert "ZS:i:" not in line
    assert line.endswith("NM:i:0\t\n")


def test_mapq_bounds():
    assert LocalAlignment(score=20, score2=20).mapq == 4
    assert LocalAlignment(score=20, score2=0).mapq == 254
    values = [LocalAlignment(score=40, score2=s).mapq for s in range(1, 41)]
    assert all(0 <= v <= 254 for v in values)
    assert values == sorted(values, reverse=True)


def test_shifted_moves_reference_coordinates():
    aln = LocalAlignment(score=10, score2=2, tb=3, te=9, qb=1, qe=7, te2=5)
    moved = aln.shifted(100)
    assert (moved.tb, moved.te, moved.te2) == (103, 109, 105)
    assert (moved.qb, moved.qe, moved.score) == (aln.qb, aln.qe, aln.score)


def test_write_matches_format(read):
    aln = LocalAlignment(score=12, score2=3, tb=4)
    out = io.StringIO()
    write_sam_record(aln, "chr1", read, 1, out, "8M", 2)
    assert out.getvalue() == format_sam_record(aln, "chr1", read, 1, "8M", 2)


def test_sam_header_wraps_reference_lines():
    idx = SeqIdx([0, 10, 25], ["chr1", "chr2"], 25, 1)
    header = sam_header(idx)
    assert header.startswith("@HD VN:1.6 SO:unknown\n")
    assert header.endswith("@PG ID:moni PN:moni VN:0.1.0\n")
    assert idx.to_sam() in header
    assert header.count("@SQ") == 2


def test_sam_header_empty_index():
    assert sam_header(SeqIdx()) == "@HD VN:1.6 SO:unknown\n@PG ID:moni PN:moni VN:0.1.0\n"