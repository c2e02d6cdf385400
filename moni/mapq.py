"""Mapping-quality estimators for single-end and paired-end alignments."""

from __future__ import annotations

import math
from typing import NamedTuple

# No valid second-best alignment and the best alignment has a perfect score.
UNP_NOSEC_PERF = 44

# No valid second-best alignment: best score stratified into 10 bins.
UNP_NOSEC = (43, 42, 41, 36, 32, 27, 20, 11, 4, 1, 0)

# Perfect best score: distance to the second best stratified into 10 bins.
UNP_SEC_PERF = (2, 16, 23, 30, 31, 32, 34, 36, 38, 40, 42)

# Non-perfect best score. Rows are the best/second-best difference bins,
# columns are the (max score - best score) bins.
UNP_SEC = (
    (2, 2, 2, 1, 1, 0, 0, 0, 0, 0, 0),
    (20, 14, 7, 3, 2, 1, 0, 0, 0, 0, 0),
    (20, 16, 10, 6, 3, 1, 0, 0, 0, 0, 0),
    (20, 17, 13, 9, 3, 1, 1, 0, 0, 0, 0),
    (21, 19, 15, 9, 5, 2, 2, 0, 0, 0, 0),
    (22, 21, 16, 11, 10, 5, 0, 0, 0, 0, 0),
    (23, 22, 19, 16, 11, 0, 0, 0, 0, 0, 0),
    (24, 25, 21, 30, 0, 0, 0, 0, 0, 0, 0),
    (30, 26, 29, 0, 0, 0, 0, 0, 0, 0, 0),
    (30, 27, 0, 0, 0, 0, 0, 0, 0, 0, 0),
    (30, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0),
)

# Paired alignment with no valid second best and a perfect score.
PAIR_NOSEC_PERF = 44

MEM_MAPQ_COEF = 30.0
MAX_MAPQ = 60
MATE_BOOST = 40


class PairedMapq(NamedTuple):
    """Mapping qualities of a pair and of its two mates."""

    pair: int
    mate1: int
    mate2: int


def _raw_mapq(diff: float, match_score: float) -> int:
    return int(6.02 * diff / match_score + 0.499)


def compute_mapq(score: int, score2: int, min_score: int, max_score: int) -> int:
    """Mapping quality from the best and second-best scores, by score bins."""
    if score2 > score:
        return 0
    scale = 10.0 / float(max_score - min_score)
    best = max_score - score
    best_bin = int(best * scale + 0.5)
    if score2 >= min_score:
        diff = score - score2
        diff_bin = int(diff * scale + 0.5)
        if best == max_score:
            return UNP_SEC_PERF[best_bin]
        return UNP_SEC[diff_bin][best_bin]
    if best == max_score:
        return UNP_NOSEC_PERF
    return UNP_NOSEC[best_bin]


def compute_mapq_se_bwa(
    score: int,
    score2: int,
    rlen: int,
    qlen: int,
    min_seed_length: int,
    match_score: int,
    mismatch_score: int,
    mapq_coeff_len: float,
    mapq_coeff_fac: int,
    sub_n: int,
    seed_cov: int,
    frac_rep: float,
) -> int:
    """Single-end mapping quality in the style of BWA-MEM."""
    length = max(rlen, qlen)
    sub = score2 if score2 else min_seed_length * match_score
    if sub >= score:
        return 0

    identity = 1.0 - (length * match_score - score) / (match_score + mismatch_score) / length
    if score == 0:
        mapq = 0
    elif mapq_coeff_len > 0:
        tmp = 1.0 if length < mapq_coeff_len else mapq_coeff_fac / math.log(length)
        tmp *= identity * identity
        mapq = int(6.02 * (score - sub) / match_score * tmp * tmp + 0.499)
    else:
        mapq = int(MEM_MAPQ_COEF * (1.0 - sub / score) * math.log(seed_cov) + 0.499)
        if identity < 0.95:
            mapq = int(mapq * identity * identity + 0.499)

    if sub_n > 0:
        mapq -= int(4.343 * math.log(sub_n + 1) + 0.499)
    mapq = min(max(mapq, 0), MAX_MAPQ)
    return int(mapq * (1.0 - frac_rep) + 0.499)


def compute_mapq_pe_bwa(
    score: int,
    score2: int,
    score_un: int,
    match_score: int,
    sub_n: int,
    frac_rep_m1: float,
    frac_rep_m2: float,
    score_m1: int,
    score_m2: int,
    score2_m1: int,
    score2_m2: int,
    mapq_m1: int,
    mapq_m2: int,
) -> PairedMapq:
    """Paired-end mapping quality in the style of BWA-MEM.

    Returns the pair quality together with the updated mate qualities.
    """
    if score2 > score:
        raise ValueError("second-best score exceeds the best score")

    sub = max(score2, score_un)
    mapq = _raw_mapq(score - sub, match_score)
    if sub_n > 0:
        mapq -= int(4.343 * math.log(sub_n + 1) + 0.499)
    mapq = min(max(mapq, 0), MAX_MAPQ)
    mapq = int(mapq * (1.0 - 0.5 * (frac_rep_m1 + frac_rep_m2)) + 0.499)

    if score > score_un:
        mapq_m1 = _boost_mate(mapq_m1, mapq, _raw_mapq(score_m1 - score2_m1, match_score))
        mapq_m2 = _boost_mate(mapq_m2, mapq, _raw_mapq(score_m2 - score2_m2, match_score))

    return PairedMapq(mapq, mapq_m1, mapq_m2)


def _boost_mate(mate: int, pair: int, cap: int) -> int:
    if mate <= pair:
        mate = min(pair, mate + MATE_BOOST)
    # A negative cap never limits an unsigned quality.
    if 0 <= cap < mate:
        mate = cap
    return mate