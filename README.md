# moni

Matching statistics of sequencing reads against a run-length compressed
Burrows–Wheeler index, together with the pieces a read mapper built on top of
such an index needs: FASTA/FASTQ reading and batching, an index from text
positions to reference sequence names, mapping-quality formulas and SAM
output helpers.

Everything is plain Python with no dependencies outside the standard library.

## Installation

```
pip install .
```

To run the test suite:

```
pip install .[test]
pytest
```

## The `moni-ms` command

```
moni-ms reference.fa -p reads.fastq -o results -t 4
```

`moni-ms` loads two things stored under the prefix given as `infile`:

* `<infile>.ms` — a matching statistics index written by `MsPointers.save`;
* `<infile>` — the reference text, read byte for byte, used to measure the
  length of each match.

For every read in the reads file (FASTQ or FASTA, optionally gzipped) it
computes the matching statistics pointers and lengths, and writes two
plain-text files:

* `<prefix>.pointers` — for each read a `>name` line, then its pointers,
  each followed by a space;
* `<prefix>.lengths` — for each read a `>name` line, then its lengths, in the
  same form.

| option | meaning | default |
|--------|---------|---------|
| `-p`   | path to the reads file | required |
| `-o`   | output file prefix | `<reads>_<basename of infile>` |
| `-t`   | number of worker threads | 1 |
| `-l`   | minimum MEM length (accepted, does not change the output) | 25 |
| `-h`   | print usage | |

With more than one thread an uncompressed FASTQ file is split at record
boundaries (`split_fastq`) and each range is processed by its own worker into
a temporary `<prefix>_<i>.ms.tmp.out` file; these are merged in order into the
plain output and removed. A gzipped reads file is always processed by a
single worker. The command exits with status 1 and a message on standard
error if a file cannot be read or is malformed.

## Library

### Reads — `moni.reads`

```python
from moni.reads import parse_reads, batches, reverse_complement

with open("reads.fastq") as handle:
    for batch in batches(parse_reads(handle), 1000):
        for read in batch:
            rc = read.reverse_complement()
```

* `Read` is a frozen dataclass with `name`, `seq`, `comment` and `qual`
  (`None` for FASTA). `reverse_complement()` complements `ACGT`/`acgt`,
  keeps other symbols and reverses the quality string; `slice(start, length)`
  cuts out part of the read (raising `IndexError` outside it);
  `describe()` gives a multi-line description.
* `parse_reads(handle)` parses FASTA or FASTQ from any iterable of lines.
* `iter_reads(path, start=0, end=None)` yields the records of a possibly
  gzipped file whose header starts in the byte range `[start, end)` of the
  uncompressed data.
* `batches(reads, size)` groups reads into lists; `paired_batches(mate1,
  mate2, size)` does the same for two mate streams in step and raises
  `ValueError` if they hold different numbers of reads.
* `is_gzipped(path)` and `file_size(path)` (which refuses gzipped files).

### Sequence index — `moni.seqidx`

`SeqIdx` maps a position of the concatenated reference back to the sequence
it falls in:

```python
from moni.seqidx import SeqIdx

idx = SeqIdx.from_fasta("reference.fa", 0)
name = idx[1234]
name, offset = idx.index(1234)
fits = idx.valid(1234, 100)      # does [1234, 1334) stay in one sequence?
header = idx.to_sam()            # "@SQ\tSN:...\tLN:...\n" lines

with open("reference.fa.idx", "wb") as out:
    idx.serialize(out)
with open("reference.fa.idx", "rb") as stream:
    same = SeqIdx.load(stream)
```

The second argument of `from_fasta` is the number of trailing padding
characters counted in each sequence; `length(i)` subtracts it.

### Run-length strings — `moni.rle_string`

`RunLengthString` stores a byte string as runs (symbols 0 and 1 are both
stored as 1) and answers `rank`, `run_of_position`, `head_of`,
`head_rank`, `run_head_rank`, `run_and_head_rank`, `run_head_select`,
`number_of_runs`, `number_of_letter` and `number_of_runs_of_letter`. Build it
with `from_text`, `from_runs(heads, lengths)` or
`from_run_files(heads_path, lengths_path)` (one byte per head, 5-byte
little-endian lengths).

### Matching statistics — `moni.ms_pointers` and `moni.matching_statistics`

`MsPointers` holds a BWT as a `RunLengthString`, the suffix-array samples at
the start and end of every run, and one threshold per run, and answers
`query(pattern)` with one pointer per pattern position. It also provides the
LF mapping (`lf`) and `get_last_run_sample`.

```python
from moni.ms_pointers import MsPointers
from moni.matching_statistics import MatchingStatistics

# reference.fa.bwt, reference.fa.ssa and reference.fa.esa must exist;
# thresholds is a sequence with one BWT position per run.
index = MsPointers.from_files("reference.fa", thresholds)
with open("reference.fa.ms", "wb") as out:
    index.save(out)

ms = MatchingStatistics.from_prefix("reference.fa")
pointers, lengths = ms.compute("ACGTTGCA")
```

`read_samples(path, r, n)` reads a `.ssa`/`.esa` sample file and
`build_f(bwt)` computes the F column. In `moni.matching_statistics`,
`MatchingStatistics.write` appends a binary record for a read,
`read_records` reads such records back, `write_plain_output` turns them into
the `.pointers`/`.lengths` files, and `run(ms, patterns, output, threads)`
does the whole job the `moni-ms` command does.

### Mapping quality — `moni.mapq`

```python
from moni.mapq import compute_mapq

compute_mapq(10, 5, 0, 10)   # 22
```

`compute_mapq_se_bwa` gives a single-end quality in the style of BWA-MEM.
`compute_mapq_pe_bwa` gives the paired-end quality and returns a
`PairedMapq(pair, mate1, mate2)` with the mate qualities updated; it raises
`ValueError` if the second-best score exceeds the best.

### SAM output — `moni.sam`

`LocalAlignment` describes a local alignment (scores and begin/end
coordinates) and derives a mapping quality from its best and second-best
scores. `sam_header(idx)` builds a header from a `SeqIdx`;
`format_sam_record` and `write_sam_record` produce one SAM line for a read,
reversing the quality string for the reverse strand. `encode_nt4` maps
`ACGT` to 0–3 and everything else to 4, and `scoring_matrix(match,
mismatch)` builds the flat 5×5 matrix for those codes.

## What the package does not do

* It does not build an index: the BWT, the `.ssa`/`.esa` run samples and the
  per-run thresholds must come from elsewhere, and `MsPointers.from_files`
  takes the thresholds as an argument.
* It does not align reads. There is no seed extension, Smith–Waterman or
  chaining step and no alignment command; `moni.sam` only formats alignments
  that a caller has computed, and `moni.mapq` only scores them.
* The reference text used by `MatchingStatistics.from_prefix` is the raw
  file at the prefix, with no compression or random-access structure.