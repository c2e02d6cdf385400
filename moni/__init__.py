"""Matching statistics over run-length BWT indexes, with read, sequence-index, MAPQ and SAM helpers."""

__version__ = "0.1.0"