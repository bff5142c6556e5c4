"""
Flat-file I/O, column type specifications, and cell parsing.

Reads delimited and fixed-width text into typed DataFrames with NA sentinel
handling and per-column type coercion, and writes DataFrames back out.
"""
