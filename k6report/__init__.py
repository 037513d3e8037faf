"""
k6report package initialization.

Turns the newline-delimited JSON written by ``k6 run --out json=...`` into
summary statistics and a self-contained HTML report.
"""

__version__ = "0.1.0"
