"""Tamper-evident archival of edge-access logs."""

__version__ = "0.1.0"
