"""Encoders for analytics query results."""

from footfall.core.encoding.report import encode_points, encode_report

__all__ = ["encode_points", "encode_report"]
