"""Ingestion layer.

This package turns captured feed data into normalized events for the
processors in :mod:`pitwall.state`.
"""

__all__: list[str] = []
