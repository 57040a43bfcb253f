"""State layer.

This package is the single place where normalized events are merged into
per-topic cumulative state.
"""
