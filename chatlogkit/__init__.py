"""Utilities for chat log tooling: time parsing, string and file helpers, decompression, cached copies and image decoding."""

__version__ = "0.1.0"