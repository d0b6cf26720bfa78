"""Batch mind map generator: CSV rows in, validated JSON mind maps out."""

__all__ = ["__version__"]

__version__ = "0.1.0"
