"""Tabular input and report files."""

from __future__ import annotations

from mindmapgen.tabular.csv_io import CsvReportWriter, CsvRowReader, Row, read_report

__all__ = ["CsvReportWriter", "CsvRowReader", "Row", "read_report"]
