"""CSV row reader and report writer."""

from __future__ import annotations

import asyncio
import csv
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from mindmapgen.errors import FileSystemError, ValidationError
from mindmapgen.logging import get_logger
from mindmapgen.models import Outcome

logger = get_logger(__name__)

REPORT_FIELDS = ("topic", "status", "error")

Row = dict[str, str | None]


@dataclass(frozen=True)
class CsvRowReader:
    """Reads input rows from a CSV file with a header line.

    Cells and header names are trimmed. Rows with missing fields are returned as-is and logged;
    deciding what to do with them is up to the caller.
    """

    encoding: str = "utf-8"

    def read(self, path: str | Path) -> list[Row]:
        path = Path(path)
        if not path.is_file():
            raise FileSystemError("read", str(path), FileNotFoundError(f"Input CSV file not found: {path}"))

        rows: list[Row] = []
        try:
            with path.open("r", encoding=self.encoding, newline="") as f:
                reader = csv.reader(f, strict=True)
                header = next(reader, None)
                if header is None:
                    logger.info("Input CSV is empty", extra={"path": str(path)})
                    return rows
                fields = [name.strip() for name in header]
                for line in reader:
                    if not any(cell.strip() for cell in line):
                        continue
                    row: Row = {
                        name: (line[i].strip() if i < len(line) else None)
                        for i, name in enumerate(fields)
                        if name
                    }
                    if not row.get("subject") or not row.get("topic"):
                        logger.warning("Row with missing required fields", extra={"row": row})
                    rows.append(row)
        except csv.Error as e:
            raise ValidationError(
                f"Failed to parse CSV file: {e}", cause=e, context={"path": str(path)}
            ) from e
        except UnicodeDecodeError as e:
            raise ValidationError(
                f"Failed to decode CSV file: {e}", cause=e, context={"path": str(path)}
            ) from e
        except OSError as e:
            raise FileSystemError("read", str(path), e) from e

        logger.info("Read input rows", extra={"path": str(path), "row_count": len(rows)})
        return rows

    async def aread(self, path: str | Path) -> list[Row]:
        """Async variant of :meth:`read`."""

        return await asyncio.to_thread(self.read, path)


@dataclass(frozen=True)
class CsvReportWriter:
    """Writes outcomes as `topic,status,error` rows. Always writes the header."""

    encoding: str = "utf-8"

    def write(self, path: str | Path, outcomes: Sequence[Outcome]) -> None:
        path = Path(path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FileSystemError("create directory", str(path.parent), e) from e

        try:
            with path.open("w", encoding=self.encoding, newline="") as f:
                writer = csv.DictWriter(f, fieldnames=REPORT_FIELDS)
                writer.writeheader()
                for outcome in outcomes:
                    writer.writerow(
                        {"topic": outcome.topic, "status": outcome.status, "error": outcome.error or ""}
                    )
        except OSError as e:
            raise FileSystemError("write", str(path), e, {"row_count": len(outcomes)}) from e

        logger.info("Wrote report", extra={"path": str(path), "row_count": len(outcomes)})

    async def awrite(self, path: str | Path, outcomes: Sequence[Outcome]) -> None:
        """Async variant of :meth:`write`."""

        await asyncio.to_thread(self.write, path, list(outcomes))


def read_report(path: str | Path, encoding: str = "utf-8") -> list[Outcome]:
    """Load a report or checkpoint written by `CsvReportWriter`."""

    with Path(path).open("r", encoding=encoding, newline="") as f:
        return [
            Outcome(topic=r["topic"], status=r["status"], error=r.get("error") or None)
            for r in csv.DictReader(f)
        ]
