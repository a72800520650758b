"""
Export sinks: serialize the post-update batch to fixed file paths.

Both sinks overwrite their artifact on every cycle. They write to a temporary
sibling file first and atomically replace the target, so readers never see a
half-written export. Any failure surfaces as `SerializationError`.
"""

from __future__ import annotations

import csv
import json
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import IO, Iterator, List, Protocol, Sequence, runtime_checkable

from bulk_worker.config import Settings, get_settings
from bulk_worker.domain.models import EXPORT_FIELDS, UserRecord
from bulk_worker.errors import SerializationError
from bulk_worker.utils.logging import get_logger

log = get_logger(__name__)


@runtime_checkable
class ExportSink(Protocol):
    """
    A collaborator that materializes one batch as a durable artifact.
    """

    name: str

    def write(self, records: Sequence[UserRecord]) -> int:
        """Write the full batch, replacing the previous artifact; return rows written."""
        ...


@contextmanager
def _atomic_writer(path: Path, newline: str | None = None) -> Iterator[IO[str]]:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline=newline) as handle:
            yield handle
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise


class CsvExportSink:
    """
    Comma-delimited rows with an `Id,Name,Email,CreatedDate,IsActive` header.
    """

    name = "csv"

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def write(self, records: Sequence[UserRecord]) -> int:
        try:
            with _atomic_writer(self.path, newline="") as handle:
                writer = csv.DictWriter(handle, fieldnames=list(EXPORT_FIELDS))
                writer.writeheader()
                for record in records:
                    writer.writerow(record.export_row())
        except (OSError, csv.Error, ValueError) as exc:
            raise SerializationError(f"CSV export to {self.path} failed: {exc}") from exc
        log.debug("CSV export written", extra={"path": str(self.path), "rows": len(records)})
        return len(records)


class JsonExportSink:
    """
    Indented JSON array, one object per record, keyed like the CSV header.
    """

    name = "json"

    def __init__(self, path: Path | str, indent: int = 2) -> None:
        self.path = Path(path)
        self.indent = indent

    def write(self, records: Sequence[UserRecord]) -> int:
        payload = [record.export_row() for record in records]
        try:
            with _atomic_writer(self.path) as handle:
                json.dump(payload, handle, indent=self.indent)
                handle.write("\n")
        except (OSError, TypeError, ValueError) as exc:
            raise SerializationError(f"JSON export to {self.path} failed: {exc}") from exc
        log.debug("JSON export written", extra={"path": str(self.path), "rows": len(records)})
        return len(records)


def default_sinks(settings: Settings | None = None) -> List[ExportSink]:
    """CSV then JSON, at the configured paths."""
    settings = settings or get_settings()
    return [
        CsvExportSink(settings.export_csv_path),
        JsonExportSink(settings.export_json_path),
    ]


__all__ = ["CsvExportSink", "ExportSink", "JsonExportSink", "default_sinks"]
