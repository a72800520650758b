import csv
import json
from datetime import datetime, timezone
from pathlib import Path
from uuid import UUID

import pytest

from bulk_worker.config import Settings
from bulk_worker.domain.models import UserRecord
from bulk_worker.errors import SerializationError
from bulk_worker.sinks import CsvExportSink, JsonExportSink, default_sinks

EXPECTED_ROWS = 3


def _batch(n: int = EXPECTED_ROWS):
    created = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    return [
        UserRecord(
            id=UUID(int=i + 1),
            name=f"User {i} Updated",
            email=f"user{i}@example.com",
            created_at=created,
            is_active=True,
        )
        for i in range(n)
    ]


def test_csv_sink_writes_header_and_rows(tmp_path: Path):
    path = tmp_path / "out" / "users.csv"
    written = CsvExportSink(path).write(_batch())

    with path.open("r", newline="", encoding="utf-8") as f:
        rows = list(csv.reader(f))

    assert written == EXPECTED_ROWS
    assert rows[0] == ["Id", "Name", "Email", "CreatedDate", "IsActive"]
    assert len(rows) == EXPECTED_ROWS + 1
    assert rows[1][0] == str(UUID(int=1))
    assert rows[1][1] == "User 0 Updated"
    assert rows[1][4] == "True"


def test_csv_sink_overwrites_previous_artifact(tmp_path: Path):
    path = tmp_path / "users.csv"
    sink = CsvExportSink(path)
    sink.write(_batch(5))
    sink.write(_batch(1))

    with path.open("r", newline="", encoding="utf-8") as f:
        rows = list(csv.reader(f))
    assert len(rows) == 2
    # no temp files left behind
    assert [p.name for p in tmp_path.iterdir()] == ["users.csv"]


def test_json_sink_writes_array_keyed_like_csv(tmp_path: Path):
    path = tmp_path / "users.json"
    written = JsonExportSink(path).write(_batch())

    payload = json.loads(path.read_text(encoding="utf-8"))

    assert written == EXPECTED_ROWS
    assert isinstance(payload, list)
    assert len(payload) == EXPECTED_ROWS
    assert list(payload[0].keys()) == ["Id", "Name", "Email", "CreatedDate", "IsActive"]
    assert payload[2]["Name"] == "User 2 Updated"
    assert payload[0]["IsActive"] is True


def test_empty_batch_still_produces_artifacts(tmp_path: Path):
    csv_path = tmp_path / "users.csv"
    json_path = tmp_path / "users.json"
    CsvExportSink(csv_path).write([])
    JsonExportSink(json_path).write([])

    assert csv_path.read_text(encoding="utf-8").strip() == "Id,Name,Email,CreatedDate,IsActive"
    assert json.loads(json_path.read_text(encoding="utf-8")) == []


def test_unwritable_target_raises_serialization_error(tmp_path: Path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("x", encoding="utf-8")

    with pytest.raises(SerializationError) as excinfo:
        CsvExportSink(blocker / "users.csv").write(_batch())
    assert isinstance(excinfo.value.__cause__, OSError)

    with pytest.raises(SerializationError):
        JsonExportSink(blocker / "users.json").write(_batch())


def test_default_sinks_follow_settings(tmp_path: Path):
    settings = Settings(
        export_csv_path=tmp_path / "a.csv",
        export_json_path=tmp_path / "b.json",
    )
    sinks = default_sinks(settings)
    assert [s.name for s in sinks] == ["csv", "json"]
    assert sinks[0].path == tmp_path / "a.csv"
    assert sinks[1].path == tmp_path / "b.json"
