from __future__ import annotations
import json
import re
from pathlib import Path
from csv2sql.logging.error_log import ErrorRecord, ErrorLogBuffer

KEYS = {"timestamp", "file", "batch", "first_record", "last_record", "error_type", "db_message"}


def _rec(batch: int, msg: str = "dup") -> ErrorRecord:
    return ErrorRecord.create("input.csv", batch, batch * 10 - 9, batch * 10, "BATCH_INSERT_ERROR", msg)


def test_error_log_buffer_flush(temp_workdir: Path):
    buf = ErrorLogBuffer()
    buf.append(_rec(1))
    buf.append(_rec(3, "Data too long for column 'name'"))
    path = buf.flush()
    assert path is not None and path.exists()
    assert path.parent == Path("logs")
    assert re.fullmatch(r"errors-\d{8}-\d{6}\.log", path.name)
    lines = path.read_text(encoding="utf-8").strip().splitlines()
    assert len(lines) == 2
    for raw in lines:
        assert set(json.loads(raw).keys()) == KEYS
    # flush 後バッファクリア
    assert len(buf) == 0


def test_error_log_buffer_custom_dir(tmp_path: Path):
    buf = ErrorLogBuffer(tmp_path / "nested" / "logs")
    buf.append(_rec(2))
    path = buf.flush()
    assert path is not None
    assert path.parent == tmp_path / "nested" / "logs"


def test_empty_buffer_creates_no_file(temp_workdir: Path):
    buf = ErrorLogBuffer()
    assert buf.flush() is None
    assert not (temp_workdir / "logs").exists()


def test_error_log_buffer_multiple_flushes(temp_workdir: Path):
    buf = ErrorLogBuffer()
    buf.append(_rec(1))
    path = buf.flush()
    size1 = path.stat().st_size
    buf.append(_rec(2, "dup2"))
    path2 = buf.flush()
    assert path == path2
    assert path2.stat().st_size > size1
