from __future__ import annotations

import csv
from pathlib import Path
from typing import IO, Any

"""Delimited text reader.

The file is consumed strictly sequentially by the pipeline driver; nothing
here is thread-safe and nothing needs to be.

- 1行目 (最初の非空レコード) をヘッダとして扱い、以降をデータ行とする
- 空行はスキップ (レコード番号にも数えない)
- 値は常に文字列のまま返す (型変換はしない)
"""

__all__ = [
    "ReaderError",
    "DecodeError",
    "DelimitedReader",
]

Row = list[str]


class ReaderError(Exception):
    """Raised when the source file cannot be opened or read."""


class DecodeError(ReaderError):
    """Raised when a record cannot be decoded (malformed quoting, bad encoding)."""

    def __init__(self, message: str, line: int) -> None:
        super().__init__(f"line {line}: {message}")
        self.line = line


class DelimitedReader:
    """Record-at-a-time reader over a delimited text file.

    Usage::

        with DelimitedReader(path, delimiter=";") as reader:
            header = reader.read_record()
            batch = reader.read_batch(500)
    """

    def __init__(self, path: Path | str, delimiter: str = ",", encoding: str = "utf-8-sig") -> None:
        if len(delimiter) != 1:
            raise ValueError(f"delimiter must be a single character, got {delimiter!r}")
        self.path = Path(path)
        self.delimiter = delimiter
        self.encoding = encoding
        self.records_read = 0
        self._fh: IO[str] | None = None
        self._reader: Any = None

    def open(self) -> DelimitedReader:
        try:
            self._fh = self.path.open("r", encoding=self.encoding, newline="")
        except OSError as e:
            raise ReaderError(f"cannot open {self.path}: {e}") from e
        self._reader = csv.reader(self._fh, delimiter=self.delimiter, strict=True)
        return self

    def close(self) -> None:
        if self._fh is not None:
            self._fh.close()
            self._fh = None
            self._reader = None

    def __enter__(self) -> DelimitedReader:
        return self.open()

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    @property
    def line_num(self) -> int:
        """Physical line number of the last line consumed (csv.reader semantics)."""
        return self._reader.line_num if self._reader is not None else 0

    def read_record(self) -> Row | None:
        """Return the next non-empty record, or None at end of input.

        Raises:
            DecodeError: malformed record or undecodable bytes
        """
        if self._reader is None:
            raise ReaderError("reader is not open")
        while True:
            try:
                record = next(self._reader)
            except StopIteration:
                return None
            except csv.Error as e:
                raise DecodeError(str(e), self.line_num) from e
            except UnicodeDecodeError as e:
                raise DecodeError(f"cannot decode as {self.encoding}: {e.reason}", self.line_num + 1) from e
            if not record:
                continue
            self.records_read += 1
            return record

    def read_batch(self, size: int) -> list[Row]:
        """Read up to ``size`` records. An empty list means end of input."""
        if size < 1:
            raise ValueError(f"batch size must be > 0, got {size}")
        rows: list[Row] = []
        while len(rows) < size:
            record = self.read_record()
            if record is None:
                break
            rows.append(record)
        return rows
