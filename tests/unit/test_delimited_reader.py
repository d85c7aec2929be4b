from __future__ import annotations

from pathlib import Path

import pytest

from csv2sql.reader.delimited import DecodeError, DelimitedReader, ReaderError


def test_read_header_then_batches(write_csv):
    path = write_csv(["id,name", "1,x", "2,y", "3,z"])
    with DelimitedReader(path) as reader:
        assert reader.read_record() == ["id", "name"]
        assert reader.read_batch(2) == [["1", "x"], ["2", "y"]]
        assert reader.read_batch(2) == [["3", "z"]]
        assert reader.read_batch(2) == []
        assert reader.records_read == 4


def test_custom_delimiter_and_quoting(write_csv):
    path = write_csv(['id;note', '1;"a;b"', '2;"say ""hi"""'])
    with DelimitedReader(path, delimiter=";") as reader:
        reader.read_record()
        assert reader.read_batch(10) == [["1", "a;b"], ["2", 'say "hi"']]


def test_blank_lines_are_skipped(write_csv):
    path = write_csv(["id", "", "1", "", "", "2"])
    with DelimitedReader(path) as reader:
        reader.read_record()
        assert reader.read_batch(10) == [["1"], ["2"]]
        assert reader.records_read == 3


def test_rows_with_different_widths_are_returned_as_is(write_csv):
    path = write_csv(["a,b,c", "1,2", "1,2,3,4"])
    with DelimitedReader(path) as reader:
        reader.read_record()
        assert reader.read_batch(10) == [["1", "2"], ["1", "2", "3", "4"]]


def test_utf8_bom_is_stripped(temp_workdir: Path):
    path = temp_workdir / "bom.csv"
    path.write_bytes("\ufeffid,name\n1,x\n".encode("utf-8"))
    with DelimitedReader(path) as reader:
        assert reader.read_record() == ["id", "name"]


def test_missing_file_raises_reader_error(temp_workdir: Path):
    with pytest.raises(ReaderError):
        DelimitedReader(temp_workdir / "missing.csv").open()


def test_malformed_quoting_raises_decode_error(temp_workdir: Path):
    path = temp_workdir / "bad.csv"
    path.write_text('id,name\n1,"x"y\n', encoding="utf-8")
    with DelimitedReader(path) as reader:
        reader.read_record()
        with pytest.raises(DecodeError) as e:
            reader.read_batch(10)
    assert e.value.line == 2


def test_undecodable_bytes_raise_decode_error(temp_workdir: Path):
    path = temp_workdir / "latin1.csv"
    path.write_bytes(b"id,name\n1,caf\xe9\n")
    with DelimitedReader(path) as reader:
        with pytest.raises(DecodeError):
            reader.read_record()
            reader.read_batch(10)


def test_invalid_arguments(temp_workdir: Path):
    with pytest.raises(ValueError):
        DelimitedReader(temp_workdir / "x.csv", delimiter=";;")
    path = temp_workdir / "x.csv"
    path.write_text("a\n", encoding="utf-8")
    with DelimitedReader(path) as reader:
        with pytest.raises(ValueError):
            reader.read_batch(0)
