"""
Tests for JSON lines archives.
"""

import pytest

from perception.scene_recognition.archive import (
    ArchiveMessage,
    JsonLinesArchiveReader,
    write_archive,
)
from perception.scene_recognition.errors import ArchiveError


class TestJsonLinesArchiveReader:
    """Tests for reading archives."""

    @pytest.mark.parametrize("name", ["archive.jsonl", "archive.jsonl.gz"])
    def test_reads_in_order(self, tmp_path, name):
        path = tmp_path / name
        write_archive(path, [
            ArchiveMessage("/a", 1.0, {"n": 1}),
            ArchiveMessage("/b", 2.0, {"n": 2}),
            ArchiveMessage("/a", 3.0, {"n": 3}),
        ])

        messages = list(JsonLinesArchiveReader().read_messages(path))

        assert [m.message["n"] for m in messages] == [1, 2, 3]

    def test_topic_filter(self, tmp_path):
        path = tmp_path / "archive.jsonl"
        write_archive(path, [
            ArchiveMessage("/a", 1.0, {"n": 1}),
            ArchiveMessage("/b", 2.0, {"n": 2}),
        ])
        messages = list(JsonLinesArchiveReader().read_messages(path, ["/b"]))
        assert [m.topic for m in messages] == ["/b"]

    def test_blank_lines_skipped(self, tmp_path):
        path = tmp_path / "archive.jsonl"
        path.write_text('\n{"topic": "/a", "stamp": 1, "message": {}}\n\n')
        assert len(list(JsonLinesArchiveReader().read_messages(path))) == 1

    def test_missing_file(self, tmp_path):
        with pytest.raises(ArchiveError):
            list(JsonLinesArchiveReader().read_messages(tmp_path / "missing.jsonl"))

    @pytest.mark.parametrize("line", [
        "not json",
        '{"stamp": 1, "message": {}}',
        '{"topic": "/a", "message": "text"}',
    ])
    def test_malformed_record(self, tmp_path, line):
        path = tmp_path / "archive.jsonl"
        path.write_text(line + "\n")
        with pytest.raises(ArchiveError):
            list(JsonLinesArchiveReader().read_messages(path))

    def test_corrupt_gzip(self, tmp_path):
        path = tmp_path / "archive.jsonl.gz"
        path.write_bytes(b"not gzip at all")
        with pytest.raises(ArchiveError):
            list(JsonLinesArchiveReader().read_messages(path))
