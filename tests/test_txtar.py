import pytest

from scaffold.archive.txtar import ArchiveFile, format_archive, parse, parse_file
from scaffold.errors import ParseError

SAMPLE = b"""Template bundle for demo projects.
-- a/b.txt --
hello
-- c.txt --
world
"""


def test_parse_splits_comment_and_files():
    archive = parse(SAMPLE)
    assert archive.comment == b"Template bundle for demo projects.\n"
    assert archive.names == ["a/b.txt", "c.txt"]
    assert archive.files[0].data == b"hello\n"
    assert archive.files[1].data == b"world\n"


def test_parse_adds_missing_final_newline():
    archive = parse(b"-- notes.md --\nno newline")
    assert archive.files[0].data == b"no newline\n"


def test_parse_keeps_empty_entries():
    archive = parse(b"-- empty.txt --\n-- next.txt --\nbody\n")
    assert archive.files[0] == ArchiveFile(name="empty.txt", data=b"")
    assert archive.files[1] == ArchiveFile(name="next.txt", data=b"body\n")


def test_marker_on_last_line_without_newline():
    archive = parse(b"-- only.txt --")
    assert archive.files == (ArchiveFile(name="only.txt", data=b""),)


def test_parse_trims_names_and_ignores_lookalike_lines():
    data = b"--   spaced name.txt   --\n--not a marker --\n-- also not\n--  --\ntext -- x --\n"
    archive = parse(data)
    assert archive.names == ["spaced name.txt"]
    assert archive.files[0].data == b"--not a marker --\n-- also not\n--  --\ntext -- x --\n"


def test_parse_keeps_bytes_verbatim():
    archive = parse(b"-- crlf.txt --\nline one\r\nline two\r\n")
    assert archive.names == ["crlf.txt"]
    assert archive.files[0].data == b"line one\r\nline two\r\n"


def test_parse_without_markers_raises():
    with pytest.raises(ParseError):
        parse(b"just some text\nwith no sections\n")


def test_parse_empty_input_raises():
    with pytest.raises(ParseError):
        parse(b"")


def test_parse_rejects_non_utf8_names():
    with pytest.raises(ParseError):
        parse(b"-- \xff\xfe.txt --\ndata\n")


def test_parse_file_missing_raises(tmp_path):
    missing = tmp_path / "absent.txtar"
    with pytest.raises(ParseError) as excinfo:
        parse_file(missing)
    assert excinfo.value.path == missing


def test_format_archive_reproduces_source(tmp_path):
    path = tmp_path / "sample.txtar"
    path.write_bytes(SAMPLE)
    assert format_archive(parse_file(path)) == SAMPLE
