"""Tests for content sniffing."""

import pytest

from mcp_toolset.errors import FileAccessError
from mcp_toolset.mime import DEFAULT_MIME, TEXT_MIME, detect_mime, sniff

PNG_HEADER = b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01\x08\x06\x00\x00\x00"


def write(tmp_path, name, content):
    path = tmp_path / name
    path.write_bytes(content)
    return str(path)


def test_plain_text(tmp_path):
    assert detect_mime(write(tmp_path, "notes.txt", b"hello upload\n")) == TEXT_MIME


def test_png_signature(tmp_path):
    # Extension is irrelevant; only the bytes count
    assert detect_mime(write(tmp_path, "image.bin", PNG_HEADER)) == "image/png"


def test_pdf_signature(tmp_path):
    assert detect_mime(write(tmp_path, "doc", b"%PDF-1.7\n%\xe2\xe3\xcf\xd3\n")) == "application/pdf"


def test_html_markup(tmp_path):
    path = write(tmp_path, "page.txt", b"  \n<!DOCTYPE html>\n<html><body>hi</body></html>")
    assert detect_mime(path) == "text/html; charset=utf-8"


def test_xml_markup():
    assert sniff(b'<?xml version="1.0"?><root/>') == "text/xml; charset=utf-8"


def test_utf16_bom():
    assert sniff(b"\xff\xfeh\x00i\x00") == "text/plain; charset=utf-16le"


def test_unknown_binary_falls_back(tmp_path):
    assert detect_mime(write(tmp_path, "blob", b"\x00\x01\x02\x03\x04\x05\x06\x07")) == DEFAULT_MIME


def test_empty_file_is_text(tmp_path):
    assert detect_mime(write(tmp_path, "empty", b"")) == TEXT_MIME


def test_only_leading_bytes_are_inspected(tmp_path):
    content = b"a" * 600 + b"\x00\x01\x02"
    assert detect_mime(write(tmp_path, "long.txt", content)) == TEXT_MIME


def test_missing_file_raises(tmp_path):
    missing = str(tmp_path / "missing.txt")
    with pytest.raises(FileAccessError) as exc_info:
        detect_mime(missing)
    assert exc_info.value.path == missing
    assert missing in str(exc_info.value)
