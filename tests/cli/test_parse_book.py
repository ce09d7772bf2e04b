from __future__ import annotations

import json
from pathlib import Path
import struct

import pytest

from quickread.cli.parse_book import main as parse_book_main


def _encrypted_kindle_book() -> bytes:
    record0 = struct.pack(">HHIHHH", 1, 0, 5, 1, 4096, 1) + b"\x00\x00"
    records = [record0, b"hello"]
    header = bytearray(78)
    header[60:68] = b"BOOKMOBI"
    struct.pack_into(">H", header, 76, len(records))
    offset = 78 + 8 * len(records) + 2
    table = bytearray()
    for index, record in enumerate(records):
        table += struct.pack(">II", offset, index * 2)
        offset += len(record)
    return bytes(header) + bytes(table) + b"\x00\x00" + b"".join(records)


def test_cli_reports_parsed_book_as_json(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    book = tmp_path / "hello.txt"
    book.write_text("Hello world.", encoding="utf-8")

    exit_code = parse_book_main(["--path", str(book)])
    payload = json.loads(capsys.readouterr().out)

    assert exit_code == 0
    assert payload["processed"] == 1
    assert payload["errors"] == []
    result = payload["results"][0]
    assert result["source_path"] == str(book)
    assert result["file_key"] == "hello.txt_12"
    assert result["title"] == "Hello"
    assert result["format"] == "txt"
    assert result["total_words"] == 2
    assert result["total_pages"] == 1
    assert result["chapters"] == []
    assert "page" not in result


def test_cli_prints_page_words_with_timing(
    tmp_path: Path,
    capsys: pytest.CaptureFixture[str],
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.delenv("QUICKREAD_WPM", raising=False)
    book = tmp_path / "hello.txt"
    book.write_text("Hello world.", encoding="utf-8")

    exit_code = parse_book_main(["--path", str(book), "--page", "0", "--timing", "--wpm", "300"])
    page = json.loads(capsys.readouterr().out)["results"][0]["page"]

    assert exit_code == 0
    assert page == {
        "index": 0,
        "word_start": 0,
        "word_end": 1,
        "words": ["Hello", "world."],
        "wpm": 300,
        "durations_ms": [260, 300],
    }


def test_cli_reports_out_of_range_page(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    book = tmp_path / "hello.txt"
    book.write_text("Hello world.", encoding="utf-8")

    parse_book_main(["--path", str(book), "--page", "5"])
    page = json.loads(capsys.readouterr().out)["results"][0]["page"]

    assert page == {"index": 5, "error": "page out of range (0..0)"}


def test_cli_walks_directories_and_reports_failures(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    books_dir = tmp_path / "books"
    (books_dir / "nested").mkdir(parents=True)
    (books_dir / "nested" / "story.md").write_text("# Story\n\nOnce upon a time.", encoding="utf-8")
    (books_dir / "locked.azw3").write_bytes(_encrypted_kindle_book())
    (books_dir / "ignored.xyz").write_text("not a book", encoding="utf-8")

    exit_code = parse_book_main(["--path", str(books_dir)])
    payload = json.loads(capsys.readouterr().out)

    assert exit_code == 1
    assert payload["processed"] == 1
    assert payload["results"][0]["format"] == "markdown"
    assert payload["results"][0]["chapters"] == [{"title": "Story", "word_start": 0, "word_end": 4}]
    assert len(payload["errors"]) == 1
    assert payload["errors"][0]["kind"] == "drm-protected"
    assert payload["errors"][0]["source_path"].endswith("locked.azw3")


def test_cli_rejects_invalid_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("QUICKREAD_WPM", "fast")

    with pytest.raises(ValueError, match="QUICKREAD_WPM"):
        parse_book_main(["--path", str(tmp_path)])
