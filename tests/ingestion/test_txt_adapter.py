from __future__ import annotations

from pathlib import Path

from quickread.ingestion.adapters.txt_adapter import TXTAdapter


def test_txt_adapter_decodes_utf8_and_extracts_headers() -> None:
    raw = "Title: Луна\nAuthor: Александр\n\nПервая строка\nВторая строка\n".encode("utf-8")

    result = TXTAdapter().extract(raw, "book_utf8.txt", words_per_page=250)

    assert result.format_name == "txt"
    assert result.title == "Луна"
    assert result.author == "Александр"
    assert result.document.texts()[-4:] == ["Первая", "строка", "Вторая", "строка"]
    assert result.document.paragraph_starts == [0, 4]
    assert result.chapters == []


def test_txt_adapter_decodes_cp1251_headers() -> None:
    raw = "Название: Путь\nАвтор: Ирина\n\nПривет мир\nТихий лес\n".encode("cp1251")

    result = TXTAdapter().extract(raw, "book_cp1251.txt", words_per_page=250)

    assert result.title == "Путь"
    assert result.author == "Ирина"
    assert "Тихий" in result.document.texts()


def test_txt_adapter_splits_dashes_and_paragraphs() -> None:
    raw = "Hello world.\n\nForty-nine-year-old man—tired.".encode("utf-8")

    result = TXTAdapter().extract(raw, "plain.txt", words_per_page=250)

    assert result.document.texts() == ["Hello", "world.", "Forty-", "nine-", "year-", "old", "man—", "tired."]
    assert result.document.paragraph_starts == [0, 2]
    assert result.document.page_starts == [0]
    assert result.title == "Plain"
    result.document.validate()


def test_txt_adapter_strips_byte_order_mark_and_carriage_returns() -> None:
    raw = b"\xef\xbb\xbfFirst line\r\n\r\nSecond line\r\n"

    result = TXTAdapter().extract(raw, "windows.txt", words_per_page=250)

    assert result.document.texts() == ["First", "line", "Second", "line"]
    assert result.document.paragraph_starts == [0, 2]


def test_txt_adapter_drops_scene_separators() -> None:
    raw = b"Before the break.\n\n* * *\n\nAfter the break."

    result = TXTAdapter().extract(raw, "scenes.txt", words_per_page=250)

    assert result.document.texts() == ["Before", "the", "break.", "After", "the", "break."]
    assert '<span class="separator">*</span>' in result.preview.contents[0].html


def test_txt_adapter_sniffs_extensionless_plain_text() -> None:
    adapter = TXTAdapter()

    assert adapter.supports(Path("README"), b"Just some words")
    assert not adapter.supports(Path("README"), b"%PDF-1.7")
    assert not adapter.supports(Path("blob"), b"\x00\x01binary")
    assert not adapter.supports(Path("book.epub"), b"plain")
    assert adapter.supports(Path("notes.TXT"))
