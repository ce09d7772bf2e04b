"""CLI command that parses books into reader word streams and reports them."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

from dotenv import load_dotenv

from quickread.config import ReaderSettings
from quickread.ingestion import DocumentIngestor, IngestionError, ParseResult, ResourceStore
from quickread.timing import clamp_wpm

load_dotenv()

logger = logging.getLogger(__name__)


def _is_supported(path: Path, extensions: set[str]) -> bool:
    suffixes = [part.lower().lstrip(".") for part in path.suffixes]
    if not suffixes:
        return False
    if suffixes[-1] in extensions:
        return True
    return suffixes[-2:] == ["fb2", "zip"]


def _collect_inputs(target: Path, extensions: set[str]) -> list[Path]:
    if target.is_file():
        return [target]
    if target.is_dir():
        return sorted(path for path in target.rglob("*") if path.is_file() and _is_supported(path, extensions))
    return []


def _build_ingestor(settings: ReaderSettings, words_per_page: int | None, store: ResourceStore) -> DocumentIngestor:
    return DocumentIngestor.with_default_adapters(
        words_per_page=words_per_page or settings.words_per_page,
        min_words_per_page=settings.min_words_per_page,
        resource_store=store,
    )


def _page_payload(result: ParseResult, page: int, *, settings: ReaderSettings, wpm: int | None) -> dict[str, object]:
    document = result.document
    if not 0 <= page < document.total_pages:
        return {"index": page, "error": f"page out of range (0..{document.total_pages - 1})"}

    start, end = document.page_word_range(page)
    words = document.texts()[start : end + 1]
    payload: dict[str, object] = {"index": page, "word_start": start, "word_end": end, "words": words}
    if wpm is not None:
        effective = clamp_wpm(wpm)
        payload["wpm"] = effective
        payload["durations_ms"] = settings.timing_profile.durations(words, effective)
    return payload


def _result_payload(
    file_path: Path,
    result: ParseResult,
    *,
    settings: ReaderSettings,
    page: int | None,
    wpm: int | None,
) -> dict[str, object]:
    document = result.document
    payload: dict[str, object] = {
        "source_path": str(file_path),
        "file_key": result.file_key,
        "title": result.title,
        "author": result.author,
        "format": result.format_name,
        "total_words": document.total_words,
        "total_paragraphs": document.total_paragraphs,
        "total_pages": document.total_pages,
        "chapters": [
            {"title": chapter.title, "word_start": chapter.word_start, "word_end": chapter.word_end}
            for chapter in result.chapters
        ],
        "warnings": list(result.warnings),
    }
    if page is not None:
        payload["page"] = _page_payload(result, page, settings=settings, wpm=wpm)
    return payload


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Parse books into speed-reading word streams")
    parser.add_argument("--path", required=True, help="Source file or directory")
    parser.add_argument("--words-per-page", type=int, default=None, help="Provisional page size in words")
    parser.add_argument("--page", type=int, default=None, help="Print the words of this page (0-based)")
    parser.add_argument("--timing", action="store_true", help="Include per-word display durations for --page")
    parser.add_argument("--wpm", type=int, default=None, help="Reading speed used with --timing")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")

    settings = ReaderSettings.from_env()
    if args.words_per_page is not None and args.words_per_page < 1:
        parser.error("--words-per-page must be >= 1")

    store = ResourceStore()
    ingestor = _build_ingestor(settings, args.words_per_page, store)
    source_path = Path(args.path)
    files = _collect_inputs(source_path, set(ingestor.supported_extensions))
    wpm = (args.wpm or settings.wpm) if args.timing else None

    results: list[dict[str, object]] = []
    errors: list[dict[str, str]] = []

    for file_path in files:
        try:
            parsed = ingestor.ingest(file_path)
        except IngestionError as exc:
            logger.error("Failed to parse %s: %s", file_path, exc)
            errors.append({"source_path": str(file_path), "kind": exc.kind.value, "error": str(exc)})
            continue

        results.append(_result_payload(file_path, parsed, settings=settings, page=args.page, wpm=wpm))
        parsed.release_resources(store)

    payload = {
        "path": str(source_path),
        "processed": len(results),
        "results": results,
        "errors": errors,
    }
    print(json.dumps(payload, ensure_ascii=True, indent=2))
    return 0 if not errors else 1


if __name__ == "__main__":
    raise SystemExit(main())
