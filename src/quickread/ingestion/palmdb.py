"""Reader for Palm database containers (MOBI, AZW, PRC, PalmDOC)."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
import struct

from quickread.ingestion.errors import DrmProtectedError, MalformedContainerError, UnsupportedCompressionError
from quickread.ingestion.palmdoc import decompress_palmdoc

logger = logging.getLogger(__name__)

PALM_HEADER_SIZE = 78
RECORD_ENTRY_SIZE = 8
TYPE_CREATOR_OFFSET = 60
KINDLE_SIGNATURES = (b"BOOKMOBI", b"TEXtREAd")

COMPRESSION_NONE = 1
COMPRESSION_PALMDOC = 2
COMPRESSION_HUFF_CDIC = 17480

ENCODING_UTF8 = 65001
ENCODING_CP1252 = 1252

_NO_RECORD = 0xFFFFFFFF

_IMAGE_SIGNATURES: tuple[tuple[bytes, str], ...] = (
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"\x89PNG", "image/png"),
    (b"GIF8", "image/gif"),
    (b"BM", "image/bmp"),
)


def sniff_image_type(data: bytes) -> str | None:
    """Return the media type of an image record, or None for anything else."""

    if len(data) < 4:
        return None
    for signature, media_type in _IMAGE_SIGNATURES:
        if data.startswith(signature):
            return media_type
    return None


def has_kindle_signature(sniffed: bytes) -> bool:
    return sniffed[TYPE_CREATOR_OFFSET : TYPE_CREATOR_OFFSET + 8] in KINDLE_SIGNATURES


def _c_string(raw: bytes, encoding: str = "latin-1") -> str:
    return raw.split(b"\x00", 1)[0].decode(encoding, errors="replace")


@dataclass(slots=True)
class PalmDatabase:
    """The Palm database header and its record table."""

    name: str
    type_creator: bytes
    record_offsets: list[int]
    data: bytes = field(repr=False)

    @classmethod
    def parse(cls, data: bytes) -> PalmDatabase:
        if len(data) < PALM_HEADER_SIZE:
            raise MalformedContainerError("Invalid Kindle file: file too small")

        record_count = struct.unpack_from(">H", data, 76)[0]
        if record_count < 2:
            raise MalformedContainerError("Invalid Kindle file: not enough records")

        table_end = PALM_HEADER_SIZE + record_count * RECORD_ENTRY_SIZE
        if table_end > len(data):
            raise MalformedContainerError("Invalid Kindle file: record table is truncated")

        offsets = [
            struct.unpack_from(">I", data, PALM_HEADER_SIZE + index * RECORD_ENTRY_SIZE)[0]
            for index in range(record_count)
        ]
        if offsets[0] < table_end:
            raise MalformedContainerError("Invalid Kindle file: first record overlaps the record table")
        for previous, current in zip(offsets, offsets[1:]):
            if current < previous:
                raise MalformedContainerError("Invalid Kindle file: record offsets are not monotonic")
        if offsets[-1] > len(data):
            raise MalformedContainerError("Invalid Kindle file: record offset beyond end of file")

        return cls(
            name=_c_string(data[:32]),
            type_creator=data[TYPE_CREATOR_OFFSET : TYPE_CREATOR_OFFSET + 8],
            record_offsets=offsets,
            data=data,
        )

    @property
    def record_count(self) -> int:
        return len(self.record_offsets)

    def record(self, index: int) -> bytes:
        start = self.record_offsets[index]
        end = self.record_offsets[index + 1] if index + 1 < self.record_count else len(self.data)
        return self.data[start:end]


@dataclass(slots=True)
class MobiHeader:
    """Fields of record 0: the PalmDOC header plus the optional MOBI header."""

    compression: int
    text_record_count: int
    encryption: int
    is_mobi: bool = False
    header_length: int = 0
    text_encoding: int = ENCODING_CP1252
    full_title: str | None = None
    first_image_record: int | None = None
    extra_flags: int = 0

    @classmethod
    def parse(cls, record0: bytes) -> MobiHeader:
        if len(record0) < 16:
            raise MalformedContainerError("Invalid Kindle file: record 0 is truncated")

        compression, _unused, _text_length, text_record_count, _record_size, encryption = struct.unpack_from(
            ">HHIHHH", record0, 0
        )
        header = cls(compression=compression, text_record_count=text_record_count, encryption=encryption)

        if record0[16:20] != b"MOBI" or len(record0) < 24:
            return header

        header.is_mobi = True
        header.header_length = struct.unpack_from(">I", record0, 20)[0]
        if len(record0) >= 32:
            header.text_encoding = struct.unpack_from(">I", record0, 28)[0]
        if header.header_length >= 108 and len(record0) >= 112:
            first_image = struct.unpack_from(">I", record0, 108)[0]
            if first_image not in (0, _NO_RECORD):
                header.first_image_record = first_image
        if header.header_length >= 228 and len(record0) >= 244:
            header.extra_flags = struct.unpack_from(">H", record0, 242)[0]
        if len(record0) >= 92:
            title_offset, title_length = struct.unpack_from(">II", record0, 84)
            if 0 < title_length < 1000 and title_offset + title_length <= len(record0):
                title = _c_string(record0[title_offset : title_offset + title_length], header.codec).strip()
                header.full_title = title or None
        return header

    @property
    def codec(self) -> str:
        return "utf-8" if self.text_encoding == ENCODING_UTF8 else "cp1252"

    def ensure_readable(self) -> None:
        """Raise the terminal errors that make the text records unusable."""

        if self.encryption != 0:
            raise DrmProtectedError(
                "This file is DRM-protected. Only DRM-free Kindle files can be opened."
            )
        if self.compression == COMPRESSION_HUFF_CDIC:
            raise UnsupportedCompressionError(
                "HUFF/CDIC compression is not supported. Convert the file to EPUB first."
            )


def _trailing_entry_size(record: bytes) -> int:
    size = 0
    for byte in record[-4:]:
        if byte & 0x80:
            size = 0
        size = (size << 7) | (byte & 0x7F)
    return size


def trim_trailing_entries(record: bytes, extra_flags: int) -> bytes:
    """Drop the trailing data entries Kindle appends to each text record."""

    flags = extra_flags >> 1
    while flags and record:
        if flags & 1:
            size = _trailing_entry_size(record)
            record = record[: max(len(record) - size, 0)]
        flags >>= 1
    if extra_flags & 1 and record:
        record = record[: max(len(record) - ((record[-1] & 0x03) + 1), 0)]
    return record


@dataclass(slots=True)
class KindleImage:
    record_index: int
    media_type: str
    data: bytes = field(repr=False)


@dataclass(slots=True)
class KindleBook:
    """Decoded payload of a Kindle container."""

    title: str
    html: str
    images: dict[int, KindleImage] = field(default_factory=dict)
    images_by_record: dict[int, KindleImage] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)

    def image(self, index: int, *, absolute: bool = False) -> KindleImage | None:
        if absolute:
            return self.images_by_record.get(index) or self.images.get(index)
        return self.images.get(index) or self.images_by_record.get(index)


def _decode_text(payload: bytes, codec: str, warnings: list[str]) -> str:
    try:
        return payload.decode(codec)
    except UnicodeDecodeError:
        warnings.append(f"Text is not valid {codec}; decoded as Latin-1")
        return payload.decode("latin-1")


def read_kindle_book(data: bytes) -> KindleBook:
    """Run the header, record-table and decompression stages over a container."""

    database = PalmDatabase.parse(data)
    header = MobiHeader.parse(database.record(0))
    header.ensure_readable()

    warnings: list[str] = []
    if not header.is_mobi:
        warnings.append("File appears to be PalmDOC format, not MOBI")

    last_text_record = min(header.text_record_count, database.record_count - 1)
    if last_text_record < header.text_record_count:
        warnings.append(
            f"Header declares {header.text_record_count} text records but only {last_text_record} exist"
        )

    compression_warned = False
    text = bytearray()
    for index in range(1, last_text_record + 1):
        record = trim_trailing_entries(database.record(index), header.extra_flags)
        if header.compression == COMPRESSION_PALMDOC:
            text += decompress_palmdoc(record)
        else:
            if header.compression != COMPRESSION_NONE and not compression_warned:
                warnings.append(f"Unknown compression type: {header.compression}")
                compression_warned = True
            text += record

    first_image = header.first_image_record
    if first_image is None or first_image >= database.record_count:
        first_image = last_text_record + 1

    images: dict[int, KindleImage] = {}
    images_by_record: dict[int, KindleImage] = {}
    for index in range(first_image, database.record_count):
        record = database.record(index)
        media_type = sniff_image_type(record)
        if media_type is None:
            continue
        image = KindleImage(record_index=index, media_type=media_type, data=record)
        images[index - first_image + 1] = image
        images_by_record[index] = image

    logger.debug(
        "Decoded %d text records and %d images from %s",
        last_text_record,
        len(images),
        database.name or "<unnamed>",
    )
    return KindleBook(
        title=header.full_title or database.name,
        html=_decode_text(bytes(text), header.codec, warnings),
        images=images,
        images_by_record=images_by_record,
        warnings=warnings,
    )
