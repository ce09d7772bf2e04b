"""PalmDOC dictionary decompression used by Kindle text records."""

from __future__ import annotations


def decompress_palmdoc(data: bytes) -> bytes:
    """Decode one PalmDOC-compressed record.

    Byte classes:

    * ``0x00`` literal NUL
    * ``0x01``-``0x08`` copy that many following bytes verbatim
    * ``0x09``-``0x7F`` literal byte
    * ``0x80``-``0xBF`` two-byte back reference (11-bit distance, 3-bit length)
    * ``0xC0``-``0xFF`` a space followed by ``byte ^ 0x80``

    Malformed input never raises: truncated runs stop at the end of input and
    back references reaching before the start of the output produce zero bytes.
    """

    output = bytearray()
    i = 0
    size = len(data)

    while i < size:
        byte = data[i]
        i += 1

        if byte == 0x00:
            output.append(0)
        elif byte <= 0x08:
            chunk = data[i : i + byte]
            output += chunk
            i += len(chunk)
        elif byte <= 0x7F:
            output.append(byte)
        elif byte <= 0xBF:
            if i >= size:
                break
            following = data[i]
            i += 1
            distance = (((byte & 0x3F) << 8) | following) >> 3
            length = (following & 0x07) + 3
            for _ in range(length):
                position = len(output) - distance
                # Zero distance or a reference before the start is invalid.
                if 0 <= position < len(output):
                    output.append(output[position])
                else:
                    output.append(0)
        else:
            output.append(0x20)
            output.append(byte ^ 0x80)

    return bytes(output)
