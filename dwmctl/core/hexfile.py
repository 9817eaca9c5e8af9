"""Intel HEX to flat binary conversion.

Conversion runs two passes over the colon-prefixed lines: the first finds the
lowest and highest data byte addresses (honouring Extended Linear Address
records), the second fills a ``0xFF`` buffer of exactly that span. Checksums
are only verified on request.
"""

from __future__ import annotations

import logging
import os
import re
import tempfile
from collections.abc import Iterator
from pathlib import Path

from dwmctl.core.errors import (
    FirmwareReadError,
    FirmwareWriteError,
    HexChecksumError,
    MalformedInputError,
    SizeLimitExceededError,
)
from dwmctl.core.model import FLASH_START, MAX_IMAGE_BYTES, FirmwareImage, HexRecord

RECORD_DATA = 0x00
RECORD_EOF = 0x01
RECORD_EXTENDED_LINEAR_ADDRESS = 0x04

_MIN_RECORD_CHARS = 11
_HEX_DIGITS_RE = re.compile(r"^[0-9A-Fa-f]+$")
LOGGER = logging.getLogger(__name__)


def _hex_field(line: str, start: int, width: int, *, line_number: int, what: str) -> int:
    text = line[start : start + width]
    if len(text) != width:
        raise MalformedInputError(f"Line {line_number}: truncated {what} field")
    if not _HEX_DIGITS_RE.match(text):
        raise MalformedInputError(f"Line {line_number}: invalid {what} field '{text}'")
    return int(text, 16)


def _verify_checksum(line: str, byte_length: int, *, line_number: int) -> None:
    body = line[1 : 1 + (byte_length + 5) * 2]
    try:
        raw = bytes.fromhex(body)
    except ValueError as exc:
        raise MalformedInputError(f"Line {line_number}: record is not valid hex") from exc
    if len(raw) != byte_length + 5:
        raise MalformedInputError(f"Line {line_number}: record shorter than its byte count")
    if sum(raw) & 0xFF != 0:
        raise HexChecksumError(f"Line {line_number}: checksum mismatch")


def iter_records(hex_text: str, *, verify_checksums: bool = False) -> Iterator[HexRecord]:
    """Yield one record per colon-prefixed line, skipping stray text and short lines."""
    for line_number, raw_line in enumerate(hex_text.splitlines(), start=1):
        line = raw_line.strip()
        if not line.startswith(":"):
            continue
        if len(line) < _MIN_RECORD_CHARS:
            LOGGER.debug("Skipping short hex line %d: %r", line_number, line)
            continue

        byte_length = _hex_field(line, 1, 2, line_number=line_number, what="byte count")
        offset = _hex_field(line, 3, 4, line_number=line_number, what="address")
        record_type = _hex_field(line, 7, 2, line_number=line_number, what="record type")

        if verify_checksums:
            _verify_checksum(line, byte_length, line_number=line_number)

        payload = b""
        if record_type in (RECORD_DATA, RECORD_EXTENDED_LINEAR_ADDRESS):
            text = line[9 : 9 + byte_length * 2]
            if len(text) != byte_length * 2:
                raise MalformedInputError(
                    f"Line {line_number}: declares {byte_length} bytes but holds {len(text) // 2}"
                )
            if text and not _HEX_DIGITS_RE.match(text):
                raise MalformedInputError(f"Line {line_number}: invalid data bytes")
            payload = bytes.fromhex(text)

        yield HexRecord(
            record_type=record_type,
            offset=offset,
            byte_length=byte_length,
            payload=payload,
            line_number=line_number,
        )


def _iter_data(records: list[HexRecord]) -> Iterator[tuple[int, bytes]]:
    upper = 0
    for record in records:
        if record.record_type == RECORD_EXTENDED_LINEAR_ADDRESS:
            upper = int.from_bytes(record.payload[:2].rjust(2, b"\x00"), "big") << 16
        elif record.record_type == RECORD_DATA:
            yield upper + record.offset, record.payload


def convert_hex(
    hex_text: str,
    *,
    seed_address: int | None = FLASH_START,
    max_size: int = MAX_IMAGE_BYTES,
    fill_byte: int = 0xFF,
    verify_checksums: bool = False,
) -> FirmwareImage:
    """Convert Intel HEX text into a dense image spanning every data byte.

    ``seed_address`` initialises both ends of the address range, so the image
    always covers the flash start the upload tool writes to. Pass ``None`` to
    size the image from the data records alone.
    """
    records = list(iter_records(hex_text, verify_checksums=verify_checksums))

    min_addr = seed_address
    max_addr = seed_address
    seen_data = False
    for address, payload in _iter_data(records):
        if not payload:
            continue
        seen_data = True
        last = address + len(payload) - 1
        min_addr = address if min_addr is None else min(min_addr, address)
        max_addr = last if max_addr is None else max(max_addr, last)

    if not seen_data or min_addr is None or max_addr is None:
        raise MalformedInputError("No Intel HEX data records found")

    size = max_addr - min_addr + 1
    LOGGER.debug("Address range: 0x%08X - 0x%08X (%d bytes)", min_addr, max_addr, size)
    if size > max_size:
        raise SizeLimitExceededError(f"Firmware too large: {size} bytes (limit {max_size})")

    buffer = bytearray([fill_byte]) * size
    for address, payload in _iter_data(records):
        start = address - min_addr
        lo = max(start, 0)
        hi = min(start + len(payload), size)
        if lo < hi:
            buffer[lo:hi] = payload[lo - start : hi - start]

    LOGGER.info("Converted to binary: %d bytes at 0x%08X", size, min_addr)
    return FirmwareImage(base_address=min_addr, data=bytes(buffer))


def read_hex_file(path: str | os.PathLike[str]) -> str:
    try:
        return Path(path).read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        raise FirmwareReadError(f"Could not read firmware file {path}: {exc}") from exc


def write_image(image: FirmwareImage, directory: str | os.PathLike[str] | None = None) -> Path:
    """Write the image as a headerless binary to a uniquely named temp file."""
    try:
        fd, name = tempfile.mkstemp(prefix="firmware_temp_", suffix=".bin", dir=directory)
    except OSError as exc:
        raise FirmwareWriteError(f"Could not create temporary firmware image: {exc}") from exc

    path = Path(name)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(image.data)
    except OSError as exc:
        path.unlink(missing_ok=True)
        raise FirmwareWriteError(f"Could not write temporary firmware image {path}: {exc}") from exc
    return path
