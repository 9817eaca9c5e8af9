from __future__ import annotations

import pytest


def _record(record_type: int, offset: int, payload: bytes) -> str:
    body = bytes([len(payload), (offset >> 8) & 0xFF, offset & 0xFF, record_type]) + payload
    checksum = (-sum(body)) & 0xFF
    return ":" + (body + bytes([checksum])).hex().upper()


def encode_hex(data: bytes, base_address: int, chunk: int = 16) -> str:
    lines: list[str] = []
    upper = None
    for start in range(0, len(data), chunk):
        address = base_address + start
        if address >> 16 != upper:
            upper = address >> 16
            lines.append(_record(0x04, 0, upper.to_bytes(2, "big")))
        lines.append(_record(0x00, address & 0xFFFF, data[start : start + chunk]))
    lines.append(":00000001FF")
    return "\n".join(lines) + "\n"


@pytest.fixture
def make_hex():
    return encode_hex
