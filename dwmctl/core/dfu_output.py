"""Parsing of ``dfu-util -l`` listings into DFU device records."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from dwmctl.core.device_match import select_flash_interfaces
from dwmctl.core.model import DfuDevice

FOUND_MARKER = "Found DFU"

_USB_ID_RE = re.compile(r"Found DFU: \[([0-9a-f]{4}):([0-9a-f]{4})\]", re.IGNORECASE)
_SERIAL_QUOTED_RE = re.compile(r'serial="([^"]+)"')
_SERIAL_BARE_RE = re.compile(r"serial=([^\s,]+)")
_ALT_RE = re.compile(r"alt=(\d+)")
_NAME_RE = re.compile(r'name="([^"]+)"')
LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class DfuLineMatch:
    """Outcome of matching one output line: a device, or the reason it was skipped."""

    device: DfuDevice | None
    reason: str = ""

    @property
    def matched(self) -> bool:
        return self.device is not None


def _serial(line: str) -> str:
    match = _SERIAL_QUOTED_RE.search(line) or _SERIAL_BARE_RE.search(line)
    return match.group(1) if match else "unknown"


def parse_dfu_line(line: str) -> DfuLineMatch:
    if FOUND_MARKER not in line:
        return DfuLineMatch(device=None, reason="no-marker")

    match = _USB_ID_RE.search(line)
    if not match:
        return DfuLineMatch(device=None, reason="no-id")

    alt_match = _ALT_RE.search(line)
    name_match = _NAME_RE.search(line)
    return DfuLineMatch(
        device=DfuDevice(
            vendor_id=match.group(1).lower(),
            product_id=match.group(2).lower(),
            serial=_serial(line),
            alt_interface=int(alt_match.group(1)) if alt_match else 0,
            interface_name=name_match.group(1) if name_match else "",
            raw_description_line=line.strip(),
        )
    )


def parse_dfu_output(raw_output: str) -> list[DfuDevice]:
    devices: list[DfuDevice] = []
    for line in raw_output.splitlines():
        result = parse_dfu_line(line)
        if result.matched:
            devices.append(result.device)
        elif result.reason == "no-id":
            LOGGER.debug("Ignoring DFU line without USB id: %s", line.strip())
    return select_flash_interfaces(devices)
