"""Best-effort progress inference from dfu-util's human-readable log lines."""

from __future__ import annotations

import re

from dwmctl.core.model import ProgressEvent

ERROR_EVENT = ProgressEvent(percent=0, message="error detected")

_ERROR_RE = re.compile(r"error|failed|failure", re.IGNORECASE)

# Ordered; first match wins.
_RULES: tuple[tuple[re.Pattern[str], int, str], ...] = tuple(
    (re.compile(pattern, re.IGNORECASE), percent, message)
    for pattern, percent, message in (
        # completion / finalize / reset
        (r"Download done", 85, "Download complete"),
        (r"File downloaded successfully", 90, "Upload successful"),
        (r"Transitioning to dfuMANIFEST", 95, "Finalizing"),
        (r"Submitting leave request", 95, "Finalizing"),
        (r"Resetting USB", 100, "Device reset"),
        # open / detect / claim / configure
        (r"Opening DFU capable USB device", 10, "Opening device"),
        (r"Device ID", 15, "Device identified"),
        (r"Claiming USB DFU Interface", 20, "Claiming interface"),
        (r"Setting Alternate Setting", 25, "Selecting alternate setting"),
        (r"Determining device status", 30, "Checking device status"),
        # transfer start
        (r"DFU mode device DFU version", 35, "Preparing transfer"),
        (r"Device returned transfer size", 40, "Negotiated transfer size"),
        (r"Downloading (element )?to address", 45, "Starting download"),
        # active transfer
        (r"\bErase\b", 65, "Erasing flash"),
        (r"\b(downloading|uploading)\b", 70, "Transferring"),
        (r"\bbytes\b", 75, "Transferring data"),
    )
)


def classify_progress(line: str) -> ProgressEvent | None:
    if _ERROR_RE.search(line):
        return ERROR_EVENT
    for pattern, percent, message in _RULES:
        if pattern.search(line):
            return ProgressEvent(percent=percent, message=message)
    return None
