from __future__ import annotations

import pytest

from dwmctl.core.progress import ERROR_EVENT, classify_progress


def test_download_done_is_completion_stage() -> None:
    event = classify_progress("Download done.")
    assert event is not None
    assert event.percent == 85


def test_unrelated_text_yields_no_event() -> None:
    assert classify_progress("random unrelated text") is None
    assert classify_progress("") is None


@pytest.mark.parametrize(
    ("line", "percent"),
    [
        ("Opening DFU capable USB device...", 10),
        ("Device ID 0483:df11", 15),
        ("Claiming USB DFU Interface...", 20),
        ("Setting Alternate Setting #0 ...", 25),
        ("Determining device status: state = dfuIDLE, status = 0", 30),
        ("DFU mode device DFU version 011a", 35),
        ("Device returned transfer size 2048", 40),
        ("DfuSe interface name: \"Internal Flash  \"", None),
        ("Downloading element to address = 0x08000000, size = 65536", 45),
        ("Downloading to address = 0x08000000, size = 65536", 45),
        ("Erase   \t[=========================] 100%        65536 bytes", 65),
        ("Download\t[=========================] 100%        65536 bytes", 75),
        ("File downloaded successfully", 90),
        ("Transitioning to dfuMANIFEST state", 95),
        ("Submitting leave request...", 95),
        ("Resetting USB to switch back to runtime mode", 100),
    ],
)
def test_known_dfu_util_phrases(line: str, percent: int | None) -> None:
    event = classify_progress(line)
    if percent is None:
        assert event is None
    else:
        assert event is not None
        assert event.percent == percent


@pytest.mark.parametrize(
    "line",
    [
        "dfu-util: Error during download get_status",
        "Download done. Upload FAILED",
        "dfu-util: Cannot open DFU device 0483:df11 found on devnum 12 (LIBUSB_ERROR_ACCESS)",
    ],
)
def test_error_tokens_override_other_matches(line: str) -> None:
    event = classify_progress(line)
    assert event == ERROR_EVENT
    assert event.percent == 0
    assert event.message == "error detected"
