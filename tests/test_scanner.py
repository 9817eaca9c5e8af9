from __future__ import annotations

import subprocess

import pytest

from dwmctl.core.errors import DeviceDiscoveryError, ProcessSpawnError
from dwmctl.dfu.scanner import scan_dfu_devices

LISTING = (
    'Found DFU: [0483:df11] ver=2200, devnum=5, cfg=1, intf=0, path="1-2", alt=1, '
    'name="@Option Bytes  /0x1FFFC000/01*016 e", serial="3276365D3034"\n'
    'Found DFU: [0483:df11] ver=2200, devnum=5, cfg=1, intf=0, path="1-2", alt=0, '
    'name="@Internal Flash  /0x08000000/04*016Kg", serial="3276365D3034"\n'
)


def _cp(cmd: list[str], rc: int, stdout: str = "", stderr: str = "") -> subprocess.CompletedProcess[str]:
    return subprocess.CompletedProcess(cmd, rc, stdout=stdout, stderr=stderr)


def test_scan_parses_listing(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[list[str]] = []

    def fake_run(cmd, check, capture_output, text):
        calls.append(cmd)
        return _cp(cmd, 0, stdout=LISTING)

    monkeypatch.setattr(subprocess, "run", fake_run)

    devices, output = scan_dfu_devices("/opt/dfu-util")
    assert calls == [["/opt/dfu-util", "-l"]]
    assert len(devices) == 1
    assert devices[0].alt_interface == 0
    assert output == LISTING


def test_nonzero_exit_with_listing_is_still_usable(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_run(cmd, check, capture_output, text):
        return _cp(cmd, 74, stdout=LISTING, stderr="dfu-util: Cannot open DFU device")

    monkeypatch.setattr(subprocess, "run", fake_run)

    devices, _ = scan_dfu_devices("dfu-util")
    assert [d.serial for d in devices] == ["3276365D3034"]


def test_failed_scan_without_output_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_run(cmd, check, capture_output, text):
        return _cp(cmd, 1, stderr="libusb init failed")

    monkeypatch.setattr(subprocess, "run", fake_run)

    with pytest.raises(DeviceDiscoveryError) as exc:
        scan_dfu_devices("dfu-util")
    assert "libusb init failed" in str(exc.value)


def test_launch_error_is_wrapped(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_run(cmd, check, capture_output, text):
        raise PermissionError(13, "Permission denied")

    monkeypatch.setattr(subprocess, "run", fake_run)

    with pytest.raises(ProcessSpawnError):
        scan_dfu_devices("dfu-util")
