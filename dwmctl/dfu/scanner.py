"""DFU device enumeration through ``dfu-util -l``."""

from __future__ import annotations

import logging
import subprocess
from collections.abc import Sequence

from dwmctl.core.dfu_output import parse_dfu_output
from dwmctl.core.errors import DeviceDiscoveryError, ProcessSpawnError
from dwmctl.core.model import DfuDevice

LOGGER = logging.getLogger(__name__)


def scan_dfu_devices(tool: str) -> tuple[list[DfuDevice], str]:
    """Run an enumeration pass and return the de-duplicated devices plus raw stdout.

    dfu-util sometimes exits non-zero while still printing a valid listing, so
    any stdout counts as a usable result.
    """
    result = _run_list_command([tool, "-l"])
    if result.returncode != 0 and not result.stdout:
        stderr = (result.stderr or "").strip()
        raise DeviceDiscoveryError(stderr or f"DFU scan failed (exit {result.returncode})")

    devices = parse_dfu_output(result.stdout)
    LOGGER.info("DFU scan found %d device(s)", len(devices))
    return devices, result.stdout


def _run_list_command(cmd: Sequence[str]) -> subprocess.CompletedProcess[str]:
    try:
        return subprocess.run(
            cmd,
            check=False,
            capture_output=True,
            text=True,
        )
    except OSError as exc:
        raise ProcessSpawnError(f"Failed to run dfu-util: {exc}") from exc
