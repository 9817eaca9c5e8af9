"""DFU interface selection and device-hint matching logic."""

from __future__ import annotations

from collections.abc import Sequence

from dwmctl.core.errors import DeviceSelectionError
from dwmctl.core.model import DfuDevice

_FLASH_NAME_TOKEN = "internal flash"


def _is_flash_interface(device: DfuDevice) -> bool:
    return device.alt_interface == 0 or _FLASH_NAME_TOKEN in device.interface_name.lower()


def select_flash_interfaces(devices: Sequence[DfuDevice]) -> list[DfuDevice]:
    """Keep one entry per physical device, preferring its primary flash interface.

    The first entry seen for an identity key is kept unless a later one is
    alt 0 or names internal flash. Output follows first-discovery order.
    """
    selected: dict[tuple[str, str, str], DfuDevice] = {}
    for device in devices:
        key = device.identity
        if key not in selected or _is_flash_interface(device):
            selected[key] = device
    return list(selected.values())


def match_score(device: DfuDevice, hint: str) -> int:
    lowered = hint.strip().lower()
    if not lowered:
        return 0
    if lowered == device.usb_id or lowered == device.serial.lower():
        return 3
    if lowered in device.usb_id or lowered in device.serial.lower():
        return 2
    if lowered in device.interface_name.lower():
        return 1
    return 0


def pick_device(devices: Sequence[DfuDevice], hint: str | None = None) -> DfuDevice:
    if not devices:
        raise DeviceSelectionError(
            "No DFU devices found. Ensure the device is connected and in bootloader mode."
        )

    candidates = list(devices)
    if hint:
        scored = [(match_score(d, hint), d) for d in candidates]
        best = max(score for score, _ in scored)
        if best == 0:
            raise DeviceSelectionError(f"No DFU device found matching '{hint}'")
        candidates = [d for score, d in scored if score == best]

    if len(candidates) > 1:
        desc = ", ".join(f"{d.usb_id} (serial {d.serial})" for d in candidates)
        raise DeviceSelectionError(
            f"Multiple DFU devices found: {desc}. Use --device to choose one."
        )
    return candidates[0]
