"""Service layer used by the CLI and the public client facade."""

from __future__ import annotations

import logging
import os
from collections.abc import Sequence

from dwmctl.core.calibration import fit_polynomial
from dwmctl.core.device_match import pick_device
from dwmctl.core.errors import DimensionMismatchError, ProfileLoadError
from dwmctl.core.hexfile import convert_hex, read_hex_file
from dwmctl.core.model import DeviceProfile, DfuDevice, FirmwareImage, PolynomialFitResult, UploadResult
from dwmctl.core.profile_loader import DEFAULT_PROFILE_ID, load_profiles
from dwmctl.dfu.base import ProgressSink
from dwmctl.dfu.locate import resolve_dfu_util
from dwmctl.dfu.scanner import scan_dfu_devices
from dwmctl.dfu.uploader import DfuUploader

LOGGER = logging.getLogger(__name__)


class DwmService:
    def __init__(
        self,
        *,
        profile_id: str | None = None,
        uploader: DfuUploader | None = None,
    ) -> None:
        loaded = load_profiles()
        self.profiles = loaded.profiles
        self.load_warnings = loaded.warnings
        self.profile = self._select_profile(profile_id or DEFAULT_PROFILE_ID)
        self.uploader = uploader or DfuUploader(self.profile)

    def _select_profile(self, profile_id: str) -> DeviceProfile:
        profile = self.profiles.get(profile_id)
        if profile is None:
            raise ProfileLoadError(
                f"Unknown profile '{profile_id}'. Use 'dwmctl profiles' to inspect available profiles."
            )
        return profile

    def list_profiles(self) -> list[DeviceProfile]:
        return sorted(self.profiles.values(), key=lambda p: p.id)

    def scan(self) -> tuple[list[DfuDevice], str]:
        tool = resolve_dfu_util(self.profile.dfu.tool_path)
        return scan_dfu_devices(tool)

    def list_devices(self) -> list[DfuDevice]:
        devices, _ = self.scan()
        return devices

    def resolve_device(self, device_hint: str | None = None) -> DfuDevice:
        return pick_device(self.list_devices(), device_hint)

    def convert_firmware(
        self,
        hex_path: str | os.PathLike[str],
        *,
        verify_checksums: bool | None = None,
    ) -> FirmwareImage:
        firmware = self.profile.firmware
        return convert_hex(
            read_hex_file(hex_path),
            seed_address=firmware.seed_address,
            max_size=firmware.max_image_bytes,
            fill_byte=firmware.fill_byte,
            verify_checksums=firmware.verify_checksums if verify_checksums is None else verify_checksums,
        )

    def upload_firmware(
        self,
        hex_path: str | os.PathLike[str],
        device: DfuDevice | None = None,
        on_progress: ProgressSink | None = None,
    ) -> UploadResult:
        return self.uploader.upload(hex_path, device, on_progress)

    def cancel_upload(self) -> bool:
        return self.uploader.cancel()

    def fit_calibration(
        self,
        x_voltages_mv: Sequence[float],
        y_percent_fs: Sequence[float],
        degree: int | None = None,
    ) -> PolynomialFitResult:
        """Fit operator points; the origin is added here and never duplicated."""
        if len(x_voltages_mv) != len(y_percent_fs):
            raise DimensionMismatchError(
                f"Got {len(x_voltages_mv)} voltages but {len(y_percent_fs)} readings"
            )
        pairs = [
            (float(x), float(y))
            for x, y in zip(x_voltages_mv, y_percent_fs)
            if not (x == 0 and y == 0)
        ]
        x = [0.0] + [p[0] for p in pairs]
        y = [0.0] + [p[1] for p in pairs]
        settings = self.profile.calibration
        return fit_polynomial(x, y, settings.degree if degree is None else degree, scale=settings.scale)
