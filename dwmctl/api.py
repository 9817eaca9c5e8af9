"""Stable public API for GUIs and scripts built on top of dwmctl.

This module is the supported integration surface for third-party callers.
The three device operations never raise for domain failures; they return
structured results whose ``error_code`` tells the caller which operator action
applies (reconnect, install dfu-util, retry, add calibration points).
"""

from __future__ import annotations

import math
import os
import sys
from collections.abc import Sequence
from dataclasses import dataclass

from dwmctl.core.errors import (
    CalibrationError,
    DeviceSelectionError,
    DfuToolError,
    DwmError,
    FirmwareError,
    InsufficientDataError,
    MalformedInputError,
    ProcessSpawnError,
    SingularSystemError,
    SizeLimitExceededError,
    ToolNotFoundError,
    UploadFailedError,
)
from dwmctl.core.model import (
    DeviceProfile,
    DfuDevice,
    FirmwareImage,
    PolynomialFitResult,
    ProgressEvent,
    ScanResult,
    UploadResult,
)
from dwmctl.core.service import DwmService
from dwmctl.dfu.base import ProgressSink

__all__ = [
    "DwmError",
    "CalibrationError",
    "DeviceSelectionError",
    "DfuToolError",
    "FirmwareError",
    "InsufficientDataError",
    "MalformedInputError",
    "ProcessSpawnError",
    "SingularSystemError",
    "SizeLimitExceededError",
    "ToolNotFoundError",
    "UploadFailedError",
    "DeviceProfile",
    "DfuDevice",
    "FirmwareImage",
    "PolynomialFitResult",
    "ProgressEvent",
    "ScanResult",
    "UploadResult",
    "FitResponse",
    "Client",
    "format_set_command",
]

COEFFICIENT_PARAMS = ("DE_COEF1", "DE_COEF2", "DE_COEF3")


@dataclass(frozen=True)
class FitResponse:
    success: bool
    coefficients: tuple[float, ...] = ()
    r_squared: float = math.nan
    scaled_coefficients: tuple[float, ...] = ()
    low_quality: bool = True
    error: str | None = None
    error_code: str | None = None


def format_set_command(name: str, value: object) -> str:
    """Device serial command that sets one parameter."""
    return f"START:S:{name}:{value}"


def _is_windows() -> bool:
    return sys.platform == "win32"


class Client:
    """Public client for scanning, flashing and calibrating a DWM device.

    A `Client` wraps profile loading, dfu-util orchestration and the
    calibration engine. Device selection and file choice are explicit call
    parameters; the client keeps no UI state beyond the in-flight upload.
    """

    def __init__(self, *, profile_id: str | None = None) -> None:
        self._service = DwmService(profile_id=profile_id)

    @property
    def load_warnings(self) -> tuple[str, ...]:
        return self._service.load_warnings

    @property
    def profile(self) -> DeviceProfile:
        return self._service.profile

    @property
    def is_uploading(self) -> bool:
        return self._service.uploader.is_uploading

    def list_profiles(self) -> list[DeviceProfile]:
        return self._service.list_profiles()

    def scan_dfu_devices(self) -> ScanResult:
        try:
            devices, output = self._service.scan()
        except ToolNotFoundError as exc:
            return ScanResult(success=False, error=str(exc), needs_setup=True)
        except ProcessSpawnError as exc:
            message = f"{exc}. Try running as Administrator." if _is_windows() else str(exc)
            return ScanResult(success=False, error=message, windows_help=_is_windows())
        except DwmError as exc:
            return ScanResult(success=False, error=str(exc), windows_help=_is_windows())

        if not devices and _is_windows():
            return ScanResult(
                success=False,
                devices=(),
                output=output,
                error="No DFU devices found",
                windows_help=True,
            )
        return ScanResult(success=True, devices=tuple(devices), output=output)

    def upload_firmware(
        self,
        hex_file_path: str | os.PathLike[str],
        device_info: DfuDevice | None = None,
        on_progress: ProgressSink | None = None,
    ) -> UploadResult:
        return self._service.upload_firmware(hex_file_path, device_info, on_progress)

    def cancel_upload(self) -> bool:
        return self._service.cancel_upload()

    def fit_calibration(
        self,
        x_voltages_mv: Sequence[float],
        y_percent_fs: Sequence[float],
        degree: int | None = None,
    ) -> FitResponse:
        try:
            result = self._service.fit_calibration(x_voltages_mv, y_percent_fs, degree)
        except DwmError as exc:
            return FitResponse(success=False, error=str(exc), error_code=exc.code)
        return FitResponse(
            success=True,
            coefficients=result.coefficients,
            r_squared=result.r_squared,
            scaled_coefficients=result.scaled_coefficients,
            low_quality=result.is_low_quality(self.profile.calibration.min_r_squared),
        )

    def coefficient_commands(self, scaled_coefficients: Sequence[float]) -> list[str]:
        """Serial commands that store the scaled coefficients as device float parameters."""
        return [
            format_set_command(name, f"{float(value):.9g}")
            for name, value in zip(COEFFICIENT_PARAMS, scaled_coefficients)
        ]
