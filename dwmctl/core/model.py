"""Core data models used across converter, uploader, calibration, service, and CLI."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum

FLASH_START = 0x08000000
MAX_IMAGE_BYTES = 1024 * 1024


@dataclass(frozen=True)
class HexRecord:
    record_type: int
    offset: int
    byte_length: int
    payload: bytes
    line_number: int


@dataclass(frozen=True)
class FirmwareImage:
    base_address: int
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def end_address(self) -> int:
        """Last byte address covered by the image (inclusive)."""
        return self.base_address + len(self.data) - 1


@dataclass(frozen=True)
class DfuDevice:
    vendor_id: str
    product_id: str
    serial: str = "unknown"
    alt_interface: int = 0
    interface_name: str = ""
    raw_description_line: str = ""

    @property
    def identity(self) -> tuple[str, str, str]:
        return (self.vendor_id, self.product_id, self.serial)

    @property
    def usb_id(self) -> str:
        return f"{self.vendor_id}:{self.product_id}"


@dataclass(frozen=True)
class ProgressEvent:
    percent: int
    message: str


class UploadState(Enum):
    IDLE = "idle"
    CONVERTING_IMAGE = "converting-image"
    SPAWNING = "spawning"
    STREAMING = "streaming"
    FINISHED = "finished"


@dataclass(frozen=True)
class UploadResult:
    success: bool
    output: str
    error: str | None = None
    error_code: str | None = None
    exit_code: int | None = None


@dataclass(frozen=True)
class ScanResult:
    success: bool
    devices: tuple[DfuDevice, ...] | None = None
    output: str = ""
    error: str | None = None
    needs_setup: bool = False
    windows_help: bool = False


@dataclass(frozen=True)
class CoefficientScale:
    """Fixed-point conversion factors agreed with a device firmware revision."""

    multipliers: tuple[float, ...] = (1000.0, 1_000_000.0, 1_000_000.0)
    divisor: float = 100.0
    firmware_revision: str = "2"

    def apply(self, coefficients: tuple[float, ...]) -> tuple[float, ...]:
        return tuple(c * m / self.divisor for c, m in zip(coefficients, self.multipliers))


DEFAULT_SCALE = CoefficientScale()


@dataclass(frozen=True)
class CalibrationPoint:
    power: float | None = None
    voltage_mv: float | None = None
    full_scale_power: float = 100.0

    @property
    def percent_full_scale(self) -> float | None:
        if self.power is None or self.full_scale_power <= 0:
            return None
        return self.power / self.full_scale_power * 100.0

    @property
    def is_usable(self) -> bool:
        return self.voltage_mv is not None and self.percent_full_scale is not None


ORIGIN = CalibrationPoint(power=0.0, voltage_mv=0.0)


@dataclass(frozen=True)
class CalibrationSet:
    """Operator-entered calibration points; the origin is implicit and never stored here."""

    full_scale_power: float
    points: tuple[CalibrationPoint, ...] = ()

    @classmethod
    def with_point_count(cls, full_scale_power: float, count: int) -> CalibrationSet:
        blank = CalibrationPoint(full_scale_power=full_scale_power)
        return cls(full_scale_power=full_scale_power, points=(blank,) * count)

    def with_point(
        self,
        index: int,
        *,
        power: float | None = None,
        voltage_mv: float | None = None,
    ) -> CalibrationSet:
        if power is not None and power < 0:
            raise ValueError("power must be >= 0")
        if voltage_mv is not None and voltage_mv < 0:
            raise ValueError("voltage_mv must be >= 0")
        current = self.points[index]
        updated = CalibrationPoint(
            power=current.power if power is None else power,
            voltage_mv=current.voltage_mv if voltage_mv is None else voltage_mv,
            full_scale_power=self.full_scale_power,
        )
        points = list(self.points)
        points[index] = updated
        return CalibrationSet(full_scale_power=self.full_scale_power, points=tuple(points))

    def usable_points(self) -> tuple[CalibrationPoint, ...]:
        return tuple(p for p in self.points if p.is_usable)


@dataclass(frozen=True)
class PolynomialFitResult:
    coefficients: tuple[float, ...]
    r_squared: float
    scaled_coefficients: tuple[float, ...] = ()

    @property
    def degree(self) -> int:
        return len(self.coefficients)

    def is_low_quality(self, threshold: float = 0.995) -> bool:
        return math.isnan(self.r_squared) or self.r_squared < threshold


@dataclass(frozen=True)
class DfuSettings:
    tool_path: str | None = None
    alt_setting: int = 0
    interface: int = 0
    flash_address: int = FLASH_START
    success_exit_codes: tuple[int, ...] = (0, 74)


@dataclass(frozen=True)
class FirmwareSettings:
    seed_address: int | None = FLASH_START
    max_image_bytes: int = MAX_IMAGE_BYTES
    fill_byte: int = 0xFF
    verify_checksums: bool = False


@dataclass(frozen=True)
class CalibrationSettings:
    degree: int = 3
    min_r_squared: float = 0.995
    scale: CoefficientScale = DEFAULT_SCALE


@dataclass(frozen=True)
class DeviceProfile:
    id: str
    name: str
    dfu: DfuSettings = field(default_factory=DfuSettings)
    firmware: FirmwareSettings = field(default_factory=FirmwareSettings)
    calibration: CalibrationSettings = field(default_factory=CalibrationSettings)
