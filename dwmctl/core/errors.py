"""Domain-specific errors for dwmctl."""


class DwmError(Exception):
    """Base error for dwmctl."""

    code = "error"


class ProfileValidationError(DwmError):
    """Raised when a profile file does not conform to schema or semantics."""

    code = "invalid-profile"


class ProfileLoadError(DwmError):
    """Raised when loading profile sources fails."""

    code = "profile-load"


class DeviceSelectionError(DwmError):
    """Raised when device matching cannot resolve a single DFU target."""

    code = "no-device"


class FirmwareError(DwmError):
    """Base firmware image error."""

    code = "firmware"


class FirmwareReadError(FirmwareError):
    """Raised when a firmware file cannot be read."""

    code = "firmware-read"


class FirmwareWriteError(FirmwareError):
    """Raised when the temporary binary image cannot be written."""

    code = "firmware-write"


class MalformedInputError(FirmwareError):
    """Raised when Intel HEX input has no usable data or unparseable records."""

    code = "malformed-hex"


class HexChecksumError(MalformedInputError):
    """Raised when checksum validation is enabled and a record does not sum to zero."""

    code = "hex-checksum"


class SizeLimitExceededError(FirmwareError):
    """Raised when the addressed span of a firmware image exceeds the size ceiling."""

    code = "image-too-large"


class DfuToolError(DwmError):
    """Base error for dfu-util interaction."""

    code = "dfu-tool"


class ToolNotFoundError(DfuToolError):
    """Raised when the dfu-util executable cannot be located."""

    code = "tool-missing"


class ProcessSpawnError(DfuToolError):
    """Raised when the OS refuses to launch dfu-util."""

    code = "spawn-failed"


class DeviceDiscoveryError(DfuToolError):
    """Raised when DFU enumeration produced no usable output."""

    code = "discovery-failed"


class UploadFailedError(DfuToolError):
    """Raised when dfu-util exits with a code outside the success set."""

    code = "upload-rejected"


class UploadCancelledError(DfuToolError):
    """Raised when an upload was terminated on request."""

    code = "cancelled"


class UploadBusyError(DfuToolError):
    """Raised when an upload is requested while another is in flight."""

    code = "busy"


class CalibrationError(DwmError):
    """Base calibration fit error."""

    code = "calibration"


class InsufficientDataError(CalibrationError):
    """Raised when fewer than degree + 1 points are available for a fit."""

    code = "fit-underdetermined"


class DimensionMismatchError(CalibrationError):
    """Raised when input vectors disagree in length."""

    code = "dimension-mismatch"


class SingularSystemError(CalibrationError):
    """Raised when the normal equations have a pivot at or near zero."""

    code = "fit-ill-conditioned"


class InvalidDegreeError(CalibrationError):
    """Raised when a polynomial degree outside the supported range is requested."""

    code = "invalid-degree"
