"""DWM power meter control core: DFU firmware upload and de-embed calibration."""

__version__ = "0.1.0"
