"""Firmware upload through dfu-util.

One ``DfuUploader`` drives at most one dfu-util process at a time. Every
failure, including a missing tool or an OS-level launch error, comes back as
an ``UploadResult``; the temporary binary is removed on every path.
"""

from __future__ import annotations

import logging
import os
import subprocess
import threading
from collections.abc import Sequence
from pathlib import Path

from dwmctl.core.errors import (
    DwmError,
    ProcessSpawnError,
    UploadBusyError,
    UploadCancelledError,
    UploadFailedError,
)
from dwmctl.core.hexfile import convert_hex, read_hex_file, write_image
from dwmctl.core.model import DeviceProfile, DfuDevice, UploadResult, UploadState
from dwmctl.core.progress import ERROR_EVENT, classify_progress
from dwmctl.dfu.base import ProgressSink
from dwmctl.dfu.locate import resolve_dfu_util

DEFAULT_PROFILE = DeviceProfile(id="dwm_v2", name="DWM V2 (STM32 DFU bootloader)")
LOGGER = logging.getLogger(__name__)


class DfuUploader:
    def __init__(
        self,
        profile: DeviceProfile | None = None,
        *,
        temp_dir: str | os.PathLike[str] | None = None,
    ) -> None:
        self.profile = profile or DEFAULT_PROFILE
        self.temp_dir = temp_dir
        self.state = UploadState.IDLE
        self._busy = threading.Lock()
        self._process_lock = threading.Lock()
        self._process: subprocess.Popen[str] | None = None
        self._cancelled = False

    @property
    def is_uploading(self) -> bool:
        return self._busy.locked()

    def build_args(self, bin_path: Path) -> list[str]:
        dfu = self.profile.dfu
        return [
            "-a", str(dfu.alt_setting),
            "-i", str(dfu.interface),
            "-D", str(bin_path),
            "-s", f"0x{dfu.flash_address:08X}:leave",
            "-R",
        ]

    def upload(
        self,
        hex_path: str | os.PathLike[str],
        device: DfuDevice | None = None,
        on_progress: ProgressSink | None = None,
    ) -> UploadResult:
        if not self._busy.acquire(blocking=False):
            busy = UploadBusyError("An upload is already in progress")
            return UploadResult(success=False, output="", error=str(busy), error_code=busy.code)
        try:
            return self._upload(hex_path, device, on_progress)
        finally:
            with self._process_lock:
                self._cancelled = False
            self._busy.release()

    def cancel(self) -> bool:
        """Cancel the upload in flight.

        Before dfu-util starts this stops the upload from spawning it; while it
        runs the process is terminated. Returns False when there is nothing to
        cancel.
        """
        with self._process_lock:
            if not self._busy.locked() or self._cancelled:
                return False
            if self._process is not None:
                if self._process.poll() is not None:
                    return False
                self._process.terminate()
            self._cancelled = True
        LOGGER.info("Upload cancellation requested")
        return True

    def _upload(
        self,
        hex_path: str | os.PathLike[str],
        device: DfuDevice | None,
        on_progress: ProgressSink | None,
    ) -> UploadResult:
        output: list[str] = []
        bin_path: Path | None = None
        exit_code: int | None = None
        firmware = self.profile.firmware
        try:
            self.state = UploadState.CONVERTING_IMAGE
            image = convert_hex(
                read_hex_file(hex_path),
                seed_address=firmware.seed_address,
                max_size=firmware.max_image_bytes,
                fill_byte=firmware.fill_byte,
                verify_checksums=firmware.verify_checksums,
            )
            bin_path = write_image(image, self.temp_dir)

            self.state = UploadState.SPAWNING
            tool = resolve_dfu_util(self.profile.dfu.tool_path)
            target = device.usb_id if device else "first DFU device"
            LOGGER.info("Uploading %d bytes to %s via %s", image.size, target, tool)

            exit_code = self._stream([tool, *self.build_args(bin_path)], output, on_progress)
            if self._cancelled:
                raise UploadCancelledError("Upload cancelled")
            if exit_code not in self.profile.dfu.success_exit_codes:
                raise UploadFailedError(f"Upload failed with code {exit_code}")
            LOGGER.info("Upload finished with exit code %d", exit_code)
            return UploadResult(success=True, output="".join(output), exit_code=exit_code)
        except DwmError as exc:
            LOGGER.warning("Upload failed: %s", exc)
            return UploadResult(
                success=False,
                output="".join(output),
                error=str(exc),
                error_code=exc.code,
                exit_code=exit_code,
            )
        finally:
            if bin_path is not None:
                bin_path.unlink(missing_ok=True)
            self.state = UploadState.FINISHED

    def _stream(
        self,
        cmd: Sequence[str],
        output: list[str],
        on_progress: ProgressSink | None,
    ) -> int:
        with self._process_lock:
            if self._cancelled:
                raise UploadCancelledError("Upload cancelled")
            try:
                process = subprocess.Popen(
                    cmd,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.STDOUT,
                    text=True,
                    errors="replace",
                )
            except OSError as exc:
                raise ProcessSpawnError(str(exc)) from exc
            self._process = process
        self.state = UploadState.STREAMING
        last_percent = -1
        try:
            with process:
                try:
                    if process.stdout:
                        for line in process.stdout:
                            output.append(line)
                            text = line.rstrip("\r\n")
                            event = classify_progress(text)
                            if event is not None and event is not ERROR_EVENT:
                                if event.percent < last_percent:
                                    event = None
                                else:
                                    last_percent = event.percent
                            if on_progress:
                                on_progress(text, event)
                except BaseException:
                    process.kill()
                    raise
                return process.wait()
        finally:
            with self._process_lock:
                self._process = None
