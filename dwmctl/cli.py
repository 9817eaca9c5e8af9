"""Typer CLI entrypoint."""

from __future__ import annotations

import logging
import math
from pathlib import Path

import typer

from dwmctl.core.errors import DwmError
from dwmctl.core.model import ProgressEvent
from dwmctl.core.service import DwmService

app = typer.Typer(help="DWM power meter control: DFU firmware upload and de-embed calibration")

_state: dict[str, str | None] = {"profile": None}


@app.callback()
def main(
    profile: str | None = typer.Option(None, "--profile", help="Device profile ID"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    _state["profile"] = profile
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _build_service() -> DwmService:
    service = DwmService(profile_id=_state["profile"])
    for warning in getattr(service, "load_warnings", ()):
        typer.echo(f"Warning: {warning}", err=True)
    return service


def _parse_point(text: str) -> tuple[float, float]:
    try:
        voltage, percent = (float(part) for part in text.split(","))
    except ValueError:
        raise typer.BadParameter(f"'{text}' is not a VOLTAGE_MV,PERCENT_FS pair") from None
    return voltage, percent


@app.command("profiles")
def list_profiles() -> None:
    """List available device profiles."""
    try:
        service = _build_service()
        for profile in service.list_profiles():
            scale = profile.calibration.scale
            typer.echo(f"{profile.id}: {profile.name}")
            typer.echo(
                f"  flash=0x{profile.dfu.flash_address:08X} "
                f"success_codes={','.join(str(c) for c in profile.dfu.success_exit_codes)} "
                f"coefficient_scale=rev{scale.firmware_revision}"
            )
    except DwmError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("devices")
def list_devices() -> None:
    """List DFU devices reported by dfu-util (one entry per physical device)."""
    try:
        service = _build_service()
        devices = service.list_devices()
        if not devices:
            typer.echo("No DFU devices found")
            return

        for device in devices:
            name = f' "{device.interface_name}"' if device.interface_name else ""
            typer.echo(f"{device.usb_id} serial={device.serial} alt={device.alt_interface}{name}")
    except DwmError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("convert")
def convert(
    hex_file: Path,
    output: Path,
    verify_checksums: bool = typer.Option(False, "--verify-checksums", help="Reject records with bad checksums"),
) -> None:
    """Convert an Intel HEX firmware file into a flat binary image."""
    try:
        service = _build_service()
        image = service.convert_firmware(hex_file, verify_checksums=verify_checksums or None)
        output.write_bytes(image.data)
        typer.echo(f"Wrote {image.size} bytes starting at 0x{image.base_address:08X} to {output}")
    except DwmError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None
    except OSError as exc:
        typer.echo(f"Error: Could not write {output}: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("upload")
def upload(
    hex_file: Path,
    device: str | None = typer.Option(None, "--device", help="USB id, serial, or interface name"),
) -> None:
    """Flash an Intel HEX firmware file to a DFU device."""

    def _on_progress(line: str, event: ProgressEvent | None) -> None:
        if line.strip():
            typer.echo(f"dfu-util: {line.strip()}")
        if event is not None:
            typer.echo(f"[{event.percent:3d}%] {event.message}")

    try:
        service = _build_service()
        target = service.resolve_device(device)
        typer.echo(f"Uploading {hex_file.name} to {target.usb_id} (serial {target.serial})")
        result = service.upload_firmware(hex_file, target, _on_progress)
        if not result.success:
            typer.echo(f"Error: {result.error}", err=True)
            raise typer.Exit(code=1)
        typer.echo("Firmware uploaded successfully")
    except DwmError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("fit")
def fit(
    points: list[str] = typer.Argument(..., help="VOLTAGE_MV,PERCENT_FS pairs; the origin is implicit"),
    degree: int | None = typer.Option(None, "--degree", help="Polynomial degree (profile default)"),
) -> None:
    """Fit the zero-offset de-embed polynomial and print device-ready coefficients."""
    pairs = [_parse_point(p) for p in points]
    try:
        service = _build_service()
        result = service.fit_calibration([p[0] for p in pairs], [p[1] for p in pairs], degree)
        for index, coefficient in enumerate(result.coefficients, start=1):
            typer.echo(f"c{index} = {coefficient:.9e}")
        r2 = "undefined" if math.isnan(result.r_squared) else f"{result.r_squared:.6f}"
        typer.echo(f"R^2 = {r2}")
        if result.scaled_coefficients:
            scaled = ", ".join(f"{value:.6f}" for value in result.scaled_coefficients)
            typer.echo(f"scaled = {scaled}")
        threshold = service.profile.calibration.min_r_squared
        if result.is_low_quality(threshold):
            typer.echo(f"Warning: low fit quality (R^2 below {threshold})", err=True)
    except DwmError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


def run() -> None:
    app()


if __name__ == "__main__":
    run()
