"""dfu-util executable resolution."""

from __future__ import annotations

import logging
import os
import shutil
import sys
from collections.abc import Sequence
from pathlib import Path

from dwmctl.core.errors import ToolNotFoundError

TOOL_ENV_VAR = "DWMCTL_DFU_UTIL"
LOGGER = logging.getLogger(__name__)


def _tool_name() -> str:
    return "dfu-util.exe" if sys.platform == "win32" else "dfu-util"


def _base_dir() -> Path:
    if getattr(sys, "frozen", False):
        return Path(sys.executable).resolve().parent
    return Path(__file__).resolve().parent.parent


def bundled_dirs() -> tuple[Path, ...]:
    """Bundled dfu-util locations beside the installed package and under the interpreter prefix."""
    return (
        _base_dir() / "Programs" / "dfu-util",
        Path(sys.prefix) / "Programs" / "dfu-util",
    )


def resolve_dfu_util(
    configured_path: str | None = None,
    *,
    search_dirs: Sequence[Path] | None = None,
) -> str:
    """Return a runnable dfu-util path.

    Order: ``$DWMCTL_DFU_UTIL``, the profile's ``tool_path``, a bundled copy
    under ``Programs/dfu-util``, then ``PATH``. An explicit path that does not
    exist is an error rather than a fallthrough.
    """
    explicit = os.environ.get(TOOL_ENV_VAR) or configured_path
    if explicit:
        if not Path(explicit).is_file():
            raise ToolNotFoundError(f"dfu-util not found at: {explicit}")
        return explicit

    name = _tool_name()
    for directory in bundled_dirs() if search_dirs is None else search_dirs:
        candidate = Path(directory) / name
        if candidate.is_file():
            LOGGER.debug("Using bundled dfu-util at %s", candidate)
            return str(candidate)

    found = shutil.which("dfu-util")
    if found:
        return found

    if sys.platform == "win32":
        raise ToolNotFoundError(
            "dfu-util.exe not found. Please ensure Programs/dfu-util/dfu-util.exe exists."
        )
    raise ToolNotFoundError("dfu-util not found. Please install dfu-util or ensure it's in your PATH.")
