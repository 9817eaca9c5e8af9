"""Upload progress interfaces."""

from __future__ import annotations

from typing import Protocol

from dwmctl.core.model import ProgressEvent


class ProgressSink(Protocol):
    def __call__(self, line: str, event: ProgressEvent | None) -> None:
        """Receive one raw dfu-util line and the progress event derived from it, if any."""
