"""
Clipboard sinks.

Linux desktops get the document through ``wl-copy`` (Wayland) or ``xclip``
(X11) as raw bytes on stdin; macOS and Windows go through pyperclip.
"""

from __future__ import annotations

import os
import shutil
import subprocess
import sys
from typing import List, Mapping, Optional, Sequence

import pyperclip

from .classify import PROBE_COMMAND, probe_available
from .core import ClipboardError, MissingToolsError
from .log import get_logger

logger = get_logger("clipboard")


class CommandClipboard:
    """Write bytes to the stdin of a clipboard command."""

    def __init__(self, argv: Sequence[str]) -> None:
        self.argv = list(argv)

    @property
    def tool(self) -> str:
        return self.argv[0]

    def available(self) -> bool:
        return shutil.which(self.tool) is not None

    def copy(self, data: bytes) -> None:
        logger.debug("Copying %d bytes with %s", len(data), " ".join(self.argv))
        try:
            subprocess.run(self.argv, input=data, check=True)
        except (OSError, subprocess.CalledProcessError) as e:
            raise ClipboardError(f"'{self.tool}' could not copy to the clipboard: {e}")


class PyperclipClipboard:
    tool = "pyperclip"

    def available(self) -> bool:
        return True

    def copy(self, data: bytes) -> None:
        logger.debug("Copying %d bytes with pyperclip", len(data))
        try:
            pyperclip.copy(data.decode("utf-8", errors="replace"))
        except pyperclip.PyperclipException as e:
            raise ClipboardError(f"pyperclip could not copy to the clipboard: {e}")


def select_clipboard(
    platform: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
):
    """Pick the clipboard backend for *platform* and the display server."""
    platform = platform or sys.platform
    environ = os.environ if environ is None else environ
    if platform == "darwin" or platform.startswith("win"):
        return PyperclipClipboard()
    if environ.get("WAYLAND_DISPLAY"):
        return CommandClipboard(["wl-copy"])
    return CommandClipboard(["xclip", "-selection", "clipboard"])


def check_tools(clipboard) -> None:
    """Raise :class:`MissingToolsError` naming every missing collaborator."""
    missing: List[str] = []
    if not probe_available():
        missing.append(PROBE_COMMAND)
    if not clipboard.available():
        missing.append(clipboard.tool)
    if missing:
        raise MissingToolsError(missing)
