"""
Assembly of the clipboard document: tree preamble plus one block per file.
"""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path
from types import MappingProxyType
from typing import Callable, Iterable, List, Mapping, Optional

from .classify import (
    BINARY,
    EMPTY,
    READ_ERROR,
    UNDETERMINED,
    UNREADABLE,
    FileCandidate,
    classify,
)
from .core import build_tree
from .log import get_logger

logger = get_logger("document")

PLACEHOLDERS: Mapping[str, str] = MappingProxyType({
    UNREADABLE: "(Permission denied - file not read)",
    EMPTY: "(Empty file)",
    BINARY: "(Binary file, not displayed)",
    UNDETERMINED: "(Undetermined or truly binary file, not displayed)",
    READ_ERROR: "(Read error - file not read)",
})

FENCE = b"```"

Highlighter = Callable[[Path], Optional[bytes]]
Probe = Callable[[Path], Optional[str]]


class OutputDocument:
    """
    The run's output, built strictly in path order.

    ``structure`` holds the tree preamble and ``files`` the per-file blocks;
    :meth:`to_bytes` joins them under their headings.
    """

    def __init__(self) -> None:
        self.structure = bytearray()
        self.files = bytearray()
        self.paths: List[str] = []
        self.included = 0

    @property
    def blocks(self) -> int:
        return len(self.paths)

    def set_structure(self, tree: str) -> None:
        self.structure = bytearray(b"# Workspace Structure\n\n")
        self.structure += FENCE + b"\n"
        self.structure += tree.encode("utf-8")
        if not tree.endswith("\n"):
            self.structure += b"\n"
        self.structure += FENCE + b"\n\n"

    def _header(self, rel: str) -> None:
        self.paths.append(rel)
        self.files += f"## File: {rel}\n\n".encode("utf-8")

    def add_content(self, rel: str, tag: str, content: bytes) -> None:
        """
        Append a fenced block holding *content* verbatim.

        The closing fence always starts its own line: content without a
        trailing newline gets one, so a file holding ``abc`` renders the same
        as one holding ``abc`` and a newline.
        """
        self._header(rel)
        self.files += FENCE + tag.encode("utf-8") + b"\n"
        self.files += content
        if content and not content.endswith(b"\n"):
            self.files += b"\n"
        self.files += FENCE + b"\n\n"
        self.included += 1

    def add_placeholder(self, rel: str, variant: str) -> None:
        self._header(rel)
        self.files += PLACEHOLDERS[variant].encode("utf-8") + b"\n\n"

    def to_bytes(self) -> bytes:
        return bytes(self.structure) + b"# Workspace Files\n\n" + bytes(self.files)


# Optional highlighter
class BatHighlighter:
    """Pipe file content through ``bat`` with colours and decorations off."""

    def __init__(self, executable: str) -> None:
        self.executable = executable

    def __call__(self, path: Path) -> Optional[bytes]:
        try:
            proc = subprocess.run(
                [
                    self.executable,
                    "--style=plain",
                    "--color=never",
                    "--paging=never",
                    "--",
                    str(path),
                ],
                capture_output=True,
                check=True,
            )
        except (OSError, subprocess.CalledProcessError) as e:
            logger.debug("%s failed for %s, falling back to raw bytes: %s",
                         self.executable, path, e)
            return None
        return proc.stdout


def find_highlighter() -> Optional[BatHighlighter]:
    # Debian and Ubuntu ship bat as "batcat"
    for name in ("bat", "batcat"):
        executable = shutil.which(name)
        if executable:
            return BatHighlighter(executable)
    logger.info("'bat' is not installed, file content is copied as-is.")
    return None


def render_file(
    doc: OutputDocument,
    candidate: FileCandidate,
    highlighter: Optional[Highlighter] = None,
) -> None:
    """Classify *candidate* and append exactly one block for it to *doc*."""
    decision = classify(candidate)
    if not decision.included:
        doc.add_placeholder(candidate.rel, decision.variant)
        return

    content = highlighter(candidate.path) if highlighter else None
    if content is None:
        try:
            content = candidate.path.read_bytes()
        except OSError as e:
            # deleted or locked since it was classified
            logger.warning("Could not read %s: %s", candidate.rel, e)
            doc.add_placeholder(candidate.rel, READ_ERROR)
            return
    doc.add_content(candidate.rel, decision.tag or "", content)


def build_document(
    root: Path,
    rel_paths: Iterable[str],
    probe: Optional[Probe] = None,
    highlighter: Optional[Highlighter] = None,
) -> OutputDocument:
    """Render the tree and every file under *root*, in the given order."""
    rel_paths = list(rel_paths)
    doc = OutputDocument()
    doc.set_structure(build_tree(rel_paths))
    for rel in rel_paths:
        render_file(doc, FileCandidate(root, rel, probe=probe), highlighter)
    logger.debug("%d blocks rendered, %d with content.", doc.blocks, doc.included)
    return doc
