"""
Core workspace handling for glimpse: exclusion rules, walking and the tree
diagram.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

import pathspec

from .log import get_logger

logger = get_logger("core")


# Exceptions
class GlimpseError(Exception): ...
class InvalidRootError(GlimpseError): ...
class ClipboardError(GlimpseError): ...


class MissingToolsError(GlimpseError):
    def __init__(self, tools: Sequence[str]) -> None:
        self.tools = list(tools)
        super().__init__(
            "The following required tools are missing: " + ", ".join(self.tools)
        )


# Defaults. Directory names end with "/" so they only match whole segments.
DEFAULT_DIR_PATTERNS: List[str] = [
    ".git/",
    "node_modules/",
    "target/",
    "build/",
    "dist/",
    "out/",
    "bin/",
    "__pycache__/",
    "venv/",
    "env/",
    ".vscode/",
    ".idea/",
    ".next/",
    ".svelte-kit/",
    ".parcel-cache/",
    ".nuxt/",
    "coverage/",
]

DEFAULT_FILE_PATTERNS: List[str] = [
    ".DS_Store",
    "Thumbs.db",
    "*.log",
    "*.tmp",
    "*.swp",
    "*.min.js",    # minified assets are noise for an LLM
    "*.min.css",
    "package-lock.json",
    "yarn.lock",
    "pnpm-lock.yaml",
]

class ExclusionRules:
    """
    Compiled, read-only set of exclusion patterns for one run.

    *file_globs* are matched against file basenames only, so a directory
    named ``foo.log`` and the files inside it survive ``*.log``.
    """

    def __init__(self, patterns: Iterable[str], file_globs: Iterable[str] = ()) -> None:
        self.patterns = tuple(patterns)
        self.file_globs = tuple(file_globs)
        self._spec = pathspec.PathSpec.from_lines("gitwildmatch", self.patterns)
        self._file_spec = pathspec.PathSpec.from_lines("gitwildmatch", self.file_globs)

    def __add__(self, other: "ExclusionRules") -> "ExclusionRules":
        return ExclusionRules(
            self.patterns + other.patterns, self.file_globs + other.file_globs
        )

    def excludes_file(self, rel: str) -> bool:
        basename = rel.rsplit("/", 1)[-1]
        return self._spec.match_file(rel) or self._file_spec.match_file(basename)

    def excludes_dir(self, rel: str) -> bool:
        # A trailing slash lets "name/" patterns match the directory itself.
        return self._spec.match_file(rel.rstrip("/") + "/")


def default_rules(extra: Optional[Iterable[str]] = None) -> ExclusionRules:
    return ExclusionRules(DEFAULT_DIR_PATTERNS + list(extra or []), DEFAULT_FILE_PATTERNS)


# Ignore-file utilities
def load_gitignore(root: Path) -> ExclusionRules:
    """Compile the workspace's root ``.gitignore`` (empty when absent)."""
    gitignore_path = root / ".gitignore"
    if not gitignore_path.is_file():
        return ExclusionRules([])
    with gitignore_path.open("r", encoding="utf-8", errors="replace") as fh:
        lines = [
            ln.rstrip("\n")
            for ln in fh
            if ln.strip() and not ln.lstrip().startswith("#")
        ]
    return ExclusionRules(lines)


# File-scanning helpers
def resolve_root(root: Path) -> Path:
    try:
        root = root.resolve()
    except (OSError, RuntimeError) as e:
        raise InvalidRootError(f"Could not resolve root path '{root}': {e}")
    if not root.exists():
        raise InvalidRootError(f"'{root}' does not exist")
    if not root.is_dir():
        raise InvalidRootError(f"'{root}' is not a directory")
    return root


def _sort_key(rel: str) -> tuple:
    return tuple(rel.split("/"))


def scan_files(root: Path, rules: ExclusionRules) -> List[str]:
    """
    Walk *root* and return the relative POSIX paths of every non-excluded
    file, sorted segment by segment.

    Excluded directories are pruned before descending, so large trees such
    as ``node_modules`` are never listed.
    """
    found: List[str] = []

    def _on_error(err: OSError) -> None:
        logger.warning("Could not list %s: %s", err.filename, err.strerror)

    for dirpath, dirnames, filenames in os.walk(root, onerror=_on_error):
        rel_dir = Path(dirpath).relative_to(root).as_posix()
        prefix = "" if rel_dir == "." else rel_dir + "/"

        kept_dirs = []
        for name in dirnames:
            if rules.excludes_dir(prefix + name):
                logger.debug("Excluding directory %s%s/", prefix, name)
            else:
                kept_dirs.append(name)
        dirnames[:] = kept_dirs

        for name in filenames:
            rel = prefix + name
            # regular files only, as `find -type f`
            if not os.path.isfile(os.path.join(dirpath, name)):
                logger.debug("Skipping %s: not a regular file", rel)
                continue
            if rules.excludes_file(rel):
                logger.debug("Excluding %s", rel)
                continue
            found.append(rel)

    return sorted(found, key=_sort_key)


# workspace-tree renderer
def build_tree(rel_paths: Iterable[str]) -> str:
    """
    Return an ASCII tree in the format of the Unix ``tree`` utility.

    * Shows every ancestor directory so the hierarchy is complete.
    * Directories are listed before files.
    * Ends with a ``N directories, M files`` summary line.
    * Works purely from the *rel_paths* list, never touching the disk.
    """
    tree: dict = {}
    n_files = 0
    for rel in rel_paths:
        parts = rel.split("/")
        cur = tree
        for part in parts[:-1]:
            cur = cur.setdefault(part, {})
        cur[parts[-1]] = None
        n_files += 1

    lines: List[str] = ["."]
    n_dirs = 0

    def _walk(node: dict, prefix: str = "") -> None:
        nonlocal n_dirs
        items = sorted(node.items(), key=lambda kv: (kv[1] is None, kv[0]))  # dirs first
        for idx, (name, child) in enumerate(items):
            last = idx == len(items) - 1
            connector = "└── " if last else "├── "
            lines.append(f"{prefix}{connector}{name}")
            if child is not None:
                n_dirs += 1
                _walk(child, prefix + ("    " if last else "│   "))

    _walk(tree)
    dirs_word = "directory" if n_dirs == 1 else "directories"
    files_word = "file" if n_files == 1 else "files"
    lines.append("")
    lines.append(f"{n_dirs} {dirs_word}, {n_files} {files_word}")
    return "\n".join(lines) + "\n"
