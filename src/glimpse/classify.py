"""
File classification for glimpse.

Every file that survives the exclusion rules runs through a ranked cascade
of rules (:data:`RULES`). Each rule looks at a :class:`FileCandidate` and
either returns a :class:`Decision` or ``None`` to let the next rule try.
The first decision wins, so the order of :data:`RULES` is the tie-break
order.
"""

from __future__ import annotations

import dataclasses
import os
import re
import shutil
import subprocess
from dataclasses import dataclass
from functools import cached_property
from pathlib import Path
from types import MappingProxyType
from typing import Callable, Mapping, NamedTuple, Optional, Tuple

from .log import get_logger

logger = get_logger("classify")

HEAD_BYTES = 1024

# Rendering variants
INCLUDED = "included"
UNREADABLE = "unreadable"
EMPTY = "empty"
BINARY = "binary"
UNDETERMINED = "undetermined"
READ_ERROR = "read_error"

OCTET_STREAM = "application/octet-stream"

# Extension (lowercased, no dot) -> fence tag.
EXTENSION_TAGS: Mapping[str, str] = MappingProxyType({
    # web
    "js": "javascript", "jsx": "jsx", "ts": "typescript", "tsx": "tsx",
    "html": "html", "htm": "html", "css": "css", "scss": "scss",
    "sass": "sass", "less": "less", "json": "json", "xml": "xml",
    "svg": "xml", "php": "php", "vue": "vue", "astro": "astro",
    "svelte": "svelte", "pug": "pug", "hbs": "handlebars", "ejs": "ejs",
    "coffee": "coffeescript", "ls": "livescript",
    # shell, build and config
    "sh": "bash", "bash": "bash", "zsh": "zsh", "fish": "fish",
    "cmd": "batch", "bat": "batch", "ps1": "powershell",
    "psm1": "powershell", "psd1": "powershell", "awk": "awk", "sed": "sed",
    "makefile": "makefile", "dockerfile": "dockerfile", "nginx": "nginx",
    "apache": "apache", "conf": "conf", "cfg": "ini", "ini": "ini",
    "editorconfig": "ini", "gitattributes": "gitattributes",
    "gitignore": "gitignore", "npmrc": "ini", "prettierrc": "json",
    "eslintrc": "json", "browserslistrc": "text", "yarnrc": "yaml",
    "yml": "yaml", "yaml": "yaml", "toml": "toml", "env": "dotenv",
    "properties": "properties",
    # c family
    "c": "c", "h": "c", "cpp": "cpp", "cc": "cpp", "cxx": "cpp",
    "hpp": "cpp", "hxx": "cpp", "inl": "cpp", "m": "objectivec",
    "mm": "objectivec",
    # jvm and .net
    "java": "java", "kt": "kotlin", "kts": "kotlin", "groovy": "groovy",
    "gradle": "groovy", "scala": "scala", "clj": "clojure",
    "cljs": "clojure", "cs": "csharp", "vb": "vb", "fs": "fsharp",
    "xaml": "xml", "cshtml": "razor", "razor": "razor", "csproj": "xml",
    "fsproj": "xml", "vbproj": "xml",
    # python, ruby, go, rust, swift
    "py": "python", "pyw": "python", "rpy": "python", "pyx": "cython",
    "pxd": "cython", "pxi": "cython", "ipynb": "json", "rb": "ruby",
    "erb": "erb", "rakefile": "ruby", "gemspec": "ruby", "go": "go",
    "mod": "go", "sum": "text", "rs": "rust", "swift": "swift",
    # docs and data
    "md": "markdown", "markdown": "markdown", "rst": "rst", "txt": "text",
    "text": "text", "adoc": "asciidoc", "tex": "latex", "ltx": "latex",
    "nfo": "text", "log": "text", "rtf": "rtf", "csv": "csv", "tsv": "tsv",
    "sql": "sql", "graphql": "graphql", "gql": "graphql", "jsonl": "json",
    # everything else
    "dart": "dart", "hs": "haskell", "lhs": "haskell", "ex": "elixir",
    "exs": "elixir", "erl": "erlang", "hrl": "erlang", "lua": "lua",
    "r": "r", "rmd": "rmd", "asm": "asm", "s": "asm", "zig": "zig",
    "nim": "nim", "v": "v", "rkt": "racket", "purs": "purescript",
    "elm": "elm", "coq": "coq", "agda": "agda", "lean": "lean",
    "scm": "scheme", "ss": "scheme",
})

# Lowercased basename of extensionless files -> fence tag.
FILENAME_TAGS: Mapping[str, str] = MappingProxyType({
    "makefile": "makefile",
    "gnumakefile": "makefile",
    "dockerfile": "dockerfile",
    "containerfile": "dockerfile",
    "caddyfile": "caddyfile",
    "vagrantfile": "ruby",
    "rakefile": "ruby",
    "gemfile": "ruby",
    "pipfile": "toml",
    "npmrc": "ini",
    ".npmrc": "ini",
    ".bashrc": "bash",
    ".bash_profile": "bash",
    ".zshrc": "zsh",
    ".profile": "bash",
    ".gitignore": "gitignore",
    ".dockerignore": "gitignore",
    ".gitattributes": "gitattributes",
    ".editorconfig": "ini",
    ".env": "dotenv",
    ".prettierrc": "json",
    ".eslintrc": "json",
    ".yarnrc": "yaml",
    ".browserslistrc": "text",
    "hosts": "text",
    "fstab": "text",
})

# Interpreter name, version suffix stripped -> fence tag.
INTERPRETER_TAGS: Mapping[str, str] = MappingProxyType({
    "python": "python",
    "pypy": "python",
    "node": "javascript",
    "nodejs": "javascript",
    "bash": "bash",
    "sh": "bash",
    "dash": "bash",
    "ksh": "bash",
    "zsh": "zsh",
    "fish": "fish",
    "perl": "perl",
    "ruby": "ruby",
})

# Non text/* media types that are still source or data.
TEXTUAL_MEDIA_TAGS: Mapping[str, str] = MappingProxyType({
    "application/json": "json",
    "application/xml": "xml",
    "application/javascript": "javascript",
    "application/x-sh": "bash",
    "application/x-shellscript": "bash",
    "application/x-python": "python",
    "application/x-perl": "perl",
    "application/x-ruby": "ruby",
    "image/svg+xml": "xml",
})

# text/<subtype> -> fence tag; other text subtypes become "text".
TEXT_SUBTYPE_TAGS: Mapping[str, str] = MappingProxyType({
    "html": "html",
    "css": "css",
    "csv": "csv",
    "markdown": "markdown",
    "xml": "xml",
    "javascript": "javascript",
    "x-python": "python",
    "x-script.python": "python",
    "x-shellscript": "bash",
    "x-perl": "perl",
    "x-ruby": "ruby",
    "x-php": "php",
    "x-c": "c",
    "x-c++": "cpp",
    "x-java": "java",
    "x-makefile": "makefile",
    "x-diff": "diff",
    "x-tex": "latex",
    "x-asm": "asm",
    "x-msdos-batch": "batch",
})

BINARY_MEDIA_PREFIXES: Tuple[str, ...] = ("image/", "video/", "audio/", "font/")

BINARY_MEDIA_TYPES = frozenset({
    "application/pdf",
    "application/zip",
    "application/x-tar",
    "application/gzip",
    "application/x-gzip",
    "application/x-bzip2",
    "application/x-xz",
    "application/x-7z-compressed",
    "application/x-rar",
    "application/vnd.rar",
    "application/zstd",
    "application/java-archive",
    "application/vnd.ms-fontobject",
    "application/x-font-ttf",
    "application/x-executable",
    "application/x-pie-executable",
    "application/x-sharedlib",
    "application/x-object",
    "application/x-mach-binary",
    "application/x-dosexec",
})

# C-locale [[:print:][:space:]]
_PRINTABLE_RUN = re.compile(rb"[\x20-\x7e\t\n\v\f\r]+")


# Content-type probe
PROBE_COMMAND = "file"


def probe_available() -> bool:
    return shutil.which(PROBE_COMMAND) is not None


def probe_mime_type(path: Path) -> Optional[str]:
    """
    Return the media type ``file`` reports for *path*, None if it fails.

    Symlinks are followed so a linked image is typed as the image.
    """
    try:
        proc = subprocess.run(
            [PROBE_COMMAND, "--brief", "--mime-type", "--dereference", "--", str(path)],
            capture_output=True,
            check=True,
        )
    except (OSError, subprocess.CalledProcessError) as e:
        logger.debug("Media-type probe failed for %s: %s", path, e)
        return None
    mime = proc.stdout.decode("utf-8", errors="replace").strip()
    return mime or None


def is_binary_media_type(mime: str) -> bool:
    if mime == "image/svg+xml":
        return False
    return mime in BINARY_MEDIA_TYPES or mime.startswith(BINARY_MEDIA_PREFIXES)


def tag_for_media_type(mime: str) -> Optional[str]:
    """Fence tag for a textual media type, None if the type is not textual."""
    if mime in TEXTUAL_MEDIA_TAGS:
        return TEXTUAL_MEDIA_TAGS[mime]
    category, _, subtype = mime.partition("/")
    if category == "text":
        return TEXT_SUBTYPE_TAGS.get(subtype, "text")
    return None


def interpreter_of(first_line: bytes) -> Optional[str]:
    """
    Name of the program a ``#!`` line runs, without path or version suffix.

    ``#!/usr/bin/env -S python3 -u`` gives ``python``; ``#!/bin/sh`` gives
    ``sh``. Returns None when the line is not a shebang.
    """
    if not first_line.startswith(b"#!"):
        return None
    words = first_line[2:].decode("utf-8", errors="replace").split()
    if not words:
        return ""
    program = os.path.basename(words[0])
    if program == "env":
        args = [w for w in words[1:] if not w.startswith("-") and "=" not in w]
        program = os.path.basename(args[0]) if args else ""
    return program.rstrip("0123456789.").lower()


@dataclass(frozen=True)
class Decision:
    variant: str
    tag: Optional[str] = None
    rule: str = ""

    @property
    def included(self) -> bool:
        return self.variant == INCLUDED


def include(tag: Optional[str]) -> Decision:
    return Decision(INCLUDED, tag)


class FileCandidate:
    """
    One discovered file. Facts about it are read from disk on first use
    and then cached, so each rule pays at most once for what it inspects.
    """

    def __init__(
        self,
        root: Path,
        rel: str,
        probe: Optional[Callable[[Path], Optional[str]]] = None,
    ) -> None:
        self.root = root
        self.rel = rel
        self.path = root / rel
        self._probe = probe

    def __repr__(self) -> str:
        return f"FileCandidate({self.rel!r})"

    @cached_property
    def _opened(self) -> Optional[Tuple[bytes, int]]:
        try:
            with self.path.open("rb") as fh:
                size = os.fstat(fh.fileno()).st_size
                return fh.read(HEAD_BYTES), size
        except OSError as e:
            logger.debug("Cannot open %s: %s", self.rel, e)
            return None

    @property
    def readable(self) -> bool:
        return self._opened is not None

    @property
    def head(self) -> bytes:
        return self._opened[0] if self._opened else b""

    @property
    def size(self) -> int:
        return self._opened[1] if self._opened else 0

    @property
    def first_line(self) -> bytes:
        return self.head.split(b"\n", 1)[0].rstrip(b"\r")

    @property
    def extension(self) -> str:
        return Path(self.rel).suffix[1:].lower()

    @property
    def name(self) -> str:
        return Path(self.rel).name.lower()

    @cached_property
    def mime_type(self) -> Optional[str]:
        probe = self._probe or probe_mime_type
        return probe(self.path)


# Rules, in priority order
def _readable_rule(c: FileCandidate) -> Optional[Decision]:
    if not c.readable:
        return Decision(UNREADABLE)
    return None


def _empty_rule(c: FileCandidate) -> Optional[Decision]:
    if c.size == 0:
        return Decision(EMPTY)
    return None


def _extension_rule(c: FileCandidate) -> Optional[Decision]:
    tag = EXTENSION_TAGS.get(c.extension) if c.extension else None
    return include(tag) if tag else None


def _filename_rule(c: FileCandidate) -> Optional[Decision]:
    if c.extension:
        return None
    tag = FILENAME_TAGS.get(c.name)
    return include(tag) if tag else None


def _shebang_rule(c: FileCandidate) -> Optional[Decision]:
    interpreter = interpreter_of(c.first_line)
    if interpreter is None:
        return None
    return include(INTERPRETER_TAGS.get(interpreter, "text"))


def _media_type_rule(c: FileCandidate) -> Optional[Decision]:
    mime = c.mime_type
    if mime is None:
        # no probe result: copy the bytes without a language tag
        return include("")
    if mime == OCTET_STREAM:
        return None
    tag = tag_for_media_type(mime)
    return include(tag) if tag is not None else None


def _binary_signature_rule(c: FileCandidate) -> Optional[Decision]:
    mime = c.mime_type
    if mime and is_binary_media_type(mime):
        return Decision(BINARY)
    return None


def _printable_rule(c: FileCandidate) -> Optional[Decision]:
    if _PRINTABLE_RUN.search(c.head[:HEAD_BYTES]):
        return include("text")
    return Decision(UNDETERMINED)


class Rule(NamedTuple):
    name: str
    check: Callable[[FileCandidate], Optional[Decision]]


RULES: Tuple[Rule, ...] = (
    Rule("readable", _readable_rule),
    Rule("empty", _empty_rule),
    Rule("extension", _extension_rule),
    Rule("filename", _filename_rule),
    Rule("shebang", _shebang_rule),
    Rule("media-type", _media_type_rule),
    Rule("binary-signature", _binary_signature_rule),
    Rule("printable-bytes", _printable_rule),
)


def classify(candidate: FileCandidate, rules: Tuple[Rule, ...] = RULES) -> Decision:
    """Run *candidate* through *rules* and return the first decision."""
    for rule in rules:
        decision = rule.check(candidate)
        if decision is not None:
            decision = dataclasses.replace(decision, rule=rule.name)
            logger.debug(
                "%s: %s%s (%s)",
                candidate.rel,
                decision.variant,
                f" [{decision.tag}]" if decision.included else "",
                rule.name,
            )
            return decision
    return Decision(UNDETERMINED, rule="fallthrough")
