"""Tests for the classification cascade in glimpse.classify."""

from __future__ import annotations

import os
import shutil
import subprocess
import sys
from pathlib import Path
from typing import List, Optional, Union

import pytest

from glimpse import classify as classify_mod
from glimpse.classify import (
    BINARY,
    EMPTY,
    INCLUDED,
    RULES,
    UNDETERMINED,
    UNREADABLE,
    FileCandidate,
    classify,
    interpreter_of,
    is_binary_media_type,
    tag_for_media_type,
)


# 1x1 transparent PNG
PNG_1X1 = bytes.fromhex(
    "89504e470d0a1a0a0000000d4948445200000001000000010806000000"
    "1f15c4890000000d49444154789c6360000002000001e221bc330000"
    "000049454e44ae426082"
)


class RecordingProbe:
    def __init__(self, mime: Optional[str]) -> None:
        self.mime = mime
        self.calls: List[Path] = []

    def __call__(self, path: Path) -> Optional[str]:
        self.calls.append(path)
        return self.mime


def _candidate(
    tmp_path: Path, name: str, data: Union[str, bytes], mime: Optional[str] = "text/plain"
):
    path = tmp_path / name
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(data, str):
        data = data.encode("utf-8")
    path.write_bytes(data)
    probe = RecordingProbe(mime)
    return FileCandidate(tmp_path, name, probe=probe), probe


def test_rules_are_ranked_in_priority_order() -> None:
    assert [rule.name for rule in RULES] == [
        "readable",
        "empty",
        "extension",
        "filename",
        "shebang",
        "media-type",
        "binary-signature",
        "printable-bytes",
    ]


def test_extension_match_skips_probe(tmp_path: Path) -> None:
    candidate, probe = _candidate(tmp_path, "main.py", "print('hi')\n")
    decision = classify(candidate)

    assert decision.variant == INCLUDED
    assert decision.tag == "python"
    assert decision.rule == "extension"
    assert probe.calls == []


def test_extension_is_case_insensitive(tmp_path: Path) -> None:
    candidate, _ = _candidate(tmp_path, "MAIN.RS", "fn main() {}\n")

    assert classify(candidate).tag == "rust"


def test_empty_file_is_placeholder_regardless_of_extension(tmp_path: Path) -> None:
    candidate, probe = _candidate(tmp_path, "empty.py", b"")
    decision = classify(candidate)

    assert decision.variant == EMPTY
    assert decision.rule == "empty"
    assert probe.calls == []


def test_makefile_is_tagged_as_build_file(tmp_path: Path) -> None:
    candidate, _ = _candidate(tmp_path, "Makefile", "all:\n\techo hi\n")
    decision = classify(candidate)

    assert decision.variant == INCLUDED
    assert decision.tag == "makefile"
    assert decision.rule == "filename"


def test_dotfiles_match_the_filename_table(tmp_path: Path) -> None:
    gitignore, _ = _candidate(tmp_path, ".gitignore", "*.pyc\n")
    bashrc, _ = _candidate(tmp_path, ".bashrc", "export X=1\n")

    assert classify(gitignore).tag == "gitignore"
    assert classify(bashrc).tag == "bash"


def test_unknown_extension_does_not_use_filename_table(tmp_path: Path) -> None:
    candidate, _ = _candidate(tmp_path, "makefile.bak", "all:\n", mime="text/plain")
    decision = classify(candidate)

    assert decision.rule == "media-type"
    assert decision.tag == "text"


@pytest.mark.parametrize(
    "line, tag",
    [
        ("#!/usr/bin/env python3", "python"),
        ("#!/usr/bin/python3.11 -u", "python"),
        ("#!/usr/bin/env node", "javascript"),
        ("#!/bin/bash", "bash"),
        ("#!/bin/sh", "bash"),
        ("#!/usr/bin/perl -w", "perl"),
        ("#!/usr/bin/env ruby", "ruby"),
        ("#!/usr/bin/awk -f", "text"),
    ],
)
def test_shebang_sets_tag(tmp_path: Path, line: str, tag: str) -> None:
    candidate, probe = _candidate(tmp_path, "script", f"{line}\necho\n")
    decision = classify(candidate)

    assert decision.variant == INCLUDED
    assert decision.tag == tag
    assert decision.rule == "shebang"
    assert probe.calls == []


def test_shebang_beats_unknown_extension(tmp_path: Path) -> None:
    candidate, _ = _candidate(tmp_path, "run.cgi", "#!/usr/bin/env python3\nprint(1)\n")

    assert classify(candidate).tag == "python"


def test_interpreter_of_handles_env_flags() -> None:
    assert interpreter_of(b"#!/usr/bin/env -S python3 -u") == "python"
    assert interpreter_of(b"#!/usr/bin/env LANG=C bash") == "bash"
    assert interpreter_of(b"#!") == ""
    assert interpreter_of(b"print('no shebang')") is None


@pytest.mark.parametrize(
    "mime, tag",
    [
        ("application/json", "json"),
        ("application/xml", "xml"),
        ("application/javascript", "javascript"),
        ("application/x-sh", "bash"),
        ("application/x-python", "python"),
        ("text/x-python", "python"),
        ("text/html", "html"),
        ("text/x-unknown-dialect", "text"),
    ],
)
def test_textual_media_types_are_included(tmp_path: Path, mime: str, tag: str) -> None:
    candidate, probe = _candidate(tmp_path, "LICENSE", "some text\n", mime=mime)
    decision = classify(candidate)

    assert decision.variant == INCLUDED
    assert decision.tag == tag
    assert decision.rule == "media-type"
    assert len(probe.calls) == 1


def test_probe_failure_includes_without_tag(tmp_path: Path) -> None:
    candidate, _ = _candidate(tmp_path, "data", b"\x00\x01\x02", mime=None)
    decision = classify(candidate)

    assert decision.variant == INCLUDED
    assert decision.tag == ""


def test_image_without_printable_prefix_is_binary(tmp_path: Path) -> None:
    candidate, _ = _candidate(tmp_path, "blob", b"\x00\x01\x02\x80\x81\xfe\xff", mime="image/png")
    decision = classify(candidate)

    assert decision.variant == BINARY
    assert decision.rule == "binary-signature"


def test_binary_signature_wins_over_printable_bytes(tmp_path: Path) -> None:
    candidate, _ = _candidate(tmp_path, "picture", b"GIF89a\x01\x00\x01\x00\x80", mime="image/gif")

    assert classify(candidate).variant == BINARY


def test_octet_stream_with_printable_run_is_text(tmp_path: Path) -> None:
    candidate, _ = _candidate(tmp_path, "dump", b"\x00\x00hello world\x00", mime="application/octet-stream")
    decision = classify(candidate)

    assert decision.variant == INCLUDED
    assert decision.tag == "text"
    assert decision.rule == "printable-bytes"


def test_octet_stream_without_printable_bytes_is_undetermined(tmp_path: Path) -> None:
    candidate, _ = _candidate(tmp_path, "noise", bytes(range(0x80, 0x100)), mime="application/octet-stream")
    decision = classify(candidate)

    assert decision.variant == UNDETERMINED
    assert decision.rule == "printable-bytes"


def test_printable_heuristic_only_inspects_the_head(tmp_path: Path) -> None:
    data = b"\x80" * 1024 + b"readable tail"
    candidate, _ = _candidate(tmp_path, "tail", data, mime="application/octet-stream")

    assert classify(candidate).variant == UNDETERMINED


def test_directory_is_unreadable(tmp_path: Path) -> None:
    (tmp_path / "folder").mkdir()
    decision = classify(FileCandidate(tmp_path, "folder", probe=RecordingProbe("text/plain")))

    assert decision.variant == UNREADABLE
    assert decision.rule == "readable"


@pytest.mark.skipif(
    sys.platform.startswith("win") or os.geteuid() == 0,
    reason="needs POSIX permissions and a non-root user",
)
def test_permission_denied_is_unreadable(tmp_path: Path) -> None:
    candidate, probe = _candidate(tmp_path, "secret.py", "x = 1\n")
    candidate.path.chmod(0)
    try:
        assert classify(candidate).variant == UNREADABLE
        assert probe.calls == []
    finally:
        candidate.path.chmod(0o644)


def test_default_probe_is_looked_up_at_call_time(tmp_path: Path, monkeypatch) -> None:
    (tmp_path / "notes").write_bytes(b"plain words\n")
    monkeypatch.setattr(classify_mod, "probe_mime_type", lambda path: "application/json")

    assert classify(FileCandidate(tmp_path, "notes")).tag == "json"


def test_media_type_helpers() -> None:
    assert is_binary_media_type("application/pdf")
    assert is_binary_media_type("font/woff2")
    assert is_binary_media_type("application/x-executable")
    assert not is_binary_media_type("image/svg+xml")
    assert not is_binary_media_type("application/octet-stream")
    assert tag_for_media_type("image/svg+xml") == "xml"
    assert tag_for_media_type("application/pdf") is None


def test_probe_mime_type_runs_file_and_strips_output(monkeypatch, tmp_path: Path) -> None:
    calls = []

    class _Proc:
        stdout = b"image/png\n"

    def _run(argv, **kwargs):
        calls.append((argv, kwargs))
        return _Proc()

    monkeypatch.setattr(classify_mod.subprocess, "run", _run)

    assert classify_mod.probe_mime_type(tmp_path / "logo.png") == "image/png"
    argv, kwargs = calls[0]
    assert argv == [
        "file",
        "--brief",
        "--mime-type",
        "--dereference",
        "--",
        str(tmp_path / "logo.png"),
    ]
    assert kwargs == {"capture_output": True, "check": True}


@pytest.mark.parametrize(
    "error",
    [subprocess.CalledProcessError(1, ["file"]), FileNotFoundError("file")],
)
def test_probe_mime_type_failure_returns_none(monkeypatch, tmp_path: Path, error) -> None:
    def _run(argv, **kwargs):
        raise error

    monkeypatch.setattr(classify_mod.subprocess, "run", _run)

    assert classify_mod.probe_mime_type(tmp_path / "x") is None


def test_probe_mime_type_blank_output_is_none(monkeypatch, tmp_path: Path) -> None:
    class _Proc:
        stdout = b"  \n"

    monkeypatch.setattr(classify_mod.subprocess, "run", lambda argv, **kwargs: _Proc())

    assert classify_mod.probe_mime_type(tmp_path / "x") is None


@pytest.mark.skipif(shutil.which("file") is None, reason="needs the file command")
@pytest.mark.skipif(sys.platform.startswith("win"), reason="needs POSIX symlinks")
def test_symlinked_image_is_binary_with_real_probe(tmp_path: Path) -> None:
    (tmp_path / "real.png").write_bytes(PNG_1X1)
    (tmp_path / "logo.png").symlink_to(tmp_path / "real.png")

    assert classify_mod.probe_mime_type(tmp_path / "logo.png") == "image/png"
    for name in ("real.png", "logo.png"):
        decision = classify(FileCandidate(tmp_path, name))
        assert decision.variant == BINARY
        assert decision.rule == "binary-signature"
