"""
CLI entrypoint for glimpse.
"""
import argparse
import sys
from pathlib import Path
from typing import List, Optional

from .clipboard import check_tools, select_clipboard
from .core import (
    GlimpseError,
    default_rules,
    load_gitignore,
    resolve_root,
    scan_files,
)
from .document import build_document, find_highlighter
from .log import configure_logging


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="glimpse",
        description="Copy a workspace's tree and file contents to the clipboard.",
    )
    p.add_argument(
        "workspace",
        nargs="?",
        type=Path,
        default=Path.cwd(),
        help="Workspace directory (default: current directory)",
    )
    p.add_argument(
        "--exclude",
        action="append",
        default=[],
        metavar="PATTERN",
        help="Extra exclusion pattern, gitignore syntax (repeatable)",
    )
    p.add_argument(
        "--gitignore",
        action="store_true",
        help="Also exclude what the workspace's .gitignore lists",
    )
    p.add_argument(
        "--bat",
        action="store_true",
        help="Pass file contents through bat when it is installed",
    )
    p.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")
    return p.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    try:
        ns = _parse_args(argv)
        logger = configure_logging(verbose=ns.verbose)

        clipboard = select_clipboard()
        check_tools(clipboard)
        root = resolve_root(ns.workspace)
        logger.debug("Workspace: %s", root)

        rules = default_rules(ns.exclude)
        if ns.gitignore:
            rules = rules + load_gitignore(root)

        logger.debug("Scanning %s …", root)
        paths = scan_files(root, rules)
        logger.debug("%d files after exclusion.", len(paths))

        highlighter = find_highlighter() if ns.bat else None
        doc = build_document(root, paths, highlighter=highlighter)

        clipboard.copy(doc.to_bytes())

        print("Workspace content has been copied to clipboard!")
        print(f"Total files included in clipboard: {doc.blocks}")
        print(f"Files with content shown: {doc.included}")

    except GlimpseError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nCancelled.", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
