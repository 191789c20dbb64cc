#!/usr/bin/env python3
"""Lightweight local guardrails for the screensaver package.

Default checks:
- Parse key Python files with `ast.parse`.
- Flag bare `except:` clauses.

Usage:
- python tools/guardrails.py
- python tools/guardrails.py --files live_screensaver/coordinator.py
"""

from __future__ import annotations

import argparse
import ast
from pathlib import Path


DEFAULT_FILES = [
    "live_screensaver/main.py",
    "live_screensaver/coordinator.py",
    "live_screensaver/extractor.py",
    "live_screensaver/cache.py",
    "live_screensaver/extraction_lock.py",
    "live_screensaver/player.py",
    "live_screensaver/validation.py",
    "live_screensaver/ui/viewer.py",
    "live_screensaver/ui/dialogs.py",
]


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run lightweight syntax guardrails.")
    parser.add_argument(
        "--files",
        nargs="*",
        default=DEFAULT_FILES,
        help="Paths to Python files to validate (defaults to project key files).",
    )
    parser.add_argument(
        "--root",
        default=None,
        help="Project root the file paths are relative to.",
    )
    return parser.parse_args(argv)


def read_source(path: Path) -> str:
    try:
        # Accept UTF-8 files with or without BOM to keep local checks stable.
        return path.read_text(encoding="utf-8-sig")
    except UnicodeDecodeError:
        return path.read_text(encoding="utf-8", errors="replace")


def find_bare_excepts(tree: ast.AST) -> list[int]:
    return sorted(
        node.lineno
        for node in ast.walk(tree)
        if isinstance(node, ast.ExceptHandler) and node.type is None
    )


def check_file(path: Path) -> tuple[bool, str]:
    if not path.exists():
        return False, "missing"
    if not path.is_file():
        return False, "not a file"
    try:
        tree = ast.parse(read_source(path), filename=str(path))
    except SyntaxError as exc:
        location = f"{exc.lineno}:{exc.offset}" if exc.lineno else "unknown"
        return False, f"syntax error at {location}: {exc.msg}"
    bare = find_bare_excepts(tree)
    if bare:
        return False, "bare except at line(s) " + ", ".join(str(n) for n in bare)
    return True, "ok"


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    root = Path(args.root).resolve() if args.root else Path(__file__).resolve().parent.parent
    files = [root / f for f in args.files]

    print("Guardrails: syntax parse + bare except")
    print(f"Root: {root}")

    failures = 0
    for file_path in files:
        ok, detail = check_file(file_path)
        try:
            rel = file_path.relative_to(root)
        except ValueError:
            rel = file_path
        prefix = "PASS" if ok else "FAIL"
        print(f"[{prefix}] {rel} - {detail}")
        if not ok:
            failures += 1

    if failures:
        print(f"Result: FAILED ({failures} file(s))")
        return 1
    print("Result: PASSED")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
