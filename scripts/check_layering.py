#!/usr/bin/env python3
"""Package layering validation script.

Enforces the import direction between the workflow_notifier subpackages:

    types  <-  utils  <-  core  <-  queue  <-  app

A subpackage may import itself and the layers to its left only. The workflow
core must never know about deferred delivery or the CLI; deferred delivery
plugs into the core through the delivery action point.

Exit codes:
    0: No violations found (clean)
    1: Violations detected (architectural rule broken)
"""

from __future__ import annotations

import re
import sys
from pathlib import Path
from typing import Final

# ANSI color codes for terminal output
RED: Final[str] = "\033[91m"
GREEN: Final[str] = "\033[92m"
YELLOW: Final[str] = "\033[93m"
RESET: Final[str] = "\033[0m"

# Subpackage -> subpackages it may import from
ALLOWED_IMPORTS: Final[dict[str, frozenset[str]]] = {
    "types": frozenset({"types"}),
    "utils": frozenset({"types", "utils"}),
    "core": frozenset({"types", "utils", "core"}),
    "queue": frozenset({"types", "utils", "core", "queue"}),
}

IMPORT_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"^\s*(?:from|import)\s+workflow_notifier\.(\w+)"
)


def check_file(file_path: Path, layer: str) -> list[tuple[int, str]]:
    """Return (line_number, description) for every forbidden import in a file."""
    violations: list[tuple[int, str]] = []

    try:
        lines = file_path.read_text(encoding="utf-8").splitlines()
    except OSError as e:
        print(f"{YELLOW}Warning: Could not read {file_path}: {e}{RESET}", file=sys.stderr)
        return violations

    allowed = ALLOWED_IMPORTS[layer]
    for line_num, line in enumerate(lines, start=1):
        match = IMPORT_PATTERN.match(line)
        if match and match.group(1) not in allowed:
            violations.append(
                (line_num, f"{layer} must not import {match.group(1)}: {line.strip()}")
            )

    return violations


def scan_layer(base_path: Path, layer: str) -> dict[Path, list[tuple[int, str]]]:
    dir_path = base_path / layer
    if not dir_path.exists():
        print(f"{YELLOW}Warning: Layer directory {dir_path} does not exist{RESET}", file=sys.stderr)
        return {}

    violations_by_file: dict[Path, list[tuple[int, str]]] = {}
    for py_file in dir_path.rglob("*.py"):
        if "__pycache__" in py_file.parts:
            continue
        file_violations = check_file(py_file, layer)
        if file_violations:
            violations_by_file[py_file] = file_violations

    return violations_by_file


def main() -> int:
    """Main entry point for the layering check.

    Returns:
        Exit code: 0 if no violations, 1 if violations found.
    """
    project_root = Path(__file__).parent.parent
    src_path = project_root / "src" / "workflow_notifier"

    if not src_path.exists():
        print(f"{RED}Error: Could not find src/workflow_notifier directory{RESET}", file=sys.stderr)
        return 1

    print(f"Checking package layering in: {src_path}\n")

    all_violations: dict[Path, list[tuple[int, str]]] = {}
    for layer in ALLOWED_IMPORTS:
        all_violations.update(scan_layer(src_path, layer))

    if not all_violations:
        print(f"{GREEN}✓ No layering violations found{RESET}")
        return 0

    total_violations = sum(len(v) for v in all_violations.values())
    print(f"{RED}✗ Found {total_violations} layering violations:{RESET}\n")

    for file_path, violations in sorted(all_violations.items()):
        try:
            rel_path = file_path.relative_to(project_root)
        except ValueError:
            rel_path = file_path

        print(f"{RED}{rel_path}{RESET}")
        for line_num, description in violations:
            print(f"  {line_num}: {description}")
        print()

    print(f"{RED}Layering check failed!{RESET}")
    return 1


if __name__ == "__main__":
    sys.exit(main())
