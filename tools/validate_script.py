#!/usr/bin/env python3
"""Validate a narrative script before it is played."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Sequence

REPO_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_SCRIPT = REPO_ROOT / "script" / "script.json"

if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from stagehand.script import Script, ScriptError, load_script
from stagehand.settings import SessionSettings


def find_warnings(script: Script, settings: SessionSettings) -> List[str]:
    warnings = []
    reserved = set(settings.setup_contexts)
    for name, context in script.contexts.items():
        if name in reserved:
            warnings.append(f"contexts.{name}: shadows a menu context and will never be saved.")
        for line, options in sorted(context.choices.items()):
            for idx, choice in enumerate(options):
                if choice.target == line:
                    warnings.append(
                        f"contexts.{name}.choices.{line}[{idx}]: loops back to its own line."
                    )
    return warnings


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Validate a stagehand narrative script.")
    parser.add_argument(
        "script_path",
        nargs="?",
        default=str(DEFAULT_SCRIPT),
        help="Path to the narrative script JSON file.",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str]) -> None:
    args = parse_args(argv[1:])
    script_path = Path(args.script_path).resolve()
    try:
        script = load_script(script_path)
    except OSError as exc:
        print(f"Failed to read {script_path}: {exc}")
        sys.exit(1)
    except ScriptError as exc:
        print("Validation failed (path: message):")
        print(str(exc).replace("Invalid script:\n", ""))
        sys.exit(1)

    warnings = find_warnings(script, SessionSettings())
    if warnings:
        print("Warnings (path: message):")
        for warning in warnings:
            print(f" - {warning}")

    print(f"Validation passed for {script_path}.")


if __name__ == "__main__":
    main(sys.argv)
