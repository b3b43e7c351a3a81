"""Narrative script loading and validation."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Sequence

from .narrative import Choice, NarrativeLine


class ScriptError(ValueError):
    """Raised when a narrative script fails validation."""


@dataclass
class ContextScript:
    name: str
    lines: List[NarrativeLine] = field(default_factory=list)
    choices: Dict[int, List[Choice]] = field(default_factory=dict)


@dataclass
class Script:
    title: str
    contexts: Dict[str, ContextScript] = field(default_factory=dict)


def _raise_script_validation(errors: Sequence[str]) -> None:
    raise ScriptError("Invalid script:\n- " + "\n- ".join(errors))


def _parse_line(raw: Any, where: str, errors: List[str]) -> NarrativeLine | None:
    if isinstance(raw, str):
        return NarrativeLine(text=raw)
    if not isinstance(raw, dict):
        errors.append(f"{where}: line must be a string or an object.")
        return None
    text = raw.get("text")
    if not isinstance(text, str):
        errors.append(f"{where}: 'text' must be a string.")
        return None
    speaker = raw.get("speaker", "")
    if speaker is None:
        speaker = ""
    if not isinstance(speaker, str):
        errors.append(f"{where}: 'speaker' must be a string.")
        return None
    return NarrativeLine(speaker=speaker, text=text, portrait=raw.get("portrait"))


def _parse_choices(raw: Any, name: str, line_count: int, errors: List[str]) -> Dict[int, List[Choice]]:
    if raw in (None, {}):
        return {}
    if not isinstance(raw, dict):
        errors.append(f"contexts.{name}.choices: must map line numbers to choice lists.")
        return {}
    parsed: Dict[int, List[Choice]] = {}
    for key, entries in raw.items():
        where = f"contexts.{name}.choices.{key}"
        try:
            index = int(key)
        except (TypeError, ValueError):
            errors.append(f"{where}: key must be a line number.")
            continue
        if not 0 <= index < line_count:
            errors.append(f"{where}: line {index} does not exist.")
            continue
        if not isinstance(entries, list) or not entries:
            errors.append(f"{where}: must be a non-empty list.")
            continue
        options = []
        for idx, entry in enumerate(entries):
            if isinstance(entry, str):
                options.append(Choice(entry))
                continue
            if not isinstance(entry, dict) or not isinstance(entry.get("text"), str):
                errors.append(f"{where}[{idx}]: choice needs a 'text' string.")
                continue
            target = entry.get("target")
            if target is not None and (
                isinstance(target, bool) or not isinstance(target, int) or not 0 <= target < line_count
            ):
                errors.append(f"{where}[{idx}]: target {target!r} is not a line in '{name}'.")
                continue
            options.append(Choice(entry["text"], target))
        parsed[index] = options
    return parsed


def parse_script(data: Any) -> Script:
    if not isinstance(data, dict):
        _raise_script_validation(["Script data must be a JSON object."])
    errors: List[str] = []
    title = data.get("title")
    if not isinstance(title, str) or not title.strip():
        errors.append("title: must be a non-empty string.")
        title = ""
    contexts = data.get("contexts")
    if not isinstance(contexts, dict) or not contexts:
        errors.append("contexts: must be an object mapping context names to scripts.")
        contexts = {}

    script = Script(title=title)
    for name, body in contexts.items():
        if not isinstance(body, dict):
            errors.append(f"contexts.{name}: must be an object.")
            continue
        raw_lines = body.get("lines")
        if not isinstance(raw_lines, list) or not raw_lines:
            errors.append(f"contexts.{name}.lines: must be a non-empty list.")
            continue
        lines = []
        for idx, raw in enumerate(raw_lines):
            line = _parse_line(raw, f"contexts.{name}.lines[{idx}]", errors)
            if line is not None:
                lines.append(line)
        choices = _parse_choices(body.get("choices"), name, len(raw_lines), errors)
        script.contexts[name] = ContextScript(name=name, lines=lines, choices=choices)

    if errors:
        _raise_script_validation(errors)
    return script


def load_script(path: Path | str) -> Script:
    with open(path, "r", encoding="utf-8") as handle:
        try:
            data = json.load(handle)
        except json.JSONDecodeError as exc:
            raise ScriptError(f"Invalid script: {exc}") from exc
    return parse_script(data)
