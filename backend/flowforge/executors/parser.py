"""Extract values from a JSON or XML payload held in a variable.

JSON paths use dot-separated segments with optional ``$``/``.`` root markers
and bracketed indices, e.g. ``$.orders[0].id``. A leading segment naming the
source variable itself is skipped, so ``response.status`` works against the
``response`` variable. XML paths are element paths (``/root/item/name``,
``item.name``) with an optional trailing ``@attribute``.
"""
from __future__ import annotations

import json
import re
import xml.etree.ElementTree as ET
from collections.abc import Callable
from functools import partial
from typing import Any

from requests.structures import CaseInsensitiveDict

from .base import (
    BlockExecutionResult,
    BlockExecutor,
    ConfigError,
    Variables,
    block_label,
    config_str,
    load_config,
    parse_choice,
    variable_key,
)
from .calculation import format_number

FORMATS = ("json", "xml")
SUMMARY_ITEMS = 3
MAX_VALUE_LENGTH = 60

_SEGMENT = re.compile(r"^([^\[\]]*)((?:\[\s*-?\d+\s*\])*)$")
_INDEX = re.compile(r"\[\s*(-?\d+)\s*\]")


def _split_segments(path: str) -> list[str]:
    cleaned = path.strip()
    if cleaned.startswith("$"):
        cleaned = cleaned[1:]
    cleaned = cleaned.lstrip(".")
    return [segment for segment in cleaned.split(".") if segment.strip()]


def _render_json(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return value
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return format_number(value)
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def resolve_json_path(root: Any, path: str, source_name: str = "") -> str | None:
    """Walk ``path`` through a decoded JSON document; ``None`` when missing."""

    segments = _split_segments(path)
    if (
        segments
        and source_name
        and segments[0].strip().lower() == source_name.lower()
        and not (isinstance(root, dict) and segments[0].strip() in root)
    ):
        segments = segments[1:]

    current = root
    for segment in segments:
        match = _SEGMENT.match(segment.strip())
        if match is None:
            return None
        name, indices = match.groups()
        if name:
            if not isinstance(current, dict) or name not in current:
                return None
            current = current[name]
        for raw_index in _INDEX.findall(indices):
            index = int(raw_index)
            if not isinstance(current, list) or index < 0 or index >= len(current):
                return None
            current = current[index]
    return _render_json(current)


def resolve_xml_path(root: ET.Element, path: str) -> str | None:
    """Resolve an element path (with optional ``@attribute``) against ``root``."""

    cleaned = path.strip()
    if not cleaned:
        return None
    if "/" not in cleaned and "." in cleaned.strip("."):
        cleaned = "/".join(_split_segments(cleaned))

    descendant = cleaned.startswith("//")
    attribute = None
    steps = [step for step in cleaned.split("/") if step]
    if steps and steps[-1].startswith("@"):
        attribute = steps.pop()[1:]
    if not descendant and steps and steps[0] == root.tag:
        steps = steps[1:]

    if not steps:
        element = root
    else:
        expression = (".//" if descendant else "") + "/".join(steps)
        try:
            element = root.find(expression)
        except (SyntaxError, KeyError):
            return None
    if element is None:
        return None
    if attribute is not None:
        return element.get(attribute)
    return "".join(element.itertext())


def _truncate(value: str | None, max_length: int = MAX_VALUE_LENGTH) -> str:
    if not value:
        return ""
    return value if len(value) <= max_length else value[:max_length] + "…"


class ParserBlockExecutor(BlockExecutor):
    block_type = "Parser"

    def execute(self, block: Any, variables: Variables) -> BlockExecutionResult:
        name = block_label(block)
        try:
            config = load_config(block)
        except ConfigError as exc:
            return BlockExecutionResult(f"Invalid parser config: {exc}", True)

        source = config_str(config, "sourceVariable")
        if not source.strip():
            return BlockExecutionResult(f"Parser block '{name}' is missing source variable.", True)

        source_key = variable_key(source)
        payload = variables.get(source_key, "")
        if not payload.strip():
            return BlockExecutionResult(
                f"Parser block '{name}' could not find variable '{source_key}'.", True
            )

        fmt = parse_choice(config.get("format"), FORMATS, "json")
        mappings = config.get("mappings") or []
        if not isinstance(mappings, list):
            return BlockExecutionResult("Invalid parser config: mappings must be a list", True)

        resolver: Callable[[str], str | None]
        if fmt == "json":
            try:
                document = json.loads(payload)
            except ValueError as exc:
                return BlockExecutionResult(f"JSON parse failed: {exc}", True)
            resolver = partial(resolve_json_path, document, source_name=source_key)
        else:
            try:
                element = ET.fromstring(payload)
            except ET.ParseError as exc:
                return BlockExecutionResult(f"XML parse failed: {exc}", True)
            resolver = partial(resolve_xml_path, element)

        assigned: list[str] = []
        for raw_mapping in mappings:
            if not isinstance(raw_mapping, dict):
                continue
            mapping = CaseInsensitiveDict(raw_mapping)
            path = config_str(mapping, "path")
            target = config_str(mapping, "variable")
            if not path.strip() or not target.strip():
                continue
            target = variable_key(target)
            value = resolver(path)
            variables[target] = value or ""
            assigned.append(f"{path} -> {target} = {_truncate(value)}")

        if assigned:
            summary = ", ".join(assigned[:SUMMARY_ITEMS])
            if len(assigned) > SUMMARY_ITEMS:
                summary += f" … (+{len(assigned) - SUMMARY_ITEMS} more)"
        else:
            summary = "No mappings applied."

        return BlockExecutionResult(
            f"Parsed {len(assigned)} value(s) from {fmt.upper()}: {summary}"
        )
