"""Portable snapshot format for a workflow graph.

Snapshots name block types rather than catalog ids and refer to blocks by
their original ids, so they can be replayed onto a fresh graph::

    {"name": ..., "blocks": [{"id", "name", "systemBlockType", "jsonConfig",
     "positionX", "positionY"}], "connections": [{"sourceBlockId",
     "targetBlockId", "connectionType", "label"}], "variables": [{"name",
     "defaultValue"}]}

On import blocks may carry ``originalId`` instead of ``id`` and connections
may use ``sourceIndex``/``targetIndex`` positions into the block list.
"""
from __future__ import annotations

import json
import logging
from typing import Any

from requests.structures import CaseInsensitiveDict
from sqlalchemy import func

from ..executors.base import parse_choice
from ..extensions import db
from ..models import Block, BlockConnection, Workflow, WorkflowVariable
from ..models.system_block import find_system_block
from ..models.workflow import CONNECTION_SUCCESS, CONNECTION_TYPES

logger = logging.getLogger(__name__)


class SnapshotError(ValueError):
    """Raised when a snapshot payload cannot be decoded."""


class WorkflowNameTakenError(SnapshotError):
    """Raised when an import would duplicate an existing workflow name."""


def serialize_graph(workflow: Workflow) -> dict[str, Any]:
    """Return the live graph of ``workflow`` in snapshot form."""

    connections = sorted(
        (connection for block in workflow.blocks for connection in block.source_connections),
        key=lambda connection: connection.id or 0,
    )
    return {
        "name": workflow.name,
        "blocks": [
            {
                "id": block.id,
                "name": block.name,
                "systemBlockType": block.type_name,
                "jsonConfig": block.json_config,
                "positionX": block.position_x,
                "positionY": block.position_y,
            }
            for block in workflow.blocks
        ],
        "connections": [
            {
                "sourceBlockId": connection.source_block_id,
                "targetBlockId": connection.target_block_id,
                "connectionType": connection.connection_type,
                "label": connection.label,
            }
            for connection in connections
        ],
        "variables": [
            {"name": variable.name, "defaultValue": variable.default_value}
            for variable in workflow.variables
        ],
    }


def load_snapshot(payload: str | dict[str, Any]) -> CaseInsensitiveDict:
    """Decode a stored or submitted snapshot into a case-insensitive mapping."""

    if isinstance(payload, str):
        try:
            payload = json.loads(payload)
        except ValueError as exc:
            raise SnapshotError(f"snapshot is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise SnapshotError("snapshot must be a JSON object")
    snapshot = CaseInsensitiveDict(payload)
    for section in ("blocks", "connections", "variables"):
        value = snapshot.get(section)
        if value is None:
            snapshot[section] = []
        elif not isinstance(value, list):
            raise SnapshotError(f"{section} must be a list")
    return snapshot


def _entries(snapshot: CaseInsensitiveDict, section: str) -> list[CaseInsensitiveDict]:
    return [CaseInsensitiveDict(item) for item in snapshot[section] if isinstance(item, dict)]


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _as_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _clear_graph(workflow: Workflow) -> None:
    # Connections go with their blocks through the relationship cascade.
    workflow.blocks.clear()
    workflow.variables.clear()
    db.session.flush()


def apply_snapshot(workflow: Workflow, snapshot: CaseInsensitiveDict) -> dict[str, int]:
    """Replace the graph of ``workflow`` with the contents of ``snapshot``.

    Blocks of unknown types are skipped, and so is every connection that
    touches them. Nothing is committed. Returns counts of what was rebuilt.
    """

    _clear_graph(workflow)

    by_id: dict[int, Block] = {}
    by_index: dict[int, Block] = {}
    skipped = 0
    for index, entry in enumerate(snapshot["blocks"]):
        if not isinstance(entry, dict):
            skipped += 1
            continue
        entry = CaseInsensitiveDict(entry)
        type_name = entry.get("systemBlockType")
        system_block = find_system_block(type_name if isinstance(type_name, str) else None)
        if system_block is None:
            logger.warning(
                "Skipping block %r of unknown type %r in workflow %s",
                entry.get("name"),
                type_name,
                workflow.id,
            )
            skipped += 1
            continue
        block = Block(
            name=str(entry.get("name") or ""),
            system_block=system_block,
            json_config=entry.get("jsonConfig"),
            position_x=_as_float(entry.get("positionX")),
            position_y=_as_float(entry.get("positionY")),
        )
        workflow.blocks.append(block)
        by_index[index] = block
        original_id = _as_int(entry.get("originalId"))
        if original_id is None:
            original_id = _as_int(entry.get("id"))
        if original_id is not None:
            by_id[original_id] = block

    def translate(entry: CaseInsensitiveDict, prefix: str) -> Block | None:
        block_id = _as_int(entry.get(f"{prefix}BlockId"))
        if block_id is not None:
            return by_id.get(block_id)
        index = _as_int(entry.get(f"{prefix}Index"))
        return by_index.get(index) if index is not None else None

    connections = 0
    for entry in _entries(snapshot, "connections"):
        source = translate(entry, "source")
        target = translate(entry, "target")
        if source is None or target is None:
            continue
        BlockConnection(
            source_block=source,
            target_block=target,
            connection_type=parse_choice(
                entry.get("connectionType"), CONNECTION_TYPES, CONNECTION_SUCCESS
            ),
            label=entry.get("label"),
        )
        connections += 1

    variables = 0
    for entry in _entries(snapshot, "variables"):
        name = entry.get("name")
        if not isinstance(name, str) or not name.strip():
            continue
        default_value = entry.get("defaultValue")
        workflow.variables.append(
            WorkflowVariable(
                name=name,
                default_value=None if default_value is None else str(default_value),
            )
        )
        variables += 1

    return {
        "blocks": len(by_index),
        "connections": connections,
        "variables": variables,
        "skipped_blocks": skipped,
    }


def import_graph(payload: str | dict[str, Any], name: str | None = None) -> Workflow:
    """Create a new workflow from an exported graph and commit it."""

    snapshot = load_snapshot(payload)
    workflow_name = (name or snapshot.get("name") or "").strip()
    if not workflow_name:
        raise SnapshotError("name is required")

    taken = Workflow.query.filter(func.lower(Workflow.name) == workflow_name.lower()).first()
    if taken is not None:
        raise WorkflowNameTakenError(f"workflow {workflow_name} already exists")

    workflow = Workflow(name=workflow_name)
    db.session.add(workflow)
    db.session.flush()
    counts = apply_snapshot(workflow, snapshot)
    db.session.commit()
    logger.info("Imported workflow %s as %s: %s", workflow_name, workflow.id, counts)
    return workflow
