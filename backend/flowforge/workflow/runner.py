"""Workflow evaluation engine."""
from __future__ import annotations

import json
import logging
from collections import deque
from collections.abc import Mapping, Sequence
from typing import Any

from flask import current_app, has_app_context
from requests.structures import CaseInsensitiveDict
from sqlalchemy.exc import SQLAlchemyError

from ..executors import BlockExecutor, build_executors, find_executor
from ..executors.switch import normalize_label, switch_value
from ..extensions import db
from ..models import Block, BlockConnection, Workflow, WorkflowExecution
from ..models.workflow import CONNECTION_ERROR, CONNECTION_SUCCESS
from ..utils.clock import utcnow
from .loader import WorkflowNotFoundError, load_workflow_graph

logger = logging.getLogger(__name__)

START_BLOCK_TYPE = "Start"
SWITCH_BLOCK_TYPE = "Switch"


def _persist_execution(execution: WorkflowExecution, commit: bool = True) -> None:
    """Add the execution record to the session, committing unless batched."""

    db.session.add(execution)
    if not commit:
        return
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        raise


def build_variable_store(
    workflow: Workflow, inputs: Mapping[str, Any] | None = None
) -> CaseInsensitiveDict:
    """Seed the store from workflow defaults, then overlay caller inputs."""

    variables: CaseInsensitiveDict = CaseInsensitiveDict()
    for variable in workflow.variables:
        if variable.name is None:
            continue
        # Assigning through the mapping keeps the casing of the latest duplicate.
        variables.pop(variable.name, None)
        variables[variable.name] = variable.default_value or ""
    for key, value in (inputs or {}).items():
        variables.pop(key, None)
        variables[key] = "" if value is None else str(value)
    return variables


def _block_key(block: Block) -> int:
    return block.id if block.id is not None else id(block)


def _start_blocks(workflow: Workflow) -> list[Block]:
    return [
        block
        for block in workflow.blocks
        if (block.type_name or "").lower() == START_BLOCK_TYPE.lower()
    ]


def _outgoing(block: Block, kind: str) -> list[BlockConnection]:
    connections = [
        connection
        for connection in block.source_connections
        if (connection.connection_type or CONNECTION_SUCCESS) == kind
    ]
    return sorted(connections, key=lambda connection: connection.id or 0)


def _target_of(connection: BlockConnection, arena: dict[int, Block]) -> Block | None:
    if connection.target_block is not None:
        return connection.target_block
    return arena.get(connection.target_block_id)


def select_switch_connection(
    block: Block, connections: Sequence[BlockConnection], variables
) -> BlockConnection | None:
    """Pick the branch whose label matches the switch value, else the default branch."""

    value = switch_value(block, variables).strip().lower()
    for connection in connections:
        if not (connection.label or "").strip():
            continue
        if normalize_label(connection.label, variables).lower() == value:
            return connection
    for connection in connections:
        if not (connection.label or "").strip():
            return connection
    return None


def _configured_executors(skip_waits: bool) -> list[BlockExecutor]:
    if not has_app_context():
        return build_executors(skip_waits=skip_waits)
    config = current_app.config
    return build_executors(
        skip_waits=skip_waits,
        http_timeout=float(config.get("HTTP_BLOCK_TIMEOUT", 10)),
        max_wait_ms=int(config.get("WAIT_MAX_DELAY_MS", 30000)),
    )


def evaluate_workflow(
    workflow: Workflow,
    inputs: Mapping[str, Any] | None = None,
    *,
    skip_waits: bool = False,
    executors: Sequence[BlockExecutor] | None = None,
    commit: bool = True,
) -> WorkflowExecution:
    """Walk the graph from every Start block and record the execution trace.

    Traversal is breadth first. Each queued entry carries the ids visited on
    its own path, so a diamond is evaluated once per distinct path while a
    block that reappears on the same path is skipped. Executors decide the
    outgoing edge kind; Switch blocks follow a single labelled branch.
    """

    if executors is None:
        executors = _configured_executors(skip_waits)

    variables = build_variable_store(workflow, inputs)
    arena = {_block_key(block): block for block in workflow.blocks}
    path: list[str] = []
    actions: list[str] = []

    queue: deque[tuple[Block, frozenset[int]]] = deque(
        (block, frozenset()) for block in _start_blocks(workflow)
    )
    if not queue:
        logger.debug("Workflow %s has no Start block", workflow.id)

    while queue:
        block, visited = queue.popleft()
        key = _block_key(block)
        if key in visited:
            logger.debug("Skipping block %s already on this path", key)
            continue
        visited = visited | {key}

        executor = find_executor(block, executors)
        result = executor.execute(block, variables)
        path.append(block.display_name)
        actions.append(result.description)
        logger.debug(
            "Block %s (%s) -> %s%s",
            key,
            block.type_name,
            result.description,
            " [error]" if result.error else "",
        )

        candidates = _outgoing(block, CONNECTION_ERROR if result.error else CONNECTION_SUCCESS)
        if (block.type_name or "").lower() == SWITCH_BLOCK_TYPE.lower() and not result.error:
            chosen = select_switch_connection(block, candidates, variables)
            candidates = [chosen] if chosen is not None else []

        for connection in candidates:
            target = _target_of(connection, arena)
            if target is not None:
                queue.append((target, visited))

    execution = WorkflowExecution(
        executed_at=utcnow(),
        workflow_id=workflow.id,
        input_data=None if inputs is None else json.dumps(dict(inputs)),
        result_data=json.dumps(dict(variables)),
        path_data=json.dumps(path),
        actions_data=json.dumps(actions),
    )
    _persist_execution(execution, commit)
    logger.info(
        "Evaluated workflow %s: %d step(s)", workflow.id, len(path)
    )
    return execution


def run_workflow(
    workflow_id: int,
    inputs: Mapping[str, Any] | None = None,
    *,
    skip_waits: bool = False,
) -> WorkflowExecution:
    """Load the live graph by id and evaluate it."""

    workflow = load_workflow_graph(workflow_id)
    return evaluate_workflow(workflow, inputs, skip_waits=skip_waits)


__all__ = [
    "WorkflowNotFoundError",
    "build_variable_store",
    "evaluate_workflow",
    "run_workflow",
    "select_switch_connection",
]
