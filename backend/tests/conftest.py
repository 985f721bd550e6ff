from __future__ import annotations

import json
import pathlib
import sys
from collections.abc import Callable

import pytest
from sqlalchemy.pool import StaticPool

ROOT = pathlib.Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def _load_dependencies():
    from flowforge import Config, create_app
    from backend.flowforge.extensions import db

    return Config, create_app, db


ConfigBase, create_app, db = _load_dependencies()


class TestConfig(ConfigBase):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite+pysqlite:///:memory:"
    SQLALCHEMY_ENGINE_OPTIONS = {
        "poolclass": StaticPool,
        "connect_args": {"check_same_thread": False},
    }
    ENABLE_SCHEDULER = False
    CORS_ALLOWED_ORIGINS = "http://localhost"
    RUN_RATE_LIMIT = "1000 per minute"
    WAIT_MAX_DELAY_MS = 50


@pytest.fixture(scope="module")
def app():
    app = create_app(TestConfig)
    ctx = app.app_context()
    ctx.push()
    yield app
    db.session.remove()
    ctx.pop()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture(autouse=True)
def cleanup_workflows(app):
    from backend.flowforge.models import (
        Block,
        BlockConnection,
        Workflow,
        WorkflowExecution,
        WorkflowRevision,
        WorkflowSchedule,
        WorkflowVariable,
    )

    yield

    db.session.rollback()
    db.session.query(Workflow).update({Workflow.active_revision_id: None})
    for model in (
        WorkflowSchedule,
        WorkflowExecution,
        BlockConnection,
        Block,
        WorkflowVariable,
        WorkflowRevision,
        Workflow,
    ):
        db.session.query(model).delete()
    db.session.commit()
    db.session.expunge_all()


@pytest.fixture()
def make_workflow(app) -> Callable[..., object]:
    """Build and persist a workflow from a compact description.

    ``blocks`` maps a key to ``(type, config)``; ``connections`` lists
    ``(source_key, target_key, kind, label)`` tuples where kind and label are
    optional. Returns the workflow with ``block_ids`` mapping keys to ids.
    """

    from backend.flowforge.models import Block, BlockConnection, Workflow, WorkflowVariable
    from backend.flowforge.models.system_block import find_system_block

    counter = {"value": 0}

    def factory(
        blocks: dict[str, tuple[str, object]],
        connections: list[tuple] = (),
        variables: dict[str, str | None] | list[tuple[str, str | None]] | None = None,
        name: str | None = None,
    ):
        counter["value"] += 1
        workflow = Workflow(name=name or f"Workflow {counter['value']}")
        db.session.add(workflow)

        created: dict[str, Block] = {}
        for key, (type_name, config) in blocks.items():
            if isinstance(config, (dict, list)):
                config = json.dumps(config)
            block = Block(
                name=key,
                system_block=find_system_block(type_name),
                json_config=config,
            )
            workflow.blocks.append(block)
            created[key] = block
        db.session.flush()

        for entry in connections:
            source, target, *rest = entry
            kind = rest[0] if rest else "Success"
            label = rest[1] if len(rest) > 1 else None
            db.session.add(
                BlockConnection(
                    source_block_id=created[source].id,
                    target_block_id=created[target].id,
                    connection_type=kind,
                    label=label,
                )
            )

        items = variables.items() if isinstance(variables, dict) else (variables or [])
        for variable_name, default in items:
            workflow.variables.append(WorkflowVariable(name=variable_name, default_value=default))

        db.session.commit()
        db.session.expire_all()
        workflow.block_ids = {key: block.id for key, block in created.items()}
        return workflow

    return factory
