"""Seed the database with the block catalog and an example workflow."""
from __future__ import annotations

import json
import pathlib
import sys

ROOT = pathlib.Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from backend.flowforge import create_app
from backend.flowforge.extensions import db
from backend.flowforge.models import Workflow
from backend.flowforge.models.system_block import ensure_system_blocks
from backend.flowforge.workflow.snapshots import apply_snapshot, load_snapshot

EXAMPLE_WORKFLOW_NAME = "Order Discount"


def _config(**values: object) -> str:
    return json.dumps(values)


def example_graph() -> dict[str, object]:
    """Return a small graph that multiplies, branches and formats a message."""

    return {
        "name": EXAMPLE_WORKFLOW_NAME,
        "blocks": [
            {"id": 1, "name": "Start", "systemBlockType": "Start"},
            {
                "id": 2,
                "name": "Total",
                "systemBlockType": "Calculation",
                "jsonConfig": _config(
                    operation="Multiply",
                    firstVariable="price",
                    secondVariable="quantity",
                    resultVariable="total",
                ),
            },
            {
                "id": 3,
                "name": "Large order?",
                "systemBlockType": "If",
                "jsonConfig": _config(
                    first="$total", second="100", dataType="Number", operation="GreaterThan"
                ),
            },
            {
                "id": 4,
                "name": "Discount",
                "systemBlockType": "TextReplace",
                "jsonConfig": _config(
                    inputVariable="customer",
                    resultVariable="message",
                    replacements=[
                        {"from": r"\bcorp\b", "to": "Corporation", "useRegex": True, "ignoreCase": True},
                        {"from": "ACME", "to": "Acme"},
                    ],
                ),
            },
            {
                "id": 5,
                "name": "No discount",
                "systemBlockType": "TextTransform",
                "jsonConfig": _config(
                    input="  regular order  ", operation="Upper", resultVariable="message"
                ),
            },
            {"id": 6, "name": "End", "systemBlockType": "End"},
        ],
        "connections": [
            {"sourceBlockId": 1, "targetBlockId": 2, "connectionType": "Success"},
            {"sourceBlockId": 2, "targetBlockId": 3, "connectionType": "Success"},
            {"sourceBlockId": 3, "targetBlockId": 4, "connectionType": "Success"},
            {"sourceBlockId": 3, "targetBlockId": 5, "connectionType": "Error"},
            {"sourceBlockId": 4, "targetBlockId": 6, "connectionType": "Success"},
            {"sourceBlockId": 5, "targetBlockId": 6, "connectionType": "Success"},
        ],
        "variables": [
            {"name": "price", "defaultValue": "25"},
            {"name": "quantity", "defaultValue": "5"},
            {"name": "total", "defaultValue": "0"},
            {"name": "customer", "defaultValue": "ACME corp"},
        ],
    }


def _ensure_example_workflow() -> bool:
    workflow = Workflow.query.filter_by(name=EXAMPLE_WORKFLOW_NAME).first()
    created = workflow is None
    if created:
        workflow = Workflow(name=EXAMPLE_WORKFLOW_NAME)
        db.session.add(workflow)
        db.session.flush()
    apply_snapshot(workflow, load_snapshot(example_graph()))
    return created


def main() -> None:
    app = create_app()
    with app.app_context():
        added_types = ensure_system_blocks()
        created = _ensure_example_workflow()
        db.session.commit()

        print(
            "Seed completed",
            f"block types added={added_types}",
            f"workflow {'created' if created else 'updated'}={EXAMPLE_WORKFLOW_NAME}",
        )


if __name__ == "__main__":
    main()
