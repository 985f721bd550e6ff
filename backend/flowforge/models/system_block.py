"""Catalog of known block types."""

from __future__ import annotations

from sqlalchemy import func

from ..extensions import db

# Stable ids; snapshots refer to types by name so the catalog can be re-seeded.
DEFAULT_BLOCK_TYPES: list[tuple[int, str, str]] = [
    (1, "Start", "Start block"),
    (2, "End", "End block"),
    (3, "Calculation", "Calculation block"),
    (4, "If", "Conditional block"),
    (5, "Switch", "Switch (case) block"),
    (6, "HttpRequest", "HTTP request block"),
    (7, "Parser", "Parse JSON or XML payloads"),
    (8, "Loop", "Loop block"),
    (9, "Wait", "Wait (delay) block"),
    (10, "TextTransform", "Transform text casing"),
    (11, "TextReplace", "Replace text (literal or regex)"),
]


class SystemBlock(db.Model):
    """A block type that blocks reference by id."""

    __tablename__ = "system_blocks"

    id = db.Column(db.Integer, primary_key=True)
    type = db.Column(db.String(64), unique=True, nullable=False)
    description = db.Column(db.String(255), nullable=False, default="")

    def __repr__(self) -> str:
        return f"<SystemBlock {self.id}={self.type}>"


def find_system_block(type_name: str | None) -> SystemBlock | None:
    """Look up a catalog entry by type name, ignoring case."""

    if not type_name or not type_name.strip():
        return None
    return SystemBlock.query.filter(
        func.lower(SystemBlock.type) == type_name.strip().lower()
    ).first()


def ensure_system_blocks() -> int:
    """Insert catalog entries that are missing and return how many were added."""

    existing = {entry.type for entry in SystemBlock.query.all()}
    added = 0
    for block_id, type_name, description in DEFAULT_BLOCK_TYPES:
        if type_name in existing:
            continue
        if db.session.get(SystemBlock, block_id) is not None:
            db.session.add(SystemBlock(type=type_name, description=description))
        else:
            db.session.add(SystemBlock(id=block_id, type=type_name, description=description))
        added += 1
    if added:
        db.session.commit()
    return added
