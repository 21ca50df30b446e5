from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from contextlib import closing
from pathlib import Path
from typing import Any

from .field_model import FieldConfig, fields_from_list, fields_to_list

SCHEMA = """
CREATE TABLE IF NOT EXISTS calculators (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL DEFAULT 'Untitled Calculator',
    config TEXT NOT NULL DEFAULT '{"fields":[]}',
    config_version INTEGER NOT NULL DEFAULT 1,
    is_deleted INTEGER NOT NULL DEFAULT 0,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
);
"""

DEFAULT_CALCULATOR_NAME = "Untitled Calculator"

logger = logging.getLogger(__name__)


def connect(db_path: str | Path) -> sqlite3.Connection:
    conn = sqlite3.connect(str(db_path))
    conn.row_factory = sqlite3.Row
    return conn


def init_db(db_path: str | Path) -> None:
    conn = connect(db_path)
    with conn:
        conn.executescript(SCHEMA)
        migrate_calculators_schema(conn)
    conn.close()


def migrate_calculators_schema(conn: sqlite3.Connection) -> None:
    columns = {row["name"] for row in conn.execute("PRAGMA table_info(calculators)").fetchall()}
    if "config_version" not in columns:
        conn.execute("ALTER TABLE calculators ADD COLUMN config_version INTEGER NOT NULL DEFAULT 1")
    if "is_deleted" not in columns:
        conn.execute("ALTER TABLE calculators ADD COLUMN is_deleted INTEGER NOT NULL DEFAULT 0")
    conn.execute(
        """
        CREATE INDEX IF NOT EXISTS idx_calculators_listing
        ON calculators(is_deleted, updated_at)
        """
    )


def json_dumps(payload: dict[str, Any]) -> str:
    return json.dumps(payload, separators=(",", ":"), sort_keys=True)


def _summary(row: sqlite3.Row) -> dict[str, Any]:
    return {
        "id": row["id"],
        "name": row["name"],
        "config_version": row["config_version"],
        "created_at": row["created_at"],
        "updated_at": row["updated_at"],
    }


class CalculatorStore:
    """SQLite persistence for calculators and their ordered field lists."""

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)
        init_db(self.db_path)

    def create(self, name: str | None = None) -> dict[str, Any]:
        calculator_id = uuid.uuid4().hex
        with closing(connect(self.db_path)) as conn, conn:
            conn.execute(
                "INSERT INTO calculators(id, name, config) VALUES (?, ?, ?)",
                (calculator_id, (name or "").strip() or DEFAULT_CALCULATOR_NAME, json_dumps({"fields": []})),
            )
        logger.info("calculator_created", extra={"calculator_id": calculator_id})
        return self.get(calculator_id) or {}

    def list_calculators(self) -> list[dict[str, Any]]:
        with closing(connect(self.db_path)) as conn:
            rows = conn.execute(
                """
                SELECT id, name, config_version, created_at, updated_at
                FROM calculators
                WHERE is_deleted = 0
                ORDER BY updated_at DESC, rowid DESC
                """
            ).fetchall()
        return [_summary(row) for row in rows]

    def get(self, calculator_id: str) -> dict[str, Any] | None:
        with closing(connect(self.db_path)) as conn:
            row = conn.execute(
                """
                SELECT id, name, config, config_version, created_at, updated_at
                FROM calculators
                WHERE id = ? AND is_deleted = 0
                """,
                (calculator_id,),
            ).fetchone()
        if row is None:
            return None
        return {**_summary(row), "config": json.loads(row["config"])}

    def load_fields(self, calculator_id: str) -> tuple[FieldConfig, ...] | None:
        calculator = self.get(calculator_id)
        if calculator is None:
            return None
        return fields_from_list(calculator["config"].get("fields", []))

    def save_fields(self, calculator_id: str, fields: tuple[FieldConfig, ...]) -> None:
        with closing(connect(self.db_path)) as conn, conn:
            cursor = conn.execute(
                """
                UPDATE calculators
                SET config = ?, config_version = config_version + 1, updated_at = CURRENT_TIMESTAMP
                WHERE id = ? AND is_deleted = 0
                """,
                (json_dumps({"fields": fields_to_list(fields)}), calculator_id),
            )
            updated = cursor.rowcount
        if updated == 0:
            logger.warning("calculator_save_skipped", extra={"calculator_id": calculator_id})
            return
        logger.info("calculator_saved", extra={"calculator_id": calculator_id, "field_count": len(fields)})

    def delete(self, calculator_id: str) -> bool:
        with closing(connect(self.db_path)) as conn, conn:
            cursor = conn.execute(
                "UPDATE calculators SET is_deleted = 1, updated_at = CURRENT_TIMESTAMP WHERE id = ? AND is_deleted = 0",
                (calculator_id,),
            )
            updated = cursor.rowcount
        return updated > 0
