# src/tasklane/integrations/store.py

from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path
from typing import Any

from ..tasks.task_models import IntegrationSource
from .models import Integration, IntegrationStatus

logger = logging.getLogger(__name__)


class IntegrationStore:
    """
    SQLite store for per-workspace integration records.

    Lives in the same database file as the tasks; one row per
    (workspace_id, type).
    """

    def __init__(self, db_path: str | Path = "tasks.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS integrations (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    workspace_id TEXT NOT NULL,
                    type TEXT NOT NULL,
                    status TEXT NOT NULL DEFAULT 'active',
                    config TEXT NOT NULL DEFAULT '{}',
                    access_token TEXT,
                    UNIQUE(workspace_id, type)
                )
                """
            )
            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _config_from_str(s: str | None) -> dict[str, Any]:
        if not s:
            return {}
        try:
            val = json.loads(s)
        except ValueError:
            return {}
        return val if isinstance(val, dict) else {}

    def _row_to_integration(self, row: sqlite3.Row) -> Integration | None:
        source = IntegrationSource.from_db(row["type"])
        if source is None:
            return None
        try:
            status = IntegrationStatus(row["status"])
        except ValueError:
            status = IntegrationStatus.ERROR
        return Integration(
            id=int(row["id"]),
            workspace_id=str(row["workspace_id"]),
            type=source,
            status=status,
            config=self._config_from_str(row["config"]),
            access_token=row["access_token"],
        )

    def upsert(self, integration: Integration) -> int:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO integrations(workspace_id, type, status, config, access_token)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(workspace_id, type) DO UPDATE SET
                    status = excluded.status,
                    config = excluded.config,
                    access_token = COALESCE(excluded.access_token, integrations.access_token)
                """,
                (
                    integration.workspace_id,
                    integration.type.value,
                    integration.status.value,
                    json.dumps(integration.config, ensure_ascii=False),
                    integration.access_token,
                ),
            )
            conn.commit()
            row = conn.execute(
                "SELECT id FROM integrations WHERE workspace_id = ? AND type = ?",
                (integration.workspace_id, integration.type.value),
            ).fetchone()
            logger.info(
                "Integration saved ws=%s type=%s sync=%s",
                integration.workspace_id,
                integration.type.value,
                integration.sync_policy.value,
            )
            return int(row["id"])
        finally:
            conn.close()

    def get_integration(self, workspace_id: str, source: IntegrationSource) -> Integration | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT * FROM integrations WHERE workspace_id = ? AND type = ?",
                (workspace_id, source.value),
            ).fetchone()
            return self._row_to_integration(row) if row else None
        finally:
            conn.close()

    def list_integrations(self, workspace_id: str) -> list[Integration]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                "SELECT * FROM integrations WHERE workspace_id = ? ORDER BY type",
                (workspace_id,),
            ).fetchall()
        finally:
            conn.close()
        return [i for i in (self._row_to_integration(r) for r in rows) if i is not None]

    def set_status(self, workspace_id: str, source: IntegrationSource, status: IntegrationStatus) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                "UPDATE integrations SET status = ? WHERE workspace_id = ? AND type = ?",
                (status.value, workspace_id, source.value),
            )
            conn.commit()
        finally:
            conn.close()
