# src/tasklane/tasks/task_store.py

from __future__ import annotations

import contextlib
import datetime as dt
import json
import logging
import sqlite3
import time
from collections import Counter
from pathlib import Path
from typing import Any

from ..core.dates import from_epoch, local_day, to_epoch
from ..core.errors import PersistenceError, ValidationError
from .task_models import IntegrationSource, Task, TaskFilter, TaskStatus, sort_key

logger = logging.getLogger(__name__)

# Columns a partial update may touch, mapped to their encoder.
_UPDATABLE: dict[str, str] = {
    "name": "text",
    "description": "text",
    "date": "instant",
    "status": "status",
    "order": "int",
    "priority": "int",
    "tags": "json_list",
    "project_id": "text",
    "milestone_id": "int",
    "assignee": "text",
    "completed_at": "instant",
    "external_data": "json_dict",
    "host": "text",
    "workspace_id": "text",
}


class TaskStore:
    """
    SQLite task store.

    The schema is intentionally simple and migration-safe:
    - create table if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Thread-safety:
    - each method opens its own SQLite connection, so callers may run methods
      through asyncio.to_thread
    """

    def __init__(self, db_path: str | Path = "tasks.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        try:
            total = self.count_tasks()
        except Exception:
            total = -1
        logger.info("TaskStore ready db=%s total=%s", self._db_path, total)

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    workspace_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    description TEXT NOT NULL DEFAULT '',
                    status TEXT NOT NULL DEFAULT 'pending',
                    date REAL,
                    "order" INTEGER NOT NULL DEFAULT 0,
                    project_id TEXT,
                    milestone_id INTEGER,
                    tags TEXT NOT NULL DEFAULT '[]',
                    priority INTEGER,
                    integration_source TEXT,
                    external_id TEXT,
                    external_data TEXT NOT NULL DEFAULT '{}',
                    host TEXT,
                    assignee TEXT,
                    creator TEXT,
                    completed_at REAL,
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS milestones (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    project_id TEXT NOT NULL,
                    name TEXT NOT NULL
                )
                """
            )

            # Migrations (safe): add missing columns.
            cur.execute("PRAGMA table_info(tasks)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f'ALTER TABLE tasks ADD COLUMN "{name}" {decl}')
                logger.info("TaskStore migration: added column %s", name)

            add_col("host", "TEXT")
            add_col("milestone_id", "INTEGER")
            add_col("external_data", "TEXT NOT NULL DEFAULT '{}'")
            add_col("completed_at", "REAL")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_ws_date ON tasks(workspace_id, date)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_ws_status ON tasks(workspace_id, status)")
            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_tasks_external "
                "ON tasks(integration_source, external_id)"
            )
            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _json_dumps(value: Any, fallback: str) -> str:
        if not value:
            return fallback
        try:
            return json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError):
            logger.exception("Failed to JSON-encode value; storing %s.", fallback)
            return fallback

    @staticmethod
    def _json_loads(s: str | None, kind: type) -> Any:
        if not s:
            return kind()
        try:
            val = json.loads(s)
        except ValueError:
            return kind()
        return val if isinstance(val, kind) else kind()

    def _row_to_task(self, row: sqlite3.Row) -> Task:
        return Task(
            id=int(row["id"]),
            workspace_id=str(row["workspace_id"]),
            name=str(row["name"] or ""),
            description=str(row["description"] or ""),
            status=TaskStatus.from_db(row["status"]),
            date=from_epoch(row["date"]),
            order=int(row["order"] or 0),
            project_id=row["project_id"],
            milestone_id=int(row["milestone_id"]) if row["milestone_id"] is not None else None,
            tags=[str(t) for t in self._json_loads(row["tags"], list)],
            priority=int(row["priority"]) if row["priority"] is not None else None,
            integration_source=IntegrationSource.from_db(row["integration_source"]),
            external_id=row["external_id"],
            external_data=self._json_loads(row["external_data"], dict),
            host=row["host"],
            assignee=row["assignee"],
            creator=row["creator"],
            completed_at=from_epoch(row["completed_at"]),
            created_at=float(row["created_at"] or 0.0),
            updated_at=float(row["updated_at"] or 0.0),
        )

    def _encode(self, column: str, value: Any) -> Any:
        kind = _UPDATABLE[column]
        if value is None:
            if kind == "json_list":
                return "[]"
            if kind == "json_dict":
                return "{}"
            if column in ("name", "workspace_id", "status", "order"):
                raise ValidationError(f"{column} cannot be null")
            return None
        if kind == "instant":
            if not isinstance(value, dt.datetime):
                raise ValidationError(f"{column} must be a datetime, got {type(value).__name__}")
            return to_epoch(value)
        if kind == "status":
            try:
                return TaskStatus(value).value
            except ValueError as e:
                raise ValidationError(f"unknown status: {value!r}") from e
        if kind == "int":
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValidationError(f"{column} must be an integer")
            return int(value)
        if kind == "json_list":
            return self._json_dumps([str(v) for v in value], "[]")
        if kind == "json_dict":
            return self._json_dumps(dict(value), "{}")
        return str(value)

    # ---- public API ----

    def count_tasks(self) -> int:
        conn = self._get_conn()
        try:
            (n,) = conn.execute("SELECT COUNT(*) FROM tasks").fetchone()
            return int(n)
        finally:
            conn.close()

    def insert(self, task: Task) -> int:
        """Insert a new row; `task.id` is ignored and the store-assigned id returned."""
        if not task.workspace_id:
            raise ValidationError("workspace_id is required")
        if not task.name or not task.name.strip():
            raise ValidationError("name is required")
        if task.integration_source is not None and not task.external_id:
            raise ValidationError("imported tasks must carry an external_id")
        if task.milestone_id is not None:
            self._check_milestone(task.project_id, task.milestone_id)

        status = TaskStatus(task.status)
        completed_at = task.completed_at
        if status == TaskStatus.COMPLETED and completed_at is None:
            completed_at = dt.datetime.now(dt.timezone.utc)
        if status != TaskStatus.COMPLETED:
            completed_at = None

        now = time.time()
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                INSERT INTO tasks(
                    workspace_id, name, description, status, date, "order",
                    project_id, milestone_id, tags, priority,
                    integration_source, external_id, external_data, host,
                    assignee, creator, completed_at, created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    task.workspace_id,
                    task.name.strip(),
                    task.description or "",
                    status.value,
                    to_epoch(task.date),
                    int(task.order),
                    task.project_id,
                    task.milestone_id,
                    self._json_dumps([str(t) for t in task.tags], "[]"),
                    task.priority,
                    task.integration_source.value if task.integration_source else None,
                    task.external_id,
                    self._json_dumps(task.external_data, "{}"),
                    task.host,
                    task.assignee,
                    task.creator,
                    to_epoch(completed_at),
                    now,
                    now,
                ),
            )
            conn.commit()
            rowid = cur.lastrowid
            if rowid is None:
                raise PersistenceError("SQLite did not return lastrowid for tasks insert")
            task_id = int(rowid)
            logger.debug("Task added id=%s ws=%s status=%s", task_id, task.workspace_id, status.value)
            return task_id
        except sqlite3.Error as e:
            raise PersistenceError(f"insert failed: {e}") from e
        finally:
            conn.close()

    def get(self, task_id: int) -> Task | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM tasks WHERE id = ?", (int(task_id),)).fetchone()
            return self._row_to_task(row) if row else None
        except sqlite3.Error as e:
            raise PersistenceError(f"get failed: {e}") from e
        finally:
            conn.close()

    def list(self, flt: TaskFilter) -> list[Task]:
        """
        Return tasks matching the filter, ordered by date (backlog last), order, id.

        Equality and range predicates run in SQL; tag membership and the fuzzy
        name search are evaluated in Python on the narrowed rows.
        """
        if not flt.workspace_id:
            raise ValidationError("workspace_id is required for list")

        where = ["workspace_id = ?"]
        params: list[Any] = [flt.workspace_id]

        if flt.statuses is not None:
            if not flt.statuses:
                return []
            placeholders = ",".join("?" for _ in flt.statuses)
            where.append(f"status IN ({placeholders})")
            params.extend(s.value for s in flt.statuses)
        if flt.project_id is not None:
            where.append("project_id = ?")
            params.append(flt.project_id)
        if flt.milestone_id is not None:
            where.append("milestone_id = ?")
            params.append(int(flt.milestone_id))
        if flt.integration_source is not None:
            where.append("integration_source = ?")
            params.append(flt.integration_source.value)
        if flt.priority is not None:
            where.append("priority = ?")
            params.append(int(flt.priority))
        if flt.backlog:
            where.append("date IS NULL")
        if flt.date_from is not None:
            where.append("date >= ?")
            params.append(to_epoch(flt.date_from))
        if flt.date_to is not None:
            where.append("date < ?")
            params.append(to_epoch(flt.date_to))

        sql = f"SELECT * FROM tasks WHERE {' AND '.join(where)}"

        conn = self._get_conn()
        try:
            rows = conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise PersistenceError(f"list failed: {e}") from e
        finally:
            conn.close()

        tasks = [t for t in (self._row_to_task(r) for r in rows) if flt.matches(t)]
        tasks.sort(key=sort_key)
        if flt.limit is not None:
            tasks = tasks[: max(0, int(flt.limit))]
        return tasks

    def update(self, task_id: int, partial: dict[str, Any]) -> None:
        """Apply a partial update. Unknown fields raise ValidationError; a missing row raises PersistenceError."""
        unknown = set(partial) - set(_UPDATABLE)
        if unknown:
            raise ValidationError(f"fields not updatable: {', '.join(sorted(unknown))}")
        if not partial:
            return

        fields: list[str] = []
        params: list[Any] = []
        for column, value in partial.items():
            fields.append(f'"{column}" = ?')
            params.append(self._encode(column, value))

        fields.append("updated_at = ?")
        params.append(time.time())
        params.append(int(task_id))

        sql = f"UPDATE tasks SET {', '.join(fields)} WHERE id = ?"

        conn = self._get_conn()
        try:
            cur = conn.execute(sql, params)
            conn.commit()
            if cur.rowcount != 1:
                raise PersistenceError(f"task {task_id} not found")
        except sqlite3.Error as e:
            raise PersistenceError(f"update failed for task {task_id}: {e}") from e
        finally:
            conn.close()

    def delete(self, task_id: int) -> None:
        conn = self._get_conn()
        try:
            conn.execute("DELETE FROM tasks WHERE id = ?", (int(task_id),))
            conn.commit()
            logger.debug("Task deleted id=%s", task_id)
        except sqlite3.Error as e:
            raise PersistenceError(f"delete failed for task {task_id}: {e}") from e
        finally:
            conn.close()

    def count_by_day(
        self,
        workspace_id: str,
        start: dt.datetime,
        end: dt.datetime,
        tz: dt.tzinfo,
    ) -> list[dict[str, Any]]:
        """
        Capacity query: scheduled tasks per local calendar day in [start, end).

        Returns [{"day": date, "count": n}] for days with at least one task.
        """
        conn = self._get_conn()
        try:
            rows = conn.execute(
                "SELECT date FROM tasks WHERE workspace_id = ? AND date >= ? AND date < ?",
                (workspace_id, to_epoch(start), to_epoch(end)),
            ).fetchall()
        except sqlite3.Error as e:
            raise PersistenceError(f"count_by_day failed: {e}") from e
        finally:
            conn.close()

        counts = Counter(local_day(from_epoch(r["date"]), tz) for r in rows)  # type: ignore[arg-type]
        return [{"day": day, "count": n} for day, n in sorted(counts.items())]

    def find_by_external(self, source: IntegrationSource, external_id: str) -> Task | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT * FROM tasks WHERE integration_source = ? AND external_id = ? LIMIT 1",
                (source.value, str(external_id)),
            ).fetchone()
            return self._row_to_task(row) if row else None
        finally:
            conn.close()

    # ---- milestones ----

    def add_milestone(self, project_id: str, name: str) -> int:
        if not project_id:
            raise ValidationError("milestones require a project")
        conn = self._get_conn()
        try:
            cur = conn.execute(
                "INSERT INTO milestones(project_id, name) VALUES (?, ?)",
                (project_id, name.strip() or "Milestone"),
            )
            conn.commit()
            return int(cur.lastrowid or 0)
        finally:
            conn.close()

    def milestone_project(self, milestone_id: int) -> str | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT project_id FROM milestones WHERE id = ?", (int(milestone_id),)
            ).fetchone()
            return str(row["project_id"]) if row else None
        finally:
            conn.close()

    def _check_milestone(self, project_id: str | None, milestone_id: int) -> None:
        if not project_id:
            raise ValidationError("milestone_id requires a project_id")
        owner = self.milestone_project(milestone_id)
        if owner != project_id:
            raise ValidationError(
                f"milestone {milestone_id} does not belong to project {project_id}"
            )
