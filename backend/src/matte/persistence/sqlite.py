"""SQLite persistence adapter."""

import json
import logging
import sqlite3
import uuid
from collections.abc import Iterable
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any

from matte.core.types import get_storage_type
from matte.errors import StorageConflict, StorageSchemaError
from matte.schema.fields import Field
from matte.schema.types import EntityDefinition, Lifecycle

logger = logging.getLogger(__name__)


def quote(identifier: str) -> str:
    """Quote a table or column name (entity names like Order are SQL keywords)."""
    return '"' + identifier.replace('"', '""') + '"'


class SQLiteAdapter:
    """Simple SQLite storage adapter."""

    def __init__(self, db_path: Path | str = ":memory:"):
        self.db_path = str(db_path)
        self.conn: sqlite3.Connection | None = None

    def connect(self) -> None:
        """Establish database connection."""
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row

    def close(self) -> None:
        """Close database connection."""
        if self.conn:
            self.conn.close()
            self.conn = None

    def _require_conn(self) -> sqlite3.Connection:
        if not self.conn:
            raise RuntimeError("Database not connected")
        return self.conn

    # -- schema -------------------------------------------------------------

    def create_table_sql(self, entity: EntityDefinition) -> list[str]:
        """Return the DDL statements for an entity's table and indexes."""
        table = entity.table_name
        columns = [
            "id TEXT PRIMARY KEY",
            "owner_id TEXT",
            "created_at TEXT NOT NULL",
            "updated_at TEXT NOT NULL",
        ]
        for field in entity.fields:
            col_def = f"{quote(entity.columns[field.name])} {get_storage_type(field.type, field.is_array)}"
            if field.is_required:
                col_def += " NOT NULL"
            columns.append(col_def)

        statements = [
            f"CREATE TABLE IF NOT EXISTS {quote(table)} ({', '.join(columns)})",
            f"CREATE INDEX IF NOT EXISTS {quote(f'idx_{table}_owner')} "
            f"ON {quote(table)} (owner_id)",
        ]
        # One record per owner, enforced by storage as well as by the repository
        if entity.lifecycle is Lifecycle.INSTANCE_PER_USER:
            statements.append(
                f"CREATE UNIQUE INDEX IF NOT EXISTS {quote(f'uq_{table}_owner')} "
                f"ON {quote(table)} (owner_id)"
            )
        return statements

    def add_columns_sql(self, entity: EntityDefinition, existing: Iterable[str]) -> list[str]:
        """ALTER statements for field columns the table does not have yet.

        Added columns are nullable: SQLite cannot add a NOT NULL column
        without a default, and required values are checked before writes.
        """
        present = set(existing)
        table = quote(entity.table_name)
        return [
            f"ALTER TABLE {table} ADD COLUMN "
            f"{quote(entity.columns[field.name])} {get_storage_type(field.type, field.is_array)}"
            for field in entity.fields
            if entity.columns[field.name] not in present
        ]

    def check_compatible(self, entity: EntityDefinition) -> None:
        """Check that the entity's existing table can take its records.

        Tables that do not exist yet are always compatible.

        Raises:
            StorageSchemaError: The table has a NOT NULL column the entity no
                longer declares, or it holds several records for one owner
                while the entity is instancePerUser
        """
        conn = self._require_conn()
        existing = self._table_columns(entity.table_name)
        if not existing:
            return

        known = self._known_columns(entity)
        stale = sorted(
            column for column, required in existing.items()
            if required and column not in known
        )
        if stale:
            raise StorageSchemaError(
                f"Table '{entity.table_name}' has required columns that "
                f"{entity.name} no longer declares: {', '.join(stale)}",
                columns=tuple(stale),
            )

        if entity.lifecycle is Lifecycle.INSTANCE_PER_USER:
            sql = (
                f"SELECT owner_id FROM {quote(entity.table_name)} "
                "WHERE owner_id IS NOT NULL GROUP BY owner_id HAVING COUNT(*) > 1 LIMIT 1"
            )
            if conn.execute(sql).fetchone():
                raise StorageSchemaError(
                    f"Table '{entity.table_name}' holds more than one record per owner",
                    columns=("owner_id",),
                )

    def initialize_entity(self, entity: EntityDefinition) -> None:
        """Create the entity's table, or add the columns it is missing.

        Columns dropped from the entity stay in the table.

        Raises:
            StorageSchemaError: See :meth:`check_compatible`
        """
        conn = self._require_conn()
        self.check_compatible(entity)

        statements = self.create_table_sql(entity)
        existing = self._table_columns(entity.table_name)
        if existing:
            statements += self.add_columns_sql(entity, existing)

        for sql in statements:
            logger.debug("DDL: %s", sql)
            conn.execute(sql)
        conn.commit()

    # -- CRUD ---------------------------------------------------------------

    def insert(self, entity: EntityDefinition, row: dict[str, Any]) -> dict[str, Any]:
        """Insert a new row.

        Args:
            entity: Entity definition
            row: Column -> value; ``id`` is generated when missing

        Returns:
            The stored row

        Raises:
            StorageConflict: If a uniqueness constraint rejects the row
        """
        conn = self._require_conn()

        now = datetime.now(timezone.utc).isoformat()
        record = {
            "id": row.get("id") or str(uuid.uuid4()),
            **{k: v for k, v in row.items() if k != "id"},
            "created_at": now,
            "updated_at": now,
        }
        values = self._serialize_row(entity, record)
        columns = list(values)
        placeholders = ", ".join("?" for _ in columns)
        sql = (
            f"INSERT INTO {quote(entity.table_name)} "
            f"({', '.join(quote(c) for c in columns)}) VALUES ({placeholders})"
        )

        try:
            conn.execute(sql, [values[c] for c in columns])
        except sqlite3.IntegrityError as exc:
            conn.rollback()
            if "UNIQUE constraint failed" in str(exc):
                raise StorageConflict(str(exc)) from exc
            raise
        conn.commit()

        return self.get(entity, record["id"])

    def get(self, entity: EntityDefinition, id: str) -> dict[str, Any] | None:
        """Fetch a single row by ID."""
        conn = self._require_conn()
        sql = f"SELECT * FROM {quote(entity.table_name)} WHERE id = ?"
        row = conn.execute(sql, [id]).fetchone()
        if row:
            return self._deserialize_row(entity, dict(row))
        return None

    def find_all(
        self,
        entity: EntityDefinition,
        filters: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """Fetch rows matching equality filters, newest first."""
        conn = self._require_conn()
        where_clause, values = self._where(entity, filters)
        sql = (
            f"SELECT * FROM {quote(entity.table_name)}{where_clause} "
            "ORDER BY created_at DESC, rowid DESC"
        )
        rows = conn.execute(sql, values).fetchall()
        return [self._deserialize_row(entity, dict(row)) for row in rows]

    def count(
        self,
        entity: EntityDefinition,
        filters: dict[str, Any] | None = None,
    ) -> int:
        """Count rows matching equality filters."""
        conn = self._require_conn()
        where_clause, values = self._where(entity, filters)
        sql = f"SELECT COUNT(*) FROM {quote(entity.table_name)}{where_clause}"
        return conn.execute(sql, values).fetchone()[0]

    def update(
        self, entity: EntityDefinition, id: str, row: dict[str, Any]
    ) -> dict[str, Any] | None:
        """Update an existing row. The id and creation time never change."""
        conn = self._require_conn()

        changes = {
            k: v for k, v in row.items() if k not in ("id", "created_at", "updated_at")
        }
        changes["updated_at"] = datetime.now(timezone.utc).isoformat()
        values = self._serialize_row(entity, changes)

        set_clause = ", ".join(f"{quote(c)} = ?" for c in values)
        sql = f"UPDATE {quote(entity.table_name)} SET {set_clause} WHERE id = ?"

        try:
            conn.execute(sql, [*values.values(), id])
        except sqlite3.IntegrityError as exc:
            conn.rollback()
            if "UNIQUE constraint failed" in str(exc):
                raise StorageConflict(str(exc)) from exc
            raise
        conn.commit()

        return self.get(entity, id)

    def delete(self, entity: EntityDefinition, id: str) -> bool:
        """Delete a row. Returns True if a row was removed."""
        conn = self._require_conn()
        sql = f"DELETE FROM {quote(entity.table_name)} WHERE id = ?"
        cursor = conn.execute(sql, [id])
        conn.commit()
        return cursor.rowcount > 0

    # -- helpers ------------------------------------------------------------

    def _table_columns(self, table: str) -> dict[str, bool]:
        """Existing column -> whether inserts must supply it. Empty if no table."""
        conn = self._require_conn()
        rows = conn.execute(f"PRAGMA table_info({quote(table)})").fetchall()
        return {
            row["name"]: bool(row["notnull"]) and row["dflt_value"] is None
            for row in rows
        }

    def _known_columns(self, entity: EntityDefinition) -> set[str]:
        return {"id", "owner_id", "created_at", "updated_at", *entity.columns.values()}

    def _where(
        self, entity: EntityDefinition, filters: dict[str, Any] | None
    ) -> tuple[str, list[Any]]:
        if not filters:
            return "", []
        known = self._known_columns(entity)
        conditions = []
        values: list[Any] = []
        for column, value in filters.items():
            if column not in known:
                raise ValueError(f"Unknown column '{column}' for {entity.name}")
            conditions.append(f"{quote(column)} = ?")
            values.append(self._serialize_value(self._field_for_column(entity, column), value))
        return f" WHERE {' AND '.join(conditions)}", values

    def _field_for_column(self, entity: EntityDefinition, column: str) -> Field | None:
        for name, col in entity.columns.items():
            if col == column:
                return entity.schema[name]
        return None

    def _serialize_row(self, entity: EntityDefinition, row: dict[str, Any]) -> dict[str, Any]:
        known = self._known_columns(entity)
        result = {}
        for column, value in row.items():
            if column not in known:
                raise ValueError(f"Unknown column '{column}' for {entity.name}")
            result[column] = self._serialize_value(self._field_for_column(entity, column), value)
        return result

    def _serialize_value(self, field: Field | None, value: Any) -> Any:
        if value is None:
            return None
        if field is not None and field.is_array:
            return json.dumps(list(value))
        if isinstance(value, bool):
            return 1 if value else 0
        if isinstance(value, (datetime, date)):
            return value.isoformat()
        if isinstance(value, (list, dict)):
            return json.dumps(value)
        return value

    def _deserialize_row(self, entity: EntityDefinition, row: dict[str, Any]) -> dict[str, Any]:
        for name, column in entity.columns.items():
            value = row.get(column)
            if value is None:
                continue
            field = entity.schema[name]
            if field.is_array:
                row[column] = json.loads(value)
            elif field.type == "boolean":
                row[column] = bool(value)
            elif field.type == "number" and isinstance(value, float) and value.is_integer():
                # REAL columns hand back 5 as 5.0
                row[column] = int(value)
        return row
