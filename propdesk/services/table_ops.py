"""
Generic CRUD and schema operations over the allow-listed tables.

Every operation validates its table and identifiers before the first
datastore call. Mutations are committed first and audited afterwards.
"""
import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import structlog
from sqlalchemy.exc import SQLAlchemyError

from ..config import settings
from ..errors import ColumnAddFailed, ColumnDropFailed, DatastoreError, EnumValueAddFailed
from . import audit as audit_actions
from .audit import AuditRecorder, get_audit_logs
from .table_store import DDLExecutor, TableStore, public_message
from .validation import (
    ALLOWED_TABLES,
    FALLBACK_ENUMS,
    build_add_column,
    build_add_enum_value,
    build_drop_column,
    sanitize_identifier,
    validate_column_type,
    validate_enum_value,
    validate_table,
    ensure_droppable,
)

logger = structlog.get_logger(__name__)


def _page_args(page, page_size):
    try:
        page = max(int(page or 1), 1)
    except (TypeError, ValueError):
        page = 1
    try:
        page_size = int(page_size or settings.default_page_size)
    except (TypeError, ValueError):
        page_size = settings.default_page_size
    page_size = min(max(page_size, 1), settings.max_page_size)
    return page, page_size


def rows_to_csv(rows) -> str:
    if not rows:
        return ""
    headers = list(rows[0].keys())
    lines = [",".join(headers)]
    for row in rows:
        values = []
        for h in headers:
            value = row.get(h)
            values.append(json.dumps("" if value is None else value, default=str))
        lines.append(",".join(values))
    return "\n".join(lines)


class TableOperations:
    def __init__(self, store: TableStore, ddl: DDLExecutor, audit: AuditRecorder):
        self.store = store
        self.ddl = ddl
        self.audit = audit

    # Reads

    def list_tables(self) -> Dict[str, Any]:
        tables = []
        for name in ALLOWED_TABLES:
            try:
                count = self.store.count(name)
            except DatastoreError:
                count = 0
            tables.append({"name": name, "row_count": count})
        return {"tables": tables}

    def get_schema(self, table) -> Dict[str, Any]:
        validate_table(table)
        try:
            columns = self.store.columns(table)
        except DatastoreError:
            columns = None
        if not columns:
            # Best effort: infer from one sampled row
            try:
                sample = self.store.sample(table, 1)
            except DatastoreError:
                sample = []
            columns = [
                {
                    "column_name": col,
                    "data_type": type(value).__name__,
                    "is_nullable": "YES",
                    "column_default": None,
                }
                for col, value in (sample[0].items() if sample else [])
            ]
        return {"table": table, "columns": columns}

    def get_data(
        self,
        table,
        page=1,
        page_size=None,
        search: Optional[str] = None,
        order_by: Optional[str] = None,
        order_dir: Optional[str] = None,
    ) -> Dict[str, Any]:
        validate_table(table)
        page, page_size = _page_args(page, page_size)
        filters = {"id": search} if search else None
        rows, total = self.store.select_page(
            table,
            offset=(page - 1) * page_size,
            limit=page_size,
            filters=filters,
            order_by=order_by or "created_at",
            descending=(order_dir or "desc").lower() != "asc",
        )
        return {"data": rows, "total": total, "page": page, "pageSize": page_size}

    def list_enums(self) -> Dict[str, Any]:
        try:
            enums = self.store.enums()
        except DatastoreError:
            enums = [dict(e, values=list(e["values"])) for e in FALLBACK_ENUMS]
        return {"enums": enums}

    def get_audit_log(self, page=1, page_size=None, entity_type: Optional[str] = None) -> Dict[str, Any]:
        page, page_size = _page_args(page, page_size)
        try:
            return get_audit_logs(self.store.db, page, page_size, entity_type or None)
        except SQLAlchemyError as e:
            self.store.db.rollback()
            logger.error("datastore_error", operation="audit_log", error=str(e))
            raise DatastoreError(public_message(e))

    def database_health(self) -> Dict[str, Any]:
        table_counts: Dict[str, int] = {}
        total = 0
        for name in ALLOWED_TABLES:
            try:
                count = self.store.count(name)
            except DatastoreError:
                count = 0
            table_counts[name] = count
            total += count
        return {
            "totalRecords": total,
            "totalTables": len(ALLOWED_TABLES),
            "tableCounts": table_counts,
            "estimatedSizeMB": f"{(total * 1024) / 1024 / 1024:.2f}",
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    def export_table(self, table, fmt: Optional[str] = "csv") -> Dict[str, Any]:
        validate_table(table)
        rows, _ = self.store.select_page(table, offset=0, limit=settings.export_row_limit, order_by=None)
        if fmt == "json":
            return {"data": rows, "format": "json"}
        return {"data": rows_to_csv(rows), "format": "csv"}

    # Row mutations

    def insert_row(self, table, actor_id: str, row: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        validate_table(table)
        created = self.store.insert(table, dict(row or {}))
        self.audit.record(
            actor_id,
            audit_actions.ROW_INSERTED,
            table,
            (created or {}).get("id"),
            {"table": table, "row": created},
        )
        return {"success": True, "data": created}

    def update_row(self, table, actor_id: str, row_id, patch: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        validate_table(table)
        updated = self.store.update(table, row_id, dict(patch or {}))
        self.audit.record(actor_id, audit_actions.ROW_UPDATED, table, row_id, {"table": table, "changes": patch})
        return {"success": True, "data": updated}

    def delete_row(self, table, actor_id: str, row_id) -> Dict[str, Any]:
        validate_table(table)
        self.store.delete(table, row_id)
        self.audit.record(actor_id, audit_actions.ROW_DELETED, table, row_id, {"table": table})
        return {"success": True}

    # Schema mutations

    def add_column(
        self,
        table,
        actor_id: str,
        column_name,
        column_type,
        nullable: bool = True,
        default_value=None,
    ) -> Dict[str, Any]:
        validate_table(table)
        sanitize_identifier(column_name)
        validate_column_type(column_type)
        sql = build_add_column(table, column_name, column_type, nullable, default_value, schema=self.ddl.schema)
        try:
            self.ddl.execute(sql)
        except SQLAlchemyError as e:
            logger.error("datastore_error", operation="add_column", table=table, error=str(e))
            raise ColumnAddFailed(public_message(e, "Failed to add column"))
        self.store.forget(table)
        self.audit.record(
            actor_id,
            audit_actions.COLUMN_ADDED,
            table,
            None,
            {
                "table": table,
                "column": column_name,
                "type": column_type,
                "nullable": nullable,
                "defaultValue": default_value,
            },
        )
        return {"success": True, "message": f"Column '{column_name}' added to '{table}'"}

    def drop_column(self, table, actor_id: str, column_name) -> Dict[str, Any]:
        validate_table(table)
        sanitize_identifier(column_name)
        ensure_droppable(column_name)
        sql = build_drop_column(table, column_name, schema=self.ddl.schema)
        try:
            self.ddl.execute(sql)
        except SQLAlchemyError as e:
            logger.error("datastore_error", operation="drop_column", table=table, error=str(e))
            raise ColumnDropFailed(
                public_message(e, "Failed to delete column. Schema changes may require migration.")
            )
        self.store.forget(table)
        self.audit.record(
            actor_id,
            audit_actions.COLUMN_DELETED,
            table,
            None,
            {"table": table, "column": column_name},
        )
        return {"success": True, "message": f"Column '{column_name}' deleted from '{table}'"}

    def add_enum_value(self, enum_name, actor_id: str, value) -> Dict[str, Any]:
        sanitize_identifier(enum_name)
        validate_enum_value(value)
        sql = build_add_enum_value(enum_name, value, schema=self.ddl.schema)
        try:
            self.ddl.execute(sql)
        except SQLAlchemyError as e:
            logger.error("datastore_error", operation="add_enum_value", enum=enum_name, error=str(e))
            raise EnumValueAddFailed(public_message(e, "Failed to add enum value"))
        self.audit.record(
            actor_id,
            audit_actions.ENUM_VALUE_ADDED,
            "enum",
            None,
            {"enum": enum_name, "value": value},
        )
        return {"success": True, "message": f"Value '{value}' added to enum '{enum_name}'"}
