"""
Table-oriented access to the relational store.

``TableStore`` reflects live tables with SQLAlchemy Core so that columns added
at runtime are visible immediately. ``DDLExecutor`` is the only path that runs
raw SQL, and it only ever receives statements built by ``validation``.
"""
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple

import structlog
from sqlalchemy import MetaData, Table, Date, DateTime, func, inspect, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import settings
from ..db import Base
from ..errors import DatastoreError
from ..models import models  # noqa: F401  registers model metadata

logger = structlog.get_logger(__name__)

GENERIC_ERROR = "Database operation failed"


def public_message(exc: Exception, generic: str = GENERIC_ERROR) -> str:
    if settings.expose_datastore_errors:
        orig = getattr(exc, "orig", None)
        return f"{generic}: {orig or exc}"
    return generic


def schema_for(bind) -> Optional[str]:
    """Schema used to qualify DDL, only meaningful on PostgreSQL."""
    if bind.dialect.name == "postgresql":
        return settings.db_schema
    return None


def _coerce_value(column, value):
    if not isinstance(value, str) or value == "":
        return value
    try:
        if isinstance(column.type, DateTime):
            # fromisoformat only accepts "Z" from Python 3.11 on
            if value.endswith(("Z", "z")):
                value = value[:-1] + "+00:00"
            return datetime.fromisoformat(value)
        if isinstance(column.type, Date):
            return date.fromisoformat(value[:10])
    except ValueError:
        return value
    return value


def row_to_dict(row) -> Dict[str, Any]:
    return dict(row._mapping)


class TableStore:
    def __init__(self, db: Session):
        self.db = db
        self._tables: Dict[str, Table] = {}

    @property
    def dialect(self) -> str:
        return self.db.get_bind().dialect.name

    def _fail(self, exc: SQLAlchemyError, operation: str, table: Optional[str] = None) -> DatastoreError:
        self.db.rollback()
        logger.error("datastore_error", operation=operation, table=table, error=str(exc))
        return DatastoreError(public_message(exc))

    def table(self, name: str) -> Table:
        if name not in self._tables:
            self._tables[name] = Table(name, MetaData(), autoload_with=self.db.connection())
        return self._tables[name]

    def forget(self, name: Optional[str] = None) -> None:
        if name is None:
            self._tables.clear()
        else:
            self._tables.pop(name, None)

    def _with_defaults(self, name: str, table: Table, values: Dict[str, Any], on_update: bool = False) -> Dict[str, Any]:
        # Reflection only sees server defaults; apply the model's Python-side ones
        model_table = Base.metadata.tables.get(name)
        out = {k: _coerce_value(table.c[k], v) if k in table.c else v for k, v in values.items()}
        if model_table is None:
            return out
        for col in model_table.columns:
            if col.name in out or col.name not in table.c:
                continue
            default = col.onupdate if on_update else col.default
            if default is None:
                continue
            if default.is_callable:
                out[col.name] = default.arg(None)
            elif default.is_scalar:
                out[col.name] = default.arg
        return out

    def count(self, name: str) -> int:
        try:
            tbl = self.table(name)
            return int(self.db.execute(select(func.count()).select_from(tbl)).scalar() or 0)
        except SQLAlchemyError as e:
            raise self._fail(e, "count", name)

    def columns(self, name: str) -> List[Dict[str, Any]]:
        try:
            cols = inspect(self.db.connection()).get_columns(name)
        except SQLAlchemyError as e:
            raise self._fail(e, "columns", name)
        return [
            {
                "column_name": c["name"],
                "data_type": str(c["type"]).lower(),
                "is_nullable": "YES" if c.get("nullable", True) else "NO",
                "column_default": c.get("default"),
            }
            for c in cols
        ]

    def sample(self, name: str, limit: int = 1) -> List[Dict[str, Any]]:
        try:
            tbl = self.table(name)
            return [row_to_dict(r) for r in self.db.execute(select(tbl).limit(limit))]
        except SQLAlchemyError as e:
            raise self._fail(e, "sample", name)

    def select_page(
        self,
        name: str,
        offset: int,
        limit: int,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = True,
    ) -> Tuple[List[Dict[str, Any]], int]:
        try:
            tbl = self.table(name)
            query = select(tbl)
            count_query = select(func.count()).select_from(tbl)
            for key, value in (filters or {}).items():
                if key not in tbl.c:
                    continue
                query = query.where(tbl.c[key] == value)
                count_query = count_query.where(tbl.c[key] == value)
            # Unknown order columns leave the result unordered
            if order_by and order_by in tbl.c:
                col = tbl.c[order_by]
                query = query.order_by(col.desc() if descending else col.asc())
            query = query.offset(offset).limit(limit)
            rows = [row_to_dict(r) for r in self.db.execute(query)]
            total = int(self.db.execute(count_query).scalar() or 0)
            return rows, total
        except SQLAlchemyError as e:
            raise self._fail(e, "select", name)

    def get(self, name: str, row_id) -> Optional[Dict[str, Any]]:
        try:
            tbl = self.table(name)
            row = self.db.execute(select(tbl).where(tbl.c.id == row_id)).first()
            return row_to_dict(row) if row is not None else None
        except SQLAlchemyError as e:
            raise self._fail(e, "get", name)

    def insert(self, name: str, values: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        try:
            tbl = self.table(name)
            payload = self._with_defaults(name, tbl, values)
            result = self.db.execute(tbl.insert().values(**payload))
            self.db.commit()
        except SQLAlchemyError as e:
            raise self._fail(e, "insert", name)
        row_id = payload.get("id")
        if row_id is None and result.inserted_primary_key:
            row_id = result.inserted_primary_key[0]
        return self.get(name, row_id) if row_id is not None else payload

    def update(self, name: str, row_id, values: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        try:
            tbl = self.table(name)
            payload = self._with_defaults(name, tbl, values, on_update=True)
            self.db.execute(tbl.update().where(tbl.c.id == row_id).values(**payload))
            self.db.commit()
        except SQLAlchemyError as e:
            raise self._fail(e, "update", name)
        return self.get(name, row_id)

    def delete(self, name: str, row_id) -> int:
        try:
            tbl = self.table(name)
            result = self.db.execute(tbl.delete().where(tbl.c.id == row_id))
            self.db.commit()
            return result.rowcount or 0
        except SQLAlchemyError as e:
            raise self._fail(e, "delete", name)

    def enums(self) -> List[Dict[str, Any]]:
        if self.dialect != "postgresql":
            raise DatastoreError("Enum introspection is not supported by this database")
        sql = text(
            "SELECT t.typname AS name, e.enumlabel AS value "
            "FROM pg_type t "
            "JOIN pg_enum e ON t.oid = e.enumtypid "
            "JOIN pg_namespace n ON n.oid = t.typnamespace "
            "WHERE n.nspname = :schema "
            "ORDER BY t.typname, e.enumsortorder"
        )
        try:
            rows = self.db.execute(sql, {"schema": settings.db_schema}).all()
        except SQLAlchemyError as e:
            raise self._fail(e, "enums")
        grouped: Dict[str, List[str]] = {}
        for name, value in rows:
            grouped.setdefault(name, []).append(value)
        return [{"name": name, "values": values} for name, values in grouped.items()]


class DDLExecutor:
    def __init__(self, db: Session):
        self.db = db

    @property
    def schema(self) -> Optional[str]:
        return schema_for(self.db.get_bind())

    def execute(self, sql: str) -> None:
        try:
            self.db.execute(text(sql))
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        logger.info("ddl_executed", sql=sql)
