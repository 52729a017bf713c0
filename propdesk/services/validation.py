"""
Identifier, table and type validation for the administrative data service.

All DDL text is assembled here from validated parts; no other module
interpolates caller-supplied strings into SQL.
"""
import re
from typing import Optional

from ..errors import (
    TableNotAllowed,
    InvalidIdentifier,
    InvalidColumnType,
    InvalidEnumValue,
    ProtectedColumnViolation,
)


ALLOWED_TABLES = (
    "profiles",
    "organizations",
    "properties",
    "units",
    "tenants",
    "invoices",
    "payments",
    "maintenance_tickets",
    "expenses",
    "activity_log",
    "user_roles",
    "tenant_documents",
    "ticket_comments",
    "notifications",
    "user_permissions",
    "tenants_profile",
    "tenant_bills",
    "tenant_family_members",
    "tenant_payment_records",
    "tenant_rooms",
)

VALID_COLUMN_TYPES = (
    "text",
    "integer",
    "bigint",
    "numeric",
    "boolean",
    "uuid",
    "date",
    "timestamp with time zone",
    "jsonb",
    "json",
)

PROTECTED_COLUMNS = frozenset({"id", "created_at", "updated_at", "organization_id", "user_id"})

# Reported by list_enums when the catalog cannot be queried
FALLBACK_ENUMS = (
    {
        "name": "app_role",
        "values": ["admin", "manager", "super_admin", "tenant", "staff", "guest", "user"],
    },
)

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_ENUM_VALUE_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_ ]*$")


def validate_table(name) -> str:
    if not isinstance(name, str) or name not in ALLOWED_TABLES:
        raise TableNotAllowed(name)
    return name


def sanitize_identifier(name) -> str:
    if not isinstance(name, str) or not _IDENTIFIER_RE.match(name):
        raise InvalidIdentifier(name)
    return name


def validate_column_type(column_type) -> str:
    if column_type not in VALID_COLUMN_TYPES:
        raise InvalidColumnType(column_type)
    return column_type


def validate_enum_value(value) -> str:
    if not isinstance(value, str) or not _ENUM_VALUE_RE.match(value):
        raise InvalidEnumValue(value)
    return value


def ensure_droppable(column: str) -> str:
    if column in PROTECTED_COLUMNS:
        raise ProtectedColumnViolation(column)
    return column


def quote_literal(value) -> str:
    return "'" + str(value).replace("'", "''") + "'"


def _qualified(name: str, schema: Optional[str]) -> str:
    if schema:
        return f'{sanitize_identifier(schema)}."{name}"'
    return f'"{name}"'


def build_add_column(
    table: str,
    column: str,
    column_type: str,
    nullable: bool = True,
    default_value=None,
    schema: Optional[str] = None,
) -> str:
    validate_table(table)
    sanitize_identifier(column)
    validate_column_type(column_type)
    sql = f'ALTER TABLE {_qualified(table, schema)} ADD COLUMN "{column}" {column_type}'
    if not nullable:
        sql += " NOT NULL"
    if default_value is not None and default_value != "":
        sql += f" DEFAULT {quote_literal(default_value)}"
    return sql


def build_drop_column(table: str, column: str, schema: Optional[str] = None) -> str:
    validate_table(table)
    sanitize_identifier(column)
    ensure_droppable(column)
    return f'ALTER TABLE {_qualified(table, schema)} DROP COLUMN "{column}"'


def build_add_enum_value(enum_name: str, value: str, schema: Optional[str] = None) -> str:
    sanitize_identifier(enum_name)
    validate_enum_value(value)
    return f"ALTER TYPE {_qualified(enum_name, schema)} ADD VALUE IF NOT EXISTS {quote_literal(value)}"
