from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict


class DatabaseAction(str, Enum):
    list_tables = "list_tables"
    get_table_schema = "get_table_schema"
    get_table_data = "get_table_data"
    insert_row = "insert_row"
    update_row = "update_row"
    delete_row = "delete_row"
    add_column = "add_column"
    delete_column = "delete_column"
    list_enums = "list_enums"
    add_enum_value = "add_enum_value"
    get_audit_log = "get_audit_log"
    database_health = "database_health"
    export_table = "export_table"


class DatabaseActionRequest(BaseModel):
    # action stays a plain string so unknown values get the "Unknown action" error
    model_config = ConfigDict(extra="ignore")

    action: Optional[str] = None
    table: Optional[str] = None
    id: Optional[Any] = None
    rowData: Optional[Dict[str, Any]] = None
    columnName: Optional[str] = None
    columnType: Optional[str] = None
    nullable: Optional[bool] = None
    defaultValue: Optional[Any] = None
    enumName: Optional[str] = None
    value: Optional[str] = None
    page: Optional[int] = None
    pageSize: Optional[int] = None
    search: Optional[str] = None
    orderBy: Optional[str] = None
    orderDir: Optional[str] = None
    entityType: Optional[str] = None
    format: Optional[str] = None
