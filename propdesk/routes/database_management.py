import json
from typing import Any, Dict

import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response
from pydantic import ValidationError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from ..auth.security import require_super_admin
from ..db import get_db, get_session_factory
from ..errors import PropdeskError, UnknownAction
from ..schemas.database import DatabaseAction, DatabaseActionRequest
from ..services.audit import AuditRecorder
from ..services.table_ops import TableOperations
from ..services.table_store import DDLExecutor, TableStore
from ..services.tenant_backend import TenantBackendService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/database-management", tags=["database-management"])

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
}


def get_table_operations(
    db: Session = Depends(get_db),
    session_factory=Depends(get_session_factory),
) -> TableOperations:
    return TableOperations(TableStore(db), DDLExecutor(db), AuditRecorder(session_factory))


def get_tenant_backend(request: Request) -> TenantBackendService:
    return request.app.state.tenant_backend


def dispatch_action(ops: TableOperations, actor_id: str, params: DatabaseActionRequest) -> Dict[str, Any]:
    try:
        action = DatabaseAction(params.action)
    except ValueError:
        raise UnknownAction(params.action)

    if action is DatabaseAction.list_tables:
        return ops.list_tables()
    if action is DatabaseAction.get_table_schema:
        return ops.get_schema(params.table)
    if action is DatabaseAction.get_table_data:
        return ops.get_data(
            params.table, params.page, params.pageSize, params.search, params.orderBy, params.orderDir
        )
    if action is DatabaseAction.insert_row:
        return ops.insert_row(params.table, actor_id, params.rowData)
    if action is DatabaseAction.update_row:
        return ops.update_row(params.table, actor_id, params.id, params.rowData)
    if action is DatabaseAction.delete_row:
        return ops.delete_row(params.table, actor_id, params.id)
    if action is DatabaseAction.add_column:
        return ops.add_column(
            params.table,
            actor_id,
            params.columnName,
            params.columnType,
            True if params.nullable is None else params.nullable,
            params.defaultValue,
        )
    if action is DatabaseAction.delete_column:
        return ops.drop_column(params.table, actor_id, params.columnName)
    if action is DatabaseAction.list_enums:
        return ops.list_enums()
    if action is DatabaseAction.add_enum_value:
        return ops.add_enum_value(params.enumName, actor_id, params.value)
    if action is DatabaseAction.get_audit_log:
        return ops.get_audit_log(params.page, params.pageSize, params.entityType)
    if action is DatabaseAction.database_health:
        return ops.database_health()
    if action is DatabaseAction.export_table:
        return ops.export_table(params.table, params.format or "csv")
    raise UnknownAction(params.action)


async def _read_params(request: Request) -> DatabaseActionRequest:
    raw = await request.body()
    try:
        body = json.loads(raw or b"{}")
    except ValueError:
        raise PropdeskError("Invalid JSON body")
    if not isinstance(body, dict):
        raise PropdeskError("Request body must be a JSON object")
    try:
        return DatabaseActionRequest.model_validate(body)
    except ValidationError as e:
        first = e.errors()[0] if e.errors() else {}
        field = ".".join(str(p) for p in first.get("loc", ()))
        raise PropdeskError(f"Invalid parameter '{field}': {first.get('msg', 'invalid value')}")


@router.options("")
def preflight():
    return Response(status_code=200, headers=CORS_HEADERS)


@router.post("")
async def database_management(
    request: Request,
    actor_id: str = Depends(require_super_admin),
    ops: TableOperations = Depends(get_table_operations),
):
    params = await _read_params(request)
    log = logger.bind(action=params.action, actor_id=actor_id, table=params.table)
    try:
        result = await run_in_threadpool(dispatch_action, ops, actor_id, params)
    except PropdeskError as e:
        log.warning("db_action_failed", status=e.status_code, error=e.message)
        raise
    log.info("db_action")
    return result


@router.get("/migration-status")
def migration_status(
    actor_id: str = Depends(require_super_admin),
    backend: TenantBackendService = Depends(get_tenant_backend),
):
    return backend.get_migration_status().model_dump(exclude_none=True)
