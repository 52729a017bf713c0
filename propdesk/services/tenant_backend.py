"""
Tenant domain service that works against both deployed schema versions.

The enhanced schema adds normalized tables (family members, meter readings)
that legacy deployments lack. A one-time probe picks the matching adapter;
the choice is kept for the lifetime of the service instance, so a deployment
that finishes migrating needs a restart to switch modes.
"""
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import structlog
from sqlalchemy import select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from ..errors import PropdeskError
from ..models.models import (
    ElectricityMeterReading,
    Invoice,
    Property,
    Tenant,
    TenantDocument as TenantDocumentRow,
    TenantFamilyMember,
    Unit,
)
from ..schemas.tenant import (
    ApiResponse,
    Bill,
    BillInput,
    CompleteTenantProfile,
    DocumentInput,
    FamilyMember,
    FamilyMemberInput,
    FamilyMemberPatch,
    MeterReading,
    MeterReadingInput,
    MigrationStatus,
    RoomInfo,
    TenantDocument,
    TenantProfile,
)
from .table_store import public_message

logger = structlog.get_logger(__name__)

PROBE_TABLE = "tenant_family_members"

# Illustrative values returned where the schema has nothing to show
PLACEHOLDER_ADDRESS = "123 Main Street, City"
PLACEHOLDER_EMERGENCY_NAME = "Jane Doe"
PLACEHOLDER_EMERGENCY_RELATION = "Spouse"
PLACEHOLDER_EMERGENCY_MOBILE = "+91 98765 43211"
PLACEHOLDER_ROOM = {
    "unit": "A-101",
    "property": "Sunshine Apartments",
    "property_address": PLACEHOLDER_ADDRESS,
    "floor": "1",
    "rent": 15000.0,
    "join_date": "2024-01-01",
    "end_date": "2024-12-31",
    "security_deposit": 45000.0,
}
PLACEHOLDER_NOTICE = "Placeholder data: enhanced schema not available"

UPDATABLE_TENANT_FIELDS = (
    "name",
    "email",
    "phone",
    "address",
    "emergency_contact_name",
    "emergency_contact_relation",
    "emergency_contact_mobile",
    "lease_start",
    "lease_end",
    "rent_amount",
    "security_deposit",
    "status",
    "property_id",
    "unit_id",
)


class SchemaMode(str, Enum):
    ENHANCED = "enhanced"
    LEGACY = "legacy"


class NotSupported(PropdeskError):
    def __init__(self, message: str = "Not supported in current schema"):
        super().__init__(message)


class NotFound(PropdeskError):
    status_code = 404


class InvalidDate(PropdeskError):
    def __init__(self, value):
        super().__init__(f"Invalid date: {value!r} (expected YYYY-MM-DD)")


def probe_schema_mode(db: Session) -> SchemaMode:
    """Read from an enhanced-only table; any failure means the legacy schema."""
    try:
        db.execute(text(f"SELECT id FROM {PROBE_TABLE} LIMIT 1")).first()
        return SchemaMode.ENHANCED
    except SQLAlchemyError as e:
        db.rollback()
        # Timeouts and missing tables both fall back to legacy
        logger.warning("schema_probe_failed", table=PROBE_TABLE, error_type=type(e).__name__, error=str(e))
        return SchemaMode.LEGACY


def _iso(value) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _num(value, default: float = 0.0) -> float:
    return float(value) if value is not None else default


def _mock_id() -> str:
    return f"mock-{int(time.time() * 1000)}"


def _parse_date(value, required: bool = False) -> Optional[date]:
    if isinstance(value, date):
        return value
    if value is None or value == "":
        if required:
            raise InvalidDate(value)
        return None
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise InvalidDate(value)


def map_family_member(m: TenantFamilyMember, tenant_id: str = "") -> FamilyMember:
    return FamilyMember(
        id=m.id,
        tenant_id=m.tenant_id or tenant_id,
        name=m.full_name or "Unknown",
        relation=m.relationship or "other",
        mobile_number=m.phone or "",
        date_of_birth=_iso(m.date_of_birth),
        occupation=m.occupation or "Not specified",
        is_emergency_contact=bool(m.is_primary),
        created_at=_iso(m.created_at),
        updated_at=_iso(m.updated_at),
    )


def map_document(doc: TenantDocumentRow, tenant_id: str = "") -> TenantDocument:
    uploaded = _iso(doc.uploaded_at) or _now_iso()
    return TenantDocument(
        id=doc.id,
        tenant_id=doc.tenant_id or tenant_id,
        document_type=doc.document_type or "other",
        document_number="N/A",
        document_name=doc.document_type or "Document",
        file_url=doc.document_url or "",
        file_size=0,
        file_type="pdf",
        upload_date=uploaded,
        is_verified=False,
        created_at=uploaded,
        updated_at=uploaded,
    )


def map_meter_reading(r: ElectricityMeterReading) -> MeterReading:
    return MeterReading(
        id=r.id,
        tenant_id=r.tenant_id,
        unit_id=r.unit_id,
        reading_month=_iso(r.reading_month),
        previous_reading=_num(r.previous_reading),
        current_reading=_num(r.current_reading),
        units_used=_num(r.units_used),
        unit_rate=_num(r.unit_rate),
        total_amount=_num(r.total_amount),
        reading_date=_iso(r.reading_date) or _now_iso(),
        is_final=bool(r.is_final),
        created_at=_iso(r.created_at),
        updated_at=_iso(r.updated_at),
    )


def map_bill(inv: Invoice) -> Bill:
    amount = _num(inv.amount)
    total_paid = sum(_num(p.amount) for p in inv.payments)
    return Bill(
        id=inv.id,
        tenant_id=inv.tenant_id,
        invoice_number=inv.invoice_number,
        bill_type=inv.bill_type or "Rent",
        amount=amount,
        issue_date=_iso(inv.issue_date),
        due_date=_iso(inv.due_date),
        status=inv.status,
        total_paid=total_paid,
        # Not floored: overpayment gives a negative balance
        remaining_balance=amount - total_paid,
        created_at=_iso(inv.created_at),
        updated_at=_iso(inv.updated_at),
    )


def map_tenant(t: Tenant) -> TenantProfile:
    return TenantProfile(
        id=t.id,
        name=t.name,
        email=t.email or "",
        phone=t.phone or "",
        address=t.address or PLACEHOLDER_ADDRESS,
        emergency_contact_name=t.emergency_contact_name or PLACEHOLDER_EMERGENCY_NAME,
        emergency_contact_relation=t.emergency_contact_relation or PLACEHOLDER_EMERGENCY_RELATION,
        emergency_contact_mobile=t.emergency_contact_mobile or PLACEHOLDER_EMERGENCY_MOBILE,
        lease_start=_iso(t.lease_start) or "",
        lease_end=_iso(t.lease_end) or "",
        rent_amount=_num(t.rent_amount),
        security_deposit=_num(t.security_deposit),
        status=t.status,
        property_id=t.property_id or "",
        unit_id=t.unit_id or "",
        organization_id=t.organization_id,
        created_at=_iso(t.created_at),
        updated_at=_iso(t.updated_at),
    )


def build_room_info(db: Session, t: Tenant) -> RoomInfo:
    unit = db.get(Unit, t.unit_id) if t.unit_id else None
    prop = db.get(Property, t.property_id) if t.property_id else None
    if prop is None and unit is not None:
        prop = unit.property
    rent = _num(t.rent_amount) or PLACEHOLDER_ROOM["rent"]
    return RoomInfo(
        unit=unit.unit_number if unit else PLACEHOLDER_ROOM["unit"],
        property=prop.name if prop else PLACEHOLDER_ROOM["property"],
        property_address=(prop.address if prop and prop.address else PLACEHOLDER_ROOM["property_address"]),
        floor=(unit.floor if unit and unit.floor else PLACEHOLDER_ROOM["floor"]),
        rent=rent,
        join_date=_iso(t.lease_start) or PLACEHOLDER_ROOM["join_date"],
        end_date=_iso(t.lease_end) or PLACEHOLDER_ROOM["end_date"],
        security_deposit=_num(t.security_deposit) or PLACEHOLDER_ROOM["security_deposit"],
        monthly_rent=rent,
    )


def get_tenant_row(db: Session, tenant_id: str) -> Tenant:
    tenant = db.get(Tenant, tenant_id)
    if tenant is None:
        raise NotFound("Tenant not found")
    return tenant


class SchemaAdapter:
    """Domain operations for one physical schema version."""

    mode: SchemaMode
    placeholder = False

    def get_family_members(self, db: Session, tenant_id: str) -> List[FamilyMember]:
        raise NotImplementedError

    def add_family_member(self, db: Session, tenant_id: str, data: FamilyMemberInput) -> FamilyMember:
        raise NotImplementedError

    def update_family_member(self, db: Session, member_id: str, data: FamilyMemberPatch) -> FamilyMember:
        raise NotImplementedError

    def delete_family_member(self, db: Session, member_id: str) -> None:
        raise NotImplementedError

    def get_documents(self, db: Session, tenant_id: str) -> List[TenantDocument]:
        raise NotImplementedError

    def add_document(self, db: Session, tenant_id: str, data: DocumentInput) -> TenantDocument:
        raise NotImplementedError

    def get_meter_readings(self, db: Session, tenant_id: str) -> List[MeterReading]:
        raise NotImplementedError

    def add_meter_reading(self, db: Session, tenant_id: str, data: MeterReadingInput) -> MeterReading:
        raise NotImplementedError

    # Bills and tenant rows live in tables both schemas share

    def get_bills(self, db: Session, tenant_id: str) -> List[Bill]:
        invoices = db.execute(
            select(Invoice)
            .options(selectinload(Invoice.payments))
            .where(Invoice.tenant_id == tenant_id)
            .order_by(Invoice.issue_date.desc())
        ).scalars().all()
        return [map_bill(inv) for inv in invoices]

    def add_bill(self, db: Session, tenant_id: str, data: BillInput) -> Bill:
        tenant = get_tenant_row(db, tenant_id)
        invoice = Invoice(
            tenant_id=tenant_id,
            organization_id=tenant.organization_id,
            invoice_number=data.invoice_number,
            bill_type=data.bill_type,
            amount=data.amount,
            issue_date=_parse_date(data.issue_date, required=True),
            due_date=_parse_date(data.due_date, required=True),
            status=data.status,
        )
        db.add(invoice)
        db.commit()
        db.refresh(invoice)
        bill = map_bill(invoice)
        return bill.model_copy(update={"total_paid": 0.0, "remaining_balance": _num(invoice.amount)})

    def get_tenant(self, db: Session, tenant_id: str) -> Tenant:
        return get_tenant_row(db, tenant_id)

    def update_room_info(self, db: Session, tenant_id: str, room_data: Dict[str, Any]) -> TenantProfile:
        tenant = get_tenant_row(db, tenant_id)
        for key, value in room_data.items():
            if key not in UPDATABLE_TENANT_FIELDS:
                continue
            if key in ("lease_start", "lease_end"):
                value = _parse_date(value)
            setattr(tenant, key, value)
        db.commit()
        db.refresh(tenant)
        return map_tenant(tenant)


class EnhancedAdapter(SchemaAdapter):
    mode = SchemaMode.ENHANCED

    def get_family_members(self, db, tenant_id):
        rows = db.execute(
            select(TenantFamilyMember)
            .where(TenantFamilyMember.tenant_id == tenant_id)
            .order_by(TenantFamilyMember.created_at.desc())
        ).scalars().all()
        return [map_family_member(m, tenant_id) for m in rows]

    def add_family_member(self, db, tenant_id, data):
        member = TenantFamilyMember(
            tenant_id=tenant_id,
            full_name=data.name,
            relationship=data.relation,
            phone=data.mobile_number,
            date_of_birth=_parse_date(data.date_of_birth),
            occupation=data.occupation,
            is_primary=data.is_emergency_contact,
        )
        db.add(member)
        db.commit()
        db.refresh(member)
        return map_family_member(member, tenant_id)

    def update_family_member(self, db, member_id, data):
        member = db.get(TenantFamilyMember, member_id)
        if member is None:
            raise NotFound("Family member not found")
        if data.name:
            member.full_name = data.name
        if data.relation:
            member.relationship = data.relation
        if data.mobile_number:
            member.phone = data.mobile_number
        if data.is_emergency_contact is not None:
            member.is_primary = data.is_emergency_contact
        db.commit()
        db.refresh(member)
        return map_family_member(member)

    def delete_family_member(self, db, member_id):
        member = db.get(TenantFamilyMember, member_id)
        if member is not None:
            db.delete(member)
            db.commit()

    def get_documents(self, db, tenant_id):
        rows = db.execute(
            select(TenantDocumentRow)
            .where(TenantDocumentRow.tenant_id == tenant_id)
            .order_by(TenantDocumentRow.uploaded_at.desc())
        ).scalars().all()
        return [map_document(d, tenant_id) for d in rows]

    def add_document(self, db, tenant_id, data):
        doc = TenantDocumentRow(
            tenant_id=tenant_id,
            document_type=data.document_type,
            document_url=data.file_url or "",
        )
        db.add(doc)
        db.commit()
        db.refresh(doc)
        return map_document(doc, tenant_id)

    def get_meter_readings(self, db, tenant_id):
        rows = db.execute(
            select(ElectricityMeterReading)
            .where(ElectricityMeterReading.tenant_id == tenant_id)
            .order_by(ElectricityMeterReading.reading_month.desc())
            .limit(12)
        ).scalars().all()
        return [map_meter_reading(r) for r in rows]

    def add_meter_reading(self, db, tenant_id, data):
        units_used = data.current_reading - data.previous_reading
        reading = ElectricityMeterReading(
            tenant_id=tenant_id,
            unit_id=data.unit_id,
            reading_month=_parse_date(data.reading_month, required=True),
            previous_reading=data.previous_reading,
            current_reading=data.current_reading,
            units_used=units_used,
            unit_rate=data.unit_rate,
            total_amount=units_used * data.unit_rate,
            reading_date=datetime.now(timezone.utc),
            is_final=data.is_final,
        )
        db.add(reading)
        db.commit()
        db.refresh(reading)
        return map_meter_reading(reading)


class LegacyAdapter(SchemaAdapter):
    """Legacy deployments have no backing tables; reads come back empty or illustrative."""

    mode = SchemaMode.LEGACY
    placeholder = True

    def get_family_members(self, db, tenant_id):
        return []

    def add_family_member(self, db, tenant_id, data):
        now = _now_iso()
        return FamilyMember(
            id=_mock_id(),
            tenant_id=tenant_id,
            name=data.name,
            relation=data.relation,
            mobile_number=data.mobile_number or "",
            date_of_birth=data.date_of_birth,
            occupation=data.occupation,
            is_emergency_contact=data.is_emergency_contact,
            created_at=now,
            updated_at=now,
        )

    def update_family_member(self, db, member_id, data):
        raise NotSupported()

    def delete_family_member(self, db, member_id):
        return None

    def get_documents(self, db, tenant_id):
        return []

    def add_document(self, db, tenant_id, data):
        now = _now_iso()
        return TenantDocument(
            id=_mock_id(),
            tenant_id=tenant_id,
            document_type=data.document_type,
            document_number="N/A",
            document_name=data.document_type or "Document",
            file_url=data.file_url or "",
            file_size=0,
            file_type="pdf",
            upload_date=now,
            is_verified=False,
            created_at=now,
            updated_at=now,
        )

    def get_meter_readings(self, db, tenant_id):
        now = _now_iso()
        return [
            MeterReading(
                id="1",
                tenant_id=tenant_id,
                unit_id="1",
                reading_month="2024-01-01",
                previous_reading=1000,
                current_reading=1050,
                units_used=50,
                unit_rate=8.5,
                total_amount=425,
                reading_date=now,
                is_final=False,
                created_at=now,
                updated_at=now,
            )
        ]

    def add_meter_reading(self, db, tenant_id, data):
        now = _now_iso()
        units_used = data.current_reading - data.previous_reading
        return MeterReading(
            id=_mock_id(),
            tenant_id=tenant_id,
            unit_id=data.unit_id,
            reading_month=data.reading_month,
            previous_reading=data.previous_reading,
            current_reading=data.current_reading,
            units_used=units_used,
            unit_rate=data.unit_rate,
            total_amount=units_used * data.unit_rate,
            reading_date=now,
            is_final=False,
            created_at=now,
            updated_at=now,
        )


ADAPTERS = {
    SchemaMode.ENHANCED: EnhancedAdapter,
    SchemaMode.LEGACY: LegacyAdapter,
}


class TenantBackendService:
    """
    Entry point for tenant-domain reads and writes.

    Pass ``mode`` to skip the probe (tests, or a composition root that already
    knows the deployed schema). Otherwise the first call probes once and the
    result is kept for the life of the instance.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        mode: Optional[SchemaMode] = None,
        probe: Callable[[Session], SchemaMode] = probe_schema_mode,
        max_workers: int = 4,
    ):
        self.session_factory = session_factory
        self.probe = probe
        self.max_workers = max_workers
        self._adapter: Optional[SchemaAdapter] = ADAPTERS[mode]() if mode is not None else None

    @property
    def adapter(self) -> SchemaAdapter:
        if self._adapter is None:
            db = self.session_factory()
            try:
                mode = self.probe(db)
            finally:
                db.close()
            logger.info("schema_probe", mode=mode.value)
            self._adapter = ADAPTERS[mode]()
        return self._adapter

    @property
    def mode(self) -> SchemaMode:
        return self.adapter.mode

    def _run(self, failure: str, fn: Callable[[SchemaAdapter, Session], Any], placeholder_read: bool = False) -> ApiResponse:
        adapter = self.adapter
        db = self.session_factory()
        try:
            data = fn(adapter, db)
            message = PLACEHOLDER_NOTICE if placeholder_read and adapter.placeholder else None
            return ApiResponse(success=True, data=data, message=message)
        except PropdeskError as e:
            return ApiResponse(success=False, error=e.message)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("tenant_backend_failed", operation=failure, error=str(e))
            return ApiResponse(success=False, error=public_message(e, failure))
        finally:
            db.close()

    def get_family_members(self, tenant_id: str) -> ApiResponse:
        return self._run("Failed to fetch family members", lambda a, db: a.get_family_members(db, tenant_id))

    def add_family_member(self, tenant_id: str, member: FamilyMemberInput) -> ApiResponse:
        return self._run(
            "Failed to add family member",
            lambda a, db: a.add_family_member(db, tenant_id, member),
            placeholder_read=True,
        )

    def update_family_member(self, member_id: str, patch: FamilyMemberPatch) -> ApiResponse:
        return self._run("Failed to update family member", lambda a, db: a.update_family_member(db, member_id, patch))

    def delete_family_member(self, member_id: str) -> ApiResponse:
        response = self._run("Failed to delete family member", lambda a, db: a.delete_family_member(db, member_id))
        if response.success:
            response.message = "Family member deleted successfully"
        return response

    def get_documents(self, tenant_id: str) -> ApiResponse:
        return self._run("Failed to fetch documents", lambda a, db: a.get_documents(db, tenant_id))

    def add_document(self, tenant_id: str, document: DocumentInput) -> ApiResponse:
        return self._run(
            "Failed to add document",
            lambda a, db: a.add_document(db, tenant_id, document),
            placeholder_read=True,
        )

    def get_bills(self, tenant_id: str) -> ApiResponse:
        return self._run("Failed to fetch bills", lambda a, db: a.get_bills(db, tenant_id))

    def add_bill(self, tenant_id: str, bill: BillInput) -> ApiResponse:
        return self._run("Failed to add bill", lambda a, db: a.add_bill(db, tenant_id, bill))

    def get_meter_readings(self, tenant_id: str) -> ApiResponse:
        return self._run(
            "Failed to fetch meter readings",
            lambda a, db: a.get_meter_readings(db, tenant_id),
            placeholder_read=True,
        )

    def add_meter_reading(self, tenant_id: str, reading: MeterReadingInput) -> ApiResponse:
        return self._run(
            "Failed to add meter reading",
            lambda a, db: a.add_meter_reading(db, tenant_id, reading),
            placeholder_read=True,
        )

    def update_room_info(self, tenant_id: str, room_data: Dict[str, Any]) -> ApiResponse:
        return self._run("Failed to update room info", lambda a, db: a.update_room_info(db, tenant_id, room_data))

    def get_tenant_profile(self, tenant_id: str) -> ApiResponse:
        """Tenant row plus family, documents, bills and meter readings fetched in parallel.

        A failed tenant fetch fails the whole call; a failed secondary fetch
        leaves that list empty.
        """
        def load_primary(adapter: SchemaAdapter, db: Session):
            tenant = adapter.get_tenant(db, tenant_id)
            return map_tenant(tenant), build_room_info(db, tenant)

        primary = self._run("Failed to fetch tenant profile", load_primary)
        if not primary.success:
            return primary
        tenant, room_info = primary.data

        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            futures = {
                "family_members": pool.submit(self.get_family_members, tenant_id),
                "documents": pool.submit(self.get_documents, tenant_id),
                "bills": pool.submit(self.get_bills, tenant_id),
                "recent_meter_readings": pool.submit(self.get_meter_readings, tenant_id),
            }
            slices = {}
            for key, future in futures.items():
                try:
                    result = future.result()
                except Exception as e:  # noqa: BLE001
                    logger.error("tenant_profile_slice_failed", slice=key, tenant_id=tenant_id, error=str(e))
                    slices[key] = []
                    continue
                slices[key] = result.data if result.success and result.data is not None else []

        profile = CompleteTenantProfile(tenant=tenant, room_info=room_info, **slices)
        message = PLACEHOLDER_NOTICE if self.adapter.placeholder else None
        return ApiResponse(success=True, data=profile, message=message)

    def get_migration_status(self) -> ApiResponse:
        enhanced = self.mode is SchemaMode.ENHANCED
        return ApiResponse(
            success=True,
            data=MigrationStatus(
                isEnhanced=enhanced,
                message=(
                    "Enhanced schema is available with full features"
                    if enhanced
                    else "Using current schema with limited features"
                ),
            ),
        )

    def is_enhanced_schema_available(self) -> bool:
        return self.mode is SchemaMode.ENHANCED
