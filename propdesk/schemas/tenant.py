from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    success: bool
    data: Optional[T] = None
    error: Optional[str] = None
    message: Optional[str] = None


class TenantProfile(BaseModel):
    id: str
    name: str
    email: Optional[str] = ""
    phone: Optional[str] = ""
    address: Optional[str] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_relation: Optional[str] = None
    emergency_contact_mobile: Optional[str] = None
    lease_start: Optional[str] = ""
    lease_end: Optional[str] = ""
    rent_amount: float = 0
    security_deposit: float = 0
    status: str
    property_id: Optional[str] = ""
    unit_id: Optional[str] = ""
    organization_id: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class FamilyMember(BaseModel):
    id: str
    tenant_id: str
    name: str
    relation: str  # spouse|child|parent|sibling|other
    mobile_number: Optional[str] = ""
    date_of_birth: Optional[str] = None
    occupation: Optional[str] = None
    is_emergency_contact: bool = False
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class FamilyMemberInput(BaseModel):
    name: str
    relation: str = "other"
    mobile_number: Optional[str] = None
    date_of_birth: Optional[str] = None
    occupation: Optional[str] = None
    is_emergency_contact: bool = False


class FamilyMemberPatch(BaseModel):
    name: Optional[str] = None
    relation: Optional[str] = None
    mobile_number: Optional[str] = None
    is_emergency_contact: Optional[bool] = None


class TenantDocument(BaseModel):
    id: str
    tenant_id: str
    document_type: str  # aadhar|pan|agreement|passport|driving_license|other
    document_number: Optional[str] = None
    document_name: str
    file_url: Optional[str] = ""
    file_size: int = 0
    file_type: Optional[str] = None
    upload_date: str
    expiry_date: Optional[str] = None
    is_verified: bool = False
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class DocumentInput(BaseModel):
    document_type: str = "other"
    document_name: Optional[str] = None
    document_number: Optional[str] = None
    file_url: Optional[str] = None
    expiry_date: Optional[str] = None


class MeterReading(BaseModel):
    id: str
    tenant_id: str
    unit_id: Optional[str] = None
    reading_month: str
    previous_reading: float
    current_reading: float
    units_used: float
    unit_rate: float
    total_amount: float
    reading_date: str
    is_final: bool = False
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class MeterReadingInput(BaseModel):
    unit_id: Optional[str] = None
    reading_month: str
    previous_reading: float
    current_reading: float
    unit_rate: float
    is_final: bool = False


class Bill(BaseModel):
    id: str
    tenant_id: Optional[str] = None
    invoice_number: str
    bill_type: str = "Rent"  # Rent|Electricity|Water|Maintenance|Other
    amount: float
    issue_date: Optional[str] = None
    due_date: Optional[str] = None
    status: str  # pending|paid|overdue|cancelled
    total_paid: float
    remaining_balance: float
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class BillInput(BaseModel):
    invoice_number: str
    bill_type: str = "Rent"
    amount: float
    issue_date: str
    due_date: str
    status: str = "pending"


class RoomInfo(BaseModel):
    unit: str
    property: str
    property_address: str
    floor: str
    rent: float
    join_date: str
    end_date: str
    security_deposit: float
    monthly_rent: float


class CompleteTenantProfile(BaseModel):
    tenant: TenantProfile
    family_members: List[FamilyMember] = []
    documents: List[TenantDocument] = []
    room_info: RoomInfo
    recent_meter_readings: List[MeterReading] = []
    bills: List[Bill] = []


class MigrationStatus(BaseModel):
    isEnhanced: bool
    message: str
