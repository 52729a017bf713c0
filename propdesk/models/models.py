import uuid
from datetime import datetime, date
from typing import Optional

from sqlalchemy import (
    String,
    DateTime,
    Date,
    Boolean,
    ForeignKey,
    Integer,
    Numeric,
    JSON,
    Text,
    Enum,
    UniqueConstraint,
    Index,
    func,
)
from sqlalchemy.orm import relationship, Mapped, mapped_column

from ..db import Base


APP_ROLES = ("admin", "manager", "super_admin", "tenant", "staff", "guest", "User", "user")

app_role = Enum(*APP_ROLES, name="app_role")


def _uuid_str() -> str:
    return str(uuid.uuid4())


def uuid_pk() -> Mapped[str]:
    return mapped_column(String(36), primary_key=True, default=_uuid_str)


def created_at_col() -> Mapped[datetime]:
    return mapped_column(DateTime(timezone=True), default=datetime.utcnow, server_default=func.now(), nullable=False)


def updated_at_col() -> Mapped[datetime]:
    return mapped_column(
        DateTime(timezone=True),
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        server_default=func.now(),
        nullable=False,
    )


class Organization(Base):
    __tablename__ = "organizations"

    id: Mapped[str] = uuid_pk()
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(50), default="active", nullable=False)
    plan_price: Mapped[Optional[float]] = mapped_column(Numeric(12, 2))
    plan_valid_until: Mapped[Optional[date]] = mapped_column(Date)
    created_at: Mapped[datetime] = created_at_col()
    updated_at: Mapped[datetime] = updated_at_col()


class Profile(Base):
    """One row per identity; ``id`` is the subject of the identity token."""
    __tablename__ = "profiles"

    id: Mapped[str] = uuid_pk()
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    full_name: Mapped[Optional[str]] = mapped_column(String(255))
    avatar_url: Mapped[Optional[str]] = mapped_column(Text)
    organization_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("organizations.id", ondelete="SET NULL"))
    created_at: Mapped[datetime] = created_at_col()
    updated_at: Mapped[datetime] = updated_at_col()


class UserRole(Base):
    __tablename__ = "user_roles"

    id: Mapped[str] = uuid_pk()
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    role: Mapped[str] = mapped_column(app_role, nullable=False)

    __table_args__ = (UniqueConstraint("user_id", "role", name="uq_user_role"),)


class UserPermission(Base):
    __tablename__ = "user_permissions"

    id: Mapped[str] = uuid_pk()
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    permission: Mapped[str] = mapped_column(String(100), nullable=False)
    granted: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = created_at_col()


class Property(Base):
    __tablename__ = "properties"

    id: Mapped[str] = uuid_pk()
    organization_id: Mapped[str] = mapped_column(String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    custom_id: Mapped[Optional[str]] = mapped_column(String(100))
    address: Mapped[Optional[str]] = mapped_column(Text)
    owner_name: Mapped[Optional[str]] = mapped_column(String(255))
    email: Mapped[Optional[str]] = mapped_column(String(255))
    mobile: Mapped[Optional[str]] = mapped_column(String(50))
    image_emoji: Mapped[Optional[str]] = mapped_column(String(16))
    notes: Mapped[Optional[str]] = mapped_column(Text)
    status: Mapped[str] = mapped_column(String(50), default="active", nullable=False)
    units_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    occupied_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    revenue: Mapped[Optional[float]] = mapped_column(Numeric(12, 2))
    created_at: Mapped[datetime] = created_at_col()
    updated_at: Mapped[datetime] = updated_at_col()

    units = relationship("Unit", back_populates="property", cascade="all, delete-orphan")


class Unit(Base):
    __tablename__ = "units"

    id: Mapped[str] = uuid_pk()
    property_id: Mapped[str] = mapped_column(String(36), ForeignKey("properties.id", ondelete="CASCADE"), nullable=False, index=True)
    unit_number: Mapped[str] = mapped_column(String(50), nullable=False)
    floor: Mapped[Optional[str]] = mapped_column(String(20))
    room_type: Mapped[Optional[str]] = mapped_column(String(50))
    rent: Mapped[float] = mapped_column(Numeric(12, 2), default=0, nullable=False)
    availability: Mapped[str] = mapped_column(String(50), default="available", nullable=False)
    status: Mapped[Optional[str]] = mapped_column(String(50))
    tenant_id: Mapped[Optional[str]] = mapped_column(String(36))
    created_at: Mapped[datetime] = created_at_col()
    updated_at: Mapped[datetime] = updated_at_col()

    property = relationship("Property", back_populates="units")


class Tenant(Base):
    __tablename__ = "tenants"

    id: Mapped[str] = uuid_pk()
    organization_id: Mapped[str] = mapped_column(String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255))
    phone: Mapped[Optional[str]] = mapped_column(String(50))
    address: Mapped[Optional[str]] = mapped_column(Text)
    emergency_contact_name: Mapped[Optional[str]] = mapped_column(String(255))
    emergency_contact_relation: Mapped[Optional[str]] = mapped_column(String(50))
    emergency_contact_mobile: Mapped[Optional[str]] = mapped_column(String(50))
    property_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("properties.id", ondelete="SET NULL"))
    unit_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("units.id", ondelete="SET NULL"))
    lease_start: Mapped[Optional[date]] = mapped_column(Date)
    lease_end: Mapped[Optional[date]] = mapped_column(Date)
    rent_amount: Mapped[Optional[float]] = mapped_column(Numeric(12, 2))
    security_deposit: Mapped[Optional[float]] = mapped_column(Numeric(12, 2))
    status: Mapped[str] = mapped_column(String(50), default="active", nullable=False)
    create_user_account: Mapped[Optional[bool]] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = created_at_col()
    updated_at: Mapped[datetime] = updated_at_col()

    invoices = relationship("Invoice", back_populates="tenant")


class TenantProfileRecord(Base):
    __tablename__ = "tenants_profile"

    id: Mapped[str] = uuid_pk()
    tenant_id: Mapped[str] = mapped_column(String(36), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    date_of_birth: Mapped[Optional[date]] = mapped_column(Date)
    occupation: Mapped[Optional[str]] = mapped_column(String(255))
    permanent_address: Mapped[Optional[str]] = mapped_column(Text)
    id_proof_type: Mapped[Optional[str]] = mapped_column(String(50))
    id_proof_number: Mapped[Optional[str]] = mapped_column(String(100))
    created_at: Mapped[datetime] = created_at_col()
    updated_at: Mapped[datetime] = updated_at_col()


class TenantRoom(Base):
    __tablename__ = "tenant_rooms"

    id: Mapped[str] = uuid_pk()
    tenant_id: Mapped[str] = mapped_column(String(36), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    unit_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("units.id", ondelete="SET NULL"))
    join_date: Mapped[Optional[date]] = mapped_column(Date)
    end_date: Mapped[Optional[date]] = mapped_column(Date)
    monthly_rent: Mapped[Optional[float]] = mapped_column(Numeric(12, 2))
    security_deposit: Mapped[Optional[float]] = mapped_column(Numeric(12, 2))
    is_current: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = created_at_col()
    updated_at: Mapped[datetime] = updated_at_col()


class Invoice(Base):
    __tablename__ = "invoices"

    id: Mapped[str] = uuid_pk()
    organization_id: Mapped[str] = mapped_column(String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    tenant_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("tenants.id", ondelete="SET NULL"), index=True)
    unit_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("units.id", ondelete="SET NULL"))
    invoice_number: Mapped[str] = mapped_column(String(100), nullable=False)
    bill_type: Mapped[Optional[str]] = mapped_column(String(50), default="Rent")
    amount: Mapped[float] = mapped_column(Numeric(12, 2), nullable=False)
    issue_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(50), default="pending", nullable=False)
    payment_date: Mapped[Optional[date]] = mapped_column(Date)
    payment_method: Mapped[Optional[str]] = mapped_column(String(50))
    created_at: Mapped[datetime] = created_at_col()
    updated_at: Mapped[datetime] = updated_at_col()

    tenant = relationship("Tenant", back_populates="invoices")
    payments = relationship("Payment", back_populates="invoice")


class Payment(Base):
    __tablename__ = "payments"

    id: Mapped[str] = uuid_pk()
    organization_id: Mapped[str] = mapped_column(String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    invoice_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("invoices.id", ondelete="SET NULL"), index=True)
    amount: Mapped[float] = mapped_column(Numeric(12, 2), nullable=False)
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    payment_method: Mapped[Optional[str]] = mapped_column(String(50))
    status: Mapped[str] = mapped_column(String(50), default="completed", nullable=False)
    created_at: Mapped[datetime] = created_at_col()
    updated_at: Mapped[datetime] = updated_at_col()

    invoice = relationship("Invoice", back_populates="payments")


class TenantBill(Base):
    __tablename__ = "tenant_bills"

    id: Mapped[str] = uuid_pk()
    tenant_id: Mapped[str] = mapped_column(String(36), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    bill_type: Mapped[str] = mapped_column(String(50), default="Rent", nullable=False)
    amount: Mapped[float] = mapped_column(Numeric(12, 2), nullable=False)
    due_date: Mapped[Optional[date]] = mapped_column(Date)
    status: Mapped[str] = mapped_column(String(50), default="pending", nullable=False)
    created_at: Mapped[datetime] = created_at_col()
    updated_at: Mapped[datetime] = updated_at_col()


class TenantPaymentRecord(Base):
    __tablename__ = "tenant_payment_records"

    id: Mapped[str] = uuid_pk()
    tenant_id: Mapped[str] = mapped_column(String(36), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    bill_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("tenant_bills.id", ondelete="SET NULL"))
    amount: Mapped[float] = mapped_column(Numeric(12, 2), nullable=False)
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    payment_method: Mapped[Optional[str]] = mapped_column(String(50))
    reference: Mapped[Optional[str]] = mapped_column(String(100))
    created_at: Mapped[datetime] = created_at_col()


class MaintenanceTicket(Base):
    __tablename__ = "maintenance_tickets"

    id: Mapped[str] = uuid_pk()
    organization_id: Mapped[str] = mapped_column(String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    property_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("properties.id", ondelete="SET NULL"))
    unit_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("units.id", ondelete="SET NULL"))
    assignee_id: Mapped[Optional[str]] = mapped_column(String(36))
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    priority: Mapped[str] = mapped_column(String(20), default="medium", nullable=False)
    status: Mapped[str] = mapped_column(String(50), default="open", nullable=False)
    created_at: Mapped[datetime] = created_at_col()
    updated_at: Mapped[datetime] = updated_at_col()


class TicketComment(Base):
    __tablename__ = "ticket_comments"

    id: Mapped[str] = uuid_pk()
    ticket_id: Mapped[str] = mapped_column(String(36), ForeignKey("maintenance_tickets.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id: Mapped[Optional[str]] = mapped_column(String(36))
    comment: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = created_at_col()


class Expense(Base):
    __tablename__ = "expenses"

    id: Mapped[str] = uuid_pk()
    organization_id: Mapped[str] = mapped_column(String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    property_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("properties.id", ondelete="SET NULL"))
    description: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[Optional[str]] = mapped_column(String(100))
    amount: Mapped[float] = mapped_column(Numeric(12, 2), nullable=False)
    expense_date: Mapped[date] = mapped_column(Date, nullable=False)
    created_at: Mapped[datetime] = created_at_col()
    updated_at: Mapped[datetime] = updated_at_col()


class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[str] = uuid_pk()
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(String(50), default="info", nullable=False)
    link: Mapped[Optional[str]] = mapped_column(String(500))
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = created_at_col()


class ActivityLog(Base):
    """Append-only audit trail of administrative mutations"""
    __tablename__ = "activity_log"

    id: Mapped[str] = uuid_pk()
    user_id: Mapped[Optional[str]] = mapped_column(String(36), index=True)
    organization_id: Mapped[str] = mapped_column(String(36), nullable=False)
    action: Mapped[str] = mapped_column(String(50), nullable=False)  # ROW_INSERTED|ROW_UPDATED|ROW_DELETED|COLUMN_ADDED|...
    entity_type: Mapped[Optional[str]] = mapped_column(String(100))
    entity_id: Mapped[Optional[str]] = mapped_column(String(100))
    details: Mapped[Optional[dict]] = mapped_column(JSON)
    created_at: Mapped[datetime] = created_at_col()

    __table_args__ = (
        Index("idx_activity_entity", "entity_type", "created_at"),
    )


# Present in every deployment, read by the tenant backend only in enhanced mode
class TenantDocument(Base):
    __tablename__ = "tenant_documents"

    id: Mapped[str] = uuid_pk()
    tenant_id: Mapped[str] = mapped_column(String(36), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    document_type: Mapped[Optional[str]] = mapped_column(String(50))
    document_url: Mapped[str] = mapped_column(Text, nullable=False)
    uploaded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, server_default=func.now(), nullable=False)


# Enhanced schema: the tables below do not exist in legacy deployments
class TenantFamilyMember(Base):
    __tablename__ = "tenant_family_members"

    id: Mapped[str] = uuid_pk()
    tenant_id: Mapped[str] = mapped_column(String(36), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    relationship: Mapped[str] = mapped_column(String(50), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(50))
    age: Mapped[Optional[int]] = mapped_column(Integer)
    gender: Mapped[Optional[str]] = mapped_column(String(20))
    date_of_birth: Mapped[Optional[date]] = mapped_column(Date)
    occupation: Mapped[Optional[str]] = mapped_column(String(255))
    id_proof_type: Mapped[Optional[str]] = mapped_column(String(50))
    id_proof_url: Mapped[Optional[str]] = mapped_column(Text)
    photo_url: Mapped[Optional[str]] = mapped_column(Text)
    is_primary: Mapped[Optional[bool]] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = created_at_col()
    updated_at: Mapped[datetime] = updated_at_col()


class ElectricityMeterReading(Base):
    __tablename__ = "electricity_meter_readings"

    id: Mapped[str] = uuid_pk()
    tenant_id: Mapped[str] = mapped_column(String(36), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    unit_id: Mapped[Optional[str]] = mapped_column(String(36))
    reading_month: Mapped[date] = mapped_column(Date, nullable=False)
    previous_reading: Mapped[float] = mapped_column(Numeric(12, 2), nullable=False)
    current_reading: Mapped[float] = mapped_column(Numeric(12, 2), nullable=False)
    units_used: Mapped[float] = mapped_column(Numeric(12, 2), nullable=False)
    unit_rate: Mapped[float] = mapped_column(Numeric(10, 4), nullable=False)
    total_amount: Mapped[float] = mapped_column(Numeric(12, 2), nullable=False)
    reading_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    is_final: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = created_at_col()
    updated_at: Mapped[datetime] = updated_at_col()


ENHANCED_ONLY_TABLES = (TenantFamilyMember.__tablename__, ElectricityMeterReading.__tablename__)
