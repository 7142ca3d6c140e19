"""SQLAlchemy ORM models."""

from __future__ import annotations

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    func,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSON
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


class ProvisioningRequestORM(Base):
    __tablename__ = "provisioning_requests"

    id = Column(String(36), primary_key=True)
    employee_id = Column(String(100), nullable=False, index=True)
    event_type = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False, index=True)
    event_data = Column(JSON, nullable=False)
    # Ordered ledger; list position is step order.
    steps_data = Column(JSON, nullable=False, default=list)
    failed_step = Column(String(255), nullable=True)
    error_message = Column(Text, nullable=True, default="")
    warnings = Column(JSON, nullable=False, default=list)
    cancel_requested = Column(Boolean, nullable=False, default=False)
    identity_id = Column(String(100), nullable=True)
    correlation_id = Column(String(100), nullable=False)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    completed_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_provisioning_requests_employee_created", "employee_id", "created_at"),
        Index("ix_provisioning_requests_status_created", "status", "created_at"),
    )


class AuditLogORM(Base):
    __tablename__ = "provisioning_audit_log"

    id = Column(String(36), primary_key=True)
    request_id = Column(String(36), nullable=False, index=True)
    sequence = Column(Integer, nullable=False)
    action = Column(String(50), nullable=False)
    outcome = Column(String(20), nullable=False)
    scope = Column(String(10), nullable=False, default="step")
    target = Column(String(255), nullable=True, default="")
    error_detail = Column(Text, nullable=True, default="")
    actor = Column(String(255), nullable=False)
    details = Column(JSON, nullable=False, default=dict)
    timestamp = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("request_id", "sequence", name="uq_audit_request_sequence"),
    )


class NotificationORM(Base):
    __tablename__ = "notification_queue"

    id = Column(String(36), primary_key=True)
    recipients = Column(JSON, nullable=False)
    subject = Column(String(500), nullable=False)
    body = Column(Text, nullable=False)
    priority = Column(String(20), nullable=False)
    correlation_id = Column(String(100), nullable=True, index=True)
    status = Column(String(20), nullable=False, default="Queued", index=True)
    queued_at = Column(DateTime(timezone=True), server_default=func.now())


class UserORM(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True)
    username = Column(String(100), nullable=False, unique=True)
    email = Column(String(255), nullable=False, unique=True)
    hashed_password = Column(String(255), nullable=False)
    role = Column(String(50), nullable=False, default="auditor")
    tenant_id = Column(String(100), nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
