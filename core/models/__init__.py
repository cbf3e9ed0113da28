from __future__ import annotations

import datetime as dt
import uuid
from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, Date, DateTime, Float, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


def utc_now() -> dt.datetime:
    return dt.datetime.now(dt.UTC)


def new_id() -> str:
    return str(uuid.uuid4())


ROLES = ("super_admin", "region_manager", "tenant_admin", "staff")
ACTIVATION_STATUSES = ("O", "△", "X")
INFLOW_TYPES = ("로드", "컨택", "전화", "온라인", "지인")


class StoreGroup(Base):
    __tablename__ = "store_groups"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utc_now)

    shops: Mapped[list["Shop"]] = relationship(back_populates="store_group")


class Shop(Base):
    __tablename__ = "shops"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    store_group_id: Mapped[Optional[str]] = mapped_column(ForeignKey("store_groups.id"), index=True)
    subscription_status: Mapped[str] = mapped_column(String(40), default="active")
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utc_now)

    store_group: Mapped[Optional[StoreGroup]] = relationship(back_populates="shops")


class Profile(Base):
    __tablename__ = "profiles"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(120), nullable=False, default="")
    login_id: Mapped[str] = mapped_column(String(120), nullable=False, unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[Optional[str]] = mapped_column(String(40))
    shop_id: Mapped[Optional[str]] = mapped_column(ForeignKey("shops.id"), index=True)
    managed_store_group_id: Mapped[Optional[str]] = mapped_column(ForeignKey("store_groups.id"), index=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utc_now)


class Consultation(Base):
    __tablename__ = "crm_consultations"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    shop_id: Mapped[str] = mapped_column(ForeignKey("shops.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(40))
    product_name: Mapped[Optional[str]] = mapped_column(String(200))
    memo: Mapped[Optional[str]] = mapped_column(Text)
    consultation_date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    sales_person: Mapped[Optional[str]] = mapped_column(String(120))
    activation_status: Mapped[str] = mapped_column(String(4), nullable=False, default="X")
    inflow_type: Mapped[Optional[str]] = mapped_column(String(20))
    report_id: Mapped[Optional[str]] = mapped_column(String(36))
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    __table_args__ = (
        Index("ix_consultation_shop_date", "shop_id", "consultation_date"),
    )


class ReportEntry(Base):
    __tablename__ = "reports"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    shop_id: Mapped[str] = mapped_column(ForeignKey("shops.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(120), default="")
    phone: Mapped[str] = mapped_column(String(40), default="")
    birth_date: Mapped[str] = mapped_column(String(40), default="")
    address: Mapped[str] = mapped_column(String(255), default="")
    path: Mapped[str] = mapped_column(String(120), default="")
    existing_carrier: Mapped[str] = mapped_column(String(60), default="")
    sale_date: Mapped[str] = mapped_column(String(40), default="", index=True)
    product_name: Mapped[str] = mapped_column(String(200), default="")
    amount: Mapped[float] = mapped_column(Float, default=0)
    margin: Mapped[float] = mapped_column(Float, default=0)
    sales_person: Mapped[Optional[str]] = mapped_column(String(120))
    plan_name: Mapped[Optional[str]] = mapped_column(String(200))
    support_amount: Mapped[Optional[float]] = mapped_column(Float)
    factory_price: Mapped[Optional[float]] = mapped_column(Float)
    official_subsidy: Mapped[Optional[float]] = mapped_column(Float)
    installment_principal: Mapped[Optional[float]] = mapped_column(Float)
    installment_months: Mapped[Optional[float]] = mapped_column(Float)
    face_amount: Mapped[Optional[float]] = mapped_column(Float)
    verbal_a: Mapped[Optional[float]] = mapped_column(Float)
    verbal_b: Mapped[Optional[float]] = mapped_column(Float)
    verbal_c: Mapped[Optional[float]] = mapped_column(Float)
    verbal_d: Mapped[Optional[float]] = mapped_column(Float)
    verbal_e: Mapped[Optional[float]] = mapped_column(Float)
    verbal_f: Mapped[Optional[float]] = mapped_column(Float)
    inspection_store: Mapped[Optional[str]] = mapped_column(String(120))
    inspection_office: Mapped[Optional[str]] = mapped_column(String(120))
    welfare: Mapped[Optional[str]] = mapped_column(String(120))
    insurance: Mapped[Optional[str]] = mapped_column(String(120))
    card: Mapped[Optional[str]] = mapped_column(String(120))
    combined: Mapped[Optional[str]] = mapped_column(String(120))
    line_type: Mapped[Optional[str]] = mapped_column(String(60))
    sale_type: Mapped[Optional[str]] = mapped_column(String(60))
    serial_number: Mapped[Optional[str]] = mapped_column(String(120))
    activation_time: Mapped[Optional[str]] = mapped_column(String(60))
    uploaded_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utc_now)

    __table_args__ = (
        Index("ix_report_shop_sale_date", "shop_id", "sale_date"),
    )


class ReportUpload(Base):
    __tablename__ = "report_uploads"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    shop_id: Mapped[str] = mapped_column(ForeignKey("shops.id"), nullable=False)
    file_hash: Mapped[str] = mapped_column(String(128), nullable=False)
    uploaded_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utc_now)

    __table_args__ = (
        UniqueConstraint("shop_id", "file_hash", name="uq_report_upload_hash"),
    )


class CrmCustomer(Base):
    __tablename__ = "crm_customers"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    shop_id: Mapped[str] = mapped_column(ForeignKey("shops.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(120), default="")
    phone: Mapped[Optional[str]] = mapped_column(String(40))
    first_seen_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    last_seen_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    __table_args__ = (
        UniqueConstraint("shop_id", "phone", name="uq_crm_customer_phone"),
    )


class ShopSetting(Base):
    __tablename__ = "shop_settings"
    shop_id: Mapped[str] = mapped_column(ForeignKey("shops.id"), primary_key=True)
    margin_rate_pct: Mapped[float] = mapped_column(Float, default=0)
    sales_target_monthly: Mapped[float] = mapped_column(Float, default=0)
    per_sale_incentive: Mapped[float] = mapped_column(Float, default=30000)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)


class DevicePolicy(Base):
    __tablename__ = "device_policies"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    shop_id: Mapped[str] = mapped_column(ForeignKey("shops.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    capacity: Mapped[str] = mapped_column(String(40), default="")
    colors_json: Mapped[str] = mapped_column(Text, default="[]")
    factory_price: Mapped[float] = mapped_column(Float, default=0)
    default_subsidy: Mapped[float] = mapped_column(Float, default=0)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)


class PlanPolicy(Base):
    __tablename__ = "plan_policies"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    shop_id: Mapped[str] = mapped_column(ForeignKey("shops.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    monthly_fee: Mapped[float] = mapped_column(Float, default=0)
    rebate: Mapped[float] = mapped_column(Float, default=0)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)


class AddOnPolicy(Base):
    __tablename__ = "add_on_policies"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    shop_id: Mapped[str] = mapped_column(ForeignKey("shops.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    # 0 marks a free promotion
    price: Mapped[float] = mapped_column(Float, default=0)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)


class SalarySnapshot(Base):
    __tablename__ = "salary_snapshots"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    shop_id: Mapped[str] = mapped_column(ForeignKey("shops.id"), nullable=False, index=True)
    sales_person: Mapped[str] = mapped_column(String(120), nullable=False)
    period_start: Mapped[dt.date] = mapped_column(Date, nullable=False)
    period_end: Mapped[dt.date] = mapped_column(Date, nullable=False)
    sale_count: Mapped[int] = mapped_column(Integer, default=0)
    total_margin: Mapped[float] = mapped_column(Float, default=0)
    total_support: Mapped[float] = mapped_column(Float, default=0)
    calculated_salary: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utc_now)


class Invite(Base):
    __tablename__ = "invites"
    code: Mapped[str] = mapped_column(String(12), primary_key=True)
    shop_id: Mapped[str] = mapped_column(ForeignKey("shops.id"), nullable=False, index=True)
    role: Mapped[str] = mapped_column(String(40), default="staff")
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    expires_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    used_at: Mapped[Optional[dt.datetime]] = mapped_column(DateTime(timezone=True))


class PasswordResetToken(Base):
    __tablename__ = "password_reset_tokens"
    token: Mapped[str] = mapped_column(String(128), primary_key=True)
    profile_id: Mapped[str] = mapped_column(ForeignKey("profiles.id"), nullable=False, index=True)
    expires_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class Notice(Base):
    __tablename__ = "notices"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    body: Mapped[str] = mapped_column(Text, default="")
    type: Mapped[str] = mapped_column(String(20), default="notice")
    pinned: Mapped[bool] = mapped_column(Boolean, default=False)
    author_id: Mapped[Optional[str]] = mapped_column(ForeignKey("profiles.id"))
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    comments: Mapped[list["NoticeComment"]] = relationship(back_populates="notice", cascade="all, delete-orphan")


class NoticeComment(Base):
    __tablename__ = "notice_comments"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    notice_id: Mapped[str] = mapped_column(ForeignKey("notices.id"), nullable=False, index=True)
    author_id: Mapped[Optional[str]] = mapped_column(ForeignKey("profiles.id"))
    parent_id: Mapped[Optional[str]] = mapped_column(String(36))
    body: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utc_now)

    notice: Mapped[Notice] = relationship(back_populates="comments")


class CalendarTodo(Base):
    __tablename__ = "calendar_todos"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    profile_id: Mapped[str] = mapped_column(ForeignKey("profiles.id"), nullable=False, index=True)
    todo_date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    highlight: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    __table_args__ = (
        CheckConstraint("highlight BETWEEN 0 AND 3", name="ck_todo_highlight_range"),
    )


class CalendarLeave(Base):
    __tablename__ = "calendar_leave"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    profile_id: Mapped[str] = mapped_column(ForeignKey("profiles.id"), nullable=False, index=True)
    leave_date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    label: Mapped[str] = mapped_column(String(60), default="휴가")

    __table_args__ = (
        UniqueConstraint("profile_id", "leave_date", name="uq_leave_profile_date"),
    )


class AuditEvent(Base):
    __tablename__ = "audit_events"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ts: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utc_now, index=True)
    actor: Mapped[str] = mapped_column(String(120), default="")
    action: Mapped[str] = mapped_column(String(80), nullable=False)
    resource: Mapped[str] = mapped_column(String(255), default="")
    shop_id: Mapped[Optional[str]] = mapped_column(String(36), index=True)
    ip: Mapped[str] = mapped_column(String(64), default="")
    ua: Mapped[str] = mapped_column(String(255), default="")
    result: Mapped[str] = mapped_column(String(40), default="ok")
    meta_json: Mapped[str] = mapped_column(Text, default="{}")


class IdempotencyRecord(Base):
    __tablename__ = "idempotency_records"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    key: Mapped[str] = mapped_column(String(200), nullable=False)
    method: Mapped[str] = mapped_column(String(10), nullable=False)
    path: Mapped[str] = mapped_column(String(255), nullable=False)
    body_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    shop_id: Mapped[Optional[str]] = mapped_column(String(36), index=True)
    status_code: Mapped[int] = mapped_column(Integer, default=200)
    response_json: Mapped[str] = mapped_column(Text, default="{}")
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utc_now)

    __table_args__ = (
        UniqueConstraint("key", "method", "path", name="uq_idempotency_key"),
    )
