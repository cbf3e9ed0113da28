from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class HealthResponse(BaseModel):
    ok: bool
    status: Optional[str] = None
    error: Optional[str] = None


class SimpleOkResponse(BaseModel):
    ok: bool = True


class ErrorResponse(BaseModel):
    ok: bool = False
    error: str
    code: Optional[str] = None


class MetaResponse(BaseModel):
    app_version: str
    git_sha: str = ""
    build_ts: str = ""


# --- auth -------------------------------------------------------------------


class LoginRequest(BaseModel):
    login_id: str = ""
    password: str = ""


class AuthContextResponse(BaseModel):
    id: str
    role: str
    shop_id: Optional[str] = None
    store_group_id: Optional[str] = None
    name: str = ""


class SignupRequest(BaseModel):
    login_id: Optional[str] = None
    password: Optional[str] = None
    name: Optional[str] = None
    role: Optional[str] = None
    shop_code: Optional[str] = None
    shop_name: Optional[str] = None
    super_admin_signup_password: Optional[str] = None
    managed_store_group_id: Optional[str] = None
    region_manager_signup_password: Optional[str] = None
    store_group_name: Optional[str] = None


class PasswordChangeRequest(BaseModel):
    current_password: Optional[str] = None
    new_password: Optional[str] = None


class ForgotPasswordRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    login_id: Optional[str] = Field(None, alias="loginId")


class ForgotPasswordResponse(BaseModel):
    ok: bool = True
    message: str


class ResetLinkRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    login_id: Optional[str] = Field(None, alias="loginId")


class ResetLinkResponse(BaseModel):
    login_id: str
    reset_link: str
    expires_in_hours: int = 1


class ResetPasswordRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    token: Optional[str] = None
    new_password: Optional[str] = Field(None, alias="newPassword")


# --- crm --------------------------------------------------------------------


class ConsultationCreate(BaseModel):
    shop_id: Optional[str] = None
    name: Optional[str] = None
    phone: Optional[str] = None
    product_name: Optional[str] = None
    memo: Optional[str] = None
    consultation_date: Optional[str] = None
    sales_person: Optional[str] = None
    activation_status: Optional[str] = None
    inflow_type: Optional[str] = None


class ConsultationUpdate(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    product_name: Optional[str] = None
    memo: Optional[str] = None
    consultation_date: Optional[str] = None
    sales_person: Optional[str] = None
    activation_status: Optional[str] = None
    inflow_type: Optional[str] = None


class MoveToReportResponse(BaseModel):
    report_id: str
    message: str = "Moved to report"


# --- reports ----------------------------------------------------------------


class ReportsCreateRequest(BaseModel):
    reports: list[dict[str, Any]] = Field(default_factory=list)


class DuplicateCheckRequest(BaseModel):
    file_hash: Optional[str] = None
    shop_id: Optional[str] = None


class DuplicateCheckResponse(BaseModel):
    duplicate: bool = False


class UploadResponse(BaseModel):
    inserted: int
    errors: list[str] = Field(default_factory=list)
    file_hash: str


class SheetImportRequest(BaseModel):
    shop_id: Optional[str] = None
    url: str = ""


class SheetImportResponse(BaseModel):
    meta: dict[str, Any]
    entries: list[dict[str, Any]]
    errors: list[str]


# --- settings & salaries ----------------------------------------------------


class ShopSettingsUpdate(BaseModel):
    shop_id: Optional[str] = None
    margin_rate_pct: Any = None
    sales_target_monthly: Any = None
    per_sale_incentive: Any = None


class ShopSettingsResponse(BaseModel):
    shop_id: str
    margin_rate_pct: float
    sales_target_monthly: float
    per_sale_incentive: float
    updated_at: Optional[str] = None


class SalaryRowIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True, allow_inf_nan=False)

    sales_person: str = Field("", alias="salesPerson")
    count: float = 0
    total_margin: float = Field(0, alias="totalMargin")
    total_support: float = Field(0, alias="totalSupport")
    calculated_salary: float = Field(0, alias="calculatedSalary")


class SalarySaveRequest(BaseModel):
    shop_id: Optional[str] = None
    period_start: Optional[str] = None
    period_end: Optional[str] = None
    rows: list[SalaryRowIn] = Field(default_factory=list)


# --- shops, invites ---------------------------------------------------------


class ShopCreateRequest(BaseModel):
    name: Optional[str] = None
    store_group_id: Optional[str] = None


class ShopAssignRequest(BaseModel):
    store_group_id: Optional[str] = None


class InviteCreateRequest(BaseModel):
    shop_id: Optional[str] = None


# --- notices ----------------------------------------------------------------


class NoticeCreate(BaseModel):
    title: Optional[str] = None
    body: Optional[str] = None
    pinned: bool = False
    type: Optional[str] = None


class NoticeUpdate(BaseModel):
    title: Optional[str] = None
    body: Optional[str] = None
    pinned: Optional[bool] = None


class CommentCreate(BaseModel):
    body: Optional[str] = None
    parent_id: Optional[str] = None


# --- calendar ---------------------------------------------------------------


class TodoCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    todo_date: Optional[str] = Field(None, alias="todoDate")
    content: Optional[str] = ""
    highlight: Any = 0


class TodoUpdate(BaseModel):
    content: Optional[str] = None
    highlight: Any = None


class LeaveCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    leave_date: Optional[str] = Field(None, alias="leaveDate")
    label: Optional[str] = None


# --- policies and quotes ----------------------------------------------------


class PolicyIn(BaseModel):
    """Fields of all three catalogs; each kind reads the ones it owns."""

    model_config = ConfigDict(allow_inf_nan=False)

    shop_id: Optional[str] = None
    name: Optional[str] = None
    capacity: Optional[str] = None
    colors: Optional[list[str]] = None
    factory_price: Optional[float] = Field(None, ge=0)
    default_subsidy: Optional[float] = Field(None, ge=0)
    monthly_fee: Optional[float] = Field(None, ge=0)
    rebate: Optional[float] = Field(None, ge=0)
    price: Optional[float] = Field(None, ge=0)


class SettlementRequest(BaseModel):
    """Either name policies from a shop's catalog or send raw amounts.

    When any policy id is present the amounts come from the catalog and only
    ``subsidy`` and ``installments`` are taken from the request.
    """

    model_config = ConfigDict(allow_inf_nan=False)

    shop_id: Optional[str] = None
    device_policy_id: Optional[str] = None
    plan_policy_id: Optional[str] = None
    add_on_policy_ids: list[str] = Field(default_factory=list)
    factory_price: float = Field(0, ge=0)
    subsidy: Optional[float] = Field(None, ge=0)
    rebate: float = 0
    add_on_prices: list[float] = Field(default_factory=list)
    installments: int = Field(0, ge=0, description="0 means the default of 24 months")
    monthly_plan_fee: float = Field(0, ge=0)

    @property
    def uses_catalog(self) -> bool:
        return bool(self.device_policy_id or self.plan_policy_id or self.add_on_policy_ids)


class SettlementResponse(BaseModel):
    shop_id: Optional[str] = None
    rebate: float
    final_price: float
    margin: int
    installments: int
    monthly_device: int
    monthly_plan_fee: float
    monthly_add_ons: int
    monthly_total: float
