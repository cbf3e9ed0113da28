from __future__ import annotations

import logging
from typing import Any, Optional, Union

import httpx
from fastapi import APIRouter, Body, Depends, File, Form, Query, Request, UploadFile
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from core.services import reports
from core.services.audit import record_event
from core.services.auth import AuthContext
from core.services.idempotency import compute_body_hash, maybe_idempotent_json
from core.settings import get_settings

from ..deps import get_db, request_meta, require_auth
from ..schemas import (
    DuplicateCheckRequest,
    DuplicateCheckResponse,
    ReportsCreateRequest,
    SheetImportRequest,
    SheetImportResponse,
    SimpleOkResponse,
    UploadResponse,
)

router = APIRouter(prefix="/reports", tags=["reports"])
logger = logging.getLogger("shopdesk.api.reports")


def get_sheet_client() -> Optional[httpx.Client]:
    """None means a fresh client per fetch; overridable as a dependency."""
    return None


@router.get("")
def list_reports(
    shop_id: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    return [reports.serialize(r) for r in reports.list_reports(db, auth, shop_id)]


@router.post("", status_code=201)
def create_reports(
    request: Request,
    payload: Union[ReportsCreateRequest, list[dict[str, Any]]] = Body(...),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    rows = payload if isinstance(payload, list) else payload.reports

    def _produce():
        created = reports.create_reports(db, auth, rows)
        return [reports.serialize(r) for r in created], 201

    content, status = maybe_idempotent_json(
        db,
        request,
        shop_id=auth.shop_id,
        body_hash=compute_body_hash(rows),
        produce=_produce,
    )
    return JSONResponse(status_code=status, content=content)


@router.patch("/{report_id}")
def update_report(
    report_id: str,
    changes: dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    updates = changes.get("updates") if isinstance(changes.get("updates"), dict) else changes
    return reports.serialize(reports.update_report(db, auth, report_id, updates))


@router.delete("/{report_id}", response_model=SimpleOkResponse)
def delete_report(
    report_id: str,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    reports.delete_report(db, auth, report_id)
    return SimpleOkResponse()


@router.post("/check-duplicate", response_model=DuplicateCheckResponse)
def check_duplicate(
    payload: DuplicateCheckRequest,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    reports.check_duplicate(db, auth, payload.shop_id, payload.file_hash or "")
    return {"duplicate": False}


@router.post("/upload", response_model=UploadResponse)
async def upload(
    request: Request,
    shop_id: Optional[str] = Form(None),
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    content = await file.read()
    result = reports.upload_workbook(db, auth, shop_id, content)
    record_event(
        db,
        actor=auth.id,
        action="report_upload",
        resource=file.filename or "",
        shop_id=shop_id or auth.shop_id,
        meta={"inserted": result["inserted"], "file_hash": result["file_hash"]},
        **request_meta(request),
    )
    return result


@router.post("/import-google-sheets", response_model=SheetImportResponse)
def import_google_sheets(
    payload: SheetImportRequest,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
    client: Optional[httpx.Client] = Depends(get_sheet_client),
):
    return reports.preview_google_sheet(
        db,
        auth,
        payload.shop_id,
        payload.url,
        client=client,
        timeout=get_settings().sheets_fetch_timeout,
    )
