from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy.orm import Session

from core.services import consultations, reports
from core.services.audit import record_event
from core.services.auth import AuthContext

from ..deps import get_db, request_meta, require_auth
from ..schemas import ConsultationCreate, ConsultationUpdate, MoveToReportResponse

router = APIRouter(prefix="/crm", tags=["crm"])


@router.get("/consultations")
def list_consultations(
    shop_id: Optional[str] = Query(None),
    activation_status: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    rows = consultations.list_consultations(db, auth, shop_id, activation_status)
    return [consultations.serialize(c) for c in rows]


@router.post("/consultations", status_code=201)
def create_consultation(
    payload: ConsultationCreate,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    c = consultations.create_consultation(db, auth, payload.model_dump())
    return consultations.serialize(c)


@router.patch("/consultations/{consultation_id}")
def update_consultation(
    consultation_id: str,
    payload: ConsultationUpdate,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    c = consultations.update_consultation(db, auth, consultation_id, payload.model_dump(exclude_unset=True))
    return consultations.serialize(c)


@router.delete("/consultations/{consultation_id}", status_code=204)
def delete_consultation(
    consultation_id: str,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    consultations.delete_consultation(db, auth, consultation_id)
    return Response(status_code=204)


@router.post("/consultations/{consultation_id}/move-to-report", response_model=MoveToReportResponse)
def move_to_report(
    consultation_id: str,
    request: Request,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    report_id = consultations.move_to_report(db, auth, consultation_id)
    record_event(
        db,
        actor=auth.id,
        action="move_to_report",
        resource=f"consultation:{consultation_id}",
        meta={"report_id": report_id},
        **request_meta(request),
    )
    return {"report_id": report_id, "message": "Moved to report"}


@router.get("/customers")
def list_customers(
    shop_id: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    return [reports.serialize_customer(c) for c in reports.list_customers(db, auth, shop_id)]
