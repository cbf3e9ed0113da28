from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from core.services import stats
from core.services.auth import AuthContext

from ..deps import get_db, require_auth

router = APIRouter(tags=["stats"])


@router.get("/stats/inflow-activation")
def inflow_activation(
    shop_id: Optional[str] = Query(None),
    month: Optional[str] = Query(None, description="YYYY-MM"),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    return stats.inflow_activation(db, auth, shop_id, month)
