from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from backend.app.api.deps import get_db
from backend.services import reports

router = APIRouter(prefix="/reports")


def _csv_response(content: str, filename: str) -> Response:
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/inventory-sessions/{session_id}/variances.csv")
def inventory_variances_csv(session_id: int, db: Session = Depends(get_db)):
    df = reports.inventory_variance_report(db, session_id)
    return _csv_response(reports.to_csv(df), f"inventory-{session_id}-variances.csv")


@router.get("/stock-valuation.csv")
def stock_valuation_csv(db: Session = Depends(get_db)):
    df = reports.stock_valuation(db)
    return _csv_response(reports.to_csv(df), "stock-valuation.csv")


@router.get("/stock-anomalies.csv")
def stock_anomalies_csv(db: Session = Depends(get_db)):
    df = reports.stock_anomalies(db)
    return _csv_response(reports.to_csv(df), "stock-anomalies.csv")
