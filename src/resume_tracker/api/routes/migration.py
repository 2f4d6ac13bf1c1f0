from __future__ import annotations

from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from resume_tracker.api.deps import get_db
from resume_tracker.api.schemas import ClearDataRequest
from resume_tracker.core.migration import DataMigrator, has_import_data
from resume_tracker.db.base import utcnow
from resume_tracker.db.repositories import Repository
from resume_tracker.errors import ValidationError

router = APIRouter(prefix="/migration", tags=["migration"])

CLEAR_CONFIRMATION = "DELETE_ALL_DATA"


@router.post("/import-from-indexeddb")
def import_data(payload: dict | None = Body(default=None), db: Session = Depends(get_db)) -> dict:
    payload = payload or {}
    if not has_import_data(payload):
        raise ValidationError("No data provided for import")
    results = DataMigrator(Repository(db)).import_data(payload)
    return {
        "success": True,
        "message": "Data import completed",
        "results": results.model_dump(by_alias=True),
    }


@router.get("/export-to-json")
def export_data(db: Session = Depends(get_db)) -> JSONResponse:
    data = DataMigrator(Repository(db)).export_data()
    filename = f"resume-tracker-export-{utcnow().date().isoformat()}.json"
    return JSONResponse(
        data,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.delete("/clear-all-data")
def clear_all_data(
    payload: ClearDataRequest | None = Body(default=None),
    db: Session = Depends(get_db),
) -> dict:
    if payload is None or payload.confirm != CLEAR_CONFIRMATION:
        raise ValidationError(
            f'Confirmation required. Send {{ "confirm": "{CLEAR_CONFIRMATION}" }} to proceed.'
        )
    Repository(db).clear_all_data()
    return {"message": "All data cleared successfully"}
