"""Routes shared by resumes and cover letters.

Annotations here are evaluated eagerly (no postponed annotations) because the
request and response models are closure variables of ``build_document_router``.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from resume_tracker.api.deps import get_db
from resume_tracker.api.schemas import DuplicateCheckRequest, DuplicateCheckResponse
from resume_tracker.db.repositories import DocumentKind, Repository
from resume_tracker.types import CamelModel, DocumentFields, DocumentRef


def build_document_router(
    kind: DocumentKind,
    *,
    prefix: str,
    create_model: type[DocumentFields],
    update_model: type[DocumentFields],
    record_model: type[CamelModel],
    list_model: type[CamelModel],
) -> APIRouter:
    router = APIRouter(prefix=prefix, tags=[prefix.strip("/")])
    label = kind.label

    @router.get("", response_model=list[list_model])
    def list_documents(db: Session = Depends(get_db)):
        return [list_model.model_validate(row) for row in Repository(db).list_documents(kind)]

    @router.post("/check-duplicate", response_model=DuplicateCheckResponse)
    def check_duplicate(payload: DuplicateCheckRequest, db: Session = Depends(get_db)):
        match = Repository(db).find_duplicate_document(
            kind,
            file_name=payload.file_name,
            file_size=payload.file_size,
            file_data=payload.file_data,
        )
        if match is None:
            return DuplicateCheckResponse(is_duplicate=False)
        return DuplicateCheckResponse(
            is_duplicate=True,
            type=match.type,
            existing=DocumentRef.model_validate(match.existing),
        )

    @router.get("/{document_id}", response_model=list_model)
    def get_document(document_id: str, db: Session = Depends(get_db)):
        return list_model.model_validate(Repository(db).require_document(kind, document_id))

    @router.post("", response_model=record_model, status_code=201)
    def create_document(payload: create_model, db: Session = Depends(get_db)):
        values = payload.values()
        document_id = values.pop("id", None)
        document = Repository(db).create_document(kind, values, document_id=document_id)
        return record_model.model_validate(document)

    @router.put("/{document_id}", response_model=list_model)
    def update_document(document_id: str, payload: update_model, db: Session = Depends(get_db)):
        document = Repository(db).update_document(kind, document_id, payload.values())
        return list_model.model_validate(document)

    @router.delete("/{document_id}")
    def delete_document(document_id: str, db: Session = Depends(get_db)):
        Repository(db).delete_document(kind, document_id)
        return {"message": f"{label} deleted successfully"}

    @router.post("/{document_id}/link-job/{job_id}")
    def link_job(document_id: str, job_id: str, db: Session = Depends(get_db)):
        Repository(db).link_document(kind, document_id, job_id)
        return {"message": f"{label} linked to job description successfully"}

    @router.delete("/{document_id}/unlink-job/{job_id}")
    def unlink_job(document_id: str, job_id: str, db: Session = Depends(get_db)):
        Repository(db).unlink_document(kind, document_id, job_id)
        return {"message": f"{label} unlinked from job description successfully"}

    return router
