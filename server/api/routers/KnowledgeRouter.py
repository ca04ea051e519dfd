"""Knowledge router — tenant-scoped document management."""

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from server.models.requests import DocumentCreateRequest, DocumentUpdateRequest
from server.models.responses import DocumentListResponse, DocumentResponse
from shared.dependencies.auth import get_tenant_id, verify_api_key
from shared.models.document import DocumentCreate, DocumentUpdate
from shared.models.job import JobStatus

knowledge_router = APIRouter(prefix="/knowledge", dependencies=[Depends(verify_api_key)], tags=["Knowledge"])


@knowledge_router.get("")
async def list_documents(request: Request, tenant_id: str = Depends(get_tenant_id)) -> JSONResponse:
    docs = await request.app.state.knowledge_service.get_all(tenant_id)
    response = DocumentListResponse(documents=[DocumentResponse.from_document(d) for d in docs], total=len(docs))
    return JSONResponse(content=response.model_dump())


@knowledge_router.post("", status_code=201)
async def create_document(request: Request, body: DocumentCreateRequest, tenant_id: str = Depends(get_tenant_id)) -> JSONResponse:
    """Store a document. Embedding runs in the background."""
    doc = await request.app.state.knowledge_service.create(tenant_id, DocumentCreate(**body.model_dump()))
    return JSONResponse(status_code=201, content=DocumentResponse.from_document(doc).model_dump())


@knowledge_router.post("/reconcile")
async def reconcile(request: Request, tenant_id: str = Depends(get_tenant_id)) -> JSONResponse:
    """Re-embed stale documents and remove orphaned vectors for the tenant."""
    report = await request.app.state.knowledge_service.reconcile(tenant_id)
    return JSONResponse(content=report.model_dump())


@knowledge_router.get("/{document_id}")
async def get_document(request: Request, document_id: str, tenant_id: str = Depends(get_tenant_id)) -> JSONResponse:
    doc = await request.app.state.knowledge_service.get_one(tenant_id, document_id)
    return JSONResponse(content=DocumentResponse.from_document(doc).model_dump())


@knowledge_router.patch("/{document_id}")
async def update_document(request: Request, document_id: str, body: DocumentUpdateRequest, tenant_id: str = Depends(get_tenant_id)) -> JSONResponse:
    """Rename and/or edit a document. A content edit clears the embedding and re-embeds."""
    changes = DocumentUpdate(**body.model_dump())
    doc = await request.app.state.knowledge_service.update(tenant_id, document_id, changes)
    return JSONResponse(content=DocumentResponse.from_document(doc).model_dump())


@knowledge_router.delete("/{document_id}")
async def delete_document(request: Request, document_id: str, tenant_id: str = Depends(get_tenant_id)) -> JSONResponse:
    await request.app.state.knowledge_service.remove(tenant_id, document_id)
    return JSONResponse(content={"id": document_id, "deleted": True})


@knowledge_router.post("/{document_id}/regenerate")
async def regenerate_embedding(request: Request, document_id: str, tenant_id: str = Depends(get_tenant_id)) -> JSONResponse:
    """Re-embed a document now and report the job outcome.

    Raises:
        HTTPException: 502 if the embedding job failed after all retries.
    """
    outcome = await request.app.state.knowledge_service.regenerate(tenant_id, document_id)
    if outcome.status == JobStatus.FAILED:
        raise HTTPException(status_code=502, detail=outcome.error or "Embedding failed.")
    return JSONResponse(content=outcome.model_dump(mode="json"))
