"""Query router — token-budgeted context retrieval for the conversational agent."""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from server.models.requests import RetrieveRequest
from server.models.responses import RetrieveResponse
from shared.dependencies.auth import get_tenant_id, verify_api_key

query_router = APIRouter()


@query_router.post(
    "/retrieve",
    dependencies=[Depends(verify_api_key)],
    tags=["Query"],
)
async def handle_retrieve(request: Request, body: RetrieveRequest, tenant_id: str = Depends(get_tenant_id)) -> JSONResponse:
    """Assemble the knowledge base context for a user query.

    The tenant header determines which documents may be used. Retrieval
    failures are not errors here: the response carries status "unavailable"
    and the agent answers without augmentation.

    Args:
        request (Request): The incoming FastAPI request (carries app state).
        body (RetrieveRequest): Query text and budgets.
        tenant_id (str): Tenant resolved from the X-Tenant-Id header.

    Returns:
        JSONResponse: Context, sources and tokens used.
    """
    request.app.state.logging.info("Retrieve received — tenant=%s query=%r", tenant_id, body.query[:80])

    retrieval_service = request.app.state.retrieval_service
    result = await retrieval_service.retrieve(tenant_id, body.query, body.max_tokens, body.max_candidates)
    response = RetrieveResponse(
        status=result.status,
        context=result.context,
        sources=result.sources,
        tokens_used=result.tokens_used,
    )
    return JSONResponse(content=response.model_dump())
