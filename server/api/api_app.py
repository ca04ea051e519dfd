"""FastAPI application entry point for the knowledge base retrieval API."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Callable

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import os
from server.api.routers.KnowledgeRouter import knowledge_router
from server.api.routers.QueryRouter import query_router
from services.embedding_pipeline.EmbeddingPipeline import EmbeddingPipeline
from services.knowledge_base.KnowledgeBaseService import KnowledgeBaseService
from services.retrieval.ContextAssembler import ContextAssembler
from services.retrieval.RetrievalService import RetrievalService
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.embed.EmbedClientManager import EmbedClientManager
from shared.clients.embed.EmbeddingAdapter import EmbeddingAdapter
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.RAGClientManager import RAGClientManager
from shared.clients.store.StoreManager import StoreManager
from shared.helper.HelperConfig import HelperConfig
from shared.helper.TokenCounter import get_token_counter
from shared.logging.logging_setup import setup_logging
from shared.models.errors import DocumentNotFound, ValidationFailed

app_version = os.getenv("APP_VERSION", "unknown")


async def prepare_backends(
    logging,
    rag_client: RAGClientInterface,
    embed_client: EmbedClientInterface,
    embed_adapter: EmbeddingAdapter,
) -> None:
    """Health-check the booted clients and make sure the index collection fits the provider.

    Any failure is fatal for startup: both clients are closed and the error re-raised.

    Raises:
        DimensionMismatch: If the existing collection stores vectors of another size.
    """
    try:
        await rag_client.do_healthcheck()
        await embed_client.do_healthcheck()
        logging.info("Embedding with %s model %r (%d dimensions).", embed_client.get_engine_name(), embed_client.get_model_id(), embed_adapter.dimension)
        await rag_client.do_ensure_collection(embed_adapter.dimension, embed_client.embed_distance)
    except Exception:
        await rag_client.close()
        await embed_client.close()
        raise


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application startup and shutdown."""
    app.state.logging = setup_logging()
    app.state.config = HelperConfig(logger=app.state.logging)

    # Initialise clients
    store_manager = StoreManager(helper_config=app.state.config)
    embed_manager = EmbedClientManager(helper_config=app.state.config)
    rag_client = RAGClientManager(helper_config=app.state.config).get_client()
    embed_client = embed_manager.get_client()
    embed_adapter = embed_manager.get_adapter()
    await rag_client.boot()
    await embed_client.boot()
    await prepare_backends(app.state.logging, rag_client, embed_client, embed_adapter)

    # Wire up services
    document_store = store_manager.get_document_store()
    pipeline = EmbeddingPipeline(
        helper_config=app.state.config,
        document_store=document_store,
        rag_client=rag_client,
        embed_adapter=embed_adapter,
    )
    app.state.retrieval_service = RetrievalService(
        helper_config=app.state.config,
        document_store=document_store,
        rag_client=rag_client,
        embed_adapter=embed_adapter,
        assembler=ContextAssembler(token_counter=get_token_counter(app.state.config)),
    )
    app.state.knowledge_service = KnowledgeBaseService(
        helper_config=app.state.config,
        document_store=document_store,
        blob_store=store_manager.get_blob_store(),
        pipeline=pipeline,
    )

    app.state.logging.info("Knowledge base API ready.", color="green")
    yield

    # Shutdown
    await pipeline.drain()
    await rag_client.close()
    await embed_client.close()
    app.state.logging.info("Knowledge base API shut down.")


##########################################
############# ERROR MAPPING ##############
##########################################

async def _handle_not_found(request: Request, exc: DocumentNotFound) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


async def _handle_validation(request: Request, exc: ValidationFailed) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc)})


def create_app(lifespan_handler: Callable | None = lifespan) -> FastAPI:
    """Build the FastAPI app. Tests pass their own lifespan to wire in-process collaborators."""
    app = FastAPI(
        title="Knowledge Base AI Bridge",
        description="Tenant-scoped embedding and token-budgeted context retrieval for support agents.",
        version=app_version,
        lifespan=lifespan_handler,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(DocumentNotFound, _handle_not_found)
    app.add_exception_handler(ValidationFailed, _handle_validation)

    app.include_router(query_router)
    app.include_router(knowledge_router)
    return app


app = create_app()


# Server Start
if __name__ == "__main__":
    # start server
    import uvicorn
    logging = setup_logging()
    port = int(os.getenv("APP_PORT", "8000"))
    logging.info(f"Starting knowledge base API Server v{app_version} from root dir: {os.getenv('ROOT_DIR', os.getcwd())} on port {port}...")
    uvicorn.run(app, host="0.0.0.0", port=port)
