"""Retrieval service — answers "what knowledge is relevant to this query, and does it fit?".

embed query → tenant-filtered vector search → resolve live documents
→ dedupe → rank (score desc, newer first on ties) → pack under the token budget.

Retrieval is advisory. retrieve() never raises for provider, index or timeout
failures; it returns an "unavailable" result and the agent answers without context.
Nothing here writes to the document store or the vector index.
"""

import asyncio

from services.retrieval.ContextAssembler import Candidate, ContextAssembler
from shared.clients.embed.EmbeddingAdapter import EmbeddingAdapter
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.store.DocumentStoreInterface import DocumentStoreInterface
from shared.helper.HelperConfig import HelperConfig
from shared.helper.HelperFingerprint import content_fingerprint
from shared.models.errors import KnowledgeBaseError, QueryEmbeddingFailed
from shared.models.search import RetrievalResult, VectorHit


class RetrievalService:
    """Orchestrates query embedding, vector search and context assembly."""

    def __init__(
        self,
        helper_config: HelperConfig,
        document_store: DocumentStoreInterface,
        rag_client: RAGClientInterface,
        embed_adapter: EmbeddingAdapter,
        assembler: ContextAssembler,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._store = document_store
        self._rag = rag_client
        self._adapter = embed_adapter
        self._assembler = assembler
        self.timeout = float(helper_config.get_number_val("RETRIEVAL_TIMEOUT_SECONDS", default=3.0))

    ##########################################
    ################ CORE ####################
    ##########################################

    async def retrieve(self, tenant_id: str, query_text: str, max_tokens: int, max_candidates: int) -> RetrievalResult:
        """Caller-facing retrieval with an overall timeout. Never raises for backend failures.

        Returns:
            RetrievalResult: status "ok" with context and sources (possibly empty),
                             or status "unavailable" when retrieval could not run.
        """
        try:
            return await asyncio.wait_for(
                self.do_retrieve(tenant_id, query_text, max_tokens, max_candidates),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            self.logging.warning("Retrieval for tenant %s timed out after %.1fs; continuing without context.", tenant_id, self.timeout)
        except QueryEmbeddingFailed as exc:
            self.logging.warning("Query embedding failed for tenant %s: %s; continuing without context.", tenant_id, exc)
        except Exception as exc:
            self.logging.error("Retrieval for tenant %s failed: %s; continuing without context.", tenant_id, exc)
        return RetrievalResult.unavailable(query=query_text, tenant_id=tenant_id)

    async def do_retrieve(self, tenant_id: str, query_text: str, max_tokens: int, max_candidates: int) -> RetrievalResult:
        """Run retrieval without timeout or failure conversion.

        Raises:
            QueryEmbeddingFailed: If the query cannot be embedded.
            Exception: If the vector index or document store fails.
        """
        self.logging.info("Retrieving for tenant %s: query=%r max_tokens=%d k=%d", tenant_id, query_text[:80], max_tokens, max_candidates)
        if not query_text.strip() or max_tokens <= 0 or max_candidates <= 0:
            return RetrievalResult(query=query_text, tenant_id=tenant_id)

        try:
            query_vector = await self._adapter.embed_one(query_text)
        except KnowledgeBaseError as exc:
            raise QueryEmbeddingFailed(str(exc)) from exc

        hits = await self._rag.do_search(tenant_id, query_vector, max_candidates)
        candidates = await self._resolve(tenant_id, hits)
        assembled = self._assembler.assemble(candidates, max_tokens)

        self.logging.info(
            "Retrieval for tenant %s: %d hits, %d candidates, %d sources, %d tokens.",
            tenant_id, len(hits), len(candidates), len(assembled.sources), assembled.tokens_used,
        )
        return RetrievalResult(
            query=query_text,
            tenant_id=tenant_id,
            context=assembled.context,
            sources=assembled.sources,
            tokens_used=assembled.tokens_used,
            candidates=len(candidates),
        )

    ##########################################
    ############### HELPERS ##################
    ##########################################

    async def _resolve(self, tenant_id: str, hits: list[VectorHit]) -> list[Candidate]:
        """Fetch documents for hits, drop stale hits, rank, then drop duplicates.

        A hit is stale when its document is gone, has no embedding, or was
        re-embedded for different content than the indexed vector. Duplicates
        (same document, or same content) are dropped after ranking, so the
        survivor is the best-ranked copy.
        """
        docs = await asyncio.gather(*[self._store.do_get(tenant_id, hit.document_id) for hit in hits])
        live: list[Candidate] = []
        for hit, doc in zip(hits, docs):
            if doc is None or doc.embedding is None:
                self.logging.debug("Dropping stale index hit for document %s.", hit.document_id)
                continue
            fingerprint = doc.embedding_fingerprint or content_fingerprint(doc.content)
            if hit.fingerprint is not None and hit.fingerprint != fingerprint:
                self.logging.debug("Dropping outdated index hit for document %s.", hit.document_id)
                continue
            live.append(Candidate(document=doc, score=hit.score))

        seen_ids: set[str] = set()
        seen_fingerprints: set[str] = set()
        candidates: list[Candidate] = []
        for candidate in self._rank(live):
            doc = candidate.document
            fingerprint = doc.embedding_fingerprint or content_fingerprint(doc.content)
            if doc.id in seen_ids or fingerprint in seen_fingerprints:
                continue
            seen_ids.add(doc.id)
            seen_fingerprints.add(fingerprint)
            candidates.append(candidate)
        return candidates

    @staticmethod
    def _rank(candidates: list[Candidate]) -> list[Candidate]:
        """Score descending; on exact ties the newer document first."""
        return sorted(candidates, key=lambda c: (-c.score, -c.document.created_at))
