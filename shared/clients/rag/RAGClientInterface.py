from abc import abstractmethod
import json
import uuid

import httpx

from shared.clients.ClientInterface import ClientInterface
from shared.clients.rag.models.Scroll import ScrollResult
from shared.clients.rag.models.VectorPoint import VectorPoint
from shared.helper.HelperConfig import HelperConfig
from shared.models.errors import DimensionMismatch
from shared.models.search import VectorHit

# Fixed namespace for deterministic UUIDv5 point ids.
# Changing this value would orphan every point already stored in the index.
_POINT_ID_NAMESPACE = uuid.UUID("3b0c5f2e-7d1a-4c8e-9f6b-2a4d8e1c7b35")


def make_point_id(tenant_id: str, document_id: str) -> str:
    """Deterministic point id for a document, so re-embedding overwrites instead of duplicating."""
    return str(uuid.uuid5(_POINT_ID_NAMESPACE, f"{tenant_id}:{document_id}"))


class RAGClientInterface(ClientInterface):
    """Vector index client.

    Every call that reads or deletes points is restricted to one tenant. The
    tenant condition is injected here, not by callers, and a blank tenant id is
    rejected before any request is sent.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self.tenant_field = self.get_config_val("TENANT_FIELD", default="tenant_id", val_type="string")

    ##########################################
    ############### CHECKER ##################
    ##########################################

    def _require_tenant(self, tenant_id: str) -> str:
        if tenant_id is None or not str(tenant_id).strip():
            raise ValueError("A tenant id is required for every vector index operation.")
        return str(tenant_id)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "rag"

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_endpoint_points(self) -> str:
        pass

    @abstractmethod
    def _get_endpoint_search(self) -> str:
        pass

    @abstractmethod
    def _get_endpoint_delete_points(self) -> str:
        pass

    @abstractmethod
    def _get_endpoint_scroll(self) -> str:
        pass

    @abstractmethod
    def _get_endpoint_count(self) -> str:
        pass

    @abstractmethod
    def _get_endpoint_collection(self) -> str:
        pass

    @abstractmethod
    def _get_endpoint_check_collection_existence(self) -> str:
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def get_tenant_filter(self, tenant_id: str, extra_conditions: list[dict] | None = None) -> dict:
        """
        Builds the backend filter restricting a request to one tenant.

        Args:
            tenant_id (str): The tenant to restrict to.
            extra_conditions (list[dict] | None): Further conditions ANDed with the tenant condition.

        Returns:
            dict: The backend-specific filter.
        """
        pass

    @abstractmethod
    def get_upsert_payload(self, point_id: str, vector: list[float], payload: dict) -> dict:
        pass

    @abstractmethod
    def get_search_payload(self, query_vector: list[float], k: int, filter: dict) -> dict:
        pass

    @abstractmethod
    def get_delete_payload(self, filter: dict) -> dict:
        pass

    @abstractmethod
    def get_scroll_payload(self, filter: dict, limit: int, offset: str | int | None = None) -> dict:
        pass

    @abstractmethod
    def get_count_payload(self, filter: dict) -> dict:
        pass

    @abstractmethod
    def get_create_collection_payload(self, vector_size: int, distance: str) -> dict:
        pass

    ################ RESPONSE PARSER ##################
    @abstractmethod
    def extract_search_hits(self, raw_response: dict) -> list[VectorHit]:
        """
        Converts a raw search response into hits ordered by score, descending.
        """
        pass

    @abstractmethod
    def extract_scroll_content(self, raw_response: dict) -> ScrollResult:
        pass

    @abstractmethod
    def extract_vector_size(self, raw_response: dict) -> int:
        """
        Reads the configured vector size from a collection info response.

        Raises:
            ValueError: If the size cannot be determined.
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def _post_json(self, endpoint: str, body: dict, method: str = "POST") -> httpx.Response:
        return await self.do_request(
            method=method,
            content=json.dumps(body),
            endpoint=endpoint,
            additional_headers={"Content-Type": "application/json"},
            raise_on_error=True,
        )

    async def do_existence_check(self) -> bool:
        """Check whether the collection exists."""
        resp = await self.do_request(method="GET", endpoint=self._get_endpoint_check_collection_existence(), raise_on_error=True)
        return bool(resp.json().get("result", {}).get("exists"))

    async def do_create_collection(self, vector_size: int, distance: str = "Cosine") -> httpx.Response:
        """Create the collection for vectors of the given size."""
        self.logging.info("Creating %s collection for %d-dimensional vectors (%s).", self.get_engine_name(), vector_size, distance)
        return await self._post_json(self._get_endpoint_collection(), self.get_create_collection_payload(vector_size, distance), method="PUT")

    async def do_fetch_vector_size(self) -> int:
        """Return the vector size the existing collection was created with."""
        resp = await self.do_request(method="GET", endpoint=self._get_endpoint_collection(), raise_on_error=True)
        return self.extract_vector_size(resp.json())

    async def do_ensure_collection(self, vector_size: int, distance: str = "Cosine") -> None:
        """Create the collection if missing, otherwise verify it stores vectors of vector_size.

        Raises:
            DimensionMismatch: If the existing collection was created for another vector size.
        """
        if not await self.do_existence_check():
            await self.do_create_collection(vector_size, distance)
            return
        indexed_size = await self.do_fetch_vector_size()
        if indexed_size != vector_size:
            raise DimensionMismatch(expected=vector_size, actual=indexed_size, context="existing index collection")
        self.logging.info("Index collection already exists with %d dimensions.", indexed_size)

    async def do_upsert(self, tenant_id: str, document_id: str, vector: list[float], point: VectorPoint | None = None) -> None:
        """Insert or replace the vector of one document.

        Args:
            tenant_id (str): Owning tenant, written under the tenant filter field.
            document_id (str): Document the vector belongs to.
            vector (list[float]): The embedding.
            point (VectorPoint | None): Additional payload; defaults to just the document id.
        """
        tenant_id = self._require_tenant(tenant_id)
        payload = (point or VectorPoint(document_id=document_id)).model_dump()
        payload["document_id"] = document_id
        payload[self.tenant_field] = tenant_id
        body = self.get_upsert_payload(make_point_id(tenant_id, document_id), vector, payload)
        await self._post_json(self._get_endpoint_points(), body, method="PUT")

    async def do_delete(self, tenant_id: str, document_id: str) -> None:
        """Delete the vector of one document. Deleting a missing point is not an error."""
        tenant_id = self._require_tenant(tenant_id)
        filter = self.get_tenant_filter(tenant_id, [self._document_condition(document_id)])
        await self._post_json(self._get_endpoint_delete_points(), self.get_delete_payload(filter))

    async def do_search(self, tenant_id: str, query_vector: list[float], k: int) -> list[VectorHit]:
        """Nearest neighbours of query_vector among the tenant's vectors.

        Returns:
            list[VectorHit]: At most k hits, ordered by similarity descending.
        """
        tenant_id = self._require_tenant(tenant_id)
        if k <= 0:
            return []
        body = self.get_search_payload(query_vector, k, self.get_tenant_filter(tenant_id))
        resp = await self._post_json(self._get_endpoint_search(), body)
        hits = self.extract_search_hits(resp.json())
        return sorted(hits, key=lambda h: h.score, reverse=True)[:k]

    async def do_count(self, tenant_id: str) -> int:
        """Count the tenant's points."""
        tenant_id = self._require_tenant(tenant_id)
        resp = await self._post_json(self._get_endpoint_count(), self.get_count_payload(self.get_tenant_filter(tenant_id)))
        return int(resp.json().get("result", {}).get("count", 0))

    async def do_scroll(self, tenant_id: str, limit: int = 1000, offset: str | int | None = None) -> ScrollResult:
        """Read one page of the tenant's points (payload only, no vectors)."""
        tenant_id = self._require_tenant(tenant_id)
        body = self.get_scroll_payload(self.get_tenant_filter(tenant_id), limit, offset)
        resp = await self._post_json(self._get_endpoint_scroll(), body)
        return self.extract_scroll_content(resp.json())

    async def do_scroll_all(self, tenant_id: str, page_size: int = 1000) -> ScrollResult:
        """Read all of the tenant's points, following next_page_offset until exhausted."""
        all_points: list[dict] = []
        offset: str | int | None = None
        page = 1
        while True:
            page_result = await self.do_scroll(tenant_id, limit=page_size, offset=offset)
            all_points.extend(page_result.result)
            self.logging.debug("Fetched index page %d for tenant %s, %d points so far.", page, tenant_id, len(all_points))
            offset = page_result.next_page_offset
            if offset is None:
                break
            page += 1
        return ScrollResult(result=all_points)

    ##########################################
    ############### HELPERS ##################
    ##########################################

    @abstractmethod
    def _document_condition(self, document_id: str) -> dict:
        pass
