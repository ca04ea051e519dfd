from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.Scroll import ScrollResult
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig
from shared.models.search import VectorHit


class RAGClientQdrant(RAGClientInterface):
    """Qdrant REST implementation of the vector index."""

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default=None, val_type="string")
        self._api_key = self.get_config_val("API_KEY", default="", val_type="string")
        self._collection_name = self.get_config_val("COLLECTION", default="knowledge_base", val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Qdrant"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default=None),
            EnvConfig(env_key="API_KEY", val_type="string", default=""),
            EnvConfig(env_key="COLLECTION", val_type="string", default="knowledge_base"),
            EnvConfig(env_key="TENANT_FIELD", val_type="string", default="tenant_id"),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        if self._api_key:
            return {"api-key": self._api_key}
        return {}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/healthz"

    def _get_endpoint_points(self) -> str:
        return f"/collections/{self._collection_name}/points"

    def _get_endpoint_search(self) -> str:
        return f"/collections/{self._collection_name}/points/search"

    def _get_endpoint_delete_points(self) -> str:
        return f"/collections/{self._collection_name}/points/delete"

    def _get_endpoint_scroll(self) -> str:
        return f"/collections/{self._collection_name}/points/scroll"

    def _get_endpoint_count(self) -> str:
        return f"/collections/{self._collection_name}/points/count"

    def _get_endpoint_collection(self) -> str:
        return f"/collections/{self._collection_name}"

    def _get_endpoint_check_collection_existence(self) -> str:
        return f"/collections/{self._collection_name}/exists"

    ##########################################
    ########### PAYLOAD BUILDER ##############
    ##########################################

    def get_tenant_filter(self, tenant_id: str, extra_conditions: list[dict] | None = None) -> dict:
        must = [{"key": self.tenant_field, "match": {"value": tenant_id}}]
        must.extend(extra_conditions or [])
        return {"must": must}

    def _document_condition(self, document_id: str) -> dict:
        return {"key": "document_id", "match": {"value": document_id}}

    def get_upsert_payload(self, point_id: str, vector: list[float], payload: dict) -> dict:
        return {"points": [{"id": point_id, "vector": vector, "payload": payload}]}

    def get_search_payload(self, query_vector: list[float], k: int, filter: dict) -> dict:
        return {
            "vector": query_vector,
            "limit": k,
            "with_payload": True,
            "with_vector": False,
            "filter": filter,
        }

    def get_delete_payload(self, filter: dict) -> dict:
        return {"filter": filter}

    def get_scroll_payload(self, filter: dict, limit: int, offset: str | int | None = None) -> dict:
        payload = {
            "filter": filter,
            "limit": limit,
            "with_payload": True,
            "with_vector": False,
        }
        if offset is not None:
            payload["offset"] = offset
        return payload

    def get_count_payload(self, filter: dict) -> dict:
        return {"filter": filter, "exact": True}

    def get_create_collection_payload(self, vector_size: int, distance: str) -> dict:
        return {"vectors": {"size": vector_size, "distance": distance}}

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    def extract_search_hits(self, raw_response: dict) -> list[VectorHit]:
        hits: list[VectorHit] = []
        for point in raw_response.get("result") or []:
            payload = point.get("payload") or {}
            document_id = payload.get("document_id")
            if document_id is None:
                self.logging.warning("Skipping index point %s without document_id.", point.get("id"))
                continue
            hits.append(VectorHit(
                document_id=str(document_id),
                score=float(point.get("score", 0.0)),
                fingerprint=payload.get("fingerprint"),
            ))
        return hits

    def extract_scroll_content(self, raw_response: dict) -> ScrollResult:
        result = raw_response.get("result") or {}
        return ScrollResult(
            result=result.get("points", []),
            status=raw_response.get("status", "ok"),
            time=raw_response.get("time", 0),
            next_page_offset=result.get("next_page_offset"),
        )

    def extract_vector_size(self, raw_response: dict) -> int:
        vectors = (((raw_response.get("result") or {}).get("config") or {}).get("params") or {}).get("vectors") or {}
        size = vectors.get("size")
        if size is None:
            raise ValueError(f"Could not determine vector size of collection {self._collection_name!r}.")
        return int(size)
