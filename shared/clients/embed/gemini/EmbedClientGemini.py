from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class EmbedClientGemini(EmbedClientInterface):
    """Google Gemini embedding client.

    Offers both call shapes: ``:embedContent`` for one text and
    ``:batchEmbedContents`` for many. The requested output dimensionality is
    sent with every request so the provider returns EMBED_DIMENSION values.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default="https://generativelanguage.googleapis.com", val_type="string")
        self._api_key = self.get_config_val("API_KEY", default=None, val_type="string")
        self._api_version = self.get_config_val("API_VERSION", default="v1beta", val_type="string")
        self._task_type = self.get_config_val("TASK_TYPE", default="RETRIEVAL_DOCUMENT", val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Gemini"

    def _get_default_model(self) -> str:
        return "gemini-embedding-001"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default="https://generativelanguage.googleapis.com"),
            EnvConfig(env_key="API_KEY", val_type="string", default=None),
            EnvConfig(env_key="API_VERSION", val_type="string", default="v1beta"),
            EnvConfig(env_key="TASK_TYPE", val_type="string", default="RETRIEVAL_DOCUMENT"),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        return {"x-goog-api-key": self._api_key}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return f"/{self._api_version}/models/{self.embed_model}"

    def _get_endpoint_embed_content(self) -> str:
        return f"/{self._api_version}/models/{self.embed_model}:embedContent"

    def _get_endpoint_batch_embed_contents(self) -> str:
        return f"/{self._api_version}/models/{self.embed_model}:batchEmbedContents"

    ################ PAYLOAD BUILDER ##################
    def _get_content_request(self, text: str) -> dict:
        return {
            "model": f"models/{self.embed_model}",
            "content": {"parts": [{"text": text}]},
            "taskType": self._task_type,
            "outputDimensionality": self.embed_dimension,
        }

    ##########################################
    ############### EMBEDDING ################
    ##########################################

    async def embed_single(self, text: str) -> list[float]:
        """Embed one text with :embedContent.

        Raises:
            ValueError: If the response carries no embedding values.
        """
        data = await self._do_embed_request(self._get_endpoint_embed_content(), self._get_content_request(text))
        values = (data.get("embedding") or {}).get("values")
        if not values:
            raise ValueError(f"Gemini response does not contain an embedding. Response keys: {list(data.keys())}")
        return values

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed several texts with :batchEmbedContents. Results keep request order.

        Raises:
            ValueError: If any entry carries no embedding values.
        """
        body = {"requests": [self._get_content_request(text) for text in texts]}
        data = await self._do_embed_request(self._get_endpoint_batch_embed_contents(), body)
        vectors: list[list[float]] = []
        for entry in data.get("embeddings") or []:
            values = entry.get("values")
            if not values:
                raise ValueError("Gemini batch response contains an empty embedding.")
            vectors.append(values)
        return vectors
