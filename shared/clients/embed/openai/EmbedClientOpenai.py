from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class EmbedClientOpenai(EmbedClientInterface):
    """OpenAI-compatible embedding client (OpenAI, LiteLLM, vLLM, …). Batch-only."""

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default="https://api.openai.com", val_type="string")
        self._api_key = self.get_config_val("API_KEY", default="", val_type="string")
        self._send_dimensions = self.get_config_val("SEND_DIMENSIONS", default=True, val_type="bool")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Openai"

    def _get_default_model(self) -> str:
        return "text-embedding-3-large"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default="https://api.openai.com"),
            EnvConfig(env_key="API_KEY", val_type="string", default=""),
            EnvConfig(env_key="SEND_DIMENSIONS", val_type="bool", default=True),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        if self._api_key:
            return {"Authorization": f"Bearer {self._api_key}"}
        return {}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/v1/models"

    def _get_endpoint_embedding(self) -> str:
        return "/v1/embeddings"

    ##########################################
    ############### EMBEDDING ################
    ##########################################

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed several texts with /v1/embeddings.

        The response lists {"embedding": [...], "index": i} entries, not necessarily
        in request order, so they are sorted by index before returning.

        Raises:
            ValueError: If the response contains no data entries.
        """
        body: dict = {"model": self.embed_model, "input": texts}
        if self._send_dimensions:
            body["dimensions"] = self.embed_dimension
        data = await self._do_embed_request(self._get_endpoint_embedding(), body)
        entries = data.get("data")
        if not entries:
            raise ValueError(f"OpenAI response does not contain embeddings. Response keys: {list(data.keys())}")
        return [entry["embedding"] for entry in sorted(entries, key=lambda e: e.get("index", 0))]
