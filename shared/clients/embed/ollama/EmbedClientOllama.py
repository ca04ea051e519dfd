from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class EmbedClientOllama(EmbedClientInterface):
    """Ollama embedding client. Batch-only: /api/embed always takes a list of inputs."""

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default=None, val_type="string")
        self._api_key = self.get_config_val("API_KEY", default="", val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Ollama"

    def _get_default_model(self) -> str:
        return "nomic-embed-text"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default=None),
            EnvConfig(env_key="API_KEY", val_type="string", default=""),
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
        # root on ollama
        return ""

    def _get_endpoint_embedding(self) -> str:
        return "/api/embed"

    ##########################################
    ############### EMBEDDING ################
    ##########################################

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed several texts with one /api/embed call.

        Args:
            texts (list[str]): The texts to embed.

        Returns:
            list[list[float]]: Vectors in input order.

        Raises:
            ValueError: If the response does not contain embeddings.
        """
        data = await self._do_embed_request(self._get_endpoint_embedding(), {"model": self.embed_model, "input": texts})
        embeddings = data.get("embeddings")
        if not embeddings or not embeddings[0]:
            raise ValueError(
                "Ollama response does not contain valid embeddings. "
                f"Response keys: {list(data.keys())}"
            )
        return embeddings
