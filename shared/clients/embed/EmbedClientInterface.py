from abc import abstractmethod

from shared.clients.ClientInterface import ClientInterface
from shared.helper.HelperConfig import HelperConfig


class EmbedClientInterface(ClientInterface):
    """Base class for embedding provider clients.

    Providers differ in which call shapes they offer. A concrete client exposes
    ``embed_single(text)`` and/or ``embed_batch(texts)``; the EmbeddingAdapter
    inspects which of them exist and normalises the rest of the system onto
    ``embed_one``/``embed_many``. Do not declare either method here, otherwise
    every client would appear to support both shapes.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

        # model and embedding config
        self.embed_model = helper_config.get_string_val(f"{self.get_client_type().upper()}_MODEL", default=self._get_default_model())
        self.embed_dimension = int(helper_config.get_number_val(f"{self.get_client_type().upper()}_DIMENSION", default=3072))
        self.embed_distance = helper_config.get_string_val(f"{self.get_client_type().upper()}_DISTANCE", default="Cosine")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "embed"

    @abstractmethod
    def _get_default_model(self) -> str:
        """
        Returns the model identifier used when EMBED_MODEL is not set.
        """
        pass

    def get_model_id(self) -> str:
        return self.embed_model

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def _do_embed_request(self, endpoint: str, body: dict) -> dict:
        """Send an embedding request and return the parsed JSON body.

        Args:
            endpoint (str): The provider endpoint for this call shape.
            body (dict): Provider-specific request body.

        Returns:
            dict: The parsed response body.

        Raises:
            Exception: If the provider answers with a non-200 status.
        """
        response = await self.do_request(method="POST", endpoint=endpoint, json=body)
        if response.status_code != 200:
            self.logging.error(
                "Embedding request to %s failed: status %d, body: %s",
                self.get_engine_name(),
                response.status_code,
                response.text[:200],
            )
            raise Exception("Embedding request failed with status %d." % response.status_code)
        return response.json()
