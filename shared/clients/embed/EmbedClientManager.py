from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.embed.EmbeddingAdapter import EmbeddingAdapter
from shared.helper.HelperConfig import HelperConfig


class EmbedClientManager:
    """
    Builds the embedding provider client named by EMBED_ENGINE and wraps it in an EmbeddingAdapter.
    """

    def __init__(self, helper_config: HelperConfig):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self.client = self._initialize_client()
        self.adapter = EmbeddingAdapter(
            provider=self.client,
            dimension=self.client.embed_dimension,
            logger=self.logging,
            batch_size=int(helper_config.get_number_val("EMBED_BATCH_SIZE", default=100)),
            fanout_concurrency=int(helper_config.get_number_val("EMBED_FANOUT_CONCURRENCY", default=5)),
        )

    def _get_engine_from_env(self) -> str:
        """
        Reads the embedding engine from EMBED_ENGINE, e.g. "gemini".

        Returns:
            str: The engine name, capitalised the way client class names are ("Gemini").

        Raises:
            ValueError: If no engine is configured.
        """
        engine = self.helper_config.get_string_val("EMBED_ENGINE")
        if not engine:
            raise ValueError("No Embed engine specified in configuration.")
        return engine.strip().lower().capitalize()

    def _initialize_client(self) -> EmbedClientInterface:
        """
        Imports shared.clients.embed.<engine>.EmbedClient<Engine> and instantiates it.

        Raises:
            ValueError: If the engine is unknown.
        """
        engine = self._get_engine_from_env()
        className = f"EmbedClient{engine}"
        try:
            module = __import__(
                f"shared.clients.embed.{engine.lower()}.{className}",
                fromlist=[className],
            )
            client_class = getattr(module, className)
        except (ImportError, AttributeError) as e:
            raise ValueError(f"Unsupported Embed engine specified: '{engine}'. Error: {e}")
        client = client_class(helper_config=self.helper_config)
        self.logging.debug("Instantiated Embed client for engine: %s", engine)
        return client

    def get_client(self) -> EmbedClientInterface:
        return self.client

    def get_adapter(self) -> EmbeddingAdapter:
        return self.adapter
