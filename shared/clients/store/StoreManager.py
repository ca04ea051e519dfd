from shared.clients.store.BlobStoreInterface import BlobStoreInterface
from shared.clients.store.DocumentStoreInterface import DocumentStoreInterface
from shared.helper.HelperConfig import HelperConfig


class StoreManager:
    """
    Builds the document store and blob store named by STORE_ENGINE (default "memory").
    """

    def __init__(self, helper_config: HelperConfig):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        engine = helper_config.get_string_val("STORE_ENGINE", default="memory").strip().lower().capitalize()
        self.document_store: DocumentStoreInterface = self._load(engine, f"DocumentStore{engine}")
        self.blob_store: BlobStoreInterface = self._load(engine, f"BlobStore{engine}")

    def _load(self, engine: str, className: str):
        """
        Imports shared.clients.store.<engine>.<className> and instantiates it.

        Raises:
            ValueError: If the engine does not provide the class.
        """
        try:
            module = __import__(
                f"shared.clients.store.{engine.lower()}.{className}",
                fromlist=[className],
            )
            store_class = getattr(module, className)
        except (ImportError, AttributeError) as e:
            raise ValueError(f"Unsupported store engine specified: '{engine}'. Error: {e}")
        self.logging.debug("Instantiated %s for engine: %s", className, engine)
        return store_class(helper_config=self.helper_config)

    def get_document_store(self) -> DocumentStoreInterface:
        return self.document_store

    def get_blob_store(self) -> BlobStoreInterface:
        return self.blob_store
