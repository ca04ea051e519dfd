from abc import ABC, abstractmethod

from shared.helper.HelperConfig import HelperConfig


class BlobStoreInterface(ABC):
    """Stored original files. The engine only needs delete, for the document delete cascade."""

    def __init__(self, helper_config: HelperConfig):
        self.logging = helper_config.get_logger()

    @abstractmethod
    async def do_delete(self, storage_id: str) -> bool:
        """
        Deletes a stored blob.

        Returns:
            bool: True if a blob was removed, False if it did not exist.
        """
        pass
