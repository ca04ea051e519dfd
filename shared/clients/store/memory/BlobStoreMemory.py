from shared.clients.store.BlobStoreInterface import BlobStoreInterface
from shared.helper.HelperConfig import HelperConfig


class BlobStoreMemory(BlobStoreInterface):
    """In-process blob store keyed by storage id."""

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._blobs: dict[str, bytes] = {}

    def put(self, storage_id: str, data: bytes) -> None:
        self._blobs[storage_id] = data

    def exists(self, storage_id: str) -> bool:
        return storage_id in self._blobs

    async def do_delete(self, storage_id: str) -> bool:
        return self._blobs.pop(storage_id, None) is not None
