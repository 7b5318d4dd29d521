from ..config import settings
from .blob_provider import BlobStorageProvider
from .local_provider import LocalStorageProvider
from .provider import StorageProvider


def get_storage() -> StorageProvider:
    """
    Get storage provider based on configuration.
    Azure Blob when selected and configured, local filesystem otherwise.
    """
    if settings.storage_provider == "blob" and settings.azure_blob_connection:
        return BlobStorageProvider()
    return LocalStorageProvider()
