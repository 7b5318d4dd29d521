from datetime import datetime, timedelta, timezone
from typing import BinaryIO, List, Optional, Union

from azure.core.exceptions import AzureError, ResourceExistsError, ResourceNotFoundError
from azure.storage.blob import (
    BlobServiceClient,
    ContentSettings,
    generate_blob_sas,
    BlobSasPermissions,
)

from ..config import settings
from ..errors import ObjectNotFound, StorageError
from .provider import StorageProvider


class BlobStorageProvider(StorageProvider):
    """Azure Blob backend; each bucket maps to a container of the same name."""

    def __init__(self) -> None:
        if not settings.azure_blob_connection:
            raise RuntimeError("AZURE_BLOB_CONNECTION must be set")
        self._service = BlobServiceClient.from_connection_string(settings.azure_blob_connection)

    def _blob(self, bucket: str, key: str):
        return self._service.get_blob_client(bucket, key.lstrip("/"))

    def upload(
        self,
        bucket: str,
        key: str,
        data: Union[bytes, BinaryIO],
        content_type: str = "application/octet-stream",
        upsert: bool = False,
    ) -> None:
        try:
            self._blob(bucket, key).upload_blob(
                data,
                overwrite=upsert,
                content_settings=ContentSettings(content_type=content_type),
            )
        except ResourceExistsError:
            raise StorageError("The resource already exists")
        except AzureError as e:
            raise StorageError(str(e))

    def get_public_url(self, bucket: str, key: str) -> str:
        return self._blob(bucket, key).url

    def get_download_url(self, bucket: str, key: str, expires_s: int) -> Optional[str]:
        expiry = datetime.now(timezone.utc) + timedelta(seconds=expires_s)
        sas = generate_blob_sas(
            account_name=self._service.account_name,
            container_name=bucket,
            blob_name=key.lstrip("/"),
            account_key=self._service.credential.account_key,
            permission=BlobSasPermissions(read=True),
            expiry=expiry,
        )
        return f"{self._blob(bucket, key).url}?{sas}"

    def exists(self, bucket: str, key: str) -> bool:
        try:
            return self._blob(bucket, key).exists()
        except AzureError as e:
            raise StorageError(str(e))

    def list(self, bucket: str, prefix: str = "") -> List[dict]:
        container = self._service.get_container_client(bucket)
        prefix = prefix.strip("/")
        prefix = f"{prefix}/" if prefix else ""
        try:
            items = container.walk_blobs(name_starts_with=prefix, delimiter="/")
            out = []
            for item in items:
                name = item.name[len(prefix):]
                is_folder = name.endswith("/")
                out.append({
                    "name": name.rstrip("/"),
                    "is_folder": is_folder,
                    "size": None if is_folder else getattr(item, "size", None),
                })
            return out
        except ResourceNotFoundError:
            return []
        except AzureError as e:
            raise StorageError(str(e))

    def delete(self, bucket: str, key: str) -> None:
        try:
            self._blob(bucket, key).delete_blob()
        except ResourceNotFoundError:
            raise ObjectNotFound("Object not found")
        except AzureError as e:
            raise StorageError(str(e))
