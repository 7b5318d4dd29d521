from typing import BinaryIO, List, Optional, Union


class StorageProvider:
    """
    Object storage addressed by (bucket, key).

    ``delete`` raises ``ObjectNotFound`` for a missing object and
    ``StorageError`` for any other backend failure.
    """

    def upload(
        self,
        bucket: str,
        key: str,
        data: Union[bytes, BinaryIO],
        content_type: str = "application/octet-stream",
        upsert: bool = False,
    ) -> None:
        raise NotImplementedError

    def get_public_url(self, bucket: str, key: str) -> str:
        raise NotImplementedError

    def get_download_url(self, bucket: str, key: str, expires_s: int) -> Optional[str]:
        raise NotImplementedError

    def exists(self, bucket: str, key: str) -> bool:
        raise NotImplementedError

    def list(self, bucket: str, prefix: str = "") -> List[dict]:
        raise NotImplementedError

    def delete(self, bucket: str, key: str) -> None:
        raise NotImplementedError
