"""Uploads to the backend's object storage."""

from uuid import uuid4

import structlog

from gestao_contas.backend import BackendClient, BackendError
from gestao_contas.context import SessionContext
from gestao_contas.errors import UploadError
from gestao_contas.models import UploadFile

logger = structlog.get_logger(__name__)


class StorageUploader:
    """Stores files under the session's per-user, per-context folder."""

    def __init__(self, client: BackendClient, context: SessionContext):
        self._client = client
        self.context = context

    def object_path(self, filename: str) -> str:
        """A fresh collision-free path for ``filename``."""
        return f"{self.context.storage_prefix}/{uuid4()}-{filename}"

    async def upload(self, bucket: str, file: UploadFile) -> str:
        """Upload one file and return its public URL.

        Raises:
            UploadError: The backend rejected the upload.
        """
        path = self.object_path(file.filename)
        try:
            await self._client.upload(bucket, path, file.content, file.content_type)
        except BackendError as e:
            logger.error("upload_failed", bucket=bucket, filename=file.filename, error=str(e))
            raise UploadError(file.filename, str(e)) from e

        url = self._client.public_url(bucket, path)
        logger.info("file_uploaded", bucket=bucket, filename=file.filename, size=len(file.content))
        return url
