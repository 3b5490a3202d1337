# signfast/documents/services.py

"""
Business logic for document upload, layout configuration, retrieval and deletion.
"""

import asyncio
import uuid
from pathlib import Path
from typing import List, Optional, Tuple

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from signfast.core.config import settings
from signfast.core.db import get_async_db
from signfast.documents.exceptions import (
    DocumentAccessDeniedException, DocumentDeletionBlockedException,
    DocumentLayoutLockedException, DocumentNotFoundException,
    DocumentStorageException, InvalidDocumentFileException,
    SignedDocumentUnavailableException,
)
from signfast.documents.models import Document
from signfast.documents.repository import DocumentRepository
from signfast.regions.exceptions import SignerCountException
from signfast.regions.models import SignatureArea
from signfast.regions.schemas import RegionCreate
from signfast.regions.utils import validate_region
from signfast.signing.state import DocumentStatus, SignatureStatus, can_delete_document, has_signed
from signfast.utils.file_utils import validate_file
from signfast.utils.logger import get_logger
from signfast.utils.s3_utils import S3Utils, get_object_store

logger = get_logger(__name__)


def get_document_repository(
    db: AsyncSession = Depends(get_async_db),
) -> DocumentRepository:
    """Dependency to get DocumentRepository instance."""
    return DocumentRepository(db)


async def get_owned_document(
    repo: DocumentRepository, document_id: int, owner_id: int, for_update: bool = False
) -> Document:
    """Load a document and check the caller owns it."""
    document = await repo.get_document_by_id(document_id, for_update=for_update)
    if not document:
        raise DocumentNotFoundException(document_id)
    if document.owner_id != owner_id:
        logger.warning("Document access denied", document_id=document_id, user_id=owner_id)
        raise DocumentAccessDeniedException(document_id)
    return document


class DocumentService:
    """
    Business logic layer for Documents.
    """

    def __init__(
        self,
        repo: DocumentRepository = Depends(get_document_repository),
        storage: S3Utils = Depends(get_object_store),
    ):
        self.repo = repo
        self.storage = storage
        logger.debug("DocumentService initialized.")

    # === Upload ===

    async def upload_document(
        self,
        owner_id: int,
        filename: str,
        data: bytes,
        title: Optional[str] = None,
        content_type: Optional[str] = None,
    ) -> Document:
        """Store a PDF and create its draft document record."""
        is_valid, error = validate_file(filename, data)
        if not is_valid:
            logger.error("Invalid file", error_message=error, owner_id=owner_id)
            raise InvalidDocumentFileException(error)

        extension = Path(filename).suffix.lower()
        key = f"documents/{owner_id}/{uuid.uuid4().hex}{extension}"

        uploaded = await asyncio.to_thread(
            self.storage.upload_file, data, key, content_type or "application/pdf"
        )
        if not uploaded:
            raise DocumentStorageException(key, "upload")

        try:
            document = Document(
                owner_id=owner_id,
                title=(title or Path(filename).stem).strip() or Path(filename).stem,
                file_name=filename,
                original_file_key=key,
                mime_type=content_type or "application/pdf",
                file_size=len(data),
                number_of_signers=1,
                status=DocumentStatus.DRAFT.value,
                created_by=owner_id,
                regions=[],
                signatures=[],
            )
            document = await self.repo.create_document(document)
            await self.repo.commit()
        except Exception:
            await self.repo.rollback()
            await asyncio.to_thread(self.storage.delete_file, key)
            raise

        logger.info("Document uploaded", document_id=document.id, key=key, size=len(data))
        return document

    # === Layout ===

    async def configure_regions(
        self,
        document_id: int,
        owner_id: int,
        regions: List[RegionCreate],
        number_of_signers: int,
    ) -> Document:
        """
        Replace the document's regions and signer count.

        Discards every signature row of the document and returns it to draft.
        """
        if not 1 <= number_of_signers <= settings.max_signers_per_document:
            raise SignerCountException(number_of_signers, settings.max_signers_per_document)

        for index, region in enumerate(regions):
            validate_region(region, number_of_signers, index)

        document = await get_owned_document(self.repo, document_id, owner_id, for_update=True)
        if has_signed(document.signatures):
            raise DocumentLayoutLockedException(document_id)

        new_regions = [
            SignatureArea(
                type=getattr(region.type, "value", region.type),
                x=region.x,
                y=region.y,
                width=region.width,
                height=region.height,
                page_number=region.page_number or 1,
                label=region.label,
                signer_index=region.signer_index,
                created_by=owner_id,
            )
            for region in regions
        ]

        try:
            document = await self.repo.replace_layout(document, new_regions, number_of_signers)
            document.modified_by = owner_id
            await self.repo.commit()
        except Exception:
            await self.repo.rollback()
            raise

        return document

    # === Retrieval ===

    async def get_document(self, document_id: int, owner_id: int) -> Document:
        return await get_owned_document(self.repo, document_id, owner_id)

    async def list_documents(
        self, owner_id: int, status: Optional[str] = None
    ) -> Tuple[List[Document], int]:
        return await self.repo.list_documents(owner_id, status)

    async def download_document(
        self, document_id: int, owner_id: int, signed: bool = False
    ) -> Tuple[bytes, str]:
        """Return the original file, or the final signed artifact, and a download name."""
        document = await get_owned_document(self.repo, document_id, owner_id)

        if signed:
            if not document.final_file_key:
                raise SignedDocumentUnavailableException(document_id)
            key = document.final_file_key
            filename = f"{Path(document.file_name).stem}-signed.pdf"
        else:
            key = document.original_file_key
            filename = document.file_name

        data = await asyncio.to_thread(self.storage.download_file, key)
        if data is None:
            raise DocumentStorageException(key, "download")
        return data, filename

    # === Deletion ===

    async def delete_document(self, document_id: int, owner_id: int) -> None:
        """
        Delete a document that has no outstanding signers.

        Stored files are removed best-effort after the rows are gone.
        """
        document = await get_owned_document(self.repo, document_id, owner_id, for_update=True)

        active = [s for s in document.signatures if s.status != SignatureStatus.DELETED.value]
        if not can_delete_document(document.status, active):
            raise DocumentDeletionBlockedException(document_id, document.status)

        keys = [document.original_file_key, document.final_file_key]
        keys.extend(s.signed_file_key for s in document.signatures)
        keys = [key for key in keys if key]

        try:
            await self.repo.delete_document(document)
            await self.repo.commit()
        except Exception:
            await self.repo.rollback()
            raise

        for key in keys:
            deleted = await asyncio.to_thread(self.storage.delete_file, key)
            if not deleted:
                logger.warning("Could not delete stored file", document_id=document_id, key=key)
