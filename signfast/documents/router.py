# signfast/documents/router.py

"""
FastAPI router for document upload, layout and lifecycle endpoints.
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from fastapi.responses import JSONResponse, Response

from signfast.core.exceptions import SignFastBaseException
from signfast.documents.schemas import DocumentListResponse, DocumentResponse
from signfast.documents.services import DocumentService
from signfast.regions.schemas import RegionLayoutRequest
from signfast.users.models import User
from signfast.users.utils import get_current_user
from signfast.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/documents", tags=["Documents"])


@router.post("/upload", response_model=DocumentResponse, status_code=status.HTTP_201_CREATED)
async def upload_document(
    file: UploadFile = File(...),
    title: Optional[str] = Form(None),
    document_service: DocumentService = Depends(),
    current_user: User = Depends(get_current_user),
):
    """Upload a PDF and create a draft document."""
    try:
        data = await file.read()
        document = await document_service.upload_document(
            owner_id=current_user.id,
            filename=file.filename,
            data=data,
            title=title,
            content_type=file.content_type,
        )
        return DocumentResponse.from_document(document)
    except SignFastBaseException as e:
        logger.error("Document upload rejected", error_message=str(e))
        raise HTTPException(status_code=e.status_code, detail={"message": str(e)}) from e
    except Exception as e:
        logger.error("Error uploading document", error_message=str(e), exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"message": "Failed to upload document"}
        ) from e


@router.get("", response_model=DocumentListResponse)
async def list_documents(
    status_filter: Optional[str] = Query(None, alias="status", description="draft, sent or completed"),
    document_service: DocumentService = Depends(),
    current_user: User = Depends(get_current_user),
):
    """List the current user's documents."""
    documents, total = await document_service.list_documents(current_user.id, status_filter)
    return DocumentListResponse(
        items=[DocumentResponse.from_document(d) for d in documents],
        total=total,
    )


@router.get("/{document_id}", response_model=DocumentResponse)
async def get_document(
    document_id: int,
    document_service: DocumentService = Depends(),
    current_user: User = Depends(get_current_user),
):
    """Get a document with its regions and signer statuses."""
    try:
        document = await document_service.get_document(document_id, current_user.id)
        return DocumentResponse.from_document(document)
    except SignFastBaseException as e:
        raise HTTPException(status_code=e.status_code, detail={"message": str(e)}) from e


@router.put("/{document_id}/signature-areas", response_model=DocumentResponse)
async def configure_signature_areas(
    document_id: int,
    layout: RegionLayoutRequest,
    document_service: DocumentService = Depends(),
    current_user: User = Depends(get_current_user),
):
    """
    Replace the document's signature areas.

    Any existing signature request on the document is discarded and the
    document returns to draft.
    """
    try:
        logger.info(
            "Configuring signature areas",
            document_id=document_id,
            user_id=current_user.id,
            region_count=len(layout.regions),
        )
        document = await document_service.configure_regions(
            document_id, current_user.id, layout.regions, layout.number_of_signers
        )
        return DocumentResponse.from_document(document)
    except SignFastBaseException as e:
        logger.error("Signature area update rejected", document_id=document_id, error_message=str(e))
        raise HTTPException(status_code=e.status_code, detail={"message": str(e)}) from e
    except Exception as e:
        logger.error("Error saving signature areas", error_message=str(e), exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"message": "Failed to save signature areas"}
        ) from e


@router.get("/{document_id}/download")
async def download_document(
    document_id: int,
    signed: bool = Query(False, description="Download the final signed copy"),
    document_service: DocumentService = Depends(),
    current_user: User = Depends(get_current_user),
):
    """Download the original PDF or its final signed copy."""
    try:
        data, filename = await document_service.download_document(
            document_id, current_user.id, signed=signed
        )
        return Response(
            content=data,
            media_type="application/pdf",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )
    except SignFastBaseException as e:
        raise HTTPException(status_code=e.status_code, detail={"message": str(e)}) from e


@router.delete("/{document_id}")
async def delete_document(
    document_id: int,
    document_service: DocumentService = Depends(),
    current_user: User = Depends(get_current_user),
):
    """Delete a draft or completed document and its stored files."""
    try:
        await document_service.delete_document(document_id, current_user.id)
        return JSONResponse(
            status_code=status.HTTP_200_OK,
            content={"message": "Document deleted successfully", "document_id": document_id},
        )
    except SignFastBaseException as e:
        logger.error("Document deletion rejected", document_id=document_id, error_message=str(e))
        raise HTTPException(status_code=e.status_code, detail={"message": str(e)}) from e
    except Exception as e:
        logger.error("Error deleting document", error_message=str(e), exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"message": "Failed to delete document"}
        ) from e
