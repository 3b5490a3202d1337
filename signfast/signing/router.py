# signfast/signing/router.py

"""
FastAPI router for signature requests and the public signing endpoints.

Owner endpoints require a bearer token. The /sign/{token} endpoints are
authenticated by the signing token alone.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from signfast.core.exceptions import SignFastBaseException
from signfast.documents.schemas import DocumentResponse
from signfast.signing.schemas import (
    DeleteRequestResult, SignatureRequestCreate, SignatureRequestResult,
    SignatureSubmission, SigningSessionResponse, SubmissionResult,
)
from signfast.signing.services import SigningWorkflowService
from signfast.users.models import User
from signfast.users.utils import get_current_user
from signfast.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["Signing"])


@router.post(
    "/documents/{document_id}/send",
    response_model=SignatureRequestResult,
    status_code=status.HTTP_201_CREATED,
)
async def send_for_signature(
    document_id: int,
    request: SignatureRequestCreate,
    workflow: SigningWorkflowService = Depends(),
    current_user: User = Depends(get_current_user),
):
    """
    Create a signature request and email every signer their link.

    The owner can sign their own slot inline by passing self_signature.
    """
    try:
        return await workflow.create_request(
            document_id=document_id,
            owner_id=current_user.id,
            signers=request.signers,
            self_signature=request.self_signature,
        )
    except SignFastBaseException as e:
        logger.error("Signature request rejected", document_id=document_id, error_message=str(e))
        raise HTTPException(status_code=e.status_code, detail={"message": str(e)}) from e
    except Exception as e:
        logger.error("Error creating signature request", error_message=str(e), exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"message": "Failed to create signature request"}
        ) from e


@router.post(
    "/documents/{document_id}/requests/{request_id}/finalize",
    response_model=DocumentResponse,
)
async def finalize_document(
    document_id: int,
    request_id: str,
    workflow: SigningWorkflowService = Depends(),
    current_user: User = Depends(get_current_user),
):
    """Build the final signed document if an earlier attempt did not."""
    try:
        document = await workflow.finalize_document(document_id, request_id, current_user.id)
        return DocumentResponse.from_document(document)
    except SignFastBaseException as e:
        logger.error("Finalize rejected", document_id=document_id, error_message=str(e))
        raise HTTPException(status_code=e.status_code, detail={"message": str(e)}) from e


@router.delete("/signature-requests/{request_id}", response_model=DeleteRequestResult)
async def delete_signature_request(
    request_id: str,
    workflow: SigningWorkflowService = Depends(),
    current_user: User = Depends(get_current_user),
):
    """Withdraw a request that nobody has signed yet."""
    try:
        deleted_count = await workflow.delete_request(request_id, current_user.id)
        return DeleteRequestResult(
            message="Signature request deleted successfully",
            deleted_count=deleted_count,
        )
    except SignFastBaseException as e:
        logger.error("Signature request delete rejected", request_id=request_id, error_message=str(e))
        raise HTTPException(status_code=e.status_code, detail={"message": str(e)}) from e


@router.get("/sign/{token}", response_model=SigningSessionResponse)
async def get_signing_session(
    token: str,
    workflow: SigningWorkflowService = Depends(),
):
    """Document, regions and co-signer progress for a signing link."""
    try:
        return await workflow.get_signing_session(token)
    except SignFastBaseException as e:
        raise HTTPException(status_code=e.status_code, detail={"message": str(e)}) from e


@router.post("/sign/{token}", response_model=SubmissionResult)
async def submit_signature(
    token: str,
    submission: SignatureSubmission,
    workflow: SigningWorkflowService = Depends(),
):
    """Submit a signer's values for their regions."""
    try:
        return await workflow.submit_signature(
            token=token,
            signer_name=submission.signer_name,
            area_data=submission.area_data,
            signer_date=submission.signer_date,
        )
    except SignFastBaseException as e:
        logger.error("Signature submission rejected", error_message=str(e))
        raise HTTPException(status_code=e.status_code, detail={"message": str(e)}) from e
    except Exception as e:
        logger.error("Error submitting signature", error_message=str(e), exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"message": "Failed to submit signature"}
        ) from e
