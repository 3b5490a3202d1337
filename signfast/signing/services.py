# signfast/signing/services.py

"""
Workflow orchestration for signature requests.

Creates requests, accepts signer submissions, renders per-signer and final
artifacts, and hands completed signatures to the usage meter and notifier.
Signer submissions are independent; the request completes when the last
member signs, whichever member that is.
"""

import asyncio
import json
import secrets
import uuid
from datetime import datetime, timezone
from typing import Any, Awaitable, Dict, List, Optional, Sequence, Tuple

from fastapi import Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from signfast.billing.services import UsageMeterService, get_usage_meter
from signfast.compositor import Placement, SignatureAnchor, render_document
from signfast.core.config import settings
from signfast.core.db import get_async_db
from signfast.core.exceptions import SignFastBaseException
from signfast.documents.models import Document
from signfast.documents.repository import DocumentRepository
from signfast.documents.services import get_document_repository, get_owned_document
from signfast.regions.schemas import RegionResponse
from signfast.regions.utils import select_applicable
from signfast.signing.exceptions import (
    ArtifactStorageException, SignatureAlreadySignedException,
    SignatureNotFoundException, SignatureRequestAccessDeniedException,
    SignatureRequestDeletedException, SignatureRequestIncompleteException,
    SignatureRequestNotFoundException, SignatureRequestValidationException,
    SignatureSubmissionValidationException,
)
from signfast.signing.models import Signature
from signfast.signing.repository import SignatureRepository
from signfast.signing.schemas import (
    SelfSignatureInput, SignatureRequestResult, SignatureSummary, SignerInput,
    SignerStatus, SigningSessionResponse, SubmissionResult,
)
from signfast.signing.state import (
    DocumentStatus, RequestStatus, SignatureStatus, aggregate_status,
    ensure_can_delete_request, ensure_can_send, ensure_can_submit,
)
from signfast.utils.email_service import EmailService, get_notifier
from signfast.utils.logger import get_logger
from signfast.utils.s3_utils import S3Utils, get_object_store

logger = get_logger(__name__)


def get_signature_repository(
    db: AsyncSession = Depends(get_async_db),
) -> SignatureRepository:
    """Dependency to get SignatureRepository instance."""
    return SignatureRepository(db)


def generate_signing_token() -> str:
    return secrets.token_urlsafe(32)


def signing_url(token: str) -> str:
    return f"{settings.sign_url_base}/{token}"


def region_value(area_data: Dict[str, Any], region) -> Any:
    """Look up a region's submitted value; JSON keys arrive as strings."""
    if str(region.id) in area_data:
        return area_data[str(region.id)]
    return area_data.get(region.id)


def signer_placements(regions: Sequence, signer_index: int, area_data: Dict[str, Any]) -> List[Placement]:
    """Pair each region this signer fills with the value they submitted for it."""
    return [
        Placement(region=region, value=region_value(area_data, region))
        for region in select_applicable(regions, signer_index)
    ]


class SigningWorkflowService:
    """
    Use-case layer for the signing workflow.
    """

    def __init__(
        self,
        repo: SignatureRepository = Depends(get_signature_repository),
        documents: DocumentRepository = Depends(get_document_repository),
        storage: S3Utils = Depends(get_object_store),
        notifier: EmailService = Depends(get_notifier),
        meter: UsageMeterService = Depends(get_usage_meter),
    ):
        self.repo = repo
        self.documents = documents
        self.storage = storage
        self.notifier = notifier
        self.meter = meter
        logger.debug("SigningWorkflowService initialized.")

    # === Request creation ===

    async def create_request(
        self,
        document_id: int,
        owner_id: int,
        signers: List[SignerInput],
        self_signature: Optional[SelfSignatureInput] = None,
    ) -> SignatureRequestResult:
        """
        Fan a document out to its signers under one request id.

        The owner may sign one slot inline; that slot gets no invitation.
        Nothing is written if validation, billing or the inline render fails.
        """
        logger.info(
            "Creating signature request",
            document_id=document_id,
            owner_id=owner_id,
            signer_count=len(signers),
        )

        # === Step 1: Load, lock and check the document ===
        document = await get_owned_document(self.documents, document_id, owner_id, for_update=True)
        ensure_can_send(document)

        # === Step 2: Validate signers against the layout ===
        if not document.regions:
            raise SignatureRequestValidationException(
                "Document has no signature areas. Configure them before sending."
            )
        if not signers:
            raise SignatureRequestValidationException("At least one signer is required")
        if len(signers) != document.number_of_signers:
            raise SignatureRequestValidationException(
                f"Document requires exactly {document.number_of_signers} signers, "
                f"but {len(signers)} were provided"
            )
        if self_signature is not None:
            if not 0 <= self_signature.signer_index < len(signers):
                raise SignatureRequestValidationException(
                    f"Self-signer index {self_signature.signer_index} is outside 0..{len(signers) - 1}"
                )
            self._validate_values(self_signature.signer_name, self_signature.area_data)

        # === Step 3: Billing gate ===
        await self.meter.ensure_can_send(owner_id)

        # === Step 4: Create one signature per signer ===
        request_id = uuid.uuid4().hex
        rows = [
            Signature(
                document=document,
                request_id=request_id,
                signer_index=index,
                signer_email=signer.email,
                signer_name=signer.name,
                status=SignatureStatus.PENDING.value,
                token=generate_signing_token(),
                created_by=owner_id,
            )
            for index, signer in enumerate(signers)
        ]

        self_row = None
        stored_key = None
        claimed = False
        try:
            await self.repo.create_signatures(rows)

            # === Step 5: Inline self-signature ===
            if self_signature is not None:
                self_row = rows[self_signature.signer_index]
                original = await self._fetch_original(document)
                stored_key = await self._store_signer_artifact(
                    document, self_row, self_signature.area_data, original
                )
                self_row.status = SignatureStatus.SIGNED.value
                self_row.signer_name = self_signature.signer_name.strip()
                self_row.signer_date = self_signature.signer_date
                self_row.signature_data = json.dumps(self_signature.area_data)
                self_row.signed_file_key = stored_key
                self_row.signed_at = datetime.now(timezone.utc)

            # === Step 6: Document moves to sent, or straight to completed ===
            await self.documents.set_status(document, DocumentStatus.SENT.value)
            if aggregate_status(rows) == RequestStatus.COMPLETE:
                claimed = await self.documents.claim_completion(document.id)

            await self.repo.commit()
        except Exception:
            await self.repo.rollback()
            if stored_key:
                await self._discard(stored_key)
            raise

        logger.info("Signature request created", request_id=request_id, document_id=document.id)

        # Side effects below may roll the session back, which expires loaded rows
        document_id = document.id
        document_status = DocumentStatus.COMPLETED.value if claimed else document.status
        self_signature_id = self_row.id if self_row is not None else None
        summaries = [SignatureSummary.model_validate(row) for row in rows]
        title = document.title
        sender_name = document.owner.name or document.owner.email_address
        invitations = [
            (row.signer_email, row.signer_name, row.token)
            for row in rows if row is not self_row
        ]

        # === Step 7: Post-commit side effects ===
        if self_signature_id is not None:
            await self._meter(owner_id, document_id, self_signature_id)
        if claimed:
            await self._complete_request(document_id, request_id)

        jobs = [
            (
                email,
                self.notifier.send_signing_request(
                    to_email=email,
                    signer_name=name,
                    document_title=title,
                    sender_name=sender_name,
                    signing_url=signing_url(token),
                ),
            )
            for email, name, token in invitations
        ]
        failed = await self._dispatch("signing request", jobs)

        return SignatureRequestResult(
            request_id=request_id,
            document_id=document_id,
            document_status=document_status,
            signatures=summaries,
            notifications_failed=failed,
        )

    # === Signer-facing ===

    async def get_signing_session(self, token: str) -> SigningSessionResponse:
        """What a signer sees when opening their link."""
        signature = await self.repo.get_by_token(token)
        if signature is None:
            raise SignatureNotFoundException()
        if signature.status == SignatureStatus.DELETED.value:
            raise SignatureRequestDeletedException(signature.request_id)

        document = signature.document
        members = await self.repo.get_request_signatures(signature.request_id)

        view_key = document.original_file_key
        if signature.status == SignatureStatus.SIGNED.value and signature.signed_file_key:
            view_key = signature.signed_file_key
        document_url = await asyncio.to_thread(self.storage.generate_presigned_url, view_key)

        return SigningSessionResponse(
            document_id=document.id,
            document_title=document.title,
            document_status=document.status,
            document_url=document_url,
            current_signature=SignatureSummary.model_validate(signature),
            regions=[
                RegionResponse.model_validate(r)
                for r in select_applicable(document.regions, signature.signer_index)
            ],
            signers=[SignerStatus.model_validate(m) for m in members],
        )

    async def submit_signature(
        self,
        token: str,
        signer_name: str,
        area_data: Dict[str, Any],
        signer_date: Optional[str] = None,
    ) -> SubmissionResult:
        """
        Accept one signer's values.

        The per-signer artifact must render and store before anything is
        committed. Marking the signer signed, re-reading the request and
        claiming completion happen in one transaction under the document lock.
        """
        # === Step 1: Validate the submission ===
        self._validate_values(signer_name, area_data)

        # === Step 2: Resolve the token ===
        signature = ensure_can_submit(await self.repo.get_by_token(token))
        document = signature.document
        signature_id = signature.id
        request_id = signature.request_id
        document_id = document.id
        owner_id = document.owner_id
        logger.info(
            "Processing signature submission",
            signature_id=signature_id,
            request_id=request_id,
            document_id=document_id,
        )

        # === Step 3: Per-signer artifact ===
        original = await self._fetch_original(document)
        key = await self._store_signer_artifact(document, signature, area_data, original)

        # === Step 4: Transition and completion check ===
        request_status = RequestStatus.INCOMPLETE
        claimed = False
        try:
            await self.documents.get_document_by_id(document_id, for_update=True)
            updated = await self.repo.mark_signed(
                signature_id,
                signer_name=signer_name.strip(),
                signer_date=signer_date,
                signature_data=json.dumps(area_data),
                signed_file_key=key,
                signed_at=datetime.now(timezone.utc),
            )
            if updated:
                members = await self.repo.get_request_signatures(request_id, for_update=True)
                request_status = aggregate_status(members)
                if request_status == RequestStatus.COMPLETE:
                    claimed = await self.documents.claim_completion(document_id)
                await self.repo.commit()
            else:
                await self.repo.rollback()
        except Exception:
            await self.repo.rollback()
            await self._discard(key)
            raise

        if not updated:
            # Another submission or a withdrawal got there first
            await self._discard(key)
            ensure_can_submit(await self.repo.get_by_token(token))
            raise SignatureAlreadySignedException(signature_id)

        logger.info(
            "Signature submitted",
            signature_id=signature_id,
            request_id=request_id,
            request_status=request_status.value,
        )

        # === Step 5: Usage metering ===
        billed = await self._meter(owner_id, document_id, signature_id)

        # === Step 6: Finalize once per request ===
        if claimed:
            await self._complete_request(document_id, request_id)

        return SubmissionResult(
            signature_id=signature_id,
            request_id=request_id,
            request_status=request_status.value,
            document_completed=request_status == RequestStatus.COMPLETE,
            billed=billed,
        )

    # === Owner actions ===

    async def delete_request(self, request_id: str, requesting_user_id: int) -> int:
        """
        Withdraw a request nobody has signed yet.

        Returns the number of signatures marked deleted. The document goes
        back to draft so it can be sent again.
        """
        members = await self.repo.get_request_signatures(request_id, include_deleted=True)
        if not members:
            raise SignatureRequestNotFoundException(request_id)

        try:
            document = await self.documents.get_document_by_id(members[0].document_id, for_update=True)
            if document is None:
                raise SignatureRequestNotFoundException(request_id)
            if document.owner_id != requesting_user_id:
                logger.warning(
                    "Signature request delete denied", request_id=request_id, user_id=requesting_user_id
                )
                raise SignatureRequestAccessDeniedException(request_id)

            # Re-read under the lock so a concurrent submission is seen
            members = await self.repo.get_request_signatures(
                request_id, include_deleted=True, for_update=True
            )
            ensure_can_delete_request(request_id, members)

            deleted_count = await self.repo.mark_request_deleted(request_id)
            if document.status == DocumentStatus.SENT.value:
                await self.documents.set_status(document, DocumentStatus.DRAFT.value)
            await self.repo.commit()
        except Exception:
            await self.repo.rollback()
            raise

        logger.info("Signature request deleted", request_id=request_id, deleted_count=deleted_count)
        return deleted_count

    async def finalize_document(self, document_id: int, request_id: str, owner_id: int) -> Document:
        """
        Produce the final merged artifact if it is missing.

        Safe to call repeatedly: a document that already has its final file
        is returned unchanged.
        """
        document = await get_owned_document(self.documents, document_id, owner_id)
        members = await self.repo.get_request_signatures(request_id)
        if not members or any(m.document_id != document_id for m in members):
            raise SignatureRequestNotFoundException(request_id)
        if aggregate_status(members) != RequestStatus.COMPLETE:
            raise SignatureRequestIncompleteException(request_id)

        if document.final_file_key:
            logger.info("Final document already present", document_id=document_id)
            return document

        try:
            await self.documents.claim_completion(document.id)
            await self._build_final(document, request_id, members)
        except Exception:
            await self.documents.rollback()
            raise
        return document

    # === Helpers ===

    def _validate_values(self, signer_name: Optional[str], area_data: Optional[Dict[str, Any]]) -> None:
        if not signer_name or not signer_name.strip():
            raise SignatureSubmissionValidationException("Signer name is required")
        if not area_data:
            raise SignatureSubmissionValidationException("Area data is required")

    async def _fetch_original(self, document: Document) -> bytes:
        data = await asyncio.to_thread(self.storage.download_file, document.original_file_key)
        if data is None:
            raise ArtifactStorageException(document.original_file_key, "fetch")
        return data

    async def _store(self, key: str, data: bytes) -> str:
        uploaded = await asyncio.to_thread(self.storage.upload_file, data, key, "application/pdf")
        if not uploaded:
            raise ArtifactStorageException(key)
        return key

    async def _discard(self, key: str) -> None:
        deleted = await asyncio.to_thread(self.storage.delete_file, key)
        if not deleted:
            logger.warning("Could not remove orphaned artifact", key=key)

    async def _store_signer_artifact(
        self, document: Document, signature: Signature, area_data: Dict[str, Any], original: bytes
    ) -> str:
        placements = signer_placements(document.regions, signature.signer_index, area_data)
        rendered = render_document(original, placements, SignatureAnchor.BOTTOM_LEFT)
        key = f"signed/{document.id}/{signature.request_id}/{signature.id}-{uuid.uuid4().hex[:8]}.pdf"
        return await self._store(key, rendered)

    async def _build_final(self, document: Document, request_id: str, members: Sequence[Signature]) -> bytes:
        """Render every member's values onto one fresh copy and record it on the document."""
        original = await self._fetch_original(document)
        placements: List[Placement] = []
        for member in members:
            placements.extend(signer_placements(document.regions, member.signer_index, member.area_data))

        rendered = render_document(original, placements, SignatureAnchor.CENTER)
        key = await self._store(f"signed/{document.id}/final-{request_id}.pdf", rendered)
        await self.documents.set_final_file_key(document, key)
        await self.documents.commit()

        logger.info("Final document stored", document_id=document.id, request_id=request_id, key=key)
        return rendered

    async def _complete_request(self, document_id: int, request_id: str) -> None:
        """
        Build the final artifact and notify every party.

        The document is already committed as completed; failures here are
        logged and leave the final file missing for finalize_document to retry.
        """
        document = await self.documents.get_document_by_id(document_id)
        members = await self.repo.get_request_signatures(request_id)

        final_bytes = None
        try:
            final_bytes = await self._build_final(document, request_id, members)
        except (SignFastBaseException, SQLAlchemyError) as e:
            await self.documents.rollback()
            logger.error(
                "Final document render failed",
                document_id=document_id,
                request_id=request_id,
                error_message=str(e),
                exc_info=True,
            )
            document = await self.documents.get_document_by_id(document_id)
            members = await self.repo.get_request_signatures(request_id)

        await self._notify_completion(document, members, final_bytes)

    async def _notify_completion(
        self, document: Document, members: Sequence[Signature], final_bytes: Optional[bytes]
    ) -> int:
        download_url = None
        if document.final_file_key:
            download_url = await asyncio.to_thread(
                self.storage.generate_presigned_url, document.final_file_key
            )
        if not download_url:
            download_url = f"{settings.app_base_url.rstrip('/')}/dashboard/documents/{document.id}"

        if final_bytes and len(final_bytes) > settings.max_email_attachment_kb * 1024:
            logger.warning(
                "Final document too large to attach, sending link only",
                document_id=document.id,
                size=len(final_bytes),
            )
            final_bytes = None

        recipients: List[Tuple[str, Optional[str]]] = [
            (document.owner.email_address, document.owner.name or "Document Owner")
        ]
        recipients.extend((m.signer_email, m.signer_name or "Signer") for m in members)

        seen = set()
        jobs = []
        for email, name in recipients:
            if not email or email.lower() in seen:
                continue
            seen.add(email.lower())
            jobs.append((
                email,
                self.notifier.send_document_completed(
                    to_email=email,
                    recipient_name=name,
                    document_title=document.title,
                    download_url=download_url,
                    attachment=final_bytes,
                ),
            ))
        return await self._dispatch("completion", jobs)

    async def _dispatch(self, kind: str, jobs: List[Tuple[str, Awaitable]]) -> int:
        """Send notifications concurrently. Returns how many failed."""
        if not jobs:
            return 0
        results = await asyncio.gather(*(job for _, job in jobs), return_exceptions=True)
        failed = 0
        for (recipient, _), result in zip(jobs, results):
            if isinstance(result, Exception):
                failed += 1
                logger.error(
                    "Notification failed", kind=kind, recipient=recipient, error_message=str(result)
                )
        logger.info("Notifications dispatched", kind=kind, sent=len(jobs) - failed, failed=failed)
        return failed

    async def _meter(self, owner_id: int, document_id: int, signature_id: int) -> bool:
        """Record usage; a metering failure never fails the signature."""
        try:
            result = await self.meter.record_completion(owner_id, document_id, signature_id)
            return result.billed
        except (SignFastBaseException, SQLAlchemyError) as e:
            await self.repo.rollback()
            logger.error(
                "Usage metering failed",
                owner_id=owner_id,
                signature_id=signature_id,
                error_message=str(e),
                exc_info=True,
            )
            return False
