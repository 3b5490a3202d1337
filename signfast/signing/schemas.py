# signfast/signing/schemas.py

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from signfast.regions.schemas import RegionResponse


class SignerInput(BaseModel):
    """A recipient of a signature request, in signer_index order."""
    email: EmailStr
    name: Optional[str] = None


class SelfSignatureInput(BaseModel):
    """Values the owner submits for their own slot when sending."""
    signer_index: int
    signer_name: str
    signer_date: Optional[str] = None
    area_data: Dict[str, Any]


class SignatureRequestCreate(BaseModel):
    signers: List[SignerInput] = Field(default_factory=list)
    self_signature: Optional[SelfSignatureInput] = None


class SignatureSubmission(BaseModel):
    """
    A signer's values keyed by region id. Each value is either the raw value
    or an object of the form {"type": ..., "data": ...}.
    """
    signer_name: str
    signer_date: Optional[str] = None
    area_data: Dict[str, Any] = Field(default_factory=dict)


class SignatureSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    request_id: str
    signer_index: int
    signer_email: str
    signer_name: Optional[str] = None
    status: str
    signed_at: Optional[datetime] = None


class SignerStatus(BaseModel):
    """What one signer may see about their co-signers."""
    model_config = ConfigDict(from_attributes=True)

    signer_index: int
    signer_name: Optional[str] = None
    status: str
    signed_at: Optional[datetime] = None


class SignatureRequestResult(BaseModel):
    request_id: str
    document_id: int
    document_status: str
    signatures: List[SignatureSummary]
    notifications_failed: int = 0


class SigningSessionResponse(BaseModel):
    document_id: int
    document_title: str
    document_status: str
    document_url: Optional[str] = None
    current_signature: SignatureSummary
    regions: List[RegionResponse]
    signers: List[SignerStatus]


class SubmissionResult(BaseModel):
    message: str = "Document signed successfully"
    signature_id: int
    request_id: str
    request_status: str
    document_completed: bool
    billed: bool = False


class DeleteRequestResult(BaseModel):
    message: str
    deleted_count: int
