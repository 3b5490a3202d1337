# signfast/documents/schemas.py

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from signfast.regions.schemas import RegionResponse
from signfast.signing.schemas import SignatureSummary


class DocumentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    file_name: str
    mime_type: str
    file_size: int
    number_of_signers: int
    status: str
    has_final_document: bool = False
    created_on: Optional[datetime] = None
    regions: List[RegionResponse] = []
    signatures: List[SignatureSummary] = []

    @classmethod
    def from_document(cls, document) -> "DocumentResponse":
        """Build the response, hiding deleted signature rows and storage keys."""
        return cls(
            id=document.id,
            title=document.title,
            file_name=document.file_name,
            mime_type=document.mime_type,
            file_size=document.file_size,
            number_of_signers=document.number_of_signers,
            status=document.status,
            has_final_document=bool(document.final_file_key),
            created_on=document.created_on,
            regions=[RegionResponse.model_validate(r) for r in document.regions],
            signatures=[
                SignatureSummary.model_validate(s)
                for s in document.signatures if s.status != "deleted"
            ],
        )


class DocumentListResponse(BaseModel):
    items: List[DocumentResponse]
    total: int
