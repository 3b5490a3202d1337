# signfast/regions/schemas.py

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class RegionType(str, Enum):
    """What kind of value a region receives"""
    SIGNATURE = "signature"
    NAME = "name"
    DATE = "date"
    BUSINESS = "business"


class RegionCreate(BaseModel):
    """
    A region as submitted by the document owner. The type is kept as a plain
    string so unknown kinds surface as domain validation errors.
    """
    type: str
    x: float
    y: float
    width: float
    height: float
    page_number: int = 1
    label: Optional[str] = None
    signer_index: Optional[int] = None


class RegionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    type: str
    x: float
    y: float
    width: float
    height: float
    page_number: int
    label: Optional[str] = None
    signer_index: Optional[int] = None


class RegionLayoutRequest(BaseModel):
    """Full replacement of a document's regions"""
    regions: List[RegionCreate] = Field(..., min_length=1)
    number_of_signers: int = 1
