# signfast/regions/utils.py

"""
Region validation and per-signer selection.

Regions are plain geometry; these helpers accept ORM rows and request
schemas alike since both expose the same attributes.
"""

import math
from typing import Iterable, List, Optional, TypeVar

from signfast.regions.exceptions import RegionValidationException
from signfast.regions.schemas import RegionType

R = TypeVar("R")

REGION_TYPES = {t.value for t in RegionType}


def _finite(value) -> bool:
    return isinstance(value, (int, float)) and math.isfinite(value)


def validate_region(region: R, number_of_signers: int, index: Optional[int] = None) -> R:
    """
    Check one region against the document it belongs to.

    Raises RegionValidationException when the box is empty or off the page
    origin, the page is below 1, the type is unknown, or the signer binding
    points outside [0, number_of_signers).
    """
    region_type = getattr(region.type, "value", region.type)
    if region_type not in REGION_TYPES:
        raise RegionValidationException(
            f"unknown type '{region_type}', expected one of {', '.join(sorted(REGION_TYPES))}", index
        )

    for attr in ("x", "y", "width", "height"):
        if not _finite(getattr(region, attr)):
            raise RegionValidationException(f"{attr} must be a finite number", index)

    if region.width <= 0 or region.height <= 0:
        raise RegionValidationException("width and height must be positive", index)
    if region.x < 0 or region.y < 0:
        raise RegionValidationException("x and y must not be negative", index)

    page_number = region.page_number if region.page_number is not None else 1
    if page_number < 1:
        raise RegionValidationException("page_number must be 1 or greater", index)

    if region.signer_index is not None and not 0 <= region.signer_index < number_of_signers:
        raise RegionValidationException(
            f"signer_index {region.signer_index} is outside 0..{number_of_signers - 1}", index
        )

    return region


def select_applicable(regions: Iterable[R], signer_index: int) -> List[R]:
    """Regions the given signer fills: unassigned ones plus those bound to them, in order."""
    return [
        region for region in regions
        if region.signer_index is None or region.signer_index == signer_index
    ]
