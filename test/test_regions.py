import math

import pytest

from signfast.regions.exceptions import RegionValidationException
from signfast.regions.schemas import RegionCreate
from signfast.regions.utils import select_applicable, validate_region


def region(**overrides):
    fields = dict(type="signature", x=10, y=20, width=100, height=40, page_number=1, signer_index=None)
    fields.update(overrides)
    return RegionCreate(**fields)


def test_valid_region_is_returned():
    r = region(signer_index=1)
    assert validate_region(r, number_of_signers=2) is r


@pytest.mark.parametrize("overrides, message", [
    ({"width": 0}, "width and height must be positive"),
    ({"height": -5}, "width and height must be positive"),
    ({"x": -1}, "x and y must not be negative"),
    ({"y": -0.5}, "x and y must not be negative"),
    ({"page_number": 0}, "page_number must be 1 or greater"),
    ({"type": "stamp"}, "unknown type 'stamp'"),
    ({"signer_index": 2}, "signer_index 2 is outside 0..1"),
    ({"signer_index": -1}, "signer_index -1 is outside 0..1"),
])
def test_invalid_regions_are_rejected(overrides, message):
    with pytest.raises(RegionValidationException) as exc_info:
        validate_region(region(**overrides), number_of_signers=2, index=3)
    assert message in str(exc_info.value)
    assert str(exc_info.value).startswith("Region 3: ")
    assert exc_info.value.status_code == 400


def test_non_finite_coordinates_are_rejected():
    with pytest.raises(RegionValidationException):
        validate_region(region(x=math.inf), number_of_signers=1)


def test_every_region_type_is_accepted():
    for region_type in ("signature", "name", "date", "business"):
        validate_region(region(type=region_type), number_of_signers=1)


def test_select_applicable_keeps_shared_and_own_regions_in_order():
    regions = [
        region(signer_index=0, x=1),
        region(signer_index=None, x=2),
        region(signer_index=1, x=3),
        region(signer_index=0, x=4),
    ]
    assert [r.x for r in select_applicable(regions, 0)] == [1, 2, 4]
    assert [r.x for r in select_applicable(regions, 1)] == [2, 3]
    assert [r.x for r in select_applicable(regions, 2)] == [2]


def test_select_applicable_with_no_regions():
    assert select_applicable([], 0) == []
