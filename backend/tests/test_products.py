import pytest

from ctrm.services import products
from ctrm.services.products import Instrument


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("UCOME", "Argus UCOME"),
        ("UCOME FP", "Argus UCOME"),
        ("UCOME-5", "Argus UCOME"),
        ("RME", "Argus RME"),
        ("FAME0", "Argus FAME0"),
        ("HVO FP", "Argus HVO"),
        ("LSGO", "Platts LSGO"),
        ("Platts LSGO", "Platts LSGO"),
        ("diesel", "Platts Diesel"),
        ("Platts Diesel", "Platts Diesel"),
        ("ICE GASOIL FUTURES", "ICE GASOIL FUTURES"),
        ("Mystery Grade", "Mystery Grade"),
    ],
)
def test_map_product_to_canonical(raw, expected):
    assert products.map_product_to_canonical(raw) == expected


def test_map_product_to_canonical_handles_empty():
    assert products.map_product_to_canonical(None) == ""


def test_parse_paper_instrument_fp():
    parsed = products.parse_paper_instrument("UCOME FP")
    assert parsed.base_product == "Argus UCOME"
    assert parsed.relationship_type == "FP"
    assert parsed.opposite_product is None


def test_parse_paper_instrument_diff_quotes_against_lsgo():
    parsed = products.parse_paper_instrument("RME DIFF")
    assert parsed.base_product == "Argus RME"
    assert parsed.relationship_type == "DIFF"
    assert parsed.opposite_product == Instrument.platts_lsgo.value


def test_parse_paper_instrument_spread():
    parsed = products.parse_paper_instrument("UCOME-FAME0 SPREAD")
    assert parsed.base_product == "Argus UCOME"
    assert parsed.relationship_type == "SPREAD"
    assert parsed.opposite_product == "Argus FAME0"


def test_split_product_groups_preserves_order():
    biodiesel, pricing = products.split_product_groups(products.ALL_INSTRUMENTS)
    assert biodiesel == ["Argus UCOME", "Argus RME", "Argus FAME0", "Argus HVO"]
    assert pricing == [
        "Platts LSGO",
        "Platts Diesel",
        "ICE GASOIL FUTURES",
        "ICE GASOIL FUTURES (EFP)",
    ]
