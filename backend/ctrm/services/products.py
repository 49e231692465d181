from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Literal, Optional


class Instrument(str, Enum):
    argus_ucome = "Argus UCOME"
    argus_rme = "Argus RME"
    argus_fame0 = "Argus FAME0"
    argus_hvo = "Argus HVO"
    platts_lsgo = "Platts LSGO"
    platts_diesel = "Platts Diesel"
    ice_gasoil_futures = "ICE GASOIL FUTURES"
    ice_gasoil_futures_efp = "ICE GASOIL FUTURES (EFP)"


ALL_INSTRUMENTS: tuple[str, ...] = tuple(i.value for i in Instrument)

# Names under which EFP pricing exposure may be recorded on a formula.
EFP_INSTRUMENT_VARIANTS: tuple[str, ...] = (
    Instrument.ice_gasoil_futures_efp.value,
    Instrument.ice_gasoil_futures.value,
    "EFP",
)

RelationshipType = Literal["FP", "DIFF", "SPREAD"]

# short code -> canonical instrument; exact, "<code> FP" and "<code>-..." forms map.
_BIODIESEL_CODES: tuple[tuple[str, Instrument], ...] = (
    ("UCOME", Instrument.argus_ucome),
    ("RME", Instrument.argus_rme),
    ("FAME0", Instrument.argus_fame0),
    ("HVO", Instrument.argus_hvo),
)


def map_product_to_canonical(product: Optional[str]) -> str:
    """Map a trade product/instrument label to its canonical pricing instrument.

    Unknown names are returned unchanged.
    """
    name = (product or "").strip()
    for code, instrument in _BIODIESEL_CODES:
        if name == code or name == f"{code} FP" or f"{code}-" in name:
            return instrument.value
    if "LSGO" in name:
        return Instrument.platts_lsgo.value
    if "diesel" in name.lower():
        return Instrument.platts_diesel.value
    return name


@dataclass(frozen=True)
class PaperInstrument:
    base_product: str
    relationship_type: RelationshipType = "FP"
    opposite_product: Optional[str] = None


def parse_paper_instrument(instrument: Optional[str]) -> PaperInstrument:
    """Split a paper instrument label into its products.

    ``"UCOME DIFF"`` is quoted against LSGO, ``"UCOME-FAME0 SPREAD"`` (or just
    ``"UCOME-FAME0"``) is a spread between two products, anything else is a
    fixed-price instrument.
    """
    label = (instrument or "").strip()
    if not label:
        return PaperInstrument(base_product="")

    if "DIFF" in label:
        base = label.replace(" DIFF", "").replace("DIFF", "").strip()
        return PaperInstrument(
            base_product=map_product_to_canonical(base),
            relationship_type="DIFF",
            opposite_product=Instrument.platts_lsgo.value,
        )

    if "SPREAD" in label or "-" in label:
        parts = [p.strip() for p in label.replace(" SPREAD", "").split("-") if p.strip()]
        if len(parts) >= 2:
            return PaperInstrument(
                base_product=map_product_to_canonical(parts[0]),
                relationship_type="SPREAD",
                opposite_product=map_product_to_canonical(parts[1]),
            )

    return PaperInstrument(base_product=map_product_to_canonical(label.replace(" FP", "")))


def is_biodiesel_product(product: str) -> bool:
    return "Argus" in product


def is_pricing_instrument_product(product: str) -> bool:
    return not is_biodiesel_product(product)


def split_product_groups(products: Iterable[str]) -> tuple[list[str], list[str]]:
    """(biodiesel, pricing instruments), order preserved."""
    biodiesel: list[str] = []
    pricing: list[str] = []
    for p in products:
        (biodiesel if is_biodiesel_product(p) else pricing).append(p)
    return biodiesel, pricing
