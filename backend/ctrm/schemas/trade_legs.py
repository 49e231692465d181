import json
import logging
import math
from datetime import date
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ctrm.services.month_codes import parse_iso_date, standardize_month_code

logger = logging.getLogger("ctrm.trade_legs")

BuySell = Literal["buy", "sell"]
PricingType = Literal["standard", "efp", "fixed"]
RelationshipType = Literal["FP", "DIFF", "SPREAD"]

_BUY_SELL = ("buy", "sell")
_PRICING_TYPES = ("standard", "efp", "fixed")
_RELATIONSHIP_TYPES = ("FP", "DIFF", "SPREAD")

QuantityMap = Dict[str, float]
DistributionMap = Dict[str, Dict[str, float]]


def _to_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        f = float(value)
    except (TypeError, ValueError):
        return None
    return f if math.isfinite(f) else None


def _choice(value: Any, allowed: tuple, default: str, *, field: str) -> str:
    """Normalized ``value`` when it is one of ``allowed``, else ``default``."""
    if value is None or str(value).strip() == "":
        return default
    if value in allowed:
        return value
    logger.warning("leg_value_unrecognized", extra={"field": field, "value": str(value)})
    return default


def clean_quantity_map(value: Any, *, field: str) -> QuantityMap:
    """Instrument -> number; non-numeric entries are dropped and logged."""
    if value is None:
        return {}
    if not isinstance(value, dict):
        logger.warning("quantity_map_malformed", extra={"field": field, "type": type(value).__name__})
        return {}
    out: QuantityMap = {}
    for key, raw in value.items():
        qty = _to_float(raw)
        if qty is None:
            logger.warning("quantity_map_value_dropped", extra={"field": field, "key": str(key)})
            continue
        out[str(key)] = qty
    return out


def clean_distribution_map(value: Any, *, field: str) -> Optional[DistributionMap]:
    """Instrument -> (month code | ISO date) -> number. Empty maps become None."""
    if value is None:
        return None
    if not isinstance(value, dict):
        logger.warning("distribution_malformed", extra={"field": field, "type": type(value).__name__})
        return None
    out: DistributionMap = {}
    for instrument, values in value.items():
        cleaned = clean_quantity_map(values, field=f"{field}.{instrument}")
        if cleaned:
            out[str(instrument)] = cleaned
    return out or None


# ---------------------------------------------------------------------------
# Pricing formula tokens
# ---------------------------------------------------------------------------


class InstrumentToken(BaseModel):
    type: Literal["instrument"] = "instrument"
    value: str
    id: Optional[str] = None


class FixedValueToken(BaseModel):
    type: Literal["fixedValue"] = "fixedValue"
    value: Union[float, str]
    id: Optional[str] = None


class PercentageToken(BaseModel):
    type: Literal["percentage"] = "percentage"
    value: Union[float, str]
    id: Optional[str] = None


class OperatorToken(BaseModel):
    type: Literal["operator"] = "operator"
    value: str
    id: Optional[str] = None


class OpenBracketToken(BaseModel):
    type: Literal["openBracket"] = "openBracket"
    value: str = "("
    id: Optional[str] = None


class CloseBracketToken(BaseModel):
    type: Literal["closeBracket"] = "closeBracket"
    value: str = ")"
    id: Optional[str] = None


FormulaToken = Annotated[
    Union[
        InstrumentToken,
        FixedValueToken,
        PercentageToken,
        OperatorToken,
        OpenBracketToken,
        CloseBracketToken,
    ],
    Field(discriminator="type"),
]

_TOKEN_TYPES = {"instrument", "fixedValue", "percentage", "operator", "openBracket", "closeBracket"}


class FormulaExposures(BaseModel):
    physical: QuantityMap = Field(default_factory=dict)
    pricing: QuantityMap = Field(default_factory=dict)
    paper: QuantityMap = Field(default_factory=dict)

    @field_validator("physical", "pricing", "paper", mode="before")
    @classmethod
    def _clean(cls, value, info):
        return clean_quantity_map(value, field=f"exposures.{info.field_name}")


class PricingFormula(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    tokens: List[FormulaToken] = Field(default_factory=list)
    exposures: FormulaExposures = Field(default_factory=FormulaExposures)
    monthly_distribution: Optional[DistributionMap] = Field(
        default=None, alias="monthlyDistribution"
    )
    daily_distribution: Optional[DistributionMap] = Field(default=None, alias="dailyDistribution")

    @field_validator("tokens", mode="before")
    @classmethod
    def _drop_unknown_tokens(cls, value):
        if not isinstance(value, list):
            return []
        kept = [t for t in value if isinstance(t, dict) and t.get("type") in _TOKEN_TYPES]
        if len(kept) != len(value):
            logger.warning("formula_tokens_dropped", extra={"dropped": len(value) - len(kept)})
        return kept

    @field_validator("exposures", mode="before")
    @classmethod
    def _default_exposures(cls, value):
        return value if isinstance(value, (dict, FormulaExposures)) else {}

    @field_validator("monthly_distribution", "daily_distribution", mode="before")
    @classmethod
    def _clean_distribution(cls, value, info):
        return clean_distribution_map(value, field=info.field_name)


def coerce_pricing_formula(value: Any) -> PricingFormula:
    """Parse a stored pricing formula, falling back to an empty one."""
    if isinstance(value, PricingFormula):
        return value
    if value is None or value == "":
        return PricingFormula()
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            logger.warning("pricing_formula_unparseable")
            return PricingFormula()
    if not isinstance(value, dict):
        logger.warning("pricing_formula_malformed", extra={"type": type(value).__name__})
        return PricingFormula()
    try:
        return PricingFormula.model_validate(value)
    except ValidationError as exc:
        logger.warning("pricing_formula_invalid", extra={"errors": exc.error_count()})
        return PricingFormula()


# ---------------------------------------------------------------------------
# Trade legs
# ---------------------------------------------------------------------------


class _TradeLegBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[Union[int, str]] = None
    leg_reference: Optional[str] = None
    buy_sell: BuySell = "buy"
    product: str = ""
    quantity: float = 0.0
    trading_period: Optional[str] = None

    @field_validator("buy_sell", mode="before")
    @classmethod
    def _normalize_buy_sell(cls, value):
        normalized = str(value).strip().lower() if value is not None else None
        return _choice(normalized, _BUY_SELL, "buy", field="buy_sell")

    @field_validator("product", mode="before")
    @classmethod
    def _normalize_product(cls, value):
        return "" if value is None else str(value)

    @field_validator("quantity", mode="before")
    @classmethod
    def _lenient_quantity(cls, value):
        qty = _to_float(value)
        if qty is None:
            if value not in (None, ""):
                logger.warning("leg_quantity_invalid", extra={"value": str(value)})
            return 0.0
        return qty

    @field_validator("trading_period", mode="before")
    @classmethod
    def _standardize_trading_period(cls, value):
        if value is None or str(value).strip() == "":
            return None
        return standardize_month_code(str(value))

    @property
    def direction(self) -> int:
        return 1 if self.buy_sell == "buy" else -1

    @property
    def signed_quantity(self) -> float:
        return self.quantity * self.direction


class PhysicalTradeLeg(_TradeLegBase):
    pricing_formula: PricingFormula = Field(default_factory=PricingFormula)
    loading_period_start: Optional[date] = None
    loading_period_end: Optional[date] = None
    pricing_period_start: Optional[date] = None
    pricing_period_end: Optional[date] = None
    pricing_type: PricingType = "standard"
    efp_designated_month: Optional[str] = None
    efp_agreed_status: Optional[bool] = None

    @field_validator("pricing_formula", mode="before")
    @classmethod
    def _coerce_formula(cls, value):
        return coerce_pricing_formula(value)

    @field_validator(
        "loading_period_start",
        "loading_period_end",
        "pricing_period_start",
        "pricing_period_end",
        mode="before",
    )
    @classmethod
    def _lenient_date(cls, value, info):
        if value is None or value == "":
            return None
        parsed = parse_iso_date(value)
        if parsed is None:
            logger.warning("leg_date_invalid", extra={"field": info.field_name, "value": str(value)})
        return parsed

    @field_validator("pricing_type", mode="before")
    @classmethod
    def _normalize_pricing_type(cls, value):
        normalized = str(value).strip().lower() if value is not None else None
        return _choice(normalized, _PRICING_TYPES, "standard", field="pricing_type")

    @field_validator("efp_designated_month", mode="before")
    @classmethod
    def _standardize_efp_month(cls, value):
        if value is None or str(value).strip() == "":
            return None
        return standardize_month_code(str(value))

    @property
    def is_efp(self) -> bool:
        return self.pricing_type == "efp"


class RightSide(BaseModel):
    product: Optional[str] = None
    quantity: Optional[float] = None
    price: Optional[float] = None

    @field_validator("product", mode="before")
    @classmethod
    def _normalize_product(cls, value):
        if value is None or str(value).strip() == "":
            return None
        return str(value)

    @field_validator("quantity", "price", mode="before")
    @classmethod
    def _lenient_number(cls, value, info):
        number = _to_float(value)
        if number is None and value not in (None, ""):
            logger.warning(
                "right_side_value_invalid", extra={"field": info.field_name, "value": str(value)}
            )
        return number


class PaperExposures(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    physical: QuantityMap = Field(default_factory=dict)
    paper: QuantityMap = Field(default_factory=dict)
    pricing: QuantityMap = Field(default_factory=dict)
    paper_daily_distribution: Optional[DistributionMap] = Field(
        default=None, alias="paperDailyDistribution"
    )
    pricing_daily_distribution: Optional[DistributionMap] = Field(
        default=None, alias="pricingDailyDistribution"
    )
    daily_distribution: Optional[DistributionMap] = Field(default=None, alias="dailyDistribution")

    @field_validator("physical", "paper", "pricing", mode="before")
    @classmethod
    def _clean(cls, value, info):
        return clean_quantity_map(value, field=f"exposures.{info.field_name}")

    @field_validator(
        "paper_daily_distribution",
        "pricing_daily_distribution",
        "daily_distribution",
        mode="before",
    )
    @classmethod
    def _clean_distribution(cls, value, info):
        return clean_distribution_map(value, field=info.field_name)

    def is_empty(self) -> bool:
        return not (self.physical or self.paper or self.pricing)

    @property
    def paper_daily(self) -> Optional[DistributionMap]:
        return self.paper_daily_distribution or self.daily_distribution

    @property
    def pricing_daily(self) -> Optional[DistributionMap]:
        return self.pricing_daily_distribution or self.daily_distribution


class PaperTradeLeg(_TradeLegBase):
    period: Optional[str] = None
    instrument: Optional[str] = None
    relationship_type: RelationshipType = Field(default="FP", alias="relationshipType")
    right_side: Optional[RightSide] = Field(default=None, alias="rightSide")
    exposures: PaperExposures = Field(default_factory=PaperExposures)

    @field_validator("period", mode="before")
    @classmethod
    def _standardize_period(cls, value):
        if value is None or str(value).strip() == "":
            return None
        return standardize_month_code(str(value))

    @field_validator("relationship_type", mode="before")
    @classmethod
    def _normalize_relationship(cls, value):
        normalized = str(value).strip().upper() if value is not None else None
        return _choice(normalized, _RELATIONSHIP_TYPES, "FP", field="relationship_type")

    @field_validator("right_side", mode="before")
    @classmethod
    def _coerce_right_side(cls, value):
        if value is None or isinstance(value, (dict, RightSide)):
            return value
        logger.warning("right_side_malformed", extra={"type": type(value).__name__})
        return None

    @field_validator("exposures", mode="before")
    @classmethod
    def _coerce_exposures(cls, value):
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except json.JSONDecodeError:
                logger.warning("paper_exposures_unparseable")
                return {}
        return value if isinstance(value, (dict, PaperExposures)) else {}

    @property
    def month(self) -> Optional[str]:
        return self.period or self.trading_period
