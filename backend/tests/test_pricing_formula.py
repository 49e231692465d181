from datetime import date

from ctrm.schemas.trade_legs import PhysicalTradeLeg, PricingFormula, coerce_pricing_formula
from ctrm.services import pricing_formula

EFP = "ICE GASOIL FUTURES (EFP)"


def _tokens(*items):
    return PricingFormula.model_validate({"tokens": list(items)}).tokens


# =============================================================================
# Formula parsing
# =============================================================================


def test_formula_tokens_are_typed():
    formula = PricingFormula.model_validate(
        {
            "tokens": [
                {"type": "instrument", "value": "Argus UCOME"},
                {"type": "operator", "value": "+"},
                {"type": "fixedValue", "value": 25},
            ]
        }
    )
    assert [t.type for t in formula.tokens] == ["instrument", "operator", "fixedValue"]
    assert formula.exposures.physical == {}
    assert formula.exposures.pricing == {}


def test_formula_drops_unknown_tokens_and_bad_numbers():
    formula = PricingFormula.model_validate(
        {
            "tokens": [{"type": "instrument", "value": "Platts LSGO"}, {"type": "magic"}],
            "exposures": {"pricing": {"Platts LSGO": "-100", "Argus RME": "n/a"}},
        }
    )
    assert len(formula.tokens) == 1
    assert formula.exposures.pricing == {"Platts LSGO": -100.0}


def test_coerce_pricing_formula_from_json_string():
    formula = coerce_pricing_formula('{"exposures": {"physical": {"Argus UCOME": 1000}}}')
    assert formula.exposures.physical == {"Argus UCOME": 1000.0}


def test_coerce_pricing_formula_falls_back_on_garbage():
    assert coerce_pricing_formula("{not json") == PricingFormula()
    assert coerce_pricing_formula(42) == PricingFormula()
    assert coerce_pricing_formula(None) == PricingFormula()


def test_formula_to_string():
    tokens = _tokens(
        {"type": "openBracket"},
        {"type": "instrument", "value": "Argus UCOME"},
        {"type": "operator", "value": "*"},
        {"type": "percentage", "value": 80},
        {"type": "closeBracket"},
    )
    assert pricing_formula.formula_to_string(tokens) == "( Argus UCOME * 80% )"


# =============================================================================
# Exposure derivation
# =============================================================================


def test_calculate_formula_exposures_buy():
    tokens = _tokens(
        {"type": "instrument", "value": "Argus UCOME"},
        {"type": "operator", "value": "+"},
        {"type": "instrument", "value": "Platts LSGO"},
    )
    exposures = pricing_formula.calculate_formula_exposures(tokens, 1000, "buy", "Argus UCOME")
    assert exposures.physical == {"Argus UCOME": 1000}
    assert exposures.pricing == {"Argus UCOME": -1000, "Platts LSGO": -1000}


def test_calculate_formula_exposures_repeated_instrument_accumulates():
    tokens = _tokens(
        {"type": "instrument", "value": "Platts LSGO"},
        {"type": "operator", "value": "+"},
        {"type": "instrument", "value": "Platts LSGO"},
    )
    exposures = pricing_formula.calculate_formula_exposures(tokens, 500, "sell")
    assert exposures.physical == {}
    assert exposures.pricing == {"Platts LSGO": 1000}


def test_build_daily_distribution_business_days_only():
    daily = pricing_formula.build_daily_distribution(300, date(2024, 3, 1), date(2024, 3, 4))
    assert daily == {"2024-03-01": 150, "2024-03-04": 150}


def test_build_month_daily_distribution_invalid_code():
    assert pricing_formula.build_month_daily_distribution(100, "Foo-24") == {}


def test_build_monthly_distribution():
    monthly = pricing_formula.build_monthly_distribution(
        {"Argus UCOME": -700}, date(2024, 2, 26), date(2024, 3, 4)
    )
    assert monthly == {"Argus UCOME": {"Feb-24": -466.67, "Mar-24": -233.33}}


# =============================================================================
# EFP
# =============================================================================


def test_efp_unagreed_buy_gets_short_futures_exposure():
    formula = pricing_formula.build_efp_formula(1000, "buy", agreed=False, designated_month="Mar-24")
    assert formula.exposures.pricing == {EFP: -1000}
    daily = formula.daily_distribution[EFP]
    assert len(daily) == 21
    assert abs(sum(daily.values()) + 1000) < 1e-6


def test_efp_agreed_has_no_futures_exposure():
    existing = PricingFormula.model_validate(
        {
            "exposures": {"pricing": {"ICE GASOIL FUTURES": -1000, "Argus UCOME": -1000}},
            "dailyDistribution": {EFP: {"2024-03-01": -1000}},
        }
    )
    formula = pricing_formula.build_efp_formula(
        1000, "buy", agreed=True, designated_month="Mar-24", formula=existing
    )
    assert formula.exposures.pricing == {"Argus UCOME": -1000}
    assert formula.daily_distribution is None


def test_efp_unagreed_sell_is_long():
    formula = pricing_formula.build_efp_formula(400, "sell", agreed=False, designated_month=None)
    assert formula.exposures.pricing == {EFP: 400}
    assert formula.daily_distribution is None


# =============================================================================
# Trade preparation
# =============================================================================


def test_prepare_physical_formula_derives_and_distributes():
    leg = PhysicalTradeLeg.model_validate(
        {
            "buy_sell": "buy",
            "product": "UCOME",
            "quantity": 700,
            "pricing_formula": {"tokens": [{"type": "instrument", "value": "Argus UCOME"}]},
            "pricing_period_start": "2024-02-26",
            "pricing_period_end": "2024-03-04",
        }
    )
    formula = pricing_formula.prepare_physical_formula(leg)
    assert formula.exposures.physical == {"Argus UCOME": 700}
    assert formula.exposures.pricing == {"Argus UCOME": -700}
    assert formula.monthly_distribution == {"Argus UCOME": {"Feb-24": -466.67, "Mar-24": -233.33}}
    assert len(formula.daily_distribution["Argus UCOME"]) == 6


def test_prepare_physical_formula_keeps_existing_exposures():
    leg = PhysicalTradeLeg.model_validate(
        {
            "product": "RME",
            "quantity": 100,
            "pricing_formula": {
                "tokens": [{"type": "instrument", "value": "Platts LSGO"}],
                "exposures": {"physical": {"Argus RME": 90}, "pricing": {"Platts LSGO": -90}},
            },
        }
    )
    formula = pricing_formula.prepare_physical_formula(leg)
    assert formula.exposures.physical == {"Argus RME": 90}
    assert formula.exposures.pricing == {"Platts LSGO": -90}
    assert formula.daily_distribution is None
    assert formula.monthly_distribution is None


def test_prepare_physical_formula_efp_leg():
    leg = PhysicalTradeLeg.model_validate(
        {
            "buy_sell": "sell",
            "product": "UCOME",
            "quantity": 500,
            "pricing_type": "EFP",
            "efp_agreed_status": False,
            "efp_designated_month": "Apr 24",
        }
    )
    formula = pricing_formula.prepare_physical_formula(leg)
    assert formula.exposures.physical == {"Argus UCOME": -500}
    assert formula.exposures.pricing == {EFP: 500}
    assert set(formula.daily_distribution) == {EFP}
