"""Tests for the bid-cap calculator."""
import pytest

from bidcap.calc.bidcap import compute_bid_cap, resolve_rates
from bidcap.calc.tables import RISK_DIMENSIONS, PricingTables
from bidcap.parse.models import BidCapRequest

BEST = {
    "fill_level": "Into-Neck",
    "capsule": "Pristine",
    "label": "Pristine",
    "seepage": "No",
    "storage": "Provenance Known",
    "mold": "No",
}


def _request(**overrides) -> BidCapRequest:
    data = {
        "auction_house": "Acker",
        "retail_anchor_usd": 150,
        "shipping_usd": 25,
        "sales_tax_rate": 0.095,
        "target_discount": 0.12,
        "drinkability": "Neutral",
        **BEST,
    }
    data.update(overrides)
    return BidCapRequest(**data)


def test_end_to_end_scenario():
    """Test the reference lot: 150 retail, 25 shipping, 20% premium, 9.5% tax."""
    result = compute_bid_cap(_request(), 0.20, PricingTables())

    assert result.risk_sum == 0
    assert result.drink_adj == 1
    assert result.pre_fee_max == pytest.approx(132.0)
    assert result.max_bid == pytest.approx(107 / 1.295)
    assert round(result.max_bid, 2) == 82.63
    assert result.bp == 0.20
    assert result.tax == 0.095
    assert result.target_discount == 0.12


def test_result_serializes_camel_case():
    """Test the wire names of the breakdown."""
    data = compute_bid_cap(_request(), 0.20, PricingTables()).model_dump(by_alias=True)
    assert set(data) == {"preFeeMax", "maxBid", "riskSum", "drinkAdj", "bp", "tax", "targetDiscount"}


@pytest.mark.parametrize("dimension", RISK_DIMENSIONS)
def test_unknown_label_contributes_zero(dimension):
    """Test that an unrecognized label in any dimension adds nothing."""
    result = compute_bid_cap(_request(**{dimension: "Something Else"}), 0.20, PricingTables())
    assert result.risk_sum == 0


def test_missing_or_null_labels_contribute_zero():
    """Test that omitted and null condition labels add nothing."""
    nulls = {dimension: None for dimension in RISK_DIMENSIONS}
    result = compute_bid_cap(_request(drinkability=None, **nulls), 0.20, PricingTables())
    assert result.risk_sum == 0
    assert result.drink_adj == 1

    bare = BidCapRequest(auction_house="Acker", retail_anchor_usd=100)
    assert compute_bid_cap(bare, 0.20, PricingTables()).risk_sum == 0


def test_risk_deductions_add_up():
    """Test that deductions from several dimensions are summed."""
    result = compute_bid_cap(
        _request(fill_level="Mid-Shoulder", label="Torn", mold="Yes"), 0.20, PricingTables()
    )
    assert result.risk_sum == pytest.approx(0.10 + 0.04 + 0.07)
    assert result.pre_fee_max == pytest.approx(150 * (1 - 0.21) * 0.88)


def test_drinkability_adjustment():
    """Test that a wine past its window is worth less."""
    result = compute_bid_cap(_request(drinkability="Late (Drink Up)"), 0.20, PricingTables())
    assert result.drink_adj == pytest.approx(0.95)
    assert compute_bid_cap(_request(drinkability="unknown"), 0.20, PricingTables()).drink_adj == 1


def test_default_target_discount():
    """Test the configured default when the request omits it."""
    result = compute_bid_cap(_request(target_discount=None), 0.20, PricingTables())
    assert result.target_discount == 0.12
    custom = PricingTables(target_discount_default=0.2)
    assert compute_bid_cap(_request(target_discount=None), 0.20, custom).target_discount == 0.2


def test_deterministic():
    """Test that identical inputs give identical results."""
    tables = PricingTables()
    request = _request(capsule="Scuffed")
    assert compute_bid_cap(request, 0.25, tables) == compute_bid_cap(request, 0.25, tables)


def test_client_premium_is_ignored():
    """Test that a buyers_premium field in the request is dropped."""
    request = _request(buyers_premium=0.0)
    assert not hasattr(request, "buyers_premium")
    assert compute_bid_cap(request, 0.20, PricingTables()).bp == 0.20


def test_substituted_tables():
    """Test that tables are passed in, not read from globals."""
    tables = PricingTables.from_dict({"risk_deductions": {"mold": {"No": 0.5}}})
    result = compute_bid_cap(_request(), 0.20, tables)
    assert result.risk_sum == 0.5


def test_tables_reject_unknown_dimension():
    """Test that table data with an unknown dimension is refused."""
    with pytest.raises(ValueError):
        PricingTables.from_dict({"risk_deductions": {"oxidation": {"None": 0.0}}})


def test_tables_from_json(tmp_path):
    """Test loading pricing tables from a JSON file."""
    path = tmp_path / "pricing.json"
    path.write_text('{"target_discount_default": 0.1, "drinkability_adjustment": {"Neutral": 0.01}}')
    tables = PricingTables.from_json(path)
    assert tables.target_discount_default == 0.1
    assert tables.drink_adjustment("Neutral") == 0.01
    # untouched keys keep defaults
    assert tables.risk_deduction("fill_level", "High-Shoulder") == 0.05


def test_resolve_rates_without_auto_tax():
    """Test passthrough of stored premium and supplied tax."""
    assert resolve_rates(_request(shipping_country="FR"), 0.21, PricingTables(), True) == (0.21, 0.095)
    assert resolve_rates(_request(sales_tax_rate=None), 0.21, PricingTables()) == (0.21, 0.0)


def test_resolve_rates_auto_tax_eu_vat_on_premium():
    """Test VAT on an ex-VAT premium for EU deliveries."""
    bp, tax = resolve_rates(_request(auto_tax=True, shipping_country="de"), 0.21, PricingTables(), True)
    assert bp == pytest.approx(0.21 * 1.19)
    assert tax == 0.0


def test_resolve_rates_auto_tax_house_without_vat_flag():
    """Test that houses quoting VAT-inclusive premiums are not grossed up."""
    bp, tax = resolve_rates(_request(auto_tax=True, shipping_country="FR"), 0.25, PricingTables(), False)
    assert (bp, tax) == (0.25, 0.0)


def test_resolve_rates_auto_tax_non_eu():
    """Test US keeps its sales tax, other non-EU destinations pay none."""
    assert resolve_rates(_request(auto_tax=True, shipping_country="US"), 0.21, PricingTables(), True) == (0.21, 0.095)
    assert resolve_rates(_request(auto_tax=True, shipping_country="UK"), 0.21, PricingTables(), True) == (0.21, 0.0)
