"""Maximum bid for a wine lot.

preFeeMax = retail * (1 - riskSum) * drinkAdj * (1 - targetDiscount)
maxBid    = (preFeeMax - shipping) / (1 + buyersPremium + salesTax)
"""
from bidcap.calc.tables import RISK_DIMENSIONS, PricingTables
from bidcap.parse.models import BidCapRequest, BidCapResult


class UnknownHouseError(ValueError):
    """No fee row exists for the requested auction house."""

    def __init__(self, house: str):
        self.house = house
        super().__init__(f"No fees found for house: {house}")


def resolve_rates(
    request: BidCapRequest,
    stored_premium: float,
    tables: PricingTables,
    premium_excludes_vat: bool = False,
) -> tuple[float, float]:
    """
    Effective (buyer's premium, sales tax) for a request.

    Stored premiums are ex-VAT. With auto_tax, VAT is added on the premium
    for houses that quote it ex-VAT when delivering inside the EU, and sales
    tax only applies to US deliveries. Without auto_tax the stored premium
    and the supplied sales tax are used as-is.
    """
    supplied_tax = (
        request.sales_tax_rate if request.sales_tax_rate is not None else tables.sales_tax_default
    )
    if not request.auto_tax:
        return stored_premium, supplied_tax

    country = request.shipping_country
    premium = stored_premium
    if premium_excludes_vat and tables.is_eu(country):
        vat = tables.eu_vat.get(country, tables.default_eu_vat)
        premium = stored_premium * (1 + vat)

    tax = supplied_tax if country == "US" else 0.0
    return premium, tax


def compute_bid_cap(
    request: BidCapRequest,
    buyers_premium: float,
    tables: PricingTables,
    premium_excludes_vat: bool = False,
) -> BidCapResult:
    """Pure computation; buyers_premium is the stored rate for the house."""
    bp, tax = resolve_rates(request, buyers_premium, tables, premium_excludes_vat)
    target_discount = (
        request.target_discount
        if request.target_discount is not None
        else tables.target_discount_default
    )

    risk_sum = sum(
        tables.risk_deduction(dimension, getattr(request, dimension)) for dimension in RISK_DIMENSIONS
    )
    drink_adj = 1 + tables.drink_adjustment(request.drinkability)

    pre_fee_max = request.retail_anchor_usd * (1 - risk_sum) * drink_adj * (1 - target_discount)
    max_bid = (pre_fee_max - request.shipping_usd) / (1 + bp + tax)

    return BidCapResult(
        pre_fee_max=pre_fee_max,
        max_bid=max_bid,
        risk_sum=risk_sum,
        drink_adj=drink_adj,
        bp=bp,
        tax=tax,
        target_discount=target_discount,
    )
