"""Lookup tables used by the bid-cap calculator."""
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping, Optional

import orjson

# The six condition dimensions, in display order
RISK_DIMENSIONS = ("fill_level", "capsule", "label", "seepage", "storage", "mold")

DEFAULT_RISK_DEDUCTIONS: dict[str, dict[str, float]] = {
    "fill_level": {"Into-Neck": 0.0, "High-Shoulder": 0.05, "Mid-Shoulder": 0.10},
    "capsule": {"Pristine": 0.0, "Scuffed": 0.02, "Torn/Seepage": 0.08},
    "label": {"Pristine": 0.0, "Bin-Soiled": 0.02, "Torn": 0.04},
    "seepage": {"No": 0.0, "Yes": 0.07},
    "storage": {"Provenance Known": 0.0, "Unknown/Questionable": 0.05},
    "mold": {"No": 0.0, "Yes": 0.07},
}

DEFAULT_DRINKABILITY_ADJUSTMENT: dict[str, float] = {
    "Prime Now": 0.03,
    "Neutral": 0.0,
    "Early (Needs Time)": -0.03,
    "Late (Drink Up)": -0.05,
}

# Standard VAT rates of EU member states
DEFAULT_EU_VAT: dict[str, float] = {
    "FR": 0.20, "DE": 0.19, "ES": 0.21, "IT": 0.22, "NL": 0.21, "BE": 0.21, "LU": 0.17,
    "DK": 0.25, "SE": 0.25, "FI": 0.24, "IE": 0.23, "PT": 0.23, "AT": 0.20, "PL": 0.23,
    "CZ": 0.21, "HU": 0.27, "RO": 0.19, "BG": 0.20, "HR": 0.25, "SI": 0.22, "SK": 0.20,
    "GR": 0.24, "EE": 0.22, "LV": 0.21, "LT": 0.21,
}


def _freeze(data: Mapping[str, Any]) -> Mapping[str, Any]:
    return MappingProxyType(
        {k: _freeze(v) if isinstance(v, Mapping) else float(v) for k, v in data.items()}
    )


@dataclass(frozen=True)
class PricingTables:
    """Immutable calculator configuration, built once and passed explicitly."""

    risk_deductions: Mapping[str, Mapping[str, float]] = field(
        default_factory=lambda: _freeze(DEFAULT_RISK_DEDUCTIONS)
    )
    drinkability_adjustment: Mapping[str, float] = field(
        default_factory=lambda: _freeze(DEFAULT_DRINKABILITY_ADJUSTMENT)
    )
    eu_vat: Mapping[str, float] = field(default_factory=lambda: _freeze(DEFAULT_EU_VAT))
    default_eu_vat: float = 0.20
    target_discount_default: float = 0.12
    sales_tax_default: float = 0.0

    def risk_deduction(self, dimension: str, label: Optional[str]) -> float:
        """Deduction for a label; unknown dimensions, unknown or missing labels count as 0."""
        return self.risk_deductions.get(dimension, {}).get(label, 0.0)

    def drink_adjustment(self, label: Optional[str]) -> float:
        return self.drinkability_adjustment.get(label, 0.0)

    def is_eu(self, country: str) -> bool:
        return country in self.eu_vat

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PricingTables":
        """Build tables from config data; omitted keys keep their defaults."""
        defaults = cls()
        risk = data.get("risk_deductions")
        if risk is not None:
            unknown = set(risk) - set(RISK_DIMENSIONS)
            if unknown:
                raise ValueError(f"Unknown risk dimensions: {', '.join(sorted(unknown))}")
        return cls(
            risk_deductions=_freeze(risk) if risk is not None else defaults.risk_deductions,
            drinkability_adjustment=_freeze(data["drinkability_adjustment"])
            if "drinkability_adjustment" in data
            else defaults.drinkability_adjustment,
            eu_vat=_freeze(data["eu_vat"]) if "eu_vat" in data else defaults.eu_vat,
            default_eu_vat=float(data.get("default_eu_vat", defaults.default_eu_vat)),
            target_discount_default=float(
                data.get("target_discount_default", defaults.target_discount_default)
            ),
            sales_tax_default=float(data.get("sales_tax_default", defaults.sales_tax_default)),
        )

    @classmethod
    def from_json(cls, path: str | Path) -> "PricingTables":
        return cls.from_dict(orjson.loads(Path(path).read_bytes()))
