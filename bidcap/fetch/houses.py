"""Auction houses whose terms pages are verified, with their extraction rules."""
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import orjson

from bidcap.parse.extract import (
    BUYERS_PREMIUM_ANCHOR,
    ExtractionRule,
    FirstMatchRule,
    FirstOfRule,
    ProximityRule,
    QualifierRule,
    rule_from_dict,
)


@dataclass(frozen=True)
class HouseConfig:
    """Static configuration of one auction house."""

    name: str
    source_url: str
    rule: ExtractionRule
    # Stored premium is quoted before VAT, which applies on EU deliveries
    premium_excludes_vat: bool = False


HOUSES: tuple[HouseConfig, ...] = (
    HouseConfig(
        name="Acker",
        # FAQ is steadier than the terms page
        source_url="https://www.ackerwines.com/faq/",
        rule=ProximityRule(anchor=BUYERS_PREMIUM_ANCHOR),
    ),
    HouseConfig(
        name="Spectrum",
        source_url="https://www.spectrumwine.com/auctions/terms.aspx",
        rule=ProximityRule(anchor=r"buyer[’']?s (?:premium|commission)"),
    ),
    HouseConfig(
        name="WineBid",
        # Payment help has fewer stray percentages than the FAQ
        source_url="https://www.winebid.com/Help/Payment",
        rule=FirstOfRule(
            rules=(
                ProximityRule(anchor=BUYERS_PREMIUM_ANCHOR, anywhere_if_missing=False),
                FirstMatchRule(),
            )
        ),
    ),
    HouseConfig(
        name="iDealwine",
        # Page quotes both incl. and excl. VAT figures; we store excl.
        source_url="https://www.idealwine.com/en/corporate/conditions_generales",
        rule=FirstOfRule(
            rules=(
                QualifierRule(),
                ProximityRule(anchor=BUYERS_PREMIUM_ANCHOR, anywhere_if_missing=False),
                FirstMatchRule(),
            )
        ),
        premium_excludes_vat=True,
    ),
)


def house_from_dict(data: dict[str, Any]) -> HouseConfig:
    """Build a HouseConfig from configuration data."""
    missing = [key for key in ("name", "source_url", "rule") if key not in data]
    if missing:
        raise ValueError(f"House config missing {', '.join(missing)}: {data!r}")
    return HouseConfig(
        name=str(data["name"]),
        source_url=str(data["source_url"]),
        rule=rule_from_dict(data["rule"]),
        premium_excludes_vat=bool(data.get("premium_excludes_vat", False)),
    )


def load_houses(path: str | Path) -> tuple[HouseConfig, ...]:
    """Load a JSON list of house configs."""
    raw = orjson.loads(Path(path).read_bytes())
    if not isinstance(raw, list):
        raise ValueError(f"{path}: expected a JSON list of houses")
    houses = tuple(house_from_dict(item) for item in raw)
    names = [h.name for h in houses]
    if len(set(names)) != len(names):
        raise ValueError(f"{path}: duplicate house names")
    return houses


def find_house(name: str, houses: tuple[HouseConfig, ...] = HOUSES) -> HouseConfig | None:
    """Look up a house config by name."""
    for house in houses:
        if house.name == name:
            return house
    return None
