"""Buyer's-premium extraction from page text.

Terms pages are prose, not data, so each house gets a small rule describing
where its percentage usually sits. Rules are plain frozen dataclasses; the
``extract`` function interprets them. They can also be built from dicts
(``rule_from_dict``) so a new house only needs configuration.

Every rule returns a decimal fraction (``23.5%`` gives ``0.235``) or None.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Optional, Union

logger = logging.getLogger(__name__)

# 1-2 digits, optional single decimal, optional space, then "%".
# The lookbehind keeps "2.25%" or "125%" from matching on their tails.
PERCENT_PATTERN = re.compile(r"(?<![\d.])(\d{1,2}(?:\.\d)?)\s?%")

BUYERS_PREMIUM_ANCHOR = r"buyer[’']?s premium"


@dataclass(frozen=True)
class ProximityRule:
    """First percentage within ``window`` characters of an anchor phrase."""

    anchor: str = BUYERS_PREMIUM_ANCHOR
    window: int = 300
    anywhere_if_missing: bool = True


@dataclass(frozen=True)
class FirstMatchRule:
    """First percentage anywhere in the text."""


@dataclass(frozen=True)
class QualifierRule:
    """Percentage closest to a qualifier word such as "excluding (VAT)"."""

    qualifier: str = r"\bexcl(?:uding|\.|\b)"
    reach: int = 40


@dataclass(frozen=True)
class PatternRule:
    """Explicit regex; group 1 is the number, scaled by ``multiplier``."""

    regex: str
    multiplier: float = 0.01


@dataclass(frozen=True)
class FirstOfRule:
    """Try each rule in order; the first non-None result wins."""

    rules: tuple = field(default_factory=tuple)


ExtractionRule = Union[ProximityRule, FirstMatchRule, QualifierRule, PatternRule, FirstOfRule]


def parse_percent(raw: str) -> Optional[float]:
    """Convert a matched numeral like "23.5" to 0.235."""
    try:
        return float(raw) / 100
    except (TypeError, ValueError):
        return None


def first_percent(text: str) -> Optional[float]:
    """First percentage anywhere in text."""
    match = PERCENT_PATTERN.search(text or "")
    if not match:
        return None
    return parse_percent(match.group(1))


def percent_near(
    text: str,
    anchor: str,
    window: int = 300,
    anywhere_if_missing: bool = True,
) -> Optional[float]:
    """
    First percentage in a symmetric window around the first
    case-insensitive occurrence of anchor.
    """
    if not text:
        return None
    found = re.search(anchor, text, re.IGNORECASE)
    if not found:
        return first_percent(text) if anywhere_if_missing else None
    idx = found.start()
    hay = text[max(0, idx - window) : idx + window]
    return first_percent(hay)


def percent_by_qualifier(text: str, qualifier: str, reach: int = 40) -> Optional[float]:
    """
    Percentage closest to a qualifier occurrence.
    Only percentages within reach characters of a qualifier count;
    the earliest one wins a tie.
    """
    if not text:
        return None
    qualifiers = [m.span() for m in re.finditer(qualifier, text, re.IGNORECASE)]
    if not qualifiers:
        return None

    best: Optional[tuple[int, int, str]] = None
    for match in PERCENT_PATTERN.finditer(text):
        start, end = match.span()
        distance = min(
            (q_start - end) if q_start >= end else (start - q_end) if q_end <= start else 0
            for q_start, q_end in qualifiers
        )
        if distance > reach:
            continue
        if best is None or distance < best[0]:
            best = (distance, start, match.group(1))

    if best is None:
        return None
    return parse_percent(best[2])


def percent_by_pattern(text: str, regex: str, multiplier: float = 0.01) -> Optional[float]:
    """Apply an explicit regex whose first group is the number."""
    match = re.search(regex, text or "")
    if not match or not match.groups() or match.group(1) is None:
        return None
    try:
        return float(match.group(1)) * multiplier
    except ValueError:
        logger.debug(f"Pattern {regex!r} matched non-numeric {match.group(1)!r}")
        return None


def extract(text: str, rule: ExtractionRule) -> Optional[float]:
    """Run an extraction rule over normalized page text."""
    if isinstance(rule, ProximityRule):
        return percent_near(text, rule.anchor, rule.window, rule.anywhere_if_missing)
    if isinstance(rule, FirstMatchRule):
        return first_percent(text)
    if isinstance(rule, QualifierRule):
        return percent_by_qualifier(text, rule.qualifier, rule.reach)
    if isinstance(rule, PatternRule):
        return percent_by_pattern(text, rule.regex, rule.multiplier)
    if isinstance(rule, FirstOfRule):
        for sub_rule in rule.rules:
            value = extract(text, sub_rule)
            if value is not None:
                return value
        return None
    raise TypeError(f"Unknown extraction rule: {rule!r}")


def rule_from_dict(data: dict[str, Any]) -> ExtractionRule:
    """
    Build a rule from configuration data.

    Examples:
        {"type": "proximity", "anchor": "buyer'?s premium", "window": 300}
        {"type": "first_of", "rules": [{"type": "qualifier"}, {"type": "first"}]}
    """
    if not isinstance(data, dict) or "type" not in data:
        raise ValueError(f"Extraction rule must be a dict with a 'type': {data!r}")

    kind = data["type"]
    options = {k: v for k, v in data.items() if k != "type"}
    try:
        return _build_rule(kind, options)
    except TypeError as e:
        raise ValueError(f"Bad options for {kind!r} rule: {e}") from e


def _build_rule(kind: str, options: dict[str, Any]) -> ExtractionRule:
    if kind == "proximity":
        return ProximityRule(**options)
    if kind == "first":
        return FirstMatchRule()
    if kind == "qualifier":
        return QualifierRule(**options)
    if kind == "pattern":
        if "regex" not in options:
            raise ValueError("Pattern rule requires 'regex'")
        return PatternRule(**options)
    if kind == "first_of":
        return FirstOfRule(rules=tuple(rule_from_dict(sub) for sub in options.get("rules", [])))
    raise ValueError(f"Unknown extraction rule type: {kind!r}")
