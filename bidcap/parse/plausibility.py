"""Sanity range for scraped buyer's premiums."""

MIN_PLAUSIBLE_RATE = 0.05
MAX_PLAUSIBLE_RATE = 0.35


def is_plausible(rate: float) -> bool:
    """Accept 5%..35% only; anything else is treated as a parser false positive."""
    return MIN_PLAUSIBLE_RATE <= rate <= MAX_PLAUSIBLE_RATE
