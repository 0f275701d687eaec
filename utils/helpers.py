"""
Small helpers shared by the calculation modules.
"""

import logging
import math
import re
from typing import Dict, Optional

from .constants import MIN_ADDITION_GRAMS

logger = logging.getLogger(__name__)

SRM_TO_EBC = 1.97


def normalize_key(name: str) -> str:
    """Lowercase a display name and replace anything non-alphanumeric with '_'."""
    key = re.sub(r"[^a-z0-9]+", "_", str(name).strip().lower())
    return key.strip("_")


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def round_grams(amount: float) -> float:
    """Round an addition to one decimal place."""
    return round(amount * 10) / 10


def ceil_grams(amount: float) -> float:
    """Round an addition up to the next 0.1 g so a floor it was sized for still holds."""
    return math.ceil(round(amount * 10, 6)) / 10


def clean_additions(additions: Dict[str, float]) -> Dict[str, float]:
    """
    Round additions to 0.1 g and drop anything below 0.1 g.

    Amounts that small are weighing noise, not real additions.
    """
    cleaned = {}
    for name, amount in additions.items():
        rounded = round_grams(amount)
        if rounded >= MIN_ADDITION_GRAMS:
            cleaned[name] = rounded
        elif amount > 0:
            logger.debug(f"Dropping {name} addition of {amount:.3f} g (below {MIN_ADDITION_GRAMS} g)")
    return cleaned


def srm_to_ebc(srm: float) -> float:
    return srm * SRM_TO_EBC


def ebc_to_srm(ebc: float) -> float:
    return ebc / SRM_TO_EBC


def srm_to_lovibond(srm: float) -> float:
    # Morey: SRM = 1.3546 * L - 0.76
    return (srm + 0.76) / 1.3546


def lovibond_to_srm(lovibond: float) -> float:
    return max(0.0, 1.3546 * lovibond - 0.76)


def parse_acid_name(name: str, default_concentration: float = 88.0):
    """
    Split an acid addition key such as 'lactic_88' into ('lactic', 88.0).

    Keys without a numeric suffix get the default concentration.
    """
    match = re.match(r"^(.*?)_(\d+(?:\.\d+)?)$", name.strip())
    if match:
        return match.group(1), float(match.group(2))
    return name.strip(), default_concentration


def safe_ratio(numerator: float, denominator: float) -> Optional[float]:
    """Return numerator / denominator, or None when the denominator is zero."""
    if denominator == 0:
        return None
    return numerator / denominator
