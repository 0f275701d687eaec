"""
Grain Registry Module

Distilled-water mash pH, buffer capacity and acidity for common malts.
Lookups never fail: an exact key match is tried first, then a fuzzy
substring match on the display name, then an estimate from color.
"""

import difflib
import logging
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from .exceptions import UnknownGrainError
from .helpers import normalize_key

logger = logging.getLogger(__name__)


class GrainDefinition(BaseModel):
    """Measured or estimated acid/base properties of a malt."""

    model_config = ConfigDict(frozen=True)

    name: str
    color_srm: float = Field(..., ge=0)
    di_water_ph: float = Field(..., description="Mash pH with distilled water")
    buffer_capacity: float = Field(..., description="mEq/kg per pH unit")
    acidity: float = Field(0.0, description="mEq/kg titratable acidity")
    grain_type: str = "base"
    estimated: bool = False


def _grain(name, color, ph, buffer, acidity, grain_type):
    return GrainDefinition(
        name=name,
        color_srm=color,
        di_water_ph=ph,
        buffer_capacity=buffer,
        acidity=acidity,
        grain_type=grain_type,
    )


GRAIN_DATABASE: Dict[str, GrainDefinition] = {
    # Base malts
    "pilsner": _grain("Pilsner Malt", 1.8, 5.72, 35.4, 0, "base"),
    "pale_ale": _grain("Pale Ale Malt", 3.0, 5.68, 37.2, 0, "base"),
    "maris_otter": _grain("Maris Otter", 3.5, 5.65, 38.1, 0, "base"),
    "vienna": _grain("Vienna Malt", 4.0, 5.58, 36.8, 0, "base"),
    "munich": _grain("Munich Malt", 8.5, 5.54, 38.5, 0, "base"),
    "wheat": _grain("Wheat Malt", 2.0, 5.95, 31.2, 0, "base"),
    # Crystal/caramel malts
    "crystal_20": _grain("Crystal 20L", 20, 4.65, 45.2, 62, "crystal"),
    "crystal_40": _grain("Crystal 40L", 40, 4.58, 48.5, 72, "crystal"),
    "crystal_60": _grain("Crystal 60L", 60, 4.52, 51.2, 85, "crystal"),
    "crystal_80": _grain("Crystal 80L", 80, 4.48, 53.8, 95, "crystal"),
    "crystal_120": _grain("Crystal 120L", 120, 4.42, 58.4, 112, "crystal"),
    # Roasted malts
    "chocolate": _grain("Chocolate Malt", 400, 4.31, 71.5, 165, "roasted"),
    "roasted_barley": _grain("Roasted Barley", 500, 4.24, 85.2, 215, "roasted"),
    "black_malt": _grain("Black Malt", 550, 4.18, 92.4, 245, "roasted"),
    # Specialty
    "acidulated": _grain("Acidulated Malt", 2.0, 3.8, 35.0, 180, "acidulated"),
}

DEFAULT_GRAIN_KEY = "pale_ale"


def estimate_grain_properties(name: str, color_srm: float, grain_type: Optional[str] = None) -> GrainDefinition:
    """
    Estimate malt properties from color alone.

    Uses separate linear correlations for base (<= 10 SRM), crystal
    (<= 150 SRM) and roasted malts. Acidulated malt has no color signal,
    so an explicit 'acidulated' type returns the database entry.
    """
    if grain_type == "acidulated":
        reference = GRAIN_DATABASE["acidulated"]
        return reference.model_copy(update={"name": name, "estimated": True})

    if color_srm <= 10:
        di_ph = 5.8 - color_srm * 0.02
        buffer = 35 + color_srm * 0.5
        acidity = 0.0
        estimated_type = "base"
    elif color_srm <= 150:
        di_ph = 4.8 - color_srm * 0.003
        buffer = 40 + color_srm * 0.15
        acidity = 20 + color_srm * 0.8
        estimated_type = "crystal"
    else:
        di_ph = 4.5 - color_srm * 0.0008
        buffer = 60 + color_srm * 0.08
        acidity = 100 + color_srm * 0.3
        estimated_type = "roasted"

    return GrainDefinition(
        name=name,
        color_srm=color_srm,
        di_water_ph=max(3.8, di_ph),
        buffer_capacity=max(30.0, buffer),
        acidity=max(0.0, acidity),
        grain_type=estimated_type,
        estimated=True,
    )


def find_grain(name: str) -> Optional[GrainDefinition]:
    """Exact key match, then substring match either way on the display name."""
    key = normalize_key(name)
    if key in GRAIN_DATABASE:
        return GRAIN_DATABASE[key]

    lowered = name.strip().lower()
    if not lowered:
        return None
    for grain in GRAIN_DATABASE.values():
        display = grain.name.lower()
        if lowered in display or display in lowered:
            return grain
    return None


def lookup_grain(
    name: str,
    color_srm: Optional[float] = None,
    grain_type: Optional[str] = None,
) -> GrainDefinition:
    """
    Three-tier grain lookup that always returns a definition.

    Args:
        name: Grain name as written in the recipe
        color_srm: Color in SRM, used only when the name is not recognised
        grain_type: Declared grain type, used to recognise acidulated malt

    Returns:
        GrainDefinition from the database, or an estimate
    """
    grain = find_grain(name)
    if grain is not None:
        return grain

    if color_srm is not None:
        logger.debug(f"Grain '{name}' not in database, estimating from {color_srm} SRM")
        return estimate_grain_properties(name, color_srm, grain_type)

    default = GRAIN_DATABASE[DEFAULT_GRAIN_KEY]
    logger.debug(f"Grain '{name}' not in database and no color given, using {default.name}")
    return default.model_copy(update={"name": name, "estimated": True})


def get_grain(name: str) -> GrainDefinition:
    """Strict lookup without the color fallback; raises UnknownGrainError."""
    grain = find_grain(name)
    if grain is None:
        suggestions = difflib.get_close_matches(
            normalize_key(name), list(GRAIN_DATABASE.keys()), n=3
        )
        raise UnknownGrainError(
            f"Unknown grain '{name}'",
            term=name,
            catalog="grain",
            suggestions=suggestions,
        )
    return grain
