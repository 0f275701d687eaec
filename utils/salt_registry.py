"""
Salt and Acid Registry Module

This module contains the static catalogs of brewing salts and acids: formulas,
molar masses, ion yields and acid strengths. Entries are defined once at import
and never mutated, so they are safe to share between concurrent requests.

Ion yields are expressed as mg/L of ion added per gram of salt dissolved in
exactly one liter of water.
"""

import difflib
import logging
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from .exceptions import UnknownAcidError, UnknownSaltError
from .helpers import normalize_key

logger = logging.getLogger(__name__)


class SaltDefinition(BaseModel):
    """A brewing salt and the ions it contributes."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    formula: str
    molar_mass: float = Field(..., gt=0, description="g/mol, including water of hydration")
    ions: Dict[str, float] = Field(..., description="Ion -> mg/L per gram per liter")
    solubility_limit: Optional[float] = Field(
        None, description="Approximate solubility in g/L; additions above this may not dissolve"
    )


class AcidDefinition(BaseModel):
    """A brewing acid with its commercial strengths."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    formula: str
    molar_mass: float = Field(..., gt=0)
    density: float = Field(..., gt=0, description="g/mL of the strongest commercial solution")
    pka: Tuple[float, ...]
    strengths: Dict[float, float] = Field(
        ..., description="Concentration (%) -> strength in mEq per mL (or per gram for solids)"
    )
    unit: str = Field("ml", description="Dosing unit: 'ml' for liquids, 'g' for solids")
    anion: Optional[str] = Field(None, description="Anion left in the water after neutralization")
    anion_mg_per_meq: float = Field(0.0, description="mg of anion per mEq of acid")

    @property
    def standard_concentrations(self) -> List[float]:
        return sorted(self.strengths.keys(), reverse=True)

    @property
    def default_concentration(self) -> float:
        return self.standard_concentrations[0]


# =============================================================================
# Salt Catalog
# =============================================================================

SALTS: Dict[str, SaltDefinition] = {
    "gypsum": SaltDefinition(
        id="gypsum",
        name="Gypsum",
        formula="CaSO4·2H2O",
        molar_mass=172.17,
        ions={"calcium": 232.5, "sulfate": 557.7},
    ),
    "calcium_chloride": SaltDefinition(
        id="calcium_chloride",
        name="Calcium Chloride",
        formula="CaCl2·2H2O",
        molar_mass=147.01,
        ions={"calcium": 272.6, "chloride": 482.3},
    ),
    "epsom_salt": SaltDefinition(
        id="epsom_salt",
        name="Epsom Salt",
        formula="MgSO4·7H2O",
        molar_mass=246.47,
        ions={"magnesium": 98.6, "sulfate": 389.6},
    ),
    "magnesium_chloride": SaltDefinition(
        id="magnesium_chloride",
        name="Magnesium Chloride",
        formula="MgCl2·6H2O",
        molar_mass=203.30,
        ions={"magnesium": 119.5, "chloride": 348.7},
    ),
    "sodium_chloride": SaltDefinition(
        id="sodium_chloride",
        name="Table Salt",
        formula="NaCl",
        molar_mass=58.44,
        ions={"sodium": 393.4, "chloride": 606.6},
    ),
    "baking_soda": SaltDefinition(
        id="baking_soda",
        name="Baking Soda",
        formula="NaHCO3",
        molar_mass=84.01,
        ions={"sodium": 273.7, "bicarbonate": 726.3},
    ),
    "calcium_carbonate": SaltDefinition(
        id="calcium_carbonate",
        name="Chalk",
        formula="CaCO3",
        molar_mass=100.09,
        ions={"calcium": 400.4, "carbonate": 599.6},
        solubility_limit=0.015,
    ),
    "calcium_hydroxide": SaltDefinition(
        id="calcium_hydroxide",
        name="Pickling Lime",
        formula="Ca(OH)2",
        molar_mass=74.09,
        ions={"calcium": 541.0},
        solubility_limit=1.85,
    ),
}

# Common names that refer to a catalog salt
SALT_ALIASES = {
    "sodium_bicarbonate": "baking_soda",
    "bicarb": "baking_soda",
    "chalk": "calcium_carbonate",
    "pickling_lime": "calcium_hydroxide",
    "slaked_lime": "calcium_hydroxide",
    "lime": "calcium_hydroxide",
    "table_salt": "sodium_chloride",
    "salt": "sodium_chloride",
    "nacl": "sodium_chloride",
    "epsom": "epsom_salt",
    "magnesium_sulfate": "epsom_salt",
    "calcium_sulfate": "gypsum",
    "cacl2": "calcium_chloride",
    "caso4": "gypsum",
    "mgso4": "epsom_salt",
    "mgcl2": "magnesium_chloride",
    "nahco3": "baking_soda",
    "caco3": "calcium_carbonate",
}


def resolve_salt_id(name: str) -> Optional[str]:
    """Return the canonical salt id for a name or alias, or None if unknown."""
    key = normalize_key(name)
    if key in SALTS:
        return key
    return SALT_ALIASES.get(key)


def find_salt(name: str) -> Optional[SaltDefinition]:
    """Lenient lookup used by the calculation core; unknown names return None."""
    salt_id = resolve_salt_id(name)
    if salt_id is None:
        return None
    return SALTS[salt_id]


def get_salt(name: str) -> SaltDefinition:
    """Strict lookup; raises UnknownSaltError with close matches."""
    salt = find_salt(name)
    if salt is None:
        candidates = list(SALTS.keys()) + list(SALT_ALIASES.keys())
        suggestions = difflib.get_close_matches(normalize_key(name), candidates, n=3)
        raise UnknownSaltError(
            f"Unknown salt '{name}'",
            term=name,
            catalog="salt",
            suggestions=suggestions,
        )
    return salt


# =============================================================================
# Acid Catalog
# =============================================================================

ACIDS: Dict[str, AcidDefinition] = {
    "lactic": AcidDefinition(
        id="lactic",
        name="Lactic Acid",
        formula="C3H6O3",
        molar_mass=90.08,
        density=1.21,
        pka=(3.86,),
        strengths={88.0: 11.76, 80.0: 10.45, 50.0: 6.22, 10.0: 1.13},
        anion="lactate",
        anion_mg_per_meq=89.07,
    ),
    "phosphoric": AcidDefinition(
        id="phosphoric",
        name="Phosphoric Acid",
        formula="H3PO4",
        molar_mass=98.00,
        density=1.685,
        pka=(2.12, 7.21, 12.68),
        strengths={85.0: 14.67, 75.0: 12.12, 10.0: 1.07},
        anion="phosphate",
        anion_mg_per_meq=94.97,
    ),
    "sulfuric": AcidDefinition(
        id="sulfuric",
        name="Sulfuric Acid",
        formula="H2SO4",
        molar_mass=98.08,
        density=1.84,
        pka=(-3.0, 1.99),
        strengths={96.0: 36.77, 93.0: 34.88, 10.0: 2.18},
        anion="sulfate",
        anion_mg_per_meq=48.03,
    ),
    "hydrochloric": AcidDefinition(
        id="hydrochloric",
        name="Hydrochloric Acid",
        formula="HCl",
        molar_mass=36.46,
        density=1.18,
        pka=(-6.3,),
        strengths={37.0: 11.98, 31.0: 9.78, 10.0: 2.87},
        anion="chloride",
        anion_mg_per_meq=35.45,
    ),
    "citric": AcidDefinition(
        id="citric",
        name="Citric Acid",
        formula="C6H8O7",
        molar_mass=192.12,
        density=1.665,
        pka=(3.13, 4.76, 6.40),
        strengths={100.0: 70.0},
        unit="g",
        anion="citrate",
        anion_mg_per_meq=63.04,
    ),
}

ACID_ALIASES = {
    "lactic_acid": "lactic",
    "phosphoric_acid": "phosphoric",
    "sulfuric_acid": "sulfuric",
    "sulphuric": "sulfuric",
    "hydrochloric_acid": "hydrochloric",
    "hcl": "hydrochloric",
    "muriatic": "hydrochloric",
    "citric_acid": "citric",
}


def resolve_acid_id(name: str) -> Optional[str]:
    key = normalize_key(name)
    if key in ACIDS:
        return key
    return ACID_ALIASES.get(key)


def find_acid(name: str) -> Optional[AcidDefinition]:
    """Lenient lookup used by the calculation core; unknown names return None."""
    acid_id = resolve_acid_id(name)
    if acid_id is None:
        return None
    return ACIDS[acid_id]


def get_acid(name: str) -> AcidDefinition:
    """Strict lookup; raises UnknownAcidError with close matches."""
    acid = find_acid(name)
    if acid is None:
        candidates = list(ACIDS.keys()) + list(ACID_ALIASES.keys())
        suggestions = difflib.get_close_matches(normalize_key(name), candidates, n=3)
        raise UnknownAcidError(
            f"Unknown acid '{name}'",
            term=name,
            catalog="acid",
            suggestions=suggestions,
        )
    return acid


def acid_strength(acid: AcidDefinition, concentration: Optional[float] = None) -> Tuple[float, float]:
    """
    Look up the strength of an acid at a commercial concentration.

    Falls back to the nearest tabulated concentration when the requested one
    is not in the table.

    Returns:
        (strength in mEq/mL or mEq/g, concentration actually used)
    """
    if concentration is None:
        concentration = acid.default_concentration
    if concentration in acid.strengths:
        return acid.strengths[concentration], concentration

    nearest = min(acid.strengths.keys(), key=lambda c: abs(c - concentration))
    logger.debug(
        f"{acid.name} at {concentration}% not tabulated, using nearest {nearest}%"
    )
    return acid.strengths[nearest], nearest
