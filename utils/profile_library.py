"""
Reference water profiles.

Historic brewing waters (source profiles) and style targets, keyed by id.
Values are ppm; style entries also carry their intended sulfate:chloride
character so optimizers can pick a strategy without recomputing it.
"""

import difflib
import logging
from typing import Any, Dict, List

from .exceptions import UnknownProfileError
from .helpers import normalize_key

logger = logging.getLogger(__name__)

STANDARD_PROFILES: Dict[str, Dict[str, Any]] = {
    "distilled": {
        "name": "Distilled / RO",
        "ions": {"calcium": 0, "magnesium": 0, "sodium": 0, "sulfate": 0, "chloride": 0, "bicarbonate": 0},
        "ph": 7.0,
    },
    "pilsen": {
        "name": "Pilsen",
        "ions": {"calcium": 7, "magnesium": 2, "sodium": 2, "sulfate": 5, "chloride": 5, "bicarbonate": 35},
        "ph": 7.0,
    },
    "burton": {
        "name": "Burton on Trent",
        "ions": {"calcium": 352, "magnesium": 24, "sodium": 54, "sulfate": 820, "chloride": 16, "bicarbonate": 320},
        "ph": 7.9,
    },
    "dublin": {
        "name": "Dublin",
        "ions": {"calcium": 118, "magnesium": 4, "sodium": 12, "sulfate": 55, "chloride": 19, "bicarbonate": 319},
        "ph": 7.8,
    },
    "london": {
        "name": "London",
        "ions": {"calcium": 52, "magnesium": 32, "sodium": 86, "sulfate": 32, "chloride": 34, "bicarbonate": 104},
        "ph": 7.4,
    },
    "munich": {
        "name": "Munich",
        "ions": {"calcium": 75, "magnesium": 18, "sodium": 2, "sulfate": 18, "chloride": 2, "bicarbonate": 152},
        "ph": 7.4,
    },
    "vienna": {
        "name": "Vienna",
        "ions": {"calcium": 200, "magnesium": 60, "sodium": 8, "sulfate": 125, "chloride": 12, "bicarbonate": 120},
        "ph": 7.6,
    },
}

STYLE_PROFILES: Dict[str, Dict[str, Any]] = {
    "german_pilsner": {
        "name": "German Pilsner",
        "description": "Crisp, soft; favor low minerals and modest sulfate",
        "character": "balanced",
        "ions": {"calcium": 50, "magnesium": 5, "sodium": 5, "sulfate": 75, "chloride": 50, "bicarbonate": 25},
    },
    "american_ipa": {
        "name": "American IPA",
        "description": "Assertive hop profile; high sulfate emphasis",
        "character": "hoppy",
        "ions": {"calcium": 120, "magnesium": 10, "sodium": 10, "sulfate": 250, "chloride": 75, "bicarbonate": 50},
    },
    "neipa": {
        "name": "New England IPA",
        "description": "Juicy, soft mouthfeel; chloride forward",
        "character": "malty",
        "ions": {"calcium": 100, "magnesium": 10, "sodium": 20, "sulfate": 100, "chloride": 200, "bicarbonate": 50},
    },
    "stout": {
        "name": "Stout",
        "description": "Dark roast; higher chloride and bicarbonate tolerance",
        "character": "malty",
        "ions": {"calcium": 100, "magnesium": 10, "sodium": 20, "sulfate": 75, "chloride": 100, "bicarbonate": 150},
    },
    "helles": {
        "name": "Munich Helles",
        "description": "Soft, malt-forward; low sulfate",
        "character": "malty",
        "ions": {"calcium": 60, "magnesium": 5, "sodium": 5, "sulfate": 50, "chloride": 80, "bicarbonate": 40},
    },
    "esb": {
        "name": "English Bitter / ESB",
        "description": "Balanced to hoppy; moderate sulfate and chloride",
        "character": "hoppy",
        "ions": {"calcium": 120, "magnesium": 10, "sodium": 25, "sulfate": 200, "chloride": 100, "bicarbonate": 75},
    },
    "saison": {
        "name": "Saison",
        "description": "Dry, highly attenuated; lean mineral balance",
        "character": "hoppy",
        "ions": {"calcium": 80, "magnesium": 8, "sodium": 10, "sulfate": 150, "chloride": 75, "bicarbonate": 50},
    },
    "amber_ale": {
        "name": "Amber Ale",
        "description": "Malty balance; moderate chloride focus",
        "character": "balanced",
        "ions": {"calcium": 100, "magnesium": 8, "sodium": 15, "sulfate": 150, "chloride": 100, "bicarbonate": 80},
    },
}


def _lookup(library: Dict[str, Dict[str, Any]], profile_id: str, catalog: str) -> Dict[str, Any]:
    key = normalize_key(profile_id)
    if key in library:
        return {"id": key, **library[key]}

    # Allow lookup by display name as well as id
    for entry_id, entry in library.items():
        if normalize_key(entry["name"]) == key:
            return {"id": entry_id, **entry}

    suggestions = difflib.get_close_matches(key, list(library.keys()), n=3)
    raise UnknownProfileError(
        f"Unknown {catalog.replace('_', ' ')} '{profile_id}'",
        term=profile_id,
        catalog=catalog,
        suggestions=suggestions,
    )


def get_water_profile(profile_id: str) -> Dict[str, Any]:
    """Return a standard source water entry; raises UnknownProfileError."""
    return _lookup(STANDARD_PROFILES, profile_id, "water_profile")


def get_style_profile(style_id: str) -> Dict[str, Any]:
    """Return a style target entry; raises UnknownProfileError."""
    return _lookup(STYLE_PROFILES, style_id, "style_profile")


def list_profiles() -> Dict[str, List[Dict[str, str]]]:
    return {
        "water_profiles": [
            {"id": key, "name": entry["name"]} for key, entry in STANDARD_PROFILES.items()
        ],
        "style_profiles": [
            {"id": key, "name": entry["name"], "character": entry["character"]}
            for key, entry in STYLE_PROFILES.items()
        ],
    }
