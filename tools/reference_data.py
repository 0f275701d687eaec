"""
Reference data lookups: salts, acids, grains and water profiles.
"""

import logging
from typing import Any, Dict

from utils.exceptions import InputValidationError
from utils.grain_registry import GRAIN_DATABASE, get_grain
from utils.profile_library import STANDARD_PROFILES, STYLE_PROFILES, get_style_profile, get_water_profile
from utils.salt_registry import ACIDS, SALTS, get_acid, get_salt
from .schemas import ReferenceDataInput

logger = logging.getLogger(__name__)


def _acid_entry(acid) -> Dict[str, Any]:
    entry = acid.model_dump()
    entry['strengths'] = {f"{concentration:g}": strength for concentration, strength in acid.strengths.items()}
    entry['standard_concentrations'] = acid.standard_concentrations
    return entry


def lookup_reference(kind: str, item_id: str) -> Dict[str, Any]:
    """Strict lookup of one catalog entry; raises the catalog's Unknown*Error."""
    if kind == 'salt':
        return get_salt(item_id).model_dump()
    elif kind == 'acid':
        return _acid_entry(get_acid(item_id))
    elif kind == 'grain':
        return get_grain(item_id).model_dump()
    elif kind == 'water_profile':
        return get_water_profile(item_id)
    elif kind == 'style_profile':
        return get_style_profile(item_id)
    else:
        raise InputValidationError(
            f"Cannot look up a single item of kind '{kind}'. "
            "Choose from: salt, acid, grain, water_profile, style_profile"
        )


def list_reference(kind: str = 'all') -> Dict[str, Any]:
    """Catalog listings for one kind, or every kind."""
    listings = {
        'salt': lambda: [salt.model_dump() for salt in SALTS.values()],
        'acid': lambda: [_acid_entry(acid) for acid in ACIDS.values()],
        'grain': lambda: [{'id': key, **grain.model_dump()} for key, grain in GRAIN_DATABASE.items()],
        'water_profile': lambda: [{'id': key, **entry} for key, entry in STANDARD_PROFILES.items()],
        'style_profile': lambda: [{'id': key, **entry} for key, entry in STYLE_PROFILES.items()],
    }
    if kind == 'all':
        return {name: build() for name, build in listings.items()}
    return {kind: listings[kind]()}


async def get_reference_data(input_data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Returns catalog entries.

    Args:
        input_data: Dictionary containing:
            - kind: 'salt', 'acid', 'grain', 'water_profile', 'style_profile' or 'all'
            - id: Optional identifier; omit to list the whole catalog

    Returns:
        Dictionary with the requested entry or listing
    """
    logger.info("Running get_reference_data tool...")

    try:
        input_model = ReferenceDataInput(**input_data)
    except Exception as e:
        raise InputValidationError(f"Input validation error: {e}")

    if input_model.id:
        entry = lookup_reference(input_model.kind, input_model.id)
        return {'kind': input_model.kind, 'item': entry}

    return {'kind': input_model.kind, 'items': list_reference(input_model.kind)}
