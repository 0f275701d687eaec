"""
Water profile composition from salt additions.

Salt yields are tabulated as mg/L per gram dissolved in one liter, so the
ppm a salt adds depends on which volume it is divided by. The volume mode
decides that:

- mash:   always the mash volume, wherever the salt is physically added
- total:  always the total (mash + sparge) volume
- staged: mash volume for mash additions, sparge volume for sparge
          additions, total volume for boil additions
"""

import logging
from typing import Any, Dict, List, Optional

from utils.constants import (
    ALL_ION_FIELDS,
    CARBONATE_TO_BICARBONATE,
    LIME_BICARBONATE_PER_GRAM,
    VOLUME_TOLERANCE_L,
)
from utils.exceptions import InputValidationError
from utils.salt_registry import SaltDefinition, find_salt
from .schemas import (
    CalculateWaterProfileInput,
    CalculateWaterProfileOutput,
    ComposeResult,
    Volumes,
    WaterProfile,
)
from .water_metrics import (
    ion_balance,
    residual_alkalinity,
    sulfate_chloride_ratio,
    total_hardness,
)

logger = logging.getLogger(__name__)

VOLUME_MODE_EXPLANATIONS = {
    'mash': (
        "All salt and acid additions are calculated based on mash volume. "
        "This is the standard method used by Bru'n Water and gives higher ion concentrations."
    ),
    'staged': (
        "Salts and acids are distributed across mash, sparge and boil based on their purpose. "
        "Calcium salts go to the mash for enzyme activity, flavor salts can be added to the boil."
    ),
    'total': (
        "All additions are calculated based on total water volume. "
        "This gives lower ion concentrations and is generally not recommended."
    ),
}


def volume_mode_explanation(volume_mode: str) -> str:
    return VOLUME_MODE_EXPLANATIONS.get(volume_mode, 'Unknown volume mode')


def validate_volumes(volumes: Volumes) -> List[str]:
    """
    Check volumes for consistency.

    Returns:
        List of error messages; empty when the volumes are consistent
    """
    errors = []
    if volumes.mash <= 0:
        errors.append('Mash volume must be greater than 0')
    if volumes.sparge < 0:
        errors.append('Sparge volume cannot be negative')
    if volumes.total <= 0:
        errors.append('Total volume must be greater than 0')

    calculated_total = volumes.mash + volumes.sparge
    if abs(calculated_total - volumes.total) > VOLUME_TOLERANCE_L:
        errors.append(
            f"Total volume ({volumes.total}L) should equal mash ({volumes.mash}L) + "
            f"sparge ({volumes.sparge}L) = {calculated_total}L"
        )
    return errors


def effective_volume(volumes: Volumes, volume_mode: str = 'mash', location: Optional[str] = None) -> float:
    """Liters a salt's grams are divided by under the given volume mode."""
    if volume_mode == 'mash':
        return volumes.mash
    if volume_mode == 'staged':
        if location == 'mash':
            return volumes.mash
        if location == 'sparge':
            return volumes.sparge
        # Boil additions end up in the full batch
        return volumes.total
    return volumes.total


def ppm_contribution(
    grams: float,
    yield_per_gram_per_liter: float,
    volumes: Volumes,
    volume_mode: str = 'mash',
    location: Optional[str] = None,
) -> float:
    """
    ppm added to one ion by a salt addition.

    Args:
        grams: Grams of salt added
        yield_per_gram_per_liter: mg/L of the ion per gram in one liter
        volumes: Brewing volumes
        volume_mode: 'mash', 'total' or 'staged'
        location: 'mash', 'sparge' or 'boil'; only read in staged mode

    Returns:
        ppm (mg/L) of the ion; 0 when the effective volume is zero
    """
    volume = effective_volume(volumes, volume_mode, location)
    if not volume or volume <= 0:
        return 0.0
    return (grams / volume) * yield_per_gram_per_liter


def effective_salt_yields(salt: SaltDefinition, assume_carbonate_dissolution: bool = True) -> Dict[str, float]:
    """
    Ion yields of a salt after the dissolution assumption is applied.

    With full dissolution, chalk carbonate is reported as bicarbonate (mass
    ratio HCO3/CO3) and pickling lime yields bicarbonate through
    Ca(OH)2 + 2 CO2 -> Ca(HCO3)2.
    """
    yields = dict(salt.ions)
    if not assume_carbonate_dissolution:
        return yields

    carbonate = yields.pop('carbonate', 0.0)
    if carbonate:
        yields['bicarbonate'] = yields.get('bicarbonate', 0.0) + carbonate * CARBONATE_TO_BICARBONATE
    if salt.id == 'calcium_hydroxide':
        yields['bicarbonate'] = yields.get('bicarbonate', 0.0) + LIME_BICARBONATE_PER_GRAM
    return yields


def compose_profile(
    source: WaterProfile,
    salts: Dict[str, float],
    volumes: Volumes,
    volume_mode: str = 'mash',
    locations: Optional[Dict[str, str]] = None,
    assume_carbonate_dissolution: bool = True,
) -> ComposeResult:
    """
    Apply salt additions to a source water.

    The source profile is never modified. Unknown salt names and negative
    amounts are skipped and reported in the result's warnings.

    Args:
        source: Starting water
        salts: Salt id (or alias) -> grams
        volumes: Brewing volumes
        volume_mode: 'mash', 'total' or 'staged'
        locations: Salt id -> 'mash' | 'sparge' | 'boil' (staged mode; default mash)
        assume_carbonate_dissolution: Fold carbonate into bicarbonate

    Returns:
        ComposeResult with the achieved profile, per-salt contributions and warnings
    """
    achieved = source.model_dump()
    contributions: Dict[str, Dict[str, float]] = {}
    used_volumes: Dict[str, float] = {}
    warnings: List[str] = []
    locations = locations or {}

    for name, grams in salts.items():
        if grams == 0:
            continue
        if grams < 0:
            message = f"Negative amount {grams:g}g for '{name}' ignored"
            logger.warning(message)
            warnings.append(message)
            continue

        salt = find_salt(name)
        if salt is None:
            message = f"Unknown salt '{name}' ignored"
            logger.warning(message)
            warnings.append(message)
            continue

        location = locations.get(name, locations.get(salt.id, 'mash'))
        volume = effective_volume(volumes, volume_mode, location)
        used_volumes[salt.id] = volume
        if volume <= 0:
            message = f"{salt.name} added to {location} with no {location} volume contributes nothing"
            logger.warning(message)
            warnings.append(message)
            continue

        if salt.solubility_limit is not None and grams / volume > salt.solubility_limit:
            message = (
                f"{salt.name} at {grams / volume:.3f} g/L exceeds its solubility of about "
                f"{salt.solubility_limit} g/L; it may not fully dissolve"
            )
            logger.warning(message)
            warnings.append(message)

        added = contributions.setdefault(salt.id, {})
        for ion, ion_yield in effective_salt_yields(salt, assume_carbonate_dissolution).items():
            ppm = ppm_contribution(grams, ion_yield, volumes, volume_mode, location)
            achieved[ion] = achieved.get(ion, 0.0) + ppm
            added[ion] = added.get(ion, 0.0) + ppm

    return ComposeResult(
        profile=WaterProfile(**achieved),
        contributions=contributions,
        effective_volumes=used_volumes,
        warnings=warnings,
    )


def blend_profiles(parts: List[tuple]) -> WaterProfile:
    """Volume-weighted blend of (profile, liters) pairs."""
    total_volume = sum(volume for _, volume in parts if volume > 0)
    blended = {ion: 0.0 for ion in ALL_ION_FIELDS}
    if total_volume <= 0:
        return WaterProfile(**blended)
    for profile, volume in parts:
        if volume <= 0:
            continue
        for ion in ALL_ION_FIELDS:
            blended[ion] += getattr(profile, ion) * volume / total_volume
    return WaterProfile(**blended)


def compose_staged(
    source: WaterProfile,
    additions_by_location: Dict[str, Dict[str, float]],
    volumes: Volumes,
    assume_carbonate_dissolution: bool = True,
) -> Dict[str, ComposeResult]:
    """
    Compose mash water, sparge water and the blended kettle water.

    Mash and sparge additions are dissolved in their own volumes; the
    kettle water is the volume-weighted blend of both plus any boil
    additions over the total volume.

    Returns:
        Dictionary with 'mash', 'sparge' and 'total' ComposeResults
    """
    mash_salts = additions_by_location.get('mash', {})
    sparge_salts = additions_by_location.get('sparge', {})
    boil_salts = additions_by_location.get('boil', {})

    mash = compose_profile(
        source, mash_salts, volumes, 'staged',
        {name: 'mash' for name in mash_salts}, assume_carbonate_dissolution,
    )
    sparge = compose_profile(
        source, sparge_salts, volumes, 'staged',
        {name: 'sparge' for name in sparge_salts}, assume_carbonate_dissolution,
    )

    blended = blend_profiles([(mash.profile, volumes.mash), (sparge.profile, volumes.sparge)])
    blended = blended.model_copy(update={'ph': source.ph})
    total = compose_profile(
        blended, boil_salts, volumes, 'total', None, assume_carbonate_dissolution,
    )

    total.warnings = mash.warnings + sparge.warnings + total.warnings
    return {'mash': mash, 'sparge': sparge, 'total': total}


async def calculate_water_profile(input_data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Calculates the water profile produced by a set of salt additions.

    Args:
        input_data: Dictionary containing:
            - source_water: Starting ion concentrations (mg/L)
            - salts: Salt id -> grams
            - volumes: total/mash/sparge liters
            - salt_locations: Optional salt -> mash/sparge/boil (staged mode)
            - options: Calculation options (volume_mode, assume_carbonate_dissolution, ...)

    Returns:
        Dictionary with the achieved water, per-salt contributions, derived metrics and warnings
    """
    logger.info("Running calculate_water_profile tool...")

    try:
        input_model = CalculateWaterProfileInput(**input_data)
    except Exception as e:
        raise InputValidationError(f"Input validation error: {e}")

    options = input_model.options
    if options.volume_mode == 'staged':
        errors = validate_volumes(input_model.volumes)
        if errors:
            raise InputValidationError("Invalid volumes for staged mode: " + "; ".join(errors))

    result = compose_profile(
        input_model.source_water,
        input_model.salts,
        input_model.volumes,
        options.volume_mode,
        input_model.salt_locations,
        options.assume_carbonate_dissolution,
    )
    achieved = result.profile
    balance = ion_balance(achieved)
    warnings = list(result.warnings)
    if balance.warning:
        warnings.append(balance.warning)

    output = CalculateWaterProfileOutput(
        achieved_water=achieved,
        contributions=result.contributions,
        residual_alkalinity=residual_alkalinity(achieved),
        sulfate_chloride_ratio=sulfate_chloride_ratio(achieved),
        total_hardness=total_hardness(achieved),
        ion_balance=balance,
        volume_mode_explanation=volume_mode_explanation(options.volume_mode),
        warnings=warnings,
    )
    logger.info(
        f"Composed water with {len(result.contributions)} salts in {options.volume_mode} mode: "
        f"Ca {achieved.calcium:.1f}, SO4 {achieved.sulfate:.1f}, Cl {achieved.chloride:.1f} ppm"
    )
    return output.model_dump()
