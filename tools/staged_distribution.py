"""
Staged placement of salts and acids across mash, sparge and boil.

Calcium and pH-affecting salts belong in the mash, sparge water gets
only enough calcium (and optionally acid) to protect the sparge, and
flavor salts that do not need to be in the mash can go to the boil.
"""

import logging
from typing import Any, Dict, List, Optional

from utils.constants import ION_LIMITS
from utils.exceptions import InputValidationError
from utils.helpers import parse_acid_name, round_grams
from utils.profile_library import get_style_profile
from utils.salt_registry import SALTS, find_salt
from .schemas import (
    AcidAddition,
    PlanStagedAdditionsInput,
    SaltAddition,
    Volumes,
    WaterProfile,
)
from .water_profile import compose_staged, validate_volumes

logger = logging.getLogger(__name__)

ALL = 'all'

# Where each addition may go in staged mode; 'all' matches any name
STAGED_DISTRIBUTION = {
    'mash': {
        'salts': ['gypsum', 'calcium_chloride', 'calcium_carbonate', 'calcium_hydroxide'],
        'acids': [ALL],
    },
    'sparge': {
        'salts': ['gypsum', 'calcium_chloride'],
        'acids': ['lactic', 'phosphoric'],
    },
    'boil': {
        'salts': ['sodium_chloride', 'epsom_salt'],
    },
}

SINGLE_VOLUME_DISTRIBUTION = {
    'mash': {'salts': [ALL], 'acids': [ALL]},
    'sparge': {'salts': [], 'acids': []},
    'boil': {'salts': []},
}

SPARGE_CALCIUM_TARGET = 50.0
SPARGE_ALKALINITY_LIMIT = 50.0
BOIL_SHARE = 0.5


def default_distribution(volume_mode: str) -> Dict[str, Dict[str, List[str]]]:
    """Allowed salts and acids per location for a volume mode."""
    if volume_mode == 'staged':
        return STAGED_DISTRIBUTION
    return SINGLE_VOLUME_DISTRIBUTION


def _canonical(name: str) -> str:
    salt = find_salt(name)
    return salt.id if salt is not None else name


def distribute_salts(
    salts: Dict[str, float],
    volume_mode: str = 'mash',
    distribution: Optional[Dict[str, Dict[str, List[str]]]] = None,
) -> Dict[str, List[SaltAddition]]:
    """
    Split salt additions into mash, sparge and boil lists.

    Outside staged mode everything goes to the mash. In staged mode the
    first location whose list names the salt wins; salts no location
    names stay in the mash.
    """
    distribution = distribution or default_distribution(volume_mode)
    result: Dict[str, List[SaltAddition]] = {'mash': [], 'sparge': [], 'boil': []}

    for name, amount in salts.items():
        if amount == 0:
            continue
        location = 'mash'
        if volume_mode == 'staged':
            salt_id = _canonical(name)
            for candidate in ('mash', 'sparge', 'boil'):
                allowed = distribution.get(candidate, {}).get('salts', [])
                if ALL in allowed or salt_id in allowed:
                    location = candidate
                    break
        result[location].append(SaltAddition(name=name, amount=amount, location=location))

    return result


def distribute_acids(
    acids: Dict[str, float],
    volume_mode: str = 'mash',
) -> Dict[str, List[AcidAddition]]:
    """
    Parse acid keys such as 'lactic_88' and place them.

    Acids are always dosed to the mash; sparge acid comes only from an
    explicit staged plan.
    """
    result: Dict[str, List[AcidAddition]] = {'mash': [], 'sparge': []}
    for key, amount in acids.items():
        if amount == 0:
            continue
        name, concentration = parse_acid_name(key)
        unit = 'g' if name == 'citric' else 'ml'
        result['mash'].append(
            AcidAddition(name=name, amount=amount, concentration=concentration, location='mash', unit=unit)
        )
    return result


def salt_locations(distributed: Dict[str, List[SaltAddition]]) -> Dict[str, str]:
    return {addition.name: location for location, additions in distributed.items() for addition in additions}


def _grams(ppm: float, salt_id: str, ion: str, volume: float) -> float:
    return round_grams(ppm / SALTS[salt_id].ions[ion] * volume)


def determine_distribution_strategy(
    source: WaterProfile,
    target: WaterProfile,
    volumes: Volumes,
    calcium_minimum: float = SPARGE_CALCIUM_TARGET,
    sparge_acidification: bool = False,
    target_sparge_ph: Optional[float] = None,
    avoid_boil_minerals: bool = False,
    assume_carbonate_dissolution: bool = True,
) -> Dict[str, Any]:
    """
    Rule-based staged addition plan.

    1. Mash calcium up to calcium_minimum with gypsum (hoppy targets,
       SO4/Cl > 2) or calcium chloride.
    2. Baking soda to the mash when the target needs more bicarbonate.
    3. Remaining sulfate over 50 ppm: half the Epsom salt to the boil,
       or extra mash gypsum when boil minerals are avoided or there is
       no sparge. Remaining chloride over 25 ppm: half the table salt to
       the boil, or extra mash calcium chloride.
    4. Sparge gypsum to 50 ppm calcium, and optional sparge lactic acid
       (1 mL 88% per 10 L per 50 ppm of bicarbonate).

    Returns:
        Dictionary with 'mash', 'sparge' and 'boil' additions, the
        composed stage waters and the rationale
    """
    rationale: List[str] = []
    mash_salts: Dict[str, float] = {}
    sparge_salts: Dict[str, float] = {}
    boil_salts: Dict[str, float] = {}
    sparge_acids: Dict[str, float] = {}

    needed = {ion: getattr(target, ion) - getattr(source, ion) for ion in target.ions()}

    if source.calcium < calcium_minimum and volumes.mash > 0:
        calcium_needed = calcium_minimum - source.calcium
        rationale.append(f"Adding calcium to mash to reach {calcium_minimum:g} ppm minimum for enzyme activity")
        hoppy = target.chloride > 0 and target.sulfate / target.chloride > 2
        if hoppy or (target.chloride == 0 and target.sulfate > 0):
            mash_salts['gypsum'] = _grams(calcium_needed, 'gypsum', 'calcium', volumes.mash)
            rationale.append('Using gypsum for calcium (hoppy profile)')
        else:
            mash_salts['calcium_chloride'] = _grams(calcium_needed, 'calcium_chloride', 'calcium', volumes.mash)
            rationale.append('Using calcium chloride for calcium (balanced/malty profile)')

    if needed['bicarbonate'] > 0 and volumes.mash > 0:
        mash_salts['baking_soda'] = _grams(needed['bicarbonate'], 'baking_soda', 'bicarbonate', volumes.mash)
        rationale.append('Adding baking soda to mash for alkalinity (dark beer)')

    remaining_sulfate = needed['sulfate']
    remaining_chloride = needed['chloride']
    if volumes.mash > 0:
        remaining_sulfate -= mash_salts.get('gypsum', 0.0) * SALTS['gypsum'].ions['sulfate'] / volumes.mash
        remaining_chloride -= (
            mash_salts.get('calcium_chloride', 0.0) * SALTS['calcium_chloride'].ions['chloride'] / volumes.mash
        )
    remaining_sulfate = max(0.0, remaining_sulfate)
    remaining_chloride = max(0.0, remaining_chloride)

    if remaining_sulfate > 50:
        if volumes.sparge > 0 and not avoid_boil_minerals:
            boil_salts['epsom_salt'] = round_grams(
                remaining_sulfate / SALTS['epsom_salt'].ions['sulfate'] * volumes.total * BOIL_SHARE
            )
            rationale.append("Adding Epsom salt to boil for sulfate (won't affect mash pH)")
        else:
            mash_salts['gypsum'] = mash_salts.get('gypsum', 0.0) + _grams(
                remaining_sulfate, 'gypsum', 'sulfate', volumes.mash
            )
            rationale.append('Adding extra gypsum to mash for sulfate')

    if remaining_chloride > 25:
        if not avoid_boil_minerals:
            boil_salts['sodium_chloride'] = round_grams(
                remaining_chloride / SALTS['sodium_chloride'].ions['chloride'] * volumes.total * BOIL_SHARE
            )
            rationale.append("Adding salt to boil for chloride (won't affect mash pH)")
        else:
            mash_salts['calcium_chloride'] = mash_salts.get('calcium_chloride', 0.0) + _grams(
                remaining_chloride, 'calcium_chloride', 'chloride', volumes.mash
            )
            rationale.append('Adding extra calcium chloride to mash for chloride')

    if volumes.sparge > 0:
        if source.calcium < SPARGE_CALCIUM_TARGET:
            sparge_salts['gypsum'] = _grams(
                SPARGE_CALCIUM_TARGET - source.calcium, 'gypsum', 'calcium', volumes.sparge
            )
            rationale.append('Adding minimal gypsum to sparge for calcium')

        if sparge_acidification and source.bicarbonate > SPARGE_ALKALINITY_LIMIT:
            sparge_acids['lactic_88'] = round_grams(
                (source.bicarbonate / SPARGE_ALKALINITY_LIMIT) * (volumes.sparge / 10)
            )
            ph_text = f" to pH {target_sparge_ph:g}" if target_sparge_ph else ''
            rationale.append(f"Acidifying sparge water{ph_text}")

    stages = compose_staged(
        source,
        {'mash': mash_salts, 'sparge': sparge_salts, 'boil': boil_salts},
        volumes,
        assume_carbonate_dissolution,
    )

    return {
        'mash': {'salts': mash_salts, 'acids': {}, 'water_profile': stages['mash'].profile},
        'sparge': {'salts': sparge_salts, 'acids': sparge_acids, 'water_profile': stages['sparge'].profile},
        'boil': {'salts': boil_salts},
        'kettle_water': stages['total'].profile,
        'warnings': stages['total'].warnings,
        'rationale': rationale,
    }


def validate_staged_distribution(plan: Dict[str, Any], target: WaterProfile) -> Dict[str, Any]:
    """
    Sanity checks on a staged plan.

    Mash calcium under 50 ppm is an error; low calcium, a calcium miss of
    more than 20%, extreme total minerals and unacidified alkaline sparge
    water are warnings.
    """
    warnings: List[str] = []
    errors: List[str] = []
    mash: WaterProfile = plan['mash']['water_profile']

    if mash.calcium < ION_LIMITS['calcium']['min']:
        errors.append('Mash calcium below 50 ppm - enzyme activity may be affected')
    elif mash.calcium < 100:
        warnings.append('Mash calcium below 100 ppm - consider increasing for better enzyme activity')

    if target.calcium > 0 and abs(mash.calcium - target.calcium) / target.calcium > 0.2:
        warnings.append(
            f"Calcium deviation >20% from target ({mash.calcium:.0f} vs {target.calcium:.0f} ppm)"
        )

    minerals = mash.calcium + mash.magnesium + mash.sodium + mash.sulfate + mash.chloride
    if minerals > 1000:
        warnings.append('Very high total mineral content (>1000 ppm) - may taste minerally')
    elif minerals < 100:
        warnings.append('Very low total mineral content (<100 ppm) - may lack character')

    sparge: WaterProfile = plan['sparge']['water_profile']
    if sparge.bicarbonate > 100 and not plan['sparge']['acids'].get('lactic_88'):
        warnings.append('High sparge water alkalinity without acidification - risk of tannin extraction')

    return {'valid': not errors, 'warnings': warnings, 'errors': errors}


def merge_staged_additions(plan: Dict[str, Any]) -> Dict[str, List[Any]]:
    """Flatten a staged plan into located salt and acid additions."""
    salts = []
    acids = []
    for location in ('mash', 'sparge', 'boil'):
        for name, amount in plan[location]['salts'].items():
            salts.append(SaltAddition(name=name, amount=amount, location=location))
    for location in ('mash', 'sparge'):
        for key, amount in plan[location]['acids'].items():
            name, concentration = parse_acid_name(key)
            acids.append(AcidAddition(name=name, amount=amount, concentration=concentration, location=location))
    return {'salts': salts, 'acids': acids}


async def plan_staged_additions(input_data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Plans salt and acid placement across mash, sparge and boil.

    Args:
        input_data: Dictionary containing:
            - source_water: Starting ion concentrations (mg/L)
            - target_water or style: Target profile, or a style profile id
            - volumes: total/mash/sparge liters (must be consistent)
            - calcium_minimum: Mash calcium floor in ppm
            - sparge_acidification, target_sparge_ph: Sparge acid options
            - avoid_boil_minerals: Keep every salt out of the boil

    Returns:
        Dictionary with per-stage additions, stage waters, validation and rationale
    """
    logger.info("Running plan_staged_additions tool...")

    try:
        input_model = PlanStagedAdditionsInput(**input_data)
    except Exception as e:
        raise InputValidationError(f"Input validation error: {e}")

    errors = validate_volumes(input_model.volumes)
    if errors:
        raise InputValidationError("Invalid volumes for staged mode: " + "; ".join(errors))

    target = input_model.target_water
    if target is None:
        target = WaterProfile(**get_style_profile(input_model.style)['ions'])

    plan = determine_distribution_strategy(
        input_model.source_water,
        target,
        input_model.volumes,
        calcium_minimum=input_model.calcium_minimum,
        sparge_acidification=input_model.sparge_acidification,
        target_sparge_ph=input_model.target_sparge_ph,
        avoid_boil_minerals=input_model.avoid_boil_minerals,
    )
    validation = validate_staged_distribution(plan, target)
    merged = merge_staged_additions(plan)

    logger.info(
        f"Staged plan: {len(merged['salts'])} salt and {len(merged['acids'])} acid additions, "
        f"valid={validation['valid']}"
    )
    return {
        'mash': {
            'salts': plan['mash']['salts'],
            'acids': plan['mash']['acids'],
            'water_profile': plan['mash']['water_profile'].model_dump(),
        },
        'sparge': {
            'salts': plan['sparge']['salts'],
            'acids': plan['sparge']['acids'],
            'water_profile': plan['sparge']['water_profile'].model_dump(),
        },
        'boil': plan['boil'],
        'kettle_water': plan['kettle_water'].model_dump(),
        'additions': {
            'salts': [addition.model_dump() for addition in merged['salts']],
            'acids': [addition.model_dump() for addition in merged['acids']],
        },
        'validation': validation,
        'target_water': target.model_dump(),
        'warnings': plan['warnings'] + validation['warnings'],
        'rationale': plan['rationale'],
    }
