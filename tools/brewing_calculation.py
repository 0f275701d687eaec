"""
End-to-end brewing water calculation.

Manual mode takes the brewer's salts and acids and predicts the result;
auto mode picks the salts with an optimizer and the mash acid needed to
reach the target mash pH.
"""

import logging
from typing import Any, Dict, List

from utils.constants import ION_FIELDS
from utils.exceptions import InputValidationError
from utils.helpers import parse_acid_name, round_grams
from utils.salt_registry import find_acid
from .acid_dosing import acid_ion_contribution, acid_needed, dose_meq, sparge_acid_needed
from .mash_ph import calculate_ph_progression, estimate_ph
from .optimization_tools import match_score, optimize, resolve_target
from .schemas import (
    AcidAddition,
    CalculateBrewingWaterInput,
    CalculationOptions,
    GrainBillItem,
    SaltAddition,
    Volumes,
    WaterProfile,
)
from .staged_distribution import distribute_acids, distribute_salts, salt_locations
from .water_metrics import analyze_water_profile, residual_alkalinity, sulfate_chloride_ratio
from .water_profile import (
    compose_profile,
    compose_staged,
    effective_volume,
    validate_volumes,
    volume_mode_explanation,
)

logger = logging.getLogger(__name__)


def _compose_waters(
    source: WaterProfile,
    salts: Dict[str, float],
    volumes: Volumes,
    options: CalculationOptions,
    locations: Dict[str, str],
) -> Dict[str, Any]:
    """Achieved (kettle) water plus the mash water the pH models see."""
    composed = compose_profile(
        source, salts, volumes, options.volume_mode, locations, options.assume_carbonate_dissolution
    )
    if options.volume_mode != 'staged':
        return {'achieved': composed.profile, 'mash': composed.profile, 'compose': composed}

    by_location: Dict[str, Dict[str, float]] = {'mash': {}, 'sparge': {}, 'boil': {}}
    for name, grams in salts.items():
        by_location[locations.get(name, 'mash')][name] = grams
    stages = compose_staged(source, by_location, volumes, options.assume_carbonate_dissolution)
    return {'achieved': composed.profile, 'mash': stages['mash'].profile, 'compose': composed}


def _apply_acid_anions(
    profile: WaterProfile,
    acids: List[AcidAddition],
    volume: float,
) -> WaterProfile:
    """Add the sulfate or chloride an acid dose leaves behind."""
    if volume <= 0:
        return profile
    update = {}
    for acid in acids:
        for anion, ppm in acid_ion_contribution(acid.name, acid.amount, acid.concentration, volume).items():
            if anion in ION_FIELDS:
                update[anion] = update.get(anion, getattr(profile, anion)) + ppm
    return profile.model_copy(update=update) if update else profile


def _mash_acid_meq(acids: List[AcidAddition], warnings: List[str]) -> float:
    total = 0.0
    for acid in acids:
        if find_acid(acid.name) is None:
            message = f"Unknown acid '{acid.name}' ignored"
            logger.warning(message)
            warnings.append(message)
            continue
        total += dose_meq(acid.name, acid.amount, acid.concentration)
    return total


def _adjustments(salts_by_location: Dict[str, list], acids_by_location: Dict[str, list]) -> Dict[str, Any]:
    salts = [a.model_dump() for location in ('mash', 'sparge', 'boil') for a in salts_by_location[location]]
    acids = [a.model_dump() for location in ('mash', 'sparge') for a in acids_by_location.get(location, [])]
    return {
        'salts': salts,
        'acids': acids,
        'mash': {
            'salts': [a.model_dump() for a in salts_by_location['mash']],
            'acids': [a.model_dump() for a in acids_by_location.get('mash', [])],
        },
        'sparge': {
            'salts': [a.model_dump() for a in salts_by_location['sparge']],
            'acids': [a.model_dump() for a in acids_by_location.get('sparge', [])],
        },
        'boil': {'salts': [a.model_dump() for a in salts_by_location['boil']]},
    }


def _predictions(
    source: WaterProfile,
    mash_water: WaterProfile,
    achieved: WaterProfile,
    grain_bill: List[GrainBillItem],
    options: CalculationOptions,
    acid_meq: float,
    warnings: List[str],
) -> Dict[str, Any]:
    progression = calculate_ph_progression(
        source,
        mash_water,
        grain_bill,
        options.ph_model,
        options.mash_thickness,
        options.mash_temperature,
        acid_meq,
    )
    estimate = estimate_ph(
        options.ph_model, mash_water, grain_bill, options.mash_thickness, options.mash_temperature
    )
    for message in estimate.warnings:
        if message not in warnings:
            warnings.append(message)

    return {
        'mash_ph': progression.final_ph,
        'ph_model': options.ph_model,
        'ph_converged': estimate.converged,
        'ph_progression': progression.model_dump(),
        'residual_alkalinity': residual_alkalinity(achieved),
        'sulfate_chloride_ratio': sulfate_chloride_ratio(achieved).model_dump(),
    }


def calculate_manual(request: CalculateBrewingWaterInput) -> Dict[str, Any]:
    """Predict the water and mash pH for the brewer's own additions."""
    options = request.options
    warnings: List[str] = []

    salts_by_location = distribute_salts(request.salts, options.volume_mode)
    locations = salt_locations(salts_by_location)
    if request.salt_locations:
        # Explicit placements override the defaults
        locations.update(request.salt_locations)
        salts_by_location = {'mash': [], 'sparge': [], 'boil': []}
        for name, amount in request.salts.items():
            if amount:
                location = locations.get(name, 'mash')
                salts_by_location[location].append(SaltAddition(name=name, amount=amount, location=location))

    waters = _compose_waters(request.source_water, request.salts, request.volumes, options, locations)
    warnings.extend(waters['compose'].warnings)

    acids_by_location = distribute_acids(request.acids, options.volume_mode)
    mash_acids = acids_by_location['mash']
    acid_meq = _mash_acid_meq(mash_acids, warnings)

    mash_volume = effective_volume(request.volumes, options.volume_mode, 'mash')
    achieved = _apply_acid_anions(waters['achieved'], mash_acids, mash_volume)
    mash_water = _apply_acid_anions(waters['mash'], mash_acids, mash_volume)

    predictions = _predictions(
        request.source_water, mash_water, achieved, request.grain_bill, options, acid_meq, warnings
    )

    analysis = analyze_water_profile(achieved)
    if request.target_water is not None or request.style:
        resolved = resolve_target(request.target_water, request.style)
        style = resolved['character'] or sulfate_chloride_ratio(resolved['target']).character
        analysis['match_percentage'] = match_score(achieved, resolved['target'], style)

    return {
        'mode': 'manual',
        'adjustments': _adjustments(salts_by_location, acids_by_location),
        'achieved_water': achieved.model_dump(),
        'mash_water': mash_water.model_dump(),
        'predictions': predictions,
        'analysis': analysis,
        'volume_mode_explanation': volume_mode_explanation(options.volume_mode),
        'warnings': warnings,
    }


def calculate_auto(request: CalculateBrewingWaterInput) -> Dict[str, Any]:
    """Optimize salts toward a target, then dose acid to the target mash pH."""
    options = request.options
    warnings: List[str] = []

    resolved = resolve_target(request.target_water, request.style)
    target = resolved['target']
    if target is None:
        raise InputValidationError("Auto mode requires 'target_water' or 'style'")

    result = optimize(
        request.strategy,
        request.source_water,
        target,
        request.volumes,
        options.volume_mode,
        {'target_style': resolved['character']},
        options.assume_carbonate_dissolution,
    )
    warnings.extend(result.warnings)

    salts_by_location = distribute_salts(result.salts, options.volume_mode)
    locations = salt_locations(salts_by_location)
    waters = _compose_waters(request.source_water, result.salts, request.volumes, options, locations)
    for message in waters['compose'].warnings:
        if message not in warnings:
            warnings.append(message)

    after_salts = estimate_ph(
        options.ph_model, waters['mash'], request.grain_bill, options.mash_thickness, options.mash_temperature
    )
    acid_name, concentration = parse_acid_name(request.mash_acid)
    dose = acid_needed(
        after_salts.ph, options.target_mash_ph, request.grain_bill, acid_name, concentration
    )
    warnings.extend(dose.warnings)

    acids: Dict[str, float] = {}
    if dose.amount > 0:
        acids[f"{dose.acid}_{dose.concentration:g}"] = round_grams(dose.amount)
    acids_by_location = distribute_acids(acids, options.volume_mode)

    if options.volume_mode == 'staged' and request.volumes.sparge > 0:
        sparge_dose = sparge_acid_needed(
            request.volumes.sparge,
            request.source_water.bicarbonate,
            request.source_water.ph,
            options.target_sparge_ph,
            acid_name,
            concentration,
        )
        if sparge_dose.amount >= 0.1:
            acids_by_location['sparge'].append(
                AcidAddition(
                    name=sparge_dose.acid,
                    amount=round_grams(sparge_dose.amount),
                    concentration=sparge_dose.concentration,
                    location='sparge',
                    unit=sparge_dose.unit,
                )
            )

    mash_volume = effective_volume(request.volumes, options.volume_mode, 'mash')
    achieved = _apply_acid_anions(waters['achieved'], acids_by_location['mash'], mash_volume)
    mash_water = _apply_acid_anions(waters['mash'], acids_by_location['mash'], mash_volume)

    predictions = _predictions(
        request.source_water, mash_water, achieved, request.grain_bill, options, dose.meq, warnings
    )

    analysis = analyze_water_profile(achieved)
    analysis['match_percentage'] = result.match_percentage

    return {
        'mode': 'auto',
        'target_water': target.model_dump(),
        'style': resolved['style'],
        'adjustments': _adjustments(salts_by_location, acids_by_location),
        'achieved_water': achieved.model_dump(),
        'mash_water': mash_water.model_dump(),
        'predictions': predictions,
        'acid_dose': dose.model_dump(),
        'optimization': {
            'strategy': result.strategy,
            'converged': result.converged,
            'feasible': result.feasible,
            'total_deviation': result.total_deviation,
            'match_percentage': result.match_percentage,
            'rationale': result.rationale,
        },
        'analysis': analysis,
        'volume_mode_explanation': volume_mode_explanation(options.volume_mode),
        'warnings': warnings,
    }


async def calculate_brewing_water(input_data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Calculates brewing water adjustments and the resulting mash pH.

    Args:
        input_data: Dictionary containing:
            - mode: 'manual' (given salts and acids) or 'auto' (optimize)
            - source_water: Starting ion concentrations (mg/L)
            - target_water or style: Target for auto mode
            - grain_bill: Grains in the mash
            - volumes: total/mash/sparge liters
            - options: volume_mode, ph_model, target_mash_ph, ...
            - salts, salt_locations, acids: Manual additions
            - strategy, mash_acid: Auto mode optimizer and acid

    Returns:
        Dictionary with per-stage adjustments, achieved water, pH
        predictions, analysis and warnings
    """
    logger.info("Running calculate_brewing_water tool...")

    try:
        request = CalculateBrewingWaterInput(**input_data)
    except Exception as e:
        raise InputValidationError(f"Input validation error: {e}")

    if request.options.volume_mode == 'staged':
        errors = validate_volumes(request.volumes)
        if errors:
            raise InputValidationError("Invalid volumes for staged mode: " + "; ".join(errors))

    if request.mode == 'manual':
        output = calculate_manual(request)
    else:
        output = calculate_auto(request)

    logger.info(
        f"Brewing water ({output['mode']}): {len(output['adjustments']['salts'])} salts, "
        f"mash pH {output['predictions']['mash_ph']:.2f}"
    )
    return output
