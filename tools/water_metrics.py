"""
Derived water metrics: residual alkalinity, sulfate:chloride ratio,
hardness, ion charge balance and a brewing suitability analysis.
"""

import logging
from typing import Any, Dict, Optional

from utils.constants import (
    ANION_FIELDS,
    CATION_FIELDS,
    EQUIVALENT_WEIGHT,
    HARDNESS_CALCIUM_FACTOR,
    HARDNESS_MAGNESIUM_FACTOR,
    HOPPY_RATIO_THRESHOLD,
    ION_BALANCE_THRESHOLD_PERCENT,
    ION_FIELDS,
    ION_LIMITS,
    MALTY_RATIO_THRESHOLD,
    RA_BICARBONATE_FACTOR,
    RA_CALCIUM_DIVISOR,
    RA_CARBONATE_FACTOR,
    RA_MAGNESIUM_DIVISOR,
)
from utils.exceptions import InputValidationError
from .schemas import AnalyzeWaterInput, IonBalance, SulfateChlorideRatio, WaterProfile

logger = logging.getLogger(__name__)


def residual_alkalinity(profile: WaterProfile) -> float:
    """
    Kolbach residual alkalinity in ppm as CaCO3.

    RA = (HCO3 * 0.82 + CO3 * 1.67) - (Ca / 1.4 + Mg / 1.7)
    """
    alkalinity = profile.bicarbonate * RA_BICARBONATE_FACTOR + profile.carbonate * RA_CARBONATE_FACTOR
    return alkalinity - (profile.calcium / RA_CALCIUM_DIVISOR + profile.magnesium / RA_MAGNESIUM_DIVISOR)


def classify_ratio(ratio: Optional[float], sulfate: float = 0.0) -> str:
    if ratio is None:
        # Chloride-free water reads as hoppy if it carries any sulfate at all
        return "hoppy" if sulfate > 0 else "balanced"
    if ratio > HOPPY_RATIO_THRESHOLD:
        return "hoppy"
    if ratio < MALTY_RATIO_THRESHOLD:
        return "malty"
    return "balanced"


def sulfate_chloride_ratio(profile: WaterProfile) -> SulfateChlorideRatio:
    """SO4/Cl, tagged as undefined when the water has no chloride."""
    if profile.chloride == 0:
        return SulfateChlorideRatio(
            value=None, defined=False, character=classify_ratio(None, profile.sulfate)
        )
    ratio = profile.sulfate / profile.chloride
    return SulfateChlorideRatio(value=ratio, defined=True, character=classify_ratio(ratio))


def ratio_value(profile: WaterProfile) -> Optional[float]:
    return sulfate_chloride_ratio(profile).value


def total_hardness(profile: WaterProfile) -> float:
    """Total hardness as CaCO3."""
    return profile.calcium * HARDNESS_CALCIUM_FACTOR + profile.magnesium * HARDNESS_MAGNESIUM_FACTOR


def effective_hardness(profile: WaterProfile) -> float:
    return profile.calcium + profile.magnesium


def ion_balance(profile: WaterProfile) -> IonBalance:
    """
    Charge balance of a water report.

    Converts each ion to mEq/L, sums cations and anions separately and
    reports (cations - anions) / (cations + anions) as a percentage.
    An imbalance above 5% usually means an incomplete or inconsistent
    water report rather than a chemistry problem.
    """
    cations = sum(getattr(profile, ion) / EQUIVALENT_WEIGHT[ion] for ion in CATION_FIELDS)
    anions = sum(getattr(profile, ion) / EQUIVALENT_WEIGHT[ion] for ion in ANION_FIELDS)
    total = cations + anions

    imbalance = 0.0 if total == 0 else (cations - anions) / total * 100
    balanced = abs(imbalance) <= ION_BALANCE_THRESHOLD_PERCENT
    warning = None
    if not balanced:
        side = "cations" if imbalance > 0 else "anions"
        warning = (
            f"Ion balance is off by {abs(imbalance):.1f}% (excess {side}); "
            f"check the water report for missing or mistyped ions"
        )

    return IonBalance(
        cation_meq=cations,
        anion_meq=anions,
        imbalance_percent=imbalance,
        balanced=balanced,
        warning=warning,
    )


def ion_limit_status(profile: WaterProfile) -> Dict[str, Dict[str, Any]]:
    """Classify each ion as low, optimal, acceptable or high against brewing limits."""
    status = {}
    for ion in ION_FIELDS:
        value = getattr(profile, ion)
        limits = ION_LIMITS[ion]
        low, high = limits['optimal']
        if value < limits['min']:
            level = 'low'
        elif value > limits['max']:
            level = 'high'
        elif low <= value <= high:
            level = 'optimal'
        else:
            level = 'acceptable'
        status[ion] = {
            'value': value,
            'status': level,
            'min': limits['min'],
            'max': limits['max'],
            'optimal': list(limits['optimal']),
        }
    return status


def _hardness_class(hardness_caco3: float) -> str:
    if hardness_caco3 < 60:
        return 'soft'
    if hardness_caco3 < 120:
        return 'moderately hard'
    if hardness_caco3 < 180:
        return 'hard'
    return 'very hard'


def _alkalinity_class(bicarbonate: float) -> str:
    if bicarbonate < 50:
        return 'low'
    if bicarbonate <= 150:
        return 'moderate'
    return 'high'


def analyze_water_profile(profile: WaterProfile) -> Dict[str, Any]:
    """
    Analyze a water profile for brewing suitability.

    Args:
        profile: Water to analyze

    Returns:
        Dictionary with calcium level, flavor profile, hardness and
        alkalinity classes, per-ion status, ion balance, warnings and
        suggestions
    """
    warnings = []
    suggestions = []

    if profile.calcium < 50:
        calcium_level = 'low'
        warnings.append('Calcium is below 50 ppm - may affect enzyme activity and yeast health')
        suggestions.append('Add gypsum or calcium chloride to increase calcium')
    elif profile.calcium > 150:
        calcium_level = 'high'
        warnings.append('Calcium is above 150 ppm - may taste minerally')
    else:
        calcium_level = 'optimal'

    if profile.magnesium > 30:
        warnings.append('Magnesium is above 30 ppm - may taste bitter or sour')
    elif profile.magnesium < 5:
        suggestions.append('Consider adding Epsom salt for yeast nutrition (5-10 ppm Mg)')

    if profile.sodium > 150:
        warnings.append('Sodium is above 150 ppm - may taste salty')

    ratio = sulfate_chloride_ratio(profile)
    if ratio.value is not None and ratio.value > 5:
        warnings.append('Very high sulfate:chloride ratio - may be harsh')
    elif ratio.value is not None and ratio.value < 0.3:
        warnings.append('Very low sulfate:chloride ratio - may lack hop character')
    elif not ratio.defined and profile.sulfate > 0:
        warnings.append('No chloride present - sulfate:chloride ratio is undefined')

    if profile.bicarbonate > 200:
        warnings.append('High bicarbonate - will raise mash pH, use acid')

    hardness = effective_hardness(profile)
    if hardness < 50:
        warnings.append('Very soft water - may need mineral additions')
    elif hardness > 300:
        warnings.append('Very hard water - may taste minerally')

    balance = ion_balance(profile)
    if balance.warning:
        warnings.append(balance.warning)

    return {
        'calcium_level': calcium_level,
        'flavor_profile': ratio.character,
        'sulfate_chloride_ratio': ratio.model_dump(),
        'residual_alkalinity': residual_alkalinity(profile),
        'total_hardness': total_hardness(profile),
        'hardness_class': _hardness_class(total_hardness(profile)),
        'alkalinity_class': _alkalinity_class(profile.bicarbonate),
        'ion_status': ion_limit_status(profile),
        'ion_balance': balance.model_dump(),
        'warnings': warnings,
        'suggestions': suggestions,
    }


async def analyze_water(input_data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Analyzes a water profile for brewing.

    Args:
        input_data: Dictionary containing:
            - water: Ion concentrations in mg/L

    Returns:
        Dictionary with the analysis summary
    """
    logger.info("Running analyze_water tool...")

    try:
        input_model = AnalyzeWaterInput(**input_data)
    except Exception as e:
        raise InputValidationError(f"Input validation error: {e}")

    analysis = analyze_water_profile(input_model.water)
    analysis['water'] = input_model.water.model_dump()
    logger.info(
        f"Water analysis: calcium {analysis['calcium_level']}, "
        f"flavor {analysis['flavor_profile']}, {len(analysis['warnings'])} warnings"
    )
    return analysis
