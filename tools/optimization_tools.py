"""
Salt optimization for brewing water.

Three strategies share one result type:
- minimal: fewest salts; calcium floor first, then a nudge of the
  sulfate:chloride ratio toward the style's character
- balanced: greedy pass over a fixed priority list of salts, each dosed
  at 80% of what the most constraining unmet ion needs
- exact: coordinate refinement of every allowed salt at decreasing
  step sizes, minimising total absolute ion deviation

Salt grams are sized against the effective volume of the volume mode
(mash volume for 'mash' and 'staged', total volume for 'total').
"""

import logging
from typing import Any, Dict, List, Optional

import numpy as np

from utils.constants import (
    BALANCED_DAMPING,
    BALANCED_DEFAULT_MAX_SALTS,
    BALANCED_MAX_SALT_GRAMS,
    BALANCED_PRIORITY_SALTS,
    EXACT_DEFAULT_MAX_ITERATIONS,
    EXACT_DEFAULT_MAX_SALT_GRAMS,
    EXACT_DEFAULT_TOLERANCE,
    EXACT_INITIAL_FRACTION,
    EXACT_STEP_SIZES,
    EXACT_WARN_SALT_COUNT,
    EXACT_WARN_SALT_GRAMS,
    ION_FIELDS,
    ION_LIMITS,
    MIN_ADDITION_GRAMS,
    MINIMAL_BALANCED_CAP,
    MINIMAL_BALANCED_GYPSUM_CAP,
    MINIMAL_BALANCED_RATIO_BAND,
    MINIMAL_DEFAULT_MAX_SALTS,
    MINIMAL_HOPPY_GYPSUM_CAP,
    MINIMAL_MALTY_SALT_CAP,
    SULFATE_CHLORIDE_RATIOS,
)
from utils.convergence_strategies import ConvergenceStrategy
from utils.exceptions import InputValidationError, OptimizationConvergenceError
from utils.helpers import ceil_grams, clean_additions, round_grams
from utils.profile_library import get_style_profile
from utils.salt_registry import SALTS, find_salt
from .schemas import OptimizationResult, OptimizeSaltAdditionsInput, Volumes, WaterProfile
from .water_metrics import ion_balance, sulfate_chloride_ratio
from .water_profile import compose_profile, effective_salt_yields, effective_volume

logger = logging.getLogger(__name__)


# =============================================================================
# Shared helpers
# =============================================================================

def _ion_vector(profile: WaterProfile) -> np.ndarray:
    return np.array([getattr(profile, ion) for ion in ION_FIELDS], dtype=float)


def _salt_yield_vector(salt_id: str, assume_carbonate_dissolution: bool = True) -> np.ndarray:
    """ppm per gram per liter for the six tracked ions."""
    yields = effective_salt_yields(SALTS[salt_id], assume_carbonate_dissolution)
    return np.array([yields.get(ion, 0.0) for ion in ION_FIELDS], dtype=float)


def optimization_volume(volumes: Volumes, volume_mode: str = 'mash') -> float:
    """Liters salt grams are sized against; staged plans dose the mash."""
    location = 'mash' if volume_mode == 'staged' else None
    mode = 'mash' if volume_mode == 'staged' else volume_mode
    return effective_volume(volumes, mode, location)


def _compose_volume_mode(volume_mode: str) -> str:
    return 'mash' if volume_mode == 'staged' else volume_mode


def ion_deviations(achieved: WaterProfile, target: WaterProfile) -> Dict[str, float]:
    """Signed achieved - target per ion."""
    return {ion: getattr(achieved, ion) - getattr(target, ion) for ion in ION_FIELDS}


def style_ratio_target(style: str) -> float:
    return SULFATE_CHLORIDE_RATIOS[style]['target']


def match_score(
    achieved: WaterProfile,
    target: Optional[WaterProfile] = None,
    style: str = 'balanced',
) -> float:
    """
    0-100 brewing match score.

    Calcium adequacy weighs 30, sulfate:chloride ratio proximity to the
    style target 25, and per-ion relative deviation from the target 7.5
    each.
    """
    score = 100.0
    calcium = ION_LIMITS['calcium']
    if achieved.calcium < calcium['min']:
        score -= 30 * (1 - achieved.calcium / calcium['min'])
    elif achieved.calcium > calcium['max']:
        score -= 15 * ((achieved.calcium - calcium['max']) / calcium['max'])

    ratio = sulfate_chloride_ratio(achieved).value
    target_ratio = style_ratio_target(style)
    if ratio is None:
        score -= 25
    else:
        score -= 25 * min(abs(ratio - target_ratio) / target_ratio, 1)

    if target is not None:
        for ion in ION_FIELDS:
            goal = getattr(target, ion)
            if goal > 0:
                score -= 7.5 * min(abs(getattr(achieved, ion) - goal) / goal, 1)

    return max(0.0, score)


def _target_style(target: Optional[WaterProfile], target_style: Optional[str]) -> str:
    if target_style:
        return target_style
    if target is None:
        return 'balanced'
    return sulfate_chloride_ratio(target).character


def _finish(
    strategy: str,
    source: WaterProfile,
    target: Optional[WaterProfile],
    salts: Dict[str, float],
    volumes: Volumes,
    volume_mode: str,
    assume_carbonate_dissolution: bool,
    style: str,
    warnings: List[str],
    rationale: List[str],
    **extra: Any,
) -> OptimizationResult:
    """Round the additions, compose the achieved water and score it."""
    cleaned = clean_additions(salts)
    composed = compose_profile(
        source,
        cleaned,
        volumes,
        _compose_volume_mode(volume_mode),
        None,
        assume_carbonate_dissolution,
    )
    achieved = composed.profile
    deviations = ion_deviations(achieved, target) if target is not None else {}
    total = float(sum(abs(d) for d in deviations.values()))

    for message in composed.warnings:
        if message not in warnings:
            warnings.append(message)

    return OptimizationResult(
        strategy=strategy,
        salts=cleaned,
        achieved_profile=achieved,
        deviations=deviations,
        total_deviation=total,
        match_percentage=match_score(achieved, target, style),
        warnings=warnings,
        rationale=rationale,
        **extra,
    )


# =============================================================================
# Minimal strategy
# =============================================================================

def optimize_minimal(
    source: WaterProfile,
    volumes: Volumes,
    target: Optional[WaterProfile] = None,
    target_style: Optional[str] = None,
    ensure_calcium: bool = True,
    max_salts: int = MINIMAL_DEFAULT_MAX_SALTS,
    volume_mode: str = 'mash',
    assume_carbonate_dissolution: bool = True,
) -> OptimizationResult:
    """
    Fewest-salts correction.

    1. Raise calcium to the floor (50 ppm, or the target's calcium if
       lower) with gypsum for hoppy styles or calcium chloride otherwise.
    2. If salt budget remains, nudge the sulfate:chloride ratio toward
       the target ratio with one capped addition.

    Args:
        source: Starting water
        volumes: Brewing volumes
        target: Optional target profile; sets the calcium floor and ratio
        target_style: 'hoppy', 'balanced' or 'malty'; inferred from the target when omitted
        ensure_calcium: Apply the calcium floor
        max_salts: Maximum number of different salts
        volume_mode: Volume mode the grams are sized for

    Returns:
        OptimizationResult
    """
    style = _target_style(target, target_style)
    volume = optimization_volume(volumes, volume_mode)
    salts: Dict[str, float] = {}
    rationale: List[str] = []
    warnings: List[str] = []

    if volume <= 0:
        warnings.append('No volume to dose; no salts added')
        return _finish('minimal', source, target, salts, volumes, volume_mode,
                       assume_carbonate_dissolution, style, warnings, rationale)

    target_ratio = style_ratio_target(style)
    if target is not None:
        explicit_ratio = sulfate_chloride_ratio(target).value
        # A sulfate-free target has no usable ratio to steer toward
        if explicit_ratio is not None and explicit_ratio > 0:
            target_ratio = explicit_ratio

    calcium_floor = ION_LIMITS['calcium']['min']
    if target is not None:
        calcium_floor = min(calcium_floor, target.calcium)

    current = source.ions()

    def add(salt_id: str, grams: float) -> None:
        salts[salt_id] = salts.get(salt_id, 0.0) + grams
        for ion, ion_yield in effective_salt_yields(SALTS[salt_id], assume_carbonate_dissolution).items():
            if ion in current:
                current[ion] += grams / volume * ion_yield

    # Step 1: calcium floor
    if ensure_calcium and current['calcium'] < calcium_floor:
        needed = calcium_floor - current['calcium']
        salt_id = 'gypsum' if style == 'hoppy' else 'calcium_chloride'
        grams = ceil_grams(needed / SALTS[salt_id].ions['calcium'] * volume)
        add(salt_id, grams)
        rationale.append(
            f"Added {grams}g {SALTS[salt_id].name.lower()} for minimum calcium ({calcium_floor:g} ppm)"
        )

    # Step 2: ratio nudge
    if len(salts) < max_salts:
        ratio = current['sulfate'] / current['chloride'] if current['chloride'] > 0 else None

        if style == 'hoppy':
            if ratio is not None and ratio < target_ratio and 'gypsum' not in salts:
                sulfate_needed = current['chloride'] * target_ratio - current['sulfate']
                if sulfate_needed > 50:
                    grams = round_grams(min(sulfate_needed / SALTS['gypsum'].ions['sulfate'] * volume,
                                            MINIMAL_HOPPY_GYPSUM_CAP))
                    add('gypsum', grams)
                    rationale.append(f"Added {grams}g gypsum for hoppy character ({target_ratio:.1f}:1 sulfate:chloride)")

        elif style == 'malty':
            if ratio is not None and ratio > target_ratio:
                chloride_needed = current['sulfate'] / target_ratio - current['chloride']
                if chloride_needed > 30:
                    grams = round_grams(min(chloride_needed / SALTS['sodium_chloride'].ions['chloride'] * volume,
                                            MINIMAL_MALTY_SALT_CAP))
                    add('sodium_chloride', grams)
                    rationale.append(f"Added {grams}g salt for malty character ({target_ratio:.1f}:1 sulfate:chloride)")

        else:
            low = min(MINIMAL_BALANCED_RATIO_BAND[0], target_ratio)
            high = max(MINIMAL_BALANCED_RATIO_BAND[1], target_ratio)
            if ratio is not None and ratio > high:
                chloride_needed = current['sulfate'] / target_ratio - current['chloride']
                if chloride_needed > 30:
                    grams = round_grams(min(chloride_needed / SALTS['sodium_chloride'].ions['chloride'] * volume,
                                            MINIMAL_BALANCED_CAP))
                    add('sodium_chloride', grams)
                    rationale.append(f"Added {grams}g salt for balanced character")
            elif ratio is not None and ratio < low and 'gypsum' not in salts:
                sulfate_needed = current['chloride'] * target_ratio - current['sulfate']
                grams = round_grams(min(max(sulfate_needed, 0.0) / SALTS['gypsum'].ions['sulfate'] * volume,
                                        MINIMAL_BALANCED_GYPSUM_CAP))
                if grams >= MIN_ADDITION_GRAMS:
                    add('gypsum', grams)
                    rationale.append(f"Added {grams}g gypsum for balanced character")

    if not salts:
        rationale.append('Source water is adequate - no salt additions needed')

    return _finish('minimal', source, target, salts, volumes, volume_mode,
                   assume_carbonate_dissolution, style, warnings, rationale)


def assess_water_deficiencies(profile: WaterProfile) -> Dict[str, Any]:
    """Check whether a water needs any correction before brewing."""
    deficiencies = []
    recommendations = []

    if profile.calcium < ION_LIMITS['calcium']['min']:
        deficiencies.append(f"Calcium too low ({profile.calcium:g} ppm, need 50+)")
        recommendations.append('Add gypsum or calcium chloride')

    hardness = profile.calcium + profile.magnesium
    if hardness < 50:
        deficiencies.append(f"Very soft water ({hardness:g} ppm total hardness)")
        recommendations.append('Consider minimal salt additions for yeast health')

    if profile.sulfate + profile.chloride < 50:
        deficiencies.append('Low flavor ions (sulfate + chloride < 50 ppm)')
        recommendations.append('Add gypsum for hoppy or calcium chloride for malty character')

    minerals = profile.calcium + profile.magnesium + profile.sodium + profile.sulfate + profile.chloride
    if minerals > 500:
        deficiencies.append(f"High mineral content ({minerals:g} ppm) - consider dilution")
        recommendations.append('Dilute with RO or distilled water')

    return {
        'needs_correction': bool(deficiencies),
        'deficiencies': deficiencies,
        'recommendations': recommendations,
    }


# Deficiency -> (salt, ion it corrects)
_CORRECTIONS = {
    'calcium': ('gypsum', 'calcium'),
    'sulfate': ('gypsum', 'sulfate'),
    'chloride': ('calcium_chloride', 'chloride'),
    'alkalinity': ('baking_soda', 'bicarbonate'),
}


def minimal_correction(profile: WaterProfile, deficiency: str, volume: float = 1.0) -> Dict[str, Any]:
    """
    Single salt addition that lifts one ion to 50 ppm.

    Args:
        profile: Water to correct
        deficiency: 'calcium', 'sulfate', 'chloride' or 'alkalinity'
        volume: Liters the salt is dissolved in

    Returns:
        Dictionary with salt, amount (g) and rationale
    """
    if deficiency not in _CORRECTIONS:
        raise InputValidationError(
            f"Unknown deficiency '{deficiency}'. Choose one of: {', '.join(_CORRECTIONS)}"
        )
    salt_id, ion = _CORRECTIONS[deficiency]
    needed = max(0.0, 50 - getattr(profile, ion))
    if needed <= 0:
        return {'salt': 'none', 'amount': 0.0, 'rationale': 'No correction needed'}

    salt = SALTS[salt_id]
    amount = round_grams(needed / salt.ions[ion] * volume)
    return {
        'salt': salt_id,
        'amount': amount,
        'rationale': f"Add {amount}g {salt.name.lower()} to bring {deficiency} to 50 ppm",
    }


# =============================================================================
# Balanced strategy
# =============================================================================

def optimize_balanced(
    source: WaterProfile,
    target: WaterProfile,
    volumes: Volumes,
    max_salts: int = BALANCED_DEFAULT_MAX_SALTS,
    target_style: Optional[str] = None,
    allowed_salts: Optional[List[str]] = None,
    volume_mode: str = 'mash',
    assume_carbonate_dissolution: bool = True,
) -> OptimizationResult:
    """
    Greedy pass over the priority salts.

    Each salt that supplies at least one still-needed ion is dosed at 80%
    of the grams that would exactly meet its most constraining ion
    (capped at 10 g), until max_salts salts are used.
    """
    style = _target_style(target, target_style)
    volume = optimization_volume(volumes, volume_mode)
    salts: Dict[str, float] = {}
    rationale: List[str] = []
    warnings: List[str] = []

    priority = list(BALANCED_PRIORITY_SALTS)
    if allowed_salts is not None:
        allowed = {find_salt(name).id for name in allowed_salts if find_salt(name) is not None}
        priority = [salt_id for salt_id in priority if salt_id in allowed]

    needed = _ion_vector(target) - _ion_vector(source)

    if volume > 0:
        for salt_id in priority:
            if len(salts) >= max_salts:
                break

            yields = _salt_yield_vector(salt_id, assume_carbonate_dissolution)
            helpful = (yields > 0) & (needed > 0)
            if not helpful.any():
                continue

            full_amount = float(np.min(needed[helpful] / yields[helpful])) * volume
            if full_amount <= MIN_ADDITION_GRAMS:
                continue

            grams = min(full_amount * BALANCED_DAMPING, BALANCED_MAX_SALT_GRAMS)
            salts[salt_id] = grams
            needed = needed - yields * grams / volume
            helped = [ION_FIELDS[i] for i in np.flatnonzero(helpful)]
            rationale.append(f"Added {round_grams(grams)}g {SALTS[salt_id].name.lower()} for {', '.join(helped)}")
            logger.debug(f"Balanced: {salt_id} {grams:.2f} g, remaining need {needed.round(1).tolist()}")
    else:
        warnings.append('No volume to dose; no salts added')

    if not salts:
        rationale.append('Target already met by the source water - no salt additions needed')

    return _finish('balanced', source, target, salts, volumes, volume_mode,
                   assume_carbonate_dissolution, style, warnings, rationale)


def optimize_for_ratio(
    source: WaterProfile,
    target_ratio: float,
    volumes: Volumes,
    total_minerals: float = 300.0,
    volume_mode: str = 'mash',
) -> Dict[str, float]:
    """
    Gypsum and calcium chloride for a sulfate:chloride ratio.

    Splits total_minerals ppm of sulfate + chloride according to the ratio
    and adds whatever the source lacks of each.

    Returns:
        Salt id -> grams
    """
    if target_ratio <= 0:
        raise InputValidationError("Target sulfate:chloride ratio must be positive")

    volume = optimization_volume(volumes, volume_mode)
    target_sulfate = total_minerals * target_ratio / (1 + target_ratio)
    target_chloride = total_minerals / (1 + target_ratio)

    salts = {}
    sulfate_needed = max(0.0, target_sulfate - source.sulfate)
    chloride_needed = max(0.0, target_chloride - source.chloride)
    if sulfate_needed > 0:
        salts['gypsum'] = sulfate_needed / SALTS['gypsum'].ions['sulfate'] * volume
    if chloride_needed > 0:
        salts['calcium_chloride'] = chloride_needed / SALTS['calcium_chloride'].ions['chloride'] * volume
    return clean_additions(salts)


# =============================================================================
# Exact strategy
# =============================================================================

def _resolve_salt_subset(allowed_salts: Optional[List[str]], warnings: List[str]) -> List[str]:
    if allowed_salts is None:
        return list(SALTS.keys())
    resolved = []
    for name in allowed_salts:
        salt = find_salt(name)
        if salt is None:
            message = f"Unknown salt '{name}' ignored"
            logger.warning(message)
            warnings.append(message)
        elif salt.id not in resolved:
            resolved.append(salt.id)
    return resolved


def optimize_exact(
    source: WaterProfile,
    target: WaterProfile,
    volumes: Volumes,
    max_iterations: int = EXACT_DEFAULT_MAX_ITERATIONS,
    tolerance: float = EXACT_DEFAULT_TOLERANCE,
    allowed_salts: Optional[List[str]] = None,
    max_salt_amount: float = EXACT_DEFAULT_MAX_SALT_GRAMS,
    target_style: Optional[str] = None,
    volume_mode: str = 'mash',
    assume_carbonate_dissolution: bool = True,
) -> OptimizationResult:
    """
    Closest match to a target profile.

    Builds the salt x ion coefficient matrix (ppm per gram in the
    effective volume), starts every salt at half of what its limiting
    ion needs, and refines with +/- steps of 1.0, 0.5, 0.2 and 0.1 g,
    keeping only changes that lower the total absolute deviation.

    Args:
        source: Starting water
        target: Target water
        volumes: Brewing volumes
        max_iterations: Sweep budget shared across the step sizes
        tolerance: Acceptable ppm deviation per ion
        allowed_salts: Salt subset to search over (default: whole catalog)
        max_salt_amount: Upper bound in grams for any salt
        volume_mode: Volume mode the grams are sized for

    Returns:
        OptimizationResult; 'converged' means the total deviation is under
        tolerance x 6, 'impossible' that it is over tolerance x 20
    """
    style = _target_style(target, target_style)
    warnings: List[str] = []
    rationale: List[str] = []
    salt_ids = _resolve_salt_subset(allowed_salts, warnings)
    volume = optimization_volume(volumes, volume_mode)

    source_vec = _ion_vector(source)
    target_vec = _ion_vector(target)
    needed = target_vec - source_vec

    feasible = True
    if (needed < 0).any():
        feasible = False
        reduced = [ION_FIELDS[i] for i in np.flatnonzero(needed < 0)]
        message = (
            f"Cannot reduce {', '.join(reduced)} below source water levels - dilution needed"
        )
        logger.warning(message)
        warnings.append(message)

    if not salt_ids or volume <= 0:
        warnings.append('No salts or no volume to optimize with')
        return _finish('exact', source, target, {}, volumes, volume_mode,
                       assume_carbonate_dissolution, style, warnings, rationale,
                       converged=False, feasible=feasible, impossible=True)

    # Rows: salts, columns: ions, ppm per gram in the effective volume
    matrix = np.vstack([_salt_yield_vector(s, assume_carbonate_dissolution) for s in salt_ids]) / volume

    start = np.zeros(len(salt_ids))
    for index, row in enumerate(matrix):
        helpful = (row > 0) & (needed > 0)
        if helpful.any():
            limiting = float(np.min(needed[helpful] / row[helpful]))
            start[index] = min(limiting * EXACT_INITIAL_FRACTION, max_salt_amount)

    def objective(amounts: np.ndarray) -> float:
        return float(np.abs(source_vec + amounts @ matrix - target_vec).sum())

    ion_count = len(ION_FIELDS)
    search = ConvergenceStrategy.coordinate_refine(
        objective,
        start,
        EXACT_STEP_SIZES,
        iterations_per_step=max(1, max_iterations // len(EXACT_STEP_SIZES)),
        lower=0.0,
        upper=max_salt_amount,
        stop_below=tolerance * ion_count,
    )

    salts = {salt_id: float(amount) for salt_id, amount in zip(salt_ids, search['x']) if amount > 0}
    result = _finish('exact', source, target, salts, volumes, volume_mode,
                     assume_carbonate_dissolution, style, warnings, rationale,
                     feasible=feasible, iterations=search['sweeps'])

    total = result.total_deviation
    if total > tolerance * 12:
        result.warnings.append('Could not achieve exact match - consider adjusting targets')
    if len(result.salts) > EXACT_WARN_SALT_COUNT:
        result.warnings.append(f"Using {len(result.salts)} different salts - consider simplifying")
    for salt_id, grams in result.salts.items():
        if grams > EXACT_WARN_SALT_GRAMS:
            result.warnings.append(f"High amount of {salt_id} ({grams}g) - may affect flavor")
    if not ion_balance(result.achieved_profile).balanced:
        result.warnings.append('Significant ion imbalance detected - verify water analysis')

    result.converged = total < tolerance * ion_count
    result.impossible = total > tolerance * 20
    result.rationale.append(
        f"Refined {len(salt_ids)} salts over {search['sweeps']} sweeps to {total:.1f} ppm total deviation"
    )
    return result


def find_exact_combination(
    ion: str,
    target_value: float,
    source_value: float,
    allowed_salts: Optional[List[str]] = None,
    volume: float = 1.0,
) -> Dict[str, Any]:
    """
    Salt combinations that raise a single ion to a target value.

    Single-salt solutions up to 10 g are preferred; otherwise pairs of
    salts sharing the ion are tried at 20/40/60/80% splits, each salt at
    most 5 g.

    Returns:
        Dictionary with 'combinations' (salts, exact) and 'best_combination'
    """
    if ion not in ION_FIELDS:
        raise InputValidationError(f"Unknown ion '{ion}'. Choose one of: {', '.join(ION_FIELDS)}")

    needed = target_value - source_value
    if needed <= 0:
        return {'combinations': [], 'best_combination': {}}

    salt_ids = _resolve_salt_subset(allowed_salts, [])
    contributions = {
        salt_id: effective_salt_yields(SALTS[salt_id]).get(ion, 0.0) for salt_id in salt_ids
    }
    candidates = [salt_id for salt_id in salt_ids if contributions[salt_id] > 0]

    combinations = []
    for salt_id in candidates:
        amount = needed / contributions[salt_id] * volume
        if amount <= 10:
            combinations.append({'salts': {salt_id: round_grams(amount)}, 'exact': True})

    if not combinations:
        for i, first in enumerate(candidates):
            for second in candidates[i + 1:]:
                for share in (0.2, 0.4, 0.6, 0.8):
                    amount1 = needed * share / contributions[first] * volume
                    amount2 = needed * (1 - share) / contributions[second] * volume
                    if amount1 <= 5 and amount2 <= 5:
                        combinations.append({
                            'salts': {first: round_grams(amount1), second: round_grams(amount2)},
                            'exact': False,
                        })

    return {
        'combinations': combinations,
        'best_combination': combinations[0]['salts'] if combinations else {},
    }


# =============================================================================
# Dispatch
# =============================================================================

STRATEGIES = ('minimal', 'balanced', 'exact')


def optimize(
    strategy: str,
    source: WaterProfile,
    target: Optional[WaterProfile],
    volumes: Volumes,
    volume_mode: str = 'mash',
    constraints: Optional[Dict[str, Any]] = None,
    assume_carbonate_dissolution: bool = True,
) -> OptimizationResult:
    """
    Run the named optimization strategy.

    Args:
        strategy: 'minimal', 'balanced' or 'exact'
        source: Starting water
        target: Target water (optional for minimal)
        volumes: Brewing volumes
        volume_mode: Volume mode the grams are sized for
        constraints: Strategy options (max_salts, tolerance, max_iterations,
            allowed_salts, max_salt_amount, ensure_calcium, target_style)

    Returns:
        OptimizationResult
    """
    constraints = {k: v for k, v in (constraints or {}).items() if v is not None}

    if strategy == 'minimal':
        return optimize_minimal(
            source,
            volumes,
            target=target,
            target_style=constraints.get('target_style'),
            ensure_calcium=constraints.get('ensure_calcium', True),
            max_salts=constraints.get('max_salts', MINIMAL_DEFAULT_MAX_SALTS),
            volume_mode=volume_mode,
            assume_carbonate_dissolution=assume_carbonate_dissolution,
        )

    if target is None:
        raise InputValidationError(f"The {strategy} strategy requires a target water profile")

    if strategy == 'balanced':
        return optimize_balanced(
            source,
            target,
            volumes,
            max_salts=constraints.get('max_salts', BALANCED_DEFAULT_MAX_SALTS),
            target_style=constraints.get('target_style'),
            allowed_salts=constraints.get('allowed_salts'),
            volume_mode=volume_mode,
            assume_carbonate_dissolution=assume_carbonate_dissolution,
        )
    elif strategy == 'exact':
        return optimize_exact(
            source,
            target,
            volumes,
            max_iterations=constraints.get('max_iterations', EXACT_DEFAULT_MAX_ITERATIONS),
            tolerance=constraints.get('tolerance', EXACT_DEFAULT_TOLERANCE),
            allowed_salts=constraints.get('allowed_salts'),
            max_salt_amount=constraints.get('max_salt_amount', EXACT_DEFAULT_MAX_SALT_GRAMS),
            target_style=constraints.get('target_style'),
            volume_mode=volume_mode,
            assume_carbonate_dissolution=assume_carbonate_dissolution,
        )
    else:
        raise InputValidationError(
            f"Unknown optimization strategy: {strategy}. Choose from: {', '.join(STRATEGIES)}"
        )


def resolve_target(
    target_water: Optional[WaterProfile],
    style: Optional[str],
) -> Dict[str, Any]:
    """Target profile and flavor character from an explicit profile or a style id."""
    if target_water is not None:
        return {'target': target_water, 'character': None, 'style': None}
    if style:
        entry = get_style_profile(style)
        return {
            'target': WaterProfile(**entry['ions']),
            'character': entry['character'],
            'style': entry['id'],
        }
    return {'target': None, 'character': None, 'style': None}


async def optimize_salt_additions(input_data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Finds salt additions that move a source water toward a target.

    Args:
        input_data: Dictionary containing:
            - source_water: Starting ion concentrations (mg/L)
            - target_water or style: Target profile, or a style profile id
            - strategy: 'minimal', 'balanced' or 'exact'
            - volumes: total/mash/sparge liters
            - options: Calculation options (volume_mode, ...)
            - max_salts, tolerance, max_iterations, allowed_salts,
              max_salt_amount, ensure_calcium, target_style: Strategy options
            - require_convergence: Raise if the result did not converge

    Returns:
        Dictionary with the salt additions, achieved water and match diagnostics
    """
    logger.info("Running optimize_salt_additions tool...")

    try:
        input_model = OptimizeSaltAdditionsInput(**input_data)
    except Exception as e:
        raise InputValidationError(f"Input validation error: {e}")

    resolved = resolve_target(input_model.target_water, input_model.style)
    constraints = {
        'max_salts': input_model.max_salts,
        'tolerance': input_model.tolerance,
        'max_iterations': input_model.max_iterations,
        'allowed_salts': input_model.allowed_salts,
        'max_salt_amount': input_model.max_salt_amount,
        'ensure_calcium': input_model.ensure_calcium,
        'target_style': input_model.target_style or resolved['character'],
    }

    result = optimize(
        input_model.strategy,
        input_model.source_water,
        resolved['target'],
        input_model.volumes,
        input_model.options.volume_mode,
        constraints,
        input_model.options.assume_carbonate_dissolution,
    )

    if input_model.require_convergence and not result.converged:
        raise OptimizationConvergenceError(
            f"{result.strategy} optimization did not converge",
            strategy=result.strategy,
            best_solution=result.salts,
            total_deviation=result.total_deviation,
            reason='; '.join(result.warnings) or 'deviation above tolerance',
        )

    output = result.model_dump()
    if resolved['target'] is not None:
        output['target_water'] = resolved['target'].model_dump()
    if resolved['style']:
        output['style'] = resolved['style']

    logger.info(
        f"{result.strategy} optimization: {len(result.salts)} salts, "
        f"match {result.match_percentage:.0f}%, converged={result.converged}"
    )
    return output
