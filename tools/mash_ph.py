"""
Mash pH estimation.

Three interchangeable models of increasing fidelity:

- simple:   weighted distilled-water pH of the grain bill shifted by
            residual alkalinity
- kaiser:   malt buffer capacity and acidity by type and color against
            an effective water alkalinity
- advanced: charge balance between grain buffering, grain phosphate and
            the water's carbonate system, solved by bisection with
            Davies activity corrections

All models clamp their result to [4.0, 6.5].
"""

import logging
import math
from typing import Any, Dict, List, Optional

from utils.constants import (
    ADVANCED_PH_HIGH,
    ADVANCED_PH_LOW,
    ADVANCED_PH_MAX_ITERATIONS,
    ADVANCED_PH_TOLERANCE,
    ACCEPTABLE_MASH_PH,
    ACID_SAFETY_FACTOR,
    CARBONIC_ACID_PKA1,
    CARBONIC_ACID_PKA2,
    DAVIES_A,
    DEFAULT_MASH_TEMPERATURE,
    DEFAULT_MASH_THICKNESS,
    DISTILLED_PH_MAX,
    DISTILLED_PH_MIN,
    GRAIN_PHOSPHATE_MOL_PER_KG,
    ION_CHARGE,
    ION_FIELDS,
    KAISER_COLOR_DIVISOR,
    KAISER_DISTILLED_PH,
    KAISER_EMPTY_BILL_PH,
    KAISER_MIN_BUFFER,
    MOLAR_MASS,
    OPTIMAL_MASH_PH,
    PHOSPHORIC_ACID_PKA1,
    PHOSPHORIC_ACID_PKA2,
    PHOSPHORIC_ACID_PKA3,
    PH_CLAMP_MAX,
    PH_CLAMP_MIN,
    REFERENCE_TEMPERATURE,
    SIMPLE_BASE_PH,
    SIMPLE_COLOR_FACTOR,
    SIMPLE_EMPTY_BILL_PH,
    SIMPLE_RA_FACTOR,
    SIMPLE_TYPE_SHIFT,
    TEMP_CORRECTION_FACTOR,
    WATER_KW_25C,
    WATER_PKW_SLOPE,
)
from utils.convergence_strategies import ConvergenceStrategy
from utils.exceptions import InputValidationError, PhConvergenceError
from utils.grain_registry import lookup_grain
from utils.helpers import clamp
from .schemas import EstimateMashPhInput, GrainBillItem, PhEstimate, PhProgression, WaterProfile
from .water_metrics import residual_alkalinity

logger = logging.getLogger(__name__)


def _total_weight(grain_bill: List[GrainBillItem]) -> float:
    return sum(grain.weight for grain in grain_bill)


def grain_color(grain: GrainBillItem) -> float:
    """SRM color of a bill item, looked up by name when the recipe omits it."""
    if grain.color is not None:
        return grain.color
    return lookup_grain(grain.name, None, grain.type).color_srm


def ph_warnings(ph: float) -> List[str]:
    """Brewing warnings for a predicted mash pH."""
    if ph < ACCEPTABLE_MASH_PH['min']:
        return [f"Mash pH {ph:.2f} is very low - risk of harsh, thin beer"]
    if ph < OPTIMAL_MASH_PH['min']:
        return [f"Mash pH {ph:.2f} is below the optimal 5.2-5.6 range"]
    if ph > ACCEPTABLE_MASH_PH['max']:
        return [f"Mash pH {ph:.2f} is very high - risk of tannin extraction and poor conversion"]
    if ph > OPTIMAL_MASH_PH['max']:
        return [f"Mash pH {ph:.2f} is above the optimal 5.2-5.6 range"]
    return []


# =============================================================================
# Simple model
# =============================================================================

def distilled_water_ph(grain_bill: List[GrainBillItem]) -> float:
    """
    Weighted distilled-water mash pH of a grain bill.

    Starts from 5.72 for pale malt, applies a per-type shift weighted by
    each grain's share of the bill and lowers it by 0.002 per SRM of
    weighted color.
    """
    total = _total_weight(grain_bill)
    if total <= 0:
        return SIMPLE_EMPTY_BILL_PH

    ph = SIMPLE_BASE_PH
    weighted_color = 0.0
    for grain in grain_bill:
        share = grain.weight / total
        ph += SIMPLE_TYPE_SHIFT.get(grain.type, 0.0) * share
        weighted_color += grain_color(grain) * share
    ph -= weighted_color * SIMPLE_COLOR_FACTOR

    return clamp(ph, DISTILLED_PH_MIN, DISTILLED_PH_MAX)


def ra_ph_shift(ra: float, mash_thickness: float = DEFAULT_MASH_THICKNESS) -> float:
    """About 0.003 pH per ppm RA at 3 L/kg; thinner mashes shift less."""
    return ra * SIMPLE_RA_FACTOR * (DEFAULT_MASH_THICKNESS / mash_thickness)


def simple_ph(
    profile: WaterProfile,
    grain_bill: List[GrainBillItem],
    mash_thickness: float = DEFAULT_MASH_THICKNESS,
    temperature: Optional[float] = None,
) -> PhEstimate:
    di_ph = distilled_water_ph(grain_bill)
    ra = residual_alkalinity(profile)
    shift = ra_ph_shift(ra, mash_thickness)
    ph = clamp(di_ph + shift, PH_CLAMP_MIN, PH_CLAMP_MAX)
    return PhEstimate(
        model='simple',
        ph=ph,
        details={
            'distilled_water_ph': di_ph,
            'residual_alkalinity': ra,
            'ra_shift': shift,
        },
    )


# =============================================================================
# Kaiser model
# =============================================================================

def kaiser_malt_buffer(grain: GrainBillItem) -> float:
    """Malt buffer capacity in mEq/kg per pH unit from type and color."""
    color = grain_color(grain)
    if grain.type == 'base':
        return 30 + min(color * 0.5, 10)
    if grain.type == 'crystal':
        return 40 + min(color * 0.1, 15)
    if grain.type == 'roasted':
        return 55 + min(color * 0.05, 30)
    if grain.type == 'acidulated':
        return -35.0
    return 35.0


def kaiser_malt_acidity(grain: GrainBillItem) -> float:
    """Malt acidity in mEq/kg from type and color."""
    index = grain_color(grain) / KAISER_COLOR_DIVISOR
    if grain.type in ('base', 'wheat'):
        return index * 0.1
    if grain.type == 'crystal':
        return 0.45 * index + 6
    if grain.type == 'roasted':
        return 0.3 * index + 15
    if grain.type == 'acidulated':
        return 150.0
    return 0.0


def effective_alkalinity(profile: WaterProfile) -> float:
    """Alkalinity as CaCO3 less the calcium and magnesium phosphate precipitation effect."""
    alkalinity = profile.bicarbonate * 50 / 61
    return alkalinity - profile.calcium * 0.04 - profile.magnesium * 0.03


def kaiser_ph_detailed(
    profile: WaterProfile,
    grain_bill: List[GrainBillItem],
    mash_thickness: float = DEFAULT_MASH_THICKNESS,
    temperature: Optional[float] = None,
) -> PhEstimate:
    """
    Kaiser model with the intermediate quantities exposed.

    pH = 5.7 + (water charge - malt charge) / average buffer, then
    corrected by -0.003 per degree C above 25 C.
    """
    if temperature is None:
        temperature = DEFAULT_MASH_TEMPERATURE

    total = _total_weight(grain_bill)
    if total <= 0:
        return PhEstimate(
            model='kaiser',
            ph=KAISER_EMPTY_BILL_PH,
            details={'temperature': temperature},
            warnings=['Empty grain bill; returning the default mash pH'],
        )

    total_buffer = sum(kaiser_malt_buffer(g) * g.weight for g in grain_bill)
    total_acidity = sum(kaiser_malt_acidity(g) * g.weight for g in grain_bill)

    avg_buffer = total_buffer / total
    if avg_buffer < KAISER_MIN_BUFFER:
        # Bills dominated by acidulated malt drive the average toward zero
        logger.debug(f"Average buffer {avg_buffer:.2f} below {KAISER_MIN_BUFFER}, using the floor")
        avg_buffer = KAISER_MIN_BUFFER

    eff_alk = effective_alkalinity(profile)
    water_charge = eff_alk * 0.02 * mash_thickness
    malt_charge = total_acidity / total

    ph = KAISER_DISTILLED_PH + (water_charge - malt_charge) / avg_buffer
    ph -= (temperature - REFERENCE_TEMPERATURE) * TEMP_CORRECTION_FACTOR

    return PhEstimate(
        model='kaiser',
        ph=clamp(ph, PH_CLAMP_MIN, PH_CLAMP_MAX),
        details={
            'distilled_water_ph': KAISER_DISTILLED_PH,
            'water_contribution': water_charge,
            'malt_contribution': malt_charge,
            'buffer_capacity': avg_buffer,
            'effective_alkalinity': eff_alk,
            'temperature': temperature,
        },
    )


def kaiser_ph(
    profile: WaterProfile,
    grain_bill: List[GrainBillItem],
    mash_thickness: float = DEFAULT_MASH_THICKNESS,
    temperature: Optional[float] = None,
) -> PhEstimate:
    estimate = kaiser_ph_detailed(profile, grain_bill, mash_thickness, temperature)
    return estimate.model_copy(update={'details': {}})


# =============================================================================
# Advanced (equilibrium) model
# =============================================================================

def ionic_strength(profile: WaterProfile) -> float:
    """I = 0.5 * sum(c * z^2) with c in mol/L."""
    total = 0.0
    for ion in ION_FIELDS:
        molar = getattr(profile, ion) / 1000 / MOLAR_MASS[ion]
        total += molar * ION_CHARGE[ion] ** 2
    return 0.5 * total


def davies_log_gamma(charge: int, strength: float) -> float:
    """Davies equation: log10(gamma) = -A z^2 (sqrt(I) / (1 + sqrt(I)) - 0.3 I)."""
    root = math.sqrt(strength)
    return -DAVIES_A * charge ** 2 * (root / (1 + root) - 0.3 * strength)


def water_kw(temperature: float) -> float:
    return WATER_KW_25C * 10 ** (WATER_PKW_SLOPE * (temperature - REFERENCE_TEMPERATURE))


def conditional_pkas(strength: float, temperature: float) -> Dict[str, float]:
    """Temperature-corrected pKa values converted to concentration constants."""
    shift = TEMP_CORRECTION_FACTOR * (temperature - REFERENCE_TEMPERATURE)
    g1 = davies_log_gamma(1, strength)
    g2 = davies_log_gamma(2, strength)
    g3 = davies_log_gamma(3, strength)
    return {
        'carbonic_1': CARBONIC_ACID_PKA1 - shift + g1,
        'carbonic_2': CARBONIC_ACID_PKA2 - shift - g1 + g2,
        'phosphoric_1': PHOSPHORIC_ACID_PKA1 - shift + g1,
        'phosphoric_2': PHOSPHORIC_ACID_PKA2 - shift - g1 + g2,
        'phosphoric_3': PHOSPHORIC_ACID_PKA3 - shift - g2 + g3,
    }


def carbonate_fractions(ph: float, pka1: float, pka2: float) -> Dict[str, float]:
    """Fractions of carbonic acid, bicarbonate and carbonate at a pH."""
    h = 10 ** -ph
    k1 = 10 ** -pka1
    k2 = 10 ** -pka2
    denominator = h * h + k1 * h + k1 * k2
    return {
        'h2co3': h * h / denominator,
        'hco3': k1 * h / denominator,
        'co3': k1 * k2 / denominator,
    }


def phosphate_charge(ph: float, pka1: float, pka2: float, pka3: float) -> float:
    """Mean negative charge of phosphate (a1 + 2 a2 + 3 a3)."""
    h = 10 ** -ph
    k1 = 10 ** -pka1
    k2 = 10 ** -pka2
    k3 = 10 ** -pka3
    terms = [h ** 3, k1 * h ** 2, k1 * k2 * h, k1 * k2 * k3]
    return (terms[1] + 2 * terms[2] + 3 * terms[3]) / sum(terms)


def _grain_buffer(grain_bill: List[GrainBillItem]) -> Dict[str, float]:
    """Weight-averaged distilled-water pH and buffer capacity from the grain database."""
    total = _total_weight(grain_bill)
    ph = 0.0
    buffer = 0.0
    for item in grain_bill:
        grain = lookup_grain(item.name, item.color, item.type)
        share = item.weight / total
        ph += grain.di_water_ph * share
        buffer += grain.buffer_capacity * share
    return {'distilled_water_ph': ph, 'buffer_capacity': buffer}


def advanced_ph_detail(
    profile: WaterProfile,
    grain_bill: List[GrainBillItem],
    mash_thickness: float = DEFAULT_MASH_THICKNESS,
    temperature: Optional[float] = None,
    max_iterations: int = ADVANCED_PH_MAX_ITERATIONS,
    tolerance: float = ADVANCED_PH_TOLERANCE,
) -> PhEstimate:
    """
    Equilibrium mash pH by charge balance.

    Per kg of grain, the base the grain consumes moving away from its
    distilled-water pH (linear buffer plus grain phosphate speciation)
    plus the acid released by calcium and magnesium must equal the base
    the water's carbonate system and free H+/OH- supply. The residual
    (mEq/kg) increases with pH and is bisected on [4.0, 7.0].

    Returns:
        PhEstimate with converged, iterations and the equilibrium detail
    """
    if temperature is None:
        temperature = DEFAULT_MASH_TEMPERATURE

    total = _total_weight(grain_bill)
    if total <= 0:
        return PhEstimate(
            model='advanced',
            ph=KAISER_EMPTY_BILL_PH,
            iterations=0,
            details={'temperature': temperature},
            warnings=['Empty grain bill; returning the default mash pH'],
        )

    grains = _grain_buffer(grain_bill)
    di_ph = grains['distilled_water_ph']
    buffer = grains['buffer_capacity']

    strength = ionic_strength(profile)
    pkas = conditional_pkas(strength, temperature)
    kw = water_kw(temperature)

    total_carbonate = profile.bicarbonate / MOLAR_MASS['bicarbonate'] / 1000  # mol/L
    hardness_acid = mash_thickness * (profile.calcium / 70 + profile.magnesium / 85)
    phosphate_mmol = GRAIN_PHOSPHATE_MOL_PER_KG * 1000
    phosphate_ref = phosphate_charge(di_ph, pkas['phosphoric_1'], pkas['phosphoric_2'], pkas['phosphoric_3'])

    def residual(ph: float) -> float:
        h = 10 ** -ph
        fractions = carbonate_fractions(ph, pkas['carbonic_1'], pkas['carbonic_2'])
        carbonate_charge = fractions['hco3'] + 2 * fractions['co3']
        grain_demand = buffer * (ph - di_ph)
        grain_demand += phosphate_mmol * (
            phosphate_charge(ph, pkas['phosphoric_1'], pkas['phosphoric_2'], pkas['phosphoric_3'])
            - phosphate_ref
        )
        water_supply = mash_thickness * (
            1000 * total_carbonate * (1 - carbonate_charge) + 1000 * (h - kw / h)
        )
        return grain_demand + hardness_acid - water_supply

    search = ConvergenceStrategy.bisect(
        residual,
        ADVANCED_PH_LOW,
        ADVANCED_PH_HIGH,
        max_iterations=max_iterations,
        tolerance=tolerance,
    )
    raw_ph = search['x']
    warnings = []
    if not search['converged']:
        message = (
            f"Advanced pH model did not converge after {search['iterations']} iterations "
            f"(residual {search['residual']:.2e} mEq/kg); returning best estimate"
        )
        logger.warning(message)
        warnings.append(message)

    root = math.sqrt(strength)
    return PhEstimate(
        model='advanced',
        ph=clamp(raw_ph, PH_CLAMP_MIN, PH_CLAMP_MAX),
        converged=search['converged'],
        iterations=search['iterations'],
        details={
            'unclamped_ph': raw_ph,
            'residual': search['residual'],
            'ionic_strength': strength,
            'activity_coefficients': {
                'monovalent': 10 ** davies_log_gamma(1, strength),
                'divalent': 10 ** davies_log_gamma(2, strength),
                'trivalent': 10 ** davies_log_gamma(3, strength),
            },
            'davies_term': root / (1 + root) - 0.3 * strength,
            'pka': pkas,
            'carbonate_fractions': carbonate_fractions(raw_ph, pkas['carbonic_1'], pkas['carbonic_2']),
            'distilled_water_ph': di_ph,
            'buffer_capacity': buffer,
            'hardness_acid': hardness_acid,
            'temperature': temperature,
        },
        warnings=warnings,
    )


def advanced_ph(
    profile: WaterProfile,
    grain_bill: List[GrainBillItem],
    mash_thickness: float = DEFAULT_MASH_THICKNESS,
    temperature: Optional[float] = None,
) -> PhEstimate:
    return advanced_ph_detail(profile, grain_bill, mash_thickness, temperature)


def water_buffer_capacity(
    profile: WaterProfile,
    ph: float,
    temperature: float = REFERENCE_TEMPERATURE,
) -> float:
    """
    Buffer capacity of the water's carbonate system at a pH.

    beta = 2.303 * (C * a * (1 - a) + [H+] + Kw / [H+]), returned in
    mEq/L per pH unit, with a the bicarbonate fraction of the first
    dissociation.
    """
    strength = ionic_strength(profile)
    pkas = conditional_pkas(strength, temperature)
    h = 10 ** -ph
    k1 = 10 ** -pkas['carbonic_1']
    alpha = k1 / (k1 + h)
    total_carbonate = profile.bicarbonate / MOLAR_MASS['bicarbonate'] / 1000
    beta = 2.303 * (total_carbonate * alpha * (1 - alpha) + h + water_kw(temperature) / h)
    return beta * 1000


# =============================================================================
# Dispatch
# =============================================================================

PH_MODELS = {
    'simple': simple_ph,
    'kaiser': kaiser_ph_detailed,
    'advanced': advanced_ph_detail,
}


def estimate_ph(
    model: str,
    profile: WaterProfile,
    grain_bill: List[GrainBillItem],
    mash_thickness: float = DEFAULT_MASH_THICKNESS,
    temperature: Optional[float] = None,
) -> PhEstimate:
    """Estimate mash pH with the named model ('simple', 'kaiser' or 'advanced')."""
    if model not in PH_MODELS:
        raise InputValidationError(
            f"Unknown pH model '{model}'. Choose one of: {', '.join(PH_MODELS)}"
        )
    estimate = PH_MODELS[model](profile, grain_bill, mash_thickness, temperature)
    estimate.warnings.extend(ph_warnings(estimate.ph))
    return estimate


def grain_bill_buffer_capacity(grain_bill: List[GrainBillItem]) -> float:
    """Total buffer capacity of the mash in mEq per pH unit (sum of buffer x kg)."""
    total = 0.0
    for item in grain_bill:
        grain = lookup_grain(item.name, item.color, item.type)
        total += grain.buffer_capacity * item.weight
    return total


def ph_after_acid(ph: float, acid_meq: float, grain_bill: List[GrainBillItem]) -> float:
    """
    pH after adding acid_meq to the mash.

    Inverse of the acid dose calculation, so dosing the acid it suggests
    lands exactly on its target pH.
    """
    if acid_meq <= 0:
        return ph
    capacity = grain_bill_buffer_capacity(grain_bill) * ACID_SAFETY_FACTOR
    if capacity <= 0:
        return ph
    return clamp(ph - acid_meq / capacity, PH_CLAMP_MIN, PH_CLAMP_MAX)


def calculate_ph_progression(
    source: WaterProfile,
    after_salts: WaterProfile,
    grain_bill: List[GrainBillItem],
    model: str = 'kaiser',
    mash_thickness: float = DEFAULT_MASH_THICKNESS,
    temperature: Optional[float] = None,
    acid_meq: float = 0.0,
) -> PhProgression:
    """
    Mash pH at each stage of water treatment.

    Args:
        source: Untreated water
        after_salts: Mash water after salt additions
        grain_bill: Grains in the mash
        model: pH model name
        mash_thickness: L/kg
        temperature: Mash temperature in C
        acid_meq: mEq of acid added to the mash

    Returns:
        PhProgression with distilled, source, after-salts and final pH
    """
    distilled = WaterProfile()
    distilled_ph = estimate_ph(model, distilled, grain_bill, mash_thickness, temperature).ph
    source_ph = estimate_ph(model, source, grain_bill, mash_thickness, temperature).ph
    salts_ph = estimate_ph(model, after_salts, grain_bill, mash_thickness, temperature).ph
    final_ph = ph_after_acid(salts_ph, acid_meq, grain_bill)

    return PhProgression(
        model=model,
        distilled_water_ph=distilled_ph,
        source_ph=source_ph,
        after_salts_ph=salts_ph,
        final_ph=final_ph,
    )


async def estimate_mash_ph(input_data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Estimates mash pH for a water profile and grain bill.

    Args:
        input_data: Dictionary containing:
            - water: Mash water ion concentrations (mg/L)
            - grain_bill: List of grains (name, weight kg, color SRM, type)
            - model: 'simple', 'kaiser' or 'advanced'
            - mash_thickness, mash_temperature: Optional mash conditions
            - compare_models: Also report the other models
            - require_convergence: Raise if the advanced model does not converge

    Returns:
        Dictionary with the estimated pH, model details and warnings
    """
    logger.info("Running estimate_mash_ph tool...")

    try:
        input_model = EstimateMashPhInput(**input_data)
    except Exception as e:
        raise InputValidationError(f"Input validation error: {e}")

    estimate = estimate_ph(
        input_model.model,
        input_model.water,
        input_model.grain_bill,
        input_model.mash_thickness,
        input_model.mash_temperature,
    )

    if input_model.require_convergence and not estimate.converged:
        raise PhConvergenceError(
            f"{input_model.model} pH model did not converge",
            best_ph=estimate.ph,
            residual=estimate.details.get('residual', float('nan')),
            iterations=estimate.iterations or 0,
            tolerance=ADVANCED_PH_TOLERANCE,
        )

    result = estimate.model_dump()
    if input_model.compare_models:
        result['comparison'] = {
            name: estimate_ph(
                name,
                input_model.water,
                input_model.grain_bill,
                input_model.mash_thickness,
                input_model.mash_temperature,
            ).ph
            for name in PH_MODELS
        }

    logger.info(f"Estimated mash pH {estimate.ph:.2f} with the {input_model.model} model")
    return result
