"""
Acid dosing for mash and sparge pH adjustment.
"""

import logging
from typing import Any, Dict, List, Optional

from utils.constants import (
    ACID_SAFETY_FACTOR,
    DEFAULT_SOURCE_PH,
    DEFAULT_TARGET_SPARGE_PH,
    RA_BICARBONATE_FACTOR,
    SPARGE_ALKALINITY_FACTOR,
)
from utils.exceptions import InputValidationError
from utils.salt_registry import ACIDS, acid_strength, find_acid
from .mash_ph import grain_bill_buffer_capacity
from .schemas import AcidDose, CalculateAcidAdditionInput, GrainBillItem

logger = logging.getLogger(__name__)


def _resolve(acid: str, concentration: Optional[float], warnings: List[str]):
    definition = find_acid(acid)
    if definition is None:
        message = f"Unknown acid '{acid}'; no dose calculated"
        logger.warning(message)
        warnings.append(message)
        return None, 0.0, concentration or 0.0

    strength, used = acid_strength(definition, concentration)
    if concentration is not None and used != concentration:
        warnings.append(
            f"{definition.name} at {concentration}% is not tabulated; using {used}% strength"
        )
    return definition, strength, used


def dose_meq(acid: str, amount: float, concentration: Optional[float] = None) -> float:
    """mEq delivered by amount mL (g for solid acids); 0 for unknown acids."""
    definition = find_acid(acid)
    if definition is None or amount <= 0:
        return 0.0
    strength, _ = acid_strength(definition, concentration)
    return amount * strength


def acid_needed(
    current_ph: float,
    target_ph: float,
    grain_bill: Optional[List[GrainBillItem]] = None,
    acid: str = 'lactic',
    concentration: Optional[float] = None,
    buffer_capacity: Optional[float] = None,
) -> AcidDose:
    """
    Acid needed to bring the mash from current_ph down to target_ph.

    mEq = (current - target) * total buffer capacity * 1.2, where the
    buffer capacity is the sum of buffer x kg over the grain bill unless
    given explicitly. Never negative: a mash already at or below the
    target needs no acid.

    Args:
        current_ph: Predicted mash pH
        target_ph: Desired mash pH
        grain_bill: Grains in the mash
        acid: Acid id or alias
        concentration: Percent strength; defaults to the strongest commercial one
        buffer_capacity: Total mash buffer capacity in mEq/pH, overriding the grain bill

    Returns:
        AcidDose with the amount in mL (g for citric)
    """
    warnings: List[str] = []
    definition, strength, used = _resolve(acid, concentration, warnings)
    if definition is None:
        return AcidDose(acid=acid, concentration=used, amount=0.0, unit='ml', meq=0.0, warnings=warnings)

    if buffer_capacity is None:
        buffer_capacity = grain_bill_buffer_capacity(grain_bill or [])

    drop = current_ph - target_ph
    meq = drop * buffer_capacity * ACID_SAFETY_FACTOR if drop > 0 else 0.0
    meq = max(0.0, meq)
    amount = meq / strength if strength > 0 else 0.0

    return AcidDose(
        acid=definition.id,
        concentration=used,
        amount=amount,
        unit=definition.unit,
        meq=meq,
        warnings=warnings,
    )


def acid_additions_for_grain_bill(
    current_ph: float,
    target_ph: float,
    grain_bill: List[GrainBillItem],
    mash_volume: Optional[float] = None,
) -> Dict[str, Dict[str, Any]]:
    """
    Doses of every liquid acid at its strongest commercial concentration.

    Keys are '<acid>_<concentration>' (for example 'lactic_88'). When the
    mash volume is known each entry also reports the anion it leaves
    behind in ppm.
    """
    capacity = grain_bill_buffer_capacity(grain_bill)
    suggestions = {}
    for acid in ACIDS.values():
        if acid.unit != 'ml':
            continue
        dose = acid_needed(current_ph, target_ph, acid=acid.id, buffer_capacity=capacity)
        entry = dose.model_dump()
        if mash_volume:
            entry['ion_contribution'] = acid_ion_contribution(
                acid.id, dose.amount, dose.concentration, mash_volume
            )
        suggestions[f"{acid.id}_{dose.concentration:g}"] = entry
    return suggestions


def sparge_acid_needed(
    sparge_volume: float,
    bicarbonate: float,
    current_ph: Optional[float] = None,
    target_ph: float = DEFAULT_TARGET_SPARGE_PH,
    acid: str = 'lactic',
    concentration: Optional[float] = None,
) -> AcidDose:
    """
    Acid to bring sparge water down to target_ph.

    mEq = alkalinity (mEq/L) * liters * max(0, pH - target) * 0.5, with
    the water pH defaulting to 7.0 when the report has none.
    """
    warnings: List[str] = []
    definition, strength, used = _resolve(acid, concentration, warnings)
    if definition is None:
        return AcidDose(acid=acid, concentration=used, amount=0.0, unit='ml', meq=0.0, warnings=warnings)

    if current_ph is None:
        current_ph = DEFAULT_SOURCE_PH
    alkalinity_meq = bicarbonate * RA_BICARBONATE_FACTOR * max(sparge_volume, 0.0) / 50
    meq = alkalinity_meq * max(0.0, current_ph - target_ph) * SPARGE_ALKALINITY_FACTOR
    amount = meq / strength if strength > 0 else 0.0

    return AcidDose(
        acid=definition.id,
        concentration=used,
        amount=amount,
        unit=definition.unit,
        meq=meq,
        warnings=warnings,
    )


def acid_ion_contribution(
    acid: str,
    amount: float,
    concentration: Optional[float] = None,
    volume_l: Optional[float] = None,
) -> Dict[str, float]:
    """
    Anion left behind by an acid dose.

    Returns:
        {anion: ppm} when volume_l is given, otherwise {anion: mg}; empty
        for unknown acids
    """
    definition = find_acid(acid)
    if definition is None or not definition.anion or amount <= 0:
        return {}
    strength, _ = acid_strength(definition, concentration)
    mg = amount * strength * definition.anion_mg_per_meq
    if volume_l:
        return {definition.anion: mg / volume_l}
    return {definition.anion: mg}


async def calculate_acid_addition(input_data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Calculates the acid needed to move the mash to a target pH.

    Args:
        input_data: Dictionary containing:
            - current_ph, target_ph: Predicted and desired mash pH
            - grain_bill: Grains in the mash (or buffer_capacity)
            - acid, concentration: Acid to dose with
            - water_volume: Optional liters, to report the anion added

    Returns:
        Dictionary with the dose, the anion contribution and alternatives
    """
    logger.info("Running calculate_acid_addition tool...")

    try:
        input_model = CalculateAcidAdditionInput(**input_data)
    except Exception as e:
        raise InputValidationError(f"Input validation error: {e}")

    dose = acid_needed(
        input_model.current_ph,
        input_model.target_ph,
        input_model.grain_bill,
        input_model.acid,
        input_model.concentration,
        input_model.buffer_capacity,
    )
    result = dose.model_dump()
    if input_model.water_volume:
        result['ion_contribution'] = acid_ion_contribution(
            dose.acid, dose.amount, dose.concentration, input_model.water_volume
        )
    if input_model.grain_bill and input_model.buffer_capacity is None:
        result['alternatives'] = acid_additions_for_grain_bill(
            input_model.current_ph,
            input_model.target_ph,
            input_model.grain_bill,
            input_model.water_volume,
        )

    logger.info(f"Acid dose: {dose.amount:.2f} {dose.unit} of {dose.acid} ({dose.meq:.1f} mEq)")
    return result
