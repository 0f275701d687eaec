"""
Common schemas for brewing water calculations.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, root_validator, validator

from utils.constants import ION_FIELDS
from utils.helpers import ebc_to_srm, normalize_key

# --- Enumerations ---

VolumeMode = Literal["mash", "total", "staged"]
AdditionLocation = Literal["mash", "sparge", "boil"]
GrainType = Literal["base", "crystal", "roasted", "acidulated", "wheat", "other"]
PhModel = Literal["simple", "kaiser", "advanced"]
OptimizerStrategy = Literal["minimal", "balanced", "exact"]
StyleCharacter = Literal["hoppy", "balanced", "malty"]

GRAIN_TYPES = ["base", "crystal", "roasted", "acidulated", "wheat", "other"]

# Alternative ion keys accepted in water reports
ION_ALIASES = {
    "ca": "calcium",
    "ca2": "calcium",
    "mg": "magnesium",
    "mg2": "magnesium",
    "na": "sodium",
    "so4": "sulfate",
    "so42": "sulfate",
    "sulphate": "sulfate",
    "cl": "chloride",
    "hco3": "bicarbonate",
    "alkalinity_as_hco3": "bicarbonate",
    "co3": "carbonate",
    "ph": "ph",
}


# --- Common Base Models ---


class WaterProfile(BaseModel):
    """Ion concentrations of a water, in mg/L (ppm)."""

    calcium: float = Field(0.0, ge=0, description="Calcium (Ca2+) in mg/L")
    magnesium: float = Field(0.0, ge=0, description="Magnesium (Mg2+) in mg/L")
    sodium: float = Field(0.0, ge=0, description="Sodium (Na+) in mg/L")
    sulfate: float = Field(0.0, ge=0, description="Sulfate (SO4 2-) in mg/L")
    chloride: float = Field(0.0, ge=0, description="Chloride (Cl-) in mg/L")
    bicarbonate: float = Field(0.0, ge=0, description="Bicarbonate (HCO3-) in mg/L")
    carbonate: float = Field(
        0.0, ge=0, description="Carbonate (CO3 2-) in mg/L; only non-zero when carbonate is not folded into bicarbonate"
    )
    ph: Optional[float] = Field(None, ge=0, le=14, description="Measured water pH, if known")

    @root_validator(pre=True, skip_on_failure=True)
    def normalize_ion_names(cls, values):
        """Accept symbols such as 'Ca' or 'HCO3' as well as full ion names."""
        if not isinstance(values, dict):
            return values
        normalized = {}
        for key, value in values.items():
            norm = normalize_key(key).replace("_", "")
            target = ION_ALIASES.get(norm, key)
            if target in normalized and key != target:
                continue
            normalized[target] = value
        return normalized

    def ions(self) -> Dict[str, float]:
        """The six primary ions as a plain dict."""
        return {ion: getattr(self, ion) for ion in ION_FIELDS}


class Volumes(BaseModel):
    """Brewing water volumes in liters."""

    total: float = Field(..., ge=0, description="Total water volume (mash + sparge) in liters")
    mash: float = Field(..., ge=0, description="Mash (strike) water volume in liters")
    sparge: float = Field(0.0, ge=0, description="Sparge water volume in liters")

    @root_validator(pre=True, skip_on_failure=True)
    def fill_missing_volume(cls, values):
        """Derive total or sparge when only two of the three volumes are given."""
        if not isinstance(values, dict):
            return values
        mash = values.get("mash")
        sparge = values.get("sparge")
        total = values.get("total")
        if total is None and mash is not None:
            values["total"] = mash + (sparge or 0.0)
        elif sparge is None and mash is not None and total is not None:
            values["sparge"] = max(0.0, total - mash)
        return values


class GrainBillItem(BaseModel):
    """One malt in the grain bill."""

    name: str = Field(..., description="Grain name, e.g. 'Pilsner Malt' or 'Crystal 60L'")
    weight: float = Field(..., ge=0, description="Weight in kg")
    color: Optional[float] = Field(
        None, ge=0, description="Color in SRM; taken from the grain database when omitted"
    )
    type: GrainType = Field("base", description="Grain category")

    @root_validator(pre=True, skip_on_failure=True)
    def convert_color_units(cls, values):
        """Accept 'color_ebc' (converted to SRM), 'color_srm' and 'weight_kg'."""
        if not isinstance(values, dict):
            return values
        if "color" not in values:
            if values.get("color_srm") is not None:
                values["color"] = values.pop("color_srm")
            elif values.get("color_ebc") is not None:
                values["color"] = ebc_to_srm(float(values.pop("color_ebc")))
        if "weight" not in values:
            for alias in ("weight_kg", "amount_kg", "amount"):
                if alias in values:
                    values["weight"] = values.pop(alias)
                    break
        return values

    @validator("type", pre=True)
    def normalize_type(cls, v):
        """Map free-form grain types onto the known categories."""
        if v is None:
            return "base"
        key = str(v).strip().lower()
        if key in GRAIN_TYPES:
            return key
        if key in ("caramel", "crystal_caramel"):
            return "crystal"
        if key in ("roast", "black", "chocolate"):
            return "roasted"
        if key in ("acid", "sauermalz"):
            return "acidulated"
        return "other"


class CalculationOptions(BaseModel):
    """Options shared by the calculation tools."""

    volume_mode: VolumeMode = Field(
        "mash",
        description=(
            "Which volume salt concentrations are computed against: "
            "'mash' (mash volume regardless of where the salt goes, the default), "
            "'total' (whole batch), or 'staged' (mash, sparge or total depending on location)."
        ),
    )
    assume_carbonate_dissolution: bool = Field(
        True, description="Fold chalk carbonate (and lime hydroxide) into bicarbonate, assuming full dissolution."
    )
    ph_model: PhModel = Field("kaiser", description="pH model: 'simple', 'kaiser' or 'advanced'.")
    target_mash_ph: float = Field(5.4, ge=4.0, le=6.5, description="Target mash pH.")
    target_sparge_ph: float = Field(5.6, ge=4.0, le=7.0, description="Target sparge water pH.")
    mash_thickness: float = Field(3.0, gt=0, description="Mash thickness in L/kg.")
    mash_temperature: float = Field(65.0, ge=0, le=100, description="Mash temperature in C.")


# --- Additions ---


class SaltAddition(BaseModel):
    name: str
    amount: float = Field(..., description="Grams")
    location: AdditionLocation = "mash"
    unit: str = "g"


class AcidAddition(BaseModel):
    name: str
    amount: float = Field(..., description="mL for liquid acids, grams for solid acids")
    concentration: float = Field(..., description="Percent strength")
    location: AdditionLocation = "mash"
    unit: str = "ml"


# --- Results ---


class SulfateChlorideRatio(BaseModel):
    """Sulfate:chloride ratio; undefined when chloride is zero."""

    value: Optional[float] = None
    defined: bool = True
    character: StyleCharacter = "balanced"


class IonBalance(BaseModel):
    cation_meq: float
    anion_meq: float
    imbalance_percent: float
    balanced: bool
    warning: Optional[str] = None


class ComposeResult(BaseModel):
    """Achieved profile plus per-salt contributions and non-fatal diagnostics."""

    profile: WaterProfile
    contributions: Dict[str, Dict[str, float]] = Field(default_factory=dict)
    effective_volumes: Dict[str, float] = Field(default_factory=dict)
    warnings: List[str] = Field(default_factory=list)


class PhEstimate(BaseModel):
    model: PhModel
    ph: float
    converged: bool = True
    iterations: Optional[int] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    warnings: List[str] = Field(default_factory=list)


class PhProgression(BaseModel):
    model: PhModel
    distilled_water_ph: float
    source_ph: float
    after_salts_ph: float
    final_ph: float


class AcidDose(BaseModel):
    acid: str
    concentration: float
    amount: float = Field(..., description="mL for liquid acids, grams for solid acids")
    unit: str
    meq: float
    warnings: List[str] = Field(default_factory=list)


class OptimizationResult(BaseModel):
    strategy: OptimizerStrategy
    salts: Dict[str, float] = Field(default_factory=dict)
    achieved_profile: WaterProfile
    deviations: Dict[str, float] = Field(default_factory=dict)
    total_deviation: float = 0.0
    match_percentage: float = 0.0
    converged: bool = True
    feasible: bool = True
    impossible: bool = False
    iterations: int = 0
    warnings: List[str] = Field(default_factory=list)
    rationale: List[str] = Field(default_factory=list)


# --- Tool Inputs/Outputs ---


class CalculateWaterProfileInput(BaseModel):
    source_water: WaterProfile = Field(..., description="Starting water profile.")
    salts: Dict[str, float] = Field(default_factory=dict, description="Salt id -> grams.")
    volumes: Volumes
    salt_locations: Optional[Dict[str, AdditionLocation]] = Field(
        None, description="Where each salt is added; only used in 'staged' volume mode."
    )
    options: CalculationOptions = Field(default_factory=CalculationOptions)

    @validator("salts")
    def validate_salt_amounts(cls, v):
        """Salt amounts must be non-negative grams."""
        for name, grams in v.items():
            if grams < 0:
                raise ValueError(f"Salt amount for '{name}' cannot be negative")
        return v


class CalculateWaterProfileOutput(BaseModel):
    achieved_water: WaterProfile
    contributions: Dict[str, Dict[str, float]] = Field(default_factory=dict)
    residual_alkalinity: float
    sulfate_chloride_ratio: SulfateChlorideRatio
    total_hardness: float
    ion_balance: IonBalance
    volume_mode_explanation: str
    warnings: List[str] = Field(default_factory=list)


class AnalyzeWaterInput(BaseModel):
    water: WaterProfile


class EstimateMashPhInput(BaseModel):
    water: WaterProfile = Field(..., description="Mash water profile (after salt additions).")
    grain_bill: List[GrainBillItem] = Field(default_factory=list)
    model: PhModel = "kaiser"
    mash_thickness: float = Field(3.0, gt=0, description="L/kg")
    mash_temperature: float = Field(65.0, ge=0, le=100, description="C")
    compare_models: bool = Field(False, description="Also report the other two models.")
    require_convergence: bool = Field(
        False, description="Raise instead of returning a best-effort result when the advanced model does not converge."
    )


class CalculateAcidAdditionInput(BaseModel):
    current_ph: float = Field(..., ge=0, le=14)
    target_ph: float = Field(..., ge=0, le=14)
    grain_bill: List[GrainBillItem] = Field(default_factory=list)
    acid: str = Field("lactic", description="Acid id: lactic, phosphoric, sulfuric, hydrochloric, citric.")
    concentration: Optional[float] = Field(None, gt=0, le=100, description="Percent strength.")
    buffer_capacity: Optional[float] = Field(
        None, description="Total mash buffer capacity in mEq/pH; overrides the grain bill."
    )
    water_volume: Optional[float] = Field(
        None, gt=0, description="Liters the acid is dissolved in, for reporting the anion added."
    )


class OptimizeSaltAdditionsInput(BaseModel):
    source_water: WaterProfile
    target_water: Optional[WaterProfile] = None
    style: Optional[str] = Field(None, description="Style profile id used when target_water is omitted.")
    target_style: Optional[StyleCharacter] = Field(
        None, description="Flavor character; inferred from the target when omitted."
    )
    strategy: OptimizerStrategy = "balanced"
    volumes: Volumes
    options: CalculationOptions = Field(default_factory=CalculationOptions)
    max_salts: Optional[int] = Field(None, ge=1, le=9)
    tolerance: Optional[float] = Field(None, gt=0, description="ppm per ion (exact strategy)")
    max_iterations: Optional[int] = Field(None, ge=1, le=1000)
    max_salt_amount: Optional[float] = Field(None, gt=0, description="Max grams of any salt (exact strategy)")
    allowed_salts: Optional[List[str]] = None
    ensure_calcium: bool = True
    require_convergence: bool = False

    @root_validator(skip_on_failure=True)
    def require_some_target(cls, values):
        """A target profile, style id or flavor character must be supplied."""
        if values.get("target_water") is None and not values.get("style"):
            if values.get("strategy") != "minimal" or values.get("target_style") is None:
                raise ValueError("Provide 'target_water' or 'style' (or 'target_style' for the minimal strategy)")
        return values


class PlanStagedAdditionsInput(BaseModel):
    source_water: WaterProfile
    target_water: Optional[WaterProfile] = None
    style: Optional[str] = None
    volumes: Volumes
    calcium_minimum: float = Field(50.0, ge=0)
    sparge_acidification: bool = False
    target_sparge_ph: float = Field(5.6, ge=4.0, le=7.0)
    avoid_boil_minerals: bool = False

    @root_validator(skip_on_failure=True)
    def require_some_target(cls, values):
        """Either a target profile or a style id is needed."""
        if values.get("target_water") is None and not values.get("style"):
            raise ValueError("Provide 'target_water' or 'style'")
        return values


class CalculateBrewingWaterInput(BaseModel):
    mode: Literal["manual", "auto"] = "auto"
    source_water: WaterProfile
    target_water: Optional[WaterProfile] = None
    style: Optional[str] = None
    grain_bill: List[GrainBillItem] = Field(default_factory=list)
    volumes: Volumes
    options: CalculationOptions = Field(default_factory=CalculationOptions)
    salts: Dict[str, float] = Field(default_factory=dict, description="Manual mode: salt id -> grams.")
    salt_locations: Optional[Dict[str, AdditionLocation]] = None
    acids: Dict[str, float] = Field(
        default_factory=dict, description="Manual mode: acid key such as 'lactic_88' -> mL (g for citric)."
    )
    strategy: OptimizerStrategy = "balanced"
    mash_acid: str = Field("lactic_88", description="Auto mode: acid used to reach the target mash pH.")

    @root_validator(skip_on_failure=True)
    def check_mode_requirements(cls, values):
        """Auto mode needs a target; manual mode needs nothing extra."""
        if values.get("mode") == "auto" and values.get("target_water") is None and not values.get("style"):
            raise ValueError("Auto mode requires 'target_water' or 'style'")
        return values


class ReferenceDataInput(BaseModel):
    kind: Literal["salt", "acid", "grain", "water_profile", "style_profile", "all"] = "all"
    id: Optional[str] = Field(None, description="Identifier to look up; omit to list the catalog.")
