"""
Constants for brewing water chemistry calculations.
"""

# Ion fields carried by every water profile, in display order
ION_FIELDS = [
    'calcium',
    'magnesium',
    'sodium',
    'sulfate',
    'chloride',
    'bicarbonate',
]

# Carbonate is optional and only reported separately when dissolution is not assumed
ALL_ION_FIELDS = ION_FIELDS + ['carbonate']

CATION_FIELDS = ['calcium', 'magnesium', 'sodium']
ANION_FIELDS = ['sulfate', 'chloride', 'bicarbonate', 'carbonate']

# Molar masses (g/mol)
MOLAR_MASS = {
    'calcium': 40.08,
    'magnesium': 24.31,
    'sodium': 22.99,
    'sulfate': 96.06,
    'chloride': 35.45,
    'bicarbonate': 61.016,
    'carbonate': 60.009,
    'calcium_hydroxide': 74.093,
    'phosphate': 94.97,
    'lactate': 89.07,
}

# Ionic charge magnitudes
ION_CHARGE = {
    'calcium': 2,
    'magnesium': 2,
    'sodium': 1,
    'sulfate': 2,
    'chloride': 1,
    'bicarbonate': 1,
    'carbonate': 2,
}

# Equivalent weights (mg per mEq) used for charge balance
EQUIVALENT_WEIGHT = {
    'calcium': 20.04,
    'magnesium': 12.15,
    'sodium': 22.99,
    'sulfate': 48.03,
    'chloride': 35.45,
    'bicarbonate': 61.02,
    'carbonate': 30.01,
}

# Chalk dissolving at mash pH ends up as bicarbonate (mass ratio HCO3/CO3)
CARBONATE_TO_BICARBONATE = MOLAR_MASS['bicarbonate'] / MOLAR_MASS['carbonate']

# Ca(OH)2 + 2 CO2 -> Ca(HCO3)2, in mg/L HCO3 per gram per liter
LIME_BICARBONATE_PER_GRAM = (
    2 * MOLAR_MASS['bicarbonate'] / MOLAR_MASS['calcium_hydroxide'] * 1000
)

# --- Derived metric coefficients ---

# Kolbach residual alkalinity (ppm as CaCO3)
RA_BICARBONATE_FACTOR = 0.82
RA_CARBONATE_FACTOR = 1.67
RA_CALCIUM_DIVISOR = 1.4
RA_MAGNESIUM_DIVISOR = 1.7

# Hardness as CaCO3
HARDNESS_CALCIUM_FACTOR = 2.5
HARDNESS_MAGNESIUM_FACTOR = 4.1

# Ion balance is suspect above this percentage
ION_BALANCE_THRESHOLD_PERCENT = 5.0

# --- Chemistry constants ---

CARBONIC_ACID_PKA1 = 6.35
CARBONIC_ACID_PKA2 = 10.33
PHOSPHORIC_ACID_PKA1 = 2.12
PHOSPHORIC_ACID_PKA2 = 7.21
PHOSPHORIC_ACID_PKA3 = 12.68
LACTIC_ACID_PKA = 3.86

# pH units per degree C away from 25 C
TEMP_CORRECTION_FACTOR = 0.003
REFERENCE_TEMPERATURE = 25.0

# Davies equation constant at 25 C
DAVIES_A = 0.509

WATER_KW_25C = 1.0e-14
# pKw falls by about 0.029 per degree C between 25 and 70 C
WATER_PKW_SLOPE = 0.029

# Grain phosphate assumed by the equilibrium model (mol/kg grain)
GRAIN_PHOSPHATE_MOL_PER_KG = 0.01

# Typical malt buffer capacities (mEq/kg per pH unit)
BASE_MALT_BUFFER = 35.0
CRYSTAL_MALT_BUFFER = 45.0
ROASTED_MALT_BUFFER = 70.0
ACIDULATED_MALT_BUFFER = -35.0

# Kaiser acidity regression works on color / 1.97 of the SRM value
KAISER_COLOR_DIVISOR = 1.97
KAISER_DISTILLED_PH = 5.7
KAISER_EMPTY_BILL_PH = 5.4
KAISER_MIN_BUFFER = 5.0

# Simple model
SIMPLE_BASE_PH = 5.72
SIMPLE_EMPTY_BILL_PH = 5.7
SIMPLE_RA_FACTOR = 0.003
SIMPLE_COLOR_FACTOR = 0.002
SIMPLE_TYPE_SHIFT = {
    'roasted': -0.3,
    'crystal': -0.15,
    'acidulated': -1.0,
    'wheat': 0.05,
}

# Distilled-water pH for grain bill estimates is bounded tighter than the mash
DISTILLED_PH_MIN = 4.5
DISTILLED_PH_MAX = 6.5

# All pH estimators clamp to this range
PH_CLAMP_MIN = 4.0
PH_CLAMP_MAX = 6.5

# Bisection bracket for the equilibrium model
ADVANCED_PH_LOW = 4.0
ADVANCED_PH_HIGH = 7.0
ADVANCED_PH_MAX_ITERATIONS = 100
ADVANCED_PH_TOLERANCE = 1e-6

# --- Mash defaults ---

DEFAULT_MASH_THICKNESS = 3.0  # L/kg
DEFAULT_MASH_TEMPERATURE = 65.0  # C
DEFAULT_TARGET_MASH_PH = 5.4
DEFAULT_TARGET_SPARGE_PH = 5.6
DEFAULT_SOURCE_PH = 7.0

OPTIMAL_MASH_PH = {'min': 5.2, 'max': 5.6}
ACCEPTABLE_MASH_PH = {'min': 5.0, 'max': 5.8}
SPARGE_PH_MAX = 5.8

# --- Acid dosing ---

ACID_SAFETY_FACTOR = 1.2
SPARGE_ALKALINITY_FACTOR = 0.5

# --- Brewing ion limits (ppm) ---

ION_LIMITS = {
    'calcium': {'min': 50, 'max': 150, 'optimal': (50, 100)},
    'magnesium': {'min': 0, 'max': 30, 'optimal': (5, 15)},
    'sodium': {'min': 0, 'max': 150, 'optimal': (0, 50)},
    'sulfate': {'min': 0, 'max': 400, 'optimal': (50, 350)},
    'chloride': {'min': 0, 'max': 200, 'optimal': (25, 100)},
    'bicarbonate': {'min': 0, 'max': 250, 'optimal': (0, 100)},
}

SULFATE_CHLORIDE_RATIOS = {
    'hoppy': {'min': 2.0, 'max': 5.0, 'target': 3.0},
    'balanced': {'min': 0.8, 'max': 1.5, 'target': 1.0},
    'malty': {'min': 0.3, 'max': 0.8, 'target': 0.5},
}

# Ratio classification boundaries used when describing a profile
HOPPY_RATIO_THRESHOLD = 2.0
MALTY_RATIO_THRESHOLD = 0.5

# --- Volumes ---

VOLUME_MODES = ['mash', 'total', 'staged']
ADDITION_LOCATIONS = ['mash', 'sparge', 'boil']
VOLUME_TOLERANCE_L = 0.1

# --- Optimizer defaults ---

MIN_ADDITION_GRAMS = 0.1
BALANCED_PRIORITY_SALTS = [
    'gypsum',
    'calcium_chloride',
    'epsom_salt',
    'sodium_chloride',
    'baking_soda',
    'calcium_carbonate',
]
BALANCED_DAMPING = 0.8
BALANCED_MAX_SALT_GRAMS = 10.0
BALANCED_DEFAULT_MAX_SALTS = 4

MINIMAL_DEFAULT_MAX_SALTS = 2
MINIMAL_HOPPY_GYPSUM_CAP = 5.0
MINIMAL_MALTY_SALT_CAP = 2.0
MINIMAL_BALANCED_CAP = 1.0
MINIMAL_BALANCED_GYPSUM_CAP = 2.0
MINIMAL_BALANCED_RATIO_BAND = (0.67, 1.5)

EXACT_DEFAULT_MAX_ITERATIONS = 100
EXACT_DEFAULT_TOLERANCE = 5.0
EXACT_DEFAULT_MAX_SALT_GRAMS = 10.0
EXACT_STEP_SIZES = [1.0, 0.5, 0.2, 0.1]
EXACT_INITIAL_FRACTION = 0.5
EXACT_WARN_SALT_COUNT = 5
EXACT_WARN_SALT_GRAMS = 5.0
