"""
Shared pytest fixtures for the brewing water test suite.
"""

import pytest
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from tools.schemas import GrainBillItem, Volumes, WaterProfile


# =============================================================================
# WATER FIXTURES
# =============================================================================

@pytest.fixture
def ro_water():
    """Reverse osmosis / distilled water."""
    return {
        "calcium": 0,
        "magnesium": 0,
        "sodium": 0,
        "sulfate": 0,
        "chloride": 0,
        "bicarbonate": 0,
    }


@pytest.fixture
def moderate_water():
    """Typical moderately hard municipal tap water."""
    return {
        "calcium": 50,
        "magnesium": 10,
        "sodium": 20,
        "sulfate": 100,
        "chloride": 50,
        "bicarbonate": 100,
    }


@pytest.fixture
def ro_profile(ro_water):
    return WaterProfile(**ro_water)


@pytest.fixture
def moderate_profile(moderate_water):
    return WaterProfile(**moderate_water)


# =============================================================================
# VOLUME FIXTURES
# =============================================================================

@pytest.fixture
def brew_volumes():
    """32.2 L total brew: 17 L mash, 15.2 L sparge."""
    return {"total": 32.2, "mash": 17.0, "sparge": 15.2}


@pytest.fixture
def batch_volumes():
    """30 L total brew: 18 L mash, 12 L sparge."""
    return {"total": 30.0, "mash": 18.0, "sparge": 12.0}


@pytest.fixture
def brew_volumes_model(brew_volumes):
    return Volumes(**brew_volumes)


@pytest.fixture
def batch_volumes_model(batch_volumes):
    return Volumes(**batch_volumes)


# =============================================================================
# GRAIN BILL FIXTURES
# =============================================================================

@pytest.fixture
def pale_bill():
    """Single malt pilsner bill."""
    return [{"name": "Pilsner Malt", "weight": 5.0, "color": 3.0, "type": "base"}]


@pytest.fixture
def mixed_bill():
    """Pilsner with a little Munich."""
    return [
        {"name": "Pilsner Malt", "weight": 4.5, "color": 3.0, "type": "base"},
        {"name": "Munich Malt", "weight": 0.5, "color": 20.0, "type": "base"},
    ]


@pytest.fixture
def dark_bill():
    """Stout-like bill with roasted barley."""
    return [
        {"name": "Pale Ale Malt", "weight": 4.5, "color": 3.0, "type": "base"},
        {"name": "Roasted Barley", "weight": 0.5, "color": 500.0, "type": "roasted"},
    ]


@pytest.fixture
def pale_bill_model(pale_bill):
    return [GrainBillItem(**item) for item in pale_bill]


@pytest.fixture
def mixed_bill_model(mixed_bill):
    return [GrainBillItem(**item) for item in mixed_bill]


@pytest.fixture
def dark_bill_model(dark_bill):
    return [GrainBillItem(**item) for item in dark_bill]


# =============================================================================
# TARGET FIXTURES
# =============================================================================

@pytest.fixture
def dublin_target():
    """Dublin-style target with moderated bicarbonate."""
    return {
        "calcium": 118,
        "magnesium": 4,
        "sodium": 12,
        "sulfate": 55,
        "chloride": 19,
        "bicarbonate": 160,
    }


@pytest.fixture
def hoppy_target():
    """Sulfate-forward pale ale target."""
    return {
        "calcium": 100,
        "magnesium": 5,
        "sodium": 10,
        "sulfate": 250,
        "chloride": 50,
        "bicarbonate": 0,
    }
