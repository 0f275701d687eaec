"""
Tests for the end-to-end calculation in tools/brewing_calculation.py.

Tests:
- manual mode: salts, acids, placements and match scoring
- auto mode: optimization, mash acid and sparge acid
- input validation
"""

import pytest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from tools.brewing_calculation import calculate_auto, calculate_brewing_water, calculate_manual
from tools.mash_ph import estimate_ph, kaiser_ph
from tools.schemas import CalculateBrewingWaterInput, GrainBillItem, WaterProfile
from utils.exceptions import InputValidationError


@pytest.fixture
def alkaline_water():
    """Moderately hard water with 200 ppm bicarbonate."""
    return {
        "calcium": 50,
        "magnesium": 10,
        "sodium": 20,
        "sulfate": 100,
        "chloride": 50,
        "bicarbonate": 200,
    }


# =============================================================================
# MANUAL MODE
# =============================================================================

class TestManualMode:
    """Tests for calculate_manual."""

    def test_salts_lower_ph(self, ro_water, batch_volumes, pale_bill):
        """Gypsum raises calcium and lowers the predicted pH."""
        request = CalculateBrewingWaterInput(
            mode="manual",
            source_water=ro_water,
            salts={"gypsum": 3.9},
            grain_bill=pale_bill,
            volumes=batch_volumes,
        )
        result = calculate_manual(request)

        assert result["mode"] == "manual"
        assert result["achieved_water"]["calcium"] == pytest.approx(50.375)
        baseline = kaiser_ph(WaterProfile(), [GrainBillItem(**item) for item in pale_bill]).ph
        assert result["predictions"]["mash_ph"] < baseline
        assert result["adjustments"]["mash"]["salts"][0]["name"] == "gypsum"
        assert "match_percentage" not in result["analysis"]

    def test_acid_lowers_final_ph(self, ro_water, batch_volumes, pale_bill):
        """Mash acid moves the final pH below the after-salts pH."""
        request = CalculateBrewingWaterInput(
            mode="manual",
            source_water=ro_water,
            acids={"lactic_88": 2.0},
            grain_bill=pale_bill,
            volumes=batch_volumes,
        )
        progression = calculate_manual(request)["predictions"]["ph_progression"]
        assert progression["final_ph"] == pytest.approx(progression["after_salts_ph"] - 23.52 / 212.4)

    def test_sulfuric_adds_sulfate(self, ro_water, batch_volumes, pale_bill):
        """Sulfuric acid leaves sulfate in the mash water."""
        request = CalculateBrewingWaterInput(
            mode="manual",
            source_water=ro_water,
            acids={"sulfuric_96": 1.0},
            grain_bill=pale_bill,
            volumes=batch_volumes,
        )
        result = calculate_manual(request)
        assert result["mash_water"]["sulfate"] == pytest.approx(36.77 * 48.03 / 18)

    def test_ph_models_see_acid_anions(self, ro_water, batch_volumes, pale_bill):
        """The pH prediction uses the reported mash water, sulfate from the acid included."""
        request = CalculateBrewingWaterInput(
            mode="manual",
            source_water=ro_water,
            acids={"sulfuric_96": 1.0},
            grain_bill=pale_bill,
            volumes=batch_volumes,
            options={"ph_model": "advanced"},
        )
        result = calculate_manual(request)
        mash_water = WaterProfile(**result["mash_water"])
        grains = [GrainBillItem(**item) for item in pale_bill]
        expected = estimate_ph("advanced", mash_water, grains).ph
        assert result["predictions"]["ph_progression"]["after_salts_ph"] == pytest.approx(expected)

    def test_unknown_acid_warns(self, ro_water, batch_volumes, pale_bill):
        request = CalculateBrewingWaterInput(
            mode="manual",
            source_water=ro_water,
            acids={"vinegar_5": 10.0},
            grain_bill=pale_bill,
            volumes=batch_volumes,
        )
        result = calculate_manual(request)
        assert any("Unknown acid 'vinegar'" in w for w in result["warnings"])

    def test_style_adds_match(self, ro_water, batch_volumes, pale_bill):
        request = CalculateBrewingWaterInput(
            mode="manual",
            source_water=ro_water,
            salts={"gypsum": 5.0},
            style="american_ipa",
            grain_bill=pale_bill,
            volumes=batch_volumes,
        )
        result = calculate_manual(request)
        assert 0 <= result["analysis"]["match_percentage"] <= 100

    def test_staged_placement_override(self, ro_water, batch_volumes, pale_bill):
        """An explicit sparge placement keeps gypsum out of the mash water."""
        request = CalculateBrewingWaterInput(
            mode="manual",
            source_water=ro_water,
            salts={"gypsum": 2.0, "epsom_salt": 1.0},
            salt_locations={"gypsum": "sparge"},
            grain_bill=pale_bill,
            volumes=batch_volumes,
            options={"volume_mode": "staged"},
        )
        result = calculate_manual(request)
        adjustments = result["adjustments"]
        assert [a["name"] for a in adjustments["sparge"]["salts"]] == ["gypsum"]
        assert [a["name"] for a in adjustments["boil"]["salts"]] == ["epsom_salt"]
        assert result["mash_water"]["calcium"] == 0


# =============================================================================
# AUTO MODE
# =============================================================================

class TestAutoMode:
    """Tests for calculate_auto."""

    def test_acid_reaches_target_ph(self, alkaline_water, batch_volumes, pale_bill):
        """With no salts needed, lactic acid brings the mash to 5.4."""
        request = CalculateBrewingWaterInput(
            source_water=alkaline_water,
            target_water=alkaline_water,
            grain_bill=pale_bill,
            volumes=batch_volumes,
        )
        result = calculate_auto(request)

        assert result["adjustments"]["salts"] == []
        acids = result["adjustments"]["mash"]["acids"]
        assert len(acids) == 1
        assert (acids[0]["name"], acids[0]["concentration"]) == ("lactic", 88.0)
        assert result["predictions"]["mash_ph"] == pytest.approx(5.4, abs=0.01)
        assert result["acid_dose"]["amount"] > 0

    def test_style_target(self, ro_water, batch_volumes, pale_bill):
        request = CalculateBrewingWaterInput(
            source_water=ro_water,
            style="american_ipa",
            grain_bill=pale_bill,
            volumes=batch_volumes,
        )
        result = calculate_auto(request)
        assert result["style"] == "american_ipa"
        assert result["optimization"]["strategy"] == "balanced"
        assert "gypsum" in [a["name"] for a in result["adjustments"]["salts"]]
        assert result["achieved_water"]["sulfate"] > result["achieved_water"]["chloride"]

    def test_staged_sparge_acid(self, alkaline_water, batch_volumes, pale_bill):
        """Alkaline sparge water gets its own acid in staged mode."""
        request = CalculateBrewingWaterInput(
            source_water=alkaline_water,
            target_water=alkaline_water,
            grain_bill=pale_bill,
            volumes=batch_volumes,
            options={"volume_mode": "staged"},
        )
        result = calculate_auto(request)
        sparge_acids = result["adjustments"]["sparge"]["acids"]
        assert len(sparge_acids) == 1
        assert sparge_acids[0]["location"] == "sparge"
        assert sparge_acids[0]["amount"] == pytest.approx(2.3)

    def test_exact_strategy(self, ro_water, dublin_target, batch_volumes, dark_bill):
        request = CalculateBrewingWaterInput(
            source_water=ro_water,
            target_water=dublin_target,
            grain_bill=dark_bill,
            volumes=batch_volumes,
            strategy="exact",
        )
        result = calculate_auto(request)
        assert result["optimization"]["strategy"] == "exact"
        assert result["optimization"]["feasible"] is True


# =============================================================================
# TOOL TESTS
# =============================================================================

class TestCalculateBrewingWaterTool:
    """Tests for the calculate_brewing_water tool."""

    @pytest.mark.asyncio
    async def test_manual(self, moderate_water, batch_volumes, mixed_bill):
        result = await calculate_brewing_water({
            "mode": "manual",
            "source_water": moderate_water,
            "salts": {"calcium_chloride": 1.5},
            "grain_bill": mixed_bill,
            "volumes": batch_volumes,
            "options": {"ph_model": "advanced"},
        })
        assert result["predictions"]["ph_model"] == "advanced"
        assert result["predictions"]["ph_converged"] is True
        assert "mash volume" in result["volume_mode_explanation"].lower()

    @pytest.mark.asyncio
    async def test_auto_requires_target(self, ro_water, batch_volumes):
        with pytest.raises(InputValidationError):
            await calculate_brewing_water({"mode": "auto", "source_water": ro_water, "volumes": batch_volumes})

    @pytest.mark.asyncio
    async def test_staged_volume_check(self, ro_water):
        with pytest.raises(InputValidationError):
            await calculate_brewing_water({
                "mode": "manual",
                "source_water": ro_water,
                "volumes": {"total": 40, "mash": 18, "sparge": 12},
                "options": {"volume_mode": "staged"},
            })
