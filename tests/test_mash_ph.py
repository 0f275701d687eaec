"""
Tests for the mash pH models in tools/mash_ph.py.

Tests:
- simple, kaiser and advanced models on reference waters
- clamping and cross-model agreement
- pH progression and acid effect
- estimate_mash_ph tool
"""

import pytest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from tools.mash_ph import (
    advanced_ph_detail,
    calculate_ph_progression,
    carbonate_fractions,
    distilled_water_ph,
    estimate_mash_ph,
    estimate_ph,
    grain_bill_buffer_capacity,
    grain_color,
    ionic_strength,
    kaiser_ph,
    kaiser_ph_detailed,
    ph_after_acid,
    ph_warnings,
    simple_ph,
    water_buffer_capacity,
    water_kw,
)
from tools.schemas import GrainBillItem, Volumes, WaterProfile
from tools.water_profile import compose_profile
from utils.exceptions import InputValidationError

MODELS = ["simple", "kaiser", "advanced"]


# =============================================================================
# SIMPLE MODEL TESTS
# =============================================================================

class TestSimpleModel:
    """Tests for the RA-shift model."""

    def test_distilled_ph_of_pale_bill(self, pale_bill_model):
        """5.72 less 0.002 per SRM."""
        assert distilled_water_ph(pale_bill_model) == pytest.approx(5.714)

    def test_moderate_water(self, moderate_profile, pale_bill_model):
        """RA of about 40 raises pH by about 0.12."""
        estimate = simple_ph(moderate_profile, pale_bill_model)
        assert estimate.ph == pytest.approx(5.835, abs=0.005)
        assert estimate.details["residual_alkalinity"] == pytest.approx(40.4, abs=0.05)

    def test_thinner_mash_shifts_less(self, moderate_profile, pale_bill_model):
        """RA shift scales with 3 / thickness."""
        thick = simple_ph(moderate_profile, pale_bill_model, mash_thickness=3.0)
        thin = simple_ph(moderate_profile, pale_bill_model, mash_thickness=4.0)
        assert thin.ph < thick.ph

    def test_empty_bill(self, ro_profile):
        """No grain falls back to 5.7."""
        assert distilled_water_ph([]) == 5.7
        assert simple_ph(ro_profile, []).ph == pytest.approx(5.7)


# =============================================================================
# KAISER MODEL TESTS
# =============================================================================

class TestKaiserModel:
    """Tests for the Kaiser buffer model."""

    def test_moderate_water(self, moderate_profile, pale_bill_model):
        """Moderate water and a pale bill lands around 5.73 at 65 C."""
        estimate = kaiser_ph_detailed(moderate_profile, pale_bill_model)
        assert estimate.ph == pytest.approx(5.727, abs=0.005)
        assert estimate.details["buffer_capacity"] == pytest.approx(31.5)

    def test_ro_water(self, ro_profile, pale_bill_model):
        """RO water with pale malt sits near 5.58."""
        assert kaiser_ph(ro_profile, pale_bill_model).ph == pytest.approx(5.575, abs=0.005)

    def test_kaiser_ph_strips_details(self, ro_profile, pale_bill_model):
        assert kaiser_ph(ro_profile, pale_bill_model).details == {}

    def test_temperature_correction(self, moderate_profile, pale_bill_model):
        """Hotter mashes read lower."""
        cool = kaiser_ph_detailed(moderate_profile, pale_bill_model, temperature=25)
        hot = kaiser_ph_detailed(moderate_profile, pale_bill_model, temperature=65)
        assert cool.ph - hot.ph == pytest.approx(0.12)

    def test_empty_bill_default(self, ro_profile):
        """No grain returns 5.4 with a warning."""
        estimate = kaiser_ph_detailed(ro_profile, [])
        assert estimate.ph == 5.4
        assert estimate.warnings

    def test_gypsum_lowers_ph(self, ro_profile, mixed_bill_model):
        """Calcium from gypsum lowers the Kaiser estimate."""
        volumes = Volumes(total=30, mash=18, sparge=12)
        treated = compose_profile(ro_profile, {"gypsum": 8.0, "calcium_chloride": 2.0}, volumes).profile
        before = kaiser_ph(ro_profile, mixed_bill_model).ph
        after = kaiser_ph(treated, mixed_bill_model).ph
        assert after < before


# =============================================================================
# ADVANCED MODEL TESTS
# =============================================================================

class TestAdvancedModel:
    """Tests for the charge-balance model."""

    def test_ro_water_near_distilled_ph(self, ro_profile, pale_bill_model):
        """With no ions the equilibrium sits at the grain's distilled-water pH."""
        estimate = advanced_ph_detail(ro_profile, pale_bill_model)
        assert estimate.converged is True
        assert estimate.ph == pytest.approx(5.72, abs=0.02)

    def test_alkaline_water_raises_ph(self, ro_profile, pale_bill_model):
        """Bicarbonate raises the equilibrium pH."""
        alkaline = WaterProfile(bicarbonate=200)
        assert advanced_ph_detail(alkaline, pale_bill_model).ph > advanced_ph_detail(ro_profile, pale_bill_model).ph

    def test_details_reported(self, moderate_profile, pale_bill_model):
        """Ionic strength, activity coefficients and species fractions are exposed."""
        estimate = advanced_ph_detail(moderate_profile, pale_bill_model)
        details = estimate.details
        assert details["ionic_strength"] == pytest.approx(ionic_strength(moderate_profile))
        assert 0 < details["activity_coefficients"]["monovalent"] < 1
        fractions = details["carbonate_fractions"]
        assert sum(fractions.values()) == pytest.approx(1.0)
        assert estimate.iterations > 0

    def test_exhausted_budget_is_best_effort(self, moderate_profile, pale_bill_model):
        """Too few iterations returns a non-converged estimate with a warning."""
        estimate = advanced_ph_detail(moderate_profile, pale_bill_model, max_iterations=2)
        assert estimate.converged is False
        assert 4.0 <= estimate.ph <= 6.5
        assert any("did not converge" in w for w in estimate.warnings)

    def test_carbonate_fractions_sum_to_one(self):
        fractions = carbonate_fractions(6.35, 6.35, 10.33)
        assert fractions["h2co3"] == pytest.approx(fractions["hco3"], rel=0.01)
        assert sum(fractions.values()) == pytest.approx(1.0)

    def test_water_kw_increases_with_temperature(self):
        assert water_kw(65) > water_kw(25)

    def test_water_buffer_capacity(self):
        """Alkaline water buffers more than pure water near pKa1."""
        assert water_buffer_capacity(WaterProfile(bicarbonate=150), 6.3) > water_buffer_capacity(WaterProfile(), 6.3)


# =============================================================================
# CROSS-MODEL TESTS
# =============================================================================

class TestModelAgreement:
    """Properties every model shares."""

    @pytest.mark.parametrize("model", MODELS)
    def test_results_clamped(self, model, pale_bill_model):
        """Extreme waters stay within [4.0, 6.5]."""
        high = estimate_ph(model, WaterProfile(bicarbonate=1000), pale_bill_model).ph
        low = estimate_ph(model, WaterProfile(calcium=1000), pale_bill_model).ph
        assert 4.0 <= high <= 6.5
        assert 4.0 <= low <= 6.5

    @pytest.mark.parametrize("model", MODELS)
    def test_dark_grain_lowers_ph(self, model, ro_profile, pale_bill_model, dark_bill_model):
        """Roasted malt acidifies the mash."""
        assert estimate_ph(model, ro_profile, dark_bill_model).ph < estimate_ph(model, ro_profile, pale_bill_model).ph

    @pytest.mark.parametrize("bill", ["pale_bill_model", "dark_bill_model"])
    def test_models_agree_on_moderate_water(self, request, moderate_profile, bill):
        """The three models land within 0.3 pH of each other for pale and roasted bills."""
        grains = request.getfixturevalue(bill)
        values = [estimate_ph(model, moderate_profile, grains).ph for model in MODELS]
        assert max(values) - min(values) < 0.3

    def test_unknown_model(self, ro_profile, pale_bill_model):
        with pytest.raises(InputValidationError):
            estimate_ph("magic", ro_profile, pale_bill_model)

    def test_ph_warnings(self):
        """Warnings outside the optimal and acceptable ranges."""
        assert ph_warnings(5.4) == []
        assert "below the optimal" in ph_warnings(5.1)[0]
        assert "very low" in ph_warnings(4.9)[0]
        assert "above the optimal" in ph_warnings(5.7)[0]
        assert "very high" in ph_warnings(5.9)[0]


# =============================================================================
# PROGRESSION TESTS
# =============================================================================

class TestPhProgression:
    """Tests for calculate_ph_progression and ph_after_acid."""

    def test_progression_without_acid(self, ro_profile, pale_bill_model):
        """RO source equals distilled; salts lower the pH; no acid leaves it there."""
        volumes = Volumes(total=30, mash=18, sparge=12)
        treated = compose_profile(ro_profile, {"calcium_chloride": 3.0}, volumes).profile
        progression = calculate_ph_progression(ro_profile, treated, pale_bill_model, "kaiser")

        assert progression.distilled_water_ph == pytest.approx(progression.source_ph)
        assert progression.after_salts_ph < progression.source_ph
        assert progression.final_ph == progression.after_salts_ph

    def test_acid_lowers_final_ph(self, moderate_profile, pale_bill_model):
        """Acid moves the final pH below the after-salts pH."""
        progression = calculate_ph_progression(
            moderate_profile, moderate_profile, pale_bill_model, "simple", acid_meq=40.0
        )
        assert progression.final_ph < progression.after_salts_ph

    def test_ph_after_acid(self, pale_bill_model):
        """Pilsner malt: 5 kg x 35.4 mEq/kg/pH x 1.2 = 212.4 mEq per pH."""
        assert grain_bill_buffer_capacity(pale_bill_model) == pytest.approx(177.0)
        assert ph_after_acid(5.6, 42.48, pale_bill_model) == pytest.approx(5.4)

    def test_no_acid_no_change(self, pale_bill_model):
        assert ph_after_acid(5.6, 0.0, pale_bill_model) == 5.6


# =============================================================================
# TOOL TESTS
# =============================================================================

class TestEstimateMashPhTool:
    """Tests for the estimate_mash_ph tool."""

    @pytest.mark.asyncio
    async def test_default_kaiser(self, moderate_water, pale_bill):
        """Kaiser is the default model."""
        result = await estimate_mash_ph({"water": moderate_water, "grain_bill": pale_bill})
        assert result["model"] == "kaiser"
        assert result["ph"] == pytest.approx(5.727, abs=0.005)

    @pytest.mark.asyncio
    async def test_compare_models(self, moderate_water, pale_bill):
        """compare_models reports all three models."""
        result = await estimate_mash_ph({
            "water": moderate_water,
            "grain_bill": pale_bill,
            "model": "advanced",
            "compare_models": True,
        })
        assert set(result["comparison"]) == {"simple", "kaiser", "advanced"}
        assert result["converged"] is True

    @pytest.mark.asyncio
    async def test_ebc_color_input(self, moderate_water):
        """Grain color may be given in EBC."""
        result = await estimate_mash_ph({
            "water": moderate_water,
            "grain_bill": [{"name": "Pilsner Malt", "weight": 5.0, "color_ebc": 5.91, "type": "base"}],
        })
        assert result["ph"] == pytest.approx(5.727, abs=0.005)

    @pytest.mark.asyncio
    async def test_invalid_model(self, moderate_water, pale_bill):
        with pytest.raises(InputValidationError):
            await estimate_mash_ph({"water": moderate_water, "grain_bill": pale_bill, "model": "magic"})

    def test_free_form_grain_type(self):
        """Unrecognised grain types map to 'other'."""
        assert GrainBillItem(name="Mystery", weight=1, type="smoked").type == "other"
        assert GrainBillItem(name="Cara", weight=1, type="caramel").type == "crystal"

    def test_missing_color_from_database(self, ro_profile):
        """A known malt listed without a color uses its database color."""
        given = GrainBillItem(name="Crystal 60L", weight=1.0, color=60, type="crystal")
        omitted = GrainBillItem(name="Crystal 60L", weight=1.0, type="crystal")
        assert omitted.color is None
        assert grain_color(omitted) == 60
        assert simple_ph(ro_profile, [omitted]).ph == pytest.approx(simple_ph(ro_profile, [given]).ph)
        assert kaiser_ph(ro_profile, [omitted]).ph == pytest.approx(kaiser_ph(ro_profile, [given]).ph)

    def test_unknown_colorless_grain_uses_default_malt(self, ro_profile):
        """An unrecognised malt with no color is treated as pale ale malt."""
        mystery = GrainBillItem(name="Mystery Malt", weight=5.0)
        pale = GrainBillItem(name="Pale Ale Malt", weight=5.0, color=3.0)
        assert grain_color(mystery) == 3.0
        assert grain_bill_buffer_capacity([mystery]) == pytest.approx(37.2 * 5)
        assert estimate_ph("advanced", ro_profile, [mystery]).ph == pytest.approx(
            estimate_ph("advanced", ro_profile, [pale]).ph
        )
