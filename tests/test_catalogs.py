"""
Tests for the static catalogs and shared helpers in utils/.

Tests:
- salt and acid registries
- grain database and color estimates
- water and style profile library
- unit helpers
"""

import pytest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from utils.grain_registry import (
    GRAIN_DATABASE,
    estimate_grain_properties,
    find_grain,
    lookup_grain,
)
from utils.helpers import (
    ceil_grams,
    clamp,
    clean_additions,
    ebc_to_srm,
    lovibond_to_srm,
    normalize_key,
    parse_acid_name,
    round_grams,
    safe_ratio,
    srm_to_ebc,
    srm_to_lovibond,
)
from utils.profile_library import STYLE_PROFILES, get_style_profile, get_water_profile, list_profiles
from utils.salt_registry import (
    ACIDS,
    SALTS,
    acid_strength,
    find_acid,
    find_salt,
    get_salt,
    resolve_salt_id,
)
from utils.exceptions import UnknownSaltError


# =============================================================================
# SALT AND ACID REGISTRY
# =============================================================================

class TestSaltRegistry:
    """Tests for the salt catalog."""

    def test_catalog_ids_match_keys(self):
        for key, salt in SALTS.items():
            assert salt.id == key

    @pytest.mark.parametrize("alias,salt_id", [
        ("Gypsum", "gypsum"),
        ("CaCl2", "calcium_chloride"),
        ("epsom", "epsom_salt"),
        ("Table Salt", "sodium_chloride"),
        ("chalk", "calcium_carbonate"),
        ("pickling lime", "calcium_hydroxide"),
        ("baking-soda", "baking_soda"),
    ])
    def test_aliases(self, alias, salt_id):
        assert resolve_salt_id(alias) == salt_id
        assert find_salt(alias).id == salt_id

    def test_unknown_salt(self):
        assert find_salt("unobtainium") is None
        with pytest.raises(UnknownSaltError):
            get_salt("unobtainium")

    def test_gypsum_yields(self):
        """1 g/L gypsum adds about 232.5 ppm calcium and 557.7 ppm sulfate."""
        gypsum = SALTS["gypsum"]
        assert gypsum.ions == {"calcium": 232.5, "sulfate": 557.7}


class TestAcidRegistry:
    """Tests for the acid catalog."""

    def test_default_concentrations(self):
        assert ACIDS["lactic"].default_concentration == 88.0
        assert ACIDS["phosphoric"].default_concentration == 85.0
        assert ACIDS["citric"].unit == "g"

    def test_acid_strength(self):
        assert acid_strength(ACIDS["lactic"]) == (11.76, 88.0)
        assert acid_strength(ACIDS["lactic"], 50) == (6.22, 50)

    def test_nearest_concentration(self):
        """75% phosphoric is tabulated; 70% falls back to it."""
        assert acid_strength(ACIDS["phosphoric"], 70) == (12.12, 75.0)

    def test_aliases(self):
        assert find_acid("muriatic").id == "hydrochloric"
        assert find_acid("Lactic Acid").id == "lactic"
        assert find_acid("vinegar") is None


# =============================================================================
# GRAIN DATABASE
# =============================================================================

class TestGrainRegistry:
    """Tests for grain lookup tiers."""

    def test_exact_key(self):
        assert find_grain("pilsner") is GRAIN_DATABASE["pilsner"]

    def test_substring_match(self):
        assert find_grain("Crystal 60L").name == "Crystal 60L"
        assert find_grain("Weyermann Munich Malt Type I").name == "Munich Malt"

    def test_color_estimate(self):
        """Unknown names fall back to a color correlation."""
        grain = lookup_grain("Mystery Caramel", color_srm=60)
        assert grain.estimated is True
        assert grain.grain_type == "crystal"
        assert grain.di_water_ph == pytest.approx(4.62)
        assert grain.buffer_capacity == pytest.approx(49.0)

    def test_roasted_estimate(self):
        grain = estimate_grain_properties("Midnight", 450)
        assert grain.grain_type == "roasted"
        assert grain.di_water_ph == pytest.approx(4.14)

    def test_acidulated_type(self):
        grain = estimate_grain_properties("Sauermalz", 2.0, "acidulated")
        assert grain.acidity == GRAIN_DATABASE["acidulated"].acidity
        assert grain.name == "Sauermalz"

    def test_no_color_uses_default(self):
        grain = lookup_grain("House Malt")
        assert grain.name == "House Malt"
        assert grain.di_water_ph == GRAIN_DATABASE["pale_ale"].di_water_ph
        assert grain.estimated is True


# =============================================================================
# PROFILE LIBRARY
# =============================================================================

class TestProfileLibrary:
    """Tests for standard waters and style targets."""

    def test_water_profile(self):
        burton = get_water_profile("burton")
        assert burton["id"] == "burton"
        assert burton["ions"]["sulfate"] > 500

    def test_style_characters(self):
        for entry in STYLE_PROFILES.values():
            assert entry["character"] in ("hoppy", "balanced", "malty")

    def test_lookup_by_name(self):
        assert get_style_profile("Saison")["id"] == "saison"

    def test_list_profiles(self):
        listing = list_profiles()
        assert len(listing["water_profiles"]) == 7
        assert len(listing["style_profiles"]) == 8


# =============================================================================
# HELPERS
# =============================================================================

class TestHelpers:
    """Tests for unit and rounding helpers."""

    def test_normalize_key(self):
        assert normalize_key("Crystal 60L") == "crystal_60l"
        assert normalize_key("  Epsom-Salt ") == "epsom_salt"

    def test_clamp(self):
        assert clamp(7.2, 4.0, 6.5) == 6.5
        assert clamp(3.0, 4.0, 6.5) == 4.0

    def test_rounding(self):
        assert round_grams(1.26) == 1.3
        assert ceil_grams(3.30) == 3.3
        assert ceil_grams(3.301) == 3.4

    def test_clean_additions(self):
        """Amounts under 0.1 g are dropped."""
        assert clean_additions({"gypsum": 1.26, "epsom_salt": 0.04}) == {"gypsum": 1.3}

    def test_color_conversions(self):
        assert srm_to_ebc(10) == pytest.approx(19.7)
        assert ebc_to_srm(19.7) == pytest.approx(10)
        assert lovibond_to_srm(srm_to_lovibond(20)) == pytest.approx(20)

    def test_parse_acid_name(self):
        assert parse_acid_name("phosphoric_10") == ("phosphoric", 10.0)
        assert parse_acid_name("lactic_88") == ("lactic", 88.0)
        assert parse_acid_name("lactic") == ("lactic", 88.0)

    def test_safe_ratio(self):
        assert safe_ratio(100, 50) == 2.0
        assert safe_ratio(100, 0) is None
