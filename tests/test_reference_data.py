"""
Tests for reference data lookups in tools/reference_data.py.
"""

import pytest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from tools.reference_data import get_reference_data, list_reference, lookup_reference
from utils.exceptions import (
    CatalogError,
    InputValidationError,
    UnknownAcidError,
    UnknownGrainError,
    UnknownProfileError,
    UnknownSaltError,
)


class TestLookupReference:
    """Tests for single-item lookups."""

    def test_salt_by_alias(self):
        entry = lookup_reference("salt", "chalk")
        assert entry["id"] == "calcium_carbonate"
        assert entry["ions"]["calcium"] == pytest.approx(400.4)

    def test_acid_strengths_keyed_by_text(self):
        """Concentrations are string keys so the entry serializes to JSON."""
        entry = lookup_reference("acid", "lactic")
        assert entry["strengths"]["88"] == pytest.approx(11.76)
        assert entry["standard_concentrations"][0] == 88.0

    def test_grain_by_display_name(self):
        assert lookup_reference("grain", "Roasted Barley")["buffer_capacity"] == pytest.approx(85.2)

    def test_profiles(self):
        assert lookup_reference("water_profile", "dublin")["ions"]["bicarbonate"] == 319
        assert lookup_reference("style_profile", "American IPA")["id"] == "american_ipa"

    @pytest.mark.parametrize("kind,item_id,error", [
        ("salt", "unobtainium", UnknownSaltError),
        ("acid", "vinegar", UnknownAcidError),
        ("grain", "xyzzy", UnknownGrainError),
        ("water_profile", "atlantis", UnknownProfileError),
        ("style_profile", "kvass", UnknownProfileError),
    ])
    def test_unknown_items(self, kind, item_id, error):
        with pytest.raises(error):
            lookup_reference(kind, item_id)

    def test_suggestions(self):
        """Near misses carry close matches."""
        with pytest.raises(CatalogError) as exc_info:
            lookup_reference("salt", "gypsun")
        assert "gypsum" in exc_info.value.suggestions
        assert exc_info.value.to_dict()["catalog"] == "salt"

    def test_all_is_not_a_single_kind(self):
        with pytest.raises(InputValidationError):
            lookup_reference("all", "gypsum")


class TestListReference:
    """Tests for catalog listings."""

    def test_all_kinds(self):
        listing = list_reference()
        assert set(listing) == {"salt", "acid", "grain", "water_profile", "style_profile"}
        assert len(listing["salt"]) == 8
        assert len(listing["acid"]) == 5

    def test_single_kind(self):
        listing = list_reference("grain")
        assert list(listing) == ["grain"]
        assert any(grain["id"] == "pilsner" for grain in listing["grain"])


class TestGetReferenceDataTool:
    """Tests for the get_reference_data tool."""

    @pytest.mark.asyncio
    async def test_item(self):
        result = await get_reference_data({"kind": "salt", "id": "gypsum"})
        assert result["kind"] == "salt"
        assert result["item"]["name"] == "Gypsum"

    @pytest.mark.asyncio
    async def test_listing(self):
        result = await get_reference_data({"kind": "style_profile"})
        assert len(result["items"]["style_profile"]) == 8

    @pytest.mark.asyncio
    async def test_invalid_kind(self):
        with pytest.raises(InputValidationError):
            await get_reference_data({"kind": "yeast"})
